"""
Command runner that owns log output for external commands.

This is the one place where command lines and captured output become log or
error text, so secret masking happens here and nowhere else.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import ExternalCommandError
from .arguments import ArgumentList, SecretMasker
from .executor import CommandExecutor

logger = logging.getLogger(__name__)


@dataclass
class CommandOutcome:
    """A finished command as seen by the provisioning steps.

    Attributes:
        command: Masked command line
        exit_code: Process exit status
        output: Masked captured output
        error: Set when the command failed and a failure message was given
    """
    command: str
    exit_code: int
    output: str
    error: Optional[ExternalCommandError] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs ArgumentLists through an executor and reports masked results."""

    def __init__(
        self,
        executor: CommandExecutor,
        masker: Optional[SecretMasker] = None,
        working_dir: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
    ):
        self.executor = executor
        self.masker = masker or SecretMasker()
        self.working_dir = working_dir
        self.env = env

    def run(self, args: ArgumentList, error_message: Optional[str] = None) -> CommandOutcome:
        """Run a command.

        Args:
            args: The command to run
            error_message: Failure description; when None a non-zero exit
                is reported in the outcome but not treated as an error

        Returns:
            CommandOutcome with masked command and output
        """
        for secret in args.masked_values:
            self.masker.register(secret)

        command = self.masker.mask(args.to_log_string())
        logger.info(f"$ {command}")

        result = self.executor.execute(
            args.argv,
            args.masked_indices,
            self.working_dir,
            self.env,
        )
        output = self.masker.mask(result.output)
        outcome = CommandOutcome(command=command, exit_code=result.exit_code, output=output)

        if result.exit_code != 0 and error_message is not None:
            message = self.masker.mask(error_message)
            if output:
                logger.error(f"{message} (exit {result.exit_code}):\n{output.rstrip()}")
            else:
                logger.error(f"{message} (exit {result.exit_code})")
            outcome.error = ExternalCommandError(
                message,
                command=command,
                exit_code=result.exit_code,
                output=output,
            )
        return outcome

    def mask(self, text: str) -> str:
        """Mask secrets in free text before it is logged."""
        return self.masker.mask(text)
