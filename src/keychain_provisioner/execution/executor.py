"""
External command execution.

Every keychain, import and signing command goes through a CommandExecutor.
"""

import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..errors import ProvisioningCancelled


@dataclass
class CommandResult:
    """Raw result of a finished command.

    Attributes:
        exit_code: Process exit status
        output: Combined stdout/stderr, unmasked
    """
    exit_code: int
    output: str


class CommandExecutor(ABC):
    """Runs a command on the build node and waits for it to exit."""

    @abstractmethod
    def execute(
        self,
        argv: Sequence[str],
        masked_indices: frozenset[int] = frozenset(),
        working_dir: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
    ) -> CommandResult:
        """Run a command.

        Args:
            argv: Program and arguments
            masked_indices: Positions in argv holding secrets
            working_dir: Working directory for the command
            env: Extra environment variables

        Returns:
            CommandResult with exit code and captured output

        Raises:
            ProvisioningCancelled: If the build is interrupted meanwhile
        """
        pass


class SubprocessExecutor(CommandExecutor):
    """Runs commands on the local machine with subprocess."""

    def execute(
        self,
        argv: Sequence[str],
        masked_indices: frozenset[int] = frozenset(),
        working_dir: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
    ) -> CommandResult:
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        try:
            process = subprocess.Popen(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=str(working_dir) if working_dir else None,
                env=full_env,
            )
        except FileNotFoundError:
            return CommandResult(exit_code=127, output=f"{argv[0]}: command not found\n")

        try:
            stdout, _ = process.communicate()
        except KeyboardInterrupt:
            process.kill()
            process.wait()
            raise ProvisioningCancelled(f"Interrupted while running {argv[0]}")

        return CommandResult(
            exit_code=process.returncode,
            output=stdout.decode("utf-8", errors="replace"),
        )
