"""
Capture and restore of the host keychain search list and default keychain.

Both settings are host-wide, so two builds changing them at the same time
on one node can interleave. Nothing here serialises them.
"""

import logging
from typing import Optional

from ..errors import ExternalCommandError
from ..execution.arguments import ArgumentList
from ..execution.runner import CommandRunner
from .models import HostKeychainSnapshot, KeychainRuntimeState, StepResult

logger = logging.getLogger(__name__)

NO_DEFAULT_KEYCHAIN = "A default keychain could not be found."


def parse_keychain_list(output: str) -> list[str]:
    """Parse `security list-keychains` style output into paths.

    Each line holds one double-quoted path with leading whitespace.
    """
    paths = []
    for line in output.splitlines():
        line = line.strip()
        if len(line) >= 2 and line[0] == line[-1] == '"':
            line = line[1:-1]
        if line:
            paths.append(line)
    return paths


def read_default_keychain(
    runner: CommandRunner, security_tool: str
) -> tuple[Optional[str], Optional[ExternalCommandError]]:
    """Ask for the user's default keychain.

    Returns:
        (path, None) when a default is set, (None, None) when there is no
        default, or (None, error) when the query itself failed
    """
    outcome = runner.run(ArgumentList(security_tool, "default-keychain"))
    if outcome.ok:
        paths = parse_keychain_list(outcome.output)
        return (paths[0] if paths else None), None
    if NO_DEFAULT_KEYCHAIN in outcome.output:
        return None, None
    if outcome.output:
        logger.error(outcome.output.rstrip())
    return None, ExternalCommandError(
        "Failed to read the default keychain",
        command=outcome.command,
        exit_code=outcome.exit_code,
        output=outcome.output,
    )


class SearchPathRestorer:
    """Records host keychain settings and puts them back."""

    def __init__(self, runner: CommandRunner, security_tool: str = "security"):
        self.runner = runner
        self.security_tool = security_tool

    def capture(self, state: KeychainRuntimeState) -> StepResult:
        """Record the current search list and default keychain into state."""
        outcome = self.runner.run(
            ArgumentList(self.security_tool, "list-keychains", "-d", "user"),
            "Failed to read keychain search list",
        )
        if not outcome.ok:
            return StepResult.failed("capture_search_path", outcome.error)
        search_list = tuple(parse_keychain_list(outcome.output))

        default, error = read_default_keychain(self.runner, self.security_tool)
        if error is not None:
            return StepResult.failed("capture_search_path", error)

        state.record_snapshot(HostKeychainSnapshot(search_list=search_list, default_keychain=default))
        logger.info(
            f"Captured keychain search list ({len(search_list)} entries) "
            f"and default keychain {default or '(none)'}"
        )
        return StepResult.ok(
            "capture_search_path",
            "Host keychain settings captured",
            search_list=list(search_list),
            default_keychain=default,
        )

    def restore(self, state: KeychainRuntimeState) -> bool:
        """Put back the captured search list and default keychain.

        Failures are logged and reported through the return value only.

        Returns:
            True if everything was restored
        """
        snapshot = state.snapshot
        if snapshot is None:
            return True

        restored = True
        args = ArgumentList(self.security_tool, "list-keychains", "-d", "user", "-s")
        args.add(*snapshot.search_list)
        outcome = self.runner.run(args)
        if not outcome.ok:
            logger.warning(f"Failed to restore keychain search list (exit {outcome.exit_code})")
            restored = False

        if snapshot.default_keychain:
            outcome = self.runner.run(ArgumentList(
                self.security_tool, "default-keychain", "-d", "user", "-s", snapshot.default_keychain,
            ))
            if not outcome.ok:
                logger.warning(f"Failed to restore default keychain (exit {outcome.exit_code})")
                restored = False
        else:
            logger.info("No default keychain was set before this run; leaving it as is")

        return restored
