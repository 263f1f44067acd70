"""
Keychain lifecycle: bring a keychain to a state where signing can use it.

An ephemeral keychain walks every state:

    ABSENT -> CREATED -> UNLOCKED -> SEARCH_PATH_SET
           -> PARTITION_CONFIGURED -> DEFAULT_SET

An existing keychain only goes ABSENT -> UNLOCKED, with the host search list
and default keychain captured first and put back by SearchPathRestorer.
"""

import logging
from pathlib import Path
from typing import Optional

from ..execution.arguments import ArgumentList
from ..execution.filesystem import Filesystem
from ..execution.runner import CommandRunner
from .models import KeychainOrigin, KeychainRuntimeState, KeychainState, StepResult
from .search_path import SearchPathRestorer, read_default_keychain
from .strategy import PARTITION_LIST_SERVICES, PartitionListStrategy

logger = logging.getLogger(__name__)

LOGIN_KEYCHAIN = "login.keychain"

_TRANSITIONS = {
    KeychainState.ABSENT: {KeychainState.CREATED, KeychainState.UNLOCKED},
    KeychainState.CREATED: {KeychainState.UNLOCKED},
    KeychainState.UNLOCKED: {KeychainState.SEARCH_PATH_SET},
    KeychainState.SEARCH_PATH_SET: {KeychainState.PARTITION_CONFIGURED},
    KeychainState.PARTITION_CONFIGURED: {KeychainState.DEFAULT_SET},
    KeychainState.DEFAULT_SET: set(),
}


def advance(state: KeychainRuntimeState, target: KeychainState) -> None:
    """Move the runtime state forward one lifecycle step.

    Raises:
        ValueError: If the transition is not part of the lifecycle
    """
    if target not in _TRANSITIONS[state.state]:
        raise ValueError(f"Illegal keychain transition {state.state.value} -> {target.value}")
    if target == KeychainState.CREATED and state.origin != KeychainOrigin.EPHEMERAL:
        raise ValueError("Only ephemeral keychains are created")
    state.state = target


class KeychainLifecycle:
    """Runs the `security` commands for each lifecycle transition."""

    def __init__(
        self,
        runner: CommandRunner,
        security_tool: str = "security",
        filesystem: Optional[Filesystem] = None,
        intermediate_certificate: Optional[str] = None,
    ):
        self.runner = runner
        self.security_tool = security_tool
        self.filesystem = filesystem
        self.intermediate_certificate = intermediate_certificate

    def _security(self, *args: str) -> ArgumentList:
        return ArgumentList(self.security_tool, *args)

    def create_ephemeral(self, state: KeychainRuntimeState) -> StepResult:
        """ABSENT -> CREATED -> UNLOCKED -> SEARCH_PATH_SET."""
        # Any keychain left behind by an earlier run of the job goes first;
        # a missing keychain makes this fail, which is fine.
        self.runner.run(self._security("delete-keychain", state.path))

        args = self._security("create-keychain", "-p").add_masked(state.password).add(state.path)
        outcome = self.runner.run(args, "Failed to create a keychain")
        if not outcome.ok:
            return StepResult.failed("create_keychain", outcome.error)
        advance(state, KeychainState.CREATED)

        result = self._unlock(state)
        if not result.success:
            return result

        args = self._security("list-keychains", "-d", "user", "-s", LOGIN_KEYCHAIN, state.path)
        outcome = self.runner.run(args, "Failed to set keychain search path")
        if not outcome.ok:
            return StepResult.failed("set_search_path", outcome.error)
        advance(state, KeychainState.SEARCH_PATH_SET)

        return StepResult.ok("create_keychain", f"Keychain {state.path} created and unlocked")

    def finish_ephemeral(self, state: KeychainRuntimeState) -> StepResult:
        """SEARCH_PATH_SET -> PARTITION_CONFIGURED -> DEFAULT_SET.

        Runs after identities are imported, since the partition list is
        set on the keys already in the keychain.
        """
        if isinstance(state.strategy, PartitionListStrategy):
            args = self._security("set-key-partition-list", "-S", PARTITION_LIST_SERVICES, "-s", "-k")
            args.add_masked(state.password).add(state.path)
            outcome = self.runner.run(args, "Failed to set key partition list to keychain")
            if not outcome.ok:
                return StepResult.failed("set_partition_list", outcome.error)
        else:
            logger.info("Trusted applications were granted at import; no partition list needed")
        advance(state, KeychainState.PARTITION_CONFIGURED)

        default, error = read_default_keychain(self.runner, self.security_tool)
        if error is not None:
            logger.warning("Could not determine the default keychain; leaving it unchanged")
        elif default is None:
            args = self._security("default-keychain", "-d", "user", "-s", state.path)
            outcome = self.runner.run(args, "Failed to set default keychain")
            if not outcome.ok:
                return StepResult.failed("set_default_keychain", outcome.error)
            logger.info(f"No default keychain was set; using {state.path}")
        else:
            logger.info(f"Keeping existing default keychain {default}")
        advance(state, KeychainState.DEFAULT_SET)

        self._import_intermediate_certificate(state)
        return StepResult.ok("configure_keychain", f"Keychain {state.path} ready for signing")

    def open_existing(self, state: KeychainRuntimeState, restorer: SearchPathRestorer) -> StepResult:
        """ABSENT -> UNLOCKED for a keychain that already exists.

        The host settings are captured before anything is changed. Any
        failure after that restores them before the result is returned.
        """
        result = restorer.capture(state)
        if not result.success:
            return result

        result = self._use_existing(state)
        if not result.success:
            restorer.restore(state)
        return result

    def _use_existing(self, state: KeychainRuntimeState) -> StepResult:
        search_list = [state.path] + [p for p in state.snapshot.search_list if p != state.path]
        args = self._security("list-keychains", "-d", "user", "-s", *search_list)
        outcome = self.runner.run(args, "Failed to set keychain search path")
        if not outcome.ok:
            return StepResult.failed("set_search_path", outcome.error)

        args = self._security("default-keychain", "-d", "user", "-s", state.path)
        outcome = self.runner.run(args, "Failed to set default keychain")
        if not outcome.ok:
            return StepResult.failed("set_default_keychain", outcome.error)

        return self._unlock(state)

    def _unlock(self, state: KeychainRuntimeState) -> StepResult:
        args = self._security("unlock-keychain", "-p").add_masked(state.password).add(state.path)
        outcome = self.runner.run(args, "Failed to unlock keychain")
        if not outcome.ok:
            return StepResult.failed("unlock_keychain", outcome.error)
        advance(state, KeychainState.UNLOCKED)
        return StepResult.ok("unlock_keychain", f"Keychain {state.path} unlocked")

    def _import_intermediate_certificate(self, state: KeychainRuntimeState) -> None:
        """Best-effort import of the Apple intermediate CA from the node's home."""
        if not self.intermediate_certificate or self.filesystem is None:
            return
        try:
            cert = Path(self.filesystem.home_directory()) / self.intermediate_certificate
            present = self.filesystem.exists(cert)
        except OSError as e:
            logger.warning(f"Could not look for the intermediate certificate: {e}")
            return
        if not present:
            logger.debug(f"No intermediate certificate at {cert}")
            return

        outcome = self.runner.run(self._security("import", str(cert), "-k", state.path))
        if outcome.output:
            logger.info(outcome.output.rstrip())
