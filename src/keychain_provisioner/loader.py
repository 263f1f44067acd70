"""
Developer profile loader.

Installs a developer profile on the build node and unlocks its keychain so
that a later signing step can use the identities without a prompt:

    resolve -> select strategy -> keychain -> extract -> import
            -> (ephemeral: partition list, default keychain) -> profiles

Each step returns a StepResult and the loader stops at the first failure.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from .config import ProvisionerConfig
from .errors import ConfigurationError, ProvisioningCancelled, ProvisioningError
from .execution.arguments import SecretMasker
from .execution.executor import CommandExecutor, SubprocessExecutor
from .execution.expansion import VariableExpander
from .execution.filesystem import Filesystem, LocalFilesystem
from .execution.runner import CommandRunner
from .keychain.importer import IdentityImporter
from .keychain.lifecycle import KeychainLifecycle
from .keychain.models import (
    KeychainOrigin,
    KeychainRecord,
    KeychainRuntimeState,
    ProvisioningRequest,
    StepResult,
    ephemeral_keychain_path,
)
from .keychain.profiles import ProvisioningProfileInstaller
from .keychain.resolver import CredentialResolver
from .keychain.search_path import SearchPathRestorer
from .keychain.strategy import detect_os_version, select_strategy
from .keychain.workdir import SecretWorkDir
from .security.credential_store import generate_keychain_password
from .security.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    """Outcome of a provisioning run.

    Attributes:
        success: Whether every step succeeded
        message: Human-readable status message
        state: Runtime state of the keychain (None if resolution failed)
        steps: Results of the steps that ran, in order
        error: The failure that stopped the run
    """
    success: bool
    message: str
    state: Optional[KeychainRuntimeState] = None
    steps: list[StepResult] = field(default_factory=list)
    error: Optional[ProvisioningError] = None

    def raise_for_error(self) -> None:
        """Raise the run's error, if there was one."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (never includes passwords)."""
        result = {
            "success": self.success,
            "message": self.message,
            "keychain": self.state.to_dict() if self.state else None,
            "steps": [step.to_dict() for step in self.steps],
        }
        if self.error:
            result["error"] = self.error.to_dict()
        return result


class DeveloperProfileLoader:
    """Prepares a keychain with a developer profile's signing identities."""

    def __init__(
        self,
        config: ProvisionerConfig,
        vault: CredentialVault,
        executor: Optional[CommandExecutor] = None,
        filesystem: Optional[Filesystem] = None,
        expander: Optional[VariableExpander] = None,
        password_factory: Callable[[], str] = generate_keychain_password,
    ):
        """Initialize the loader.

        Args:
            config: Provisioner configuration
            vault: Source of developer profiles and keychain credentials
            executor: Command executor (local subprocess by default)
            filesystem: Node filesystem (local by default)
            expander: Build variable expander (process environment by default)
            password_factory: Generates ephemeral keychain passwords
        """
        self.config = config
        self.vault = vault
        self.executor = executor or SubprocessExecutor()
        self.filesystem = filesystem or LocalFilesystem()
        self.expander = expander or VariableExpander()
        self.password_factory = password_factory
        self.resolver = CredentialResolver(config, vault, self.expander)

    def perform(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Provision the keychain for one build.

        On the existing-keychain path the host search list and default
        keychain stay changed after a successful run; call cleanup() once
        signing is done. Any other outcome, including an unexpected
        exception, puts them back before returning. The extracted secrets
        are always removed.

        Raises:
            ProvisioningCancelled: If the build is interrupted
        """
        steps: list[StepResult] = []

        try:
            bundle = self.resolver.resolve_bundle(request.profile_id)
            keychain = self.resolver.resolve_keychain(request)
            state = self._initial_state(request, keychain)
        except ConfigurationError as e:
            return self._finish(steps, StepResult.failed("resolve", e), None)
        steps.append(StepResult.ok("resolve", f"Using developer profile {bundle.id}"))

        masker = SecretMasker([state.password, bundle.password])
        runner = CommandRunner(self.executor, masker, working_dir=request.workspace)
        restorer = SearchPathRestorer(runner, self.config.security_tool)
        lifecycle = KeychainLifecycle(
            runner,
            self.config.security_tool,
            self.filesystem,
            self.config.intermediate_certificate,
        )
        importer = IdentityImporter(runner, self.config.security_tool, self.config.signing_tools)
        installer = ProvisioningProfileInstaller(self.filesystem, self.config.profiles_dir, masker)

        logger.info(f"Provisioning {state.origin.value} keychain {state.path}")
        restore_on_failure = False
        succeeded = False
        try:
            step = self._select_strategy(runner, state)
            if not step.success:
                return self._finish(steps, step, state)
            steps.append(step)

            if state.origin == KeychainOrigin.EPHEMERAL:
                step = lifecycle.create_ephemeral(state)
            else:
                restore_on_failure = True
                step = lifecycle.open_existing(state, restorer)
            if not step.success:
                # open_existing puts the host settings back itself
                restore_on_failure = False
                return self._finish(steps, step, state)
            steps.append(step)

            with SecretWorkDir(
                self.filesystem, request.workspace, state.password, self.config.secrets_dir, masker,
            ) as workdir:
                pipeline = [
                    lambda: workdir.populate(bundle.archive),
                    lambda: importer.import_identities(state, bundle, workdir),
                ]
                if state.origin == KeychainOrigin.EPHEMERAL:
                    pipeline.append(lambda: lifecycle.finish_ephemeral(state))
                pipeline.append(lambda: installer.install(workdir))

                for run_step in pipeline:
                    step = run_step()
                    if not step.success:
                        return self._finish(steps, step, state)
                    steps.append(step)
            succeeded = True

        except ProvisioningCancelled:
            logger.warning("Provisioning interrupted")
            raise
        finally:
            if restore_on_failure and not succeeded and state.snapshot is not None:
                restorer.restore(state)

        return self._finish(steps, None, state)

    def cleanup(self, state: Optional[KeychainRuntimeState]) -> bool:
        """Put back host keychain settings changed for an existing keychain.

        Returns:
            True if nothing needed restoring or everything was restored
        """
        if state is None or state.origin != KeychainOrigin.EXISTING:
            return True
        runner = CommandRunner(self.executor, SecretMasker([state.password]))
        return SearchPathRestorer(runner, self.config.security_tool).restore(state)

    @contextmanager
    def provisioned(self, request: ProvisioningRequest) -> Iterator[ProvisioningResult]:
        """Provision for the duration of a with-block, then clean up.

        Raises:
            ProvisioningError: If provisioning fails
        """
        result = self.perform(request)
        result.raise_for_error()
        try:
            yield result
        finally:
            self.cleanup(result.state)

    def _initial_state(
        self,
        request: ProvisioningRequest,
        keychain: Optional[KeychainRecord],
    ) -> KeychainRuntimeState:
        if keychain is not None:
            return KeychainRuntimeState(
                path=keychain.path,
                password=keychain.password,
                origin=KeychainOrigin.EXISTING,
            )

        if not request.job_full_name:
            raise ConfigurationError("A job name is required to name the temporary keychain")
        password = self.expander.expand(request.password_for_debug) or self.password_factory()
        return KeychainRuntimeState(
            path=ephemeral_keychain_path(request.job_full_name),
            password=password,
            origin=KeychainOrigin.EPHEMERAL,
        )

    def _select_strategy(self, runner: CommandRunner, state: KeychainRuntimeState) -> StepResult:
        try:
            version = self.config.os_version or detect_os_version(runner)
        except ProvisioningError as e:
            return StepResult.failed("select_strategy", e)

        state.strategy = select_strategy(version, self.config.partition_list_min_version)
        logger.info(f"OS version {version}: granting key access with {state.strategy.name}")
        return StepResult.ok(
            "select_strategy",
            f"Using {state.strategy.name} key access",
            os_version=version,
            strategy=state.strategy.name,
        )

    @staticmethod
    def _finish(
        steps: list[StepResult],
        failure: Optional[StepResult],
        state: Optional[KeychainRuntimeState],
    ) -> ProvisioningResult:
        if failure is None:
            logger.info("Developer profile installed")
            return ProvisioningResult(
                success=True,
                message="Developer profile installed",
                state=state,
                steps=steps,
            )

        steps.append(failure)
        logger.error(f"Provisioning failed at {failure.step}: {failure.message}")
        return ProvisioningResult(
            success=False,
            message=failure.message,
            state=state,
            steps=steps,
            error=failure.error,
        )
