"""
Import of private key containers into the active keychain.
"""

import logging
from typing import Sequence

from ..errors import ResourceError
from ..execution.arguments import ArgumentList
from ..execution.runner import CommandRunner
from .models import KeychainOrigin, KeychainRuntimeState, SigningIdentityBundle, StepResult
from .workdir import SecretWorkDir

logger = logging.getLogger(__name__)

IDENTITY_PATTERN = "*.p12"


class IdentityImporter:
    """Runs `security import` for every .p12 file in the developer profile."""

    def __init__(
        self,
        runner: CommandRunner,
        security_tool: str = "security",
        signing_tools: Sequence[str] = ("/usr/bin/codesign", "/usr/bin/productsign"),
    ):
        self.runner = runner
        self.security_tool = security_tool
        self.signing_tools = tuple(signing_tools)

    def grants_at_import(self, state: KeychainRuntimeState) -> bool:
        """Whether trusted applications must be named on the import command.

        Existing keychains never get a partition list from this tool, so
        their keys always get trusted applications at import.
        """
        if state.origin == KeychainOrigin.EXISTING or state.strategy is None:
            return True
        return state.strategy.grants_at_import

    def import_identities(
        self,
        state: KeychainRuntimeState,
        bundle: SigningIdentityBundle,
        workdir: SecretWorkDir,
    ) -> StepResult:
        """Import every identity file, stopping at the first failure.

        Identities imported before a failure stay in the keychain.
        """
        grant = self.grants_at_import(state)
        imported = []

        try:
            identities = workdir.list(IDENTITY_PATTERN)
        except OSError as e:
            return StepResult.failed(
                "import_identities",
                ResourceError(self.runner.mask(f"Failed to list identities in the developer profile: {e}")),
            )
        if not identities:
            logger.warning("Developer profile contains no .p12 identities")

        for identity in identities:
            args = ArgumentList(self.security_tool, "import", identity, "-k", state.path, "-P")
            args.add_masked(bundle.password)
            if grant:
                for tool in self.signing_tools:
                    args.add("-T", tool)

            outcome = self.runner.run(args, f"Failed to import identity {identity.name}")
            if not outcome.ok:
                result = StepResult.failed("import_identities", outcome.error)
                result.details["imported"] = imported
                return result
            imported.append(identity.name)

        # Shown for troubleshooting signing problems later in the build
        outcome = self.runner.run(
            ArgumentList(self.security_tool, "show-keychain-info", state.path),
            "Failed to show keychain info",
        )
        if not outcome.ok:
            result = StepResult.failed("import_identities", outcome.error)
            result.details["imported"] = imported
            return result
        if outcome.output:
            logger.info(outcome.output.rstrip())

        return StepResult.ok(
            "import_identities",
            f"Imported {len(imported)} identity file(s)",
            imported=imported,
        )
