"""
Error taxonomy for keychain provisioning.

Every failure a provisioning step can produce is one of these types. Steps
hand them back inside a StepResult; only cancellation is raised.
"""

from typing import Any, Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures.

    Attributes:
        message: Human-readable description (already masked)
        hint: Optional actionable hint for the operator
    """

    kind = "provisioning_error"

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {"error": self.message, "type": self.kind}
        if self.hint:
            result["hint"] = self.hint
        return result


class ConfigurationError(ProvisioningError):
    """A credential or keychain reference cannot be resolved."""

    kind = "configuration_error"


class ExternalCommandError(ProvisioningError):
    """A security/import/signing command exited non-zero.

    Attributes:
        command: Command line with secret arguments masked
        exit_code: Process exit status
        output: Captured output with secrets masked
    """

    kind = "external_command_error"

    def __init__(
        self,
        message: str,
        command: str = "",
        exit_code: int = 1,
        output: str = "",
        hint: Optional[str] = None,
    ):
        super().__init__(message, hint)
        self.command = command
        self.exit_code = exit_code
        self.output = output

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({
            "command": self.command,
            "exit_code": self.exit_code,
            "output": self.output,
        })
        return result


class ResourceError(ProvisioningError):
    """A workspace or filesystem operation failed."""

    kind = "resource_error"


class ProvisioningCancelled(ProvisioningError):
    """The build was interrupted while a command was running."""

    kind = "cancelled"
