"""
Data model for keychain provisioning.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..errors import ProvisioningError
from .strategy import AccessStrategy

EPHEMERAL_PREFIX = "jenkins-"
PATH_SEPARATORS = ("/", "\\")


class KeychainOrigin(Enum):
    """Where the active keychain came from."""
    EPHEMERAL = "ephemeral"
    EXISTING = "existing"


class KeychainState(Enum):
    """Keychain lifecycle states, in traversal order."""
    ABSENT = "absent"
    CREATED = "created"
    UNLOCKED = "unlocked"
    SEARCH_PATH_SET = "search_path_set"
    PARTITION_CONFIGURED = "partition_configured"
    DEFAULT_SET = "default_set"


@dataclass(frozen=True)
class SigningIdentityBundle:
    """A developer profile: private keys and provisioning profiles.

    Attributes:
        id: Vault identifier
        description: Human-readable description
        archive: Zip archive with .p12 and .mobileprovision files
        password: Password protecting the .p12 files
    """
    id: str
    description: str
    archive: bytes = field(repr=False)
    password: str = field(repr=False)


@dataclass(frozen=True)
class KeychainRecord:
    """A resolved reference to an existing keychain.

    Attributes:
        path: Keychain file path
        password: Keychain password
        source: Which lookup produced it (name, id or inline)
    """
    path: str
    password: str = field(repr=False)
    source: str = "inline"


@dataclass(frozen=True)
class HostKeychainSnapshot:
    """Host-wide keychain settings captured before they are changed.

    Attributes:
        search_list: User keychain search list, in order
        default_keychain: User default keychain, None when unset
    """
    search_list: tuple[str, ...]
    default_keychain: Optional[str]


@dataclass
class KeychainRuntimeState:
    """Process-local state of the keychain in use for one run.

    Attributes:
        path: Active keychain path
        password: Active keychain password
        origin: Ephemeral or existing keychain
        state: Furthest lifecycle state reached
        strategy: Key access strategy chosen for this run
    """
    path: str
    password: str = field(repr=False)
    origin: KeychainOrigin
    state: KeychainState = KeychainState.ABSENT
    strategy: Optional[AccessStrategy] = None
    _snapshot: Optional[HostKeychainSnapshot] = field(default=None, init=False, repr=False)

    @property
    def snapshot(self) -> Optional[HostKeychainSnapshot]:
        return self._snapshot

    def record_snapshot(self, snapshot: HostKeychainSnapshot) -> None:
        """Store the host snapshot. It can only be recorded once.

        Raises:
            ValueError: If a snapshot was already recorded
        """
        if self._snapshot is not None:
            raise ValueError("Host keychain snapshot already captured for this run")
        self._snapshot = snapshot

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (never includes the password)."""
        result = {
            "path": self.path,
            "origin": self.origin.value,
            "state": self.state.value,
            "strategy": self.strategy.name if self.strategy else None,
        }
        if self._snapshot is not None:
            result["snapshot"] = {
                "search_list": list(self._snapshot.search_list),
                "default_keychain": self._snapshot.default_keychain,
            }
        return result


@dataclass
class ProvisioningRequest:
    """What a build asks the provisioner to do.

    Attributes:
        profile_id: Vault id of the developer profile
        job_full_name: Full name of the job, e.g. folder/project
        workspace: Build workspace directory
        import_into_existing_keychain: Use an existing keychain
        keychain_name: Legacy name of a configured keychain
        keychain_id: Vault id of a keychain record
        keychain_path: Inline keychain path
        keychain_password: Inline keychain password
        password_for_debug: Fixed password for the ephemeral keychain
    """
    profile_id: str
    job_full_name: str
    workspace: Path
    import_into_existing_keychain: bool = False
    keychain_name: Optional[str] = None
    keychain_id: Optional[str] = None
    keychain_path: Optional[str] = None
    keychain_password: Optional[str] = field(default=None, repr=False)
    password_for_debug: Optional[str] = field(default=None, repr=False)


@dataclass
class StepResult:
    """Result of one provisioning step.

    Attributes:
        step: Step name
        success: Whether the step succeeded
        message: Human-readable status message
        error: The failure, if any
        details: Additional step details
    """
    step: str
    success: bool
    message: str
    error: Optional[ProvisioningError] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, step: str, message: str, **details: Any) -> "StepResult":
        return cls(step=step, success=True, message=message, details=details)

    @classmethod
    def failed(cls, step: str, error: ProvisioningError) -> "StepResult":
        return cls(step=step, success=False, message=error.message, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "step": self.step,
            "success": self.success,
            "message": self.message,
            "details": self.details,
        }
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def ephemeral_keychain_path(job_full_name: str) -> str:
    """Keychain path used for a job's throwaway keychain."""
    name = job_full_name
    for separator in PATH_SEPARATORS:
        name = name.replace(separator, "-")
    return f"{EPHEMERAL_PREFIX}{name}"
