"""
Credential lookup interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class CredentialKind(Enum):
    """Kinds of record the vault holds."""
    DEVELOPER_PROFILE = "developer_profile"
    KEYCHAIN = "keychain"


@dataclass
class StoredCredential:
    """A stored credential with metadata.

    Attributes:
        id: Unique credential identifier
        kind: What the record describes
        description: Human-readable description
        created_at: When the credential was created
        data: The secret payload (encrypted at rest)
    """
    id: str
    kind: CredentialKind
    description: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary (excludes sensitive data)."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "description": self.description,
            "created_at": self.created_at,
        }


class CredentialVault(ABC):
    """Anything that can hand out credential records by id."""

    @abstractmethod
    def lookup_by_id(self, kind: CredentialKind, credential_id: str) -> Optional[StoredCredential]:
        """Find a credential of the given kind.

        Returns:
            The credential, or None if there is no such record
        """
        pass


class InMemoryVault(CredentialVault):
    """Vault backed by a dictionary, for embedding and tests."""

    def __init__(self, credentials: Optional[list[StoredCredential]] = None):
        self._records: dict[tuple[CredentialKind, str], StoredCredential] = {}
        for credential in credentials or []:
            self.add(credential)

    def add(self, credential: StoredCredential) -> str:
        self._records[(credential.kind, credential.id)] = credential
        return credential.id

    def lookup_by_id(self, kind: CredentialKind, credential_id: str) -> Optional[StoredCredential]:
        if not credential_id:
            return None
        return self._records.get((kind, credential_id))
