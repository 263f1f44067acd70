"""
Encrypted credential storage for developer profiles and keychain passwords.

Uses AES-256-GCM for encryption with a machine-specific key file.
"""

import base64
import binascii
import json
import logging
import os
import secrets
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .vault import CredentialKind, CredentialVault, StoredCredential

logger = logging.getLogger(__name__)


class CredentialStore(CredentialVault):
    """AES-256-GCM encrypted credential storage.

    Credentials are stored in a JSON file encrypted with a key kept in a
    separate key file next to it.
    """

    NONCE_SIZE = 12
    KEY_SIZE = 32  # 256 bits

    def __init__(self, store_path: Optional[Path] = None, key_file: Optional[Path] = None):
        """Initialize the credential store.

        Args:
            store_path: Path to the encrypted store file
            key_file: Path to the key file (created if not exists)
        """
        self.store_path = store_path or self._default_store_path()
        self.key_file = key_file or self._default_key_file()
        self._encryption_key: Optional[bytes] = None

    @staticmethod
    def _data_home() -> Path:
        if os.name == "nt":
            base = Path(os.environ.get("LOCALAPPDATA", "~"))
        else:
            base = Path(os.environ.get("XDG_DATA_HOME", "~/.local/share"))
        return base.expanduser() / "keychain-provisioner"

    @classmethod
    def _default_store_path(cls) -> Path:
        """Get the default credential store path."""
        return cls._data_home() / "credentials.enc"

    @classmethod
    def _default_key_file(cls) -> Path:
        """Get the default key file path."""
        return cls._data_home() / ".keyfile"

    def _ensure_key(self) -> bytes:
        """Ensure the encryption key exists and return it."""
        if self._encryption_key:
            return self._encryption_key

        self.key_file.parent.mkdir(parents=True, exist_ok=True)

        if self.key_file.exists():
            self._encryption_key = self.key_file.read_bytes()
        else:
            self._encryption_key = secrets.token_bytes(self.KEY_SIZE)
            self.key_file.write_bytes(self._encryption_key)
            if os.name != "nt":
                os.chmod(self.key_file, 0o600)

        return self._encryption_key

    def _encrypt(self, data: bytes) -> bytes:
        """Encrypt data using AES-256-GCM."""
        key = self._ensure_key()
        nonce = secrets.token_bytes(self.NONCE_SIZE)
        return nonce + AESGCM(key).encrypt(nonce, data, None)

    def _decrypt(self, data: bytes) -> bytes:
        """Decrypt data using AES-256-GCM."""
        key = self._ensure_key()
        nonce = data[:self.NONCE_SIZE]
        ciphertext = data[self.NONCE_SIZE:]
        return AESGCM(key).decrypt(nonce, ciphertext, None)

    @staticmethod
    def _record_key(kind: CredentialKind, credential_id: str) -> str:
        return f"{kind.value}/{credential_id}"

    def _load_store(self) -> dict[str, dict]:
        """Load and decrypt the credential store."""
        if not self.store_path.exists():
            return {}

        encrypted = self.store_path.read_bytes()
        if not encrypted:
            return {}

        try:
            decrypted = self._decrypt(encrypted)
            return json.loads(decrypted.decode())
        except (InvalidTag, ValueError) as e:
            # Store may be corrupted or key changed
            logger.warning(f"Could not read credential store {self.store_path}: {e!r}")
            return {}

    def _save_store(self, store: dict[str, dict]) -> None:
        """Encrypt and save the credential store."""
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        encrypted = self._encrypt(json.dumps(store).encode())
        self.store_path.write_bytes(encrypted)
        if os.name != "nt":
            os.chmod(self.store_path, 0o600)

    @staticmethod
    def _to_record(credential: StoredCredential) -> dict:
        return {
            "id": credential.id,
            "kind": credential.kind.value,
            "description": credential.description,
            "created_at": credential.created_at,
            "data": credential.data,
        }

    @staticmethod
    def _from_record(record: dict) -> StoredCredential:
        return StoredCredential(
            id=record["id"],
            kind=CredentialKind(record["kind"]),
            description=record.get("description", ""),
            created_at=record.get("created_at", ""),
            data=record.get("data", {}),
        )

    def store(self, credential: StoredCredential) -> str:
        """Store a credential, replacing any record with the same kind and id.

        Returns:
            The credential ID
        """
        store = self._load_store()
        store[self._record_key(credential.kind, credential.id)] = self._to_record(credential)
        self._save_store(store)
        return credential.id

    def lookup_by_id(self, kind: CredentialKind, credential_id: str) -> Optional[StoredCredential]:
        if not credential_id:
            return None
        record = self._load_store().get(self._record_key(kind, credential_id))
        if not record:
            return None
        return self._from_record(record)

    def delete(self, kind: CredentialKind, credential_id: str) -> bool:
        """Delete a credential.

        Returns:
            True if deleted, False if not found
        """
        store = self._load_store()
        key = self._record_key(kind, credential_id)
        if key not in store:
            return False
        del store[key]
        self._save_store(store)
        return True

    def list_credentials(self, kind: Optional[CredentialKind] = None) -> list[StoredCredential]:
        """List stored credentials with their secret payload redacted."""
        credentials = []
        for record in self._load_store().values():
            cred = self._from_record(record)
            if kind and cred.kind != kind:
                continue
            cred.data = {"_redacted": True}
            credentials.append(cred)
        return sorted(credentials, key=lambda c: (c.kind.value, c.id))


def generate_credential_id() -> str:
    """Generate a unique credential ID."""
    return f"cred_{secrets.token_hex(8)}"


def generate_keychain_password() -> str:
    """Generate a password for an ephemeral keychain.

    URL-safe characters only, because the password also names the secret
    extraction directory.
    """
    return secrets.token_urlsafe(32)


def encode_archive(data: bytes) -> str:
    """Encode developer profile archive bytes for JSON storage."""
    return base64.b64encode(data).decode("ascii")


def decode_archive(text: str) -> bytes:
    """Decode archive bytes stored by encode_archive.

    Raises:
        ValueError: If the text is not valid base64
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Developer profile archive is not valid base64: {e}")
