"""
Credential vault backends.

Provides the lookup interface used by the resolver, an in-memory backend and
an encrypted on-disk credential store.
"""

from .vault import CredentialKind, CredentialVault, InMemoryVault, StoredCredential
from .credential_store import (
    CredentialStore,
    generate_credential_id,
    generate_keychain_password,
    encode_archive,
    decode_archive,
)

__all__ = [
    "CredentialKind",
    "CredentialVault",
    "InMemoryVault",
    "StoredCredential",
    "CredentialStore",
    "generate_credential_id",
    "generate_keychain_password",
    "encode_archive",
    "decode_archive",
]
