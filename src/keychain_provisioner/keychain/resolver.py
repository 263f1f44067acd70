"""
Resolution of developer profile and keychain references.

Keychain sources are tried in order: legacy configured name, keychain
credential id, then an inline path and password.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ..errors import ConfigurationError
from ..execution.expansion import VariableExpander
from ..security.credential_store import decode_archive
from ..security.vault import CredentialKind, CredentialVault
from .models import KeychainRecord, ProvisioningRequest, SigningIdentityBundle

if TYPE_CHECKING:
    from ..config import ProvisionerConfig

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Turns the ids and names in a request into concrete records."""

    def __init__(
        self,
        config: "ProvisionerConfig",
        vault: CredentialVault,
        expander: Optional[VariableExpander] = None,
    ):
        self.config = config
        self.vault = vault
        self.expander = expander or VariableExpander({})

    def resolve_bundle(self, profile_id: Optional[str]) -> SigningIdentityBundle:
        """Look up the developer profile to install.

        Raises:
            ConfigurationError: If the id is empty or names no usable profile
        """
        profile_id = self.expander.expand(profile_id)
        if not profile_id:
            raise ConfigurationError(
                "No developer profile selected",
                hint="Set the developer profile id for this build step.",
            )

        record = self.vault.lookup_by_id(CredentialKind.DEVELOPER_PROFILE, profile_id)
        if record is None:
            raise ConfigurationError(
                f"No developer profile configured with id '{profile_id}'",
                hint="Add the developer profile to the credential store first.",
            )

        archive_text = record.data.get("archive")
        if not archive_text:
            raise ConfigurationError(f"Developer profile '{profile_id}' has no archive")
        try:
            archive = decode_archive(archive_text)
        except ValueError as e:
            raise ConfigurationError(f"Developer profile '{profile_id}' is unreadable: {e}")

        return SigningIdentityBundle(
            id=record.id,
            description=record.description,
            archive=archive,
            password=record.data.get("password") or "",
        )

    def resolve_keychain(self, request: ProvisioningRequest) -> Optional[KeychainRecord]:
        """Find the existing keychain a request refers to.

        Returns:
            The keychain record, or None when an ephemeral keychain is wanted

        Raises:
            ConfigurationError: If no source resolves, or the inline source
                has only one of path and password
        """
        if not request.import_into_existing_keychain:
            return None

        name = self.expander.expand(request.keychain_name)
        if name:
            logger.warning(
                "Looking up keychains by name is deprecated; "
                "store the keychain as a credential and use its id instead"
            )
            entry = self.config.find_keychain(name)
            if entry is not None:
                return KeychainRecord(
                    path=self.expander.expand(entry.path),
                    password=self.expander.expand(entry.password),
                    source="name",
                )
            logger.warning(f"No configured keychain named '{name}'")

        keychain_id = self.expander.expand(request.keychain_id)
        if keychain_id:
            record = self.vault.lookup_by_id(CredentialKind.KEYCHAIN, keychain_id)
            if record is not None and record.data.get("path"):
                return KeychainRecord(
                    path=self.expander.expand(record.data["path"]),
                    password=self.expander.expand(record.data.get("password") or ""),
                    source="id",
                )
            logger.warning(f"No keychain credential with id '{keychain_id}'")

        path = self.expander.expand(request.keychain_path) or ""
        password = self.expander.expand(request.keychain_password) or ""
        if path and password:
            return KeychainRecord(path=path, password=password, source="inline")
        if path or password:
            raise ConfigurationError(
                "Keychain path or password is blank",
                hint="Both the keychain path and its password are required.",
            )
        raise ConfigurationError(
            "No keychain information configured",
            hint="Give a keychain credential id, a configured keychain name, "
                 "or a keychain path and password.",
        )
