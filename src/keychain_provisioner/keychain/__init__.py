"""
Keychain provisioning components.

Resolution, secret extraction, the keychain lifecycle, identity import,
provisioning profile installation and host search list restoration.
"""

from .models import (
    HostKeychainSnapshot,
    KeychainOrigin,
    KeychainRecord,
    KeychainRuntimeState,
    KeychainState,
    ProvisioningRequest,
    SigningIdentityBundle,
    StepResult,
    ephemeral_keychain_path,
)
from .strategy import (
    AccessStrategy,
    PartitionListStrategy,
    TrustAnchorStrategy,
    compare_versions,
    select_strategy,
)

__all__ = [
    "HostKeychainSnapshot",
    "KeychainOrigin",
    "KeychainRecord",
    "KeychainRuntimeState",
    "KeychainState",
    "ProvisioningRequest",
    "SigningIdentityBundle",
    "StepResult",
    "ephemeral_keychain_path",
    "AccessStrategy",
    "PartitionListStrategy",
    "TrustAnchorStrategy",
    "compare_versions",
    "select_strategy",
]
