"""
Configuration for the keychain provisioner.

Settings come from a YAML file or from KEYCHAIN_PROVISIONER_* environment
variables. The YAML file is also where the legacy list of named keychains
lives.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .keychain.strategy import parse_version

ENV_PREFIX = "KEYCHAIN_PROVISIONER_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG"

DEFAULT_SIGNING_TOOLS = ("/usr/bin/codesign", "/usr/bin/productsign")


@dataclass
class KeychainEntry:
    """A named keychain from the global configuration (legacy lookup).

    Attributes:
        name: Name used by jobs to refer to this keychain
        path: Keychain file path (may contain variable references)
        password: Keychain password (may contain variable references)
        timeout: Lock timeout in seconds, kept for compatibility
        in_search_path: Whether the keychain is expected in the search list
    """
    name: str
    path: str
    password: str = ""
    timeout: Optional[str] = None
    in_search_path: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeychainEntry":
        return cls(
            name=str(data.get("name", "")),
            path=str(data.get("path", "")),
            password=str(data.get("password", "") or ""),
            timeout=data.get("timeout"),
            in_search_path=bool(data.get("in_search_path", False)),
        )


@dataclass
class ProvisionerConfig:
    """Runtime configuration.

    Attributes:
        keychains: Named keychains for the legacy name-based lookup
        security_tool: Path or name of the `security` binary
        signing_tools: Tools granted non-interactive key access
        partition_list_min_version: First OS version using partition lists
        os_version: Host OS version override (detected when None)
        secrets_dir: Extraction root, relative to the build workspace
        profiles_dir: Provisioning profile directory, relative to home
        intermediate_certificate: Intermediate CA file, relative to home
        credential_store_path: Encrypted credential store file
        key_file: Key file for the credential store
    """
    keychains: list[KeychainEntry] = field(default_factory=list)
    security_tool: str = "security"
    signing_tools: tuple[str, ...] = DEFAULT_SIGNING_TOOLS
    partition_list_min_version: str = "10.12"
    os_version: Optional[str] = None
    secrets_dir: str = "jenkins/developer-profiles"
    profiles_dir: str = "Library/MobileDevice/Provisioning Profiles"
    intermediate_certificate: Optional[str] = "AppleWWDRCA.cer"
    credential_store_path: Optional[Path] = None
    key_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvisionerConfig":
        """Build a configuration from a parsed mapping."""
        config = cls()
        config.keychains = [KeychainEntry.from_dict(k) for k in data.get("keychains") or []]
        for key in (
            "security_tool",
            "partition_list_min_version",
            "os_version",
            "secrets_dir",
            "profiles_dir",
            "intermediate_certificate",
        ):
            if key in data:
                value = data[key]
                setattr(config, key, None if value is None else str(value))
        if data.get("signing_tools"):
            config.signing_tools = tuple(str(t) for t in data["signing_tools"])
        if data.get("credential_store_path"):
            config.credential_store_path = Path(data["credential_store_path"]).expanduser()
        if data.get("key_file"):
            config.key_file = Path(data["key_file"]).expanduser()
        return config

    @classmethod
    def from_config_file(cls, config_path: str) -> "ProvisionerConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            ProvisionerConfig instance

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "ProvisionerConfig":
        """Load configuration from environment variables."""
        config = cls()
        config.security_tool = os.environ.get(f"{ENV_PREFIX}SECURITY_TOOL", config.security_tool)
        config.partition_list_min_version = os.environ.get(
            f"{ENV_PREFIX}PARTITION_LIST_MIN_VERSION", config.partition_list_min_version
        )
        config.os_version = os.environ.get(f"{ENV_PREFIX}OS_VERSION") or None

        tools = os.environ.get(f"{ENV_PREFIX}SIGNING_TOOLS")
        if tools:
            config.signing_tools = tuple(t for t in tools.split(os.pathsep) if t)

        store = os.environ.get(f"{ENV_PREFIX}CREDENTIAL_STORE")
        if store:
            config.credential_store_path = Path(store).expanduser()
        key_file = os.environ.get(f"{ENV_PREFIX}KEY_FILE")
        if key_file:
            config.key_file = Path(key_file).expanduser()
        return config

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If required settings are missing or contradictory
        """
        if not self.security_tool:
            raise ValueError("security tool path is required")
        if not self.signing_tools:
            raise ValueError("At least one signing tool is required")
        try:
            parse_version(self.partition_list_min_version)
        except ValueError:
            raise ValueError(
                f"Invalid partition list threshold version: '{self.partition_list_min_version}'. "
                "Hint: use dot-separated numbers such as 10.12"
            )
        if self.os_version:
            try:
                parse_version(self.os_version)
            except ValueError:
                raise ValueError(f"Invalid OS version override: '{self.os_version}'")

        seen = set()
        for entry in self.keychains:
            if not entry.name:
                raise ValueError("Named keychain entries require a name")
            if entry.name in seen:
                raise ValueError(f"Duplicate keychain name in configuration: '{entry.name}'")
            seen.add(entry.name)

    def find_keychain(self, name: str) -> Optional[KeychainEntry]:
        """Return the configured keychain whose name matches exactly."""
        if not name:
            return None
        for entry in self.keychains:
            if entry.name == name:
                return entry
        return None


def load_config(config_path: Optional[str] = None) -> ProvisionerConfig:
    """Load configuration from a file or the environment.

    Priority:
    1. Explicit config_path argument
    2. KEYCHAIN_PROVISIONER_CONFIG environment variable
    3. Individual KEYCHAIN_PROVISIONER_* environment variables

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        ProvisionerConfig instance
    """
    path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if path:
        config = ProvisionerConfig.from_config_file(path)
    else:
        config = ProvisionerConfig.from_env()
    config.validate()
    return config
