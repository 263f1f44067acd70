"""Shared pytest fixtures for keychain-provisioner tests.

Every fixture works against temporary directories and the scripted
FakeExecutor; nothing touches a real keychain.
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from keychain_provisioner.config import ProvisionerConfig
from keychain_provisioner.execution.arguments import SecretMasker
from keychain_provisioner.execution.expansion import VariableExpander
from keychain_provisioner.execution.runner import CommandRunner
from keychain_provisioner.keychain.models import (
    KeychainOrigin,
    KeychainRuntimeState,
    ProvisioningRequest,
)
from keychain_provisioner.loader import DeveloperProfileLoader
from keychain_provisioner.security.credential_store import encode_archive
from keychain_provisioner.security.vault import CredentialKind, InMemoryVault, StoredCredential
from tests.mocks import FakeExecutor, HomeDirFilesystem, make_archive

PROFILE_ID = "dev-profile"
IDENTITY_PASSWORD = "p12-Secret-Pass"
KEYCHAIN_ID = "ci-keychain"
KEYCHAIN_PATH = "/Users/ci/Library/Keychains/ci.keychain-db"
KEYCHAIN_PASSWORD = "keychain-Secret-Pass"
DEBUG_PASSWORD = "debug-Keychain-Pass"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Provide an isolated build workspace."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Provide an isolated home directory for the build node."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def filesystem(home: Path) -> HomeDirFilesystem:
    return HomeDirFilesystem(home)


@pytest.fixture
def executor() -> FakeExecutor:
    """Executor answering like a macOS 14 node with a login keychain."""
    return FakeExecutor(os_version="14.2")


@pytest.fixture
def runner(executor: FakeExecutor, workspace: Path) -> CommandRunner:
    return CommandRunner(executor, SecretMasker(), working_dir=workspace)


@pytest.fixture
def profile_archive() -> bytes:
    """A developer profile with one identity and one provisioning profile."""
    return make_archive({
        "identities/a.p12": b"p12-bytes",
        "profiles/b.mobileprovision": b"profile-bytes",
    })


@pytest.fixture
def vault(profile_archive: bytes) -> InMemoryVault:
    """Vault holding one developer profile and one keychain credential."""
    return InMemoryVault([
        StoredCredential(
            id=PROFILE_ID,
            kind=CredentialKind.DEVELOPER_PROFILE,
            description="CI developer profile",
            data={"archive": encode_archive(profile_archive), "password": IDENTITY_PASSWORD},
        ),
        StoredCredential(
            id=KEYCHAIN_ID,
            kind=CredentialKind.KEYCHAIN,
            description="CI keychain",
            data={"path": KEYCHAIN_PATH, "password": KEYCHAIN_PASSWORD},
        ),
    ])


@pytest.fixture
def config() -> ProvisionerConfig:
    return ProvisionerConfig()


@pytest.fixture
def loader(config, vault, executor, filesystem) -> DeveloperProfileLoader:
    return DeveloperProfileLoader(
        config,
        vault,
        executor=executor,
        filesystem=filesystem,
        expander=VariableExpander({"BRANCH": "main"}),
        password_factory=lambda: "generated-Keychain-Pass",
    )


@pytest.fixture
def ephemeral_request(workspace: Path) -> ProvisioningRequest:
    return ProvisioningRequest(
        profile_id=PROFILE_ID,
        job_full_name="ios/app/main",
        workspace=workspace,
    )


@pytest.fixture
def existing_request(workspace: Path) -> ProvisioningRequest:
    return ProvisioningRequest(
        profile_id=PROFILE_ID,
        job_full_name="ios/app/main",
        workspace=workspace,
        import_into_existing_keychain=True,
        keychain_id=KEYCHAIN_ID,
    )


@pytest.fixture
def ephemeral_state() -> KeychainRuntimeState:
    return KeychainRuntimeState(
        path="jenkins-ios-app",
        password=DEBUG_PASSWORD,
        origin=KeychainOrigin.EPHEMERAL,
    )


@pytest.fixture
def existing_state() -> KeychainRuntimeState:
    return KeychainRuntimeState(
        path=KEYCHAIN_PATH,
        password=KEYCHAIN_PASSWORD,
        origin=KeychainOrigin.EXISTING,
    )


# Autouse fixture for test isolation
@pytest.fixture(autouse=True)
def isolate_test_artifacts(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Ensure tests don't affect the real system.

    Redirects credential storage to a temporary directory and clears
    provisioner environment variables.
    """
    test_data_home = tmp_path / "data"
    test_data_home.mkdir()
    monkeypatch.setenv("XDG_DATA_HOME", str(test_data_home))
    if os.name == "nt":
        monkeypatch.setenv("LOCALAPPDATA", str(test_data_home))

    for var in list(os.environ):
        if var.startswith("KEYCHAIN_PROVISIONER_"):
            monkeypatch.delenv(var, raising=False)

    yield
