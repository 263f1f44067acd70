"""Mock implementations for keychain-provisioner tests.

Provides mock objects for:
- The command executor (scripted `security` / `sw_vers` responses)
- The node filesystem (redirected home directory)
"""

from .fake_executor import FakeCall, FakeExecutor, HomeDirFilesystem, make_archive

__all__ = ["FakeCall", "FakeExecutor", "HomeDirFilesystem", "make_archive"]
