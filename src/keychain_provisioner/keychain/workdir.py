"""
Permission-restricted directory for extracted developer profile files.
"""

import logging
import zipfile
from pathlib import Path
from typing import Optional

from ..errors import ResourceError
from ..execution.arguments import SecretMasker
from ..execution.filesystem import Filesystem
from .models import StepResult

logger = logging.getLogger(__name__)

SECRET_DIR_MODE = 0o700


class SecretWorkDir:
    """Extraction directory under the workspace, named after the run's password.

    Use as a context manager so the extracted keys are removed on every
    exit path.
    """

    def __init__(
        self,
        filesystem: Filesystem,
        workspace: Path,
        key: str,
        secrets_dir: str = "jenkins/developer-profiles",
        masker: Optional[SecretMasker] = None,
    ):
        self.filesystem = filesystem
        self.key = key
        self.root = Path(workspace) / secrets_dir
        self.path = self.root / key
        self.masker = masker or SecretMasker([key])
        self.masker.register(key)

    def is_contained(self) -> bool:
        """Whether the key names exactly one directory directly under the root."""
        key = self.key
        if not key or key in (".", "..") or Path(key).name != key:
            return False
        try:
            return self.path.resolve().parent == self.root.resolve()
        except OSError:
            return False

    def populate(self, archive: bytes) -> StepResult:
        """Create the directory and extract the developer profile archive."""
        if not self.is_contained():
            return StepResult.failed(
                "extract",
                ResourceError(
                    self.masker.mask(f"Secret directory name is not a single directory under {self.root}"),
                    hint="The keychain password names the extraction directory; "
                         "it cannot contain path separators or be '.' or '..'.",
                ),
            )
        try:
            self.filesystem.mkdirs(self.root)
            self.filesystem.chmod(self.root, SECRET_DIR_MODE)
            self.filesystem.mkdirs(self.path)
            self.filesystem.chmod(self.path, SECRET_DIR_MODE)
            files = self.filesystem.extract_zip(archive, self.path)
        except (OSError, zipfile.BadZipFile) as e:
            return StepResult.failed(
                "extract",
                ResourceError(self.masker.mask(f"Failed to extract developer profile: {e}")),
            )

        logger.info(f"Extracted {len(files)} file(s) from the developer profile")
        return StepResult.ok("extract", "Developer profile extracted", files=len(files))

    def list(self, pattern: str) -> list[Path]:
        """Recursively list extracted files matching a name pattern."""
        return self.filesystem.glob(self.path, pattern)

    def remove(self) -> bool:
        """Delete the directory. Failures are logged, not raised.

        Nothing is deleted unless the directory sits directly under the root.
        """
        if not self.is_contained():
            logger.warning(self.masker.mask(f"Not removing secret directory outside {self.root}"))
            return False
        try:
            self.filesystem.remove_tree(self.path)
        except OSError as e:
            logger.warning(self.masker.mask(f"Failed to remove secret directory: {e}"))
            return False
        return True

    def __enter__(self) -> "SecretWorkDir":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()
