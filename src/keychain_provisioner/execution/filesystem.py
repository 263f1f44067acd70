"""
Filesystem access on the build node.

Covers the build workspace (secret extraction) and the node user's home
directory (provisioning profiles).
"""

import io
import os
import shutil
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path


class Filesystem(ABC):
    """File operations against the node running the build.

    All methods raise OSError (or zipfile.BadZipFile for archives) on
    failure; callers translate those into ResourceError.
    """

    @abstractmethod
    def home_directory(self) -> Path:
        """Return the home directory of the user running the build."""
        pass

    @abstractmethod
    def mkdirs(self, path: Path) -> None:
        pass

    @abstractmethod
    def chmod(self, path: Path, mode: int) -> None:
        pass

    @abstractmethod
    def exists(self, path: Path) -> bool:
        pass

    @abstractmethod
    def glob(self, root: Path, pattern: str) -> list[Path]:
        """Recursively list files under root matching a name pattern."""
        pass

    @abstractmethod
    def extract_zip(self, data: bytes, dest: Path) -> list[Path]:
        """Extract a zip archive held in memory into dest."""
        pass

    @abstractmethod
    def copy(self, src: Path, dest: Path) -> None:
        """Copy one file, replacing dest if it exists."""
        pass

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        pass


class LocalFilesystem(Filesystem):
    """Filesystem of the machine this process runs on."""

    def home_directory(self) -> Path:
        return Path.home()

    def mkdirs(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def chmod(self, path: Path, mode: int) -> None:
        if os.name != "nt":
            os.chmod(path, mode)

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def glob(self, root: Path, pattern: str) -> list[Path]:
        root = Path(root)
        if not root.exists():
            return []
        return sorted(p for p in root.rglob(pattern) if p.is_file())

    def extract_zip(self, data: bytes, dest: Path) -> list[Path]:
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        base = dest.resolve()
        extracted = []

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for member in archive.infolist():
                target = (dest / member.filename).resolve()
                if target != base and base not in target.parents:
                    raise OSError(f"Archive member escapes extraction directory: {member.filename}")
                if member.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                extracted.append(target)

        return extracted

    def copy(self, src: Path, dest: Path) -> None:
        shutil.copyfile(src, dest)

    def remove_tree(self, path: Path) -> None:
        if Path(path).exists():
            shutil.rmtree(path)
