"""
Installation of provisioning profiles on the build node.
"""

import logging
from pathlib import Path
from typing import Optional

from ..errors import ResourceError
from ..execution.arguments import SecretMasker
from ..execution.filesystem import Filesystem
from .models import StepResult
from .workdir import SecretWorkDir

logger = logging.getLogger(__name__)

PROFILE_PATTERN = "*.mobileprovision"


class ProvisioningProfileInstaller:
    """Copies .mobileprovision files into the node user's profile directory.

    Files keep their names; a file with the same name is overwritten.
    """

    def __init__(
        self,
        filesystem: Filesystem,
        profiles_dir: str = "Library/MobileDevice/Provisioning Profiles",
        masker: Optional[SecretMasker] = None,
    ):
        self.filesystem = filesystem
        self.profiles_dir = profiles_dir
        self.masker = masker or SecretMasker()

    def target_directory(self) -> Path:
        return Path(self.filesystem.home_directory()) / self.profiles_dir

    def install(self, workdir: SecretWorkDir) -> StepResult:
        installed = []
        try:
            target = self.target_directory()
            self.filesystem.mkdirs(target)
            for profile in workdir.list(PROFILE_PATTERN):
                logger.info(f"Installing provisioning profile {profile.name}")
                self.filesystem.copy(profile, target / profile.name)
                installed.append(profile.name)
        except OSError as e:
            result = StepResult.failed(
                "install_profiles",
                ResourceError(self.masker.mask(f"Failed to install provisioning profiles: {e}")),
            )
            result.details["installed"] = installed
            return result

        return StepResult.ok(
            "install_profiles",
            f"Installed {len(installed)} provisioning profile(s)",
            installed=installed,
            directory=str(target),
        )
