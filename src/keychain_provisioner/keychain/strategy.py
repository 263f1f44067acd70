"""
Key access strategies selected from the host OS version.

macOS 10.12 and later require a partition list on each key before codesign
can use it without a prompt. Older releases only honour the trusted
application list passed to `security import -T`.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from ..errors import ExternalCommandError
from ..execution.arguments import ArgumentList

if TYPE_CHECKING:
    from ..execution.runner import CommandRunner

PARTITION_LIST_SERVICES = "apple-tool:,apple:"


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a dot-separated numeric version.

    Raises:
        ValueError: If the version is empty or has a non-numeric component
    """
    text = (version or "").strip()
    if not text:
        raise ValueError("Version cannot be empty")
    try:
        return tuple(int(part) for part in text.split("."))
    except ValueError:
        raise ValueError(f"Invalid version: '{version}'")


def compare_versions(left: str, right: str) -> int:
    """Compare two dot-separated versions.

    Components are compared left to right and the first difference decides.
    When one version is a strict prefix of the other, the shorter one is
    the smaller.

    Returns:
        A negative number, zero or a positive number
    """
    a = parse_version(left)
    b = parse_version(right)
    for x, y in zip(a, b):
        if x != y:
            return 1 if x > y else -1
    return (len(a) > len(b)) - (len(a) < len(b))


@dataclass(frozen=True)
class PartitionListStrategy:
    """Grant key access with `security set-key-partition-list`."""
    name: str = "partition_list"
    grants_at_import: bool = False


@dataclass(frozen=True)
class TrustAnchorStrategy:
    """Grant key access with `-T` trusted applications at import time."""
    name: str = "trust_anchor"
    grants_at_import: bool = True


AccessStrategy = Union[PartitionListStrategy, TrustAnchorStrategy]


def select_strategy(os_version: str, threshold: str = "10.12") -> AccessStrategy:
    """Pick the access strategy for a host OS version."""
    if compare_versions(os_version, threshold) >= 0:
        return PartitionListStrategy()
    return TrustAnchorStrategy()


def detect_os_version(runner: "CommandRunner") -> str:
    """Ask the node for its OS product version.

    Returns:
        The version string reported by `sw_vers`

    Raises:
        ExternalCommandError: If `sw_vers` fails or prints nothing usable
    """
    outcome = runner.run(
        ArgumentList("sw_vers", "-productVersion"),
        "Failed to detect the OS version",
    )
    if not outcome.ok:
        raise outcome.error

    version = outcome.output.strip()
    try:
        parse_version(version)
    except ValueError:
        raise ExternalCommandError(
            f"Unrecognised OS version: '{version}'",
            command="sw_vers -productVersion",
            exit_code=0,
            output=outcome.output,
        )
    return version
