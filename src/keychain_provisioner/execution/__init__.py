"""
Collaborators used to reach the build node.

Provides command execution with secret masking, filesystem access and
build variable expansion.
"""

from .arguments import ArgumentList, SecretMasker, MASK
from .executor import CommandExecutor, CommandResult, SubprocessExecutor
from .expansion import VariableExpander
from .filesystem import Filesystem, LocalFilesystem
from .runner import CommandOutcome, CommandRunner

__all__ = [
    "ArgumentList",
    "SecretMasker",
    "MASK",
    "CommandExecutor",
    "CommandResult",
    "SubprocessExecutor",
    "VariableExpander",
    "Filesystem",
    "LocalFilesystem",
    "CommandOutcome",
    "CommandRunner",
]
