"""
Command line construction with masked secret arguments.
"""

import shlex
from pathlib import Path
from typing import Iterable, Union

MASK = "********"

Arg = Union[str, Path]


class ArgumentList:
    """An argv under construction that remembers which positions are secret."""

    def __init__(self, *args: Arg):
        self._args: list[str] = []
        self._masked: set[int] = set()
        self.add(*args)

    def add(self, *args: Arg) -> "ArgumentList":
        """Append plain arguments."""
        self._args.extend(str(a) for a in args)
        return self

    def add_masked(self, value: str) -> "ArgumentList":
        """Append an argument that must never be shown."""
        self._masked.add(len(self._args))
        self._args.append(str(value))
        return self

    @property
    def argv(self) -> list[str]:
        return list(self._args)

    @property
    def masked_indices(self) -> frozenset[int]:
        return frozenset(self._masked)

    @property
    def masked_values(self) -> list[str]:
        return [self._args[i] for i in sorted(self._masked)]

    def to_log_string(self) -> str:
        """Render the command line with secret positions replaced by the mask."""
        return " ".join(
            MASK if i in self._masked else shlex.quote(arg)
            for i, arg in enumerate(self._args)
        )

    def __len__(self) -> int:
        return len(self._args)

    def __repr__(self) -> str:
        return f"ArgumentList({self.to_log_string()})"


class SecretMasker:
    """Replaces every registered secret in text destined for logs or errors.

    Every occurrence is replaced, including secrets embedded in longer
    strings such as the extraction directory path.
    """

    def __init__(self, secrets: Iterable[str] = ()):
        self._secrets: set[str] = set()
        for secret in secrets:
            self.register(secret)

    def register(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def mask(self, text: str) -> str:
        if not text:
            return text
        # Longest first so a secret containing another is replaced whole
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def __contains__(self, secret: str) -> bool:
        return secret in self._secrets
