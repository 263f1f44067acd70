"""
Build variable expansion for user-supplied identifiers and paths.
"""

import os
import re
from typing import Mapping, Optional

_VARIABLE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_.]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class VariableExpander:
    """Expands $NAME and ${NAME} references from a build environment.

    References to unknown variables are left as written.
    """

    def __init__(self, variables: Optional[Mapping[str, str]] = None):
        self.variables = dict(os.environ if variables is None else variables)

    def expand(self, text: Optional[str]) -> Optional[str]:
        if text is None:
            return None

        def replace(match: re.Match) -> str:
            name = match.group(1) or match.group(2)
            value = self.variables.get(name)
            return match.group(0) if value is None else str(value)

        return _VARIABLE.sub(replace, text)
