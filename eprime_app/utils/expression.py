"""Column-reference extraction for computed-column expressions."""

import re
from typing import Tuple

# Finds strings like {foo} and {bar}
COLUMN_FINDER = re.compile(r"\{([^}]*)\}")


class Expression:
    """
    An expression string plus the columns it references.

    The text is kept exactly as given (braces included); substituting values
    for the references is the caller's job.
    """

    __slots__ = ("_expr", "_columns")

    def __init__(self, expr_string: str):
        self._expr = str(expr_string)
        self._columns = self._find_columns(self._expr)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @staticmethod
    def _find_columns(text: str) -> Tuple[str, ...]:
        found = []
        for name in COLUMN_FINDER.findall(text):
            if name not in found:
                found.append(name)
        return tuple(found)

    def __str__(self) -> str:
        return self._expr

    def __repr__(self) -> str:
        return f"Expression({self._expr!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Expression):
            return NotImplemented
        return self._expr == other._expr

    def __hash__(self) -> int:
        return hash(self._expr)
