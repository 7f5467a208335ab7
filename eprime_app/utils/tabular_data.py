"""
Tabular Data Container
======================
Ordered rows of column -> text values with one global, ordered column list.
Every reader produces one of these and the column calculator consumes it.

Conversion to and from pandas DataFrames lives here too, along with the
tab-delimited writer.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class TabularData:
    """Rows of string values keyed by column name."""

    def __init__(self, columns: Optional[Iterable[str]] = None):
        self._columns: List[str] = []
        self._column_set = set()
        self._rows: List[Dict[str, str]] = []
        for name in columns or []:
            self._add_column(name)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def _add_column(self, name: str) -> None:
        if name not in self._column_set:
            self._column_set.add(name)
            self._columns.append(name)

    def find_column_index(self, name: str) -> Optional[int]:
        try:
            return self._columns.index(name)
        except ValueError:
            return None

    def has_column(self, name: str) -> bool:
        return name in self._column_set

    def reorder_columns(self, order: Iterable[str]) -> None:
        """Move the named columns to the front in the given order.

        Names that aren't columns are ignored; unnamed columns keep their
        relative order after the named ones.
        """
        named = []
        for name in order:
            if name in self._column_set and name not in named:
                named.append(name)
        rest = [c for c in self._columns if c not in named]
        self._columns = named + rest

    def drop_columns(self, names: Iterable[str]) -> None:
        drop = set(names) & self._column_set
        if not drop:
            return
        self._columns = [c for c in self._columns if c not in drop]
        self._column_set -= drop
        for row in self._rows:
            for name in drop:
                row.pop(name, None)

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def add_row(self, values: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        row: Dict[str, str] = {}
        for key, value in (values or {}).items():
            self._add_column(key)
            row[key] = "" if value is None else str(value)
        self._rows.append(row)
        return row

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index: int) -> Dict[str, str]:
        return self._rows[index]

    def __iter__(self) -> Iterator[Dict[str, str]]:
        return iter(self._rows)

    def value(self, index: int, column: str) -> str:
        return self._rows[index].get(column, "")

    # ------------------------------------------------------------------
    # pandas bridge
    # ------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        records = [[row.get(c, "") for c in self._columns] for row in self._rows]
        return pd.DataFrame(records, columns=self._columns, dtype=object)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "TabularData":
        columns = [str(c) for c in df.columns]
        data = cls(columns)
        for record in df.itertuples(index=False, name=None):
            data.add_row({
                col: ("" if pd.isna(val) else str(val))
                for col, val in zip(columns, record)
            })
        return data

    def write_tsv(self, path_or_buf) -> None:
        """Write tab-delimited text with a header row."""
        self.to_dataframe().to_csv(path_or_buf, sep="\t", index=False, lineterminator="\n")
        logger.debug("Wrote %d rows x %d columns", len(self._rows), len(self._columns))

    def __repr__(self) -> str:
        return f"<TabularData rows={len(self._rows)} columns={len(self._columns)}>"
