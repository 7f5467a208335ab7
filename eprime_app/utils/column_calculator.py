"""
Column Calculator
=================
Columnwise and accumulator-style calculations over TabularData. Four kinds
of columns are supported:

1. Data columns -- backed directly by the data
2. Computed columns -- arithmetic on other columns in the same row, e.g.
   ``"({stim_time} - {run_start}) / 1000"``
3. Copydown columns -- the last non-empty value of another column
4. Counter columns -- running values that advance or reset based on the
   contents of each row

Columns may depend on each other as long as the dependency isn't circular.
Values are computed lazily and memoized per row. Copydown and counter
columns carry state from row to row, so the table is realized in a single
in-order pass the first time a row is requested.

Usage::

    calc = ColumnCalculator()
    calc.set_data(data)
    calc.computed_column("rt_s", "{Stim1.RT} / 1000")
    calc.copydown_column("last_cue", "Cue")
    calc.counter_column("trial_in_run", reset_when=lambda row: row["Trial"] == "1")
    for row in calc:
        print(row["rt_s"], row["trial_in_run"])
"""

import logging
from numbers import Number
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from .calculator import Calculator
from .errors import ComputationError, EprimeError
from .expression import Expression
from .tabular_data import TabularData

logger = logging.getLogger(__name__)

ColumnId = Union[int, str]
RowPredicate = Callable[["Row"], bool]

SORTER_NAME = "sorter"

# Marks memo slots that haven't been computed yet
_NOT_COMPUTED = object()


class _FailedCell:
    """Memo entry for a stateful cell whose evaluation raised."""

    __slots__ = ("error",)

    def __init__(self, error: Exception):
        self.error = error


class Column:
    """Base column: knows its name and how to compute its value for a row."""

    def __init__(self, name: str):
        self.name = name

    def compute(self, row: "Row", path: Sequence[str] = ()) -> Any:
        return row.data.get(self.name, "")

    def reset(self) -> None:
        """Forget state carried between rows. Stateless columns ignore this."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class DataColumn(Column):
    """A column read straight from the underlying data."""


class ComputedColumn(Column):
    """A column computed from an expression over other columns."""

    def __init__(self, name: str, expression: Expression, calculator: Calculator):
        super().__init__(name)
        self.expression = expression
        self.calculator = calculator

    def compute(self, row: "Row", path: Sequence[str] = ()) -> Any:
        # Plain values in the data win over the expression
        literal = row.data.get(self.name)
        if literal is not None:
            return literal
        return self.compute_without_check(row, path)

    def compute_without_check(self, row: "Row", path: Sequence[str] = ()) -> str:
        compute_str = str(self.expression)
        if self.name in path:
            raise ComputationError(
                f"{compute_str} contains a loop with {self.name} -- can't compute"
            )

        sub_path = list(path) + [self.name]
        for col_name in self.expression.columns:
            val = row.resolve(col_name, sub_path)
            val = "" if val is None else str(val)
            if val == "":
                val = "0"
            compute_str = compute_str.replace("{" + col_name + "}", val)
        return self.calculator.compute(compute_str)

    def __str__(self) -> str:
        return str(self.expression)


class CopydownColumn(Column):
    """Carries the last non-blank value of another column forward."""

    def __init__(self, name: str, copied_name: str):
        super().__init__(name)
        self.copied_name = copied_name
        self._last_val = ""

    def compute(self, row: "Row", path: Sequence[str] = ()) -> str:
        val = row.resolve(self.copied_name, list(path) + [self.name])
        val = "" if val is None else str(val)
        if val != "":
            self._last_val = val
        return self._last_val

    def reset(self) -> None:
        self._last_val = ""


def _succ(value):
    return value + 1


def _pred(value):
    return value - 1


NAMED_STEPS: Dict[str, Callable[[Any], Any]] = {
    "succ": _succ,
    "next": _succ,
    "pred": _pred,
}


class CounterColumn(Column):
    """
    A running value that changes as rows go by.

    Options:
        start_value: Initial (and reset) value; default 0
        count_by: A one-argument callable, a named step ("succ", "pred"),
            or a number to add; default "succ"
        count_when: Predicate over the row; advance only when true (default always)
        reset_when: Predicate over the row; reset to start_value before
            counting when true (default never)
    """

    STANDARD_OPTS: Dict[str, Any] = {
        "start_value": 0,
        "count_by": "succ",
        "count_when": lambda row: True,
        "reset_when": lambda row: False,
    }

    def __init__(self, name: str, **options):
        super().__init__(name)
        unknown = set(options) - set(self.STANDARD_OPTS)
        if unknown:
            raise ComputationError(f"Unknown counter options for {name}: {sorted(unknown)}")
        opts = dict(self.STANDARD_OPTS, **options)
        self.start_value = opts["start_value"]
        self.count_when: RowPredicate = opts["count_when"]
        self.reset_when: RowPredicate = opts["reset_when"]
        self._step = self._make_step(name, opts["count_by"])
        self._current_value = self.start_value

    @staticmethod
    def _make_step(name: str, count_by) -> Callable[[Any], Any]:
        if callable(count_by):
            return count_by
        if isinstance(count_by, str):
            if count_by not in NAMED_STEPS:
                raise ComputationError(f"Unknown count_by {count_by!r} for {name}")
            return NAMED_STEPS[count_by]
        if isinstance(count_by, Number) and not isinstance(count_by, bool):
            return lambda value: value + count_by
        raise ComputationError(f"count_by for {name} must be callable, a step name or a number")

    @property
    def current_value(self):
        return self._current_value

    def compute(self, row: "Row", path: Sequence[str] = ()) -> Any:
        if self.reset_when(row):
            self._current_value = self.start_value
        if self.count_when(row):
            self._current_value = self._step(self._current_value)
        return self._current_value

    def reset(self) -> None:
        self._current_value = self.start_value


class Row:
    """One record being evaluated; values are memoized by column position."""

    def __init__(self, parent: "ColumnCalculator", rowdata: Dict[str, str]):
        self._parent = parent
        self.data = rowdata
        self._values: List[Any] = [_NOT_COMPUTED] * len(parent.columns)
        self.sort_value: float = 1.0

    def __getitem__(self, col_id: ColumnId) -> Any:
        index = self._parent.column_index(col_id)
        if index is None:
            raise IndexError(f"{col_id} does not exist")
        value = self._values[index]
        if value is _NOT_COMPUTED:
            value = self._compute_at(index, ())
        if isinstance(value, _FailedCell):
            raise value.error
        return value

    def resolve(self, col_name: str, path: Sequence[str] = ()) -> Any:
        """Value of a column, computing it on this evaluation path if needed."""
        index = self._parent.column_index(col_name)
        if index is None:
            raise IndexError(f"{col_name} does not exist")
        value = self._values[index]
        if value is _NOT_COMPUTED:
            value = self._compute_at(index, path)
        if isinstance(value, _FailedCell):
            raise value.error
        return value

    def compute(self, col_name: str) -> Any:
        """Recompute one column for this row and store the result."""
        if not isinstance(col_name, str):
            raise TypeError("compute requires a column name")
        index = self._parent.column_index(col_name)
        if index is None:
            raise IndexError(f"{col_name} does not exist")
        return self._compute_at(index, ())

    def _compute_at(self, index: int, path: Sequence[str]) -> Any:
        column = self._parent.column(index)
        value = column.compute(self, path)
        self._values[index] = value
        return value

    def fail(self, col_name: str, error: Exception) -> None:
        """Record that a column failed for this row; reading it re-raises."""
        self._values[self._parent.column_index(col_name)] = _FailedCell(error)

    def find_column(self, column_name: str) -> Column:
        return self._parent.column(column_name)

    def is_computed(self, col_id: ColumnId) -> bool:
        index = self._parent.column_index(col_id)
        return index is not None and self._values[index] is not _NOT_COMPUTED

    def to_dict(self) -> Dict[str, str]:
        """Every column's value as text."""
        out = {}
        for name in self._parent.columns:
            value = self[name]
            out[name] = "" if value is None else str(value)
        return out

    def __lt__(self, other: "Row") -> bool:
        return self.sort_value < other.sort_value

    def __repr__(self) -> str:
        return f"<Row sort_value={self.sort_value}>"


class ColumnCalculator:
    """Adds computed, copydown and counter columns on top of TabularData."""

    COLUMN_TYPES = ("data", "computed", "copydown", "counter")

    def __init__(self, calculator: Optional[Calculator] = None):
        self.calculator = calculator or Calculator()
        self._data: Optional[TabularData] = None
        self._cols: Dict[str, List[Column]] = {kind: [] for kind in self.COLUMN_TYPES}
        self._columns: List[str] = []
        self._columns_intern: List[Column] = []
        self._column_indexes: Dict[str, int] = {}
        self._rows: List[Row] = []
        self._computed = False
        self._sorter = ComputedColumn(SORTER_NAME, Expression("1"), self.calculator)

    # ------------------------------------------------------------------
    # Data and columns
    # ------------------------------------------------------------------

    @property
    def data(self) -> Optional[TabularData]:
        return self._data

    @data.setter
    def data(self, data: TabularData) -> None:
        self.set_data(data)

    def set_data(self, data: TabularData) -> None:
        data_cols = [DataColumn(name) for name in data.columns]
        derived = {col.name for kind in self.COLUMN_TYPES if kind != "data"
                   for col in self._cols[kind]}
        for col in data_cols:
            if col.name in derived:
                raise ComputationError(f"{col.name} already exists!")
        self._data = data
        self._cols["data"] = data_cols
        self._set_columns()

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def column_index(self, col_id: ColumnId) -> Optional[int]:
        if isinstance(col_id, int) and not isinstance(col_id, bool):
            return col_id if 0 <= col_id < len(self._columns) else None
        if isinstance(col_id, str):
            return self._column_indexes.get(col_id)
        return None

    def column(self, col_id: ColumnId) -> Column:
        index = self.column_index(col_id)
        if index is None:
            raise IndexError(f"{col_id} does not exist")
        return self._columns_intern[index]

    def computed_column(self, name: str, expression: str) -> None:
        self._add("computed", ComputedColumn(name, Expression(expression), self.calculator))

    def copydown_column(self, name: str, copied_name: str) -> None:
        self._add("copydown", CopydownColumn(name, copied_name))

    def counter_column(self, name: str, options: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        opts = dict(options or {}, **kwargs)
        self._add("counter", CounterColumn(name, **opts))

    @property
    def sort_expression(self) -> str:
        return str(self._sorter)

    @sort_expression.setter
    def sort_expression(self, expr: str) -> None:
        self._sorter = ComputedColumn(SORTER_NAME, Expression(expr), self.calculator)
        self._computed = False

    def _add(self, kind: str, column: Column) -> None:
        if column.name in self._column_indexes:
            raise ComputationError(f"{column.name} already exists!")
        self._cols[kind].append(column)
        self._set_columns()
        logger.debug("Added %s column %r", kind, column.name)

    def _set_columns(self) -> None:
        columns: List[str] = []
        intern: List[Column] = []
        indexes: Dict[str, int] = {}
        for kind in self.COLUMN_TYPES:
            for col in self._cols[kind]:
                if col.name in indexes:
                    raise ComputationError(f"{col.name} already exists!")
                indexes[col.name] = len(intern)
                intern.append(col)
                columns.append(col.name)
        self._columns = columns
        self._columns_intern = intern
        self._column_indexes = indexes
        self._computed = False

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._data) if self._data is not None else 0

    @property
    def size(self) -> int:
        return len(self)

    def __getitem__(self, index: int) -> Row:
        if not self._computed:
            self._compute_data()
        return self._rows[index]

    def __iter__(self) -> Iterator[Row]:
        for row_index in range(len(self)):
            yield self[row_index]

    def sorted_rows(self) -> List[Row]:
        """Rows ordered by sort value; ties keep their original order."""
        return sorted(self)

    def to_tabular_data(self, sort: bool = False) -> TabularData:
        out = TabularData(self._columns)
        rows = self.sorted_rows() if sort else list(self)
        for row in rows:
            out.add_row(row.to_dict())
        return out

    def _compute_data(self) -> None:
        """
        Realize every row in order.

        Copydown and counter columns depend on the rows before them, so they
        are evaluated here, row by row. Computed columns stay lazy unless a
        stateful column or the sort expression needs them.
        """
        if self._data is None:
            raise ComputationError("No data set")
        stateful = self._cols["copydown"] + self._cols["counter"]
        for col in stateful:
            col.reset()

        rows = []
        for rowdata in self._data:
            row = Row(self, rowdata)
            for col in stateful:
                try:
                    row.resolve(col.name)
                except (EprimeError, IndexError) as e:
                    # Only this cell fails; its carry or count is left as it was
                    row.fail(col.name, e)
            # compute() would look for a real 'sorter' value in the row data
            sort_val = self._sorter.compute_without_check(row)
            try:
                row.sort_value = float(sort_val)
            except ValueError:
                raise ComputationError(
                    f"Sort expression {self.sort_expression!r} gave non-numeric {sort_val!r}"
                ) from None
            rows.append(row)
        self._rows = rows
        self._computed = True
        logger.debug("Computed %d rows over %d columns", len(rows), len(self._columns))
