# Utils package for the E-Prime tabulator
"""
Utility modules for reading E-Prime experiment files into flat tables.

Modules:
    - log_frame_parser: Parse E-Prime .txt logs into one row per trial
    - file_reader: Sniff file types and read logs / tab-delimited exports
    - tabular_data: Ordered rows + columns, pandas bridge, TSV writer
    - column_calculator: Computed, copydown and counter columns
    - calculator: Arithmetic/string evaluator for computed columns
    - expression: {column} reference extraction
    - config: Reader options with environment overrides
    - errors: Exception types
"""

# Package version - should match pyproject.toml
__version__ = "0.9.0"

from .errors import (
    EprimeError,
    UnknownTypeError,
    DamagedFileError,
    ComputationError,
    ExpressionError,
    ExpressionParseError,
    EvaluationError,
)
from .config import ReaderConfig, get_config, set_config
from .tabular_data import TabularData
from .expression import Expression
from .calculator import Calculator
from .log_frame_parser import Frame, LogFrameParser, parse_log
from .column_calculator import ColumnCalculator, Row
from .file_reader import read_file, detect_parser

__all__ = [
    "EprimeError",
    "UnknownTypeError",
    "DamagedFileError",
    "ComputationError",
    "ExpressionError",
    "ExpressionParseError",
    "EvaluationError",
    "ReaderConfig",
    "get_config",
    "set_config",
    "TabularData",
    "Expression",
    "Calculator",
    "Frame",
    "LogFrameParser",
    "parse_log",
    "ColumnCalculator",
    "Row",
    "read_file",
    "detect_parser",
]
