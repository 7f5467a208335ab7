"""
E-Prime File Reader
===================
Opens any of the text files E-Prime tooling produces and reads it into
TabularData:

- Log files (``*** Header Start ***`` on the first line)
- E-DataAid "Excel" exports (a filename on the first line, then a
  tab-delimited table)
- Plain tab-delimited exports (a tab-delimited header on the first line)

The file type is decided from the first two lines. E-Prime writes logs as
UTF-16, so the byte-order mark is checked before decoding.
"""

import codecs
import csv
import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Type, Union

import pandas as pd

from .config import ReaderConfig, get_config
from .errors import UnknownTypeError
from .log_frame_parser import LogFrameParser
from .tabular_data import TabularData

logger = logging.getLogger(__name__)

Source = Union[str, Path, io.IOBase]

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def sniff_encoding(raw: bytes) -> Optional[str]:
    """Encoding named by a byte-order mark, or None if there isn't one."""
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return encoding
    return None


def decode_bytes(raw: bytes, encoding: Optional[str] = None) -> str:
    encoding = encoding or sniff_encoding(raw)
    if encoding:
        return raw.decode(encoding)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Input is not UTF-8; decoding as cp1252")
        return raw.decode("cp1252", errors="replace")


def read_lines(source: Source, encoding: Optional[str] = None) -> List[str]:
    """Read a path or an open stream (text or binary) into a list of lines."""
    if isinstance(source, (str, Path)):
        content = decode_bytes(Path(source).read_bytes(), encoding)
    else:
        content = source.read()
        if isinstance(content, bytes):
            content = decode_bytes(content, encoding)
    return content.splitlines()


class TabDelimitedParser:
    """Tab-delimited table with the column names on the first line."""

    skip_lines = 0
    min_fields = 3

    def __init__(self, lines: Sequence[str], config: Optional[ReaderConfig] = None):
        self.lines = list(lines)
        self.config = config or ReaderConfig()

    @classmethod
    def can_parse(cls, first_lines: List[Optional[str]]) -> bool:
        if not first_lines or first_lines[0] is None:
            return False
        return len(first_lines[0].split("\t")) >= cls.min_fields

    def to_dataframe(self) -> pd.DataFrame:
        body = "\n".join(self.lines[self.skip_lines:])
        if not body.strip():
            return pd.DataFrame()
        return pd.read_csv(
            io.StringIO(body),
            sep="\t",
            dtype=str,
            keep_default_na=False,
            quoting=csv.QUOTE_NONE,
        )

    def to_data(self) -> TabularData:
        data = TabularData.from_dataframe(self.to_dataframe())
        if self.config.columns:
            data.reorder_columns(self.config.columns)
        return data


class ExcelTabParser(TabDelimitedParser):
    """E-DataAid export: a filename line, then the tab-delimited table."""

    skip_lines = 1

    @classmethod
    def can_parse(cls, first_lines: List[Optional[str]]) -> bool:
        if len(first_lines) < 2 or first_lines[0] is None or first_lines[1] is None:
            return False
        return "\t" not in first_lines[0] and len(first_lines[1].split("\t")) >= cls.min_fields


class LogFileParser:
    """Adapter giving LogFrameParser the same interface as the tab parsers."""

    def __init__(self, lines: Sequence[str], config: Optional[ReaderConfig] = None):
        self.parser = LogFrameParser(lines, config)

    @classmethod
    def can_parse(cls, first_lines: List[Optional[str]]) -> bool:
        return LogFrameParser.can_parse(first_lines)

    def to_data(self) -> TabularData:
        return self.parser.to_data()


PARSERS: List[Type] = [LogFileParser, ExcelTabParser, TabDelimitedParser]


def detect_parser(first_lines: List[Optional[str]]) -> Type:
    """Return the first parser class that recognises these lines."""
    for parser_class in PARSERS:
        if parser_class.can_parse(first_lines):
            return parser_class
    raise UnknownTypeError("Can't determine the file type from its first two lines")


def read_file(source: Source, config: Optional[ReaderConfig] = None) -> TabularData:
    """
    Read an E-Prime log or export into TabularData.

    Args:
        source: File path or open stream
        config: Reader options; defaults to the global config

    Returns:
        TabularData with the file's rows

    Raises:
        UnknownTypeError: No parser recognises the file
        DamagedFileError: A log file ends with a frame still open
    """
    config = config or get_config()
    lines = read_lines(source, config.encoding)
    first_lines: List[Optional[str]] = (lines[:2] + [None, None])[:2]
    parser_class = detect_parser(first_lines)
    logger.info("Reading %s as %s", getattr(source, "name", source), parser_class.__name__)
    return parser_class(lines, config).to_data()
