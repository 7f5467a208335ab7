"""
E-Prime Tabulator: command line entry point.

Reads an E-Prime log (or tab-delimited export), optionally adds derived
columns, and writes a tab-delimited table.

    eprime-tab stroop-1-1.txt -o stroop.tsv \\
        --computed "rt_s={Stim1.RT}/1000" \\
        --copydown "last_cue=Cue" \\
        --counter row_num \\
        --sort "{Trial}"
"""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional, Tuple

from eprime_app.utils.column_calculator import ColumnCalculator
from eprime_app.utils.config import get_config
from eprime_app.utils.errors import EprimeError
from eprime_app.utils.file_reader import read_file

logger = logging.getLogger("eprime_app")


def _split_assignment(text: str, flag: str) -> Tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"{flag} expects NAME=VALUE, got {text!r}")
    return name.strip(), value.strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="eprime-tab",
        description="Convert E-Prime log files into tab-delimited tables",
    )
    p.add_argument("input", help="E-Prime .txt log or tab-delimited export")
    p.add_argument("-o", "--out", default=None, help="Output file (default: stdout)")
    p.add_argument("--columns", default=None, help="Comma-separated column order")
    p.add_argument("--computed", action="append", default=[], metavar="NAME=EXPR",
                   help="Add a computed column, e.g. rt_s={Stim1.RT}/1000")
    p.add_argument("--copydown", action="append", default=[], metavar="NAME=SOURCE",
                   help="Add a column carrying SOURCE's last non-blank value")
    p.add_argument("--counter", action="append", default=[], metavar="NAME",
                   help="Add a row counter column")
    p.add_argument("--sort", default=None, metavar="EXPR", help="Sort rows by this expression")
    p.add_argument("--level-name-key", dest="level_name_key", default=None,
                   help="Key whose value names a level when renaming ambiguous columns")
    p.add_argument("--no-level-counters", dest="level_counters", action="store_false",
                   default=None, help="Don't add Block/Trial/... counter columns")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def run(args: argparse.Namespace) -> None:
    config = get_config()
    overrides = {}
    if args.columns:
        overrides["columns"] = [c.strip() for c in args.columns.split(",") if c.strip()]
    if args.level_name_key:
        overrides["level_name_key"] = args.level_name_key
    if args.level_counters is not None:
        overrides["level_counters"] = args.level_counters
    config = dataclasses.replace(config, **overrides)

    data = read_file(args.input, config)

    calc = ColumnCalculator()
    calc.set_data(data)
    for assignment in args.computed:
        calc.computed_column(*_split_assignment(assignment, "--computed"))
    for assignment in args.copydown:
        calc.copydown_column(*_split_assignment(assignment, "--copydown"))
    for name in args.counter:
        calc.counter_column(name)
    if args.sort:
        calc.sort_expression = args.sort

    result = calc.to_tabular_data(sort=bool(args.sort))
    if args.out:
        result.write_tsv(args.out)
        logger.info("Wrote %d rows to %s", len(result), args.out)
    else:
        result.write_tsv(sys.stdout)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        run(args)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except (EprimeError, IndexError, OSError) as e:
        logger.error("%s: %s", args.input, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
