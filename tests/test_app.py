"""Command line entry point: flags in, TSV out."""

import pandas as pd
import pytest

from eprime_app.app import build_parser, main


def read_tsv(path):
    return pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)


def test_parser_defaults():
    args = build_parser().parse_args(["in.txt"])
    assert args.input == "in.txt"
    assert args.out is None
    assert args.computed == []
    assert args.level_counters is None


def test_writes_tsv_with_derived_columns(tmp_path, sample_log_file):
    out = tmp_path / "out.tsv"
    status = main([
        str(sample_log_file), "-o", str(out),
        "--computed", "rt_s={Stim1.RT}/1000",
        "--copydown", "last_rt=Stim1.RT",
        "--counter", "row_num",
    ])
    assert status == 0

    df = read_tsv(out)
    assert len(df) == 3
    assert list(df.columns[-3:]) == ["rt_s", "last_rt", "row_num"]
    assert df["rt_s"].tolist() == ["0.512", "0.43", "0.0"]
    assert df["last_rt"].tolist() == ["512", "430", "430"]
    assert df["row_num"].tolist() == ["1", "2", "3"]
    assert df["ExperimentName"].tolist() == ["TestExp"] * 3


def test_sorted_output(tmp_path, sample_log_file):
    out = tmp_path / "out.tsv"
    status = main([str(sample_log_file), "-o", str(out), "--sort", "0-{Stim1.OnsetTime}"])
    assert status == 0
    assert read_tsv(out)["Stim1.OnsetTime"].tolist() == ["12000", "9000", "5000"]


def test_column_order_and_level_options(tmp_path, sample_log_file):
    out = tmp_path / "out.tsv"
    status = main([
        str(sample_log_file), "-o", str(out),
        "--columns", "Subject,TypeA",
        "--level-name-key", "Procedure",
        "--no-level-counters",
    ])
    assert status == 0
    df = read_tsv(out)
    assert list(df.columns[:2]) == ["Subject", "TypeA"]
    assert "Procedure[TrialProc]" in df.columns
    assert "Trial" not in df.columns


def test_writes_to_stdout(capsys, sample_log_file):
    assert main([str(sample_log_file)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("TrialList\t")
    assert len(lines) == 4


def test_damaged_file_returns_error(tmp_path, corrupt_log_text):
    path = tmp_path / "broken.txt"
    path.write_text(corrupt_log_text, encoding="utf-16")
    assert main([str(path), "-o", str(tmp_path / "out.tsv")]) == 1
    assert not (tmp_path / "out.tsv").exists()


def test_missing_file_returns_error(tmp_path):
    assert main([str(tmp_path / "nope.txt")]) == 1


def test_bad_column_reference_returns_error(tmp_path, sample_log_file):
    assert main([str(sample_log_file), "--computed", "x={Nope}+1"]) == 1


def test_malformed_computed_flag_exits(sample_log_file):
    with pytest.raises(SystemExit) as excinfo:
        main([str(sample_log_file), "--computed", "no_equals_sign"])
    assert excinfo.value.code == 2
