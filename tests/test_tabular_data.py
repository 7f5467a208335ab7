import io

import pandas as pd

from eprime_app.utils.tabular_data import TabularData


def make_data():
    data = TabularData(["Subject", "Trial"])
    data.add_row({"Subject": "1", "Trial": "1", "RT": "512"})
    data.add_row({"Subject": "1", "Trial": "2"})
    return data


def test_columns_in_first_seen_order():
    data = make_data()
    assert data.columns == ["Subject", "Trial", "RT"]
    assert data.find_column_index("RT") == 2
    assert data.find_column_index("Nope") is None
    assert data.has_column("Trial")
    assert not data.has_column("Nope")


def test_values_are_text():
    data = TabularData()
    data.add_row({"n": 3, "x": 1.5, "blank": None})
    assert data[0] == {"n": "3", "x": "1.5", "blank": ""}


def test_missing_values_read_as_blank():
    data = make_data()
    assert data.value(1, "RT") == ""
    assert data.value(0, "RT") == "512"
    assert len(data) == 2
    assert [row["Trial"] for row in data] == ["1", "2"]


def test_reorder_columns():
    data = make_data()
    data.reorder_columns(["RT", "Nope", "Subject", "RT"])
    assert data.columns == ["RT", "Subject", "Trial"]


def test_drop_columns():
    data = make_data()
    data.drop_columns(["Trial", "Nope"])
    assert data.columns == ["Subject", "RT"]
    assert "Trial" not in data[0]
    data.add_row({"Trial": "3"})
    assert data.columns == ["Subject", "RT", "Trial"]


def test_to_dataframe():
    df = make_data().to_dataframe()
    assert list(df.columns) == ["Subject", "Trial", "RT"]
    assert df.shape == (2, 3)
    assert df.loc[1, "RT"] == ""
    assert df.loc[0, "RT"] == "512"


def test_from_dataframe_blanks_missing_values():
    df = pd.DataFrame({"Subject": [1, 2], "RT": [512.0, None]})
    data = TabularData.from_dataframe(df)
    assert data.columns == ["Subject", "RT"]
    assert data[0] == {"Subject": "1", "RT": "512.0"}
    assert data[1]["RT"] == ""


def test_write_tsv_to_buffer():
    buf = io.StringIO()
    make_data().write_tsv(buf)
    assert buf.getvalue() == "Subject\tTrial\tRT\n1\t1\t512\n1\t2\t\n"


def test_write_tsv_to_file(tmp_path):
    path = tmp_path / "out.tsv"
    make_data().write_tsv(path)
    df = pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)
    assert list(df.columns) == ["Subject", "Trial", "RT"]
    assert df["RT"].tolist() == ["512", ""]
