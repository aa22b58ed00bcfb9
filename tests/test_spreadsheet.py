"""Tests for spreadsheet parsing and writing."""

import io

import pandas as pd
import pytest

from app.core.errors import InvalidUploadError
from app.services.spreadsheet import (
    SpreadsheetParser,
    parse_profile_urls,
    validate_spreadsheet,
    workbook_bytes,
    write_results,
)

ROWS = [
    ["Alice", "https://www.linkedin.com/in/alice"],
    ["no url here", None],
    ["Bob", "  https://linkedin.com/pub/bob/1/2/3 ", "https://www.LinkedIn.com/in/bob-two"],
    ["Carol", "https://example.com/in/carol"],
]


@pytest.mark.parametrize("name", ["profiles.xlsx", "profiles.csv"])
def test_parse_scans_every_cell(write_sheet, name):
    path = write_sheet(ROWS, name)

    rows = parse_profile_urls(path)

    assert [r.url for r in rows] == [
        "https://www.linkedin.com/in/alice",
        "https://linkedin.com/pub/bob/1/2/3",
        "https://www.LinkedIn.com/in/bob-two",
    ]
    assert [r.row_index for r in rows] == [0, 2, 2]


def test_parse_keeps_other_cells_as_extras(write_sheet):
    rows = parse_profile_urls(write_sheet(ROWS))

    assert rows[0].extra == {"column_0": "Alice"}
    assert rows[1].extra == {
        "column_0": "Bob",
        "column_2": "https://www.LinkedIn.com/in/bob-two",
    }


def test_parse_unreadable_file(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"this is not a workbook")

    with pytest.raises(InvalidUploadError):
        parse_profile_urls(path)


async def test_parser_runs_off_loop(write_sheet):
    rows = await SpreadsheetParser().parse_rows(write_sheet(ROWS))
    assert len(rows) == 3


def test_validate_rejects_missing_and_wrong_type(tmp_path):
    with pytest.raises(InvalidUploadError):
        validate_spreadsheet(tmp_path / "missing.xlsx")

    text_file = tmp_path / "notes.txt"
    text_file.write_text("https://www.linkedin.com/in/alice")
    with pytest.raises(InvalidUploadError):
        validate_spreadsheet(text_file)


def test_validate_accepts_workbook(write_sheet):
    validate_spreadsheet(write_sheet(ROWS))


def test_write_results_round_trip(tmp_path):
    columns = ["Row #", "Profile URL", "Status"]
    rows = [
        {"Row #": 1, "Profile URL": "https://www.linkedin.com/in/a", "Status": "success"},
        {"Row #": 2, "Profile URL": "https://www.linkedin.com/in/b", "Status": "failed"},
    ]

    path = write_results(rows, columns, tmp_path / "results" / "job_1_results.xlsx")
    frame = pd.read_excel(path, sheet_name="Results")

    assert list(frame.columns) == columns
    assert frame["Status"].tolist() == ["success", "failed"]


def test_workbook_bytes_keeps_header_without_rows():
    content = workbook_bytes([], ["Profile URL", "Status"])
    frame = pd.read_excel(io.BytesIO(content), sheet_name="Profiles")

    assert list(frame.columns) == ["Profile URL", "Status"]
    assert frame.empty
