"""
Unit tests for CSV file reading.
"""
import io

import pytest

from core.exceptions import ParsingError
from core.parsing import read_csv_rows

CHASE_CSV = (
    "Status,Date,Description,Debit,Credit\n"
    "Posted,01/05/2024,STAPLES 0042,45.99,\n"
    "\n"
    "Posted,01/06/2024,PAYMENT THANK YOU,,500.00\n"
)


def test_reads_rows_as_strings():
    rows = read_csv_rows(CHASE_CSV.encode("utf-8"), "chase.csv")
    
    assert len(rows) == 2
    assert rows[0] == {
        "Status": "Posted",
        "Date": "01/05/2024",
        "Description": "STAPLES 0042",
        "Debit": "45.99",
        "Credit": "",
    }
    assert rows[1]["Credit"] == "500.00"


def test_missing_cells_become_empty_strings():
    rows = read_csv_rows(b"Date,Description,Amount\n01/02/2024,Coffee\n")
    assert rows == [{"Date": "01/02/2024", "Description": "Coffee", "Amount": ""}]


def test_header_whitespace_and_bom_are_stripped():
    data = "\ufeffDate , Amount\n01/02/2024,4.50\n".encode("utf-8")
    rows = read_csv_rows(data)
    assert rows == [{"Date": "01/02/2024", "Amount": "4.50"}]


def test_reads_from_path_and_file_object(tmp_path):
    path = tmp_path / "amex.csv"
    path.write_text("Date,Description,Amount\n01/02/2024,UBER,12.00\n")
    
    assert read_csv_rows(path)[0]["Description"] == "UBER"
    assert read_csv_rows(io.BytesIO(path.read_bytes()))[0]["Amount"] == "12.00"


def test_header_only_file_has_no_rows():
    assert read_csv_rows(b"Date,Description,Amount\n") == []


def test_empty_file_raises_parsing_error():
    with pytest.raises(ParsingError) as exc_info:
        read_csv_rows(b"", "empty.csv")
    assert exc_info.value.details["file"] == "empty.csv"


def test_malformed_file_raises_parsing_error():
    with pytest.raises(ParsingError):
        read_csv_rows(b"a,b\n\"unterminated,2\n", "broken.csv")


def test_row_with_extra_cells_does_not_fail_file():
    rows = read_csv_rows(
        b"Date,Description,Amount\n"
        b"01/15/2024,Zoom,15.99\n"
        b"01/16/2024,Broken,1,2,3,4\n"
        b"01/17/2024,Figma,12.00\n",
        "card.csv",
    )

    vendors = [row["Description"] for row in rows]
    assert vendors[0] == "Zoom"
    assert vendors[-1] == "Figma"
    assert "Broken" not in vendors
