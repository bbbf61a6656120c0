"""Tests for cell-level reads of native spreadsheets."""

import json

import pytest

from docscope.errors import ErrorType, ExtractionError
from docscope.extractors import SheetReader
from docscope.extractors.sheets import (
    cell_location,
    quote_sheet_title,
    sheet_name_from_range,
    to_range_data,
)
from docscope.models import RangeValues
from docscope.server import format_sheet_data

pytestmark = pytest.mark.anyio

BUDGET = {
    "Summary": [["Item", "Cost"], ["Rent", "1200"], ["Food", "300"]],
    "Q1 '24": [["Month", "Total"], ["Jan", "1500"]],
}


@pytest.fixture
def reader(store, scope) -> SheetReader:
    store.add_spreadsheet("s1", "Budget", BUDGET)
    return SheetReader(store, scope, retry_delay=0)


async def test_first_sheet_read_by_default(store, reader):
    [data] = await reader.read("s1")

    assert store.requested_ranges == ["'Summary'"]
    assert data.sheet_name == "Summary"
    assert [c.value for c in data.column_headers] == ["Item", "Cost"]
    assert [c.location for c in data.column_headers] == ["Summary!A1", "Summary!B1"]
    assert data.rows[1][1].value == "300"
    assert data.rows[1][1].location == "Summary!B3"
    assert data.total_rows == 3
    assert data.total_columns == 2


async def test_sheet_selected_by_id(store, reader):
    [data] = await reader.read("s1", sheet_id=100)

    assert store.requested_ranges == ["'Q1 ''24'"]
    assert data.sheet_name == "Q1 '24"
    assert data.rows[0][0].location == "Q1 '24!A2"


async def test_unknown_sheet_id(store, reader):
    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("s1", sheet_id=7)
    assert exc_info.value.error_type is ErrorType.NOT_FOUND
    assert "Sheet ID 7 not found" in exc_info.value.message
    assert store.calls["get_sheet_values"] == 0


async def test_explicit_ranges_override_sheet_id(store, reader):
    results = await reader.read("s1", ranges=["Summary!A1:B2", "'Q1 ''24'!A1:B2"], sheet_id=100)

    assert store.requested_ranges == ["Summary!A1:B2", "'Q1 ''24'!A1:B2"]
    assert [d.sheet_name for d in results] == ["Summary", "Q1 '24"]
    assert store.calls["list_sheets"] == 0


async def test_out_of_scope_spreadsheet_denied(store, reader):
    store.add_folder("elsewhere", parent="other-root")
    store.add_spreadsheet("s2", "Salaries", BUDGET, parent="elsewhere")

    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("s2")
    assert exc_info.value.error_type is ErrorType.OUT_OF_SCOPE
    assert store.calls["get_sheet_values"] == 0


async def test_non_spreadsheet_rejected(store, reader):
    store.add_file("t1", "notes.txt", "text/plain", b"hi")

    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("t1")
    assert exc_info.value.error_type is ErrorType.NOT_FOUND
    assert store.calls["list_sheets"] == 0


async def test_empty_ranges_are_skipped(store, scope):
    store.add_spreadsheet("s3", "Blank", {"Empty": [], "Data": [["a"]]})
    reader = SheetReader(store, scope, retry_delay=0)

    results = await reader.read("s3", ranges=["Empty!A1:B2", "Data!A1"])

    assert [d.sheet_name for d in results] == ["Data"]


def test_sheet_name_from_range():
    assert sheet_name_from_range("Sheet1!A1:B2") == "Sheet1"
    assert sheet_name_from_range("'My Sheet'!A:ZZ") == "My Sheet"
    assert sheet_name_from_range("'It''s'!A1") == "It's"
    assert sheet_name_from_range("Totals") == "Totals"


def test_cell_location_past_z():
    assert cell_location("S", 0, 0) == "S!A1"
    assert cell_location("S", 9, 26) == "S!AA10"
    assert quote_sheet_title("Q1 '24") == "'Q1 ''24'"


def test_format_sheet_data_is_json():
    data = to_range_data(RangeValues(range="Sheet1!A1:B2", values=[["h1", "h2"], [1, 2]]))
    payload = json.loads(format_sheet_data([data]))

    assert payload[0]["sheet_name"] == "Sheet1"
    assert payload[0]["column_headers"][1] == {"value": "h2", "location": "Sheet1!B1"}
    assert payload[0]["rows"][0][0] == {"value": 1, "location": "Sheet1!A2"}
    assert payload[0]["total_rows"] == 2
