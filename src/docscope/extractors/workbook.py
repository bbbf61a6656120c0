"""Spreadsheet workbook decoding.

Only stored cell values are read (``data_only=True``); formulas are never
evaluated.
"""

import csv
import io
from datetime import date, datetime, time
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter

from docscope.errors import ErrorType, ExtractionError
from docscope.models import SheetData

# OOXML files protected with a password are wrapped in an OLE container
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def _unique_headers(row: list[Any]) -> list[str]:
    """Name blank headers by column letter and suffix repeats so no record key collides."""
    headers: list[str] = []
    seen: set[str] = set()
    for index, value in enumerate(row):
        base = str(value).strip() or f"Column {get_column_letter(index + 1)}"
        name, n = base, 1
        while name in seen:
            n += 1
            name = f"{base}_{n}"
        seen.add(name)
        headers.append(name)
    return headers


def _read_sheet(name: str, raw_rows: list[tuple[Any, ...]]) -> SheetData:
    rows = [[_cell_value(v) for v in row] for row in raw_rows]

    # Drop trailing empty rows and columns
    while rows and all(v == "" for v in rows[-1]):
        rows.pop()
    width = 0
    for row in rows:
        for index in range(len(row) - 1, -1, -1):
            if row[index] != "":
                width = max(width, index + 1)
                break
    rows = [(row + [""] * width)[:width] for row in rows]

    headers = _unique_headers(rows[0]) if rows else []
    records = [dict(zip(headers, row)) for row in rows[1:]]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)

    return SheetData(
        name=name,
        headers=headers,
        records=records,
        cells=rows,
        row_count=len(rows),
        column_count=width,
        delimited=buffer.getvalue(),
    )


def parse_workbook(data: bytes) -> list[SheetData]:
    """Decode every worksheet of an .xlsx/.xlsm workbook.

    The first row of each sheet becomes its headers; following rows become
    header-keyed records.

    Raises:
        ExtractionError: ENCRYPTED_DOCUMENT or PARSE_ERROR
    """
    if data.startswith(OLE_SIGNATURE):
        raise ExtractionError(
            ErrorType.ENCRYPTED_DOCUMENT, "This workbook is password protected."
        )

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ExtractionError(ErrorType.PARSE_ERROR, f"Workbook parse error: {exc}") from exc

    try:
        return [
            _read_sheet(sheet.title, list(sheet.iter_rows(values_only=True)))
            for sheet in workbook.worksheets
        ]
    except Exception as exc:
        raise ExtractionError(ErrorType.PARSE_ERROR, f"Workbook parse error: {exc}") from exc
    finally:
        workbook.close()
