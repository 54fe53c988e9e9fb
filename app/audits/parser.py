"""Parse uploaded checklist spreadsheets into ordered row records."""
import csv
import io
import logging
import zipfile
from datetime import date, datetime, time
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.audits.errors import ParseError
from app.audits.schemas import CellValue, ParsedSheet

logger = logging.getLogger(__name__)

XLSX_SIGNATURE = b"PK\x03\x04"
XLS_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"  # OLE2 compound file (legacy .xls)
EMPTY_HEADER = "__EMPTY"
TAB_SUFFIXES = {".tsv", ".tab"}


def parse_sheet(data: bytes, filename: str | None = None) -> ParsedSheet:
    """
    Read the first sheet of an uploaded file into row records.

    The first non-blank row is the header. Every following non-blank row
    becomes a mapping of header -> cell value. Empty cells are left out of
    the mapping, so records do not necessarily share the same keys.

    Supported inputs:
        - .xlsx workbooks (first worksheet, computed cell values)
        - UTF-8 delimited text (.csv, .tsv); cell values stay text

    Raises ParseError for anything else, including legacy .xls files and
    workbooks without a worksheet.
    """
    if not data:
        raise ParseError("The uploaded file is empty")

    if data.startswith(XLS_SIGNATURE):
        raise ParseError("Legacy .xls workbooks are not supported; save the file as .xlsx or .csv")

    if data.startswith(XLSX_SIGNATURE):
        sheet_name, rows = _read_workbook(data)
    else:
        sheet_name, rows = _read_delimited(data, filename)

    sheet = _rows_to_sheet(sheet_name, rows)
    if sheet.irregular_rows:
        logger.warning(
            f"Sheet '{sheet.sheet_name}': {len(sheet.irregular_rows)} of "
            f"{len(sheet.records)} rows do not match the columns {sheet.columns}"
        )
    return sheet


def _read_workbook(data: bytes) -> tuple[str, list[list[CellValue]]]:
    """Load the first worksheet of an .xlsx file."""
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise ParseError(f"Not a readable spreadsheet: {e}") from e

    try:
        if not workbook.worksheets:
            raise ParseError("The workbook contains no sheets")
        worksheet = workbook.worksheets[0]
        rows = [
            [_cell_value(value) for value in row]
            for row in worksheet.iter_rows(values_only=True)
        ]
        return worksheet.title, rows
    finally:
        workbook.close()


def _read_delimited(data: bytes, filename: str | None) -> tuple[str, list[list[CellValue]]]:
    """Read comma/semicolon/tab separated text."""
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError("The file is neither an .xlsx workbook nor UTF-8 delimited text") from e

    if "\x00" in text:
        raise ParseError("The file is neither an .xlsx workbook nor UTF-8 delimited text")

    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix in TAB_SUFFIXES:
        dialect = csv.excel_tab
    else:
        try:
            dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel

    try:
        rows = [list(row) for row in csv.reader(io.StringIO(text), dialect)]
    except csv.Error as e:
        raise ParseError(f"Malformed delimited text: {e}") from e

    sheet_name = Path(filename).stem if filename else "Sheet1"
    return sheet_name, rows


def _cell_value(value) -> CellValue:
    """Normalize an openpyxl cell value to text, number, boolean or None."""
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    return str(value)


def _is_empty(value: CellValue) -> bool:
    return value is None or value == ""


def _header_names(header_row: list[CellValue]) -> list[str]:
    """
    Turn the header row into unique column names.

    Blank headers become __EMPTY, __EMPTY_1, ...; repeated headers get a
    numeric suffix (Name, Name_1, Name_2).
    """
    names: list[str] = []
    seen: dict[str, int] = {}
    for value in header_row:
        base = EMPTY_HEADER if _is_empty(value) else str(value)
        name = base
        if base in seen:
            seen[base] += 1
            name = f"{base}_{seen[base]}"
            while name in seen:
                seen[base] += 1
                name = f"{base}_{seen[base]}"
        seen[name] = seen.get(name, 0)
        names.append(name)
    return names


def _rows_to_sheet(sheet_name: str, rows: list[list[CellValue]]) -> ParsedSheet:
    non_blank = [row for row in rows if not all(_is_empty(value) for value in row)]
    if not non_blank:
        return ParsedSheet(sheet_name=sheet_name)

    header_row, *data_rows = non_blank
    width = max(len(row) for row in non_blank)
    headers = _header_names(list(header_row) + [None] * (width - len(header_row)))

    records: list[dict[str, CellValue]] = []
    for row in data_rows:
        record = {
            headers[index]: value
            for index, value in enumerate(row)
            if not _is_empty(value)
        }
        records.append(record)

    columns = list(records[0].keys()) if records else []
    expected = set(columns)
    irregular = [index for index, record in enumerate(records) if set(record) != expected]

    return ParsedSheet(
        sheet_name=sheet_name,
        columns=columns,
        records=records,
        irregular_rows=irregular,
    )
