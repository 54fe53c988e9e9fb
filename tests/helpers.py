"""Constants and spreadsheet builders shared by the tests."""

import io

from openpyxl import Workbook

AUDITOR = "auditor-1"


def make_workbook(rows: list[list], title: str = "Checklist") -> bytes:
    """Build an .xlsx file in memory with the given rows on its first sheet."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
