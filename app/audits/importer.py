"""Turn an uploaded checklist file into a template, an audit and its items."""
import logging
import re

from app.audits.parser import parse_sheet
from app.audits.repository import AuditRepository
from app.audits.schemas import ImportResult

logger = logging.getLogger(__name__)


def checklist_name(filename: str) -> str:
    """File name without its last extension ("site-a.checklist.xlsx" -> "site-a.checklist")."""
    return re.sub(r"\.[^/.]+$", "", filename)


def import_checklist(
    repository: AuditRepository,
    data: bytes,
    filename: str,
    user_id: str,
) -> ImportResult:
    """
    Parse an uploaded checklist and create the audit for it.

    The file is parsed completely before anything is written, and the
    template, audit and items are stored in one transaction. A ParseError
    therefore never leaves a partial import behind.
    """
    sheet = parse_sheet(data, filename)
    name = checklist_name(filename)

    template, audit = repository.import_sheet(
        template_title=name,
        template_description=f"Uploaded checklist from {filename}",
        audit_title=f"Audit - {name}",
        records=sheet.records,
        user_id=user_id,
    )
    logger.info(
        f"Imported {filename} for {user_id}: audit {audit.id} with {len(sheet.records)} items"
    )

    return ImportResult(
        audit_id=audit.id,
        template_id=template.id,
        title=audit.title,
        item_count=len(sheet.records),
        columns=sheet.columns,
        irregular_rows=sheet.irregular_rows,
    )
