#!/usr/bin/env python3
"""
Import a checklist spreadsheet as a new audit without the web server.

Usage:
    python scripts/import_checklist.py checklist.xlsx --auditor USER_ID

Options:
    --auditor         Id of the auditor who will own the audit (required)
    --database-url    Database to import into (defaults to DATABASE_URL / .env)
    --dry-run         Parse the file and show what would be imported
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.audits.errors import AuditEngineError
from app.audits.importer import import_checklist
from app.audits.parser import parse_sheet
from app.audits.repository import AuditRepository
from app.core.config import settings
from app.core.database import build_engine, create_db_and_tables


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import a checklist file as an audit")
    parser.add_argument("file", help="Path to an .xlsx, .csv or .tsv checklist")
    parser.add_argument("--auditor", required=True, help="Auditor user id")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: {path} does not exist.")
        return 1

    data = path.read_bytes()

    try:
        if args.dry_run:
            sheet = parse_sheet(data, path.name)
            print(f"Sheet '{sheet.sheet_name}': {len(sheet.records)} rows")
            print(f"  Columns: {sheet.columns}")
            if sheet.irregular_rows:
                print(f"  Rows with different columns: {sheet.irregular_rows}")
            print("--- DRY RUN: No changes made ---")
            return 0

        engine = build_engine(args.database_url)
        create_db_and_tables(engine)
        result = import_checklist(AuditRepository(engine), data, path.name, args.auditor)
    except AuditEngineError as e:
        print(f"Error: {e}")
        return 1

    print(f"Created '{result.title}' ({result.audit_id}) with {result.item_count} items")
    print(f"  Columns: {result.columns}")
    if result.irregular_rows:
        print(f"  Rows with different columns: {result.irregular_rows}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
