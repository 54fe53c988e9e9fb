"""Shared test fixtures."""

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.audits.importer import import_checklist
from app.audits.repository import AuditRepository
from app.audits.sessions import AuditSessions, get_audit_sessions
from app.audits.storage import EvidenceStorage, get_evidence_storage
from app.core.database import build_engine, create_db_and_tables
from app.main import app
from tests.helpers import AUDITOR, make_workbook


@pytest.fixture(name="engine")
def engine_fixture(tmp_path):
    """Create a throw-away SQLite database for testing."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="repository")
def repository_fixture(engine) -> AuditRepository:
    return AuditRepository(engine)


@pytest.fixture(name="scheduler")
def scheduler_fixture():
    """A scheduler that is never started; timers stay pending until flushed by hand."""
    return AsyncIOScheduler()


@pytest.fixture(name="sessions")
def sessions_fixture(repository: AuditRepository, scheduler) -> AuditSessions:
    return AuditSessions(repository, scheduler, window_seconds=1.0)


@pytest.fixture(name="storage")
def storage_fixture(tmp_path) -> EvidenceStorage:
    return EvidenceStorage(tmp_path / "evidence_store")


@pytest.fixture(name="client")
def client_fixture(sessions: AuditSessions, storage: EvidenceStorage):
    """Create a test client wired to the test database and evidence store."""
    app.dependency_overrides[get_audit_sessions] = lambda: sessions
    app.dependency_overrides[get_evidence_storage] = lambda: storage
    client = TestClient(app, headers={"X-User-Id": AUDITOR})
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="checklist_xlsx")
def checklist_xlsx_fixture() -> bytes:
    """A three-row checklist with Question and Category columns."""
    return make_workbook([
        ["Question", "Category"],
        ["Fire extinguishers inspected?", "Safety"],
        ["Emergency exits unobstructed?", "Safety"],
        ["Visitor log maintained?", "Security"],
    ])


@pytest.fixture(name="imported_audit")
def imported_audit_fixture(repository: AuditRepository, checklist_xlsx: bytes):
    """The three-row checklist imported for AUDITOR."""
    return import_checklist(repository, checklist_xlsx, "site-a.xlsx", AUDITOR)
