"""Tests for API routes."""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.core.config import settings
from app.models import AuditItem, AuditStatus
from tests.helpers import AUDITOR, make_workbook

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture(name="audit_id")
def audit_id_fixture(client: TestClient, checklist_xlsx: bytes) -> str:
    """Import the three-row checklist through the API."""
    response = client.post(
        "/audits/import",
        files={"file": ("site-a.xlsx", checklist_xlsx, XLSX_TYPE)},
    )
    assert response.status_code == 201
    return response.json()["audit_id"]


@pytest.fixture(name="item_ids")
def item_ids_fixture(client: TestClient, audit_id: str) -> list[str]:
    return [item["id"] for item in client.get(f"/audits/{audit_id}").json()["items"]]


def upload_evidence(client: TestClient, audit_id: str, item_id: str, name: str = "leak.jpg"):
    return client.post(
        f"/audits/{audit_id}/items/{item_id}/evidence",
        files={"file": (name, b"\xff\xd8\xff fake jpeg", "image/jpeg")},
    )


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, client: TestClient):
        """Test the health endpoint returns OK."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"

    def test_root_redirects_to_audits(self, client: TestClient):
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/audits"


class TestAuthRoutes:
    def test_header_user(self, client: TestClient):
        data = client.get("/auth/status").json()
        assert data == {"user_id": AUDITOR, "is_default_user": False}

    def test_default_user(self, client: TestClient):
        data = client.get("/auth/status", headers={"X-User-Id": ""}).json()
        assert data["user_id"] == settings.default_user_id
        assert data["is_default_user"] is True


class TestImportRoutes:
    """Tests for checklist import."""

    def test_import_xlsx(self, client: TestClient, checklist_xlsx: bytes):
        response = client.post(
            "/audits/import",
            files={"file": ("site-a.xlsx", checklist_xlsx, XLSX_TYPE)},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Audit - site-a"
        assert data["item_count"] == 3
        assert data["columns"] == ["Question", "Category"]

    def test_import_csv(self, client: TestClient):
        response = client.post(
            "/audits/import",
            files={"file": ("fire.csv", b"Check,Area\nAlarm tested?,Lobby\n", "text/csv")},
        )
        assert response.status_code == 201
        assert response.json()["item_count"] == 1

    def test_unreadable_file(self, client: TestClient):
        response = client.post(
            "/audits/import",
            files={"file": ("broken.xlsx", b"PK\x03\x04garbage", XLSX_TYPE)},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ParseError"

    def test_unsupported_extension(self, client: TestClient):
        response = client.post(
            "/audits/import",
            files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 400

    def test_list_audits(self, client: TestClient, audit_id: str):
        response = client.get("/audits", params={"auditor_id": AUDITOR})
        assert response.status_code == 200
        assert [audit["id"] for audit in response.json()] == [audit_id]

        assert client.get("/audits", params={"auditor_id": "nobody"}).json() == []


class TestAuditRoutes:
    def test_get_audit(self, client: TestClient, audit_id: str):
        response = client.get(f"/audits/{audit_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["audit"]["status"] == AuditStatus.IN_PROGRESS.value
        assert data["columns"] == ["Question", "Category"]
        assert [item["row_index"] for item in data["items"]] == [0, 1, 2]
        assert data["items"][2]["original_data"]["Category"] == "Security"
        assert data["progress"]["completion_percent"] == 0
        assert data["can_submit"] is False
        assert data["blocked_by"] == "IncompleteAudit"

    def test_audit_not_found(self, client: TestClient):
        response = client.get(f"/audits/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "AuditNotFound"

    def test_progress(self, client: TestClient, audit_id: str):
        data = client.get(f"/audits/{audit_id}/progress").json()
        assert data["progress"]["total"] == 3
        assert data["status"] == AuditStatus.IN_PROGRESS.value


class TestItemRoutes:
    def test_update_item(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.patch(
            f"/audits/{audit_id}/items/{item_ids[0]}",
            json={"remark": "yes", "observation": "Tagged and in date"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["item"]["remark"] == "yes"
        assert data["item"]["observation"] == "Tagged and in date"
        assert data["progress"]["completion_percent"] == 33

        # Not written yet; the edit is still waiting for its quiet window
        status = client.get(f"/audits/{audit_id}/progress").json()["save_status"]
        assert status["pending"] == [item_ids[0]]

    def test_invalid_remark(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.patch(
            f"/audits/{audit_id}/items/{item_ids[0]}",
            json={"observation": "ok", "remark": "maybe"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidEnumValue"

        item = client.get(f"/audits/{audit_id}").json()["items"][0]
        assert item["observation"] == ""

    def test_empty_update(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.patch(f"/audits/{audit_id}/items/{item_ids[0]}", json={})
        assert response.status_code == 400

    def test_item_not_found(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.patch(f"/audits/{audit_id}/items/{uuid4()}", json={"remark": "yes"})
        assert response.status_code == 404

    def test_other_user_forbidden(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.patch(
            f"/audits/{audit_id}/items/{item_ids[0]}",
            json={"remark": "yes"},
            headers={"X-User-Id": "someone-else"},
        )
        assert response.status_code == 403
        assert response.json()["error"] == "NotAuditAssignee"

    def test_evidence_upload_and_download(
        self, client: TestClient, audit_id: str, item_ids: list[str], storage
    ):
        response = upload_evidence(client, audit_id, item_ids[1])
        assert response.status_code == 201
        data = response.json()
        evidence = data["evidence"]
        assert evidence["file_name"] == "leak.jpg"
        assert evidence["file_path"].startswith(f"evidence/{item_ids[1]}-")
        assert evidence["file_path"].endswith(".jpg")
        assert data["progress"]["evidence_count"] == 1
        assert storage.exists(evidence["file_path"])

        download = client.get(f"/audits/{audit_id}/items/{item_ids[1]}/evidence/{evidence['id']}")
        assert download.status_code == 200
        assert download.content == b"\xff\xd8\xff fake jpeg"

    def test_evidence_of_other_item(self, client: TestClient, audit_id: str, item_ids: list[str]):
        evidence_id = upload_evidence(client, audit_id, item_ids[1]).json()["evidence"]["id"]
        response = client.get(f"/audits/{audit_id}/items/{item_ids[0]}/evidence/{evidence_id}")
        assert response.status_code == 404


class TestSaveAndSubmitRoutes:
    def answer_all(self, client: TestClient, audit_id: str, item_ids: list[str]):
        for item_id, remark in zip(item_ids, ("yes", "no", "not_applicable")):
            response = client.patch(f"/audits/{audit_id}/items/{item_id}", json={"remark": remark})
            assert response.status_code == 200

    def test_save(self, client: TestClient, audit_id: str, item_ids: list[str], session: Session):
        client.patch(f"/audits/{audit_id}/items/{item_ids[0]}", json={"audit_details": "Checked B1"})

        response = client.post(f"/audits/{audit_id}/save")
        assert response.status_code == 200
        assert response.json()["save_status"] == {"pending": [], "failed": {}}

        row = session.get(AuditItem, UUID(item_ids[0]))
        assert row.audit_details == "Checked B1"

    def test_submit_requires_evidence(self, client: TestClient, audit_id: str, item_ids: list[str]):
        self.answer_all(client, audit_id, item_ids)

        response = client.post(f"/audits/{audit_id}/submit")
        assert response.status_code == 400
        assert response.json()["error"] == "MissingEvidence"
        assert client.get(f"/audits/{audit_id}").json()["audit"]["status"] == "in_progress"

    def test_submit(self, client: TestClient, audit_id: str, item_ids: list[str]):
        self.answer_all(client, audit_id, item_ids)
        upload_evidence(client, audit_id, item_ids[1])

        response = client.post(f"/audits/{audit_id}/submit")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == AuditStatus.SUBMITTED.value
        assert data["submitted_at"] is not None
        assert data["progress"]["issues"] == 1

        detail = client.get(f"/audits/{audit_id}").json()
        assert detail["audit"]["status"] == AuditStatus.SUBMITTED.value
        assert [item["remark"] for item in detail["items"]] == ["yes", "no", "not_applicable"]

    def test_edit_after_submit(self, client: TestClient, audit_id: str, item_ids: list[str]):
        self.answer_all(client, audit_id, item_ids)
        upload_evidence(client, audit_id, item_ids[1])
        client.post(f"/audits/{audit_id}/submit")

        response = client.patch(f"/audits/{audit_id}/items/{item_ids[0]}", json={"remark": "no"})
        assert response.status_code == 400
        assert response.json()["error"] == "AuditNotEditable"

        response = upload_evidence(client, audit_id, item_ids[0])
        assert response.status_code == 400

        response = client.post(f"/audits/{audit_id}/submit")
        assert response.status_code == 400

    def test_submit_incomplete(self, client: TestClient, audit_id: str, item_ids: list[str]):
        response = client.post(f"/audits/{audit_id}/submit")
        assert response.status_code == 400
        assert response.json()["error"] == "IncompleteAudit"


class TestEmptyChecklist:
    def test_header_only_checklist(self, client: TestClient):
        data = make_workbook([["Question", "Category"]])
        response = client.post("/audits/import", files={"file": ("empty.xlsx", data, XLSX_TYPE)})
        assert response.status_code == 201
        audit_id = response.json()["audit_id"]

        detail = client.get(f"/audits/{audit_id}").json()
        assert detail["items"] == []
        assert detail["progress"]["completion_percent"] == 0
        assert detail["can_submit"] is False
