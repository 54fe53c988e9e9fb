"""Tests for the submission checks and the submitted transition."""

from uuid import uuid4

import pytest

from app.audits.errors import AuditNotEditable, IncompleteAudit, MissingEvidence
from app.audits.schemas import AuditItemState, EvidenceRef
from app.audits.submission import SubmissionGate, can_submit, missing_evidence, submission_blocker
from app.models import AuditStatus, Remark


def item(remark: Remark | None, with_evidence: bool = False) -> AuditItemState:
    item_id = uuid4()
    evidence = []
    if with_evidence:
        evidence = [EvidenceRef(id=uuid4(), file_name="a.jpg", file_path=f"evidence/{item_id}-1.jpg")]
    return AuditItemState(id=item_id, row_index=0, remark=remark, evidence=evidence)


class TestSubmissionChecks:
    def test_all_answered(self):
        items = [item(Remark.YES), item(Remark.NOT_APPLICABLE), item(Remark.UNAVAILABLE)]
        assert can_submit(items)
        assert submission_blocker(items) is None

    def test_no_with_evidence(self):
        assert can_submit([item(Remark.YES), item(Remark.NO, with_evidence=True)])

    def test_unanswered_item(self):
        blocker = submission_blocker([item(Remark.YES), item(None)])
        assert isinstance(blocker, IncompleteAudit)
        assert (blocker.completed, blocker.total) == (1, 2)

    def test_empty_audit(self):
        assert isinstance(submission_blocker([]), IncompleteAudit)
        assert not can_submit([])

    def test_no_without_evidence(self):
        bare = item(Remark.NO)
        blocker = submission_blocker([item(Remark.YES), bare])
        assert isinstance(blocker, MissingEvidence)
        assert blocker.item_ids == [bare.id]
        assert 'evidence for all "No" remarks' in str(blocker)

    def test_missing_evidence_reported_first(self):
        items = [item(Remark.NO), item(None)]
        assert isinstance(submission_blocker(items), MissingEvidence)

    def test_missing_evidence_ignores_other_remarks(self):
        items = [item(Remark.YES), item(Remark.UNAVAILABLE), item(None)]
        assert missing_evidence(items) == []


class TestSubmissionGate:
    def test_submit(self, repository, imported_audit):
        gate = SubmissionGate(repository)
        items = repository.fetch_items(imported_audit.audit_id)
        for state in items:
            state.remark = Remark.YES

        result = gate.submit(imported_audit.audit_id, items)

        assert result.status == AuditStatus.SUBMITTED.value
        assert result.submitted_at is not None
        assert result.progress.completion_percent == 100
        audit = repository.get_audit(imported_audit.audit_id)
        assert audit.status == AuditStatus.SUBMITTED.value

    def test_rejected_leaves_audit_unchanged(self, repository, imported_audit):
        gate = SubmissionGate(repository)
        items = repository.fetch_items(imported_audit.audit_id)

        with pytest.raises(IncompleteAudit):
            gate.submit(imported_audit.audit_id, items)

        audit = repository.get_audit(imported_audit.audit_id)
        assert audit.status == AuditStatus.IN_PROGRESS.value
        assert audit.submitted_at is None

    def test_submit_twice(self, repository, imported_audit):
        gate = SubmissionGate(repository)
        items = repository.fetch_items(imported_audit.audit_id)
        for state in items:
            state.remark = Remark.NOT_APPLICABLE
        gate.submit(imported_audit.audit_id, items)

        with pytest.raises(AuditNotEditable):
            gate.submit(imported_audit.audit_id, items)
