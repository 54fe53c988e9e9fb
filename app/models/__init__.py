from app.models.audit import Audit, AuditStatus
from app.models.audit_item import AuditItem, Remark
from app.models.evidence import Evidence
from app.models.template import Template

__all__ = ["Template", "Audit", "AuditStatus", "AuditItem", "Remark", "Evidence"]
