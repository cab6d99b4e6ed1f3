from pydantic import Field, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime
from models.audit_log import AUDIT_ACTIONS
from schemas.common import CamelModel


class AuditLogCreate(CamelModel):
    tenant_id: str
    table_name: str
    record_id: int
    changed_by: str
    action: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None

    @field_validator("action")
    @classmethod
    def known_action(cls, v: str) -> str:
        action = v.strip().upper()
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action '{v}'")
        return action


class AuditLogEntry(CamelModel):
    id: int
    table_name: str
    record_id: int
    action: str
    changed_by: str
    changed_at: Optional[datetime] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    # Keys whose value differs between old and new; filled for UPDATE rows.
    changed_fields: List[str] = Field(default_factory=list)
