from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from database import get_db
from utils.permissions import SETTINGS, require_permission
from utils.tenancy import get_tenant_id
from crud import audit_log as crud_audit_log
from schemas.common import ApiResponse, Pagination, MAX_PAGE_SIZE
from schemas.audit_log import AuditLogEntry

router = APIRouter(prefix="/audit-log", tags=["Audit Log"])


@router.get("/", response_model=ApiResponse[List[AuditLogEntry]])
def read_audit_log(
    table_name: Optional[str] = Query(None, alias="tableName"),
    record_id: Optional[int] = Query(None, alias="recordId"),
    changed_by: Optional[str] = Query(None, alias="changedBy"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(SETTINGS, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    """History of changes, newest first. Filter by tableName and recordId for one record."""
    rows, total = crud_audit_log.get_audit_trail(
        db, tenant_id,
        table_name=table_name, record_id=record_id, changed_by=changed_by,
        date_from=date_from, date_to=date_to, page=page, page_size=page_size,
    )
    entries = [
        AuditLogEntry.model_validate(row).model_copy(
            update={"changed_fields": crud_audit_log.changed_fields(row.old_values, row.new_values)}
        )
        for row in rows
    ]
    return ApiResponse[List[AuditLogEntry]](data=entries, pagination=Pagination.build(page, page_size, total))
