from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from utils.auth_utils import get_user_identifier
from utils.permissions import SALES, require_permission
from utils.tenancy import get_tenant_id
from crud import sales_documents as crud_sales
from models.sales_documents import DocumentType, DocumentStatus
from schemas.common import ApiResponse, Pagination, MAX_PAGE_SIZE
from schemas.sales_documents import (
    SalesDocument as SalesDocumentSchema,
    SalesDocumentSummary,
    SalesDocumentLine as SalesDocumentLineSchema,
    SalesDocumentCreate,
    SalesDocumentUpdate,
    TransferRequest,
    VoidRequest,
    PostResult,
)

router = APIRouter(prefix="/sales", tags=["Sales"])
logger = logging.getLogger("sales")

# URL segment -> document type served under it.
SALES_PATHS = {
    "quotations": DocumentType.QUOTATION,
    "orders": DocumentType.SALES_ORDER,
    "delivery-orders": DocumentType.DELIVERY_ORDER,
    "invoices": DocumentType.INVOICE,
    "cash-sales": DocumentType.CASH_SALE,
    "credit-notes": DocumentType.CREDIT_NOTE,
    "debit-notes": DocumentType.DEBIT_NOTE,
}


def _document_response(document, message: Optional[str] = None) -> ApiResponse[SalesDocumentSchema]:
    return ApiResponse[SalesDocumentSchema](data=SalesDocumentSchema.model_validate(document), message=message)


def _register_document_routes(path: str, document_type: DocumentType):
    label = document_type.value.replace("_", " ").title()
    slug = document_type.value.lower()

    @router.get(f"/{path}", response_model=ApiResponse[List[SalesDocumentSummary]], name=f"list_{slug}")
    def list_documents(
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
        status: Optional[DocumentStatus] = None,
        customer_id: Optional[int] = Query(None, alias="customerId"),
        search: Optional[str] = None,
        date_from: Optional[date] = Query(None, alias="dateFrom"),
        date_to: Optional[date] = Query(None, alias="dateTo"),
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "view")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        documents, total = crud_sales.get_documents(
            db, tenant_id, document_type,
            status=status, customer_id=customer_id, search=search,
            date_from=date_from, date_to=date_to, page=page, page_size=page_size,
        )
        return ApiResponse[List[SalesDocumentSummary]](
            data=[SalesDocumentSummary.model_validate(d) for d in documents],
            pagination=Pagination.build(page, page_size, total),
        )

    @router.get(f"/{path}/{{document_id}}", response_model=ApiResponse[SalesDocumentSchema], name=f"get_{slug}")
    def read_document(
        document_id: int,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "view")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        return _document_response(crud_sales.get_document(db, document_id, tenant_id, document_type))

    @router.post(f"/{path}", response_model=ApiResponse[SalesDocumentSchema], status_code=status.HTTP_201_CREATED, name=f"create_{slug}")
    def create_document(
        payload: SalesDocumentCreate,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "create")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        document = crud_sales.create_document(db, document_type, payload, tenant_id, get_user_identifier(user))
        return _document_response(document, f"{label} {document.document_no} created")

    @router.put(f"/{path}/{{document_id}}", response_model=ApiResponse[SalesDocumentSchema], name=f"update_{slug}")
    def update_document(
        document_id: int,
        payload: SalesDocumentUpdate,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "edit")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        document = crud_sales.update_document(db, document_id, document_type, payload, tenant_id, get_user_identifier(user))
        return _document_response(document, f"{label} updated successfully")

    @router.delete(f"/{path}/{{document_id}}", response_model=ApiResponse[None], name=f"delete_{slug}")
    def delete_document(
        document_id: int,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "delete")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        deleted = crud_sales.delete_document(db, document_id, document_type, tenant_id, get_user_identifier(user))
        return ApiResponse[None](message=f"{label} deleted" if deleted else f"{label} voided")

    @router.post(f"/{path}/{{document_id}}/void", response_model=ApiResponse[SalesDocumentSchema], name=f"void_{slug}")
    def void_document(
        document_id: int,
        payload: Optional[VoidRequest] = None,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "void")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        document = crud_sales.void_document(
            db, document_id, document_type, tenant_id, get_user_identifier(user),
            reason=payload.reason if payload else None,
        )
        return _document_response(document, "Document voided")

    @router.post(f"/{path}/{{document_id}}/transfer", response_model=ApiResponse[SalesDocumentSchema], name=f"transfer_{slug}")
    def transfer_document(
        document_id: int,
        payload: TransferRequest,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "create")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        target = crud_sales.transfer_document(db, document_id, document_type, payload, tenant_id, get_user_identifier(user))
        return _document_response(target, f"Transferred to {target.document_type.value} {target.document_no}")

    @router.get(f"/{path}/{{document_id}}/transferable-lines", response_model=ApiResponse[List[SalesDocumentLineSchema]], name=f"transferable_lines_{slug}")
    def read_transferable_lines(
        document_id: int,
        db: Session = Depends(get_db),
        user: dict = Depends(require_permission(SALES, "view")),
        tenant_id: str = Depends(get_tenant_id),
    ):
        lines = crud_sales.get_transferable_lines(db, document_id, document_type, tenant_id)
        return ApiResponse[List[SalesDocumentLineSchema]](data=[SalesDocumentLineSchema.model_validate(l) for l in lines])


for _path, _document_type in SALES_PATHS.items():
    _register_document_routes(_path, _document_type)


@router.post("/invoices/{document_id}/post", response_model=ApiResponse[PostResult])
def post_invoice(
    document_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(SALES, "post")),
    tenant_id: str = Depends(get_tenant_id),
):
    """Post an invoice that has no AR invoice yet (rows stored before auto-posting)."""
    document = crud_sales.post_document(db, document_id, tenant_id, get_user_identifier(user))
    return ApiResponse[PostResult](
        data=PostResult(sales_id=document.id, ar_invoice_id=document.ar_invoice_id),
        message="Invoice posted successfully",
    )
