from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from utils.auth_utils import get_user_identifier
from utils.permissions import AR, require_permission
from utils.tenancy import get_tenant_id
from crud import ar_invoices as crud_ar_invoices
from crud import customers as crud_customers
from models.ar_invoices import ARInvoiceStatus
from schemas.common import ApiResponse, Pagination, MAX_PAGE_SIZE
from schemas.ar_invoices import ARInvoice, ARInvoiceDetail, ARPayment, ARPaymentCreate, OutstandingDocument

router = APIRouter(prefix="/ar", tags=["Accounts Receivable"])
logger = logging.getLogger("ar_invoices")


@router.get("/invoices", response_model=ApiResponse[List[ARInvoice]])
def read_ar_invoices(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    status: Optional[ARInvoiceStatus] = None,
    customer_id: Optional[int] = Query(None, alias="customerId"),
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    invoices, total = crud_ar_invoices.get_ar_invoices(
        db, tenant_id, status=status, customer_id=customer_id, page=page, page_size=page_size
    )
    return ApiResponse[List[ARInvoice]](
        data=[ARInvoice.model_validate(i) for i in invoices],
        pagination=Pagination.build(page, page_size, total),
    )


@router.get("/invoices/{ar_invoice_id}", response_model=ApiResponse[ARInvoiceDetail])
def read_ar_invoice(
    ar_invoice_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    ar_invoice = crud_ar_invoices.get_ar_invoice(db, ar_invoice_id, tenant_id)
    return ApiResponse[ARInvoiceDetail](data=ARInvoiceDetail.model_validate(ar_invoice))


@router.post("/invoices/{ar_invoice_id}/payments", response_model=ApiResponse[ARPayment], status_code=status.HTTP_201_CREATED)
def create_ar_payment(
    ar_invoice_id: int,
    payment: ARPaymentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "create")),
    tenant_id: str = Depends(get_tenant_id),
):
    db_payment = crud_ar_invoices.record_payment(
        db, ar_invoice_id, tenant_id, payment.amount, get_user_identifier(user),
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        reference=payment.reference,
    )
    return ApiResponse[ARPayment](data=ARPayment.model_validate(db_payment), message="Payment recorded successfully")


@router.get("/customers/{customer_id}/outstanding", response_model=ApiResponse[List[OutstandingDocument]])
def read_outstanding_documents(
    customer_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    crud_customers.get_customer(db, customer_id, tenant_id)
    documents = crud_ar_invoices.get_outstanding_documents(db, tenant_id, customer_id)
    return ApiResponse[List[OutstandingDocument]](data=[OutstandingDocument(**d) for d in documents])
