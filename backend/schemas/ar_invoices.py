from pydantic import Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.ar_invoices import ARInvoiceStatus
from schemas.common import CamelModel


class ARPaymentCreate(CamelModel):
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None


class ARPayment(CamelModel):
    id: int
    payment_no: str
    payment_date: date
    ar_invoice_id: int
    amount: Decimal
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class ARInvoice(CamelModel):
    id: int
    invoice_no: str
    invoice_date: date
    due_date: Optional[date] = None
    customer_id: int
    customer_code: str
    customer_name: str
    reference: Optional[str] = None
    description: Optional[str] = None
    sub_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    net_total: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    currency_code: str
    exchange_rate: Decimal
    status: ARInvoiceStatus
    is_void: bool
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ARInvoiceDetail(ARInvoice):
    payments: List[ARPayment] = []


class OutstandingDocument(CamelModel):
    id: int
    document_type: str
    document_no: str
    document_date: date
    due_date: Optional[date] = None
    net_total: Decimal
    outstanding_amount: Decimal
    currency_code: str
