from pydantic import AliasChoices, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.sales_documents import DocumentType, DocumentStatus, TransferStatus
from schemas.common import CamelModel


class SalesLineInput(CamelModel):
    # Present when editing an existing line; absent for new lines.
    line_id: Optional[int] = Field(None, validation_alias=AliasChoices("lineId", "line_id", "id"))
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)
    uom_code: Optional[str] = None
    uom_rate: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    discount_text: Optional[str] = None
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    tax_code: Optional[str] = None
    tax_rate: Decimal = Field(Decimal("0"), ge=0)
    tax_amount: Optional[Decimal] = Field(None, ge=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)


class SalesDocumentHeaderInput(CamelModel):
    document_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("documentDate", "docDate", "document_date")
    )
    due_date: Optional[date] = None
    reference: Optional[str] = None
    description: Optional[str] = None
    bill_to_address: Optional[str] = None
    ship_to_address: Optional[str] = None
    currency_code: Optional[str] = Field(None, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=0)
    is_tax_inclusive: Optional[bool] = None
    rounding_amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = Field(None, ge=0)
    change_amount: Optional[Decimal] = Field(None, ge=0)


class SalesDocumentCreate(SalesDocumentHeaderInput):
    customer_id: int
    details: List[SalesLineInput] = Field(
        ..., validation_alias=AliasChoices("details", "items")
    )


class SalesDocumentUpdate(SalesDocumentHeaderInput):
    # None keeps the current lines.
    details: Optional[List[SalesLineInput]] = Field(
        None, validation_alias=AliasChoices("details", "items")
    )


class LineTransfer(CamelModel):
    line_id: int = Field(..., validation_alias=AliasChoices("lineId", "line_id"))
    transfer_qty: Decimal = Field(..., ge=0, validation_alias=AliasChoices("transferQty", "transfer_qty"))


class TransferRequest(CamelModel):
    target_type: str
    line_transfers: Optional[List[LineTransfer]] = None
    document_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("documentDate", "docDate", "document_date")
    )


class VoidRequest(CamelModel):
    reason: Optional[str] = None


class SalesDocumentLine(CamelModel):
    id: int
    line_no: int
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Decimal
    uom_code: Optional[str] = None
    uom_rate: Decimal
    base_quantity: Decimal
    unit_price: Decimal
    discount_text: Optional[str] = None
    discount_amount: Decimal
    sub_total: Decimal
    tax_code: Optional[str] = None
    tax_rate: Decimal
    tax_amount: Decimal
    unit_cost: Decimal
    outstanding_qty: Decimal
    transferred_qty: Decimal
    source_line_id: Optional[int] = None


class SalesDocumentSummary(CamelModel):
    id: int
    document_type: DocumentType
    document_no: str
    document_date: date
    due_date: Optional[date] = None
    customer_id: int
    customer_code: str
    customer_name: str
    reference: Optional[str] = None
    status: DocumentStatus
    transfer_status: TransferStatus
    is_posted: bool
    is_void: bool
    currency_code: str
    net_total: Decimal


class SalesDocument(SalesDocumentSummary):
    tenant_id: Optional[str] = None
    description: Optional[str] = None
    bill_to_address: Optional[str] = None
    ship_to_address: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    ar_invoice_id: Optional[int] = None
    exchange_rate: Decimal
    is_tax_inclusive: bool
    sub_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    rounding_amount: Decimal
    net_total_local: Decimal
    paid_amount: Decimal
    change_amount: Decimal
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    details: List[SalesDocumentLine] = Field(default_factory=list, validation_alias=AliasChoices("lines", "details"))


class PostResult(CamelModel):
    sales_id: int
    ar_invoice_id: int
