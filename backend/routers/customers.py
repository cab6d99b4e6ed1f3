from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from utils.auth_utils import get_user_identifier
from utils.permissions import AR, require_permission
from utils.tenancy import get_tenant_id
from crud import customers as crud_customers
from schemas.common import ApiResponse, Pagination, MAX_PAGE_SIZE
from schemas.customers import Customer, CustomerCreate, CustomerUpdate, NextCode

router = APIRouter(prefix="/customers", tags=["Customers"])
logger = logging.getLogger("customers")


@router.get("/next-code", response_model=ApiResponse[NextCode])
def read_next_customer_code(
    prefix: str,
    width: int = Query(3, ge=1, le=10),
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    code = crud_customers.next_customer_code(db, tenant_id, prefix, width)
    return ApiResponse[NextCode](data=NextCode(code=code))


@router.get("/", response_model=ApiResponse[List[Customer]])
def read_customers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    search: Optional[str] = None,
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    customers, total = crud_customers.get_customers(
        db, tenant_id, search=search, include_inactive=include_inactive, page=page, page_size=page_size
    )
    return ApiResponse[List[Customer]](
        data=[Customer.model_validate(c) for c in customers],
        pagination=Pagination.build(page, page_size, total),
    )


@router.get("/{customer_id}", response_model=ApiResponse[Customer])
def read_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "view")),
    tenant_id: str = Depends(get_tenant_id),
):
    return ApiResponse[Customer](data=Customer.model_validate(crud_customers.get_customer(db, customer_id, tenant_id)))


@router.post("/", response_model=ApiResponse[Customer], status_code=status.HTTP_201_CREATED)
def create_customer(
    customer: CustomerCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "create")),
    tenant_id: str = Depends(get_tenant_id),
):
    db_customer = crud_customers.create_customer(db, customer, tenant_id, get_user_identifier(user))
    return ApiResponse[Customer](data=Customer.model_validate(db_customer), message="Customer created successfully")


@router.put("/{customer_id}", response_model=ApiResponse[Customer])
def update_customer(
    customer_id: int,
    customer: CustomerUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "edit")),
    tenant_id: str = Depends(get_tenant_id),
):
    db_customer = crud_customers.update_customer(db, customer_id, customer, tenant_id, get_user_identifier(user))
    return ApiResponse[Customer](data=Customer.model_validate(db_customer), message="Customer updated successfully")


@router.delete("/{customer_id}", response_model=ApiResponse[None])
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(AR, "delete")),
    tenant_id: str = Depends(get_tenant_id),
):
    crud_customers.delete_customer(db, customer_id, tenant_id, get_user_identifier(user))
    return ApiResponse[None](message="Customer deleted successfully")
