from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from eshop.api.deps import DB, AdminRateLimit, CustomerRateLimit
from eshop.models.customer import CustomerType
from eshop.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerListResponse,
)
from eshop.schemas.order import OrderResponse
from eshop.services.customer_service import CustomerService

router = APIRouter(tags=["Customers"], dependencies=[AdminRateLimit])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Name, email or phone"),
    customer_type: Optional[CustomerType] = Query(None),
):
    """Get paginated list of customers."""
    service = CustomerService(db)
    skip = (page - 1) * size

    customers, total = await service.get_customers(
        search=search,
        customer_type=customer_type,
        skip=skip,
        limit=size,
    )

    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/by-email", response_model=CustomerResponse)
async def get_customer_by_email(email: str, db: DB):
    customer = await CustomerService(db).get_customer_by_email(email)
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found"
        )
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: uuid.UUID, db: DB):
    customer = await CustomerService(db).get_customer_by_id(customer_id)
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found"
        )
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}/orders", response_model=list[OrderResponse])
async def get_customer_orders(customer_id: uuid.UUID, db: DB):
    """Orders of a customer, newest first."""
    orders = await CustomerService(db).get_customer_orders(customer_id)
    return [OrderResponse.model_validate(o) for o in orders]


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[CustomerRateLimit],
)
async def create_customer(data: CustomerCreate, db: DB):
    customer = await CustomerService(db).create_customer(data.model_dump())
    return CustomerResponse.model_validate(customer)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: uuid.UUID, data: CustomerUpdate, db: DB):
    customer = await CustomerService(db).update_customer(customer_id, data.model_dump(exclude_unset=True))
    return CustomerResponse.model_validate(customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: uuid.UUID, db: DB):
    """Delete a customer. Customers with orders are rejected with 409."""
    await CustomerService(db).delete_customer(customer_id)
