import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockledger.models.enums import OrderPaymentMethod, OrderStatus, PaymentStatus
from stockledger.schemas.inventory import AllocationOut


class OrderItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    business_id: uuid.UUID | None = None
    customer_id: uuid.UUID
    order_number: str | None = Field(default=None, max_length=64)
    order_date: date | None = None
    payment_method: OrderPaymentMethod = OrderPaymentMethod.CASH
    discount_total: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    items: list[OrderItemCreate] = Field(min_length=1)
    fulfill_now: bool = False
    payment_method_id: uuid.UUID | None = None


class OrderItemOut(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total_amount: Decimal

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    order_date: date
    status: OrderStatus
    payment_method: OrderPaymentMethod
    payment_status: PaymentStatus
    subtotal: Decimal
    discount_total: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_at: datetime
    items: list[OrderItemOut] = []

    model_config = {"from_attributes": True}


class FulfillmentLineIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class FulfillRequest(BaseModel):
    payment_method_id: uuid.UUID | None = None
    items: list[FulfillmentLineIn] | None = None


class LineAllocationOut(BaseModel):
    product_id: uuid.UUID
    quantity: int
    cogs: Decimal
    allocations: list[AllocationOut]

    model_config = {"from_attributes": True}


class FulfillmentOut(BaseModel):
    order_id: uuid.UUID
    lines: list[LineAllocationOut]
    total_cogs: Decimal
    transaction_id: uuid.UUID | None = None


class ReverseRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=255)
    payment_method_id: uuid.UUID | None = None


class ReversalOut(BaseModel):
    order_id: uuid.UUID
    requested: int
    restored: int
    transaction_id: uuid.UUID | None = None
