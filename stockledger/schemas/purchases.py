import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockledger.models.enums import PurchaseStatus


class PurchaseItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_cost: Decimal = Field(ge=0)
    selling_price: Decimal | None = Field(default=None, ge=0)
    expiry_date: date | None = None


class PurchaseCreate(BaseModel):
    business_id: uuid.UUID | None = None
    supplier_id: uuid.UUID
    purchase_number: str | None = Field(default=None, max_length=64)
    batch_id: uuid.UUID | None = None
    purchase_date: date | None = None
    notes: str | None = None
    items: list[PurchaseItemCreate] = Field(min_length=1)


class ReceivedLineIn(BaseModel):
    purchase_item_id: uuid.UUID
    quantity_received: int = Field(ge=0)
    expiry_date: date | None = None
    warehouse_location: str | None = Field(default=None, max_length=100)


class PurchaseReceiveRequest(BaseModel):
    batch_id: uuid.UUID | None = None
    payment_method_id: uuid.UUID | None = None
    overage_tolerance: int | None = Field(default=None, ge=0)
    lines: list[ReceivedLineIn] = Field(min_length=1)


class PurchaseItemOut(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    quantity_received: int = 0
    unit_cost: Decimal
    total_cost: Decimal
    selling_price: Decimal | None
    expiry_date: date | None

    model_config = {"from_attributes": True}


class PurchaseOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    purchase_number: str
    supplier_id: uuid.UUID
    batch_id: uuid.UUID | None
    status: PurchaseStatus
    total_amount: Decimal
    notes: str | None
    purchase_date: date
    created_at: datetime
    items: list[PurchaseItemOut] = []

    model_config = {"from_attributes": True}
