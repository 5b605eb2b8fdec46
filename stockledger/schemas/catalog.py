import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BusinessCreate(BaseModel):
    code: str = Field(min_length=2, max_length=64)
    name: str = Field(min_length=2, max_length=160)


class BusinessOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SupplierCreate(BaseModel):
    business_id: uuid.UUID | None = None
    name: str = Field(min_length=2, max_length=160)
    contact: str | None = Field(default=None, max_length=255)


class SupplierOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    name: str
    contact: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    business_id: uuid.UUID | None = None
    product_code: str = Field(min_length=2, max_length=64)
    name: str = Field(min_length=2, max_length=160)
    description: str | None = None
    unit_of_measure: str = Field(default="piece", max_length=24)
    reorder_threshold: int = Field(default=0, ge=0)
    supplier_id: uuid.UUID
    default_cost_price: Decimal | None = Field(default=None, ge=0)
    default_selling_price: Decimal | None = Field(default=None, ge=0)


class ProductOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    product_code: str
    name: str
    description: str | None
    unit_of_measure: str
    reorder_threshold: int
    supplier_id: uuid.UUID
    default_cost_price: Decimal | None
    default_selling_price: Decimal | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentMethodCreate(BaseModel):
    business_id: uuid.UUID | None = None
    name: str = Field(min_length=2, max_length=120)


class PaymentMethodOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    name: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerCreate(BaseModel):
    business_id: uuid.UUID | None = None
    customer_name: str = Field(min_length=2, max_length=160)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=320)


class CustomerOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    customer_name: str
    phone: str | None
    email: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
