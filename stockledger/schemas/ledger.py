import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockledger.models.enums import ExpenseStatus, ReferenceType, TransactionStatus, TransactionType


class TransactionCreate(BaseModel):
    business_id: uuid.UUID | None = None
    transaction_type: TransactionType
    amount: Decimal = Field(description="Signed: positive is money in, negative is money out")
    payment_method_id: uuid.UUID | None = None
    reference_type: ReferenceType | None = None
    reference_id: uuid.UUID | None = None
    description: str | None = Field(default=None, max_length=255)
    payment_date: datetime | None = None
    pending: bool = False


class TransactionOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    transaction_type: TransactionType
    amount: Decimal
    payment_method_id: uuid.UUID | None
    status: TransactionStatus
    reference_id: uuid.UUID | None
    reference_type: ReferenceType | None
    processed_by_id: uuid.UUID | None
    description: str | None
    void_reason: str | None
    voided_at: datetime | None
    payment_date: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class VoidRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


class BalanceOut(BaseModel):
    business_id: uuid.UUID
    as_of: str
    balance: Decimal


class ExpenseCreate(BaseModel):
    business_id: uuid.UUID | None = None
    name: str = Field(min_length=2, max_length=160)
    category: str = Field(min_length=2, max_length=120)
    amount: Decimal = Field(gt=0)
    note: str | None = None
    pending: bool = False
    payment_method_id: uuid.UUID | None = None
    incurred_at: datetime | None = None


class ExpenseOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    name: str
    category: str
    amount: Decimal
    status: ExpenseStatus
    note: str | None
    incurred_at: datetime
    created_at: datetime
    transaction_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}
