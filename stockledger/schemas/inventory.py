import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockledger.models.enums import AdjustmentDirection, BatchStatus, MovementType, ReferenceType


class BatchCreate(BaseModel):
    business_id: uuid.UUID | None = None
    batch_number: str = Field(min_length=1, max_length=100)
    supplier_id: uuid.UUID
    received_date: date | None = None
    waybill_number: str | None = Field(default=None, max_length=100)
    notes: str | None = None


class BatchOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    batch_number: str
    waybill_number: str | None
    supplier_id: uuid.UUID
    received_date: date
    notes: str | None
    status: BatchStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class ReceiveStockRequest(BaseModel):
    product_id: uuid.UUID
    batch_id: uuid.UUID
    cost_price: Decimal = Field(ge=0)
    selling_price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    expiry_date: date | None = None
    warehouse_location: str | None = Field(default=None, max_length=100)
    notes: str | None = None


class InventoryEntryOut(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    product_id: uuid.UUID
    batch_id: uuid.UUID
    purchase_item_id: uuid.UUID | None
    cost_price: Decimal
    selling_price: Decimal
    quantity_received: int
    current_quantity: int
    expiry_date: date | None
    warehouse_location: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementOut(BaseModel):
    id: uuid.UUID
    inventory_entry_id: uuid.UUID
    quantity: int
    signed_quantity: int
    movement_type: MovementType
    adjustment_direction: AdjustmentDirection | None
    reference_id: uuid.UUID | None
    reference_type: ReferenceType | None
    notes: str | None
    created_by_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StockAdjustRequest(BaseModel):
    product_id: uuid.UUID
    direction: AdjustmentDirection
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=255)
    notes: str | None = None
    unit_cost: Decimal | None = Field(default=None, ge=0)
    cost_policy: str | None = None
    post_transaction: bool | None = None
    payment_method_id: uuid.UUID | None = None


class EntryAdjustRequest(BaseModel):
    delta: int = Field(description="Signed change to the entry's current quantity")
    reason: str = Field(min_length=1, max_length=255)


class AllocationOut(BaseModel):
    entry_id: uuid.UUID
    batch_id: uuid.UUID
    quantity_taken: int
    unit_cost: Decimal
    cost: Decimal

    model_config = {"from_attributes": True}


class StockAdjustmentOut(BaseModel):
    adjustment_id: uuid.UUID
    product_id: uuid.UUID
    direction: AdjustmentDirection
    quantity: int
    value: Decimal
    entry_ids: list[uuid.UUID]
    allocations: list[AllocationOut]
    transaction_id: uuid.UUID | None = None


class AvailableOut(BaseModel):
    product_id: uuid.UUID
    available: int


class ValuationOut(BaseModel):
    product_id: uuid.UUID
    on_hand: int
    stock_value: Decimal
    weighted_average_cost: Decimal | None
    last_cost: Decimal | None

    model_config = {"from_attributes": True}


class StockSummaryOut(BaseModel):
    product_id: uuid.UUID
    product_code: str
    product_name: str
    on_hand: int
    reorder_threshold: int
    status: str
    last_movement_at: datetime | None
    warehouse_locations: list[str]
    batch_numbers: list[str]

    model_config = {"from_attributes": True}
