import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.database import Base
from stockledger.models.enums import (
    AdjustmentDirection,
    BatchStatus,
    MovementType,
    ReferenceType,
    values_enum,
)


class Batch(Base):
    __tablename__ = "batches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    batch_number: Mapped[str] = mapped_column("batchNumber", String(100), unique=True, nullable=False)
    waybill_number: Mapped[str | None] = mapped_column("waybillNumber", String(100), nullable=True)
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        "supplierId",
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    received_date: Mapped[date] = mapped_column("receivedDate", Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[BatchStatus] = mapped_column(
        values_enum(BatchStatus, "batch_status"),
        default=BatchStatus.OPEN,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class InventoryEntry(Base):
    __tablename__ = "inventoryEntries"
    __table_args__ = (
        CheckConstraint(
            '"currentQuantity" >= 0 AND "currentQuantity" <= "quantityReceived"',
            name="ck_inventory_entries_current_quantity_range",
        ),
        Index("ix_inventoryEntries_product_fifo", "productId", "createdAt", "id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        "productId",
        ForeignKey("products.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    batch_id: Mapped[uuid.UUID] = mapped_column(
        "batchId",
        ForeignKey("batches.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    purchase_item_id: Mapped[uuid.UUID | None] = mapped_column(
        "purchaseItemId",
        ForeignKey("purchaseItems.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    cost_price: Mapped[Decimal] = mapped_column("costPrice", Numeric(12, 2), nullable=False)
    selling_price: Mapped[Decimal] = mapped_column("sellingPrice", Numeric(12, 2), nullable=False)
    quantity_received: Mapped[int] = mapped_column("quantityReceived", Integer, nullable=False)
    current_quantity: Mapped[int] = mapped_column("currentQuantity", Integer, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column("expiryDate", Date, nullable=True)
    warehouse_location: Mapped[str | None] = mapped_column("warehouseLocation", String(100), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column("idempotencyKey", String(200), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class InventoryMovement(Base):
    __tablename__ = "inventoryMovements"
    __table_args__ = (CheckConstraint('"quantity" > 0', name="ck_inventory_movements_quantity_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    inventory_entry_id: Mapped[uuid.UUID] = mapped_column(
        "inventoryEntryId",
        ForeignKey("inventoryEntries.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    movement_type: Mapped[MovementType] = mapped_column(
        "movementType",
        values_enum(MovementType, "movement_type"),
        nullable=False,
    )
    adjustment_direction: Mapped[AdjustmentDirection | None] = mapped_column(
        "adjustmentDirection",
        values_enum(AdjustmentDirection, "adjustment_direction"),
        nullable=True,
    )
    reference_id: Mapped[uuid.UUID | None] = mapped_column("referenceId", Uuid, index=True, nullable=True)
    reference_type: Mapped[ReferenceType | None] = mapped_column(
        "referenceType",
        values_enum(ReferenceType, "movement_reference_type"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        "createdById",
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )

    @property
    def signed_quantity(self) -> int:
        if self.movement_type == MovementType.OUT:
            return -self.quantity
        if self.movement_type == MovementType.ADJUSTMENT and self.adjustment_direction == AdjustmentDirection.DECREASE:
            return -self.quantity
        return self.quantity
