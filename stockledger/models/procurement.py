import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.database import Base
from stockledger.models.enums import PurchaseStatus, values_enum


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    purchase_number: Mapped[str] = mapped_column("purchaseNumber", String(64), unique=True, nullable=False)
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        "supplierId",
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    batch_id: Mapped[uuid.UUID | None] = mapped_column(
        "batchId",
        ForeignKey("batches.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    status: Mapped[PurchaseStatus] = mapped_column(
        values_enum(PurchaseStatus, "purchase_status"),
        default=PurchaseStatus.PENDING,
        nullable=False,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column("totalAmount", Numeric(15, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        "createdById",
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    purchase_date: Mapped[date] = mapped_column("purchaseDate", Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class PurchaseItem(Base):
    __tablename__ = "purchaseItems"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id: Mapped[uuid.UUID] = mapped_column(
        "purchaseId",
        ForeignKey("purchases.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        "productId",
        ForeignKey("products.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column("unitCost", Numeric(12, 2), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column("totalCost", Numeric(15, 2), nullable=False)
    selling_price: Mapped[Decimal | None] = mapped_column("sellingPrice", Numeric(12, 2), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column("expiryDate", Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
