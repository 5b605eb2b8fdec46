import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.database import Base
from stockledger.models.enums import (
    ExpenseStatus,
    ReferenceType,
    TransactionStatus,
    TransactionType,
    values_enum,
)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        "transactionType",
        values_enum(TransactionType, "transaction_type"),
        nullable=False,
        index=True,
    )
    # positive = cash in, negative = cash out
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_method_id: Mapped[uuid.UUID | None] = mapped_column(
        "paymentMethodId",
        ForeignKey("paymentMethods.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        values_enum(TransactionStatus, "transaction_status"),
        default=TransactionStatus.COMPLETED,
        nullable=False,
        index=True,
    )
    reference_id: Mapped[uuid.UUID | None] = mapped_column("referenceId", Uuid, index=True, nullable=True)
    reference_type: Mapped[ReferenceType | None] = mapped_column(
        "referenceType",
        values_enum(ReferenceType, "transaction_reference_type"),
        nullable=True,
    )
    processed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        "processedById",
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column("idempotencyKey", String(200), unique=True, nullable=True)
    void_reason: Mapped[str | None] = mapped_column("voidReason", String(255), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column("voidedAt", DateTime, nullable=True)
    payment_date: Mapped[datetime] = mapped_column(
        "paymentDate",
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    category: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[ExpenseStatus] = mapped_column(
        values_enum(ExpenseStatus, "expense_status"),
        default=ExpenseStatus.PAID,
        nullable=False,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        "createdById",
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    incurred_at: Mapped[datetime] = mapped_column(
        "incurredAt",
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
