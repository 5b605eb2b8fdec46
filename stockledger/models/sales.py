import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.database import Base
from stockledger.models.enums import OrderPaymentMethod, OrderStatus, PaymentStatus, values_enum


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        "businessId",
        ForeignKey("businesses.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
        nullable=False,
    )
    order_number: Mapped[str] = mapped_column("orderNumber", String(64), unique=True, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        "customerId",
        ForeignKey("customers.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    order_date: Mapped[date] = mapped_column("orderDate", Date, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        values_enum(OrderStatus, "order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[OrderPaymentMethod] = mapped_column(
        "paymentMethod",
        values_enum(OrderPaymentMethod, "order_payment_method"),
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        "paymentStatus",
        values_enum(PaymentStatus, "order_payment_status"),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    discount_total: Mapped[Decimal] = mapped_column("discountTotal", Numeric(15, 2), default=Decimal("0"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column("taxAmount", Numeric(15, 2), default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column("totalAmount", Numeric(15, 2), nullable=False)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        "createdById",
        ForeignKey("users.id", ondelete="RESTRICT"),
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


class OrderItem(Base):
    __tablename__ = "orderItems"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        "orderId",
        ForeignKey("orders.id", ondelete="CASCADE"),
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
    unit_price: Mapped[Decimal] = mapped_column("unitPrice", Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column("totalAmount", Numeric(15, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=datetime.utcnow, nullable=False)
