"""Turns order lines into FIFO stock consumption and cost of goods sold."""

import logging
import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from stockledger.models.catalog import Customer
from stockledger.models.enums import (
    MovementType,
    OrderPaymentMethod,
    OrderStatus,
    PaymentStatus,
    ReferenceType,
    TransactionType,
)
from stockledger.models.inventory import InventoryMovement
from stockledger.models.ledger import Transaction
from stockledger.models.sales import Order, OrderItem
from stockledger.services import inventory_ledger, transaction_ledger
from stockledger.services.inventory_ledger import Allocation
from stockledger.services.lookups import get_active_product, get_product
from stockledger.services.references import Reference

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal | None = None
    discount: Decimal = Decimal("0")


@dataclass(frozen=True)
class FulfillmentLine:
    product_id: uuid.UUID
    quantity: int


@dataclass(frozen=True)
class LineAllocation:
    product_id: uuid.UUID
    quantity: int
    allocations: list[Allocation]

    @property
    def cogs(self) -> Decimal:
        return sum((allocation.cost for allocation in self.allocations), Decimal("0.00"))


@dataclass
class FulfillmentResult:
    order_id: uuid.UUID
    lines: list[LineAllocation] = field(default_factory=list)
    total_cogs: Decimal = Decimal("0.00")
    transaction: Transaction | None = None


@dataclass
class ReversalResult:
    order_id: uuid.UUID
    requested: int
    restored: int
    transaction: Transaction | None = None


def _generate_order_number() -> str:
    return f"SO-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def create_order(
    db: Session,
    *,
    business_id: uuid.UUID,
    customer_id: uuid.UUID,
    items: Sequence[OrderLine],
    payment_method: OrderPaymentMethod,
    created_by_id: uuid.UUID,
    order_number: str | None = None,
    order_date: date | None = None,
    discount_total: Decimal = Decimal("0"),
    tax_amount: Decimal = Decimal("0"),
) -> Order:
    if not items:
        raise ValidationError("An order needs at least one item")
    customer = db.get(Customer, customer_id)
    if not customer or customer.business_id != business_id:
        raise NotFoundError("Customer", customer_id)

    number = order_number.strip() if order_number else _generate_order_number()
    if db.scalar(select(Order.id).where(Order.order_number == number)):
        raise ValidationError("Order number already exists", order_number=number)

    priced: list[tuple[OrderLine, Decimal, Decimal]] = []
    subtotal = Decimal("0.00")
    for line in items:
        if line.quantity <= 0:
            raise ValidationError("Order quantity must be positive", product_id=str(line.product_id))
        product = get_active_product(db, line.product_id, business_id)
        unit_price = line.unit_price if line.unit_price is not None else product.default_selling_price
        if unit_price is None:
            raise ValidationError("Product has no default selling price; give unit_price", product_id=str(product.id))
        unit_price = Decimal(unit_price).quantize(Q2)
        line_total = (unit_price * line.quantity - Decimal(line.discount)).quantize(Q2)
        if line_total < 0:
            raise ValidationError("Line discount exceeds line value", product_id=str(product.id))
        priced.append((line, unit_price, line_total))
        subtotal += line_total

    total = (subtotal - Decimal(discount_total) + Decimal(tax_amount)).quantize(Q2)
    if total <= 0:
        raise ValidationError("Order total must be positive", total=str(total))

    order = Order(
        business_id=business_id,
        order_number=number,
        customer_id=customer.id,
        order_date=order_date or date.today(),
        status=OrderStatus.PENDING,
        payment_method=OrderPaymentMethod(payment_method),
        payment_status=PaymentStatus.UNPAID,
        subtotal=subtotal,
        discount_total=Decimal(discount_total).quantize(Q2),
        tax_amount=Decimal(tax_amount).quantize(Q2),
        total_amount=total,
        created_by_id=created_by_id,
    )
    db.add(order)
    db.flush()
    for line, unit_price, line_total in priced:
        db.add(
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=unit_price,
                discount=Decimal(line.discount).quantize(Q2),
                total_amount=line_total,
            )
        )
    db.flush()
    logger.info("order created", extra={"order_id": str(order.id), "order_number": number, "total": str(total)})
    return order


def get_order(db: Session, order_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Order:
    order = db.get(Order, order_id)
    if not order or (business_id is not None and order.business_id != business_id):
        raise NotFoundError("Order", order_id)
    return order


def _lock_order(db: Session, order_id: uuid.UUID, business_id: uuid.UUID | None) -> Order:
    order = db.scalar(select(Order).where(Order.id == order_id).with_for_update())
    if not order or (business_id is not None and order.business_id != business_id):
        raise NotFoundError("Order", order_id)
    return order


def order_items(db: Session, order_id: uuid.UUID) -> list[OrderItem]:
    return list(
        db.scalars(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.created_at.asc(), OrderItem.id.asc())
        ).all()
    )


def _order_movements(db: Session, order_id: uuid.UUID, movement_type: MovementType) -> list[InventoryMovement]:
    db.flush()
    return list(
        db.scalars(
            select(InventoryMovement)
            .where(
                InventoryMovement.reference_type == ReferenceType.ORDER,
                InventoryMovement.reference_id == order_id,
                InventoryMovement.movement_type == movement_type,
            )
            .order_by(InventoryMovement.created_at.asc(), InventoryMovement.id.asc())
        ).all()
    )


def _order_out_movements(db: Session, order_id: uuid.UUID) -> list[InventoryMovement]:
    return _order_movements(db, order_id, MovementType.OUT)


def is_fulfilled(db: Session, order_id: uuid.UUID) -> bool:
    return bool(_order_out_movements(db, order_id))


def fulfill(
    db: Session,
    *,
    order_id: uuid.UUID,
    items: Sequence[FulfillmentLine] | None = None,
    business_id: uuid.UUID | None = None,
    payment_method_id: uuid.UUID | None = None,
    processed_by_id: uuid.UUID | None = None,
) -> FulfillmentResult:
    order = _lock_order(db, order_id, business_id)
    if order.status == OrderStatus.CANCELLED:
        raise InvalidStateError("Cannot fulfill a cancelled order", order_id=str(order.id))
    if is_fulfilled(db, order.id):
        raise InvalidStateError("Order has already been fulfilled", order_id=str(order.id))

    if items is None:
        lines = [FulfillmentLine(product_id=item.product_id, quantity=item.quantity) for item in order_items(db, order.id)]
    else:
        lines = list(items)
    if not lines:
        raise ValidationError("Nothing to fulfill", order_id=str(order.id))

    required: dict[uuid.UUID, int] = defaultdict(int)
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError("Fulfillment quantity must be positive", product_id=str(line.product_id))
        get_product(db, line.product_id, order.business_id)
        required[line.product_id] += line.quantity

    # lock every product up front, ascending id, then check all lines before touching stock
    locked = inventory_ledger.lock_fifo_entries(db, required.keys())
    for product_id in dict.fromkeys(line.product_id for line in lines):
        available = sum(int(entry.current_quantity) for entry in locked[product_id])
        if available < required[product_id]:
            raise InsufficientStockError(product_id, requested=required[product_id], available=available)

    reference = Reference.order(order.id)
    result = FulfillmentResult(order_id=order.id)
    for line in lines:
        allocations = inventory_ledger.consume(
            db,
            product_id=line.product_id,
            quantity=line.quantity,
            reference=reference,
            notes=f"Order {order.order_number}",
            created_by_id=processed_by_id,
        )
        line_allocation = LineAllocation(product_id=line.product_id, quantity=line.quantity, allocations=allocations)
        result.lines.append(line_allocation)
        result.total_cogs += line_allocation.cogs

    result.transaction = transaction_ledger.post(
        db,
        business_id=order.business_id,
        transaction_type=TransactionType.SALE,
        amount=Decimal(order.total_amount),
        payment_method_id=payment_method_id,
        reference=reference,
        processed_by_id=processed_by_id,
        description=f"Sale {order.order_number}",
    )
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PAID
    order.payment_status = PaymentStatus.PAID
    db.flush()
    logger.info(
        "order fulfilled",
        extra={"order_id": str(order.id), "lines": len(lines), "cogs": str(result.total_cogs)},
    )
    return result


def reverse_fulfillment(
    db: Session,
    *,
    order_id: uuid.UUID,
    reason: str | None = None,
    business_id: uuid.UUID | None = None,
    payment_method_id: uuid.UUID | None = None,
    processed_by_id: uuid.UUID | None = None,
) -> ReversalResult:
    order = _lock_order(db, order_id, business_id)
    movements = _order_out_movements(db, order.id)
    if not movements:
        raise InvalidStateError("Order has not been fulfilled", order_id=str(order.id))
    reference = Reference.order(order.id)
    # a voided refund does not make the order reversible again
    already_reversed = (
        order.status == OrderStatus.CANCELLED
        or _order_movements(db, order.id, MovementType.IN)
        or transaction_ledger.find_by_reference(
            db, reference, transaction_type=TransactionType.REFUND, include_cancelled=True
        )
    )
    if already_reversed:
        raise InvalidStateError("Order fulfillment has already been reversed", order_id=str(order.id))

    result = ReversalResult(order_id=order.id, requested=sum(movement.quantity for movement in movements), restored=0)
    if settings.refund_restock_enabled:
        for movement in movements:
            restored = inventory_ledger.recredit(
                db,
                entry_id=movement.inventory_entry_id,
                quantity=movement.quantity,
                reference=reference,
                notes=f"Reversal of order {order.order_number}" + (f": {reason}" if reason else ""),
                created_by_id=processed_by_id,
            )
            result.restored += restored
            if restored < movement.quantity:
                logger.warning(
                    "partial re-credit on reversal",
                    extra={
                        "order_id": str(order.id),
                        "entry_id": str(movement.inventory_entry_id),
                        "requested": movement.quantity,
                        "restored": restored,
                    },
                )

    result.transaction = transaction_ledger.post(
        db,
        business_id=order.business_id,
        transaction_type=TransactionType.REFUND,
        amount=-Decimal(order.total_amount),
        payment_method_id=payment_method_id,
        reference=reference,
        processed_by_id=processed_by_id,
        description=f"Refund {order.order_number}" + (f": {reason}" if reason else ""),
    )
    order.status = OrderStatus.CANCELLED
    order.payment_status = PaymentStatus.UNPAID
    db.flush()
    logger.info(
        "order fulfillment reversed",
        extra={"order_id": str(order.id), "requested": result.requested, "restored": result.restored},
    )
    return result


def list_orders(db: Session, business_id: uuid.UUID, *, status: OrderStatus | None = None) -> list[Order]:
    query = select(Order).where(Order.business_id == business_id).order_by(Order.created_at.desc())
    if status is not None:
        query = query.where(Order.status == status)
    return list(db.scalars(query).all())
