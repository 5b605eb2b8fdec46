import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.errors import ValidationError
from stockledger.models.catalog import Product
from stockledger.models.inventory import Batch, InventoryEntry, InventoryMovement
from stockledger.services.batch_registry import ADJUSTMENT_BATCH_PREFIX
from stockledger.services.lookups import get_product

Q2 = Decimal("0.01")
Q4 = Decimal("0.0001")


@dataclass(frozen=True)
class ProductValuation:
    product_id: uuid.UUID
    on_hand: int
    stock_value: Decimal
    weighted_average_cost: Decimal | None
    last_cost: Decimal | None


def last_cost(db: Session, product_id: uuid.UUID) -> Decimal | None:
    """Cost of the most recently received supplier lot, ignoring adjustment lots."""
    value = db.scalar(
        select(InventoryEntry.cost_price)
        .join(Batch, Batch.id == InventoryEntry.batch_id)
        .where(
            InventoryEntry.product_id == product_id,
            Batch.batch_number.not_like(f"{ADJUSTMENT_BATCH_PREFIX}%"),
        )
        .order_by(InventoryEntry.created_at.desc(), InventoryEntry.id.desc())
        .limit(1)
    )
    return Decimal(value).quantize(Q2) if value is not None else None


def _on_hand_totals(db: Session, product_id: uuid.UUID) -> tuple[int, Decimal]:
    db.flush()
    quantity, value = db.execute(
        select(
            func.coalesce(func.sum(InventoryEntry.current_quantity), 0),
            func.coalesce(func.sum(InventoryEntry.current_quantity * InventoryEntry.cost_price), 0),
        ).where(InventoryEntry.product_id == product_id, InventoryEntry.current_quantity > 0)
    ).one()
    return int(quantity or 0), Decimal(value or 0).quantize(Q2)


def weighted_average_cost(db: Session, product_id: uuid.UUID) -> Decimal | None:
    quantity, value = _on_hand_totals(db, product_id)
    if quantity == 0:
        return None
    return (value / Decimal(quantity)).quantize(Q4)


def product_valuation(db: Session, product_id: uuid.UUID, business_id: uuid.UUID | None = None) -> ProductValuation:
    product = get_product(db, product_id, business_id)
    quantity, value = _on_hand_totals(db, product.id)
    average = (value / Decimal(quantity)).quantize(Q4) if quantity else None
    return ProductValuation(
        product_id=product.id,
        on_hand=quantity,
        stock_value=value,
        weighted_average_cost=average,
        last_cost=last_cost(db, product.id),
    )


def adjustment_unit_cost(db: Session, product: Product, policy: str) -> Decimal:
    """Unit cost assigned to stock found by an adjustment, per the configured policy."""
    fallback = Decimal(product.default_cost_price) if product.default_cost_price is not None else Decimal("0")
    if policy == "zero":
        return Decimal("0.00")
    if policy == "last_cost":
        return (last_cost(db, product.id) or fallback).quantize(Q2)
    if policy == "weighted_average":
        average = weighted_average_cost(db, product.id)
        if average is None:
            average = last_cost(db, product.id) or fallback
        return Decimal(average).quantize(Q2)
    raise ValidationError(f"Unknown adjustment cost policy {policy!r}")


STOCK_GOOD = "good"
STOCK_LOW = "low"


@dataclass(frozen=True)
class StockSummary:
    product_id: uuid.UUID
    product_code: str
    product_name: str
    on_hand: int
    reorder_threshold: int
    status: str
    last_movement_at: datetime | None = None
    warehouse_locations: list[str] = field(default_factory=list)
    batch_numbers: list[str] = field(default_factory=list)


def stock_status(on_hand: int, reorder_threshold: int) -> str:
    return STOCK_GOOD if on_hand > reorder_threshold else STOCK_LOW


def _summaries(db: Session, products: Sequence[Product]) -> list[StockSummary]:
    ids = [product.id for product in products]
    if not ids:
        return []
    db.flush()

    on_hand = dict(
        db.execute(
            select(InventoryEntry.product_id, func.sum(InventoryEntry.current_quantity))
            .where(InventoryEntry.product_id.in_(ids))
            .group_by(InventoryEntry.product_id)
        ).all()
    )
    last_moved = dict(
        db.execute(
            select(InventoryEntry.product_id, func.max(InventoryMovement.created_at))
            .join(InventoryMovement, InventoryMovement.inventory_entry_id == InventoryEntry.id)
            .where(InventoryEntry.product_id.in_(ids))
            .group_by(InventoryEntry.product_id)
        ).all()
    )

    locations: dict[uuid.UUID, list[str]] = {product_id: [] for product_id in ids}
    batches: dict[uuid.UUID, list[str]] = {product_id: [] for product_id in ids}
    lots = db.execute(
        select(InventoryEntry.product_id, InventoryEntry.warehouse_location, Batch.batch_number)
        .join(Batch, Batch.id == InventoryEntry.batch_id)
        .where(InventoryEntry.product_id.in_(ids), InventoryEntry.current_quantity > 0)
        .order_by(InventoryEntry.created_at.asc(), InventoryEntry.id.asc())
    ).all()
    for product_id, location, batch_number in lots:
        if location and location not in locations[product_id]:
            locations[product_id].append(location)
        if batch_number not in batches[product_id]:
            batches[product_id].append(batch_number)

    summaries = []
    for product in products:
        quantity = int(on_hand.get(product.id) or 0)
        summaries.append(
            StockSummary(
                product_id=product.id,
                product_code=product.product_code,
                product_name=product.name,
                on_hand=quantity,
                reorder_threshold=product.reorder_threshold,
                status=stock_status(quantity, product.reorder_threshold),
                last_movement_at=last_moved.get(product.id),
                warehouse_locations=locations[product.id],
                batch_numbers=batches[product.id],
            )
        )
    return summaries


def product_stock_summary(db: Session, product_id: uuid.UUID, business_id: uuid.UUID | None = None) -> StockSummary:
    return _summaries(db, [get_product(db, product_id, business_id)])[0]


def stock_summary(
    db: Session,
    business_id: uuid.UUID,
    *,
    low_only: bool = False,
    include_inactive: bool = False,
) -> list[StockSummary]:
    """On-hand stock per product with a good/low flag against its reorder threshold."""
    query = select(Product).where(Product.business_id == business_id).order_by(Product.name.asc())
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    summaries = _summaries(db, list(db.scalars(query).all()))
    if low_only:
        summaries = [summary for summary in summaries if summary.status == STOCK_LOW]
    return summaries
