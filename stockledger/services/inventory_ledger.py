"""FIFO cost lots and the append-only movement log behind them.

This module is the only writer of `InventoryEntry.current_quantity`. Every
change to it is paired with exactly one `InventoryMovement` row inserted in the
same database transaction, so the cached quantity always equals the signed
sum of the entry's movements.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from stockledger.core.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from stockledger.models.enums import AdjustmentDirection, BatchStatus, MovementType
from stockledger.models.inventory import Batch, InventoryEntry, InventoryMovement
from stockledger.services.batch_registry import close_if_exhausted, get_batch
from stockledger.services.lookups import get_product
from stockledger.services.references import Reference

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")


def _quantize_price(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Q2)


@dataclass(frozen=True)
class Allocation:
    entry_id: uuid.UUID
    batch_id: uuid.UUID
    quantity_taken: int
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return _quantize_price(self.unit_cost * self.quantity_taken)


def _record_movement(
    db: Session,
    entry: InventoryEntry,
    movement_type: MovementType,
    quantity: int,
    *,
    direction: AdjustmentDirection | None = None,
    reference: Reference | None = None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
) -> InventoryMovement:
    movement = InventoryMovement(
        business_id=entry.business_id,
        inventory_entry_id=entry.id,
        quantity=quantity,
        movement_type=movement_type,
        adjustment_direction=direction,
        reference_id=reference.id if reference else None,
        reference_type=reference.kind if reference else None,
        notes=notes,
        created_by_id=created_by_id,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(movement)
    return movement


def receive(
    db: Session,
    *,
    product_id: uuid.UUID,
    batch_id: uuid.UUID,
    cost_price: Decimal,
    selling_price: Decimal,
    quantity: int,
    expiry_date: date | None = None,
    business_id: uuid.UUID | None = None,
    purchase_item_id: uuid.UUID | None = None,
    reference: Reference | None = None,
    idempotency_key: str | None = None,
    warehouse_location: str | None = None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
    received_at: datetime | None = None,
) -> InventoryEntry:
    if idempotency_key:
        existing = db.scalar(select(InventoryEntry).where(InventoryEntry.idempotency_key == idempotency_key))
        if existing:
            if (existing.product_id, existing.batch_id, existing.quantity_received) != (product_id, batch_id, quantity):
                raise ValidationError(
                    "Idempotency key was already used for a different receipt",
                    idempotency_key=idempotency_key,
                    entry_id=str(existing.id),
                )
            logger.info(
                "receive replayed, returning existing entry",
                extra={"entry_id": str(existing.id), "idempotency_key": idempotency_key},
            )
            return existing

    if quantity <= 0:
        raise ValidationError("Received quantity must be positive", quantity=quantity)
    if Decimal(cost_price) < 0 or Decimal(selling_price) < 0:
        raise ValidationError("Prices cannot be negative")

    product = get_product(db, product_id, business_id)
    batch = get_batch(db, batch_id, product.business_id)
    if batch.status == BatchStatus.CLOSED:
        raise InvalidStateError("Cannot receive stock into a closed batch", batch_id=str(batch.id))

    created_at = received_at or datetime.utcnow()
    entry = InventoryEntry(
        business_id=product.business_id,
        product_id=product.id,
        batch_id=batch.id,
        purchase_item_id=purchase_item_id,
        cost_price=_quantize_price(cost_price),
        selling_price=_quantize_price(selling_price),
        quantity_received=quantity,
        current_quantity=quantity,
        expiry_date=expiry_date,
        warehouse_location=warehouse_location,
        notes=notes,
        idempotency_key=idempotency_key,
        created_at=created_at,
    )
    db.add(entry)
    db.flush()
    _record_movement(
        db,
        entry,
        MovementType.IN,
        quantity,
        reference=reference,
        notes=notes,
        created_by_id=created_by_id,
        created_at=created_at,
    )
    db.flush()
    logger.info(
        "stock received",
        extra={"entry_id": str(entry.id), "product_id": str(product.id), "batch_id": str(batch.id), "quantity": quantity},
    )
    return entry


def lock_fifo_entries(db: Session, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, list[InventoryEntry]]:
    """Lock every entry with stock for the given products, oldest first.

    Rows come back ordered by product id so that callers touching several
    products always acquire locks in the same order.
    """
    ids = sorted(set(product_ids))
    locked: dict[uuid.UUID, list[InventoryEntry]] = {product_id: [] for product_id in ids}
    if not ids:
        return locked
    db.flush()
    rows = db.scalars(
        select(InventoryEntry)
        .where(InventoryEntry.product_id.in_(ids), InventoryEntry.current_quantity > 0)
        .order_by(InventoryEntry.product_id.asc(), InventoryEntry.created_at.asc(), InventoryEntry.id.asc())
        .with_for_update()
    ).all()
    for entry in rows:
        locked[entry.product_id].append(entry)
    return locked


def plan_fifo(
    entries: Sequence[InventoryEntry],
    quantity: int,
    product_id: uuid.UUID,
) -> list[tuple[InventoryEntry, int]]:
    """Decide how much to take from each entry; raises before anything is mutated."""
    available = sum(int(entry.current_quantity) for entry in entries)
    if available < quantity:
        raise InsufficientStockError(product_id, requested=quantity, available=available)

    plan: list[tuple[InventoryEntry, int]] = []
    left = quantity
    for entry in entries:
        if left <= 0:
            break
        on_hand = int(entry.current_quantity)
        if on_hand <= 0:
            continue
        take = min(on_hand, left)
        plan.append((entry, take))
        left -= take
    return plan


def apply_plan(
    db: Session,
    plan: Sequence[tuple[InventoryEntry, int]],
    *,
    reference: Reference | None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
) -> list[Allocation]:
    allocations: list[Allocation] = []
    touched_batches: set[uuid.UUID] = set()
    for entry, take in plan:
        entry.current_quantity = int(entry.current_quantity) - take
        _record_movement(
            db,
            entry,
            MovementType.OUT,
            take,
            reference=reference,
            notes=notes,
            created_by_id=created_by_id,
        )
        allocations.append(
            Allocation(
                entry_id=entry.id,
                batch_id=entry.batch_id,
                quantity_taken=take,
                unit_cost=Decimal(entry.cost_price),
            )
        )
        if entry.current_quantity == 0:
            touched_batches.add(entry.batch_id)
    db.flush()
    for batch_id in touched_batches:
        close_if_exhausted(db, batch_id)
    return allocations


def consume(
    db: Session,
    *,
    product_id: uuid.UUID,
    quantity: int,
    reference: Reference | None,
    business_id: uuid.UUID | None = None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
) -> list[Allocation]:
    if quantity <= 0:
        raise ValidationError("Quantity to consume must be positive", quantity=quantity)
    product = get_product(db, product_id, business_id)
    entries = lock_fifo_entries(db, [product.id])[product.id]
    plan = plan_fifo(entries, quantity, product.id)
    allocations = apply_plan(db, plan, reference=reference, notes=notes, created_by_id=created_by_id)
    logger.info(
        "stock consumed",
        extra={
            "product_id": str(product.id),
            "quantity": quantity,
            "entries": len(allocations),
            "reference_type": reference.kind.value if reference else None,
        },
    )
    return allocations


def _lock_entry(db: Session, entry_id: uuid.UUID, business_id: uuid.UUID | None = None) -> InventoryEntry:
    entry = db.scalar(select(InventoryEntry).where(InventoryEntry.id == entry_id).with_for_update())
    if not entry or (business_id is not None and entry.business_id != business_id):
        raise NotFoundError("Inventory entry", entry_id)
    return entry


def _reopen_batch(db: Session, batch_id: uuid.UUID) -> None:
    batch = db.get(Batch, batch_id)
    if batch and batch.status == BatchStatus.CLOSED:
        batch.status = BatchStatus.OPEN


def adjust(
    db: Session,
    *,
    entry_id: uuid.UUID,
    delta: int,
    reason: str,
    business_id: uuid.UUID | None = None,
    reference: Reference | None = None,
    created_by_id: uuid.UUID | None = None,
) -> InventoryEntry:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Adjustment reason is required")
    if delta == 0:
        raise ValidationError("Adjustment delta must be non-zero")

    entry = _lock_entry(db, entry_id, business_id)
    new_quantity = int(entry.current_quantity) + delta
    if new_quantity < 0 or new_quantity > entry.quantity_received:
        raise ValidationError(
            "Adjustment would move quantity outside the received range",
            entry_id=str(entry.id),
            current_quantity=entry.current_quantity,
            quantity_received=entry.quantity_received,
            delta=delta,
        )

    direction = AdjustmentDirection.INCREASE if delta > 0 else AdjustmentDirection.DECREASE
    entry.current_quantity = new_quantity
    _record_movement(
        db,
        entry,
        MovementType.ADJUSTMENT,
        abs(delta),
        direction=direction,
        reference=reference,
        notes=reason,
        created_by_id=created_by_id,
    )
    db.flush()
    if new_quantity == 0:
        close_if_exhausted(db, entry.batch_id)
    elif direction == AdjustmentDirection.INCREASE:
        _reopen_batch(db, entry.batch_id)
    logger.info(
        "entry adjusted",
        extra={"entry_id": str(entry.id), "delta": delta, "current_quantity": new_quantity},
    )
    return entry


def recredit(
    db: Session,
    *,
    entry_id: uuid.UUID,
    quantity: int,
    reference: Reference | None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
) -> int:
    """Put stock back into an entry, never beyond what it originally received.

    Returns the quantity actually restored, which is less than requested when
    the entry was topped up by adjustments in the meantime.
    """
    entry = _lock_entry(db, entry_id)
    room = int(entry.quantity_received) - int(entry.current_quantity)
    restored = min(quantity, room)
    if restored <= 0:
        return 0
    entry.current_quantity = int(entry.current_quantity) + restored
    _record_movement(
        db,
        entry,
        MovementType.IN,
        restored,
        reference=reference,
        notes=notes,
        created_by_id=created_by_id,
    )
    _reopen_batch(db, entry.batch_id)
    db.flush()
    return restored


def available_quantity(db: Session, product_id: uuid.UUID, business_id: uuid.UUID | None = None) -> int:
    product = get_product(db, product_id, business_id)
    db.flush()
    total = db.scalar(
        select(func.coalesce(func.sum(InventoryEntry.current_quantity), 0)).where(
            InventoryEntry.product_id == product.id,
        )
    )
    return int(total or 0)


def movement_balance(db: Session, entry_id: uuid.UUID) -> int:
    """Signed sum of an entry's movements, recomputed from the log."""
    signed = case(
        (InventoryMovement.movement_type == MovementType.OUT, -InventoryMovement.quantity),
        (
            and_(
                InventoryMovement.movement_type == MovementType.ADJUSTMENT,
                InventoryMovement.adjustment_direction == AdjustmentDirection.DECREASE,
            ),
            -InventoryMovement.quantity,
        ),
        else_=InventoryMovement.quantity,
    )
    db.flush()
    total = db.scalar(
        select(func.coalesce(func.sum(signed), 0)).where(InventoryMovement.inventory_entry_id == entry_id)
    )
    return int(total or 0)


def list_entries(
    db: Session,
    business_id: uuid.UUID,
    *,
    product_id: uuid.UUID | None = None,
    batch_id: uuid.UUID | None = None,
    include_exhausted: bool = True,
) -> list[InventoryEntry]:
    query = (
        select(InventoryEntry)
        .where(InventoryEntry.business_id == business_id)
        .order_by(InventoryEntry.created_at.asc(), InventoryEntry.id.asc())
    )
    if product_id is not None:
        query = query.where(InventoryEntry.product_id == product_id)
    if batch_id is not None:
        query = query.where(InventoryEntry.batch_id == batch_id)
    if not include_exhausted:
        query = query.where(InventoryEntry.current_quantity > 0)
    return list(db.scalars(query).all())


def list_movements(
    db: Session,
    business_id: uuid.UUID,
    *,
    entry_id: uuid.UUID | None = None,
    product_id: uuid.UUID | None = None,
    reference: Reference | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[InventoryMovement]:
    query = (
        select(InventoryMovement)
        .where(InventoryMovement.business_id == business_id)
        .order_by(InventoryMovement.created_at.asc(), InventoryMovement.id.asc())
    )
    if entry_id is not None:
        query = query.where(InventoryMovement.inventory_entry_id == entry_id)
    if product_id is not None:
        query = query.join(InventoryEntry, InventoryEntry.id == InventoryMovement.inventory_entry_id).where(
            InventoryEntry.product_id == product_id
        )
    if reference is not None:
        query = query.where(
            InventoryMovement.reference_type == reference.kind,
            InventoryMovement.reference_id == reference.id,
        )
    if date_from is not None:
        query = query.where(InventoryMovement.created_at >= date_from)
    if date_to is not None:
        query = query.where(InventoryMovement.created_at <= date_to)
    return list(db.scalars(query).all())
