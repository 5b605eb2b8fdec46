import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.errors import InvalidStateError, NotFoundError, ValidationError
from stockledger.models.enums import BatchStatus, PurchaseStatus, TransactionType
from stockledger.models.inventory import InventoryEntry
from stockledger.models.procurement import Purchase, PurchaseItem
from stockledger.services import inventory_ledger, transaction_ledger
from stockledger.services.batch_registry import close_if_exhausted, get_batch
from stockledger.services.lookups import get_active_product, get_product, get_supplier
from stockledger.services.references import Reference

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")


@dataclass(frozen=True)
class PurchaseLine:
    product_id: uuid.UUID
    quantity: int
    unit_cost: Decimal
    selling_price: Decimal | None = None
    expiry_date: date | None = None


@dataclass(frozen=True)
class ReceivedLine:
    purchase_item_id: uuid.UUID
    quantity_received: int
    expiry_date: date | None = None
    warehouse_location: str | None = None


def _generate_purchase_number() -> str:
    return f"PO-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def create_purchase(
    db: Session,
    *,
    business_id: uuid.UUID,
    supplier_id: uuid.UUID,
    items: Sequence[PurchaseLine],
    purchase_number: str | None = None,
    batch_id: uuid.UUID | None = None,
    purchase_date: date | None = None,
    notes: str | None = None,
    created_by_id: uuid.UUID | None = None,
) -> Purchase:
    if not items:
        raise ValidationError("A purchase needs at least one item")
    supplier = get_supplier(db, supplier_id, business_id)
    if not supplier.is_active:
        raise InvalidStateError("Supplier is inactive", supplier_id=str(supplier_id))
    if batch_id is not None:
        batch = get_batch(db, batch_id, business_id)
        if batch.supplier_id != supplier.id:
            raise ValidationError("Batch belongs to a different supplier", batch_id=str(batch_id))

    number = purchase_number.strip() if purchase_number else _generate_purchase_number()
    if db.scalar(select(Purchase.id).where(Purchase.purchase_number == number)):
        raise ValidationError("Purchase number already exists", purchase_number=number)

    purchase = Purchase(
        business_id=business_id,
        purchase_number=number,
        supplier_id=supplier.id,
        batch_id=batch_id,
        status=PurchaseStatus.PENDING,
        total_amount=Decimal("0.00"),
        notes=notes,
        created_by_id=created_by_id,
        purchase_date=purchase_date or date.today(),
    )
    db.add(purchase)
    db.flush()

    total = Decimal("0.00")
    for line in items:
        if line.quantity <= 0:
            raise ValidationError("Ordered quantity must be positive", product_id=str(line.product_id))
        if Decimal(line.unit_cost) < 0:
            raise ValidationError("Unit cost cannot be negative", product_id=str(line.product_id))
        product = get_active_product(db, line.product_id, business_id)
        unit_cost = Decimal(line.unit_cost).quantize(Q2)
        line_total = (unit_cost * line.quantity).quantize(Q2)
        db.add(
            PurchaseItem(
                purchase_id=purchase.id,
                product_id=product.id,
                quantity=line.quantity,
                unit_cost=unit_cost,
                total_cost=line_total,
                selling_price=Decimal(line.selling_price).quantize(Q2) if line.selling_price is not None else None,
                expiry_date=line.expiry_date,
            )
        )
        total += line_total
    purchase.total_amount = total
    db.flush()
    logger.info(
        "purchase created",
        extra={"purchase_id": str(purchase.id), "purchase_number": number, "items": len(items)},
    )
    return purchase


def get_purchase(db: Session, purchase_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Purchase:
    purchase = db.get(Purchase, purchase_id)
    if not purchase or (business_id is not None and purchase.business_id != business_id):
        raise NotFoundError("Purchase", purchase_id)
    return purchase


def _lock_purchase(db: Session, purchase_id: uuid.UUID, business_id: uuid.UUID | None) -> Purchase:
    purchase = db.scalar(select(Purchase).where(Purchase.id == purchase_id).with_for_update())
    if not purchase or (business_id is not None and purchase.business_id != business_id):
        raise NotFoundError("Purchase", purchase_id)
    return purchase


def purchase_items(db: Session, purchase_id: uuid.UUID) -> list[PurchaseItem]:
    return list(
        db.scalars(
            select(PurchaseItem)
            .where(PurchaseItem.purchase_id == purchase_id)
            .order_by(PurchaseItem.created_at.asc(), PurchaseItem.id.asc())
        ).all()
    )


def received_quantities(db: Session, purchase_id: uuid.UUID) -> dict[uuid.UUID, int]:
    db.flush()
    rows = db.execute(
        select(PurchaseItem.id, func.coalesce(func.sum(InventoryEntry.quantity_received), 0))
        .outerjoin(InventoryEntry, InventoryEntry.purchase_item_id == PurchaseItem.id)
        .where(PurchaseItem.purchase_id == purchase_id)
        .group_by(PurchaseItem.id)
    ).all()
    return {item_id: int(quantity or 0) for item_id, quantity in rows}


def _resolve_status(items: Sequence[PurchaseItem], received: dict[uuid.UUID, int]) -> PurchaseStatus:
    if all(received.get(item.id, 0) >= item.quantity for item in items):
        return PurchaseStatus.RECEIVED
    if any(received.get(item.id, 0) > 0 for item in items):
        return PurchaseStatus.PARTIAL
    return PurchaseStatus.PENDING


def _is_replay(db: Session, lines: Sequence[ReceivedLine], idempotency_key: str) -> bool:
    """True when every non-zero line of this receipt was already booked under the key."""
    keys = [f"{idempotency_key}:{line.purchase_item_id}" for line in lines if line.quantity_received > 0]
    if not keys:
        return False
    booked = db.scalar(select(func.count(InventoryEntry.id)).where(InventoryEntry.idempotency_key.in_(keys)))
    return int(booked or 0) == len(set(keys))


def receive(
    db: Session,
    *,
    purchase_id: uuid.UUID,
    lines: Sequence[ReceivedLine],
    business_id: uuid.UUID | None = None,
    batch_id: uuid.UUID | None = None,
    overage_tolerance: int | None = None,
    payment_method_id: uuid.UUID | None = None,
    processed_by_id: uuid.UUID | None = None,
    idempotency_key: str | None = None,
    received_at: datetime | None = None,
) -> Purchase:
    purchase = _lock_purchase(db, purchase_id, business_id)
    if idempotency_key and _is_replay(db, lines, idempotency_key):
        logger.info(
            "receipt replayed, returning purchase unchanged",
            extra={"purchase_id": str(purchase.id), "idempotency_key": idempotency_key},
        )
        return purchase
    if purchase.status == PurchaseStatus.CANCELLED:
        raise InvalidStateError("Cannot receive against a cancelled purchase", purchase_id=str(purchase.id))
    if purchase.status == PurchaseStatus.RECEIVED:
        raise InvalidStateError("Purchase is already fully received", purchase_id=str(purchase.id))
    if not lines:
        raise ValidationError("No received lines provided")

    tolerance = settings.purchase_overage_tolerance if overage_tolerance is None else overage_tolerance
    if tolerance < 0:
        raise ValidationError("Overage tolerance cannot be negative")

    if batch_id is not None and purchase.batch_id is not None and batch_id != purchase.batch_id:
        raise ValidationError("Purchase is already attached to a different batch", batch_id=str(purchase.batch_id))
    resolved_batch_id = batch_id or purchase.batch_id
    if resolved_batch_id is None:
        raise ValidationError("Purchase has no batch; register a batch and pass batch_id")
    batch = get_batch(db, resolved_batch_id, purchase.business_id)
    if batch.supplier_id != purchase.supplier_id:
        raise ValidationError("Batch belongs to a different supplier", batch_id=str(batch.id))
    if batch.status == BatchStatus.CLOSED:
        raise InvalidStateError("Cannot receive into a closed batch", batch_id=str(batch.id))
    purchase.batch_id = batch.id

    items = {item.id: item for item in purchase_items(db, purchase.id)}
    received = received_quantities(db, purchase.id)

    seen: set[uuid.UUID] = set()
    planned: list[tuple[PurchaseItem, ReceivedLine, str | None]] = []
    for line in lines:
        if line.quantity_received < 0:
            raise ValidationError(
                "Received quantity cannot be negative",
                purchase_item_id=str(line.purchase_item_id),
            )
        item = items.get(line.purchase_item_id)
        if item is None:
            raise ValidationError(
                "Item does not belong to this purchase",
                purchase_item_id=str(line.purchase_item_id),
            )
        if item.id in seen:
            raise ValidationError("Each purchase item may appear once per receipt", purchase_item_id=str(item.id))
        seen.add(item.id)

        line_key = f"{idempotency_key}:{item.id}" if idempotency_key else None
        if line_key and db.scalar(select(InventoryEntry.id).where(InventoryEntry.idempotency_key == line_key)):
            continue
        if line.quantity_received == 0:
            continue

        outstanding = item.quantity - received.get(item.id, 0)
        if line.quantity_received > outstanding + tolerance:
            raise ValidationError(
                "Received quantity exceeds the outstanding ordered quantity",
                purchase_item_id=str(item.id),
                outstanding=outstanding,
                requested=line.quantity_received,
                tolerance=tolerance,
            )
        planned.append((item, line, line_key))

    reference = Reference.purchase(purchase.id)
    for item, line, line_key in planned:
        product = get_product(db, item.product_id)
        if item.selling_price is not None:
            selling = Decimal(item.selling_price)
        elif product.default_selling_price is not None:
            selling = Decimal(product.default_selling_price)
        else:
            selling = Decimal(item.unit_cost)

        inventory_ledger.receive(
            db,
            product_id=item.product_id,
            batch_id=batch.id,
            cost_price=Decimal(item.unit_cost),
            selling_price=selling,
            quantity=line.quantity_received,
            expiry_date=line.expiry_date or item.expiry_date,
            purchase_item_id=item.id,
            reference=reference,
            idempotency_key=line_key,
            warehouse_location=line.warehouse_location,
            notes=f"Receipt for purchase {purchase.purchase_number}",
            created_by_id=processed_by_id,
            received_at=received_at,
        )

        amount = -(Decimal(item.unit_cost) * line.quantity_received).quantize(Q2)
        if amount != 0:
            transaction_ledger.post(
                db,
                business_id=purchase.business_id,
                transaction_type=TransactionType.PURCHASE,
                amount=amount,
                payment_method_id=payment_method_id,
                reference=reference,
                processed_by_id=processed_by_id,
                description=f"Purchase {purchase.purchase_number}: {line.quantity_received} received",
                idempotency_key=f"{line_key}:purchase" if line_key else None,
            )

    purchase.status = _resolve_status(list(items.values()), received_quantities(db, purchase.id))
    db.flush()
    logger.info(
        "purchase received",
        extra={"purchase_id": str(purchase.id), "lines": len(planned), "status": purchase.status.value},
    )
    return purchase


def cancel_purchase(db: Session, *, purchase_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Purchase:
    purchase = _lock_purchase(db, purchase_id, business_id)
    if purchase.status == PurchaseStatus.CANCELLED:
        raise InvalidStateError("Purchase is already cancelled", purchase_id=str(purchase.id))
    if any(quantity > 0 for quantity in received_quantities(db, purchase.id).values()):
        raise InvalidStateError(
            "Cannot cancel a purchase that has received stock; post an adjustment instead",
            purchase_id=str(purchase.id),
        )
    purchase.status = PurchaseStatus.CANCELLED
    db.flush()
    if purchase.batch_id is not None:
        close_if_exhausted(db, purchase.batch_id)
    logger.info("purchase cancelled", extra={"purchase_id": str(purchase.id)})
    return purchase


def list_purchases(
    db: Session,
    business_id: uuid.UUID,
    *,
    status: PurchaseStatus | None = None,
    supplier_id: uuid.UUID | None = None,
) -> list[Purchase]:
    query = select(Purchase).where(Purchase.business_id == business_id).order_by(Purchase.created_at.desc())
    if status is not None:
        query = query.where(Purchase.status == status)
    if supplier_id is not None:
        query = query.where(Purchase.supplier_id == supplier_id)
    return list(db.scalars(query).all())
