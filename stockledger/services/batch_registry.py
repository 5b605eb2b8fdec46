import logging
import uuid
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.errors import InvalidStateError, NotFoundError, ValidationError
from stockledger.models.enums import BatchStatus, PurchaseStatus
from stockledger.models.inventory import Batch, InventoryEntry
from stockledger.models.procurement import Purchase
from stockledger.services.lookups import get_supplier

logger = logging.getLogger(__name__)

ADJUSTMENT_BATCH_PREFIX = "ADJUSTMENT-"


def is_adjustment_batch(batch: Batch) -> bool:
    return batch.batch_number.startswith(ADJUSTMENT_BATCH_PREFIX)


def get_batch(db: Session, batch_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Batch:
    batch = db.get(Batch, batch_id)
    if not batch or (business_id is not None and batch.business_id != business_id):
        raise NotFoundError("Batch", batch_id)
    return batch


def register_batch(
    db: Session,
    *,
    business_id: uuid.UUID,
    batch_number: str,
    supplier_id: uuid.UUID,
    received_date: date | None = None,
    waybill_number: str | None = None,
    notes: str | None = None,
) -> Batch:
    batch_number = batch_number.strip()
    if not batch_number:
        raise ValidationError("Batch number is required")
    if batch_number.startswith(ADJUSTMENT_BATCH_PREFIX):
        raise ValidationError(f"Batch numbers starting with {ADJUSTMENT_BATCH_PREFIX} are reserved")
    supplier = get_supplier(db, supplier_id, business_id)
    if not supplier.is_active:
        raise InvalidStateError("Supplier is inactive", supplier_id=str(supplier_id))
    if db.scalar(select(Batch.id).where(Batch.batch_number == batch_number)):
        raise ValidationError("Batch number already exists", batch_number=batch_number)

    batch = Batch(
        business_id=business_id,
        batch_number=batch_number,
        supplier_id=supplier_id,
        received_date=received_date or date.today(),
        waybill_number=waybill_number.strip() if waybill_number else None,
        notes=notes,
        status=BatchStatus.OPEN,
    )
    db.add(batch)
    db.flush()
    logger.info("batch registered", extra={"batch_id": str(batch.id), "batch_number": batch_number})
    return batch


def close_batch(db: Session, batch_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Batch:
    batch = get_batch(db, batch_id, business_id)
    if batch.status == BatchStatus.CLOSED:
        raise InvalidStateError("Batch is already closed", batch_id=str(batch_id))
    batch.status = BatchStatus.CLOSED
    db.flush()
    logger.info("batch closed", extra={"batch_id": str(batch.id)})
    return batch


def close_if_exhausted(db: Session, batch_id: uuid.UUID) -> bool:
    """Close an open supplier batch once every entry in it is down to zero.

    A batch still expecting goods from a pending or partial purchase stays open.
    """
    batch = db.get(Batch, batch_id)
    if not batch or batch.status == BatchStatus.CLOSED or is_adjustment_batch(batch):
        return False

    db.flush()
    awaiting_goods = db.scalar(
        select(Purchase.id)
        .where(
            Purchase.batch_id == batch_id,
            Purchase.status.in_([PurchaseStatus.PENDING, PurchaseStatus.PARTIAL]),
        )
        .limit(1)
    )
    if awaiting_goods:
        return False

    total_entries, remaining = db.execute(
        select(
            func.count(InventoryEntry.id),
            func.coalesce(func.sum(InventoryEntry.current_quantity), 0),
        ).where(InventoryEntry.batch_id == batch_id)
    ).one()
    if total_entries == 0 or int(remaining) > 0:
        return False

    batch.status = BatchStatus.CLOSED
    logger.info("batch exhausted and closed", extra={"batch_id": str(batch.id)})
    return True


def get_or_create_adjustment_batch(db: Session, *, business_id: uuid.UUID, supplier_id: uuid.UUID) -> Batch:
    batch_number = f"{ADJUSTMENT_BATCH_PREFIX}{supplier_id.hex}"
    batch = db.scalar(select(Batch).where(Batch.batch_number == batch_number))
    if batch:
        if batch.status == BatchStatus.CLOSED:
            batch.status = BatchStatus.OPEN
        return batch

    batch = Batch(
        business_id=business_id,
        batch_number=batch_number,
        supplier_id=supplier_id,
        received_date=date.today(),
        notes="Reserved batch for stock adjustments",
        status=BatchStatus.OPEN,
    )
    db.add(batch)
    db.flush()
    return batch


def list_batches(
    db: Session,
    business_id: uuid.UUID,
    *,
    status: BatchStatus | None = None,
    supplier_id: uuid.UUID | None = None,
) -> list[Batch]:
    query = select(Batch).where(Batch.business_id == business_id).order_by(Batch.received_date.desc(), Batch.created_at.desc())
    if status is not None:
        query = query.where(Batch.status == status)
    if supplier_id is not None:
        query = query.where(Batch.supplier_id == supplier_id)
    return list(db.scalars(query).all())
