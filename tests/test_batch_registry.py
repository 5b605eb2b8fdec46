import uuid

import pytest

from stockledger.core.errors import InvalidStateError, NotFoundError, ValidationError
from stockledger.models.enums import BatchStatus
from stockledger.services import batch_registry


def test_register_and_list(db, tenant):
    batch = batch_registry.register_batch(
        db,
        business_id=tenant.business_id,
        batch_number=" B-0002 ",
        supplier_id=tenant.supplier_id,
        waybill_number="WB-88",
    )

    assert batch.batch_number == "B-0002"
    assert batch.status == BatchStatus.OPEN
    numbers = {b.batch_number for b in batch_registry.list_batches(db, tenant.business_id)}
    assert numbers == {"B-0001", "B-0002"}


def test_duplicate_and_reserved_numbers_are_rejected(db, tenant):
    with pytest.raises(ValidationError):
        batch_registry.register_batch(
            db,
            business_id=tenant.business_id,
            batch_number="B-0001",
            supplier_id=tenant.supplier_id,
        )
    with pytest.raises(ValidationError):
        batch_registry.register_batch(
            db,
            business_id=tenant.business_id,
            batch_number=f"{batch_registry.ADJUSTMENT_BATCH_PREFIX}manual",
            supplier_id=tenant.supplier_id,
        )


def test_close_is_terminal(db, tenant):
    batch_registry.close_batch(db, tenant.batch_id)
    with pytest.raises(InvalidStateError):
        batch_registry.close_batch(db, tenant.batch_id)


def test_batches_are_scoped_to_their_business(db, tenant):
    with pytest.raises(NotFoundError):
        batch_registry.get_batch(db, tenant.batch_id, business_id=uuid.uuid4())
