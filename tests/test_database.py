import uuid
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from stockledger.core.errors import ConcurrencyConflictError
from stockledger.db.database import run_in_transaction, unit_of_work
from stockledger.models import Batch, InventoryMovement
from stockledger.models.enums import MovementType


def _zero_quantity_movement(tenant):
    return InventoryMovement(
        business_id=tenant.business_id,
        inventory_entry_id=uuid.uuid4(),
        quantity=0,
        movement_type=MovementType.IN,
    )


def test_duplicate_key_is_a_retryable_conflict(db, tenant):
    with pytest.raises(ConcurrencyConflictError) as excinfo:
        with unit_of_work(db):
            db.add(
                Batch(
                    business_id=tenant.business_id,
                    batch_number="B-0001",
                    supplier_id=tenant.supplier_id,
                    received_date=date.today(),
                )
            )
            db.flush()

    assert excinfo.value.retryable is True


def test_check_violation_propagates_unchanged(db, tenant):
    with pytest.raises(IntegrityError):
        with unit_of_work(db):
            db.add(_zero_quantity_movement(tenant))
            db.flush()


def test_check_violation_is_not_retried(db, tenant):
    calls = []

    def operation():
        calls.append(1)
        db.add(_zero_quantity_movement(tenant))
        db.flush()

    with pytest.raises(IntegrityError):
        run_in_transaction(db, operation, attempts=3)
    assert len(calls) == 1
