from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stockledger.core.errors import InsufficientStockError, InvalidStateError, ValidationError
from stockledger.models import Batch, InventoryEntry, InventoryMovement
from stockledger.models.enums import BatchStatus, MovementType
from stockledger.services import batch_registry, inventory_ledger
from stockledger.services.references import Reference


def _out_movements(db) -> int:
    return db.scalar(
        select(func.count(InventoryMovement.id)).where(InventoryMovement.movement_type == MovementType.OUT)
    )


def test_consume_takes_oldest_lots_first(db, tenant, stock):
    first = stock(5, "1.00")
    second = stock(5, "2.00")
    third = stock(5, "3.00")

    allocations = inventory_ledger.consume(
        db,
        product_id=tenant.product_a_id,
        quantity=7,
        reference=Reference.parse("order", "5f0c6a4e-2d7b-4a53-9d0a-0d1f5b7f2a10"),
    )

    assert [(a.entry_id, a.quantity_taken) for a in allocations] == [(first.id, 5), (second.id, 2)]
    assert sum((a.cost for a in allocations), Decimal("0")) == Decimal("9.00")
    assert (first.current_quantity, second.current_quantity, third.current_quantity) == (0, 3, 5)
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 8


def test_insufficient_stock_leaves_everything_untouched(db, tenant, stock):
    stock(5, "1.00")
    stock(5, "2.00")

    with pytest.raises(InsufficientStockError) as excinfo:
        inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=11, reference=None)

    assert excinfo.value.requested == 11
    assert excinfo.value.available == 10
    assert excinfo.value.product_id == tenant.product_a_id
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 10
    assert _out_movements(db) == 0


def test_consume_rejects_non_positive_quantity(db, tenant, stock):
    stock(5, "1.00")
    with pytest.raises(ValidationError):
        inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=0, reference=None)


def test_current_quantity_matches_signed_movement_sum(db, tenant, stock):
    entry = stock(10, "2.00")
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=4, reference=None)
    inventory_ledger.adjust(db, entry_id=entry.id, delta=-1, reason="damaged")
    inventory_ledger.adjust(db, entry_id=entry.id, delta=2, reason="recount")

    assert entry.current_quantity == 7
    assert inventory_ledger.movement_balance(db, entry.id) == entry.current_quantity


def test_receive_with_same_idempotency_key_returns_existing_entry(db, tenant):
    kwargs = dict(
        product_id=tenant.product_a_id,
        batch_id=tenant.batch_id,
        cost_price=Decimal("2.00"),
        selling_price=Decimal("5.00"),
        quantity=10,
        idempotency_key="receipt-42",
    )
    first = inventory_ledger.receive(db, **kwargs)
    replay = inventory_ledger.receive(db, **kwargs)

    assert replay.id == first.id
    assert db.scalar(select(func.count(InventoryEntry.id))) == 1
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 10


def test_receive_rejects_closed_batch(db, tenant):
    batch_registry.close_batch(db, tenant.batch_id)
    with pytest.raises(InvalidStateError):
        inventory_ledger.receive(
            db,
            product_id=tenant.product_a_id,
            batch_id=tenant.batch_id,
            cost_price=Decimal("2.00"),
            selling_price=Decimal("5.00"),
            quantity=1,
        )


def test_receive_rejects_non_positive_quantity(db, tenant):
    with pytest.raises(ValidationError):
        inventory_ledger.receive(
            db,
            product_id=tenant.product_a_id,
            batch_id=tenant.batch_id,
            cost_price=Decimal("2.00"),
            selling_price=Decimal("5.00"),
            quantity=0,
        )


def test_adjust_requires_reason_and_stays_within_received_range(db, tenant, stock):
    entry = stock(5, "1.00")

    with pytest.raises(ValidationError):
        inventory_ledger.adjust(db, entry_id=entry.id, delta=-1, reason="  ")
    with pytest.raises(ValidationError):
        inventory_ledger.adjust(db, entry_id=entry.id, delta=-6, reason="lost")
    with pytest.raises(ValidationError):
        inventory_ledger.adjust(db, entry_id=entry.id, delta=1, reason="found")

    inventory_ledger.adjust(db, entry_id=entry.id, delta=-5, reason="expired")
    assert entry.current_quantity == 0


def test_recredit_never_exceeds_quantity_received(db, tenant, stock):
    entry = stock(10, "1.00")
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=6, reference=None)
    inventory_ledger.adjust(db, entry_id=entry.id, delta=4, reason="recount")

    restored = inventory_ledger.recredit(db, entry_id=entry.id, quantity=6, reference=None)

    assert restored == 2
    assert entry.current_quantity == 10
    assert inventory_ledger.movement_balance(db, entry.id) == 10


def test_batch_closes_when_every_entry_is_exhausted(db, tenant, stock):
    stock(3, "1.00")
    stock(2, "1.50", product_id=tenant.product_b_id)

    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=3, reference=None)
    assert db.get(Batch, tenant.batch_id).status == BatchStatus.OPEN

    inventory_ledger.consume(db, product_id=tenant.product_b_id, quantity=2, reference=None)
    assert db.get(Batch, tenant.batch_id).status == BatchStatus.CLOSED


def test_list_movements_filters_by_reference(db, tenant, stock):
    stock(10, "1.00")
    reference = Reference.parse("adjustment", "0b8f4c1e-7d0a-4c39-8a55-2c6b1f3e9d21")
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=3, reference=reference)

    movements = inventory_ledger.list_movements(db, tenant.business_id, reference=reference)

    assert len(movements) == 1
    assert movements[0].quantity == 3
    assert movements[0].signed_quantity == -3


def test_reused_idempotency_key_with_different_receipt_is_rejected(db, tenant):
    kwargs = dict(
        product_id=tenant.product_a_id,
        batch_id=tenant.batch_id,
        cost_price=Decimal("2.00"),
        selling_price=Decimal("5.00"),
        quantity=10,
        idempotency_key="receipt-43",
    )
    inventory_ledger.receive(db, **kwargs)

    with pytest.raises(ValidationError):
        inventory_ledger.receive(db, **{**kwargs, "quantity": 12})
    with pytest.raises(ValidationError):
        inventory_ledger.receive(db, **{**kwargs, "product_id": tenant.product_b_id})
    assert db.scalar(select(func.count(InventoryEntry.id))) == 1
