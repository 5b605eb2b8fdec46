from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stockledger.core.errors import InvalidStateError, ValidationError
from stockledger.models import Batch, InventoryEntry, Transaction
from stockledger.models.enums import BatchStatus, PurchaseStatus, ReferenceType, TransactionType
from stockledger.services import inventory_ledger, purchase_receiving
from stockledger.services.purchase_receiving import PurchaseLine, ReceivedLine


@pytest.fixture()
def purchase(db, tenant):
    return purchase_receiving.create_purchase(
        db,
        business_id=tenant.business_id,
        supplier_id=tenant.supplier_id,
        batch_id=tenant.batch_id,
        items=[
            PurchaseLine(product_id=tenant.product_a_id, quantity=10, unit_cost=Decimal("2.00")),
            PurchaseLine(product_id=tenant.product_b_id, quantity=5, unit_cost=Decimal("4.00")),
        ],
        created_by_id=tenant.owner_id,
    )


def _items(db, purchase):
    # rice line (10 ordered) first, oil line (5 ordered) second
    items = sorted(purchase_receiving.purchase_items(db, purchase.id), key=lambda item: -item.quantity)
    return items[0], items[1]


def test_create_purchase_totals_lines(db, purchase):
    assert purchase.status == PurchaseStatus.PENDING
    assert purchase.total_amount == Decimal("40.00")
    assert purchase.purchase_number.startswith("PO-")


def test_partial_then_full_receipt(db, tenant, purchase):
    item_a, item_b = _items(db, purchase)

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=4)],
    )
    assert purchase.status == PurchaseStatus.PARTIAL
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 4

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[
            ReceivedLine(purchase_item_id=item_a.id, quantity_received=6),
            ReceivedLine(purchase_item_id=item_b.id, quantity_received=5),
        ],
    )
    assert purchase.status == PurchaseStatus.RECEIVED
    assert purchase_receiving.received_quantities(db, purchase.id) == {item_a.id: 10, item_b.id: 5}

    amounts = sorted(
        db.scalars(
            select(Transaction.amount).where(
                Transaction.transaction_type == TransactionType.PURCHASE,
                Transaction.reference_type == ReferenceType.PURCHASE,
                Transaction.reference_id == purchase.id,
            )
        ).all()
    )
    assert amounts == [Decimal("-20.00"), Decimal("-12.00"), Decimal("-8.00")]

    with pytest.raises(InvalidStateError):
        purchase_receiving.receive(
            db,
            purchase_id=purchase.id,
            lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=1)],
        )


def test_receiving_entries_carry_purchase_cost(db, tenant, purchase):
    item_a, _ = _items(db, purchase)
    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=3)],
    )
    entry = db.scalar(select(InventoryEntry).where(InventoryEntry.purchase_item_id == item_a.id))
    assert entry.cost_price == Decimal("2.00")
    assert entry.batch_id == tenant.batch_id
    # no selling price on the line, falls back to the product default
    assert entry.selling_price == Decimal("5.00")


def test_overage_beyond_tolerance_is_rejected(db, purchase):
    item_a, _ = _items(db, purchase)

    with pytest.raises(ValidationError):
        purchase_receiving.receive(
            db,
            purchase_id=purchase.id,
            lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=11)],
            overage_tolerance=0,
        )

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=11)],
        overage_tolerance=1,
    )
    assert purchase_receiving.received_quantities(db, purchase.id)[item_a.id] == 11


def test_replayed_receipt_creates_nothing_new(db, purchase):
    item_a, _ = _items(db, purchase)
    lines = [ReceivedLine(purchase_item_id=item_a.id, quantity_received=4)]

    purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines, idempotency_key="grn-7")
    purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines, idempotency_key="grn-7")

    assert db.scalar(select(func.count(InventoryEntry.id))) == 1
    assert db.scalar(select(func.count(Transaction.id))) == 1
    assert purchase.status == PurchaseStatus.PARTIAL


def test_cancelled_purchase_cannot_be_received(db, purchase):
    item_a, _ = _items(db, purchase)
    purchase_receiving.cancel_purchase(db, purchase_id=purchase.id)

    with pytest.raises(InvalidStateError):
        purchase_receiving.receive(
            db,
            purchase_id=purchase.id,
            lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=1)],
        )


def test_purchase_with_receipts_cannot_be_cancelled(db, purchase):
    item_a, _ = _items(db, purchase)
    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item_a.id, quantity_received=1)],
    )
    with pytest.raises(InvalidStateError):
        purchase_receiving.cancel_purchase(db, purchase_id=purchase.id)


def test_foreign_item_and_duplicate_lines_are_rejected(db, purchase):
    item_a, _ = _items(db, purchase)

    with pytest.raises(ValidationError):
        purchase_receiving.receive(
            db,
            purchase_id=purchase.id,
            lines=[
                ReceivedLine(purchase_item_id=item_a.id, quantity_received=1),
                ReceivedLine(purchase_item_id=item_a.id, quantity_received=1),
            ],
        )
    with pytest.raises(ValidationError):
        purchase_receiving.receive(
            db,
            purchase_id=purchase.id,
            lines=[ReceivedLine(purchase_item_id=purchase.id, quantity_received=1)],
        )


def test_ten_and_six_of_ten_each_is_partial_until_the_last_four(db, tenant):
    purchase = purchase_receiving.create_purchase(
        db,
        business_id=tenant.business_id,
        supplier_id=tenant.supplier_id,
        batch_id=tenant.batch_id,
        items=[
            PurchaseLine(product_id=tenant.product_a_id, quantity=10, unit_cost=Decimal("2.00")),
            PurchaseLine(product_id=tenant.product_b_id, quantity=10, unit_cost=Decimal("3.00")),
        ],
    )
    by_product = {item.product_id: item for item in purchase_receiving.purchase_items(db, purchase.id)}
    rice, oil = by_product[tenant.product_a_id], by_product[tenant.product_b_id]

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[
            ReceivedLine(purchase_item_id=rice.id, quantity_received=10),
            ReceivedLine(purchase_item_id=oil.id, quantity_received=6),
        ],
    )
    assert purchase.status == PurchaseStatus.PARTIAL

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=oil.id, quantity_received=4)],
    )
    assert purchase.status == PurchaseStatus.RECEIVED
    assert inventory_ledger.available_quantity(db, tenant.product_b_id) == 10


def test_purchase_without_a_batch_needs_one_at_receipt(db, tenant):
    purchase = purchase_receiving.create_purchase(
        db,
        business_id=tenant.business_id,
        supplier_id=tenant.supplier_id,
        items=[PurchaseLine(product_id=tenant.product_a_id, quantity=2, unit_cost=Decimal("2.00"))],
    )
    (item,) = purchase_receiving.purchase_items(db, purchase.id)
    lines = [ReceivedLine(purchase_item_id=item.id, quantity_received=2)]

    with pytest.raises(ValidationError):
        purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines)

    purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines, batch_id=tenant.batch_id)
    assert purchase.batch_id == tenant.batch_id
    assert purchase.status == PurchaseStatus.RECEIVED


def test_batch_stays_open_while_its_purchase_awaits_goods(db, tenant):
    purchase = purchase_receiving.create_purchase(
        db,
        business_id=tenant.business_id,
        supplier_id=tenant.supplier_id,
        batch_id=tenant.batch_id,
        items=[PurchaseLine(product_id=tenant.product_a_id, quantity=10, unit_cost=Decimal("2.00"))],
    )
    (item,) = purchase_receiving.purchase_items(db, purchase.id)

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item.id, quantity_received=6)],
    )
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=6, reference=None)
    assert db.get(Batch, tenant.batch_id).status == BatchStatus.OPEN

    purchase_receiving.receive(
        db,
        purchase_id=purchase.id,
        lines=[ReceivedLine(purchase_item_id=item.id, quantity_received=4)],
    )
    assert purchase.status == PurchaseStatus.RECEIVED

    # nothing more is expected, so selling the rest closes the batch
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=4, reference=None)
    assert db.get(Batch, tenant.batch_id).status == BatchStatus.CLOSED


def test_replayed_final_receipt_returns_the_received_purchase(db, tenant, purchase):
    item_a, item_b = _items(db, purchase)
    lines = [
        ReceivedLine(purchase_item_id=item_a.id, quantity_received=10),
        ReceivedLine(purchase_item_id=item_b.id, quantity_received=5),
    ]

    purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines, idempotency_key="grn-9")
    replay = purchase_receiving.receive(db, purchase_id=purchase.id, lines=lines, idempotency_key="grn-9")

    assert replay.id == purchase.id
    assert replay.status == PurchaseStatus.RECEIVED
    assert db.scalar(select(func.count(InventoryEntry.id))) == 2
    assert db.scalar(select(func.count(Transaction.id))) == 2
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 10
