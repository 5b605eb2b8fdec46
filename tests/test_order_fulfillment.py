import dataclasses
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stockledger.core.config import settings
from stockledger.core.errors import InsufficientStockError, InvalidStateError
from stockledger.models import InventoryMovement, Transaction
from stockledger.models.enums import (
    MovementType,
    OrderPaymentMethod,
    OrderStatus,
    PaymentStatus,
    TransactionType,
)
from stockledger.services import inventory_ledger, order_fulfillment, transaction_ledger
from stockledger.services.order_fulfillment import OrderLine


def _order(db, tenant, *lines):
    return order_fulfillment.create_order(
        db,
        business_id=tenant.business_id,
        customer_id=tenant.customer_id,
        items=list(lines),
        payment_method=OrderPaymentMethod.CASH,
        created_by_id=tenant.owner_id,
    )


def test_fulfilling_thirty_of_a_hundred_books_sixty_of_cogs(db, tenant, stock):
    stock(100, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=30, unit_price=Decimal("5.00")))

    result = order_fulfillment.fulfill(
        db,
        order_id=order.id,
        payment_method_id=tenant.payment_method_id,
        processed_by_id=tenant.owner_id,
    )

    assert result.total_cogs == Decimal("60.00")
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 70
    assert result.transaction.transaction_type == TransactionType.SALE
    assert result.transaction.amount == Decimal("150.00")
    assert order.status == OrderStatus.PAID
    assert order.payment_status == PaymentStatus.PAID


def test_fulfillment_spans_lots_in_fifo_order(db, tenant, stock):
    first = stock(5, "1.00")
    second = stock(5, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=7))

    result = order_fulfillment.fulfill(db, order_id=order.id)

    (line,) = result.lines
    assert [(a.entry_id, a.quantity_taken) for a in line.allocations] == [(first.id, 5), (second.id, 2)]
    assert line.cogs == Decimal("9.00")


def test_one_short_line_fails_the_whole_order(db, tenant, stock):
    stock(10, "1.00", product_id=tenant.product_a_id)
    stock(2, "3.00", product_id=tenant.product_b_id)
    order = _order(
        db,
        tenant,
        OrderLine(product_id=tenant.product_a_id, quantity=5),
        OrderLine(product_id=tenant.product_b_id, quantity=3),
    )

    with pytest.raises(InsufficientStockError) as excinfo:
        order_fulfillment.fulfill(db, order_id=order.id)

    assert excinfo.value.product_id == tenant.product_b_id
    assert excinfo.value.available == 2
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 10
    assert db.scalar(
        select(func.count(InventoryMovement.id)).where(InventoryMovement.movement_type == MovementType.OUT)
    ) == 0
    assert db.scalar(select(func.count(Transaction.id))) == 0
    assert order.status == OrderStatus.PENDING


def test_repeated_lines_for_one_product_are_checked_together(db, tenant, stock):
    stock(6, "1.00")
    order = _order(
        db,
        tenant,
        OrderLine(product_id=tenant.product_a_id, quantity=4),
        OrderLine(product_id=tenant.product_a_id, quantity=4),
    )

    with pytest.raises(InsufficientStockError) as excinfo:
        order_fulfillment.fulfill(db, order_id=order.id)
    assert excinfo.value.requested == 8


def test_order_cannot_be_fulfilled_twice(db, tenant, stock):
    stock(10, "1.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=2))
    order_fulfillment.fulfill(db, order_id=order.id)

    with pytest.raises(InvalidStateError):
        order_fulfillment.fulfill(db, order_id=order.id)


def test_reversal_restocks_and_refunds(db, tenant, stock):
    stock(100, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=30, unit_price=Decimal("5.00")))
    order_fulfillment.fulfill(db, order_id=order.id)

    result = order_fulfillment.reverse_fulfillment(db, order_id=order.id, reason="customer returned goods")

    assert (result.requested, result.restored) == (30, 30)
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 100
    assert result.transaction.transaction_type == TransactionType.REFUND
    assert result.transaction.amount == Decimal("-150.00")
    assert order.status == OrderStatus.CANCELLED

    with pytest.raises(InvalidStateError):
        order_fulfillment.reverse_fulfillment(db, order_id=order.id)
    with pytest.raises(InvalidStateError):
        order_fulfillment.fulfill(db, order_id=order.id)


def test_reversal_restores_only_up_to_quantity_received(db, tenant, stock):
    entry = stock(100, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=30))
    order_fulfillment.fulfill(db, order_id=order.id)
    inventory_ledger.adjust(db, entry_id=entry.id, delta=30, reason="recount found the goods")

    result = order_fulfillment.reverse_fulfillment(db, order_id=order.id)

    assert (result.requested, result.restored) == (30, 0)
    assert entry.current_quantity == 100


def test_reversal_without_restock(db, tenant, stock, monkeypatch):
    monkeypatch.setattr(order_fulfillment, "settings", dataclasses.replace(settings, refund_restock_enabled=False))
    stock(10, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=4))
    order_fulfillment.fulfill(db, order_id=order.id)

    result = order_fulfillment.reverse_fulfillment(db, order_id=order.id)

    assert result.restored == 0
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 6
    assert result.transaction.amount == Decimal("-20.00")


def test_unfulfilled_order_cannot_be_reversed(db, tenant):
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=1))
    with pytest.raises(InvalidStateError):
        order_fulfillment.reverse_fulfillment(db, order_id=order.id)


def test_voiding_the_refund_does_not_allow_a_second_reversal(db, tenant, stock):
    stock(10, "2.00")
    order = _order(db, tenant, OrderLine(product_id=tenant.product_a_id, quantity=4, unit_price=Decimal("5.00")))
    order_fulfillment.fulfill(db, order_id=order.id)
    inventory_ledger.consume(db, product_id=tenant.product_a_id, quantity=6, reference=None)

    first = order_fulfillment.reverse_fulfillment(db, order_id=order.id)
    transaction_ledger.void(db, transaction_id=first.transaction.id, reason="refund keyed in error")

    with pytest.raises(InvalidStateError):
        order_fulfillment.reverse_fulfillment(db, order_id=order.id)
    assert first.restored == 4
    assert inventory_ledger.available_quantity(db, tenant.product_a_id) == 4
    assert db.scalar(
        select(func.count(Transaction.id)).where(Transaction.transaction_type == TransactionType.REFUND)
    ) == 1
