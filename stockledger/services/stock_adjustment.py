import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.core.config import ADJUSTMENT_COST_POLICIES, settings
from stockledger.core.errors import ValidationError
from stockledger.models.enums import AdjustmentDirection, TransactionType
from stockledger.models.ledger import Transaction
from stockledger.services import inventory_ledger, transaction_ledger
from stockledger.services.batch_registry import get_or_create_adjustment_batch
from stockledger.services.inventory_ledger import Allocation
from stockledger.services.lookups import get_product
from stockledger.services.references import Reference
from stockledger.services.valuation import adjustment_unit_cost

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")


@dataclass
class StockAdjustmentResult:
    adjustment_id: uuid.UUID
    product_id: uuid.UUID
    direction: AdjustmentDirection
    quantity: int
    value: Decimal
    entry_ids: list[uuid.UUID] = field(default_factory=list)
    allocations: list[Allocation] = field(default_factory=list)
    transaction: Transaction | None = None


def adjust(
    db: Session,
    *,
    product_id: uuid.UUID,
    direction: AdjustmentDirection,
    quantity: int,
    reason: str,
    notes: str | None = None,
    business_id: uuid.UUID | None = None,
    unit_cost: Decimal | None = None,
    cost_policy: str | None = None,
    post_transaction: bool | None = None,
    payment_method_id: uuid.UUID | None = None,
    created_by_id: uuid.UUID | None = None,
) -> StockAdjustmentResult:
    direction = AdjustmentDirection(direction)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Adjustment reason is required")
    if quantity <= 0:
        raise ValidationError("Adjustment quantity must be positive", quantity=quantity)
    if unit_cost is not None and Decimal(unit_cost) < 0:
        raise ValidationError("Unit cost cannot be negative")
    policy = cost_policy or settings.adjustment_cost_policy
    if policy not in ADJUSTMENT_COST_POLICIES:
        raise ValidationError(f"Unknown adjustment cost policy {policy!r}")

    product = get_product(db, product_id, business_id)
    adjustment_id = uuid.uuid4()
    reference = Reference.adjustment(adjustment_id)
    movement_notes = f"{reason}: {notes.strip()}" if notes and notes.strip() else reason

    result = StockAdjustmentResult(
        adjustment_id=adjustment_id,
        product_id=product.id,
        direction=direction,
        quantity=quantity,
        value=Decimal("0.00"),
    )

    if direction == AdjustmentDirection.INCREASE:
        batch = get_or_create_adjustment_batch(db, business_id=product.business_id, supplier_id=product.supplier_id)
        cost = Decimal(unit_cost).quantize(Q2) if unit_cost is not None else adjustment_unit_cost(db, product, policy)
        selling = product.default_selling_price if product.default_selling_price is not None else cost
        entry = inventory_ledger.receive(
            db,
            product_id=product.id,
            batch_id=batch.id,
            cost_price=cost,
            selling_price=selling,
            quantity=quantity,
            reference=reference,
            notes=movement_notes,
            created_by_id=created_by_id,
        )
        result.entry_ids = [entry.id]
        result.value = (cost * quantity).quantize(Q2)
    else:
        allocations = inventory_ledger.consume(
            db,
            product_id=product.id,
            quantity=quantity,
            reference=reference,
            notes=movement_notes,
            created_by_id=created_by_id,
        )
        result.allocations = allocations
        result.entry_ids = [allocation.entry_id for allocation in allocations]
        result.value = sum((allocation.cost for allocation in allocations), Decimal("0.00"))

    should_post = settings.adjustment_posts_transaction if post_transaction is None else post_transaction
    if should_post and result.value != 0:
        amount = result.value if direction == AdjustmentDirection.INCREASE else -result.value
        result.transaction = transaction_ledger.post(
            db,
            business_id=product.business_id,
            transaction_type=TransactionType.ADJUSTMENT,
            amount=amount,
            payment_method_id=payment_method_id,
            reference=reference,
            processed_by_id=created_by_id,
            description=f"Stock {direction.value}: {reason}",
        )

    logger.info(
        "stock adjusted",
        extra={
            "adjustment_id": str(adjustment_id),
            "product_id": str(product.id),
            "direction": direction.value,
            "quantity": quantity,
            "value": str(result.value),
        },
    )
    return result
