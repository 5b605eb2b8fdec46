import uuid
from dataclasses import dataclass

from stockledger.core.errors import ValidationError
from stockledger.models.enums import ReferenceType


@dataclass(frozen=True)
class Reference:
    """Loose pointer to the entity that caused a movement or transaction.

    `referenceId`/`referenceType` carry no foreign key in the schema, so the
    kind is checked here against `ReferenceType` instead.
    """

    kind: ReferenceType
    id: uuid.UUID

    @classmethod
    def parse(cls, kind: str | ReferenceType, ref_id: uuid.UUID | str) -> "Reference":
        try:
            parsed_kind = ReferenceType(kind)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in ReferenceType)
            raise ValidationError(f"Unknown reference type {kind!r}; expected one of {allowed}") from exc
        try:
            parsed_id = ref_id if isinstance(ref_id, uuid.UUID) else uuid.UUID(str(ref_id))
        except ValueError as exc:
            raise ValidationError(f"Invalid reference id {ref_id!r}") from exc
        return cls(kind=parsed_kind, id=parsed_id)

    @classmethod
    def order(cls, order_id: uuid.UUID) -> "Reference":
        return cls(ReferenceType.ORDER, order_id)

    @classmethod
    def purchase(cls, purchase_id: uuid.UUID) -> "Reference":
        return cls(ReferenceType.PURCHASE, purchase_id)

    @classmethod
    def adjustment(cls, adjustment_id: uuid.UUID) -> "Reference":
        return cls(ReferenceType.ADJUSTMENT, adjustment_id)

    @classmethod
    def expense(cls, expense_id: uuid.UUID) -> "Reference":
        return cls(ReferenceType.EXPENSE, expense_id)
