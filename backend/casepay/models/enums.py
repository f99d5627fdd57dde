"""
Status Enums — Closed sets of statuses for cases and payments.
Stored by value; anything outside the set is rejected at the boundary.
"""
import enum

from sqlalchemy import Enum


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class CasePaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class CaseStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CLOSED = "closed"


def enum_column_type(enum_cls: type[enum.Enum]) -> Enum:
    """SQLAlchemy type storing the enum's values (not member names) as VARCHAR."""
    return Enum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        native_enum=False,
        length=16,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
