"""
Admin Override — Manual correction of a payment's status by an administrator.

The signature check is bypassed, but the note, the transition rules and the
audit trail are not.
"""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from casepay.exceptions import InvalidTransition, PaymentNotFound, ValidationError
from casepay.models.enums import PaymentStatus
from casepay.models.payment import PaymentRecord
from casepay.services.notification_service import NotificationDispatcher
from casepay.services.payment_state_machine import (
    PaymentStateMachine, SOURCE_ADMIN, admin_transition_violation,
)

logger = structlog.get_logger(__name__)


def _coerce_status(new_status) -> PaymentStatus:
    if isinstance(new_status, PaymentStatus):
        return new_status
    try:
        return PaymentStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown payment status: {new_status!r}", rule="UNKNOWN_STATUS")


class AdminOverride:

    def __init__(self, db: Session, dispatcher: NotificationDispatcher):
        self.db = db
        self.machine = PaymentStateMachine(db, dispatcher)

    def override(
        self,
        payment_id: str,
        new_status,
        note: Optional[str],
        acting_admin_id: str,
    ) -> PaymentRecord:
        """Force `payment_id` into `new_status`.

        Raises:
            ValidationError: empty note, missing admin id or unknown status.
            PaymentNotFound: no such payment.
            InvalidTransition: the move is not permitted from the current
                status, or the status changed underneath us.
        """
        note = (note or "").strip()
        if not note:
            raise ValidationError("A note is required for every admin status change", rule="NOTE_REQUIRED")
        if not acting_admin_id:
            raise ValidationError("Acting admin id is required", rule="ADMIN_ID_REQUIRED")
        to_status = _coerce_status(new_status)

        record = (
            self.db.query(PaymentRecord)
            .populate_existing()
            .filter(PaymentRecord.id == payment_id)
            .first()
        )
        if not record:
            raise PaymentNotFound("Payment not found")

        from_status = record.status
        rule = admin_transition_violation(from_status, to_status)
        if rule:
            logger.warning(
                "admin_override_rejected",
                payment_id=payment_id,
                from_status=from_status.value,
                to_status=to_status.value,
                rule=rule,
                admin=acting_admin_id,
            )
            raise InvalidTransition(
                f"Cannot change payment from {from_status.value} to {to_status.value}",
                rule=rule,
            )

        now = datetime.utcnow()
        line = f"[{now.isoformat(timespec='seconds')}] {acting_admin_id}: {from_status.value} -> {to_status.value}: {note}"
        admin_notes = f"{record.admin_notes}\n{line}" if record.admin_notes else line

        changes = {"admin_notes": admin_notes, "status_updated_by": acting_admin_id}
        if to_status == PaymentStatus.COMPLETED:
            changes["confirmed_at"] = now

        transition = self.machine.apply(
            record,
            to_status,
            expected_from=from_status,
            action="ADMIN_OVERRIDE",
            actor=acting_admin_id,
            source=SOURCE_ADMIN,
            note=note,
            changes=changes,
        )
        if transition is None:
            raise InvalidTransition(
                "Payment status changed while the override was being applied; reload and retry",
                rule="STATUS_CHANGED_CONCURRENTLY",
            )

        logger.info(
            "admin_override_applied",
            payment_id=payment_id,
            from_status=from_status.value,
            to_status=to_status.value,
            admin=acting_admin_id,
        )
        return record
