"""
Payment State Machine — Legal PaymentRecord transitions and the Case
payment-status co-transition.

    pending ──verified callback──▶ completed ──admin refund──▶ refunded
       │
       └──bad signature / amount mismatch / gateway failure──▶ failed

Admin corrections may move between other states (see ADMIN_TRANSITIONS).

Every transition is one database transaction:
  1. conditional UPDATE of the payment keyed on the expected prior status
     (0 rows means someone else got there first; nothing is applied),
  2. UPDATE of the owning case,
  3. audit entry,
  4. COMMIT, and only then the notification.
"""
from typing import Optional, Dict, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casepay.models.case import Case
from casepay.models.enums import PaymentStatus, CasePaymentStatus
from casepay.models.payment import PaymentRecord
from casepay.services.audit_service import AuditService
from casepay.services.notification_service import NotificationDispatcher, TransitionEvent

logger = structlog.get_logger(__name__)

SOURCE_GATEWAY = "gateway"
SOURCE_ADMIN = "admin"

# Case payment status that mirrors each payment status
CASE_STATUS_FOR = {
    PaymentStatus.PENDING: CasePaymentStatus.PENDING,
    PaymentStatus.COMPLETED: CasePaymentStatus.PAID,
    PaymentStatus.FAILED: CasePaymentStatus.FAILED,
    PaymentStatus.REFUNDED: CasePaymentStatus.UNPAID,
}

# Transitions reachable through the gateway callback path
GATEWAY_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
}

# Transitions an admin may force, with the verifier bypassed
ADMIN_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED, PaymentStatus.FAILED},
    PaymentStatus.REFUNDED: set(),
}


def admin_transition_violation(from_status: PaymentStatus, to_status: PaymentStatus) -> Optional[str]:
    """Name of the rule an admin transition breaks, or None if it is allowed."""
    if from_status == to_status:
        return "STATUS_UNCHANGED"
    if to_status == PaymentStatus.REFUNDED and from_status != PaymentStatus.COMPLETED:
        return "REFUND_REQUIRES_COMPLETED"
    if from_status == PaymentStatus.REFUNDED:
        return "REFUNDED_IS_FINAL"
    if from_status == PaymentStatus.COMPLETED and to_status == PaymentStatus.PENDING:
        return "COMPLETED_CANNOT_REOPEN"
    if to_status not in ADMIN_TRANSITIONS[from_status]:
        return "TRANSITION_NOT_ALLOWED"
    return None


class PaymentStateMachine:
    """Applies one transition atomically to a payment and its case."""

    def __init__(self, db: Session, dispatcher: NotificationDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    def apply(
        self,
        record: PaymentRecord,
        to_status: PaymentStatus,
        *,
        expected_from: PaymentStatus,
        action: str,
        actor: str,
        source: str = SOURCE_GATEWAY,
        note: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TransitionEvent]:
        """Move `record` from `expected_from` to `to_status`.

        Returns the committed TransitionEvent, or None when the payment was no
        longer in `expected_from` (a concurrent transition won; nothing was
        written and nothing is notified).
        """
        if source == SOURCE_GATEWAY and to_status not in GATEWAY_TRANSITIONS.get(expected_from, set()):
            raise ValueError(f"{expected_from.value} -> {to_status.value} is not a gateway transition")

        payment_id, case_id = record.id, record.case_id
        values: Dict[Any, Any] = {PaymentRecord.status: to_status}
        for column, value in (changes or {}).items():
            values[getattr(PaymentRecord, column)] = value

        try:
            updated = (
                self.db.query(PaymentRecord)
                .filter(PaymentRecord.id == payment_id, PaymentRecord.status == expected_from)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                logger.info(
                    "transition_lost_race",
                    payment_id=payment_id,
                    expected_from=expected_from.value,
                    to_status=to_status.value,
                )
                return None

            self._sync_case(payment_id, case_id, to_status, source)

            AuditService.record(
                self.db,
                payment_id=payment_id,
                case_id=case_id,
                action=action,
                actor=actor,
                from_status=expected_from.value,
                to_status=to_status.value,
                note=note,
                metadata=metadata,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("transition_failed", payment_id=payment_id, to_status=to_status.value)
            raise

        self.db.refresh(record)
        logger.info(
            "payment_transitioned",
            payment_id=payment_id,
            case_id=case_id,
            from_status=expected_from.value,
            to_status=to_status.value,
            source=source,
        )

        event = TransitionEvent(
            case_id=case_id,
            payment_id=payment_id,
            from_status=expected_from.value,
            to_status=to_status.value,
            source=source,
            actor=actor,
        )
        self.dispatcher.dispatch(event)
        return event

    # ─── Case co-transition ─────────────────────────────────────────

    def _sync_case(self, payment_id: str, case_id: str, to_status: PaymentStatus, source: str) -> None:
        """Bring the case in line with the payment, inside the open transaction."""
        if to_status == PaymentStatus.COMPLETED:
            self.db.query(Case).filter(Case.id == case_id).update(
                {Case.payment_status: CasePaymentStatus.PAID, Case.payment_id: payment_id},
                synchronize_session=False,
            )
            return

        if source == SOURCE_GATEWAY:
            # Only the case's active attempt may move it, and never out of paid
            self.db.query(Case).filter(
                Case.id == case_id,
                Case.payment_id == payment_id,
                Case.payment_status == CasePaymentStatus.PENDING,
            ).update({Case.payment_status: CASE_STATUS_FOR[to_status]}, synchronize_session=False)
            return

        # Row lock holds off a concurrent completion until this decision commits
        case = (
            self.db.query(Case)
            .populate_existing()
            .filter(Case.id == case_id)
            .with_for_update()
            .one()
        )
        if case.payment_status == CasePaymentStatus.PAID and case.payment_id != payment_id:
            # Another completed payment is authoritative for this case
            return

        other_completed = (
            self.db.query(PaymentRecord.id)
            .filter(
                PaymentRecord.case_id == case_id,
                PaymentRecord.id != payment_id,
                PaymentRecord.status == PaymentStatus.COMPLETED,
            )
            .order_by(PaymentRecord.confirmed_at.desc())
            .first()
        )
        if other_completed:
            new_values = {Case.payment_status: CasePaymentStatus.PAID, Case.payment_id: other_completed.id}
        else:
            new_values = {Case.payment_status: CASE_STATUS_FOR[to_status], Case.payment_id: payment_id}

        self.db.query(Case).filter(Case.id == case_id).update(new_values, synchronize_session=False)


