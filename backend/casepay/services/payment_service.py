"""
Payment Service — Order creation, gateway callbacks, and payment reads.

Order creation talks to the gateway first and writes afterwards: a
PaymentRecord only ever exists with its gateway order ref, committed in the
same transaction that points the case at it.

Callbacks are untrusted. The record is looked up by order ref, must still be
pending, and only a verified signature with matching amount completes it.
Anything else that reaches a pending record fails it.
"""
import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casepay.exceptions import (
    CaseAlreadyPaid, CaseNotFound, InvalidAmount, PaymentNotFound, PermissionDenied,
    SignatureInvalid, UnknownOrderReference, ValidationError,
)
from casepay.models.case import Case
from casepay.models.enums import CasePaymentStatus, CaseStatus, PaymentStatus
from casepay.models.payment import PaymentRecord
from casepay.services.access import Actor
from casepay.services.audit_service import AuditService
from casepay.services.notification_service import NotificationDispatcher
from casepay.services.order_gateway import OrderGateway
from casepay.services.payment_state_machine import PaymentStateMachine, SOURCE_GATEWAY
from casepay.services.signature_verifier import SignatureVerifier
from casepay.utils.validators import validate_amount, validate_currency

logger = structlog.get_logger(__name__)

GATEWAY_ACTOR = "gateway"
GATEWAY_FAILURE_EVENT = "payment.failed"
PAYER_FAILURE_MESSAGE = "Payment failed, please retry."


class CallbackOutcome(str, enum.Enum):
    COMPLETED = "completed"          # pending -> completed
    FAILED = "failed"                # pending -> failed
    DUPLICATE = "duplicate"          # record already resolved, nothing applied
    UNKNOWN_ORDER = "unknown_order"  # no record for this order ref


@dataclass
class CallbackResult:
    outcome: CallbackOutcome
    payment: Optional[PaymentRecord] = None

    @property
    def accepted(self) -> bool:
        """Whether the payer's payment stands."""
        if self.outcome == CallbackOutcome.COMPLETED:
            return True
        return (
            self.outcome == CallbackOutcome.DUPLICATE
            and self.payment is not None
            and self.payment.status == PaymentStatus.COMPLETED
        )


def _fits(value, column) -> Optional[str]:
    """`value` if it is a string the column can hold, else None."""
    if not isinstance(value, str) or len(value) > column.type.length:
        return None
    return value


def generate_transaction_id() -> str:
    """Local idempotency key, 36 chars (gateway receipts allow 40)."""
    return f"TXN-{uuid.uuid4().hex.upper()}"


class PaymentService:
    """Payment flows for one request's database session."""

    def __init__(self, db: Session, gateway: OrderGateway, settings, dispatcher: NotificationDispatcher):
        self.db = db
        self.gateway = gateway
        self.settings = settings
        self.machine = PaymentStateMachine(db, dispatcher)

    # ─── Order creation ─────────────────────────────────────────────

    def create_order(
        self,
        case_id: str,
        actor: Actor,
        amount: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> PaymentRecord:
        """Create a gateway order and its pending PaymentRecord.

        `amount` defaults to the case's filing fee and `currency` to
        DEFAULT_CURRENCY. Only an admin may charge anything but the fee.

        Raises:
            CaseNotFound, PermissionDenied, ValidationError, InvalidAmount,
            CaseAlreadyPaid, and whatever the gateway raises
            (GatewayUnavailable, InvalidCredentials). Nothing is written when
            any of these is raised.
        """
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case:
            raise CaseNotFound("Case not found")
        if not actor.can_access(case.owner_id):
            raise PermissionDenied("You do not have permission to make payments for this case")
        if case.status == CaseStatus.CLOSED:
            raise ValidationError("Case is closed")

        amount = case.filing_fee if amount is None else amount
        currency = currency or self.settings.DEFAULT_CURRENCY

        ok, reason = validate_amount(amount)
        if not ok:
            raise InvalidAmount(reason)
        if not actor.is_admin and amount != case.filing_fee:
            raise InvalidAmount(
                f"Amount {amount} does not match the filing fee {case.filing_fee}",
                rule="AMOUNT_NOT_FILING_FEE",
            )
        if not validate_currency(currency, self.settings.SUPPORTED_CURRENCIES):
            raise ValidationError(f"Unsupported currency: {currency}")

        if self._has_completed_payment(case.id):
            raise CaseAlreadyPaid("Case already has a completed payment")

        transaction_id = generate_transaction_id()
        order = self.gateway.create_order(
            amount,
            currency,
            transaction_id,
            notes={"case_id": case.id, "case_number": case.case_number, "payer_id": actor.user_id},
        )

        record = PaymentRecord(
            case_id=case.id,
            payer_id=actor.user_id,
            amount=amount,
            currency=currency,
            description=f"Filing fee for case {case.case_number}",
            status=PaymentStatus.PENDING,
            transaction_id=transaction_id,
            gateway_order_ref=order.gateway_order_ref,
            gateway_response={"order": order.raw},
        )
        try:
            self.db.add(record)
            self.db.flush()

            # A case that is already paid keeps pointing at its completed payment
            self.db.query(Case).filter(
                Case.id == case.id,
                Case.payment_status != CasePaymentStatus.PAID,
            ).update(
                {Case.payment_status: CasePaymentStatus.PENDING, Case.payment_id: record.id},
                synchronize_session=False,
            )

            AuditService.record(
                self.db,
                payment_id=record.id,
                case_id=case.id,
                action="ORDER_CREATED",
                actor=actor.user_id,
                to_status=PaymentStatus.PENDING.value,
                metadata={
                    "amount": amount,
                    "currency": currency,
                    "transaction_id": transaction_id,
                    "order_ref": order.gateway_order_ref,
                    "gateway": self.gateway.name,
                },
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("order_persist_failed", case_id=case.id, order_ref=order.gateway_order_ref)
            raise

        self.db.refresh(record)
        logger.info(
            "order_created",
            payment_id=record.id,
            case_id=case.id,
            order_ref=record.gateway_order_ref,
            transaction_id=transaction_id,
            amount=amount,
            currency=currency,
        )
        return record

    def _has_completed_payment(self, case_id: str) -> bool:
        return (
            self.db.query(PaymentRecord.id)
            .filter(PaymentRecord.case_id == case_id, PaymentRecord.status == PaymentStatus.COMPLETED)
            .first()
            is not None
        )

    # ─── Gateway callback ───────────────────────────────────────────

    def _lookup_pending(self, order_ref) -> PaymentRecord:
        """Record for this order ref, or UnknownOrderReference.

        A resolved record comes back as-is; the caller treats it as a replay.
        """
        if not isinstance(order_ref, str) or not order_ref:
            raise UnknownOrderReference("Callback carried no order reference")
        record = (
            self.db.query(PaymentRecord)
            .populate_existing()
            .filter(PaymentRecord.gateway_order_ref == order_ref)
            .first()
        )
        if record is None:
            raise UnknownOrderReference(f"No payment for order {order_ref}")
        return record

    def _authenticate(self, record, order_ref, payment_ref, signature, amount, currency) -> None:
        """Raise unless the callback is genuine and matches the order."""
        if not SignatureVerifier.verify(order_ref, payment_ref, signature, self.settings.RAZORPAY_KEY_SECRET):
            raise SignatureInvalid("Callback signature did not verify", rule="SIGNATURE")
        if amount is not None and amount != record.amount:
            raise InvalidAmount(
                f"Callback amount {amount} does not match order amount {record.amount}",
                rule="AMOUNT_MISMATCH",
            )
        if currency is not None and currency != record.currency:
            raise InvalidAmount(
                f"Callback currency {currency} does not match order currency {record.currency}",
                rule="CURRENCY_MISMATCH",
            )

    def handle_callback(
        self,
        order_ref,
        payment_ref,
        signature,
        amount=None,
        currency=None,
        event: Optional[str] = None,
        error: Optional[dict] = None,
    ) -> CallbackResult:
        """Apply a gateway callback. Never raises for bad input.

        Unknown order refs and already-resolved records are logged and left
        untouched. For a pending record, a verified callback completes it;
        a failed verification, an amount mismatch or an explicit gateway
        failure fails it.
        """
        try:
            record = self._lookup_pending(order_ref)
        except UnknownOrderReference as exc:
            logger.warning("callback_rejected", reason=exc.error_code, detail=exc.message, order_ref=str(order_ref)[:64])
            return CallbackResult(CallbackOutcome.UNKNOWN_ORDER)

        if record.status != PaymentStatus.PENDING:
            logger.warning(
                "callback_duplicate",
                order_ref=order_ref,
                payment_id=record.id,
                status=record.status.value,
            )
            return CallbackResult(CallbackOutcome.DUPLICATE, record)

        gateway_fields = {
            "gateway_payment_ref": _fits(payment_ref, PaymentRecord.gateway_payment_ref),
            "gateway_signature": _fits(signature, PaymentRecord.gateway_signature),
        }

        if event == GATEWAY_FAILURE_EVENT:
            return self._fail(record, "GATEWAY_FAILURE_REPORTED", "gateway_reported_failure", gateway_fields, error)

        try:
            self._authenticate(record, order_ref, payment_ref, signature, amount, currency)
        except (SignatureInvalid, InvalidAmount) as exc:
            return self._fail(record, "CALLBACK_FAILED", exc.rule or exc.error_code, gateway_fields, None)

        now = datetime.utcnow()
        transition = self.machine.apply(
            record,
            PaymentStatus.COMPLETED,
            expected_from=PaymentStatus.PENDING,
            action="CALLBACK_COMPLETED",
            actor=GATEWAY_ACTOR,
            source=SOURCE_GATEWAY,
            changes={**gateway_fields, "confirmed_at": now},
            metadata={"payment_ref": payment_ref},
        )
        if transition is None:
            return CallbackResult(CallbackOutcome.DUPLICATE, self._reload(record))
        return CallbackResult(CallbackOutcome.COMPLETED, record)

    def _fail(self, record, action, reason, gateway_fields, error) -> CallbackResult:
        logger.warning("callback_failed_payment", payment_id=record.id, order_ref=record.gateway_order_ref, reason=reason)
        response = dict(record.gateway_response or {})
        response["failure"] = {"reason": reason, "error": error or {}}
        transition = self.machine.apply(
            record,
            PaymentStatus.FAILED,
            expected_from=PaymentStatus.PENDING,
            action=action,
            actor=GATEWAY_ACTOR,
            source=SOURCE_GATEWAY,
            changes={**gateway_fields, "gateway_response": response},
            metadata={"reason": reason},
        )
        if transition is None:
            return CallbackResult(CallbackOutcome.DUPLICATE, self._reload(record))
        return CallbackResult(CallbackOutcome.FAILED, record)

    def _reload(self, record: PaymentRecord) -> PaymentRecord:
        self.db.refresh(record)
        return record

    # ─── Reads ──────────────────────────────────────────────────────

    def get_payment(self, payment_id: str, actor: Actor) -> PaymentRecord:
        record = self.db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()
        if not record:
            raise PaymentNotFound("Payment not found")
        if not actor.can_access(record.payer_id):
            case = self.db.query(Case).filter(Case.id == record.case_id).first()
            if not case or not actor.can_access(case.owner_id):
                raise PermissionDenied("You do not have permission to view this payment")
        return record

    def history(self, actor: Actor, case_id: Optional[str] = None) -> list[PaymentRecord]:
        """Payments newest first; users only see payments they made or cases they own."""
        query = self.db.query(PaymentRecord)
        if case_id:
            query = query.filter(PaymentRecord.case_id == case_id)
        if not actor.is_admin:
            owned_cases = self.db.query(Case.id).filter(Case.owner_id == actor.user_id)
            query = query.filter(
                or_(PaymentRecord.payer_id == actor.user_id, PaymentRecord.case_id.in_(owned_cases))
            )
        return query.order_by(PaymentRecord.created_at.desc()).all()
