from datetime import datetime

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql

from casepay.exceptions import InvalidTransition, PaymentNotFound, ValidationError
from casepay.models.case import Case
from casepay.models.enums import CasePaymentStatus, PaymentStatus
from casepay.models.payment import PaymentRecord
from casepay.services.admin_override import AdminOverride
from casepay.services.audit_service import AuditService
from casepay.services.payment_state_machine import admin_transition_violation

from conftest import OWNER, sign


@pytest.fixture
def override(db, dispatcher):
    return AdminOverride(db, dispatcher)


@pytest.fixture
def completed_payment(payment_service, pending_payment):
    ref = pending_payment.gateway_order_ref
    return payment_service.handle_callback(ref, "pay_ok", sign(ref, "pay_ok")).payment


def reload_case(db, case_id):
    return db.query(Case).populate_existing().filter(Case.id == case_id).one()


@pytest.mark.parametrize("status", list(PaymentStatus))
@pytest.mark.parametrize("note", ["", "   ", None])
def test_note_is_required_for_every_status(db, override, pending_payment, status, note):
    with pytest.raises(ValidationError) as exc_info:
        override.override(pending_payment.id, status, note, "admin-1")
    assert exc_info.value.rule == "NOTE_REQUIRED"
    assert len(AuditService.get_trail(db, pending_payment.id)) == 1


def test_unknown_payment(override):
    with pytest.raises(PaymentNotFound):
        override.override("nope", PaymentStatus.COMPLETED, "bank confirmed", "admin-1")


def test_unknown_status_rejected(override, pending_payment):
    with pytest.raises(ValidationError) as exc_info:
        override.override(pending_payment.id, "settled", "bank confirmed", "admin-1")
    assert exc_info.value.rule == "UNKNOWN_STATUS"


def test_admin_id_required(override, pending_payment):
    with pytest.raises(ValidationError) as exc_info:
        override.override(pending_payment.id, PaymentStatus.COMPLETED, "bank confirmed", "")
    assert exc_info.value.rule == "ADMIN_ID_REQUIRED"


def test_pending_to_refunded_is_rejected(db, override, pending_payment, case):
    with pytest.raises(InvalidTransition) as exc_info:
        override.override(pending_payment.id, PaymentStatus.REFUNDED, "customer asked", "admin-1")
    assert exc_info.value.rule == "REFUND_REQUIRES_COMPLETED"
    assert reload_case(db, case.id).payment_status == CasePaymentStatus.PENDING


def test_force_complete_pending_payment(db, override, pending_payment, case, dispatcher):
    payment = override.override(pending_payment.id, "completed", "Confirmed on bank statement", "admin-1")

    assert payment.status == PaymentStatus.COMPLETED
    assert payment.status_updated_by == "admin-1"
    assert payment.confirmed_at is not None
    assert "pending -> completed: Confirmed on bank statement" in payment.admin_notes

    case = reload_case(db, case.id)
    assert case.payment_status == CasePaymentStatus.PAID
    assert case.payment_id == payment.id

    entry = AuditService.get_trail(db, payment.id)[-1]
    assert entry.action == "ADMIN_OVERRIDE"
    assert entry.actor == "admin-1"
    assert entry.note == "Confirmed on bank statement"
    assert dispatcher.messages[-1]["toStatus"] == "completed"


def test_failed_payment_can_be_corrected_to_completed(db, override, payment_service, pending_payment, case):
    payment_service.handle_callback(pending_payment.gateway_order_ref, "pay_1", "bad")
    override.override(pending_payment.id, PaymentStatus.COMPLETED, "gateway dashboard shows captured", "admin-1")
    assert reload_case(db, case.id).payment_status == CasePaymentStatus.PAID


def test_refund_reverts_case_to_unpaid(db, override, completed_payment, case):
    payment = override.override(completed_payment.id, PaymentStatus.REFUNDED, "Duplicate filing", "admin-1")

    assert payment.status == PaymentStatus.REFUNDED
    case = reload_case(db, case.id)
    assert case.payment_status == CasePaymentStatus.UNPAID


def test_refunded_is_final(override, completed_payment):
    override.override(completed_payment.id, PaymentStatus.REFUNDED, "Duplicate filing", "admin-1")
    with pytest.raises(InvalidTransition) as exc_info:
        override.override(completed_payment.id, PaymentStatus.COMPLETED, "oops", "admin-1")
    assert exc_info.value.rule == "REFUNDED_IS_FINAL"


def test_same_status_is_rejected(override, pending_payment):
    with pytest.raises(InvalidTransition) as exc_info:
        override.override(pending_payment.id, PaymentStatus.PENDING, "no-op", "admin-1")
    assert exc_info.value.rule == "STATUS_UNCHANGED"


def test_reopening_stale_record_keeps_case_paid_by_another(db, override, payment_service, case):
    stale = payment_service.create_order(case.id, OWNER)
    payment_service.handle_callback(stale.gateway_order_ref, "pay_x", "bad")
    winner = payment_service.create_order(case.id, OWNER)
    payment_service.handle_callback(winner.gateway_order_ref, "pay_y", sign(winner.gateway_order_ref, "pay_y"))

    override.override(stale.id, PaymentStatus.PENDING, "reopen for investigation", "admin-1")

    case = reload_case(db, case.id)
    assert case.payment_status == CasePaymentStatus.PAID
    assert case.payment_id == winner.id


def test_refund_hands_case_to_another_completed_payment(db, override, completed_payment, case):
    other = PaymentRecord(
        case_id=case.id,
        payer_id=OWNER.user_id,
        amount=completed_payment.amount,
        currency="INR",
        status=PaymentStatus.COMPLETED,
        transaction_id="TXN-OTHER",
        gateway_order_ref="order_other",
        confirmed_at=datetime.utcnow(),
    )
    db.add(other)
    db.commit()

    override.override(completed_payment.id, PaymentStatus.REFUNDED, "Duplicate filing", "admin-1")

    case = reload_case(db, case.id)
    assert case.payment_status == CasePaymentStatus.PAID
    assert case.payment_id == other.id


def test_override_locks_the_case_row(db, override, completed_payment):
    selects = []

    def capture(state):
        if state.is_select:
            selects.append(str(state.statement.compile(dialect=postgresql.dialect())))

    event.listen(db, "do_orm_execute", capture)
    try:
        override.override(completed_payment.id, PaymentStatus.REFUNDED, "Duplicate filing", "admin-1")
    finally:
        event.remove(db, "do_orm_execute", capture)

    assert any("FROM cases" in sql and "FOR UPDATE" in sql for sql in selects)


def test_admin_notes_accumulate_and_chain_stays_valid(db, override, payment_service, pending_payment):
    payment_service.handle_callback(pending_payment.gateway_order_ref, "pay_1", "bad")
    override.override(pending_payment.id, PaymentStatus.PENDING, "customer says they paid", "admin-1")
    override.override(pending_payment.id, PaymentStatus.COMPLETED, "bank statement matches", "admin-2")

    payment = db.query(PaymentRecord).populate_existing().filter(PaymentRecord.id == pending_payment.id).one()
    assert len(payment.admin_notes.splitlines()) == 2
    assert payment.status_updated_by == "admin-2"

    actions = [e.action for e in AuditService.get_trail(db, payment.id)]
    assert actions == ["ORDER_CREATED", "CALLBACK_FAILED", "ADMIN_OVERRIDE", "ADMIN_OVERRIDE"]
    assert AuditService.verify_chain(db, payment.id) == {"valid": True, "total_entries": 4, "broken_at": None}


def test_tampering_breaks_the_chain(db, override, completed_payment):
    override.override(completed_payment.id, PaymentStatus.REFUNDED, "Duplicate filing", "admin-1")
    entry = AuditService.get_trail(db, completed_payment.id)[1]
    entry.note = "rewritten"
    db.commit()

    result = AuditService.verify_chain(db, completed_payment.id)
    assert result["valid"] is False
    assert result["broken_at"] == entry.id


@pytest.mark.parametrize("from_status,to_status,rule", [
    (PaymentStatus.PENDING, PaymentStatus.REFUNDED, "REFUND_REQUIRES_COMPLETED"),
    (PaymentStatus.FAILED, PaymentStatus.REFUNDED, "REFUND_REQUIRES_COMPLETED"),
    (PaymentStatus.REFUNDED, PaymentStatus.PENDING, "REFUNDED_IS_FINAL"),
    (PaymentStatus.COMPLETED, PaymentStatus.PENDING, "COMPLETED_CANNOT_REOPEN"),
    (PaymentStatus.FAILED, PaymentStatus.FAILED, "STATUS_UNCHANGED"),
    (PaymentStatus.PENDING, PaymentStatus.COMPLETED, None),
    (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, None),
    (PaymentStatus.COMPLETED, PaymentStatus.FAILED, None),
    (PaymentStatus.FAILED, PaymentStatus.PENDING, None),
])
def test_admin_transition_rules(from_status, to_status, rule):
    assert admin_transition_violation(from_status, to_status) == rule
