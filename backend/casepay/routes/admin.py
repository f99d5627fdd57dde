"""
Admin Routes — Payment oversight, manual status correction and audit trail.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from casepay.database import get_db
from casepay.dependencies import get_admin_override, require_admin
from casepay.exceptions import PaymentNotFound
from casepay.models.case import Case
from casepay.models.enums import PaymentStatus
from casepay.models.payment import PaymentRecord
from casepay.routes.payment import to_status_response
from casepay.schemas.schemas import (
    AdminPaymentDetail, AdminPaymentList, AdminStatusUpdateRequest, AuditLogEntry,
    ChainVerification, PaymentStats,
)
from casepay.services.access import Actor
from casepay.services.admin_override import AdminOverride
from casepay.services.audit_service import AuditService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def _get_payment_or_404(db: Session, payment_id: str) -> PaymentRecord:
    payment = db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()
    if not payment:
        raise PaymentNotFound("Payment not found")
    return payment


def _stats(db: Session) -> PaymentStats:
    counts = db.query(PaymentRecord.status, func.count(PaymentRecord.id)).group_by(PaymentRecord.status).all()
    by_status = {s.value: 0 for s in PaymentStatus}
    for status, count in counts:
        by_status[status.value] = count

    completed_amount = db.query(func.coalesce(func.sum(PaymentRecord.amount), 0)).filter(
        PaymentRecord.status == PaymentStatus.COMPLETED
    ).scalar() or 0

    return PaymentStats(total=sum(by_status.values()), by_status=by_status, completed_amount=completed_amount)


@router.get("/payments", response_model=AdminPaymentList)
def list_payments(
    status: Optional[PaymentStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List payments, newest first, with status filter and free-text search
    over transaction id, order ref, payment ref, description and case number."""
    query = db.query(PaymentRecord)
    if status:
        query = query.filter(PaymentRecord.status == status)
    if search:
        term = f"%{search.strip()}%"
        matching_cases = db.query(Case.id).filter(Case.case_number.ilike(term))
        query = query.filter(
            or_(
                PaymentRecord.transaction_id.ilike(term),
                PaymentRecord.gateway_order_ref.ilike(term),
                PaymentRecord.gateway_payment_ref.ilike(term),
                PaymentRecord.description.ilike(term),
                PaymentRecord.case_id.in_(matching_cases),
            )
        )

    total = query.count()
    payments = (
        query.order_by(PaymentRecord.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return AdminPaymentList(
        total=total,
        page=page,
        limit=limit,
        payments=[to_status_response(p) for p in payments],
        stats=_stats(db),
    )


@router.get("/payments/{payment_id}", response_model=AdminPaymentDetail)
def get_payment_detail(
    payment_id: str,
    _admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payment = _get_payment_or_404(db, payment_id)
    case = db.query(Case).filter(Case.id == payment.case_id).first()
    case_summary = None
    if case:
        case_summary = {
            "id": case.id,
            "case_number": case.case_number,
            "title": case.title,
            "owner_id": case.owner_id,
            "status": case.status.value,
            "payment_status": case.payment_status.value,
            "payment_id": case.payment_id,
        }

    return AdminPaymentDetail(
        **to_status_response(payment).model_dump(),
        payer_id=payment.payer_id,
        admin_notes=payment.admin_notes,
        status_updated_by=payment.status_updated_by,
        gateway_response=payment.gateway_response,
        case=case_summary,
    )


@router.put("/payments/{payment_id}/status", response_model=AdminPaymentDetail)
def update_payment_status(
    payment_id: str,
    payload: AdminStatusUpdateRequest,
    admin: Actor = Depends(require_admin),
    override: AdminOverride = Depends(get_admin_override),
    db: Session = Depends(get_db),
):
    """Manually correct a payment's status. A note is mandatory."""
    override.override(payment_id, payload.status, payload.note, admin.user_id)
    return get_payment_detail(payment_id, admin, db)


@router.get("/payments/{payment_id}/audit", response_model=list[AuditLogEntry])
def get_audit_trail(
    payment_id: str,
    _admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Full audit trail for one payment, oldest first."""
    _get_payment_or_404(db, payment_id)
    return AuditService.get_trail(db, payment_id)


@router.get("/payments/{payment_id}/audit/verify", response_model=ChainVerification)
def verify_audit_chain(
    payment_id: str,
    _admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Verify the integrity of the audit hash chain for a payment."""
    _get_payment_or_404(db, payment_id)
    return AuditService.verify_chain(db, payment_id)
