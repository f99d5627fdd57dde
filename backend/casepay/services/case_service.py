"""
Case Service — Filing cases and closing them.

A case number is allocated inside the same transaction that inserts the case:
a failed insert rolls the counter back with it, and a case is never written
without a number.
"""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casepay.exceptions import CaseNotFound, PermissionDenied, ValidationError
from casepay.models.case import Case
from casepay.models.enums import CaseStatus
from casepay.models.payment import PaymentRecord
from casepay.services.access import Actor
from casepay.services.case_number_allocator import CaseNumberAllocator
from casepay.utils.validators import calculate_filing_fee, normalize_case_type

logger = structlog.get_logger(__name__)


class CaseService:

    def __init__(self, db: Session, settings):
        self.db = db
        self.settings = settings

    def create_case(
        self,
        actor: Actor,
        title: str,
        plaintiffs: str,
        defendants: str,
        case_type: Optional[str] = None,
        description: str = "",
        year: Optional[int] = None,
    ) -> Case:
        """File a new case with a freshly allocated case number.

        Raises:
            ValidationError: missing title or parties.
            AllocationFailure: the counter could not be advanced; no case
                is created.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Case title is required")
        if not (plaintiffs or "").strip() or not (defendants or "").strip():
            raise ValidationError("Plaintiffs and defendants are required")

        case_type = normalize_case_type(case_type)
        year = year or datetime.utcnow().year
        try:
            case_number = CaseNumberAllocator.allocate(self.db, self.settings.CASE_NUMBER_PREFIX, year)
            case = Case(
                case_number=case_number,
                title=title,
                description=description or "",
                case_type=case_type,
                plaintiffs=plaintiffs.strip(),
                defendants=defendants.strip(),
                owner_id=actor.user_id,
                filing_fee=calculate_filing_fee(
                    case_type, self.settings.FILING_FEE_HIGH, self.settings.FILING_FEE_STANDARD
                ),
            )
            self.db.add(case)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(case)
        logger.info("case_created", case_id=case.id, case_number=case.case_number, owner=actor.user_id)
        return case

    def get_case(self, case_id: str, actor: Actor) -> Case:
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case:
            raise CaseNotFound("Case not found")
        if not actor.can_access(case.owner_id):
            raise PermissionDenied("You do not have permission to view this case")
        return case

    def close_or_delete(self, case_id: str, actor: Actor) -> Optional[Case]:
        """Remove a case, admin only.

        A case with payment history is closed instead of deleted so the
        payments keep their case. Returns the closed case, or None when the
        case was deleted outright.
        """
        if not actor.is_admin:
            raise PermissionDenied("Only administrators can delete cases")
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case:
            raise CaseNotFound("Case not found")

        has_payments = (
            self.db.query(PaymentRecord.id).filter(PaymentRecord.case_id == case_id).first() is not None
        )
        try:
            if has_payments:
                case.status = CaseStatus.CLOSED
                case.closed_at = datetime.utcnow()
            else:
                self.db.delete(case)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("case_removal_failed", case_id=case_id)
            raise

        if has_payments:
            self.db.refresh(case)
            logger.info("case_closed", case_id=case_id, admin=actor.user_id)
            return case
        logger.info("case_deleted", case_id=case_id, admin=actor.user_id)
        return None
