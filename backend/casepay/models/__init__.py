from casepay.models.enums import PaymentStatus, CasePaymentStatus, CaseStatus
from casepay.models.case import Case
from casepay.models.sequence import CaseSequence
from casepay.models.payment import PaymentRecord
from casepay.models.audit import PaymentAuditEntry

__all__ = [
    "PaymentStatus", "CasePaymentStatus", "CaseStatus",
    "Case", "CaseSequence", "PaymentRecord", "PaymentAuditEntry",
]
