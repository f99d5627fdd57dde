"""
Pydantic Schemas — Request & Response models for API validation.
Amounts are integers in the smallest currency unit (paise for INR).
"""
from datetime import datetime
from typing import Optional, Dict, List, Any
from pydantic import BaseModel, Field

from casepay.models.enums import PaymentStatus, CasePaymentStatus, CaseStatus


# ──────────────── Cases ────────────────

class CaseCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    description: str = ""
    case_type: Optional[str] = Field(None, description="civil, criminal, family, commercial, cybercrime, ...")
    plaintiffs: str = Field(..., min_length=1)
    defendants: str = Field(..., min_length=1)


class CaseResponse(BaseModel):
    id: str
    case_number: str
    title: str
    description: Optional[str] = ""
    case_type: str
    plaintiffs: str
    defendants: str
    owner_id: str
    status: CaseStatus
    filing_fee: int
    payment_status: CasePaymentStatus
    payment_id: Optional[str] = None
    created_at: datetime
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CaseDeleteResponse(BaseModel):
    case_id: str
    deleted: bool
    closed: bool
    message: str


# ──────────────── Payment ────────────────

class CreateOrderRequest(BaseModel):
    case_id: str
    amount: Optional[int] = Field(None, description="Defaults to the case's filing fee")
    currency: Optional[str] = Field(None, description="Defaults to DEFAULT_CURRENCY")


class CreateOrderResponse(BaseModel):
    payment_id: str
    order_ref: str
    transaction_id: str
    amount: int
    currency: str
    key_id: str = ""        # Public key for the checkout widget
    status: PaymentStatus = PaymentStatus.PENDING


class PaymentCallbackRequest(BaseModel):
    """Gateway callback. Every field is optional: a malformed callback is
    rejected by the service, not by request validation."""
    order_ref: Optional[str] = None
    payment_ref: Optional[str] = None
    signature: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    event: Optional[str] = None             # "payment.failed" for explicit failures
    error_code: Optional[str] = None
    error_description: Optional[str] = None


class CallbackAck(BaseModel):
    status: str                             # accepted | rejected
    payment_id: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    payment_id: str
    case_id: str
    amount: int
    currency: str
    status: PaymentStatus
    transaction_id: str
    order_ref: str
    payment_ref: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    message: str = ""


# ──────────────── Admin / Audit ────────────────

class AdminStatusUpdateRequest(BaseModel):
    status: PaymentStatus
    note: str = ""


class AdminPaymentDetail(PaymentStatusResponse):
    payer_id: str
    admin_notes: Optional[str] = ""
    status_updated_by: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    case: Optional[Dict[str, Any]] = None


class PaymentStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    completed_amount: int


class AdminPaymentList(BaseModel):
    total: int
    page: int
    limit: int
    payments: List[PaymentStatusResponse]
    stats: PaymentStats


class AuditLogEntry(BaseModel):
    id: int
    payment_id: str
    case_id: str
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    actor: str
    note: Optional[str] = None
    payload_hash: Optional[str] = None
    previous_hash: Optional[str] = None
    timestamp: datetime
    log_metadata: Optional[Dict] = None

    class Config:
        from_attributes = True


class ChainVerification(BaseModel):
    valid: bool
    total_entries: int
    broken_at: Optional[int] = None
    message: Optional[str] = None


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    gateway_mode: str
    version: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
    rule: Optional[str] = None
    retryable: bool = False
