"""
Payment Audit Log Model — Append-only, hash-chained trail per payment.
Every order creation, callback outcome and admin override lands here.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Text

from casepay.database import Base


class PaymentAuditEntry(Base):
    __tablename__ = "payment_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id"), nullable=False, index=True)
    case_id = Column(String(36), nullable=False, index=True)

    action = Column(String(40), nullable=False)
    # Actions: ORDER_CREATED, CALLBACK_COMPLETED, CALLBACK_FAILED,
    #          GATEWAY_FAILURE_REPORTED, ADMIN_OVERRIDE

    from_status = Column(String(16))
    to_status = Column(String(16))
    actor = Column(String(64), nullable=False)    # user id, admin id or "gateway"
    note = Column(Text)

    payload_hash = Column(String(64))       # SHA-256 chain hash of this entry
    previous_hash = Column(String(64))      # Hash of the previous entry for the same payment

    log_metadata = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)
