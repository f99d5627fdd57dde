"""
Payment Record Model — One monetary attempt against one case.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Text

from casepay.database import Base
from casepay.models.enums import PaymentStatus, enum_column_type


class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False, index=True)
    payer_id = Column(String(64), nullable=False, index=True)

    amount = Column(Integer, nullable=False)      # Smallest currency unit (paise)
    currency = Column(String(3), nullable=False, default="INR")
    description = Column(String(256))

    status = Column(enum_column_type(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    # Local idempotency key, also sent to the gateway as the order receipt
    transaction_id = Column(String(40), unique=True, nullable=False, index=True)

    # Gateway references
    gateway_order_ref = Column(String(64), unique=True, nullable=False, index=True)
    gateway_payment_ref = Column(String(64), index=True)
    gateway_signature = Column(String(128))
    gateway_response = Column(JSON, default=dict)

    # Admin corrections, appended never rewritten
    admin_notes = Column(Text, default="")
    status_updated_by = Column(String(64))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime, nullable=True)
