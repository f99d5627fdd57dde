"""
Case Model — A filed case, its allocated number and its payment standing.
Maps to the 'cases' table.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text

from casepay.database import Base
from casepay.models.enums import CasePaymentStatus, CaseStatus, enum_column_type


class Case(Base):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    case_number = Column(String(40), unique=True, nullable=False, index=True)  # CASE-2026-00042

    title = Column(String(256), nullable=False)
    description = Column(Text, default="")
    case_type = Column(String(24), nullable=False, default="civil")
    plaintiffs = Column(Text, nullable=False)
    defendants = Column(Text, nullable=False)
    owner_id = Column(String(64), nullable=False, index=True)

    status = Column(enum_column_type(CaseStatus), nullable=False, default=CaseStatus.PENDING)
    filing_fee = Column(Integer, nullable=False, default=0)  # smallest currency unit

    payment_status = Column(
        enum_column_type(CasePaymentStatus), nullable=False, default=CasePaymentStatus.UNPAID
    )
    # Active attempt only; the full history lives in payments.case_id
    payment_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)
