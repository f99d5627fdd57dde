"""
Case Sequence Model — One counter row per (prefix, year).
Only ever advanced through an atomic upsert, see CaseNumberAllocator.
"""
from sqlalchemy import Column, String, Integer

from casepay.database import Base


class CaseSequence(Base):
    __tablename__ = "case_sequences"

    prefix = Column(String(16), primary_key=True)
    year = Column(Integer, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
