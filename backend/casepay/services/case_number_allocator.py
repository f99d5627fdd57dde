"""
Case Number Allocator — Unique, human-readable case numbers.

Format: PREFIX-YEAR-SEQ, e.g. CASE-2026-00042. The sequence is a counter row
per (prefix, year) advanced by a single INSERT ... ON CONFLICT DO UPDATE ...
RETURNING statement, so two concurrent callers can never read the same value.
"""
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casepay.exceptions import AllocationFailure, ValidationError
from casepay.models.sequence import CaseSequence
from casepay.utils.validators import validate_case_prefix

logger = structlog.get_logger(__name__)


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise AllocationFailure(f"No atomic upsert available for dialect '{dialect}'")
    return insert


class CaseNumberAllocator:
    """Allocates case numbers from an atomically incremented counter."""

    @staticmethod
    def format(prefix: str, year: int, sequence: int) -> str:
        return f"{prefix}-{year}-{sequence:05d}"

    @staticmethod
    def next_sequence(db: Session, prefix: str, year: int) -> int:
        """Increment-and-return the counter for (prefix, year) in one statement.

        Runs inside the caller's transaction: if the caller rolls back, the
        increment is rolled back with it.

        Raises:
            AllocationFailure: storage unavailable or the statement failed.
        """
        insert = _dialect_insert(db)
        stmt = (
            insert(CaseSequence)
            .values(prefix=prefix, year=year, value=1)
            .on_conflict_do_update(
                index_elements=[CaseSequence.prefix, CaseSequence.year],
                set_={"value": CaseSequence.value + 1},
            )
            .returning(CaseSequence.value)
        )
        try:
            return db.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            logger.error("case_sequence_increment_failed", prefix=prefix, year=year, error=str(exc))
            raise AllocationFailure("Case number could not be allocated, please retry") from exc

    @classmethod
    def allocate(cls, db: Session, prefix: str, year: int) -> str:
        """Return the next case number for (prefix, year).

        Args:
            db: Session whose transaction also creates the case.
            prefix: Upper-case alphanumeric prefix, e.g. "CASE".
            year: Four-digit filing year.
        """
        if not validate_case_prefix(prefix):
            raise ValidationError(f"Invalid case number prefix: {prefix!r}")
        if not 1000 <= year <= 9999:
            raise ValidationError(f"Invalid case number year: {year}")

        sequence = cls.next_sequence(db, prefix, year)
        case_number = cls.format(prefix, year, sequence)
        logger.debug("case_number_allocated", case_number=case_number)
        return case_number
