"""
Audit Service — Append-only, hash-chained payment audit trail.
"""
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.orm import Session

from casepay.models.audit import PaymentAuditEntry
from casepay.utils.hashing import generate_chain_hash


class AuditService:
    """Creates tamper-evident audit entries chained per payment."""

    @staticmethod
    def _entry_payload(entry: PaymentAuditEntry) -> Dict:
        return {
            "payment_id": entry.payment_id,
            "case_id": entry.case_id,
            "action": entry.action,
            "from_status": entry.from_status,
            "to_status": entry.to_status,
            "actor": entry.actor,
            "note": entry.note,
            "metadata": entry.log_metadata or {},
            "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
        }

    @staticmethod
    def record(
        db: Session,
        payment_id: str,
        case_id: str,
        action: str,
        actor: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        note: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> PaymentAuditEntry:
        """Stage an audit entry in the caller's transaction.

        Only flushes; the entry is committed (or rolled back) together with
        the state change it describes.

        Args:
            db: Database session.
            payment_id: Payment this entry belongs to.
            case_id: Owning case.
            action: Action identifier (e.g. ORDER_CREATED, ADMIN_OVERRIDE).
            actor: User id, admin id, or "gateway".
            from_status: Status before the action, if it changed one.
            to_status: Status after the action.
            note: Free-text justification (mandatory for admin overrides).
            metadata: Additional context to store and hash.

        Returns:
            The staged PaymentAuditEntry.
        """
        last_entry = (
            db.query(PaymentAuditEntry)
            .filter(PaymentAuditEntry.payment_id == payment_id)
            .order_by(PaymentAuditEntry.id.desc())
            .first()
        )
        previous_hash = last_entry.payload_hash if last_entry else ""

        entry = PaymentAuditEntry(
            payment_id=payment_id,
            case_id=case_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            note=note,
            previous_hash=previous_hash,
            log_metadata=metadata or {},
            timestamp=datetime.utcnow(),
        )
        entry.payload_hash = generate_chain_hash(AuditService._entry_payload(entry), previous_hash)

        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_trail(db: Session, payment_id: str) -> list[PaymentAuditEntry]:
        """Full audit trail for a payment, oldest first."""
        return (
            db.query(PaymentAuditEntry)
            .filter(PaymentAuditEntry.payment_id == payment_id)
            .order_by(PaymentAuditEntry.id.asc())
            .all()
        )

    @staticmethod
    def verify_chain(db: Session, payment_id: str) -> dict:
        """Recompute every hash in a payment's chain.

        Returns:
            dict with 'valid' (bool), 'total_entries', and 'broken_at' (if invalid).
        """
        entries = AuditService.get_trail(db, payment_id)

        if not entries:
            return {"valid": True, "total_entries": 0, "broken_at": None}

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].payload_hash if i > 0 else ""
            expected_hash = generate_chain_hash(AuditService._entry_payload(entry), expected_prev)
            if entry.previous_hash != expected_prev or entry.payload_hash != expected_hash:
                return {
                    "valid": False,
                    "total_entries": len(entries),
                    "broken_at": entry.id,
                    "message": f"Chain broken at entry {entry.id} ({entry.action})",
                }

        return {"valid": True, "total_entries": len(entries), "broken_at": None}
