"""
Audit Recorder

Produces a tamper-evident SHA-256 fingerprint of an approved trade. The
digest covers only the trade's semantic fields, so the same trade always
yields the same fingerprint and any edit to a covered field changes it.
"""

import hashlib
import hmac
import json

from ..errors import InvalidInput
from ..models import TradeEvent, TradeStatus
from ..money import normalize


class AuditRecorder:
    """Fingerprints finalized trades."""

    FIELDS = (
        "id",
        "facility_id",
        "seller_id",
        "buyer_id",
        "amount",
        "percentage",
        "status",
        "approved_at",
    )

    def fingerprint(self, event: TradeEvent) -> str:
        """Return the 64-character hex SHA-256 of the event's canonical form."""
        if event.status is not TradeStatus.APPROVED or event.approved_at is None:
            raise InvalidInput(f"Trade {event.id} must be approved before it is fingerprinted")
        return hashlib.sha256(self.canonical(event).encode("utf-8")).hexdigest()

    def verify(self, event: TradeEvent) -> bool:
        """Check the stored fingerprint against a fresh one."""
        if not event.audit_fingerprint:
            return False
        return hmac.compare_digest(event.audit_fingerprint, self.fingerprint(event))

    def canonical(self, event: TradeEvent) -> str:
        """
        Serialize the fingerprinted fields deterministically.

        Decimals are normalized ("20.0" and "20" hash alike), datetimes are
        ISO-8601, keys are sorted, separators carry no whitespace.
        """
        content = {
            "id": event.id,
            "facility_id": event.facility_id,
            "seller_id": event.seller_id,
            "buyer_id": event.buyer_id,
            "amount": normalize(event.amount),
            "percentage": normalize(event.percentage),
            "status": event.status.value,
            "approved_at": event.approved_at.isoformat() if event.approved_at else None,
        }
        return json.dumps(content, sort_keys=True, separators=(",", ":"))
