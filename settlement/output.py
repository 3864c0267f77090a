"""
Output Builder

Constructs JSON-ready API responses from engine results.
"""

from datetime import datetime
from decimal import Decimal

from .errors import LowConfidenceExtraction, MissingField, SettlementError
from .models import Distribution, OwnerShare, TradeEvent
from .money import ZERO, quantize_money, quantize_share


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return float(quantize_money(value))


def to_share(value: Decimal) -> float:
    """Convert an ownership percentage to float with 4 decimal places."""
    return float(quantize_share(value))


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class OutputBuilder:
    """Builds the response bodies returned by the API."""

    def build_distribution(
        self,
        facility_id: str | None,
        total: Decimal,
        distributions: list[Distribution],
        csv_text: str,
        currency: str,
        timings: dict | None = None
    ) -> dict:
        result = {
            "loan_id": facility_id,
            "total_cash_in": to_money(total),
            "currency": currency,
            "distribution": [
                {
                    "name": d.owner_id,
                    "bic": d.bank_identifier,
                    "account": d.account_number,
                    "amount": to_money(d.amount),
                }
                for d in distributions
            ],
            "csv": csv_text,
        }
        if timings:
            result.update(timings)
        return result

    def build_trade(self, event: TradeEvent) -> dict:
        trade = {
            "id": event.id,
            "loan_id": event.facility_id,
            "seller": event.seller_id,
            "buyer": event.buyer_id,
            "amount": to_money(event.amount),
            "percentage": to_share(event.percentage),
            "status": event.status.value,
            "created_at": _timestamp(event.created_at),
        }
        if event.approved_at:
            trade["approved_at"] = _timestamp(event.approved_at)
            trade["hash"] = event.audit_fingerprint
        if event.rejected_at:
            trade["rejected_at"] = _timestamp(event.rejected_at)
            trade["rejection_reason"] = event.rejection_reason
        return trade

    def build_owners(self, owners: tuple[OwnerShare, ...]) -> list[dict]:
        return [{"name": o.owner_id, "share": to_share(o.share)} for o in owners]

    def build_ownership(self, facility_id: str, owners: tuple[OwnerShare, ...]) -> dict:
        total = sum((o.share for o in owners), ZERO)
        return {
            "loan_id": facility_id,
            "owners": self.build_owners(owners),
            "total_ownership": to_share(total),
        }

    def build_all_ownership(self, snapshot: dict[str, tuple[OwnerShare, ...]]) -> dict:
        return {
            "loans": [
                self.build_ownership(facility_id, owners)
                for facility_id, owners in snapshot.items()
            ]
        }

    def build_events(self, events: list[TradeEvent]) -> dict:
        return {
            "count": len(events),
            "events": [self.build_trade(e) for e in events],
        }

    def build_error(self, error: SettlementError) -> dict:
        body = {"error": str(error), "status": error.error_code}
        if isinstance(error, MissingField):
            body["missing"] = error.fields
        if isinstance(error, LowConfidenceExtraction):
            body["confidence"] = float(error.confidence) if error.confidence is not None else None
            body["data"] = error.data
        return body
