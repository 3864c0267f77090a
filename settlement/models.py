"""
Domain Models for the Settlement Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values and shares use Decimal for precision.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .errors import InvalidInput
from .money import to_decimal


def _decimal_field(data: dict, key: str, required: bool = True) -> Decimal | None:
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{key} is required")
        return None
    try:
        return to_decimal(value)
    except ValueError:
        raise InvalidInput(f"{key} must be a number, got: {value!r}") from None


def _text_field(data: dict, *keys: str) -> str:
    """First non-empty value among `keys`, stripped. Empty string if none."""
    for key in keys:
        value = data.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


# =============================================================================
# OWNERSHIP
# =============================================================================


@dataclass(frozen=True)
class OwnerShare:
    """One owner's percentage of a facility (0-100)."""

    owner_id: str
    share: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "OwnerShare":
        if not isinstance(data, dict):
            raise InvalidInput("Each owner must have name (string) and share (number)")
        owner_id = _text_field(data, "name", "owner_id")
        if not owner_id:
            raise InvalidInput("Each owner must have name (string) and share (number)")
        return cls(owner_id=owner_id, share=_decimal_field(data, "share"))


@dataclass(frozen=True)
class SettlementTarget:
    """Bank routing details used to pay an owner."""

    owner_id: str
    bank_identifier: str
    account_number: str
    bank_name: str = ""

    @property
    def display_name(self) -> str:
        return self.bank_name or self.owner_id


@dataclass(frozen=True)
class ShareAllocation:
    """One entry of a distribution request: who gets paid and what fraction (0-1)."""

    target: SettlementTarget
    share: Decimal

    @property
    def owner_id(self) -> str:
        return self.target.owner_id

    @classmethod
    def from_dict(cls, data: dict) -> "ShareAllocation":
        if not isinstance(data, dict):
            raise InvalidInput("Each owner must have name, bic, account, and share (number)")
        owner_id = _text_field(data, "name", "owner_id")
        bic = _text_field(data, "bic", "bank_identifier")
        account = _text_field(data, "account", "account_number")
        if not owner_id or not bic or not account or data.get("share") is None:
            raise InvalidInput("Each owner must have name, bic, account, and share (number)")
        target = SettlementTarget(
            owner_id=owner_id,
            bank_identifier=bic,
            account_number=account,
            bank_name=_text_field(data, "bank_name"),
        )
        return cls(target=target, share=_decimal_field(data, "share"))


@dataclass(frozen=True)
class Distribution:
    """The amount owed to one owner for one payment event."""

    owner_id: str
    bank_identifier: str
    account_number: str
    amount: Decimal
    bank_name: str = ""

    @classmethod
    def for_target(cls, target: SettlementTarget, amount: Decimal) -> "Distribution":
        return cls(
            owner_id=target.owner_id,
            bank_identifier=target.bank_identifier,
            account_number=target.account_number,
            amount=amount,
            bank_name=target.display_name,
        )


# =============================================================================
# TRADES
# =============================================================================


class TradeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TradeProposal:
    """A proposed transfer, as supplied by an API caller or document extraction."""

    seller_id: str
    buyer_id: str
    amount: Decimal | None
    facility_id: str
    percentage: Decimal | None
    confidence: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "TradeProposal":
        # Fields are parsed leniently; presence is checked by the lifecycle
        return cls(
            seller_id=_text_field(data, "seller", "seller_id"),
            buyer_id=_text_field(data, "buyer", "buyer_id"),
            amount=_decimal_field(data, "amount", required=False),
            facility_id=_text_field(data, "loan_id", "facility_id", "loanId"),
            percentage=_decimal_field(data, "percentage", required=False),
            confidence=_decimal_field(data, "confidence", required=False),
        )


@dataclass(frozen=True)
class TradeEvent:
    """
    A recorded trade.

    Created pending by propose(); replaced (never mutated) by an approved or
    rejected copy. Approved and rejected events are final.
    """

    id: str
    facility_id: str
    seller_id: str
    buyer_id: str
    amount: Decimal
    percentage: Decimal
    status: TradeStatus
    created_at: datetime
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    audit_fingerprint: str | None = None

    @property
    def is_final(self) -> bool:
        return self.status is not TradeStatus.PENDING
