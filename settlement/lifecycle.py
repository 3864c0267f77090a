"""
Trade Lifecycle

pending --approve--> approved   (ownership transferred, fingerprint stamped)
pending --reject-->  rejected

approve() is the only operation in the engine that mutates shared ownership.
It trusts nothing checked earlier and re-validates against the live registry.
"""

import logging
import secrets
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from .calculators.audit import AuditRecorder
from .errors import (
    AlreadyApproved,
    AlreadyRejected,
    ApprovalInProgress,
    InsufficientOwnership,
    InvalidInput,
    SellerNotFound,
    TradeNotFound,
)
from .models import OwnerShare, TradeEvent, TradeProposal, TradeStatus
from .money import to_decimal
from .registry import OwnershipRegistry
from .validators import InputValidator, TradeValidator

logger = logging.getLogger(__name__)


def generate_trade_id() -> str:
    return f"TRD-{int(time.time() * 1000)}-{secrets.token_hex(5).upper()}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TradeLifecycle:
    """Records, validates and executes ownership transfers."""

    def __init__(
        self,
        registry: OwnershipRegistry,
        audit_recorder: AuditRecorder | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_trade_id
    ):
        self.registry = registry
        self.audit_recorder = audit_recorder or AuditRecorder()
        self.trade_validator = TradeValidator(registry)
        self.input_validator = InputValidator()
        self._clock = clock
        self._id_factory = id_factory

        self._events: dict[str, TradeEvent] = {}
        self._sequence: dict[str, int] = {}
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Propose
    # -------------------------------------------------------------------------

    def propose(self, seller_id, buyer_id, amount, facility_id, percentage) -> TradeEvent:
        """Record a pending trade. Ownership is not checked or touched."""
        proposal = TradeProposal(
            seller_id=_text(seller_id),
            buyer_id=_text(buyer_id),
            amount=_as_decimal("amount", amount),
            facility_id=_text(facility_id),
            percentage=_as_decimal("percentage", percentage),
        )
        return self.propose_from(proposal)

    def propose_from(self, proposal: TradeProposal) -> TradeEvent:
        self.input_validator.validate_proposal(proposal)

        event = TradeEvent(
            id=self._id_factory(),
            facility_id=proposal.facility_id,
            seller_id=proposal.seller_id,
            buyer_id=proposal.buyer_id,
            amount=proposal.amount,
            percentage=proposal.percentage,
            status=TradeStatus.PENDING,
            created_at=self._clock(),
        )

        with self._lock:
            self._sequence[event.id] = len(self._sequence)
            self._events[event.id] = event

        logger.info(
            f"Trade event recorded: {event.id} ({event.seller_id} -> {event.buyer_id}, "
            f"{event.percentage}% of {event.facility_id})"
        )
        return event

    # -------------------------------------------------------------------------
    # Validate
    # -------------------------------------------------------------------------

    def validate(self, seller_id, buyer_id, facility_id, percentage) -> list[str]:
        """Advisory check against current ownership. Empty list means valid."""
        return self.trade_validator.validate(
            seller_id=_text(seller_id),
            buyer_id=_text(buyer_id),
            facility_id=_text(facility_id),
            percentage=_as_decimal("percentage", percentage),
        )

    # -------------------------------------------------------------------------
    # Approve / Reject
    # -------------------------------------------------------------------------

    def approve(self, trade_id: str) -> tuple[TradeEvent, tuple[OwnerShare, ...]]:
        """
        Execute a pending trade.

        Returns the approved event and the facility's new ownership. Single
        use: a second call fails with AlreadyApproved.
        """
        with self._lock:
            event = self._require(trade_id)
            self._ensure_pending(event)
            if trade_id in self._in_flight:
                raise ApprovalInProgress(trade_id)
            self._in_flight.add(trade_id)

        try:
            self._revalidate(event)
            ownership = self.registry.transfer(
                event.facility_id, event.seller_id, event.buyer_id, event.percentage
            )

            approved = replace(event, status=TradeStatus.APPROVED, approved_at=self._clock())
            approved = replace(
                approved, audit_fingerprint=self.audit_recorder.fingerprint(approved)
            )

            with self._lock:
                self._events[trade_id] = approved
        finally:
            with self._lock:
                self._in_flight.discard(trade_id)

        logger.info(f"Trade {trade_id} approved, fingerprint {approved.audit_fingerprint}")
        return approved, ownership

    def reject(self, trade_id: str, reason: str | None = None) -> TradeEvent:
        """Close a pending trade without touching ownership."""
        with self._lock:
            event = self._require(trade_id)
            self._ensure_pending(event)
            if trade_id in self._in_flight:
                raise ApprovalInProgress(trade_id)

            rejected = replace(
                event,
                status=TradeStatus.REJECTED,
                rejected_at=self._clock(),
                rejection_reason=reason or None,
            )
            self._events[trade_id] = rejected

        logger.info(f"Trade {trade_id} rejected: {reason or 'no reason given'}")
        return rejected

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, trade_id: str) -> TradeEvent:
        with self._lock:
            return self._require(trade_id)

    def list_events(
        self,
        facility_id: str | None = None,
        status: TradeStatus | str | None = None
    ) -> list[TradeEvent]:
        """Trade events, newest first."""
        if status is not None and not isinstance(status, TradeStatus):
            try:
                status = TradeStatus(status)
            except ValueError:
                raise InvalidInput(f"Invalid status: {status}") from None

        with self._lock:
            events = [
                (event, self._sequence[event.id]) for event in self._events.values()
            ]

        if facility_id:
            events = [(e, seq) for e, seq in events if e.facility_id == facility_id]
        if status is not None:
            events = [(e, seq) for e, seq in events if e.status is status]

        events.sort(key=lambda item: (item[0].created_at, item[1]), reverse=True)
        return [event for event, _ in events]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, trade_id: str) -> TradeEvent:
        event = self._events.get(trade_id)
        if event is None:
            raise TradeNotFound(trade_id)
        return event

    def _ensure_pending(self, event: TradeEvent) -> None:
        if event.status is TradeStatus.APPROVED:
            raise AlreadyApproved(event.id)
        if event.status is TradeStatus.REJECTED:
            raise AlreadyRejected(event.id)

    def _revalidate(self, event: TradeEvent) -> None:
        """Fresh seller checks; registry.transfer repeats them under its lock."""
        self.input_validator.validate_percentage(event.percentage)

        owners = self.registry.get(event.facility_id)
        seller = next((o for o in owners if o.owner_id == event.seller_id), None)
        if seller is None:
            raise SellerNotFound(event.seller_id, event.facility_id)
        if seller.share < event.percentage:
            raise InsufficientOwnership(event.seller_id, seller.share, event.percentage)

        if not event.buyer_id:
            raise InvalidInput("Buyer name cannot be empty")


def _as_decimal(name: str, value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return to_decimal(value)
    except ValueError:
        raise InvalidInput(f"{name} must be a number, got: {value!r}") from None


def _text(value) -> str:
    return str(value).strip() if value is not None else ""
