"""
Settlement Service - Main Orchestrator

Wires the engines together and exposes one operation per API endpoint. The
transports (Flask app, Lambda handler) only parse requests and serialize
responses; every rule lives behind this class.
"""

import logging
import time
from decimal import Decimal
from typing import Any, Dict

from . import config
from .calculators import AuditRecorder, DistributionEngine
from .csv_export import generate_csv, validate_csv_integrity
from .errors import ExtractionUnavailable, IntegrityViolation, InvalidInput, MissingField
from .extraction import PaymentExtractor, TradeExtractor, parse_payment_amount, parse_trade_extraction
from .lifecycle import TradeLifecycle
from .models import OwnerShare, ShareAllocation, TradeProposal
from .money import MINOR_UNIT, to_decimal
from .output import OutputBuilder
from .registry import OwnershipRegistry

logger = logging.getLogger(__name__)


class SettlementService:
    """
    Entry point for distribution and trade operations.

    Distribution pipeline:
    1. Parse owners and total (or extract the total from a document)
    2. Distribute (remainder to the last owner)
    3. Generate CSV
    4. Check CSV integrity
    5. Build output

    Trade pipeline: propose -> (validate) -> approve | reject.
    """

    def __init__(
        self,
        registry: OwnershipRegistry | None = None,
        lifecycle: TradeLifecycle | None = None,
        payment_extractor: PaymentExtractor | None = None,
        trade_extractor: TradeExtractor | None = None,
        currency: str = config.CURRENCY,
        min_confidence: Decimal = config.MIN_EXTRACTION_CONFIDENCE,
        seed_demo: bool = False
    ):
        self.registry = registry or OwnershipRegistry()
        self.audit_recorder = AuditRecorder()
        self.lifecycle = lifecycle or TradeLifecycle(self.registry, self.audit_recorder)
        self.distribution_engine = DistributionEngine()
        self.output_builder = OutputBuilder()
        self.payment_extractor = payment_extractor
        self.trade_extractor = trade_extractor
        self.currency = currency
        self.min_confidence = min_confidence

        if seed_demo:
            self.seed_demo_ownership()

    def seed_demo_ownership(self) -> None:
        for facility_id, owners in config.DEMO_OWNERSHIP.items():
            self.registry.seed(facility_id, [OwnerShare.from_dict(o) for o in owners])
        logger.info("Initialized demo ownership")

    # =========================================================================
    # DISTRIBUTION
    # =========================================================================

    def distribute_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Distribute a payment described by an API request.

        Expects `owners` and either `total` or `base64Pdf`.
        """
        start = time.perf_counter()

        owners = data.get("owners")
        if not owners or not isinstance(owners, list):
            raise InvalidInput("owners array is required and must not be empty")
        allocations = [ShareAllocation.from_dict(o) for o in owners]

        facility_id = data.get("loanId") or data.get("loan_id")
        timings = {}

        if data.get("total") is not None:
            try:
                total = to_decimal(data["total"])
            except ValueError:
                raise InvalidInput(f"total must be a number, got: {data['total']!r}") from None
        elif data.get("base64Pdf"):
            extraction_start = time.perf_counter()
            total = self.extract_total(data["base64Pdf"])
            timings["extraction_time_ms"] = _elapsed_ms(extraction_start)
        else:
            raise MissingField(["total or base64Pdf"])

        logger.info(f"Distributing {total} for {facility_id or 'N/A'} across {len(allocations)} owners")
        distributions, csv_text = self._settle(total, allocations)

        timings["processing_time_ms"] = _elapsed_ms(start)
        return self.output_builder.build_distribution(
            facility_id, total, distributions, csv_text, self.currency, timings=timings
        )

    def _settle(self, total: Decimal, allocations: list[ShareAllocation]):
        # Cent-level split so the exported file reconciles exactly
        distributions = self.distribution_engine.distribute(
            total, allocations, minor_unit=MINOR_UNIT
        )

        csv_text = generate_csv(distributions, currency=self.currency)
        if not validate_csv_integrity(csv_text, total):
            raise IntegrityViolation("CSV integrity validation failed")
        return distributions, csv_text

    def extract_total(self, base64_document: str) -> Decimal:
        if self.payment_extractor is None:
            raise ExtractionUnavailable("No payment extractor configured")
        raw = self.payment_extractor(base64_document)
        total = parse_payment_amount(raw)
        logger.info(f"Extracted payment total: {total}")
        return total

    # =========================================================================
    # OWNERSHIP
    # =========================================================================

    def get_ownership(self, facility_id: str | None = None) -> Dict[str, Any]:
        if not facility_id:
            return {"success": True, **self.output_builder.build_all_ownership(self.registry.snapshot())}
        owners = self.registry.get(facility_id)
        return {"success": True, **self.output_builder.build_ownership(facility_id, owners)}

    def seed_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        facility_id = data.get("loan_id") or data.get("facility_id")
        owners = data.get("owners")
        if not facility_id or not isinstance(owners, list):
            raise InvalidInput("loan_id and owners array required")

        seeded = self.registry.seed(facility_id, [OwnerShare.from_dict(o) for o in owners])
        return {
            "success": True,
            "loan_id": facility_id,
            "owners": self.output_builder.build_owners(seeded),
        }

    def reset_ownership(self) -> Dict[str, Any]:
        self.registry.reset()
        return {"success": True, "message": "All ownership data cleared"}

    # =========================================================================
    # TRADES
    # =========================================================================

    def validate_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        proposal = TradeProposal.from_dict(data)
        errors = self.lifecycle.validate(
            proposal.seller_id, proposal.buyer_id, proposal.facility_id, proposal.percentage
        )
        return {"valid": not errors, "errors": errors}

    def propose_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        event = self.lifecycle.propose_from(TradeProposal.from_dict(data))
        return {"success": True, "trade": self.output_builder.build_trade(event)}

    def approve_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        trade_id = _require_trade_id(data)
        event, ownership = self.lifecycle.approve(trade_id)
        return {
            "success": True,
            "trade": self.output_builder.build_trade(event),
            "ownership": self.output_builder.build_owners(ownership),
        }

    def reject_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        trade_id = _require_trade_id(data)
        event = self.lifecycle.reject(trade_id, reason=data.get("reason"))
        return {"success": True, "trade": self.output_builder.build_trade(event)}

    def list_events(self, facility_id: str | None = None, status: str | None = None) -> Dict[str, Any]:
        events = self.lifecycle.list_events(facility_id=facility_id or None, status=status or None)
        return {"success": True, **self.output_builder.build_events(events)}

    def parse_trade_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Turn an extraction into a trade proposal without recording it.

        Accepts either `base64` (run through the trade extractor) or an
        already extracted `extraction` payload.
        """
        if data.get("extraction") is not None:
            raw = data["extraction"]
        elif data.get("base64"):
            if self.trade_extractor is None:
                raise ExtractionUnavailable("No trade extractor configured")
            raw = self.trade_extractor(data["base64"])
        else:
            raise InvalidInput("No file data provided")

        proposal = parse_trade_extraction(raw, self.min_confidence)
        logger.info(f"Trade data extracted: {proposal.seller_id} -> {proposal.buyer_id}")
        return {
            "success": True,
            "data": {
                "seller": proposal.seller_id,
                "buyer": proposal.buyer_id,
                "amount": float(proposal.amount),
                "loan_id": proposal.facility_id,
                "percentage": float(proposal.percentage),
                "confidence": float(proposal.confidence),
            },
        }


def _require_trade_id(data: Dict[str, Any]) -> str:
    trade_id = data.get("trade_id")
    if not trade_id:
        raise MissingField("trade_id")
    return str(trade_id)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
