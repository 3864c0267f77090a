"""
Document Extraction Adapter

The AI document reader is an external collaborator. This module defines what
the engine expects from it and turns its raw answers into engine inputs:
- a payment extractor returns the model's text for "total payment amount"
- a trade extractor returns a dict (or JSON text) describing a transfer
"""

import json
import re
from decimal import Decimal
from typing import Protocol

from .errors import ExtractionFailed, LowConfidenceExtraction, MissingField
from .models import TradeProposal
from .money import to_decimal

DEFAULT_MIN_CONFIDENCE = Decimal('0.6')

_CODE_FENCE = re.compile(r"```(?:json)?\n?")
_AMOUNT_NOISE = re.compile(r"[,$]|usd", re.IGNORECASE)


class PaymentExtractor(Protocol):
    def __call__(self, base64_document: str) -> str:
        ...


class TradeExtractor(Protocol):
    def __call__(self, base64_document: str) -> dict | str:
        ...


def parse_payment_amount(raw: str) -> Decimal:
    """
    Turn a model answer like "$10,000,000 USD" into Decimal("10000000").

    Must be a positive number.
    """
    cleaned = _AMOUNT_NOISE.sub("", str(raw or "")).strip()
    try:
        value = to_decimal(cleaned)
    except ValueError:
        raise ExtractionFailed(f'Invalid numeric value extracted: "{raw}"') from None
    if value <= 0:
        raise ExtractionFailed(f'Invalid numeric value extracted: "{raw}"')
    return value


def parse_trade_extraction(
    data: dict | str,
    min_confidence: Decimal = DEFAULT_MIN_CONFIDENCE
) -> TradeProposal:
    """
    Turn a trade extractor's answer into a TradeProposal.

    Raises LowConfidenceExtraction below `min_confidence` and MissingField if
    any trade field could not be found.
    """
    if isinstance(data, str):
        try:
            data = json.loads(_CODE_FENCE.sub("", data).strip())
        except json.JSONDecodeError:
            raise ExtractionFailed("AI returned invalid JSON format") from None
    if not isinstance(data, dict):
        raise ExtractionFailed("AI returned invalid JSON format")

    try:
        proposal = TradeProposal.from_dict(data)
    except ValueError as e:
        raise ExtractionFailed(str(e)) from None

    if proposal.confidence is None or proposal.confidence < min_confidence:
        raise LowConfidenceExtraction(proposal.confidence, min_confidence, data=data)

    missing = []
    if not proposal.seller_id:
        missing.append("seller")
    if not proposal.buyer_id:
        missing.append("buyer")
    if not proposal.amount:
        missing.append("amount")
    if not proposal.facility_id:
        missing.append("loan_id")
    if not proposal.percentage:
        missing.append("percentage")
    if missing:
        raise MissingField(missing)

    return proposal
