"""
CSV Export for Payment Execution

Format: Bank Name,BIC Code,Currency,Account Number,Amount
"""

import csv
import io
import logging
from decimal import Decimal

from .errors import IntegrityViolation
from .models import Distribution
from .money import MINOR_UNIT, ZERO, format_amount, is_close, to_decimal

logger = logging.getLogger(__name__)

HEADER = ["Bank Name", "BIC Code", "Currency", "Account Number", "Amount"]


def generate_csv(distributions: list[Distribution], currency: str = "USD") -> str:
    """One row per owner, amounts with exactly two decimals."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for d in distributions:
        writer.writerow([
            d.bank_name or d.owner_id,
            d.bank_identifier,
            currency,
            d.account_number,
            format_amount(d.amount),
        ])
    return buffer.getvalue().rstrip("\n")


def csv_total(csv_text: str) -> Decimal:
    """Sum of the Amount column."""
    reader = csv.reader(io.StringIO(csv_text))
    total = ZERO
    for row in reader:
        if not row or row == HEADER:
            continue
        try:
            total += to_decimal(row[-1])
        except ValueError:
            raise IntegrityViolation(f"Unparseable amount in CSV row: {row}") from None
    return total


def validate_csv_integrity(csv_text: str, expected_total: Decimal) -> bool:
    """True if the exported amounts sum to the total within one cent."""
    total = csv_total(csv_text)
    diff = abs(total - expected_total)

    if not is_close(total, expected_total, MINOR_UNIT):
        logger.error(f"CSV integrity check failed: {total} != {expected_total} (diff: {diff})")
        return False

    logger.info(f"CSV integrity verified: {total} == {expected_total}")
    return True
