"""
Validation for the Settlement Engine

TradeValidator runs the advisory trade checks against the live registry and
reports every failure at once. InputValidator checks request structure and
raises on the first problem.
"""

from decimal import Decimal

from .errors import InvalidInput, MissingField
from .models import TradeProposal
from .money import FULL_OWNERSHIP
from .registry import OwnershipRegistry


class TradeValidator:
    """Checks a proposed transfer against current ownership."""

    def __init__(self, registry: OwnershipRegistry):
        self.registry = registry

    def validate(
        self,
        seller_id: str,
        buyer_id: str,
        facility_id: str,
        percentage: Decimal | None
    ) -> list[str]:
        """
        Return a list of validation failures. Empty means valid.

        Read-only: nothing is reserved, so the result can be stale by the time
        the trade is approved.
        """
        errors = []

        owners = self.registry.find(facility_id) if facility_id else None
        if owners is None:
            errors.append(f'Loan ID "{facility_id}" does not exist in ownership registry')
        else:
            seller = next((o for o in owners if o.owner_id == seller_id), None)
            if seller is None:
                errors.append(f'Seller "{seller_id}" is not an owner of loan {facility_id}')
            elif percentage is not None and seller.share < percentage:
                errors.append(
                    f'Seller "{seller_id}" has insufficient ownership ({seller.share}%) '
                    f'to transfer {percentage}%'
                )

        if not buyer_id or not buyer_id.strip():
            errors.append("Buyer name cannot be empty")
        elif buyer_id == seller_id:
            errors.append("Buyer and seller must be different")

        if percentage is None:
            errors.append("Percentage is required")
        else:
            if percentage <= 0:
                errors.append("Percentage must be greater than 0")
            if percentage > FULL_OWNERSHIP:
                errors.append("Percentage cannot exceed 100")

        return errors


class InputValidator:
    """Validates trade proposals before they are recorded."""

    REQUIRED_FIELDS = ("seller", "buyer", "amount", "loan_id", "percentage")

    def validate_proposal(self, proposal: TradeProposal) -> None:
        """
        Raise MissingField if a required field is absent.

        Ownership and range checks are left to TradeValidator and approve().
        """
        values = {
            "seller": proposal.seller_id,
            "buyer": proposal.buyer_id,
            "amount": proposal.amount,
            "loan_id": proposal.facility_id,
            "percentage": proposal.percentage,
        }
        # Zero counts as missing, same as an absent field
        missing = [name for name in self.REQUIRED_FIELDS if not values[name]]
        if missing:
            raise MissingField(missing)

    def validate_percentage(self, percentage: Decimal) -> None:
        if not (0 < percentage <= FULL_OWNERSHIP):
            raise InvalidInput(
                f"percentage must be greater than 0 and at most 100, got: {percentage}"
            )
