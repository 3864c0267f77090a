"""
Distribution Engine

Splits a payment total across fractional owners. The last owner in the
supplied order absorbs the whole arithmetic remainder, so the distributed
amounts always sum back to the total.
"""

import logging
from decimal import Decimal

from ..errors import EmptyOwnerSet, IntegrityViolation, InvalidInput, ShareSumMismatch
from ..models import Distribution, ShareAllocation
from ..money import MONEY_EPSILON, SHARE_SUM_TOLERANCE, ZERO, floor_to_unit, is_close

logger = logging.getLogger(__name__)


class DistributionEngine:
    """Calculates per-owner distributions for a single payment."""

    def distribute(
        self,
        total: Decimal,
        allocations: list[ShareAllocation],
        minor_unit: Decimal | None = None
    ) -> list[Distribution]:
        """
        Distribute `total` pro rata over `allocations`.

        Args:
            total: Payment amount to distribute (>= 0)
            allocations: Ordered owners with their fraction (0-1) of the total.
                The last entry receives the remainder.
            minor_unit: When set, every owner but the last is rounded down to
                this unit before the remainder is computed, so that exported
                amounts reconcile to the unit.

        Returns:
            Distributions in the same order as `allocations`
        """
        self._validate(total, allocations)

        raw_amounts = [total * allocation.share for allocation in allocations]
        if minor_unit is not None:
            raw_amounts = [floor_to_unit(amount, minor_unit) for amount in raw_amounts]

        distributed = sum(raw_amounts, ZERO)
        remainder = total - distributed

        logger.debug(f"Total cash: {total}")
        logger.debug(f"Total distributed (before adjustment): {distributed}")
        logger.debug(f"Rounding adjustment: {remainder}")

        # Last owner absorbs the remainder
        raw_amounts[-1] += remainder

        distributions = [
            Distribution.for_target(allocation.target, amount)
            for allocation, amount in zip(allocations, raw_amounts)
        ]

        self.verify(total, distributions)
        logger.info(
            f"Distributed {total} across {len(distributions)} owners "
            f"(remainder {remainder} to {distributions[-1].owner_id})"
        )
        return distributions

    def verify(self, total: Decimal, distributions: list[Distribution]) -> None:
        """Raise IntegrityViolation unless the distributions sum to `total`."""
        final_sum = sum((d.amount for d in distributions), ZERO)
        if not is_close(final_sum, total, MONEY_EPSILON):
            logger.critical(f"Distribution integrity failed: {final_sum} != {total}")
            raise IntegrityViolation(f"Distribution integrity failed: {final_sum} != {total}")

    def _validate(self, total: Decimal, allocations: list[ShareAllocation]) -> None:
        if not allocations:
            raise EmptyOwnerSet()

        if total < 0:
            raise InvalidInput(f"total must not be negative, got: {total}")

        for allocation in allocations:
            if allocation.share < 0:
                raise InvalidInput(
                    f"share for {allocation.owner_id} cannot be negative, got: {allocation.share}"
                )

        total_shares = sum((a.share for a in allocations), ZERO)
        if not is_close(total_shares, Decimal('1'), SHARE_SUM_TOLERANCE):
            raise ShareSumMismatch(total_shares)
