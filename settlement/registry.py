"""
Ownership Registry

The authoritative facility -> owners mapping. Each facility's owners are held
as an immutable tuple that is swapped in whole, so readers always see a
consistent snapshot. Writers serialize on a per-facility lock; facilities
never contend with each other.
"""

import logging
import threading
from decimal import Decimal

from .errors import (
    FacilityNotFound,
    InsufficientOwnership,
    IntegrityViolation,
    InvalidInput,
    SellerNotFound,
)
from .models import OwnerShare
from .money import (
    FULL_OWNERSHIP,
    SHARE_SUM_TOLERANCE,
    TRANSFER_DRIFT_TOLERANCE,
    ZERO,
    is_close,
    quantize_share,
)

logger = logging.getLogger(__name__)


class OwnershipRegistry:
    """In-memory ownership store with per-facility write serialization."""

    def __init__(self):
        self._owners: dict[str, tuple[OwnerShare, ...]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, facility_id: str) -> tuple[OwnerShare, ...]:
        owners = self._owners.get(facility_id)
        if owners is None:
            raise FacilityNotFound(facility_id)
        return owners

    def find(self, facility_id: str) -> tuple[OwnerShare, ...] | None:
        return self._owners.get(facility_id)

    def snapshot(self) -> dict[str, tuple[OwnerShare, ...]]:
        """All facilities, in seed order."""
        return dict(self._owners)

    def total_share(self, facility_id: str) -> Decimal:
        return sum((o.share for o in self.get(facility_id)), ZERO)

    def is_settled(self, facility_id: str) -> bool:
        return is_close(self.total_share(facility_id), FULL_OWNERSHIP, SHARE_SUM_TOLERANCE)

    # -------------------------------------------------------------------------
    # Administrative writes
    # -------------------------------------------------------------------------

    def seed(self, facility_id: str, shares: list[OwnerShare]) -> tuple[OwnerShare, ...]:
        """
        Replace a facility's owner list.

        Only structure is checked; the share sum is not, so setups may seed
        partial ownership on purpose.
        """
        if not facility_id or not str(facility_id).strip():
            raise InvalidInput("facility_id is required")

        seen = set()
        for owner in shares:
            if not owner.owner_id:
                raise InvalidInput("Each owner must have a non-empty name")
            if owner.owner_id in seen:
                raise InvalidInput(f"Duplicate owner {owner.owner_id} for facility {facility_id}")
            if owner.share < 0:
                raise InvalidInput(f"share for {owner.owner_id} cannot be negative, got: {owner.share}")
            seen.add(owner.owner_id)

        owners = tuple(shares)
        with self._lock_for(facility_id):
            self._owners[facility_id] = owners

        logger.info(f"Seeded ownership for {facility_id}: {len(owners)} owners")
        return owners

    def reset(self) -> None:
        """
        Drop every facility, waiting for in-flight writes to finish.

        The registry lock is held throughout, so no facility lock can be
        created (and no first seed can land) while the reset runs.
        """
        with self._registry_lock:
            locks = list(self._locks.values())
            for lock in locks:
                lock.acquire()
            try:
                self._owners.clear()
            finally:
                for lock in locks:
                    lock.release()
        logger.info("All ownership data cleared")

    # -------------------------------------------------------------------------
    # Transfer
    # -------------------------------------------------------------------------

    def transfer(
        self,
        facility_id: str,
        seller_id: str,
        buyer_id: str,
        percentage: Decimal
    ) -> tuple[OwnerShare, ...]:
        """
        Move `percentage` points of ownership from seller to buyer.

        Only TradeLifecycle.approve calls this. Either the whole transfer is
        applied or nothing is.
        """
        if percentage <= 0:
            raise InvalidInput(f"percentage must be greater than 0, got: {percentage}")
        if seller_id == buyer_id:
            raise InvalidInput("Seller and buyer must be different")

        with self._lock_for(facility_id):
            before = self.get(facility_id)
            after = self._apply_transfer(facility_id, before, seller_id, buyer_id, percentage)
            self._check_drift(facility_id, before, after)
            self._owners[facility_id] = after

        logger.info(
            f"Transferred {percentage}% of {facility_id} from {seller_id} to {buyer_id}"
        )
        return after

    def _apply_transfer(
        self,
        facility_id: str,
        owners: tuple[OwnerShare, ...],
        seller_id: str,
        buyer_id: str,
        percentage: Decimal
    ) -> tuple[OwnerShare, ...]:
        updated = list(owners)

        seller_index = _index_of(updated, seller_id)
        if seller_index is None:
            raise SellerNotFound(seller_id, facility_id)

        seller = updated[seller_index]
        if seller.share < percentage:
            raise InsufficientOwnership(seller_id, seller.share, percentage)

        seller_share = quantize_share(seller.share - percentage)
        logger.debug(f"Seller {seller_id}: {seller.share}% -> {seller_share}%")
        updated[seller_index] = OwnerShare(seller_id, seller_share)

        buyer_index = _index_of(updated, buyer_id)
        if buyer_index is None:
            updated.append(OwnerShare(buyer_id, percentage))
            logger.debug(f"Added new owner {buyer_id} with {percentage}%")
        else:
            buyer = updated[buyer_index]
            buyer_share = quantize_share(buyer.share + percentage)
            logger.debug(f"Buyer {buyer_id}: {buyer.share}% -> {buyer_share}%")
            updated[buyer_index] = OwnerShare(buyer_id, buyer_share)

        # An owner with nothing left is not an owner
        if seller_share == 0:
            del updated[seller_index]
            logger.debug(f"Removed {seller_id} (0% ownership)")

        return tuple(updated)

    def _check_drift(
        self,
        facility_id: str,
        before: tuple[OwnerShare, ...],
        after: tuple[OwnerShare, ...]
    ) -> None:
        total_before = sum((o.share for o in before), ZERO)
        total_after = sum((o.share for o in after), ZERO)
        drift = total_after - total_before

        if abs(drift) > TRANSFER_DRIFT_TOLERANCE:
            logger.critical(
                f"Ownership drift on {facility_id}: {total_before} -> {total_after}"
            )
            raise IntegrityViolation(
                f"Transfer on {facility_id} changed total ownership by {drift}"
            )
        if drift:
            logger.warning(
                f"Rounding drift of {drift} on {facility_id} ({total_before} -> {total_after})"
            )

    def _lock_for(self, facility_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(facility_id)
            if lock is None:
                lock = self._locks[facility_id] = threading.Lock()
            return lock


def _index_of(owners: list[OwnerShare], owner_id: str) -> int | None:
    for index, owner in enumerate(owners):
        if owner.owner_id == owner_id:
            return index
    return None
