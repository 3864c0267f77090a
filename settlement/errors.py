"""
Error Taxonomy for the Settlement Engine

Three families:
- InputError: malformed caller input. Reported, never retried.
- StateConsistencyError: the caller's view of the registry or trade log is
  stale or wrong. The operation is rejected, nothing is corrected silently.
- IntegrityViolation: the engine produced a result that breaks its own
  invariants. A defect, never a user error.

Each class carries the HTTP status and error code the transports return.
"""


class SettlementError(Exception):
    """Base class for every error raised by the settlement engine."""

    http_status = 500
    error_code = "failed"


# =============================================================================
# INPUT ERRORS
# =============================================================================


class InputError(SettlementError, ValueError):
    http_status = 400
    error_code = "validation_failed"


class MissingField(InputError):
    def __init__(self, fields):
        if isinstance(fields, str):
            fields = [fields]
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidInput(InputError):
    pass


class EmptyOwnerSet(InputError):
    def __init__(self):
        super().__init__("At least one owner is required")


class ShareSumMismatch(InputError):
    def __init__(self, actual_sum):
        self.actual_sum = actual_sum
        super().__init__(f"Total shares must equal 1.0, got {actual_sum}")


class ExtractionFailed(InputError):
    http_status = 422
    error_code = "extraction_failed"


class LowConfidenceExtraction(ExtractionFailed):
    def __init__(self, confidence, threshold, data=None):
        self.confidence = confidence
        self.threshold = threshold
        self.data = data
        super().__init__(f"Low confidence extraction: {confidence} < {threshold}")


# =============================================================================
# STATE-CONSISTENCY ERRORS
# =============================================================================


class StateConsistencyError(SettlementError):
    http_status = 409
    error_code = "rejected"


class FacilityNotFound(StateConsistencyError):
    http_status = 404
    error_code = "not_found"

    def __init__(self, facility_id):
        self.facility_id = facility_id
        super().__init__(f"Facility {facility_id} not found")


class SellerNotFound(StateConsistencyError):
    http_status = 404
    error_code = "not_found"

    def __init__(self, seller_id, facility_id):
        self.seller_id = seller_id
        self.facility_id = facility_id
        super().__init__(f'Seller "{seller_id}" not found in ownership registry of {facility_id}')


class InsufficientOwnership(StateConsistencyError):
    def __init__(self, seller_id, available, requested):
        self.seller_id = seller_id
        self.available = available
        self.requested = requested
        super().__init__(
            f'Seller "{seller_id}" has insufficient ownership ({available}% < {requested}%)'
        )


class TradeNotFound(StateConsistencyError):
    http_status = 404
    error_code = "not_found"

    def __init__(self, trade_id):
        self.trade_id = trade_id
        super().__init__(f"Trade event {trade_id} not found")


class AlreadyApproved(StateConsistencyError):
    def __init__(self, trade_id):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} already approved")


class AlreadyRejected(StateConsistencyError):
    def __init__(self, trade_id):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} already rejected")


class ApprovalInProgress(StateConsistencyError):
    def __init__(self, trade_id):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} is being approved by another request")


# =============================================================================
# INTEGRITY VIOLATIONS
# =============================================================================


class IntegrityViolation(SettlementError):
    http_status = 500
    error_code = "integrity_violation"


# =============================================================================
# COLLABORATOR ERRORS
# =============================================================================


class ExtractionUnavailable(SettlementError):
    """No document extractor is configured for this service."""

    http_status = 503
    error_code = "unavailable"
