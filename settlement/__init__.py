"""
LOAN SETTLEMENT ENGINE
Payment distribution and ownership trade lifecycle
"""

from .calculators import AuditRecorder, DistributionEngine
from .lifecycle import TradeLifecycle
from .registry import OwnershipRegistry
from .service import SettlementService

__all__ = [
    'SettlementService',
    'DistributionEngine',
    'OwnershipRegistry',
    'TradeLifecycle',
    'AuditRecorder',
]
