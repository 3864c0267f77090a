"""
Calculators Package

Distribution of payments and fingerprinting of approved trades.
"""

from .audit import AuditRecorder
from .distribution import DistributionEngine

__all__ = [
    "DistributionEngine",
    "AuditRecorder",
]
