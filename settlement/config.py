"""
Runtime configuration, read from the environment.
"""

import os
from decimal import Decimal


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

PORT = int(os.environ.get("PORT", 8080))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ISO code written on every CSV row
CURRENCY = os.environ.get("SETTLEMENT_CURRENCY", "USD")

# Extractions scored below this are refused
MIN_EXTRACTION_CONFIDENCE = Decimal(os.environ.get("MIN_EXTRACTION_CONFIDENCE", "0.6"))

# Seed the demo facilities when the service starts
SEED_DEMO_OWNERSHIP = _env_flag("SEED_DEMO_OWNERSHIP", "true")

DEMO_OWNERSHIP = {
    "loan-001": [
        {"name": "Bank A", "share": "40.0"},
        {"name": "Bank B", "share": "60.0"},
    ],
    "LN-2024-8392": [
        {"name": "Pacific Rim Traders", "share": "45.0"},
        {"name": "Sovereign Wealth I", "share": "30.0"},
        {"name": "Maritime Ventures", "share": "25.0"},
    ],
}
