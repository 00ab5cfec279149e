# backend/bullion/services/constants.py
"""
Centralized constants for the pricing and analytics services.

Usage:
    from bullion.services.constants import (
        ZERO,
        HUNDRED,
        BACKUP_FORMAT_VERSION,
    )
"""

from decimal import Decimal


# =============================================================================
# ARITHMETIC
# =============================================================================

ZERO: Decimal = Decimal("0")
ONE: Decimal = Decimal("1")

# Percentages are expressed on a 0-100 scale (12.5 = 12.5%)
HUNDRED: Decimal = Decimal("100")

# Allocation shares are rounded to the precision of stored amounts
PERCENT_QUANTUM: Decimal = Decimal("0.00000001")

# Retailer catalog amounts are integer cents
CENTS_PER_UNIT: Decimal = Decimal("100")


# =============================================================================
# SOURCE NAMES (stored in price_history.source)
# =============================================================================

SOURCE_SPOT = "goldapi"
SOURCE_RETAILER = "retailer"
SOURCE_MANUAL = "manual"
SOURCE_RESTORE = "restore"


# =============================================================================
# SYNC SETTINGS
# =============================================================================

# One worker per source type: spot group and retailer group fetch concurrently
SYNC_FETCH_WORKERS: int = 2


# =============================================================================
# BACKUP SETTINGS
# =============================================================================

# Current backup bundle format. Bundles with a higher version are rejected.
BACKUP_FORMAT_VERSION: int = 1

BACKUP_FILE_PREFIX = "portfolio_backup_"
BACKUP_FILE_EXTENSION = ".json"
