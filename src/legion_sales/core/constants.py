"""
Legion Sales Constants

Protocol constants used across the sale engine, organized by category.

NOTE: Changes to settlement-critical constants (marked with [SETTLEMENT])
change how published totals reconcile. Existing sales must not be settled
under different values than they were created with.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
SECONDS_PER_WEEK: Final[int] = 604800  # 60 * 60 * 24 * 7
SECONDS_PER_YEAR: Final[int] = 31536000  # 60 * 60 * 24 * 365

# =============================================================================
# SETTLEMENT ARITHMETIC [SETTLEMENT]
# =============================================================================

BASIS_POINTS_DENOMINATOR: Final[int] = 10_000
# Fixed-point scale for allocation and initial-release rates (18 decimals)
RATE_PRECISION: Final[int] = 10**18
UINT256_MAX: Final[int] = 2**256 - 1

# =============================================================================
# SALE PERIOD BOUNDS
# =============================================================================

MIN_SALE_PERIOD_SECONDS: Final[int] = SECONDS_PER_HOUR
MAX_SALE_PERIOD_SECONDS: Final[int] = 12 * SECONDS_PER_WEEK
# Pre-liquid sales are ended manually and may stay open much longer
MAX_PRE_LIQUID_SALE_PERIOD_SECONDS: Final[int] = 52 * SECONDS_PER_WEEK
MIN_REFUND_PERIOD_SECONDS: Final[int] = SECONDS_PER_HOUR
MAX_REFUND_PERIOD_SECONDS: Final[int] = 2 * SECONDS_PER_WEEK
MAX_PREFUND_PERIOD_SECONDS: Final[int] = 12 * SECONDS_PER_WEEK
MAX_PREFUND_ALLOCATION_PERIOD_SECONDS: Final[int] = 2 * SECONDS_PER_WEEK

# =============================================================================
# VESTING BOUNDS
# =============================================================================

DEFAULT_MAX_VESTING_DURATION_SECONDS: Final[int] = 520 * SECONDS_PER_WEEK
DEFAULT_MAX_VESTING_LOCKUP_SECONDS: Final[int] = 520 * SECONDS_PER_WEEK

# =============================================================================
# SIGNING DOMAIN
# =============================================================================

SIGNING_DOMAIN_NAME: Final[str] = "Legion Sale"
SIGNING_DOMAIN_VERSION: Final[str] = "1"

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40

# Registry keys for platform addresses
REGISTRY_PLATFORM_ADMIN: Final[str] = "LEGION_BOUNCER"
REGISTRY_SIGNER_PUBLIC_KEY: Final[str] = "LEGION_SIGNER"
REGISTRY_FEE_RECEIVER: Final[str] = "LEGION_FEE_RECEIVER"
