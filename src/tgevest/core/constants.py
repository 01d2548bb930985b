"""
Shared constants for the vesting vault.
"""

SECONDS_PER_DAY = 24 * 60 * 60

# Linear unlock granularity used when no override is configured
DEFAULT_UNLOCK_PERIOD = 30 * SECONDS_PER_DAY

PERCENT_DENOMINATOR = 100

ZERO_ADDRESS = "0x" + "0" * 40

UINT256_MAX = 2**256 - 1
