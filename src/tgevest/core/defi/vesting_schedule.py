"""
Unlock schedule arithmetic.

Pure functions over a BeneficiaryRecord and its VestingProgram. Nothing here
reads the clock or mutates state; the vault passes ``now`` and the unlock
period in.

A schedule has three phases:
- TGE: ``total_amount * tge_percent // 100`` is claimable from start_time
- Cliff: nothing further unlocks until ``cliff_end``
- Linear: the remainder unlocks in whole unlock periods until ``vesting_end``,
  where any truncation dust is paid out in full
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..constants import PERCENT_DENOMINATOR
from ..exceptions import InvalidConfigurationError, NotStartedError
from .vesting_models import BeneficiaryRecord, VestingProgram


class BeneficiaryState(Enum):
    """Lifecycle of a beneficiary's allocation."""
    UNREGISTERED = "unregistered"
    PENDING = "pending"
    TGE_WINDOW = "tge_window"
    VESTING = "vesting"
    FULLY_VESTED = "fully_vested"
    SETTLED = "settled"


@dataclass(frozen=True)
class ClaimQuote:
    """Amount claimable now and the unlock period index it accounts up to."""

    amount: int
    period_index: int


def tge_amount(total_amount: int, tge_percent: int) -> int:
    return total_amount * tge_percent // PERCENT_DENOMINATOR


def total_periods(program: VestingProgram, unlock_period: int) -> int:
    return program.vesting_duration // unlock_period


def available_to_claim(
    record: BeneficiaryRecord,
    program: VestingProgram,
    now: int,
    unlock_period: int,
) -> ClaimQuote:
    """
    Compute what ``record`` can claim at ``now``.

    Args:
        record: Beneficiary release state
        program: Owning program configuration
        now: Current timestamp
        unlock_period: Linear unlock granularity in seconds

    Returns:
        ClaimQuote with the claimable amount and the period index to record

    Raises:
        NotStartedError: If the program has no start time or now < start_time
        InvalidConfigurationError: If unlock_period is not positive
    """
    if unlock_period <= 0:
        raise InvalidConfigurationError("Unlock period must be positive")
    if program.start_time == 0 or now < program.start_time:
        raise NotStartedError(
            f"Vesting program {program.program_id} has not started",
            details={"program_id": program.program_id, "start_time": program.start_time, "now": now},
        )

    total = record.total_amount
    released = record.amount_released

    # Settled: nothing left, keep the recorded period
    if released >= total:
        return ClaimQuote(0, record.claimed_period_index)

    tge = tge_amount(total, program.tge_percent)

    # Before the cliff ends only the TGE slice is unlocked
    if now < program.cliff_end:
        return ClaimQuote(max(0, tge - released), 0)

    # Past the end everything is unlocked, including truncation dust
    if now >= program.vesting_end:
        return ClaimQuote(total - released, total_periods(program, unlock_period))

    elapsed_periods = (now - program.cliff_end) // unlock_period
    new_periods = max(0, elapsed_periods - record.claimed_period_index)
    linear = (total - tge) * (new_periods * unlock_period) // program.vesting_duration

    # No linear claim yet, so any unclaimed TGE slice is still owed
    tge_backlog = max(0, tge - released) if record.claimed_period_index == 0 else 0

    return ClaimQuote(min(linear + tge_backlog, total - released), elapsed_periods)


def next_unlock_time(program: VestingProgram, now: int, unlock_period: int) -> int | None:
    """
    Next timestamp at which more tokens unlock for ``program``.

    Returns start_time before the program starts, the next unlock period
    boundary while vesting, and None once fully vested or when no start
    time is set.
    """
    if unlock_period <= 0:
        raise InvalidConfigurationError("Unlock period must be positive")
    if program.start_time == 0:
        return None
    if now < program.start_time:
        return program.start_time
    if now >= program.vesting_end:
        return None

    elapsed_periods = (now - program.cliff_end) // unlock_period if now >= program.cliff_end else 0
    boundary = program.cliff_end + (elapsed_periods + 1) * unlock_period
    return min(boundary, program.vesting_end)


def beneficiary_state(
    record: BeneficiaryRecord | None,
    program: VestingProgram,
    now: int,
) -> BeneficiaryState:
    if record is None:
        return BeneficiaryState.UNREGISTERED
    if record.settled:
        return BeneficiaryState.SETTLED
    if program.start_time == 0 or now < program.start_time:
        return BeneficiaryState.PENDING
    if now < program.cliff_end:
        return BeneficiaryState.TGE_WINDOW
    if now < program.vesting_end:
        return BeneficiaryState.VESTING
    return BeneficiaryState.FULLY_VESTED
