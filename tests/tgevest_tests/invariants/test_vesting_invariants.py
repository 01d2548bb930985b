"""
Vesting Invariant Tests using Property-Based Testing

Verifies that conservation, monotonicity and settlement hold for arbitrary
schedules, claim timings and interleaved registrations.
"""

from __future__ import annotations

from hypothesis import given, settings, strategies as st

from tgevest.core.contracts.erc20 import ERC20Token
from tgevest.core.defi.vesting import VestingVault
from tgevest.core.defi.vesting_models import BeneficiaryRecord, VestingProgram
from tgevest.core.defi.vesting_schedule import available_to_claim, tge_amount
from tgevest.core.exceptions import (
    AllocationLockedError,
    BeneficiaryNotFoundError,
    InsufficientPoolError,
    NothingToClaimError,
)
from tests.tgevest_tests.vesting_test_utils import ADMIN, DAY, T0, ManualClock

BENEFICIARIES = [f"0x{i:040x}" for i in range(1, 4)]

schedules = st.fixed_dictionaries({
    "tge_percent": st.integers(min_value=0, max_value=100),
    "cliff_duration": st.integers(min_value=0, max_value=120 * DAY),
    "vesting_duration": st.integers(min_value=0, max_value=720 * DAY),
    "unlock_period": st.integers(min_value=1, max_value=90 * DAY),
})


def _program(schedule: dict) -> VestingProgram:
    return VestingProgram(
        program_id="p",
        initial_pool=10**30,
        cliff_duration=schedule["cliff_duration"],
        vesting_duration=schedule["vesting_duration"],
        tge_percent=schedule["tge_percent"],
        start_time=T0,
        pool_remaining=10**30,
    )


class TestScheduleInvariants:
    @given(schedules, st.integers(min_value=1, max_value=10**27))
    @settings(max_examples=300)
    def test_tge_available_at_start(self, schedule: dict, total: int):
        """Before the cliff ends, exactly the TGE slice is claimable."""
        program = _program(schedule)
        record = BeneficiaryRecord(total_amount=total)
        quote = available_to_claim(record, program, T0, schedule["unlock_period"])
        if program.cliff_end > T0:
            assert quote.amount == tge_amount(total, schedule["tge_percent"])
        else:
            assert quote.amount >= tge_amount(total, schedule["tge_percent"])

    @given(schedules, st.integers(min_value=1, max_value=10**27))
    @settings(max_examples=300)
    def test_full_settlement_at_vesting_end(self, schedule: dict, total: int):
        program = _program(schedule)
        record = BeneficiaryRecord(total_amount=total)
        quote = available_to_claim(record, program, program.vesting_end, schedule["unlock_period"])
        assert quote.amount == total

    @given(
        schedules,
        st.integers(min_value=1, max_value=10**24),
        st.lists(st.integers(min_value=0, max_value=900 * DAY), max_size=25),
    )
    @settings(max_examples=300)
    def test_claims_never_exceed_total(self, schedule: dict, total: int, offsets: list[int]):
        """Claiming at arbitrary increasing times never over-releases and ends settled."""
        program = _program(schedule)
        record = BeneficiaryRecord(total_amount=total)
        unlock = schedule["unlock_period"]

        for offset in sorted(offsets):
            previous = (record.amount_released, record.claimed_period_index)
            quote = available_to_claim(record, program, T0 + offset, unlock)
            assert quote.amount >= 0
            record.amount_released += quote.amount
            record.claimed_period_index = max(record.claimed_period_index, quote.period_index)

            assert record.amount_released <= total
            assert record.amount_released >= previous[0]
            assert record.claimed_period_index >= previous[1]

        final = available_to_claim(record, program, program.vesting_end, unlock)
        assert record.amount_released + final.amount == total


POOL = 10**10

vault_steps = st.lists(
    st.one_of(
        st.tuples(st.just("advance"), st.integers(min_value=0, max_value=60 * DAY)),
        st.tuples(st.just("claim"), st.integers(min_value=0, max_value=len(BENEFICIARIES) - 1)),
        st.tuples(
            st.just("add"),
            st.integers(min_value=0, max_value=len(BENEFICIARIES) - 1),
            st.integers(min_value=1, max_value=4 * 10**9),
        ),
    ),
    max_size=40,
)


def _check_conservation(vault: VestingVault, token: ERC20Token, last: dict) -> None:
    program = vault.get_program("p")
    released = sum(record.amount_released for _, record in program)
    unreleased = sum(record.outstanding for _, record in program)

    assert released + unreleased + program.pool_remaining == POOL
    assert program.pool_remaining >= 0
    assert program.released_total == released
    assert sum(token.balance_of(a) for a in BENEFICIARIES) == released
    assert token.balance_of(vault.address) == POOL - released

    for address, record in program:
        assert record.amount_released <= record.total_amount
        previous = last.get(address, (0, 0))
        assert record.amount_released >= previous[0]
        assert record.claimed_period_index >= previous[1]
        last[address] = (record.amount_released, record.claimed_period_index)


class TestVaultConservation:
    @given(schedules, vault_steps)
    @settings(max_examples=150, deadline=None)
    def test_pool_conservation_across_operations(self, schedule: dict, steps: list[tuple]):
        """Registrations, replacements and claims interleaved over time never leak tokens."""
        clock = ManualClock(T0)
        token = ERC20Token(name="Vest Token", symbol="VST", owner=ADMIN)
        vault = VestingVault(
            token=token,
            admin_address=ADMIN,
            unlock_period=schedule["unlock_period"],
            time_provider=clock,
        )
        token.mint(ADMIN, vault.address, POOL)
        cap = vault.grant_admin(ADMIN)
        vault.create_program(
            cap,
            "p",
            pool=POOL,
            cliff_duration=schedule["cliff_duration"],
            vesting_duration=schedule["vesting_duration"],
            tge_percent=schedule["tge_percent"],
            start_time=T0,
        )

        last: dict = {}
        for step in steps:
            if step[0] == "advance":
                clock.advance(step[1])
            elif step[0] == "claim":
                try:
                    vault.claim("p", BENEFICIARIES[step[1]])
                except (NothingToClaimError, BeneficiaryNotFoundError):
                    pass
            else:
                try:
                    vault.add_beneficiary(cap, "p", BENEFICIARIES[step[1]], step[2])
                except (AllocationLockedError, InsufficientPoolError):
                    pass
            _check_conservation(vault, token, last)

        clock.set(vault.get_program("p").vesting_end)
        for address in vault.get_program("p").roster:
            try:
                vault.claim("p", address)
            except NothingToClaimError:
                pass

        program = vault.get_program("p")
        for address, record in program:
            assert record.settled
            assert token.balance_of(address) == record.total_amount
        assert token.balance_of(vault.address) == program.pool_remaining
