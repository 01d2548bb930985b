"""
Token Vesting Vault.

Distributes a token balance to registered beneficiaries over time:
- TGE portion unlocked at program start
- Cliff during which nothing further unlocks
- Linear release in discrete unlock periods after the cliff

Security features:
- Capability-gated admin operations
- Non-reentrant claims keyed by (caller, program)
- State mutation before the external transfer, rolled back if it fails
- All-or-nothing batch registration
- Withdrawals limited to tokens not owed to beneficiaries
"""

from __future__ import annotations

import copy
import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Iterator, Protocol, Sequence

from ..constants import DEFAULT_UNLOCK_PERIOD, PERCENT_DENOMINATOR, ZERO_ADDRESS
from ..exceptions import (
    AllocationLockedError,
    AlreadyExistsError,
    BeneficiaryNotFoundError,
    InsufficientFundsError,
    InsufficientPoolError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidConfigurationError,
    InvalidTimeError,
    LengthMismatchError,
    NothingToClaimError,
    ProgramNotFoundError,
    ReentrancyError,
    TransferFailedError,
    ValidationError,
    get_error_context,
)
from .access_control import AccessControl, AdminCapability
from .vesting_models import BeneficiaryRecord, ProgramRegistry, VestingProgram
from .vesting_schedule import (
    BeneficiaryState,
    ClaimQuote,
    available_to_claim,
    beneficiary_state,
    next_unlock_time,
)

if TYPE_CHECKING:
    from ..config import VestingSettings

logger = logging.getLogger(__name__)


class ValueLedger(Protocol):
    """Token ledger the vault holds its balance in."""

    address: str

    def balance_of(self, account: str) -> int: ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool: ...


@dataclass
class VestingEvent:
    """Record of an observable vault event."""

    event_type: str  # "Claimed", "BeneficiaryAdded", ...
    args: dict[str, Any]
    timestamp: int
    sequence: int = 0


@dataclass
class VestingVault:
    """
    Multi-program vesting vault.

    Admin operations take an ``AdminCapability`` obtained from
    ``grant_admin``. Claims are open to any registered beneficiary.

    The vault's token balance must be funded (``deposit_tokens`` or a direct
    transfer to ``address``) before beneficiaries can be paid; creating a
    program only reserves accounting capacity.
    """

    token: ValueLedger
    admin_address: str
    unlock_period: int = DEFAULT_UNLOCK_PERIOD
    time_provider: Callable[[], int] | None = None
    address: str = ""

    registry: ProgramRegistry = field(default_factory=ProgramRegistry)
    events: list[VestingEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.token is None:
            raise InvalidConfigurationError("Vesting vault requires a token ledger")
        self._check_unlock_period(self.unlock_period)
        self.access_control = AccessControl(admin_address=self.admin_address)
        self.admin_address = self.access_control.admin_address
        if not self.address:
            addr_hash = hashlib.sha3_256(f"vesting:{self.admin_address}:{time.time_ns()}".encode()).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self.address.lower()

        # (caller, program_id) pairs with an operation in flight
        self._active: set[tuple[str, str]] = set()
        self._guard_lock = threading.Lock()

        logger.info(
            "Vesting vault initialized",
            extra={
                "event": "vesting.vault_initialized",
                "vault": self.address[:10],
                "unlock_period": self.unlock_period,
                "deterministic_time": self.time_provider is not None,
            }
        )

    @classmethod
    def from_settings(
        cls,
        settings: "VestingSettings",
        token: ValueLedger,
        time_provider: Callable[[], int] | None = None,
    ) -> "VestingVault":
        return cls(
            token=token,
            admin_address=settings.admin_address,
            unlock_period=settings.unlock_period,
            time_provider=time_provider,
            address=settings.vault_address,
        )

    def grant_admin(self, caller: str) -> AdminCapability:
        return self.access_control.grant(caller)

    def transfer_admin(self, cap: AdminCapability, new_admin: str) -> AdminCapability:
        """
        Hand the vault to ``new_admin``.

        Every capability issued before, including ``cap``, stops working.

        Returns:
            Capability for the new admin
        """
        previous = self.access_control.require(cap)
        self._require_vault_idle("transfer admin")
        new_cap = self.access_control.transfer_admin(cap, new_admin)
        self.admin_address = self.access_control.admin_address
        self._emit("AdminTransferred", previous=previous, admin=self.admin_address)
        return new_cap

    # ==================== Admin Operations ====================

    def create_program(
        self,
        cap: AdminCapability,
        program_id: str,
        pool: int,
        cliff_duration: int,
        vesting_duration: int,
        tge_percent: int,
        start_time: int,
    ) -> VestingProgram:
        """
        Create a vesting program.

        Args:
            cap: Admin capability
            program_id: Unique program identifier
            pool: Total allocation capacity for beneficiaries
            cliff_duration: Seconds after start_time before linear release begins
            vesting_duration: Seconds of linear release after the cliff
            tge_percent: Percent of each allocation unlocked at start_time (0-100)
            start_time: Unix timestamp the schedule starts; 0 leaves it unset

        Returns:
            Snapshot of the created program

        Raises:
            UnauthorizedError: If cap is not a valid admin capability
            AlreadyExistsError: If program_id is already in use
            ValidationError: On invalid configuration values
        """
        self.access_control.require(cap)

        if not isinstance(program_id, str) or not program_id.strip():
            raise InvalidConfigurationError("Program id cannot be empty")
        existing = self.registry.get(program_id)
        if existing is not None and existing.initial_pool > 0:
            raise AlreadyExistsError(
                f"Vesting program {program_id} already exists",
                details={"program_id": program_id},
            )

        self._check_int(pool, "pool", InvalidAmountError, minimum=1)
        self._check_int(cliff_duration, "cliff_duration", InvalidConfigurationError, minimum=0)
        self._check_int(vesting_duration, "vesting_duration", InvalidConfigurationError, minimum=0)
        self._check_int(tge_percent, "tge_percent", InvalidConfigurationError, minimum=0)
        if tge_percent > PERCENT_DENOMINATOR:
            raise InvalidConfigurationError(f"tge_percent must be at most {PERCENT_DENOMINATOR}")
        self._check_int(start_time, "start_time", InvalidTimeError, minimum=0)

        program = VestingProgram(
            program_id=program_id,
            initial_pool=pool,
            cliff_duration=cliff_duration,
            vesting_duration=vesting_duration,
            tge_percent=tge_percent,
            start_time=start_time,
            pool_remaining=pool,
        )
        self.registry.add(program)
        self._emit("ProgramCreated", program_id=program_id, pool=pool)

        logger.info(
            "Vesting program created",
            extra={
                "event": "vesting.program_created",
                "program_id": program_id,
                "pool": pool,
                "tge_percent": tge_percent,
                "start_time": start_time,
            }
        )
        return copy.deepcopy(program)

    def add_beneficiary(
        self,
        cap: AdminCapability,
        program_id: str,
        address: str,
        total_amount: int,
    ) -> BeneficiaryRecord:
        """
        Register a beneficiary, or replace an existing unpaid allocation.

        Replacing returns the old allocation to the pool before reserving the
        new one; it does not add to it.

        Raises:
            InvalidAddressError: If address is empty or zero
            InvalidAmountError: If total_amount is not a positive integer
            InsufficientPoolError: If total_amount exceeds the remaining pool
            AllocationLockedError: If the existing allocation already paid out
        """
        self.access_control.require(cap)
        program = self._get_program(program_id)
        self._require_program_idle(program_id)

        address_norm, record = self._register(program, address, total_amount)

        self._emit(
            "BeneficiaryAdded",
            address=address_norm,
            program_id=program_id,
            schedule=record.to_dict(),
        )
        logger.info(
            "Beneficiary added",
            extra={
                "event": "vesting.beneficiary_added",
                "program_id": program_id,
                "beneficiary": address_norm[:10],
                "amount": total_amount,
            }
        )
        return replace(record)

    def add_beneficiaries_batch(
        self,
        cap: AdminCapability,
        program_id: str,
        addresses: Sequence[str],
        total_amounts: Sequence[int],
    ) -> int:
        """
        Register several beneficiaries atomically.

        Entries are applied in order with the same rules as add_beneficiary.
        If any entry fails, none of the batch is registered.

        An address listed twice keeps only its last entry.

        Returns:
            Number of distinct beneficiaries registered
        """
        self.access_control.require(cap)
        if len(addresses) != len(total_amounts):
            raise LengthMismatchError(
                f"Batch length mismatch: {len(addresses)} addresses, {len(total_amounts)} amounts",
                details={"addresses": len(addresses), "amounts": len(total_amounts)},
            )
        if not addresses:
            raise ValidationError("Batch cannot be empty")

        program = self._get_program(program_id)
        self._require_program_idle(program_id)

        registered: list[str] = []
        pool_before = program.pool_remaining
        with self._atomic(program):
            for address, amount in zip(addresses, total_amounts):
                address_norm, _ = self._register(program, address, amount)
                registered.append(address_norm)

        count = len(set(registered))
        self._emit(
            "BeneficiaryBatchAdded",
            addresses=registered,
            amounts=list(total_amounts),
            program_id=program_id,
        )
        logger.info(
            "Beneficiary batch added",
            extra={
                "event": "vesting.beneficiary_batch_added",
                "program_id": program_id,
                "count": count,
                "reserved": pool_before - program.pool_remaining,
            }
        )
        return count

    def set_start_time(self, cap: AdminCapability, program_id: str, new_time: int) -> None:
        """
        Move a program's start time.

        Every cliff and period boundary moves with it, including for
        beneficiaries who have already claimed.

        Raises:
            InvalidTimeError: If new_time is in the past
        """
        self.access_control.require(cap)
        self._check_int(new_time, "start_time", InvalidTimeError, minimum=0)
        now = self._current_time()
        if new_time < now:
            raise InvalidTimeError(
                f"Start time {new_time} is in the past",
                details={"start_time": new_time, "now": now},
            )
        program = self._get_program(program_id)
        self._require_program_idle(program_id)

        previous = program.start_time
        if previous and previous <= now:
            logger.warning(
                "Start time moved after program began",
                extra={
                    "event": "vesting.start_time_shifted",
                    "program_id": program_id,
                    "previous": previous,
                    "start_time": new_time,
                    "released_total": program.released_total,
                }
            )
        program.start_time = new_time
        self._emit("StartTimeUpdated", program_id=program_id, new_time=new_time)

        logger.info(
            "Start time updated",
            extra={
                "event": "vesting.start_time_updated",
                "program_id": program_id,
                "start_time": new_time,
            }
        )

    def set_unlock_period(self, cap: AdminCapability, new_period: int) -> None:
        self.access_control.require(cap)
        self._check_unlock_period(new_period)
        self._require_vault_idle("change unlock period")

        self.unlock_period = new_period
        self._emit("UnlockPeriodUpdated", new_period=new_period)
        logger.info(
            "Unlock period updated",
            extra={"event": "vesting.unlock_period_updated", "unlock_period": new_period}
        )

    def set_token(self, cap: AdminCapability, token: ValueLedger) -> None:
        self.access_control.require(cap)
        if token is None or not getattr(token, "address", ""):
            raise InvalidConfigurationError("Token ledger must have an address")
        self._require_vault_idle("change token")

        self.token = token
        logger.info(
            "Token ledger updated",
            extra={"event": "vesting.token_updated", "token": token.address[:10]}
        )

    def deposit_tokens(self, cap: AdminCapability, amount: int) -> None:
        """
        Pull ``amount`` from the admin into the vault.

        The admin must have approved the vault on the token ledger first.
        """
        admin = self.access_control.require(cap)
        self._require_vault_idle("deposit")
        self._check_int(amount, "amount", InvalidAmountError, minimum=1)
        self._transfer_or_raise(
            lambda: self.token.transfer_from(self.address, admin, self.address, amount),
            action="deposit",
            amount=amount,
        )
        self._emit("TokensDeposited", from_address=admin, amount=amount)
        logger.info(
            "Tokens deposited",
            extra={"event": "vesting.tokens_deposited", "from": admin[:10], "amount": amount}
        )

    def withdraw_tokens(self, cap: AdminCapability, amount: int, to: str | None = None) -> None:
        """
        Send unencumbered tokens out of the vault.

        Only the balance above the sum of every beneficiary's unpaid
        allocation can be withdrawn.

        Raises:
            InsufficientFundsError: If amount exceeds the unencumbered balance
        """
        admin = self.access_control.require(cap)
        self._require_vault_idle("withdraw")
        recipient = self._normalize_address(to or admin)
        self._check_int(amount, "amount", InvalidAmountError, minimum=1)

        free = self.token.balance_of(self.address) - self.outstanding_obligations()
        if amount > free:
            raise InsufficientFundsError(
                f"Withdrawal of {amount} exceeds unencumbered balance {max(free, 0)}",
                details={"amount": amount, "available": max(free, 0)},
            )
        self._transfer_or_raise(
            lambda: self.token.transfer(self.address, recipient, amount),
            action="withdraw",
            amount=amount,
        )
        self._emit("TokensWithdrawn", to=recipient, amount=amount)
        logger.info(
            "Tokens withdrawn",
            extra={"event": "vesting.tokens_withdrawn", "to": recipient[:10], "amount": amount}
        )

    # ==================== Claim ====================

    def claim(self, program_id: str, caller: str) -> int:
        """
        Pay ``caller`` everything currently unlocked under ``program_id``.

        Returns:
            Amount transferred

        Raises:
            ProgramNotFoundError: If the program does not exist
            BeneficiaryNotFoundError: If caller has no allocation
            NotStartedError: If the program has not started
            NothingToClaimError: If nothing is unlocked beyond what was paid
            ReentrancyError: If caller already has a claim in flight on this program
            TransferFailedError: If the token transfer fails; nothing is changed
        """
        caller_norm = self._normalize_address(caller)

        with self._non_reentrant(caller_norm, program_id):
            program = self._get_program(program_id)
            record = self._get_record(program, caller_norm)
            quote = available_to_claim(record, program, self._current_time(), self.unlock_period)

            if quote.amount == 0:
                logger.warning(
                    "Nothing to claim",
                    extra={
                        "event": "vesting.nothing_to_claim",
                        "program_id": program_id,
                        "beneficiary": caller_norm[:10],
                    }
                )
                raise NothingToClaimError(
                    f"Nothing to claim for {caller_norm[:10]} in program {program_id}",
                    details={"program_id": program_id, "period_index": quote.period_index},
                )

            previous = (record.amount_released, record.claimed_period_index)
            record.amount_released += quote.amount
            # Never move backwards, even if start_time was shifted forward
            record.claimed_period_index = max(record.claimed_period_index, quote.period_index)
            program.released_total += quote.amount

            try:
                self._transfer_or_raise(
                    lambda: self.token.transfer(self.address, caller_norm, quote.amount),
                    action="claim",
                    amount=quote.amount,
                )
            except TransferFailedError:
                # Other beneficiaries may have claimed during the transfer; undo only this claim
                record.amount_released, record.claimed_period_index = previous
                program.released_total -= quote.amount
                raise

        self._emit("Claimed", address=caller_norm, program_id=program_id, amount=quote.amount)
        logger.info(
            "Vested tokens claimed",
            extra={
                "event": "vesting.claimed",
                "program_id": program_id,
                "beneficiary": caller_norm[:10],
                "amount": quote.amount,
                "period_index": record.claimed_period_index,
            }
        )
        return quote.amount

    # ==================== Queries ====================

    def get_program(self, program_id: str) -> VestingProgram:
        return copy.deepcopy(self._get_program(program_id))

    def program_ids(self) -> list[str]:
        return self.registry.ids()

    def get_beneficiary(self, program_id: str, address: str) -> BeneficiaryRecord:
        program = self._get_program(program_id)
        return replace(self._get_record(program, self._normalize_address(address)))

    def get_beneficiaries(self, program_id: str) -> list[tuple[str, int]]:
        """Roster in registration order with each member's released amount."""
        program = self._get_program(program_id)
        return [(address, record.amount_released) for address, record in program]

    def available_to_claim(
        self,
        program_id: str,
        address: str,
        current_time: int | None = None,
    ) -> ClaimQuote:
        program = self._get_program(program_id)
        record = self._get_record(program, self._normalize_address(address))
        now = self._current_time() if current_time is None else current_time
        return available_to_claim(record, program, now, self.unlock_period)

    def next_unlock_time(self, program_id: str, current_time: int | None = None) -> int | None:
        program = self._get_program(program_id)
        now = self._current_time() if current_time is None else current_time
        return next_unlock_time(program, now, self.unlock_period)

    def beneficiary_state(
        self,
        program_id: str,
        address: str,
        current_time: int | None = None,
    ) -> BeneficiaryState:
        program = self._get_program(program_id)
        now = self._current_time() if current_time is None else current_time
        return beneficiary_state(program.get(self._normalize_address(address)), program, now)

    def outstanding_obligations(self) -> int:
        """Tokens allocated across all programs and not yet paid out."""
        return sum(program.outstanding for program in self.registry)

    def get_events(self, event_type: str | None = None) -> list[VestingEvent]:
        if event_type is None:
            return list(self.events)
        return [event for event in self.events if event.event_type == event_type]

    # ==================== Helpers ====================

    def _current_time(self) -> int:
        if self.time_provider is None:
            return int(time.time())
        timestamp = self.time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _get_program(self, program_id: str) -> VestingProgram:
        program = self.registry.get(program_id)
        if program is None:
            raise ProgramNotFoundError(
                f"Vesting program {program_id} not found",
                details={"program_id": program_id},
            )
        return program

    def _get_record(self, program: VestingProgram, address: str) -> BeneficiaryRecord:
        record = program.get(address)
        if record is None:
            raise BeneficiaryNotFoundError(
                f"{address[:10]} is not a beneficiary of program {program.program_id}",
                details={"program_id": program.program_id, "address": address},
            )
        return record

    def _register(
        self,
        program: VestingProgram,
        address: str,
        total_amount: int,
    ) -> tuple[str, BeneficiaryRecord]:
        address_norm = self._normalize_address(address)
        self._check_int(total_amount, "total_amount", InvalidAmountError, minimum=1)

        available = program.pool_remaining
        existing = program.get(address_norm)
        if existing is not None:
            if existing.amount_released > 0:
                raise AllocationLockedError(
                    f"{address_norm[:10]} has already claimed from program {program.program_id}",
                    details={"program_id": program.program_id, "released": existing.amount_released},
                )
            available += existing.total_amount

        if total_amount > available:
            raise InsufficientPoolError(
                f"Allocation {total_amount} exceeds remaining pool {available}",
                details={"program_id": program.program_id, "amount": total_amount, "pool": available},
            )

        record = BeneficiaryRecord(total_amount=total_amount)
        program.pool_remaining = available - total_amount
        program.put(address_norm, record)
        return address_norm, record

    def _transfer_or_raise(self, transfer: Callable[[], bool], action: str, amount: int) -> None:
        try:
            ok = transfer()
        except Exception as exc:
            logger.error(
                "Token transfer failed",
                extra={"event": f"vesting.{action}_failed", "amount": amount, **get_error_context(exc)},
            )
            raise TransferFailedError(
                f"Token transfer failed during {action}: {exc}",
                details={"action": action, "amount": amount},
            ) from exc
        if not ok:
            logger.error(
                "Token transfer rejected",
                extra={"event": f"vesting.{action}_failed", "amount": amount},
            )
            raise TransferFailedError(
                f"Token ledger rejected transfer during {action}",
                details={"action": action, "amount": amount},
            )

    @contextmanager
    def _atomic(self, program: VestingProgram) -> Iterator[None]:
        """Restore ``program`` to its state on entry if the block raises."""
        snapshot = copy.deepcopy(program)
        try:
            yield
        except Exception:
            self.registry.add(snapshot)
            raise

    @contextmanager
    def _non_reentrant(self, caller: str, program_id: str) -> Iterator[None]:
        key = (caller, program_id)
        with self._guard_lock:
            if key in self._active:
                raise ReentrancyError(
                    f"Reentrant claim by {caller[:10]} on program {program_id}",
                    details={"program_id": program_id},
                )
            self._active.add(key)
        try:
            yield
        finally:
            with self._guard_lock:
                self._active.discard(key)

    def _require_program_idle(self, program_id: str) -> None:
        with self._guard_lock:
            busy = any(active_program == program_id for _, active_program in self._active)
        if busy:
            raise ReentrancyError(
                f"Program {program_id} has a claim in progress",
                details={"program_id": program_id},
            )

    def _require_vault_idle(self, action: str) -> None:
        with self._guard_lock:
            busy = bool(self._active)
        if busy:
            raise ReentrancyError(
                f"Cannot {action} while a claim is in progress",
                details={"action": action},
            )

    def _emit(self, event_type: str, **args: Any) -> None:
        self.events.append(
            VestingEvent(
                event_type=event_type,
                args=args,
                timestamp=self._current_time(),
                sequence=len(self.events),
            )
        )

    def _normalize_address(self, address: str) -> str:
        if not isinstance(address, str) or not address.strip():
            raise InvalidAddressError("Address cannot be empty")
        address_norm = address.strip().lower()
        if address_norm == ZERO_ADDRESS:
            raise InvalidAddressError("Address cannot be the zero address")
        return address_norm

    @staticmethod
    def _check_int(
        value: Any,
        name: str,
        error_cls: type[ValidationError],
        minimum: int,
    ) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise error_cls(f"{name} must be an integer, got {type(value).__name__}")
        if value < minimum:
            raise error_cls(f"{name} must be at least {minimum}, got {value}")

    @staticmethod
    def _check_unlock_period(period: Any) -> None:
        if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
            raise InvalidConfigurationError(f"Unlock period must be a positive integer, got {period!r}")
