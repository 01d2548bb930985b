"""
Vesting program data model.

A ``ProgramRegistry`` owns ``VestingProgram`` instances keyed by program id.
Each program owns its ``BeneficiaryRecord`` entries in a single insertion-
ordered mapping, so the roster and per-address lookup are the same
structure and cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator


@dataclass
class BeneficiaryRecord:
    """Release state of one beneficiary under one program."""

    total_amount: int
    amount_released: int = 0
    claimed_period_index: int = 0

    @property
    def outstanding(self) -> int:
        return self.total_amount - self.amount_released

    @property
    def settled(self) -> bool:
        return self.amount_released >= self.total_amount

    def to_dict(self) -> dict[str, int]:
        return {
            "total_amount": self.total_amount,
            "amount_released": self.amount_released,
            "claimed_period_index": self.claimed_period_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BeneficiaryRecord":
        return cls(
            total_amount=int(data["total_amount"]),
            amount_released=int(data.get("amount_released", 0)),
            claimed_period_index=int(data.get("claimed_period_index", 0)),
        )


@dataclass
class VestingProgram:
    """
    Configuration and ledger of a single vesting program.

    Timeline (all in seconds):

        start_time          cliff_end                       vesting_end
            |---- cliff_duration ----|------ vesting_duration ------|
            TGE unlocked             linear release per unlock period

    ``pool_remaining`` is the allocation capacity not yet assigned to a
    beneficiary. ``initial_pool`` never changes after creation, and
    ``released_total`` counts every token actually paid out by claims.
    """

    program_id: str
    initial_pool: int
    cliff_duration: int
    vesting_duration: int
    tge_percent: int
    start_time: int
    pool_remaining: int = 0
    released_total: int = 0
    beneficiaries: dict[str, BeneficiaryRecord] = field(default_factory=dict)

    @property
    def cliff_end(self) -> int:
        return self.start_time + self.cliff_duration

    @property
    def vesting_end(self) -> int:
        return self.start_time + self.cliff_duration + self.vesting_duration

    @property
    def roster(self) -> list[str]:
        """Beneficiary addresses in registration order."""
        return list(self.beneficiaries)

    @property
    def allocated(self) -> int:
        return sum(record.total_amount for record in self.beneficiaries.values())

    @property
    def outstanding(self) -> int:
        """Tokens allocated but not yet paid out."""
        return sum(record.outstanding for record in self.beneficiaries.values())

    def get(self, address: str) -> BeneficiaryRecord | None:
        return self.beneficiaries.get(address)

    def put(self, address: str, record: BeneficiaryRecord) -> None:
        # Replacing keeps the address at its original roster position
        self.beneficiaries[address] = record

    def __contains__(self, address: object) -> bool:
        return address in self.beneficiaries

    def __iter__(self) -> Iterator[tuple[str, BeneficiaryRecord]]:
        return iter(self.beneficiaries.items())

    def __len__(self) -> int:
        return len(self.beneficiaries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_id": self.program_id,
            "initial_pool": self.initial_pool,
            "pool_remaining": self.pool_remaining,
            "released_total": self.released_total,
            "cliff_duration": self.cliff_duration,
            "vesting_duration": self.vesting_duration,
            "tge_percent": self.tge_percent,
            "start_time": self.start_time,
            "beneficiaries": {
                address: record.to_dict() for address, record in self.beneficiaries.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VestingProgram":
        program = cls(
            program_id=data["program_id"],
            initial_pool=int(data["initial_pool"]),
            cliff_duration=int(data["cliff_duration"]),
            vesting_duration=int(data["vesting_duration"]),
            tge_percent=int(data["tge_percent"]),
            start_time=int(data["start_time"]),
            pool_remaining=int(data.get("pool_remaining", data["initial_pool"])),
            released_total=int(data.get("released_total", 0)),
        )
        for address, record in data.get("beneficiaries", {}).items():
            program.put(address, BeneficiaryRecord.from_dict(record))
        return program


class ProgramRegistry:
    """Process-wide mapping of program id to VestingProgram. Entries are never deleted."""

    def __init__(self) -> None:
        self._programs: dict[str, VestingProgram] = {}

    def get(self, program_id: str) -> VestingProgram | None:
        return self._programs.get(program_id)

    def add(self, program: VestingProgram) -> None:
        """Insert a program, or swap in a restored snapshot of an existing one."""
        self._programs[program.program_id] = program

    def __contains__(self, program_id: object) -> bool:
        return program_id in self._programs

    def __iter__(self) -> Iterator[VestingProgram]:
        return iter(self._programs.values())

    def __len__(self) -> int:
        return len(self._programs)

    def ids(self) -> list[str]:
        return list(self._programs)
