"""
Vesting protocol.

This module provides:
- Vault: multi-program vesting with TGE, cliff and periodic linear release
- Schedule: pure unlock arithmetic and beneficiary lifecycle states
- Access Control: single-admin capability gate
"""

from .access_control import AccessControl, AdminCapability
from .vesting import ValueLedger, VestingEvent, VestingVault
from .vesting_models import BeneficiaryRecord, ProgramRegistry, VestingProgram
from .vesting_schedule import (
    BeneficiaryState,
    ClaimQuote,
    available_to_claim,
    beneficiary_state,
    next_unlock_time,
    tge_amount,
)

__all__ = [
    # Vault
    "VestingVault",
    "VestingEvent",
    "ValueLedger",
    # Data model
    "VestingProgram",
    "BeneficiaryRecord",
    "ProgramRegistry",
    # Schedule
    "ClaimQuote",
    "BeneficiaryState",
    "available_to_claim",
    "beneficiary_state",
    "next_unlock_time",
    "tge_amount",
    # Access Control
    "AccessControl",
    "AdminCapability",
]
