"""
Vesting-specific exception hierarchy.

Provides typed exceptions for vault operations so callers can tell a bad
request from a program in the wrong state or a failed token transfer.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VestingError(Exception):
    """Base exception for all vesting-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried unchanged later
    """

    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(VestingError):
    """Raised when request arguments fail validation."""
    pass


class InvalidAddressError(ValidationError):
    """Raised for an empty or zero beneficiary/recipient address."""
    pass


class InvalidAmountError(ValidationError):
    """Raised for a zero, negative or non-integer amount."""
    pass


class LengthMismatchError(ValidationError):
    """Raised when batch address and amount sequences differ in length."""
    pass


class InvalidTimeError(ValidationError):
    """Raised when a timestamp lies in the past or is not an integer."""
    pass


class InvalidConfigurationError(ValidationError):
    """Raised for bad program or vault configuration values."""
    pass


# ==================== Authorization Errors ====================


class AuthorizationError(VestingError):
    """Raised when a privileged entry point is called without authority."""
    pass


class UnauthorizedError(AuthorizationError):
    """Raised when the caller does not hold a valid admin capability."""
    pass


# ==================== State Errors ====================


class StateError(VestingError):
    """Raised when the vault is not in a state that allows the operation."""
    pass


class ProgramNotFoundError(StateError):
    """Raised when a program identifier is unknown."""
    pass


class BeneficiaryNotFoundError(StateError):
    """Raised when an address has no allocation under a program."""
    pass


class AlreadyExistsError(StateError):
    """Raised when creating a program whose identifier is already in use."""
    pass


class InsufficientPoolError(StateError):
    """Raised when an allocation exceeds the program's remaining pool."""
    pass


class NotStartedError(StateError):
    """Raised when the program has no start time or has not started yet."""
    recoverable = True  # Becomes claimable once the clock passes start_time


class NothingToClaimError(StateError):
    """Raised when a claim would release zero tokens."""
    recoverable = True  # Next unlock period may release more


class ReentrancyError(StateError):
    """Raised on nested entry into a guarded operation."""
    pass


class AllocationLockedError(StateError):
    """Raised when replacing an allocation that has already paid out."""
    pass


class InsufficientFundsError(StateError):
    """Raised when a withdrawal would touch tokens owed to beneficiaries."""
    pass


# ==================== External Transfer Errors ====================


class ExternalTransferError(VestingError):
    """Raised when the value ledger reports a failed transfer."""
    recoverable = True  # Can retry after the ledger is funded or unpaused


class TransferFailedError(ExternalTransferError):
    """Raised when a payout transfer fails; the claim has been rolled back."""
    pass


# ==================== Ledger & Configuration Errors ====================


class ContractError(VestingError):
    """Raised by the in-memory token ledger when an operation reverts."""
    pass


class ConfigurationError(VestingError):
    """Raised when vault settings are missing or invalid."""
    recoverable = False


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Whether retrying the failed call later, unchanged, can succeed.

    Args:
        exc: The exception to check

    Returns:
        True if the operation can be retried once the triggering condition clears
    """
    if isinstance(exc, VestingError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Flatten an exception into structured logging fields.

    Args:
        exc: The exception to extract context from

    Returns:
        Mapping with error_type, error_message and, for vault errors, recoverable and details
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, VestingError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
