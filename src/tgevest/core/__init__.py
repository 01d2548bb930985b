"""
tgevest Core Module

Core functionality for the vesting vault including:
- Exception hierarchy and configuration
- Structured logging
- Token ledger contracts
- Vesting programs, schedules and claims
"""

__all__ = []
