"""
Token ledger contracts the vesting vault pays out of.
"""

from .erc20 import ERC20Token, TokenEvent

__all__ = [
    "ERC20Token",
    "TokenEvent",
]
