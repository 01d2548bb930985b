"""
tgevest - Token Vesting Vault

Time-gated distribution of a token balance to registered beneficiaries:

Main Components:
- Vault: program creation, beneficiary registration and claims
- Schedule: TGE unlock, cliff and periodic linear release arithmetic
- Access Control: capability-gated admin operations
- Ledger: in-memory ERC20 token the vault pays out of
"""

__version__ = "0.1.0"
__author__ = "tgevest Development Team"

__all__ = []
