"""
In-memory ERC20 ledger.

The vesting vault keeps its balance here and pays beneficiaries with
``transfer``. Only the parts of EIP-20 the vault and its funders use are
implemented: balances, allowances, owner-only minting and a pause switch.

Every rejected call raises ContractError before any balance moves.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field

from ..constants import UINT256_MAX, ZERO_ADDRESS
from ..exceptions import ContractError

logger = logging.getLogger(__name__)


@dataclass
class TokenEvent:
    """Transfer or Approval log entry."""

    event_type: str
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    Fungible token ledger.

    State-changing calls take the acting account as their first argument
    in place of msg.sender.
    """

    name: str
    symbol: str
    owner: str = ""
    decimals: int = 18
    address: str = ""

    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)
    events: list[TokenEvent] = field(default_factory=list)
    paused: bool = False

    def __post_init__(self) -> None:
        self.owner = _key(self.owner)
        if not self.address:
            seed = f"erc20:{self.symbol}:{self.owner}:{time.time_ns()}".encode()
            self.address = "0x" + hashlib.sha3_256(seed).hexdigest()[-40:]

    def balance_of(self, account: str) -> int:
        return self.balances.get(_key(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(_key(owner), {}).get(_key(spender), 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            ContractError: When paused, sending to the zero address, or
                the sender holds less than ``amount``
        """
        self._move(_key(sender), _key(recipient), amount)
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self._check_live()
        owner_key, spender_key = _key(owner), _key(spender)
        _check_account(spender_key, "spender")
        _check_amount(amount)

        self.allowances.setdefault(owner_key, {})[spender_key] = amount
        self._log("Approval", owner_key, spender_key, amount)
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Move ``amount`` out of ``from_addr`` on ``spender``'s allowance.

        An allowance of UINT256_MAX is treated as unlimited and never decremented.
        """
        _check_amount(amount)
        spender_key, source = _key(spender), _key(from_addr)
        granted = self.allowance(source, spender_key)
        if granted < amount:
            raise ContractError(
                f"ERC20: allowance {granted} below {amount}",
                details={"owner": source, "spender": spender_key},
            )

        self._move(source, _key(to_addr), amount)
        if granted != UINT256_MAX:
            self.allowances[source][spender_key] = granted - amount
        return True

    def mint(self, minter: str, to: str, amount: int) -> bool:
        self._check_owner(minter)
        self._check_live()
        recipient = _key(to)
        _check_account(recipient, "recipient")
        _check_amount(amount)

        self.total_supply += amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self._log("Transfer", ZERO_ADDRESS, recipient, amount)

        logger.info(
            "Tokens minted",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": recipient[:10],
                "amount": amount,
                "total_supply": self.total_supply,
            }
        )
        return True

    def pause(self, caller: str) -> bool:
        self._check_owner(caller)
        self.paused = True
        logger.warning("Token paused", extra={"event": "erc20.paused", "token": self.symbol})
        return True

    def unpause(self, caller: str) -> bool:
        self._check_owner(caller)
        self.paused = False
        logger.info("Token unpaused", extra={"event": "erc20.unpaused", "token": self.symbol})
        return True

    # ==================== Internals ====================

    def _move(self, source: str, target: str, amount: int) -> None:
        self._check_live()
        _check_account(target, "recipient")
        _check_amount(amount)

        held = self.balances.get(source, 0)
        if held < amount:
            raise ContractError(
                f"ERC20: balance {held} below {amount}",
                details={"account": source, "balance": held, "amount": amount},
            )

        self.balances[source] = held - amount
        self.balances[target] = self.balances.get(target, 0) + amount
        self._log("Transfer", source, target, amount)

        logger.debug(
            "Tokens transferred",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": source[:10],
                "to": target[:10],
                "amount": amount,
            }
        )

    def _check_owner(self, caller: str) -> None:
        if not self.owner or _key(caller) != self.owner:
            raise ContractError("ERC20: caller is not the owner")

    def _check_live(self) -> None:
        if self.paused:
            raise ContractError("ERC20: transfers are paused", recoverable=True)

    def _log(self, event_type: str, source: str, target: str, amount: int) -> None:
        self.events.append(TokenEvent(event_type, source, target, amount))


def _key(address: str) -> str:
    return (address or "").strip().lower()


def _check_account(address: str, role: str) -> None:
    if not address or address == ZERO_ADDRESS:
        raise ContractError(f"ERC20: {role} is the zero address")


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ContractError(f"ERC20: amount must be an integer, got {type(amount).__name__}")
    if not 0 <= amount <= UINT256_MAX:
        raise ContractError(f"ERC20: amount {amount} out of range")
