"""
Capability-based admin access control for the vesting vault.

A single privileged principal administers the vault. Instead of comparing a
caller string at every entry point, the admin obtains an ``AdminCapability``
once and hands it to each privileged operation, which checks it with
``AccessControl.require``.

Security features:
- Capabilities are bound to the issuing AccessControl instance
- Rotating the admin revokes every capability issued before
- Audit trail for grants, denials and admin changes
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, NoReturn

from ..exceptions import InvalidAddressError, UnauthorizedError
from ..constants import ZERO_ADDRESS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminCapability:
    """
    Proof that ``holder`` was the admin when the capability was issued.

    Only meaningful to the AccessControl that issued it, and only until the
    admin is rotated.
    """

    holder: str
    issuer_id: str
    generation: int


@dataclass
class AccessControl:
    """
    Single-admin gate for privileged vault operations.

    Usage:
        ac = AccessControl(admin_address="0xadmin")
        cap = ac.grant("0xadmin")
        ac.require(cap)  # raises UnauthorizedError if cap is stale or foreign
    """

    admin_address: str = ""

    # Bumped on every admin rotation; older capabilities stop validating
    generation: int = 0

    audit_log: list[dict[str, Any]] = field(default_factory=list)

    _issuer_id: str = field(default_factory=lambda: secrets.token_hex(16), repr=False)

    def __post_init__(self) -> None:
        self.admin_address = self._validated_address(self.admin_address)

    def is_admin(self, address: str) -> bool:
        return bool(address) and address.lower() == self.admin_address

    def grant(self, caller: str) -> AdminCapability:
        """
        Issue an admin capability to ``caller``.

        Raises:
            UnauthorizedError: If caller is not the registered admin
        """
        if not self.is_admin(caller):
            self._deny("grant", caller)
        cap = AdminCapability(
            holder=self.admin_address,
            issuer_id=self._issuer_id,
            generation=self.generation,
        )
        self._audit("grant", self.admin_address)
        return cap

    def require(self, cap: AdminCapability | None) -> str:
        """
        Check a capability; returns the admin address it authorizes.

        Raises:
            UnauthorizedError: If the capability is missing, foreign or revoked
        """
        if not isinstance(cap, AdminCapability):
            self._deny("require", "")
        if cap.issuer_id != self._issuer_id or cap.generation != self.generation:
            self._deny("require", cap.holder)
        if cap.holder != self.admin_address:
            self._deny("require", cap.holder)
        return cap.holder

    def transfer_admin(self, cap: AdminCapability, new_admin: str) -> AdminCapability:
        """
        Hand the admin role to ``new_admin``.

        All previously issued capabilities, including ``cap``, are revoked.

        Returns:
            A fresh capability for the new admin
        """
        previous = self.require(cap)
        self.admin_address = self._validated_address(new_admin)
        self.generation += 1
        self._audit("transfer_admin", self.admin_address, previous=previous)

        logger.info(
            "Admin transferred",
            extra={
                "event": "access_control.admin_transferred",
                "previous": previous[:10],
                "admin": self.admin_address[:10],
            }
        )
        return AdminCapability(
            holder=self.admin_address,
            issuer_id=self._issuer_id,
            generation=self.generation,
        )

    # ==================== Helpers ====================

    def _validated_address(self, address: str) -> str:
        address_norm = (address or "").strip().lower()
        if not address_norm or address_norm == ZERO_ADDRESS:
            raise InvalidAddressError("Admin address cannot be empty or zero")
        return address_norm

    def _deny(self, action: str, caller: str) -> NoReturn:
        self._audit(f"{action}_denied", caller)
        logger.warning(
            "Access denied",
            extra={
                "event": "access_control.denied",
                "action": action,
                "caller": (caller or "")[:10],
            }
        )
        raise UnauthorizedError(
            f"Unauthorized: {(caller or 'caller')[:10]} is not the vault admin",
            details={"action": action},
        )

    def _audit(self, action: str, address: str, **extra: Any) -> None:
        self.audit_log.append({
            "action": action,
            "address": address,
            "generation": self.generation,
            "timestamp": time.time(),
            **extra,
        })
