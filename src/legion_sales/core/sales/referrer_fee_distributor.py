"""
Referrer fee distributor.

Pool that sales name as their referrer fee receiver. Referrer fees from
many sales accumulate here in one token, and the platform admin publishes
a Merkle root of (referrer, cumulative amount earned) leaves. A referrer
claims the difference between its proven cumulative amount and what it has
already withdrawn, so every leaf pays out at most once and a newer root
only pays the increase.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Dict, Optional, Sequence

from ..constants import REGISTRY_PLATFORM_ADMIN
from ..contracts.erc20 import ERC20Token
from ..registry import AddressRegistry
from ..sale_exceptions import (
    InvalidProof,
    MerkleRootNotSet,
    NotCalledByPlatformAdmin,
    ReferrerFeeAlreadyClaimed,
    ZeroAddressProvided,
)
from .merkle import verify_merkle_proof

logger = logging.getLogger(__name__)


class ReferrerFeeDistributor:

    def __init__(
        self,
        token: ERC20Token,
        registry: AddressRegistry,
        address: Optional[str] = None,
    ):
        self.token = token
        self.registry = registry
        self.platform_admin = ""
        self.sync_legion_addresses()
        self.address = (address or self._generate_address()).lower()

        self.merkle_root: Optional[str] = None
        self.claimed: Dict[str, int] = {}

    def _generate_address(self) -> str:
        seed = f"referrer-fees:{self.token.address}:{secrets.token_hex(8)}"
        return "0x" + hashlib.sha3_256(seed.encode()).digest()[-20:].hex()

    def _require_platform_admin(self, caller: str) -> None:
        if caller.lower() != self.platform_admin:
            raise NotCalledByPlatformAdmin(
                "Caller is not the platform admin",
                details={"caller": caller, "expected": self.platform_admin},
            )

    def sync_legion_addresses(self) -> str:
        platform_admin = self.registry.get_legion_address(REGISTRY_PLATFORM_ADMIN).lower()
        if not platform_admin:
            raise ZeroAddressProvided(
                f"Registry has no address for {REGISTRY_PLATFORM_ADMIN}",
                details={"key": REGISTRY_PLATFORM_ADMIN},
            )
        self.platform_admin = platform_admin
        return platform_admin

    def set_merkle_root(self, caller: str, merkle_root: str) -> None:
        """Publish the cumulative-earnings root; a later root replaces it."""
        self._require_platform_admin(caller)
        self.merkle_root = merkle_root
        logger.info(
            "Referrer fee root set",
            extra={"event": "referrer_fees.root_set", "distributor": self.address[:10]},
        )

    def claimed_amount(self, referrer: str) -> int:
        return self.claimed.get(referrer.lower(), 0)

    def claim(self, referrer: str, cumulative_amount: int, proof: Sequence[str]) -> int:
        """
        Pay out a referrer's unclaimed fees.

        Returns:
            Amount transferred (cumulative_amount minus earlier claims)

        Raises:
            MerkleRootNotSet: no root published yet
            InvalidProof: the leaf does not resolve to the root
            ReferrerFeeAlreadyClaimed: nothing left to claim for this leaf
            TokenError: the pool holds less than the amount owed
        """
        referrer = referrer.lower()
        if self.merkle_root is None:
            raise MerkleRootNotSet("Referrer fee root has not been set")
        if not verify_merkle_proof(self.merkle_root, referrer, cumulative_amount, proof):
            raise InvalidProof("Invalid Merkle proof")

        already_claimed = self.claimed_amount(referrer)
        amount = cumulative_amount - already_claimed
        if amount <= 0:
            raise ReferrerFeeAlreadyClaimed(
                "Referrer fees already claimed",
                details={
                    "referrer": referrer,
                    "cumulative_amount": cumulative_amount,
                    "claimed": already_claimed,
                },
            )

        self.token.transfer(self.address, referrer, amount)
        self.claimed[referrer] = cumulative_amount
        logger.info(
            "Referrer fees claimed",
            extra={
                "event": "referrer_fees.claimed",
                "distributor": self.address[:10],
                "referrer": referrer[:10],
                "amount": amount,
            },
        )
        return amount

    def emergency_withdraw(self, caller: str, receiver: str, amount: int) -> None:
        """Recover pool tokens."""
        self._require_platform_admin(caller)
        if not receiver:
            raise ZeroAddressProvided("Receiver cannot be the zero address")
        self.token.transfer(self.address, receiver, amount)
        logger.warning(
            "Referrer fee pool emergency withdrawal",
            extra={
                "event": "referrer_fees.emergency_withdraw",
                "distributor": self.address[:10],
                "amount": amount,
            },
        )
