"""
Platform address registry.

Sales take an immutable snapshot of the platform addresses when they are
created and refresh it only through an explicit sync call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from .constants import (
    REGISTRY_FEE_RECEIVER,
    REGISTRY_PLATFORM_ADMIN,
    REGISTRY_SIGNER_PUBLIC_KEY,
)
from .crypto_utils import address_from_public_key, is_valid_public_key_hex
from .sale_exceptions import NotCalledByRegistryOwner, ValidationError, ZeroAddressProvided

logger = logging.getLogger(__name__)


class AddressRegistry(Protocol):
    def get_legion_address(self, key: str) -> str:
        ...


@dataclass
class InMemoryAddressRegistry:
    """Key-value registry of platform addresses, owned by the platform admin."""

    owner: str
    addresses: dict[str, str] = field(default_factory=dict)

    def set_legion_address(self, caller: str, key: str, value: str) -> None:
        if caller.lower() != self.owner.lower():
            raise NotCalledByRegistryOwner(
                "Registry: caller is not owner",
                details={"expected": self.owner.lower(), "actual": caller.lower(), "key": key},
            )
        self.addresses[key] = value
        logger.info(
            "Registry address set",
            extra={"event": "registry.set", "key": key},
        )

    def get_legion_address(self, key: str) -> str:
        return self.addresses.get(key, "")


@dataclass(frozen=True)
class LegionAddresses:
    """Snapshot of the platform addresses a sale depends on."""

    platform_admin: str
    signer_public_key: str
    fee_receiver: str

    @property
    def signer(self) -> str:
        return address_from_public_key(self.signer_public_key)

    @classmethod
    def from_registry(cls, registry: AddressRegistry) -> "LegionAddresses":
        platform_admin = registry.get_legion_address(REGISTRY_PLATFORM_ADMIN).lower()
        signer_public_key = registry.get_legion_address(REGISTRY_SIGNER_PUBLIC_KEY).lower()
        fee_receiver = registry.get_legion_address(REGISTRY_FEE_RECEIVER).lower()

        for key, value in (
            (REGISTRY_PLATFORM_ADMIN, platform_admin),
            (REGISTRY_SIGNER_PUBLIC_KEY, signer_public_key),
            (REGISTRY_FEE_RECEIVER, fee_receiver),
        ):
            if not value:
                raise ZeroAddressProvided(
                    f"Registry has no address for {key}", details={"key": key}
                )
        if not is_valid_public_key_hex(signer_public_key):
            raise ValidationError(
                "Registry signer public key is not a valid secp256k1 point",
                details={"key": REGISTRY_SIGNER_PUBLIC_KEY},
            )
        return cls(
            platform_admin=platform_admin,
            signer_public_key=signer_public_key,
            fee_receiver=fee_receiver,
        )
