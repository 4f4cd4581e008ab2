"""
Signature authorization for sale actions.

Every authorized action carries a signature over a typed digest that binds
the investor, the sale contract, the chain and an action discriminant plus
the action's numeric parameters. Verification requires:

1. The signer's public key maps to the expected authorizer (platform signer
   or position owner)
2. The signature verifies over the recomputed digest
3. The signature bytes were never accepted before, across all actions

Accepted signatures are recorded in an append-only set.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List

from ..crypto_utils import address_from_public_key, verify_digest_signature_hex
from ..sale_exceptions import InvalidSignature, SignatureAlreadyUsed
from ..typed_signing import DomainContext, hash_typed_data

logger = logging.getLogger(__name__)


class SaleAction(IntEnum):
    """Action discriminants bound into every signed digest."""
    INVEST = 0
    WITHDRAW_EXCESS_CAPITAL = 1
    APPROVE_VESTING_CONFIG = 2
    TRANSFER_POSITION = 3


ACTION_TYPES: Dict[SaleAction, Dict[str, List[Dict[str, str]]]] = {
    SaleAction.INVEST: {
        "Invest": [
            {"name": "investor", "type": "address"},
            {"name": "action", "type": "uint8"},
            {"name": "investAmount", "type": "uint256"},
            {"name": "tokenAllocationRate", "type": "uint256"},
        ]
    },
    SaleAction.WITHDRAW_EXCESS_CAPITAL: {
        "WithdrawExcessCapital": [
            {"name": "investor", "type": "address"},
            {"name": "action", "type": "uint8"},
            {"name": "investAmount", "type": "uint256"},
            {"name": "tokenAllocationRate", "type": "uint256"},
        ]
    },
    SaleAction.APPROVE_VESTING_CONFIG: {
        "VestingConfig": [
            {"name": "investor", "type": "address"},
            {"name": "action", "type": "uint8"},
            {"name": "vestingType", "type": "uint8"},
            {"name": "vestingStart", "type": "uint256"},
            {"name": "vestingDuration", "type": "uint256"},
            {"name": "cliffDuration", "type": "uint256"},
            {"name": "epochDuration", "type": "uint256"},
            {"name": "numberOfEpochs", "type": "uint256"},
            {"name": "initialReleaseRate", "type": "uint256"},
        ]
    },
    SaleAction.TRANSFER_POSITION: {
        "TransferPosition": [
            {"name": "investor", "type": "address"},
            {"name": "action", "type": "uint8"},
            {"name": "to", "type": "address"},
            {"name": "positionId", "type": "uint256"},
        ]
    },
}


@dataclass(frozen=True)
class SignedAuthorization:
    """
    Signature produced off-chain for one sale action.

    signature: canonical 64-byte r || s, hex-encoded
    public_key: signer's 64-byte uncompressed public key, hex-encoded
    """
    signature: str
    public_key: str

    @property
    def signer(self) -> str:
        return address_from_public_key(self.public_key)


def action_digest(domain: DomainContext, action: SaleAction, message: Dict[str, Any]) -> bytes:
    """Digest an authorizer signs for action with the given parameters."""
    types = ACTION_TYPES[action]
    primary_type = next(iter(types))
    return hash_typed_data(domain, primary_type, types, {**message, "action": int(action)})


def signature_key(signature_hex: str) -> str:
    """Replay key of a signature: SHA-256 of its raw bytes."""
    try:
        raw = bytes.fromhex(signature_hex.removeprefix("0x"))
    except ValueError:
        raw = signature_hex.encode()
    return hashlib.sha256(raw).hexdigest()


@dataclass
class SignatureAuthorizationVerifier:
    """Verifies and consumes single-use action signatures for one sale."""

    domain: DomainContext
    used_signatures: set[str] = field(default_factory=set)

    def is_used(self, signature_hex: str) -> bool:
        return signature_key(signature_hex) in self.used_signatures

    def authorize(
        self,
        authorization: SignedAuthorization,
        expected_signer: str,
        action: SaleAction,
        message: Dict[str, Any],
    ) -> str:
        """
        Verify an authorization and mark its signature as used.

        Args:
            authorization: Signature and signer public key
            expected_signer: Address that must have signed
            action: Action discriminant
            message: Action-specific fields (investor and numeric parameters)

        Returns:
            Replay key recorded for the signature

        Raises:
            SignatureAlreadyUsed: If the signature was accepted before
            InvalidSignature: If the signer or signature does not match
        """
        key = signature_key(authorization.signature)
        investor = str(message.get("investor", ""))

        if key in self.used_signatures:
            logger.error(
                "Signature replay rejected",
                extra={
                    "event": "signature.replay",
                    "action": action.name,
                    "investor": investor[:10],
                },
            )
            raise SignatureAlreadyUsed(
                "Signature has already been used",
                details={"action": action.name, "investor": investor},
            )

        try:
            signer = authorization.signer
        except ValueError:
            signer = ""
        if signer != expected_signer.lower():
            logger.warning(
                "Signature signer mismatch",
                extra={
                    "event": "signature.signer_mismatch",
                    "action": action.name,
                    "expected": expected_signer[:10],
                    "actual": signer[:10],
                },
            )
            raise InvalidSignature(
                "Signature was not produced by the expected signer",
                details={"expected": expected_signer, "actual": signer, "action": action.name},
            )

        digest = action_digest(self.domain, action, message)
        if not verify_digest_signature_hex(authorization.public_key, digest, authorization.signature):
            logger.warning(
                "Invalid signature",
                extra={
                    "event": "signature.invalid",
                    "action": action.name,
                    "investor": investor[:10],
                },
            )
            raise InvalidSignature(
                "Signature does not match the authorized parameters",
                details={"action": action.name, "investor": investor},
            )

        self.used_signatures.add(key)
        logger.debug(
            "Signature accepted",
            extra={"event": "signature.accepted", "action": action.name, "investor": investor[:10]},
        )
        return key
