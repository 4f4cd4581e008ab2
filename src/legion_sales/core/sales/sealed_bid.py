"""
Sealed-bid commit-reveal.

Bid amounts are hidden with an additive mask derived from a secp256k1
shared secret:

    shared = sk * PK                     (x coordinate)
    salt   = H(investor || fixed_salt)
    mask   = H(shared || salt)
    cipher = (amount + mask) mod 2^256

The platform holds sk until the auction's refund window closes, then
publishes it with the fixed salt so anyone can recompute mask and recover
amount = (cipher - mask) mod 2^256. Each investor's salt differs, so equal
amounts never produce equal ciphertexts.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from ..crypto_utils import derive_public_key_hex, is_valid_public_key_hex, shared_secret_x
from ..sale_exceptions import InvalidBidPrivateKey, InvalidBidPublicKey

_MODULUS = 2**256


@dataclass(frozen=True)
class SealedBid:
    encrypted_amount: int
    public_key: str


def derive_bid_salt(investor: str, fixed_salt: int) -> int:
    address = bytes.fromhex(investor.lower().removeprefix("0x"))
    digest = hashlib.sha256(address + (fixed_salt % _MODULUS).to_bytes(32, "big")).digest()
    return int.from_bytes(digest, "big")


def _mask(private_key: str, public_key: str, salt: int) -> int:
    shared = shared_secret_x(private_key, public_key)
    return int.from_bytes(hashlib.sha256(shared + salt.to_bytes(32, "big")).digest(), "big")


def encrypt_bid(amount: int, public_key: str, private_key: str, salt: int) -> int:
    if amount < 0 or amount >= _MODULUS:
        raise ValueError("Bid amount out of range")
    return (amount + _mask(private_key, public_key, salt)) % _MODULUS


def decrypt_bid(encrypted_amount: int, public_key: str, private_key: str, salt: int) -> int:
    return (encrypted_amount - _mask(private_key, public_key, salt)) % _MODULUS


def validate_bid_public_key(public_key: str, registered_public_key: str) -> None:
    """
    Raises:
        InvalidBidPublicKey: if the key is malformed, the identity point,
            off the curve, or not the sale's registered key
    """
    if not is_valid_public_key_hex(public_key):
        raise InvalidBidPublicKey(
            "Sealed bid public key is not a valid curve point",
            details={"public_key": public_key[:16]},
        )
    if public_key.lower() != registered_public_key.lower():
        raise InvalidBidPublicKey(
            "Sealed bid was not encrypted under the sale's public key",
            details={"public_key": public_key[:16]},
        )


def verify_private_key(private_key: str, public_key: str) -> None:
    """
    Check a revealed private key by recomputing sk * G.

    Raises:
        InvalidBidPrivateKey: if the scalar is malformed or does not match
    """
    try:
        derived = derive_public_key_hex(private_key)
    except ValueError as exc:
        raise InvalidBidPrivateKey("Revealed private key is malformed") from exc
    if derived != public_key.lower():
        raise InvalidBidPrivateKey("Revealed private key does not match the sale's public key")
