"""
Legion Typed Data Signing - EIP-712 Equivalent

Builds the digests that off-chain authorizers sign for sale actions.

A digest binds a signing domain (sale contract identity and chain id) to a
typed action struct, so a signature for one sale, chain or action can never
be replayed against another.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List

from .constants import SIGNING_DOMAIN_NAME, SIGNING_DOMAIN_VERSION


XIP712_PREFIX = b"\x19\x01"


@dataclass(frozen=True)
class DomainContext:
    """
    EIP-712 style domain separator.

    Prevents signature replay across different:
    - Sale contracts (verifying_contract)
    - Chains (chain_id)
    - Protocol versions (version)
    """
    chain_id: int
    verifying_contract: str
    name: str = SIGNING_DOMAIN_NAME
    version: str = SIGNING_DOMAIN_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


def _encode_type(type_name: str, types: Dict[str, List[Dict[str, str]]]) -> str:
    """Encode a type string for hashing (EIP-712 encodeType)."""
    fields = types[type_name]
    return f"{type_name}({','.join(f['type'] + ' ' + f['name'] for f in fields)})"


def _hash_type(type_name: str, types: Dict[str, List[Dict[str, str]]]) -> bytes:
    """Compute typeHash for a type."""
    encoded = _encode_type(type_name, types)
    return hashlib.sha256(encoded.encode('utf-8')).digest()


def _encode_data(
    type_name: str,
    data: Dict[str, Any],
    types: Dict[str, List[Dict[str, str]]]
) -> bytes:
    """
    Encode structured data for hashing (EIP-712 encodeData).

    Every field declared by the type must be present in data.
    """
    encoded = _hash_type(type_name, types)

    for field in types[type_name]:
        field_name = field['name']
        if field_name not in data:
            raise ValueError(f"Missing field '{field_name}' for type {type_name}")
        encoded += _encode_value(field['type'], data[field_name])

    return encoded


def _encode_value(type_name: str, value: Any) -> bytes:
    """Encode a single string, address or uintN value."""
    if type_name == "string":
        return hashlib.sha256(value.encode('utf-8')).digest()
    elif type_name == "address":
        addr = value.lower().removeprefix("0x")
        if len(addr) != 40 or not all(c in '0123456789abcdef' for c in addr):
            raise ValueError(f"Invalid address: {value}")
        return bytes.fromhex(addr).rjust(32, b'\x00')
    elif type_name.startswith("uint"):
        bits = int(type_name[4:])
        val = int(value)
        if val < 0 or val >= (1 << bits):
            raise ValueError(f"Value {val} out of range for {type_name}")
        return val.to_bytes(32, 'big')
    else:
        raise ValueError(f"Unknown type: {type_name}")


def hash_domain(domain: DomainContext) -> bytes:
    """Hash the domain separator."""
    return hashlib.sha256(
        _encode_data("EIP712Domain", domain.to_dict(), {"EIP712Domain": DOMAIN_TYPE})
    ).digest()


def hash_typed_data(
    domain: DomainContext,
    primary_type: str,
    types: Dict[str, List[Dict[str, str]]],
    message: Dict[str, Any]
) -> bytes:
    """
    Hash typed structured data (XIP-712 equivalent of EIP-712).

    Args:
        domain: Domain separator (sale contract, chain)
        primary_type: Name of the primary type being signed
        types: Dictionary of all type definitions
        message: The structured data to sign

    Returns:
        32-byte SHA256 hash ready for signing
    """
    message_hash = hashlib.sha256(
        _encode_data(primary_type, message, types)
    ).digest()

    return hashlib.sha256(XIP712_PREFIX + hash_domain(domain) + message_hash).digest()
