"""Canonical operation digests.

The UpdateRegistry recomputes every digest as

    keccak256(abi.encode(tag, <operation fields>, nonce, block.chainid, address(this)))

so the encoding here has to match Solidity's `abi.encode` byte for byte:
field order, type width and UTF-8 string encoding. A digest that diverges
is not an error anywhere, it just never reaches quorum on-chain.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Sequence, Tuple, Union

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from oddao_release.core.errors import InputValidationError


class Operation(str, Enum):
    PUBLISH_RELEASE = "PUBLISH_RELEASE"
    REVOKE = "REVOKE"
    MIN_VERSION = "MIN_VERSION"
    UPDATE_SIGNERS = "UPDATE_SIGNERS"


# ABI types of the operation-specific fields, in signing order.
FIELD_TYPES: Dict[Operation, Tuple[str, ...]] = {
    Operation.PUBLISH_RELEASE: ("string", "string", "bytes32", "string"),
    Operation.REVOKE: ("string", "string", "string"),
    Operation.MIN_VERSION: ("string", "string"),
    Operation.UPDATE_SIGNERS: ("bytes32", "uint256"),
}

# Trailer shared by every operation.
CONTEXT_TYPES: Tuple[str, ...] = ("uint256", "uint256", "address")

HashLike = Union[str, bytes]


def normalize_hash(value: HashLike, field: str = "binary_hash") -> bytes:
    """Return a 32-byte digest from `0x`-prefixed hex or raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text.startswith(("0x", "0X")):
            raise InputValidationError(field, "must be 0x-prefixed hex")
        try:
            raw = bytes.fromhex(text[2:])
        except ValueError:
            raise InputValidationError(field, f"not valid hex: {value!r}")
    else:
        raise InputValidationError(field, f"unsupported type {type(value).__name__}")
    if len(raw) != 32:
        raise InputValidationError(field, f"must be exactly 32 bytes, got {len(raw)}")
    return raw


def hash_hex(value: HashLike, field: str = "binary_hash") -> str:
    """Lower-case `0x` hex form used in artifacts and comparisons."""
    return "0x" + normalize_hash(value, field).hex()


def checksum(address: str, field: str = "address") -> str:
    if not isinstance(address, str) or not is_address(address):
        raise InputValidationError(field, f"not a valid address: {address!r}")
    return to_checksum_address(address)


def _coerce(abi_type: str, value: Any, field: str) -> Any:
    if abi_type == "string":
        if not isinstance(value, str):
            raise InputValidationError(field, "must be a string")
        return value
    if abi_type == "bytes32":
        return normalize_hash(value, field)
    if abi_type == "uint256":
        if isinstance(value, bool) or not isinstance(value, int):
            raise InputValidationError(field, "must be an integer")
        if value < 0 or value >= 2**256:
            raise InputValidationError(field, "out of uint256 range")
        return value
    if abi_type == "address":
        return checksum(value, field)
    raise InputValidationError(field, f"unsupported ABI type {abi_type}")


def digest(
    tag: Union[Operation, str],
    fields: Sequence[Any],
    *,
    nonce: int,
    chain_id: int,
    registry_address: str,
) -> bytes:
    """keccak256 of the abi-encoded `(tag, *fields, nonce, chain_id, registry)`."""
    try:
        op = Operation(tag)
    except ValueError:
        raise InputValidationError("tag", f"unknown operation {tag!r}")

    field_types = FIELD_TYPES[op]
    if len(fields) != len(field_types):
        raise InputValidationError(
            "fields", f"{op.value} takes {len(field_types)} fields, got {len(fields)}"
        )

    values = [op.value]
    for i, (abi_type, value) in enumerate(zip(field_types, fields)):
        values.append(_coerce(abi_type, value, f"{op.value.lower()}[{i}]"))
    values.append(_coerce("uint256", nonce, "nonce"))
    values.append(_coerce("uint256", chain_id, "chain_id"))
    values.append(_coerce("address", registry_address, "registry_address"))

    types = ["string", *field_types, *CONTEXT_TYPES]
    return keccak(encode(types, values))


def publish_digest(
    component: str,
    version: str,
    binary_hash: HashLike,
    min_version: str,
    *,
    nonce: int,
    chain_id: int,
    registry_address: str,
) -> bytes:
    # The changelog reference is stored on-chain but not signed.
    return digest(
        Operation.PUBLISH_RELEASE,
        (component, version, binary_hash, min_version),
        nonce=nonce,
        chain_id=chain_id,
        registry_address=registry_address,
    )


def revoke_digest(
    component: str,
    version: str,
    reason: str,
    *,
    nonce: int,
    chain_id: int,
    registry_address: str,
) -> bytes:
    return digest(
        Operation.REVOKE,
        (component, version, reason),
        nonce=nonce,
        chain_id=chain_id,
        registry_address=registry_address,
    )


def min_version_digest(
    component: str,
    version: str,
    *,
    nonce: int,
    chain_id: int,
    registry_address: str,
) -> bytes:
    return digest(
        Operation.MIN_VERSION,
        (component, version),
        nonce=nonce,
        chain_id=chain_id,
        registry_address=registry_address,
    )


def signer_update_digest(
    new_signers: Sequence[str],
    new_threshold: int,
    *,
    nonce: int,
    chain_id: int,
    registry_address: str,
) -> bytes:
    """Digest for a signer-set rotation; the set itself is folded into one bytes32."""
    addresses = [checksum(a, f"new_signers[{i}]") for i, a in enumerate(new_signers)]
    signers_hash = keccak(encode(["address[]"], [addresses]))
    return digest(
        Operation.UPDATE_SIGNERS,
        (signers_hash, new_threshold),
        nonce=nonce,
        chain_id=chain_id,
        registry_address=registry_address,
    )
