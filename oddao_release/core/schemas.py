from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from oddao_release.core.encoding import Operation, checksum, hash_hex
from oddao_release.core.errors import InputValidationError


OperationTag = Literal["PUBLISH_RELEASE", "REVOKE"]

ZERO_HASH = "0x" + "00" * 32


class Attestation(BaseModel):
    """One signer's endorsement of a publish or revoke operation.

    Persisted as JSON with camelCase keys. Files written by the older
    JavaScript signer (`changelogCID`, `registry`, no `operation`) load as
    publish attestations.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    signer: str
    operation: OperationTag = "PUBLISH_RELEASE"
    component: str
    version: str
    binary_hash: str = Field(default=ZERO_HASH, alias="binaryHash")
    min_version: str = Field(default="", alias="minVersion")
    changelog_reference: str = Field(
        default="",
        alias="changelogReference",
        validation_alias=AliasChoices("changelogReference", "changelogCID", "changelog_reference"),
    )
    reason: str = ""
    nonce: int
    chain_id: int = Field(alias="chainId", validation_alias=AliasChoices("chainId", "chain_id"))
    registry_address: str = Field(
        alias="registryAddress",
        validation_alias=AliasChoices("registryAddress", "registry", "registry_address"),
    )
    signature: str
    signed_at: str = Field(default="", alias="signedAt")

    @field_validator("signer", "registry_address")
    @classmethod
    def _checksum_address(cls, v: str) -> str:
        return checksum(v)

    @field_validator("binary_hash")
    @classmethod
    def _normalize_hash(cls, v: str) -> str:
        return hash_hex(v)

    @field_validator("min_version", "changelog_reference", "reason", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return "" if v is None else v

    @field_serializer("nonce", "chain_id")
    def _int_as_str(self, v: int) -> str:
        # Decimal strings keep large counters intact for non-Python readers.
        return str(v)

    @property
    def op(self) -> Operation:
        return Operation(self.operation)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class ReleaseRecord(BaseModel):
    """Ledger-side view of one (component, version)."""

    component: str
    version: str
    binary_hash: str = ZERO_HASH
    min_version: str = ""
    changelog_reference: str = ""
    published_at: int = 0
    publisher: str = "0x0000000000000000000000000000000000000000"
    revoked: bool = False
    revoke_reason: str = ""

    @property
    def exists(self) -> bool:
        return self.published_at != 0


@dataclass(frozen=True)
class OperationContext:
    nonce: int
    signers: Tuple[str, ...]
    threshold: int
    chain_id: int
    registry_address: str

    def is_signer(self, address: str) -> bool:
        needle = address.lower()
        return any(s.lower() == needle for s in self.signers)


@dataclass(frozen=True)
class StoredAttestation:
    key: str
    attestation: Attestation


@dataclass(frozen=True)
class AggregatedOperation:
    operation: Operation
    component: str
    version: str
    nonce: int
    binary_hash: str = ZERO_HASH
    min_version: str = ""
    changelog_reference: str = ""
    reason: str = ""
    # Ordered by signer address ascending; signatures[i] belongs to signers[i].
    signers: Tuple[str, ...] = ()
    signatures: Tuple[str, ...] = ()
    # Every artifact for this nonce and operation, duplicates included.
    consumed_keys: Tuple[str, ...] = ()


@dataclass
class SubmissionResult:
    operation: Operation
    component: str
    version: str
    tx_hash: str
    block_number: int
    record: ReleaseRecord
    signers: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed_removals: List[str] = field(default_factory=list)


# -- CLI request objects ----------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    component: str = Field(min_length=1)
    version: str = Field(min_length=1)


class SignReleaseRequest(_Request):
    binary_hash: str
    min_version: str = ""
    changelog_reference: str = ""
    key: Optional[str] = Field(default=None, repr=False)

    @field_validator("binary_hash")
    @classmethod
    def _valid_hash(cls, v: str) -> str:
        # Solidity rejects the zero hash, so refuse to sign it.
        out = hash_hex(v)
        if out == ZERO_HASH:
            raise ValueError("binary hash must not be zero")
        return out


class SignRevokeRequest(_Request):
    reason: str = Field(min_length=1)
    key: Optional[str] = Field(default=None, repr=False)


class RevokeRequest(_Request):
    reason: str = Field(min_length=1)
    # Sign before submitting (single-signer deployments).
    key: Optional[str] = Field(default=None, repr=False)


def build_request(model: type, **fields):
    """Validate CLI input once, turning pydantic errors into a Validation failure."""
    try:
        return model(**fields)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or model.__name__
        raise InputValidationError(loc, first.get("msg", "invalid value"))
