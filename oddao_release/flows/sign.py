from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

import bittensor as bt

from oddao_release.core.encoding import publish_digest, revoke_digest
from oddao_release.core.errors import AuthorizationError, InputValidationError, PreconditionError
from oddao_release.core.schemas import (
    Attestation,
    OperationContext,
    ReleaseRecord,
    RevokeRequest,
    SignReleaseRequest,
    SignRevokeRequest,
)
from oddao_release.core.signing import load_account, sign_digest
from oddao_release.ledger.base import LedgerClient
from oddao_release.store.base import AttestationStore


@dataclass(frozen=True)
class SignResult:
    attestation: Attestation
    key: str
    threshold: int


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _authorized_context(ledger: LedgerClient, address: str) -> OperationContext:
    context = ledger.read_context()
    if not context.is_signer(address):
        raise AuthorizationError(
            f"{address} is NOT an authorized ODDAO signer "
            f"(authorized: {', '.join(context.signers) or 'none'})"
        )
    return context


def require_revocable(record: ReleaseRecord) -> None:
    """Published -> Revoked is the only legal revoke transition."""
    if not record.exists:
        raise PreconditionError(f"Release {record.component} v{record.version} not found on-chain")
    if record.revoked:
        raise PreconditionError(f"Release {record.component} v{record.version} is already revoked")


def sign_release(
    request: SignReleaseRequest,
    *,
    ledger: LedgerClient,
    store: AttestationStore,
) -> SignResult:
    """Attest to publishing (component, version, binary hash) at the live nonce."""
    if not request.key:
        raise InputValidationError("key", "provide the signer key via --key or ODDAO_SIGNER_KEY")
    account = load_account(request.key)

    # Membership is checked before anything is signed.
    context = _authorized_context(ledger, account.address)

    existing = ledger.get_release(request.component, request.version)
    if existing.exists:
        raise PreconditionError(f"Release {request.component} v{request.version} is already published")

    digest = publish_digest(
        request.component,
        request.version,
        request.binary_hash,
        request.min_version,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
    )
    attestation = Attestation(
        signer=account.address,
        operation="PUBLISH_RELEASE",
        component=request.component,
        version=request.version,
        binary_hash=request.binary_hash,
        min_version=request.min_version,
        changelog_reference=request.changelog_reference,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
        signature=sign_digest(digest, account=account),
        signed_at=_now_iso(),
    )
    key = store.put(attestation)
    bt.logging.info(f"Stored publish attestation {key} (nonce {context.nonce})")
    return SignResult(attestation=attestation, key=key, threshold=context.threshold)


def sign_revoke(
    request: Union[SignRevokeRequest, RevokeRequest],
    *,
    ledger: LedgerClient,
    store: AttestationStore,
) -> SignResult:
    """Attest to revoking a published, not yet revoked release."""
    if not request.key:
        raise InputValidationError("key", "provide the signer key via --key or ODDAO_SIGNER_KEY")
    account = load_account(request.key)

    context = _authorized_context(ledger, account.address)
    require_revocable(ledger.get_release(request.component, request.version))

    digest = revoke_digest(
        request.component,
        request.version,
        request.reason,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
    )
    attestation = Attestation(
        signer=account.address,
        operation="REVOKE",
        component=request.component,
        version=request.version,
        reason=request.reason,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
        signature=sign_digest(digest, account=account),
        signed_at=_now_iso(),
    )
    key = store.put(attestation)
    bt.logging.info(f"Stored revoke attestation {key} (nonce {context.nonce})")
    return SignResult(attestation=attestation, key=key, threshold=context.threshold)
