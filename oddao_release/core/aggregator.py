"""Turn a pile of attestation artifacts into one submittable signature set.

The ledger re-checks everything (nonce, membership, threshold, signatures),
so this is not a trust boundary. Its job is to fail locally, with a clear
reason, instead of burning a transaction that is bound to revert.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple, Union

import bittensor as bt

from oddao_release.core.encoding import Operation, publish_digest, revoke_digest
from oddao_release.core.errors import (
    InconsistentAttestationsError,
    InsufficientQuorumError,
    NoAttestationsError,
)
from oddao_release.core.schemas import (
    AggregatedOperation,
    Attestation,
    OperationContext,
    StoredAttestation,
)
from oddao_release.core.signing import recover_signer
from oddao_release.store.base import AttestationStore


# Fields every artifact of one operation must agree on. All of them are signed
# (or fix the signing domain), so a divergence means the signatures cannot
# all verify against a single digest.
_AGREED_FIELDS: Dict[Operation, Tuple[str, ...]] = {
    Operation.PUBLISH_RELEASE: (
        "component",
        "version",
        "binary_hash",
        "min_version",
        "chain_id",
        "registry_address",
    ),
    Operation.REVOKE: ("component", "version", "reason", "chain_id", "registry_address"),
}


def attestation_digest(att: Attestation) -> bytes:
    """Recompute the digest an artifact claims to have signed."""
    if att.op is Operation.REVOKE:
        return revoke_digest(
            att.component,
            att.version,
            att.reason,
            nonce=att.nonce,
            chain_id=att.chain_id,
            registry_address=att.registry_address,
        )
    return publish_digest(
        att.component,
        att.version,
        att.binary_hash,
        att.min_version,
        nonce=att.nonce,
        chain_id=att.chain_id,
        registry_address=att.registry_address,
    )


def _field_value(att: Attestation, name: str):
    value = getattr(att, name)
    # Addresses are checksummed on load; compare case-insensitively anyway.
    return value.lower() if name == "registry_address" else value


def _check_consistent(entries: Sequence[StoredAttestation], op: Operation) -> None:
    first = entries[0]
    for entry in entries[1:]:
        for name in _AGREED_FIELDS[op]:
            if _field_value(entry.attestation, name) != _field_value(first.attestation, name):
                raise InconsistentAttestationsError(
                    f"{entry.key} differs from {first.key} on {name}: "
                    f"{getattr(entry.attestation, name)!r} != {getattr(first.attestation, name)!r}",
                    key=entry.key,
                )


def _check_signature(entry: StoredAttestation) -> None:
    att = entry.attestation
    try:
        recovered = recover_signer(attestation_digest(att), att.signature)
    except Exception as exc:
        raise InconsistentAttestationsError(
            f"{entry.key} carries an unreadable signature: {exc}", key=entry.key
        )
    if recovered.lower() != att.signer.lower():
        raise InconsistentAttestationsError(
            f"{entry.key} claims signer {att.signer} but the signature recovers to {recovered}",
            key=entry.key,
        )


def collect(
    entries: Sequence[StoredAttestation],
    *,
    context: OperationContext,
    operation: Union[Operation, str],
    verify_signatures: bool = True,
) -> AggregatedOperation:
    """Validate, deduplicate and order the artifacts for `context.nonce`."""
    op = Operation(operation)
    if op not in _AGREED_FIELDS:
        raise ValueError(f"cannot aggregate {op.value} attestations")

    # Anything not carrying the live nonce (older or newer) is stale.
    current = [
        e for e in entries
        if e.attestation.op is op and e.attestation.nonce == context.nonce
    ]
    if not current:
        raise NoAttestationsError(
            f"no {op.value} attestations found for nonce {context.nonce}"
        )

    _check_consistent(current, op)
    head = current[0]
    if (
        head.attestation.chain_id != context.chain_id
        or head.attestation.registry_address.lower() != context.registry_address.lower()
    ):
        raise InconsistentAttestationsError(
            f"{head.key} was signed for chain {head.attestation.chain_id} / "
            f"{head.attestation.registry_address}, ledger is chain {context.chain_id} / "
            f"{context.registry_address}",
            key=head.key,
        )

    # One vote per signer: first file wins, later duplicates are dropped.
    seen = set()
    unique: List[StoredAttestation] = []
    for entry in current:
        addr = entry.attestation.signer.lower()
        if addr in seen:
            bt.logging.debug(f"Ignoring duplicate attestation {entry.key} from {entry.attestation.signer}")
            continue
        seen.add(addr)
        unique.append(entry)

    # Only the surviving vote of each signer has to carry a valid signature.
    if verify_signatures:
        for entry in unique:
            _check_signature(entry)

    members: List[StoredAttestation] = []
    for entry in unique:
        if not context.is_signer(entry.attestation.signer):
            bt.logging.warning(
                f"Dropping {entry.key}: {entry.attestation.signer} is not in the current signer set"
            )
            continue
        members.append(entry)

    if len(members) < context.threshold:
        raise InsufficientQuorumError(len(members), context.threshold)

    members.sort(key=lambda e: e.attestation.signer.lower())

    first = current[0].attestation
    return AggregatedOperation(
        operation=op,
        component=first.component,
        version=first.version,
        nonce=context.nonce,
        binary_hash=first.binary_hash,
        min_version=first.min_version,
        changelog_reference=first.changelog_reference,
        reason=first.reason,
        signers=tuple(e.attestation.signer for e in members),
        signatures=tuple(e.attestation.signature for e in members),
        consumed_keys=tuple(e.key for e in current),
    )


def aggregate(
    store: AttestationStore,
    *,
    context: OperationContext,
    operation: Union[Operation, str],
    verify_signatures: bool = True,
) -> AggregatedOperation:
    entries = store.list_for_nonce(context.nonce, operation)
    return collect(
        entries,
        context=context,
        operation=operation,
        verify_signatures=verify_signatures,
    )
