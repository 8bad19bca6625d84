from __future__ import annotations

from typing import Optional

import bittensor as bt

from oddao_release.core.aggregator import aggregate
from oddao_release.core.encoding import Operation
from oddao_release.core.errors import InconsistentAttestationsError, PostconditionFailedError
from oddao_release.core.schemas import RevokeRequest, SubmissionResult
from oddao_release.flows.publish import read_checked_context, remove_consumed
from oddao_release.flows.sign import require_revocable, sign_revoke
from oddao_release.ledger.base import LedgerClient
from oddao_release.store.base import AttestationStore


def submit_revoke(
    request: RevokeRequest,
    *,
    ledger: LedgerClient,
    store: AttestationStore,
    expected_chain_id: Optional[int] = None,
) -> SubmissionResult:
    """
    Revoke a published release with the REVOKE attestations collected so far.

    When `request.key` is set the caller's own attestation is produced first,
    which is all a threshold-1 deployment needs.
    """
    context = read_checked_context(ledger, expected_chain_id)
    # Fail fast with a clear message; the ledger enforces the same rule.
    require_revocable(ledger.get_release(request.component, request.version))

    if request.key:
        sign_revoke(request, ledger=ledger, store=store)

    agg = aggregate(store, context=context, operation=Operation.REVOKE)
    wanted = (request.component, request.version, request.reason)
    got = (agg.component, agg.version, agg.reason)
    if got != wanted:
        raise InconsistentAttestationsError(
            f"attestations for nonce {agg.nonce} revoke {got!r}, requested {wanted!r}"
        )

    bt.logging.info(
        f"Submitting revokeRelease {agg.component} v{agg.version} "
        f"with {len(agg.signatures)} signature(s) at nonce {agg.nonce}"
    )
    receipt = ledger.revoke_release(
        agg.component,
        agg.version,
        agg.reason,
        agg.nonce,
        list(agg.signatures),
    )

    record = ledger.get_release(agg.component, agg.version)
    if not record.revoked:
        raise PostconditionFailedError(f"{agg.component} v{agg.version} is not revoked after a confirmed revoke")
    if record.revoke_reason != agg.reason:
        raise PostconditionFailedError(
            f"on-chain revoke reason {record.revoke_reason!r} does not match signed reason {agg.reason!r}"
        )

    removed, failed = remove_consumed(store, agg.consumed_keys)
    return SubmissionResult(
        operation=Operation.REVOKE,
        component=agg.component,
        version=agg.version,
        tx_hash=str(receipt.get("transactionHash", "")),
        block_number=int(receipt.get("blockNumber", 0)),
        record=record,
        signers=list(agg.signers),
        removed=removed,
        failed_removals=failed,
    )
