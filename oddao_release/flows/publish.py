from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import bittensor as bt

from oddao_release.core.aggregator import aggregate
from oddao_release.core.encoding import Operation
from oddao_release.core.errors import InputValidationError, PostconditionFailedError
from oddao_release.core.schemas import AggregatedOperation, OperationContext, SubmissionResult
from oddao_release.ledger.base import LedgerClient
from oddao_release.store.base import AttestationStore


def read_checked_context(ledger: LedgerClient, expected_chain_id: Optional[int]) -> OperationContext:
    context = ledger.read_context()
    if expected_chain_id is not None and context.chain_id != int(expected_chain_id):
        raise InputValidationError(
            "chain_id", f"expected chainId {expected_chain_id}, ledger reports {context.chain_id}"
        )
    return context


def remove_consumed(store: AttestationStore, keys: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Delete used artifacts so they can't leak into a later run. Failures are only logged."""
    removed: List[str] = []
    failed: List[str] = []
    for key in keys:
        try:
            store.remove(key)
        except (OSError, KeyError) as exc:
            bt.logging.warning(f"Could not remove consumed attestation {key}: {exc}")
            failed.append(key)
            continue
        removed.append(key)
    return removed, failed


def submit_publish(
    *,
    ledger: LedgerClient,
    store: AttestationStore,
    expected_chain_id: Optional[int] = None,
) -> SubmissionResult:
    """Aggregate the live-nonce publish attestations and submit them."""
    context = read_checked_context(ledger, expected_chain_id)
    agg: AggregatedOperation = aggregate(store, context=context, operation=Operation.PUBLISH_RELEASE)

    bt.logging.info(
        f"Submitting publishRelease {agg.component} v{agg.version} "
        f"with {len(agg.signatures)} signature(s) at nonce {agg.nonce}"
    )
    receipt = ledger.publish_release(
        agg.component,
        agg.version,
        agg.binary_hash,
        agg.min_version,
        agg.changelog_reference,
        agg.nonce,
        list(agg.signatures),
    )

    record = ledger.get_release(agg.component, agg.version)
    if not record.exists:
        raise PostconditionFailedError(
            f"{agg.component} v{agg.version} has no publication timestamp after a confirmed publish"
        )
    if record.publisher.lower() != ledger.submitter.lower():
        raise PostconditionFailedError(
            f"publisher is {record.publisher}, expected submitter {ledger.submitter}"
        )
    if record.binary_hash.lower() != agg.binary_hash.lower():
        raise PostconditionFailedError(
            f"on-chain hash {record.binary_hash} does not match signed hash {agg.binary_hash}"
        )

    removed, failed = remove_consumed(store, agg.consumed_keys)
    return SubmissionResult(
        operation=Operation.PUBLISH_RELEASE,
        component=agg.component,
        version=agg.version,
        tx_hash=str(receipt.get("transactionHash", "")),
        block_number=int(receipt.get("blockNumber", 0)),
        record=record,
        signers=list(agg.signers),
        removed=removed,
        failed_removals=failed,
    )
