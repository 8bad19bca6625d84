import pytest

from oddao_release.core.errors import (
    InconsistentAttestationsError,
    InputValidationError,
    InsufficientQuorumError,
    LedgerRejectionError,
    NoAttestationsError,
    PostconditionFailedError,
)
from oddao_release.core.schemas import SignReleaseRequest
from oddao_release.flows.publish import submit_publish
from oddao_release.flows.sign import sign_release
from oddao_release.ledger.memory import InMemoryLedger
from oddao_release.store.files import FileAttestationStore
from oddao_release.store.memory import InMemoryAttestationStore

HASH = "0x" + "ab" * 32


def _sign(key, ledger, store, **overrides):
    fields = dict(component="validator", version="1.2.0", binary_hash=HASH, min_version="1.1.0", key=key)
    fields.update(overrides)
    return sign_release(SignReleaseRequest(**fields), ledger=ledger, store=store)


def test_two_of_three_publish(keys, accounts, ledger, tmp_path):
    store = FileAttestationStore(tmp_path)
    _sign(keys[0], ledger, store, changelog_reference="bafy123")
    _sign(keys[1], ledger, store, changelog_reference="bafy123")

    result = submit_publish(ledger=ledger, store=store, expected_chain_id=131313)

    record = ledger.get_release("validator", "1.2.0")
    assert record.exists
    assert record.binary_hash == HASH
    assert record.min_version == "1.1.0"
    assert record.changelog_reference == "bafy123"
    assert record.publisher == ledger.submitter
    assert result.record == record
    assert result.block_number == 1
    assert result.tx_hash.startswith("0x")
    assert result.signers == sorted([accounts[0].address, accounts[1].address], key=str.lower)
    assert len(result.removed) == 2
    assert list(tmp_path.glob("*.json")) == []
    assert result.failed_removals == []
    assert ledger.current_nonce() == 1

    [(method, args)] = ledger.write_calls
    assert method == "publishRelease"
    assert args[5] == 0


def test_quorum_shortfall_submits_nothing(keys, ledger, store):
    _sign(keys[0], ledger, store)

    with pytest.raises(InsufficientQuorumError):
        submit_publish(ledger=ledger, store=store)
    assert ledger.write_calls == []
    assert len(store) == 1
    assert not ledger.get_release("validator", "1.2.0").exists


def test_two_releases_at_one_nonce_are_inconsistent(keys, ledger, store):
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)
    _sign(keys[0], ledger, store, version="1.2.1")
    _sign(keys[1], ledger, store, version="1.2.1")

    # Both releases were signed at nonce 0; only one of them can land.
    with pytest.raises(InconsistentAttestationsError):
        submit_publish(ledger=ledger, store=store)
    assert ledger.write_calls == []


def test_signatures_from_consumed_nonce_are_not_reused(keys, ledger, store):
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)
    submit_publish(ledger=ledger, store=store)

    _sign(keys[0], ledger, store, version="1.2.1")
    with pytest.raises(InsufficientQuorumError):
        submit_publish(ledger=ledger, store=store)
    assert len(ledger.write_calls) == 1


def test_ledger_rejects_replayed_nonce(keys, ledger, store):
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)
    result = submit_publish(ledger=ledger, store=store)
    args = ledger.write_calls[0][1]

    with pytest.raises(LedgerRejectionError) as exc:
        ledger.publish_release("validator", "1.2.1", HASH, "", "", 0, list(args[6]))
    assert exc.value.reason == "StaleNonce"
    assert result.removed


def test_nothing_to_publish(ledger, store):
    with pytest.raises(NoAttestationsError):
        submit_publish(ledger=ledger, store=store)
    assert ledger.write_calls == []


def test_chain_id_mismatch_is_rejected_before_submission(keys, ledger, store):
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)
    with pytest.raises(InputValidationError) as exc:
        submit_publish(ledger=ledger, store=store, expected_chain_id=43113)
    assert exc.value.field == "chain_id"
    assert ledger.write_calls == []


class _ForeignPublisherLedger(InMemoryLedger):
    @property
    def submitter(self):
        return "0x000000000000000000000000000000000000b0b0"


def test_postcondition_failure_keeps_artifacts(keys, accounts):
    ledger = _ForeignPublisherLedger([a.address for a in accounts], 2)
    store = InMemoryAttestationStore()
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)

    with pytest.raises(PostconditionFailedError) as exc:
        submit_publish(ledger=ledger, store=store)
    assert "publisher" in exc.value.message
    assert len(store) == 2


class _StickyStore(InMemoryAttestationStore):
    def remove(self, key):
        raise OSError("read-only filesystem")


def test_cleanup_failure_is_not_fatal(keys, ledger):
    store = _StickyStore()
    _sign(keys[0], ledger, store)
    _sign(keys[1], ledger, store)

    result = submit_publish(ledger=ledger, store=store)
    assert ledger.get_release("validator", "1.2.0").exists
    assert result.removed == []
    assert len(result.failed_removals) == 2


def test_low_hash_release_is_published_unrevoked(keys, ledger, store):
    low = "0x" + "00" * 31 + "01"
    _sign(keys[0], ledger, store, binary_hash=low, min_version="")
    _sign(keys[1], ledger, store, binary_hash=low, min_version="")

    result = submit_publish(ledger=ledger, store=store)
    assert len(result.signers) == 2
    record = ledger.get_release("validator", "1.2.0")
    assert record.binary_hash == low
    assert not record.revoked
