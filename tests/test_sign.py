import pytest

from oddao_release.core.aggregator import attestation_digest
from oddao_release.core.errors import (
    AuthorizationError,
    InputValidationError,
    PreconditionError,
)
from oddao_release.core.schemas import (
    RevokeRequest,
    SignReleaseRequest,
    SignRevokeRequest,
    build_request,
)
from oddao_release.core.signing import recover_signer
from oddao_release.flows import sign as sign_flow
from oddao_release.flows.publish import submit_publish
from oddao_release.flows.sign import sign_release, sign_revoke

HASH = "0x" + "ab" * 32


def _release(key, **overrides):
    fields = dict(component="validator", version="1.2.0", binary_hash=HASH, key=key)
    fields.update(overrides)
    return build_request(SignReleaseRequest, **fields)


def _publish(ledger, store, keys):
    for key in keys[:2]:
        sign_release(_release(key), ledger=ledger, store=store)
    submit_publish(ledger=ledger, store=store)


def test_sign_release_stores_verifiable_attestation(keys, accounts, ledger, store):
    result = sign_release(
        _release(keys[0], min_version="1.1.0", changelog_reference="bafy123"),
        ledger=ledger,
        store=store,
    )
    att = result.attestation
    assert result.threshold == 2
    assert att.signer == accounts[0].address
    assert att.nonce == ledger.current_nonce()
    assert att.chain_id == 131313
    assert att.registry_address == ledger.registry_address
    assert att.changelog_reference == "bafy123"
    assert att.signed_at.endswith("Z")
    assert recover_signer(attestation_digest(att), att.signature) == accounts[0].address
    assert [e.key for e in store.list_all()] == [result.key]
    assert ledger.write_calls == []


def test_unauthorized_signer_fails_before_signing(monkeypatch, outsider, ledger, store):
    def _must_not_sign(*args, **kwargs):
        raise AssertionError("signed before the membership check")

    monkeypatch.setattr(sign_flow, "sign_digest", _must_not_sign)
    with pytest.raises(AuthorizationError) as exc:
        sign_release(_release(outsider.key.hex()), ledger=ledger, store=store)
    assert outsider.address in exc.value.message
    assert len(store) == 0


def test_missing_key_is_a_validation_error(ledger, store):
    with pytest.raises(InputValidationError):
        sign_release(_release(None), ledger=ledger, store=store)


def test_cannot_sign_already_published_release(keys, ledger, store):
    _publish(ledger, store, keys)
    with pytest.raises(PreconditionError) as exc:
        sign_release(_release(keys[2]), ledger=ledger, store=store)
    assert "already published" in exc.value.message
    assert len(store) == 0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"component": "  "}, "component"),
        ({"version": ""}, "version"),
        ({"binary_hash": "0x" + "00" * 32}, "binary_hash"),
        ({"binary_hash": "0x" + "ab" * 20}, "binary_hash"),
    ],
)
def test_sign_request_validation(keys, overrides, field):
    with pytest.raises(InputValidationError) as exc:
        _release(keys[0], **overrides)
    assert exc.value.field == field


def test_sign_revoke_requires_published_release(monkeypatch, keys, ledger, store):
    monkeypatch.setattr(sign_flow, "sign_digest", lambda *a, **k: pytest.fail("signed anyway"))
    request = build_request(
        SignRevokeRequest, component="validator", version="9.9.9", reason="CVE-test", key=keys[0]
    )
    with pytest.raises(PreconditionError) as exc:
        sign_revoke(request, ledger=ledger, store=store)
    assert "not found on-chain" in exc.value.message
    assert len(store) == 0


def test_sign_revoke_after_publish(keys, accounts, ledger, store):
    _publish(ledger, store, keys)
    result = sign_revoke(
        RevokeRequest(component="validator", version="1.2.0", reason="CVE-test", key=keys[1]),
        ledger=ledger,
        store=store,
    )
    att = result.attestation
    assert att.operation == "REVOKE"
    assert att.reason == "CVE-test"
    assert att.nonce == 1
    assert result.key.startswith("revoke-validator-1.2.0-")
    assert recover_signer(attestation_digest(att), att.signature) == accounts[1].address


def test_revoke_request_rejects_empty_reason(keys):
    with pytest.raises(InputValidationError) as exc:
        build_request(SignRevokeRequest, component="validator", version="1.2.0", reason=" ", key=keys[0])
    assert exc.value.field == "reason"
