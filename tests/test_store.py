import json

import pytest

from oddao_release.core.schemas import Attestation
from oddao_release.store.base import artifact_key
from oddao_release.store.files import FileAttestationStore
from oddao_release.store.memory import InMemoryAttestationStore


def test_artifact_key_naming(accounts, ledger, make_attestation):
    publish = make_attestation(accounts[0], ledger)
    revoke = make_attestation(accounts[0], ledger, operation="REVOKE", reason="CVE-test")
    short = accounts[0].address[:10]
    assert artifact_key(publish) == f"validator-1.2.0-{short}.json"
    assert artifact_key(revoke) == f"revoke-validator-1.2.0-{short}.json"


def test_artifact_key_sanitizes_path_characters(accounts, ledger, make_attestation):
    att = make_attestation(accounts[0], ledger, component="../etc", version="1 2")
    key = artifact_key(att)
    assert "/" not in key and " " not in key
    assert key.endswith(".json")


def test_file_store_writes_camel_case_json(tmp_path, accounts, ledger, make_attestation):
    store = FileAttestationStore(tmp_path / "signatures")
    att = make_attestation(accounts[0], ledger, min_version="1.1.0", changelog_reference="bafy123")
    key = store.put(att)

    data = json.loads((tmp_path / "signatures" / key).read_text())
    assert data["signer"] == accounts[0].address
    assert data["operation"] == "PUBLISH_RELEASE"
    assert data["binaryHash"] == "0x" + "ab" * 32
    assert data["minVersion"] == "1.1.0"
    assert data["changelogReference"] == "bafy123"
    assert data["nonce"] == "0"
    assert data["chainId"] == "131313"
    assert data["registryAddress"] == ledger.registry_address
    assert data["signature"] == att.signature
    assert not list((tmp_path / "signatures").glob("*.tmp"))


def test_file_store_roundtrip_and_overwrite(tmp_path, accounts, ledger, make_attestation):
    store = FileAttestationStore(tmp_path)
    store.put(make_attestation(accounts[0], ledger, min_version="1.0.0"))
    store.put(make_attestation(accounts[0], ledger, min_version="1.1.0"))
    store.put(make_attestation(accounts[1], ledger))

    entries = store.list_all()
    assert [e.key for e in entries] == sorted(e.key for e in entries)
    assert len(entries) == 2
    mine = [e for e in entries if e.attestation.signer == accounts[0].address]
    assert mine[0].attestation.min_version == "1.1.0"


def test_file_store_loads_legacy_script_artifacts(tmp_path, accounts):
    legacy = {
        "signer": accounts[0].address.lower(),
        "component": "validator",
        "version": "1.2.0",
        "binaryHash": "0x" + "AB" * 32,
        "minVersion": "",
        "changelogCID": "bafyold",
        "nonce": "3",
        "chainId": 131313,
        "registry": "0x00000000000000000000000000000000deadbeef",
        "signature": "0x" + "00" * 65,
        "signedAt": "2026-01-01T00:00:00.000Z",
    }
    (tmp_path / "validator-1.2.0-legacy.json").write_text(json.dumps(legacy))

    [entry] = FileAttestationStore(tmp_path).list_all()
    att = entry.attestation
    assert att.operation == "PUBLISH_RELEASE"
    assert att.signer == accounts[0].address
    assert att.binary_hash == "0x" + "ab" * 32
    assert att.changelog_reference == "bafyold"
    assert att.nonce == 3
    assert att.chain_id == 131313


def test_file_store_skips_unreadable_files(tmp_path, accounts, ledger, make_attestation):
    store = FileAttestationStore(tmp_path)
    good = store.put(make_attestation(accounts[0], ledger))
    (tmp_path / "broken.json").write_text("{not json")
    (tmp_path / "partial.json").write_text(json.dumps({"signer": accounts[1].address}))
    (tmp_path / "badhash.json").write_text(
        json.dumps(
            {
                "signer": accounts[1].address,
                "component": "validator",
                "version": "1.2.0",
                "binaryHash": "0x1234",
                "nonce": "0",
                "chainId": "131313",
                "registryAddress": ledger.registry_address,
                "signature": "0x",
            }
        )
    )
    (tmp_path / "notes.txt").write_text("ignored")

    assert [e.key for e in store.list_all()] == [good]


def test_file_store_missing_directory_is_empty(tmp_path):
    assert FileAttestationStore(tmp_path / "nope").list_all() == []


def test_file_store_remove_and_key_guard(tmp_path, accounts, ledger, make_attestation):
    store = FileAttestationStore(tmp_path)
    key = store.put(make_attestation(accounts[0], ledger))
    store.remove(key)
    assert store.list_all() == []
    with pytest.raises(FileNotFoundError):
        store.remove(key)
    with pytest.raises(ValueError):
        store.path_for("../outside.json")


def test_list_for_nonce_filters_nonce_and_operation(accounts, ledger, make_attestation):
    store = InMemoryAttestationStore()
    store.put(make_attestation(accounts[0], ledger, nonce=4))
    store.put(make_attestation(accounts[1], ledger, nonce=5))
    store.put(make_attestation(accounts[2], ledger, nonce=5, operation="REVOKE", reason="x"))

    assert {e.attestation.signer for e in store.list_for_nonce(5)} == {accounts[1].address, accounts[2].address}
    [only] = store.list_for_nonce(5, "PUBLISH_RELEASE")
    assert only.attestation.signer == accounts[1].address
    assert store.list_for_nonce(6) == []


def test_attestation_json_roundtrip(accounts, ledger, make_attestation):
    att = make_attestation(accounts[0], ledger)
    again = Attestation.model_validate_json(att.to_json())
    assert again.model_dump() == att.model_dump()
