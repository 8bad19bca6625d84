import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import oddao_release` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from eth_account import Account  # noqa: E402

from oddao_release.core.encoding import publish_digest, revoke_digest  # noqa: E402
from oddao_release.core.schemas import Attestation  # noqa: E402
from oddao_release.core.signing import sign_digest  # noqa: E402
from oddao_release.ledger.memory import InMemoryLedger  # noqa: E402
from oddao_release.store.memory import InMemoryAttestationStore  # noqa: E402

SIGNER_KEYS = ["0x" + "11" * 32, "0x" + "22" * 32, "0x" + "33" * 32]
OUTSIDER_KEY = "0x" + "44" * 32
RELEASE_HASH = "0x" + "ab" * 32


@pytest.fixture
def keys():
    return list(SIGNER_KEYS)


@pytest.fixture
def accounts():
    return [Account.from_key(k) for k in SIGNER_KEYS]


@pytest.fixture
def outsider():
    return Account.from_key(OUTSIDER_KEY)


@pytest.fixture
def ledger(accounts):
    """2-of-3 registry at nonce 0."""
    return InMemoryLedger([a.address for a in accounts], 2)


@pytest.fixture
def store():
    return InMemoryAttestationStore()


@pytest.fixture
def make_attestation():
    """Build a correctly signed attestation against `ledger`'s live context."""

    def _make(
        account,
        ledger,
        *,
        operation="PUBLISH_RELEASE",
        component="validator",
        version="1.2.0",
        binary_hash=RELEASE_HASH,
        min_version="",
        changelog_reference="",
        reason="",
        nonce=None,
        chain_id=None,
        registry_address=None,
    ):
        nonce = ledger.current_nonce() if nonce is None else nonce
        chain_id = ledger.chain_id() if chain_id is None else chain_id
        registry_address = registry_address or ledger.registry_address
        ctx = dict(nonce=nonce, chain_id=chain_id, registry_address=registry_address)
        if operation == "REVOKE":
            digest = revoke_digest(component, version, reason, **ctx)
        else:
            digest = publish_digest(component, version, binary_hash, min_version, **ctx)
        return Attestation(
            signer=account.address,
            operation=operation,
            component=component,
            version=version,
            binary_hash=binary_hash if operation != "REVOKE" else "0x" + "00" * 32,
            min_version=min_version,
            changelog_reference=changelog_reference,
            reason=reason,
            nonce=nonce,
            chain_id=chain_id,
            registry_address=registry_address,
            signature=sign_digest(digest, account=account),
        )

    return _make
