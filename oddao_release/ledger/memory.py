from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence, Tuple

from eth_utils import keccak, to_hex

from oddao_release.core.encoding import checksum, hash_hex, publish_digest, revoke_digest
from oddao_release.core.errors import LedgerRejectionError
from oddao_release.core.schemas import ZERO_HASH, ReleaseRecord
from oddao_release.core.signing import recover_signer
from oddao_release.ledger.base import LedgerClient, Receipt


class InMemoryLedger(LedgerClient):
    """UpdateRegistry stand-in with the contract's acceptance rules.

    Used for tests and for rehearsing a signing round locally. Every write is
    appended to `write_calls` so callers can assert nothing was submitted.
    """

    def __init__(
        self,
        signers: Sequence[str],
        threshold: int,
        *,
        chain_id: int = 131313,
        registry_address: str = "0x00000000000000000000000000000000deadbeef",
        submitter: str = "0x000000000000000000000000000000000000a11c",
        nonce: int = 0,
    ):
        if threshold <= 0 or threshold > len(signers):
            raise ValueError("InvalidThreshold")
        self._signers: List[str] = [checksum(s) for s in signers]
        if len({s.lower() for s in self._signers}) != len(self._signers):
            raise ValueError("DuplicateSigner")
        self._threshold = int(threshold)
        self._chain_id = int(chain_id)
        self._registry = checksum(registry_address)
        self._submitter = checksum(submitter)
        self._nonce = int(nonce)
        self._releases: Dict[Tuple[str, str], ReleaseRecord] = {}
        self._block = 0
        self.write_calls: List[Tuple[str, tuple]] = []

    # -- reads ---------------------------------------------------------------

    @property
    def registry_address(self) -> str:
        return self._registry

    @property
    def submitter(self) -> str:
        return self._submitter

    def chain_id(self) -> int:
        return self._chain_id

    def current_nonce(self) -> int:
        return self._nonce

    def signers(self) -> List[str]:
        return list(self._signers)

    def threshold(self) -> int:
        return self._threshold

    def get_release(self, component: str, version: str) -> ReleaseRecord:
        found = self._releases.get((component, version))
        if found is None:
            return ReleaseRecord(component=component, version=version)
        return found.model_copy()

    # -- writes --------------------------------------------------------------

    def _verify(self, digest: bytes, signatures: Sequence[str]) -> None:
        members = {s.lower() for s in self._signers}
        approved = set()
        for sig in signatures:
            try:
                signer = recover_signer(digest, sig).lower()
            except Exception:
                raise LedgerRejectionError("InvalidSignature")
            if signer not in members:
                raise LedgerRejectionError("InvalidSignature")
            approved.add(signer)
        if len(approved) < self._threshold:
            raise LedgerRejectionError("InsufficientSignatures")

    def _check_nonce(self, nonce: int) -> None:
        if int(nonce) != self._nonce:
            raise LedgerRejectionError("StaleNonce")

    def _mine(self, method: str, args: tuple) -> Receipt:
        self._nonce += 1
        self._block += 1
        tx_hash = to_hex(keccak(text=f"{method}:{self._block}:{args!r}"))
        return {"transactionHash": tx_hash, "blockNumber": self._block, "status": 1}

    def publish_release(
        self,
        component: str,
        version: str,
        binary_hash: str,
        min_version: str,
        changelog_reference: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt:
        args = (component, version, binary_hash, min_version, changelog_reference, nonce, tuple(signatures))
        self.write_calls.append(("publishRelease", args))

        if not component:
            raise LedgerRejectionError("EmptyComponent")
        if not version:
            raise LedgerRejectionError("EmptyVersion")
        if hash_hex(binary_hash) == ZERO_HASH:
            raise LedgerRejectionError("EmptyBinaryHash")
        self._check_nonce(nonce)
        if (component, version) in self._releases:
            raise LedgerRejectionError("DuplicateVersion")
        self._verify(
            publish_digest(
                component,
                version,
                binary_hash,
                min_version,
                nonce=nonce,
                chain_id=self._chain_id,
                registry_address=self._registry,
            ),
            signatures,
        )

        self._releases[(component, version)] = ReleaseRecord(
            component=component,
            version=version,
            binary_hash=hash_hex(binary_hash),
            min_version=min_version,
            changelog_reference=changelog_reference,
            published_at=int(time.time()),
            publisher=self._submitter,
        )
        return self._mine("publishRelease", args)

    def revoke_release(
        self,
        component: str,
        version: str,
        reason: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt:
        args = (component, version, reason, nonce, tuple(signatures))
        self.write_calls.append(("revokeRelease", args))

        self._check_nonce(nonce)
        record: Optional[ReleaseRecord] = self._releases.get((component, version))
        if record is None:
            raise LedgerRejectionError("VersionNotFound")
        if record.revoked:
            raise LedgerRejectionError("VersionAlreadyRevoked")
        self._verify(
            revoke_digest(
                component,
                version,
                reason,
                nonce=nonce,
                chain_id=self._chain_id,
                registry_address=self._registry,
            ),
            signatures,
        )

        self._releases[(component, version)] = record.model_copy(
            update={"revoked": True, "revoke_reason": reason}
        )
        return self._mine("revokeRelease", args)
