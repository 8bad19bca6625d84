from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import List, Optional, Union

from oddao_release.core.encoding import Operation
from oddao_release.core.schemas import Attestation, StoredAttestation

# "0x" + 8 hex chars: short enough to read, wide enough that signers don't collide.
SIGNER_ID_LENGTH = 10

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe(part: str) -> str:
    return _UNSAFE.sub("_", part) or "_"


def artifact_key(attestation: Attestation) -> str:
    """File name for an artifact; unique per (operation, component, version, signer)."""
    stem = f"{_safe(attestation.component)}-{_safe(attestation.version)}-{attestation.signer[:SIGNER_ID_LENGTH]}"
    if attestation.op is Operation.REVOKE:
        stem = f"revoke-{stem}"
    return f"{stem}.json"


class AttestationStore(ABC):
    """Append-only collection of attestation artifacts keyed by name.

    Writers never mutate an existing entry, so independent signer processes
    can share one store without locking.
    """

    @abstractmethod
    def put(self, attestation: Attestation) -> str:
        """Persist the artifact and return its key."""

    @abstractmethod
    def list_all(self) -> List[StoredAttestation]:
        """Every readable artifact, sorted by key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete one artifact; raises if it cannot be removed."""

    def list_for_nonce(
        self,
        nonce: int,
        operation: Optional[Union[Operation, str]] = None,
    ) -> List[StoredAttestation]:
        op = Operation(operation) if operation is not None else None
        out: List[StoredAttestation] = []
        for entry in self.list_all():
            if entry.attestation.nonce != int(nonce):
                continue
            if op is not None and entry.attestation.op is not op:
                continue
            out.append(entry)
        return out
