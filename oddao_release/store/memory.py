from typing import Dict, List

from oddao_release.core.schemas import Attestation, StoredAttestation
from oddao_release.store.base import AttestationStore, artifact_key


class InMemoryAttestationStore(AttestationStore):
    def __init__(self) -> None:
        self._items: Dict[str, Attestation] = {}

    def put(self, attestation: Attestation) -> str:
        key = artifact_key(attestation)
        self._items[key] = attestation
        return key

    def list_all(self) -> List[StoredAttestation]:
        return [StoredAttestation(key=k, attestation=self._items[k]) for k in sorted(self._items)]

    def remove(self, key: str) -> None:
        del self._items[key]

    def __len__(self) -> int:
        return len(self._items)
