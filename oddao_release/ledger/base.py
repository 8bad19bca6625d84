from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from oddao_release.core.schemas import OperationContext, ReleaseRecord


Receipt = Dict[str, Any]


class LedgerClient(ABC):
    """What the release tooling needs from the UpdateRegistry.

    Reads are plain views. Writes block until the transaction is mined and
    raise `LedgerRejectionError` on a revert or a failed receipt.
    """

    @property
    @abstractmethod
    def registry_address(self) -> str: ...

    @property
    @abstractmethod
    def submitter(self) -> str:
        """Address writes are sent from (the release manager)."""

    @abstractmethod
    def chain_id(self) -> int: ...

    @abstractmethod
    def current_nonce(self) -> int: ...

    @abstractmethod
    def signers(self) -> List[str]: ...

    @abstractmethod
    def threshold(self) -> int: ...

    @abstractmethod
    def get_release(self, component: str, version: str) -> ReleaseRecord:
        """Return the record, with `published_at == 0` when it does not exist."""

    @abstractmethod
    def publish_release(
        self,
        component: str,
        version: str,
        binary_hash: str,
        min_version: str,
        changelog_reference: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt: ...

    @abstractmethod
    def revoke_release(
        self,
        component: str,
        version: str,
        reason: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt: ...

    def read_context(self) -> OperationContext:
        return OperationContext(
            nonce=int(self.current_nonce()),
            signers=tuple(self.signers()),
            threshold=int(self.threshold()),
            chain_id=int(self.chain_id()),
            registry_address=self.registry_address,
        )
