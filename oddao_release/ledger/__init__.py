from oddao_release.ledger.base import LedgerClient
from oddao_release.ledger.memory import InMemoryLedger

__all__ = ["LedgerClient", "InMemoryLedger"]
