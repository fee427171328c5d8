from sleuth.core.dto import RawTransaction
from sleuth.core.errors import DataSourceError
from sleuth.ports.transaction_history_port import TransactionHistoryPort
from typing import Dict, Iterable, List, Optional

class StaticChainAdapter(TransactionHistoryPort):
    def __init__(self,
                 transactions: Optional[Dict[str, List[RawTransaction]]] = None,
                 failing: Optional[Iterable[str]] = None,
                 ):
        self._txs = dict(transactions or {})
        self._failing = set(failing or ())
        self.fetch_log: List[str] = []

    def fetch_transactions(self, address, limit = 100):
        self.fetch_log.append(address)
        if address in self._failing:
            raise DataSourceError(f"static source has no route to {address}")
        return list(self._txs.get(address, []))[:limit]
