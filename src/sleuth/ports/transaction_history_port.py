from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from sleuth.core.dto import RawTransaction


class TransactionHistoryPort(ABC):
    """
    Abstract Class for fetching an address' transaction history.
    """

    # --- Bounded history window (newest first) ---

    @abstractmethod
    def fetch_transactions(self, address: str, limit: int = 100) -> List[RawTransaction]:
        """
        Return up to `limit` raw transaction records touching `address`.

        Records may be in the enriched shape (nativeTransfers/tokenTransfers)
        or the raw shape (transaction + meta balance snapshots).
        Raises DataSourceError when the provider cannot be reached.
        """
        raise NotImplementedError
