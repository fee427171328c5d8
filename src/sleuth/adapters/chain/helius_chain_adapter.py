import logging
from typing import Any, List, Optional

import requests

from sleuth.config.settings import (
    HELIUS_API_KEY,
    HELIUS_RPC_URL,
    HELIUS_REST_URL,
    HELIUS_REQUESTS_PER_SEC,
    HELIUS_TIMEOUT_SEC,
    HELIUS_USE_ENHANCED_API,
)

from sleuth.adapters.chain.rate_limiter import SimpleRateLimiter
from sleuth.core.dto import RawTransaction
from sleuth.core.errors import DataSourceError, RateLimitError
from sleuth.ports.transaction_history_port import TransactionHistoryPort

log = logging.getLogger("sleuth.adapters.helius")


class HeliusChainAdapter(TransactionHistoryPort):
    """
    Transaction history from Helius.

    Default path is the `getTransactionsForAddress` JSON-RPC method, which
    returns raw records (balance snapshots). With `use_enhanced_api` the
    REST v0 endpoint is used instead and records carry parsed
    nativeTransfers / tokenTransfers.

    One attempt per request: retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        use_enhanced_api: Optional[bool] = None,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[SimpleRateLimiter] = None,
    ) -> None:
        self._api_key = api_key or HELIUS_API_KEY
        self._rpc_url = HELIUS_RPC_URL
        self._rest_url = HELIUS_REST_URL.rstrip("/")
        self._timeout = HELIUS_TIMEOUT_SEC
        self._enhanced = HELIUS_USE_ENHANCED_API if use_enhanced_api is None else use_enhanced_api

        self._rl = rate_limiter or SimpleRateLimiter(HELIUS_REQUESTS_PER_SEC)
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        params = dict(kwargs.pop("params", {}) or {})
        params["api-key"] = self._api_key

        self._rl.wait()
        try:
            resp = self._session.request(method, url, params=params, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise DataSourceError(f"Helius request failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError("Helius rate limit exceeded")
        try:
            resp.raise_for_status()
            return resp.json()
        except (requests.HTTPError, ValueError) as e:
            raise DataSourceError(f"Helius bad response: {e}") from e

    def _rpc(self, method: str, params: List[Any]) -> Any:
        data = self._request(
            "POST",
            self._rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
        )
        if not isinstance(data, dict):
            raise DataSourceError(f"Invalid RPC payload for {method}: {data!r}")
        if data.get("error"):
            err = data["error"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise DataSourceError(f"Helius RPC error in {method}: {message}")
        return data.get("result")

    # ---------- port methods ----------

    def fetch_transactions(self, address: str, limit: int = 100) -> List[RawTransaction]:
        if self._enhanced:
            return self._fetch_enhanced(address, limit)

        result = self._rpc(
            "getTransactionsForAddress",
            [
                address,
                {
                    "transactionDetails": "full",
                    "sortOrder": "desc",
                    "limit": int(limit),
                    "filters": {
                        "status": "succeeded",
                        "tokenAccounts": "balanceChanged",
                    },
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        rows = (result or {}).get("data") if isinstance(result, dict) else None
        rows = rows if isinstance(rows, list) else []
        log.debug("rpc window for %s: %d record(s)", address, len(rows))
        return rows

    def _fetch_enhanced(self, address: str, limit: int) -> List[RawTransaction]:
        data = self._request(
            "GET",
            f"{self._rest_url}/addresses/{address}/transactions",
            params={"limit": int(limit)},
        )
        rows = data if isinstance(data, list) else []
        log.debug("enhanced window for %s: %d record(s)", address, len(rows))
        return rows
