"""
Resilient WAX RPC client with endpoint failover.

This service provides:
- Ordered failover across interchangeable WAX nodes
- A fixed per-attempt timeout; a slow node counts as a failed one
- Sentinel results (empty rows / NaN) once every node has failed
- Single-node calls for head info and transaction push
- Per-endpoint request statistics
"""

import asyncio
import math
import time
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiohttp
import structlog

from claimbot.core.config import settings
from claimbot.core.exceptions import RpcError


logger = structlog.get_logger(__name__)


@dataclass
class RpcStats:
    """Statistics for RPC performance tracking."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time: float = 0.0
    last_request_time: Optional[datetime] = None
    errors_by_type: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    @property
    def average_response_time(self) -> float:
        if self.successful_requests == 0:
            return 0.0
        return self.total_response_time / self.successful_requests


def _error_message(data: Any, status: int) -> str:
    """Pull the most specific message out of a nodeos error body."""
    if isinstance(data, dict):
        error = data.get("error") or {}
        details = error.get("details") or []
        if details and isinstance(details[0], dict) and details[0].get("message"):
            return details[0]["message"]
        if error.get("what"):
            return error["what"]
        if data.get("message"):
            return data["message"]
    return f"HTTP {status}"


class ResilientRpcClient:
    """
    WAX RPC client that walks an endpoint order until one node answers.

    Every call takes the endpoint order explicitly; the client itself
    holds no ordering state.
    """

    TRANSIENT_ERRORS = (
        asyncio.TimeoutError,
        aiohttp.ClientError,
        RpcError,
        ValueError,
        KeyError,
        TypeError,
    )

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None):
        self.logger = logger.bind(service="rpc_client")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.user_agent = user_agent or settings.user_agent
        self._session: Optional[aiohttp.ClientSession] = None

        self.stats_by_endpoint: Dict[str, RpcStats] = {}
        self.global_stats = RpcStats()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self.logger.info("RPC client closed")

    async def _post_json(self, endpoint: str, path: str, payload: Dict[str, Any]) -> Any:
        """POST a JSON body to a node and return the decoded response."""
        session = await self._get_session()
        async with session.post(f"{endpoint}{path}", json=payload) as response:
            data = await response.json(content_type=None)
            if response.status >= 400:
                raise RpcError(
                    _error_message(data, response.status),
                    {"endpoint": endpoint, "path": path, "status": response.status}
                )
            return data

    def _update_endpoint_stats(self, endpoint: str, success: bool, response_time: float, error_type: str = None):
        stats = self.stats_by_endpoint.setdefault(endpoint, RpcStats())

        for target in (stats, self.global_stats):
            target.total_requests += 1
            target.last_request_time = datetime.utcnow()
            if success:
                target.successful_requests += 1
                target.total_response_time += response_time
            else:
                target.failed_requests += 1
                if error_type:
                    target.errors_by_type[error_type] = target.errors_by_type.get(error_type, 0) + 1

    async def _request_endpoint(self, endpoint: str, path: str, payload: Dict[str, Any]) -> Any:
        """One attempt against one node, bounded by the per-attempt timeout."""
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._post_json(endpoint, path, payload),
                timeout=self.timeout
            )
        except Exception as e:
            self._update_endpoint_stats(endpoint, False, time.monotonic() - start_time, type(e).__name__)
            raise

        self._update_endpoint_stats(endpoint, True, time.monotonic() - start_time)
        return result

    async def _query_with_failover(
        self,
        endpoints: Sequence[str],
        path: str,
        payload: Dict[str, Any],
        parse: Callable[[Any], Any],
        sentinel: Any,
    ) -> Any:
        """
        Try each endpoint once, in order, until one returns a parsable result.

        Args:
            endpoints: Traversal order for this query
            path: RPC path, e.g. /v1/chain/get_table_rows
            payload: JSON body
            parse: Turns the raw response into the result; raising counts as failure
            sentinel: Returned when every endpoint failed

        Returns:
            Parsed result, or the sentinel
        """
        for index, endpoint in enumerate(endpoints):
            try:
                data = await self._request_endpoint(endpoint, path, payload)
                result = parse(data)
            except self.TRANSIENT_ERRORS as e:
                self.logger.debug(
                    "Endpoint failed, trying next",
                    path=path,
                    endpoint=endpoint,
                    attempt=index + 1,
                    error=str(e) or type(e).__name__
                )
                continue

            if index > 0:
                self.logger.debug(
                    "Request succeeded after failover",
                    path=path,
                    endpoint=endpoint,
                    attempt=index + 1
                )
            return result

        self.logger.warning(
            "All WAX endpoints failed",
            path=path,
            endpoints=len(endpoints)
        )
        return sentinel

    async def get_table_rows(
        self,
        endpoints: Sequence[str],
        code: str,
        table: str,
        scope: str,
        bounds: str,
        index_position: int,
        key_type: str = "i64",
        limit: int = 100,
        on_failure: Callable[[], Any] = list,
    ) -> List[Dict[str, Any]]:
        """
        Indexed table lookup with lower and upper bound set to the same key.

        Returns the rows, or on_failure() (an empty list by default) when no
        endpoint answered.
        """
        payload = {
            "json": True,
            "code": code,
            "scope": scope,
            "table": table,
            "lower_bound": bounds,
            "upper_bound": bounds,
            "index_position": index_position,
            "key_type": key_type,
            "limit": limit,
        }

        def parse(data: Any) -> List[Dict[str, Any]]:
            return list(data["rows"])

        return await self._query_with_failover(
            endpoints, "/v1/chain/get_table_rows", payload, parse, on_failure()
        )

    async def get_currency_balance(
        self,
        endpoints: Sequence[str],
        code: str,
        account: str,
        symbol: str,
    ) -> float:
        """Token balance of an account, NaN if no node answered."""
        payload = {"code": code, "account": account, "symbol": symbol}

        def parse(data: Any) -> float:
            if not data:
                return math.nan
            return float(str(data[0]).split(" ")[0])

        return await self._query_with_failover(
            endpoints, "/v1/chain/get_currency_balance", payload, parse, math.nan
        )

    async def get_info(self, endpoint: str) -> Dict[str, Any]:
        """Chain head info from a single node. Raises on failure."""
        return await self._request_endpoint(endpoint, "/v1/chain/get_info", {})

    async def push_transaction(
        self,
        endpoint: str,
        signatures: List[str],
        packed_trx: bytes,
    ) -> Dict[str, Any]:
        """Push a signed, packed transaction to a single node. Raises on failure."""
        payload = {
            "signatures": signatures,
            "compression": 0,
            "packed_context_free_data": "",
            "packed_trx": packed_trx.hex(),
        }
        return await self._request_endpoint(endpoint, "/v1/chain/push_transaction", payload)

    def get_stats(self) -> Dict[str, Any]:
        """Statistics for all endpoints seen so far."""
        return {
            "global": asdict(self.global_stats),
            "endpoints": {
                endpoint: {
                    "stats": asdict(stats),
                    "success_rate": stats.success_rate,
                    "average_response_time": stats.average_response_time,
                }
                for endpoint, stats in self.stats_by_endpoint.items()
            },
        }


# Global instance
_rpc_client: Optional[ResilientRpcClient] = None


async def get_rpc_client() -> ResilientRpcClient:
    """Get or create global ResilientRpcClient instance."""
    global _rpc_client
    if _rpc_client is None:
        _rpc_client = ResilientRpcClient()
    return _rpc_client


async def close_rpc_client():
    """Close the global ResilientRpcClient instance."""
    global _rpc_client
    if _rpc_client:
        await _rpc_client.close()
        _rpc_client = None
