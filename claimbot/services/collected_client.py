"""
Client for the R-Planet game API's collected AETHER endpoint.
"""

import asyncio
import math
from typing import Any, Dict, Optional

import aiohttp
import structlog

from claimbot.core.config import settings
from claimbot.core.exceptions import ExternalServiceError


logger = structlog.get_logger(__name__)


class CollectedClient:
    """
    Reads an account's accumulated, unclaimed AETHER.

    Single endpoint with immediate retries; NaN once attempts run out.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.logger = logger.bind(service="collected_client")
        self.url = url or settings.collected_api_url
        self.max_attempts = max_attempts or settings.collected_max_attempts
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"content-type": "application/json", "User-Agent": settings.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post_json(self, payload: Dict[str, Any]) -> Any:
        session = await self._get_session()
        async with session.post(self.url, json=payload) as response:
            if response.status >= 400:
                raise ExternalServiceError(
                    f"Game API returned HTTP {response.status}",
                    {"status": response.status}
                )
            return await response.json(content_type=None)

    async def fetch_collected(self, account: str) -> float:
        """
        Get collected AETHER for an account.

        Args:
            account: WAX account name

        Returns:
            Collected amount, or NaN when every attempt failed
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                data = await asyncio.wait_for(
                    self._post_json({"account": account}),
                    timeout=self.timeout
                )
                return float(data["result"])

            except (asyncio.TimeoutError, aiohttp.ClientError, ExternalServiceError,
                    KeyError, TypeError, ValueError) as e:
                self.logger.debug(
                    "Collected fetch failed",
                    account=account,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e) or type(e).__name__
                )

        self.logger.warning(
            "Could not fetch collected amount",
            account=account,
            attempts=self.max_attempts
        )
        return math.nan


# Global instance
_collected_client: Optional[CollectedClient] = None


async def get_collected_client() -> CollectedClient:
    """Get or create global CollectedClient instance."""
    global _collected_client
    if _collected_client is None:
        _collected_client = CollectedClient()
    return _collected_client


async def close_collected_client():
    """Close the global CollectedClient instance."""
    global _collected_client
    if _collected_client:
        await _collected_client.close()
        _collected_client = None
