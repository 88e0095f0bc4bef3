"""
Base destination client — every call goes retry(dispatcher(http)).

The rate-limited dispatcher gates each attempt; the retry policy is layered
outside it so a retried call queues for a fresh token.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.exceptions import ConnectionTimeoutError, ExternalAPIError, RateLimitError
from app.utils.rate_limiter import DispatchTier, RateLimiterRegistry
from app.utils.retry import RetryOptions, parse_retry_after, retry_with_backoff

logger = logging.getLogger("destination_client")


class DestinationClient:
    service: str = "Destination"

    def __init__(
        self,
        domain: str,
        dispatcher: RateLimiterRegistry,
        retry_options: Optional[RetryOptions] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            domain: Rate-limit key (destination host)
            dispatcher: Shared rate limiter registry
            retry_options: Backoff policy for transient failures
            timeout: Per-request timeout in seconds
            http_client: Optional shared client (not closed by this class)
        """
        self.domain = domain
        self._dispatcher = dispatcher
        self._retry_options = retry_options or RetryOptions()
        self._timeout = timeout
        self._http_client = http_client

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    def _raise_for_status(self, resp: httpx.Response, path: str) -> None:
        if resp.status_code < 400:
            return
        if resp.status_code == 429:
            raise RateLimitError(
                self.service,
                retry_after=parse_retry_after(resp.headers.get("Retry-After")),
                message=f"{path} rate limited",
            )
        raise ExternalAPIError(
            self.service,
            f"{resp.status_code} on {path}: {resp.text[:500]}",
            status_code=resp.status_code,
        )

    async def _request(
        self,
        method: str,
        url: str,
        path: str,
        tier: DispatchTier = DispatchTier.GENERAL,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async def attempt() -> Any:
            logger.debug("%s request method=%s path=%s params=%s", self.service, method, path, params)
            try:
                resp = await self._send(method, url, headers=self._headers(), json=json, params=params)
            except httpx.TimeoutException as exc:
                raise ConnectionTimeoutError(self.service, self._timeout) from exc

            logger.debug("%s response status=%s path=%s", self.service, resp.status_code, path)
            self._raise_for_status(resp, path)
            if resp.text:
                return resp.json()
            return {}

        async def dispatched() -> Any:
            return await self._dispatcher.execute(self.domain, tier, attempt)

        return await retry_with_backoff(
            dispatched,
            self._retry_options,
            label=f"{self.service} {method} {path}",
        )
