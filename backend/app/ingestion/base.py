"""
Shared HTTP plumbing for environment providers.

Each provider client owns one lazily-created httpx.AsyncClient.  Every
transport, status or decoding failure is normalised into
GatewayUnavailableError so callers only ever handle one exception type.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import GatewayUnavailableError

logger = logging.getLogger(__name__)


class ProviderClient:
    """
    Base class for a single upstream JSON API.

    Parameters
    ----------
    provider : str
        Short name used in logs and in GatewayUnavailableError.provider.
    timeout : float | None
        Per-request timeout in seconds.  Defaults to
        settings.GATEWAY_TIMEOUT_SECONDS.
    transport : httpx.AsyncBaseTransport | None
        Injected transport (tests pass httpx.MockTransport).
    """

    provider = "provider"

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("%s API error: %s", self.provider, e.response.status_code)
            raise GatewayUnavailableError(
                self.provider,
                f"HTTP {e.response.status_code}",
                status=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out after %.1fs", self.provider, self.timeout)
            raise GatewayUnavailableError(self.provider, "timeout") from e
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", self.provider, e)
            raise GatewayUnavailableError(self.provider, str(e) or type(e).__name__) from e
        except ValueError as e:
            logger.warning("%s returned malformed JSON: %s", self.provider, e)
            raise GatewayUnavailableError(self.provider, "malformed response") from e
