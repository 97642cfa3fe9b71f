"""
Generation Gateway Module

Stateless "ordered turns in, reply text out" client for the generative
model. One attempt per call, no retry; the caller decides what a failure
means for the session.

Error taxonomy:
- GatewayConfigError: missing credential, raised before any network I/O
- GatewayRequestError: the service answered with a non-2xx status
- GatewayTransportError: network failure or timeout
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple

import aiohttp

from copilot.config import GeminiConfig, settings
from copilot.core.llm import Turn, build_generate_payload, extract_reply_text
from copilot.logger import get_logger

logger = get_logger(__name__)


class GatewayError(Exception):
    """Base class for generation failures."""


class GatewayConfigError(GatewayError):
    """The gateway is missing configuration (API key, model)."""


class GatewayRequestError(GatewayError):
    """Non-success HTTP status from the generation service."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body[:300]}")


class GatewayTransportError(GatewayError):
    """Connection failure, dropped response, or timeout."""


class GenerationGateway(ABC):
    """Turns to text. Implementations must not keep conversation state."""

    @abstractmethod
    async def generate(self, turns: Sequence[Turn]) -> str:
        """
        Generate a reply for the ordered turns.

        Raises:
            GatewayError: On any failure
        """

    async def close(self) -> None:
        """Release network resources."""


class GeminiGateway(GenerationGateway):
    """
    Gemini generateContent client over aiohttp.

    Usage:
        gateway = GeminiGateway()
        reply = await gateway.generate([Turn.user("Hello")])
        await gateway.close()
    """

    def __init__(
        self,
        config: Optional[GeminiConfig] = None,
        api_key: Optional[str] = None,
    ):
        self._config = config or settings.gemini
        self._api_key = api_key if api_key is not None else self._config.api_key
        self._session: Optional[aiohttp.ClientSession] = None

        # Metrics
        self._request_count = 0
        self._error_count = 0
        self._total_latency_ms = 0.0

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def set_api_key(self, api_key: str) -> None:
        """Replace the key (e.g. one typed at session start)."""
        self._api_key = api_key.strip()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s, connect=10.0)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _post(self, url: str, body: Dict[str, Any]) -> Tuple[int, str]:
        """Send one request and return (status, body text)."""
        session = await self._get_session()
        async with session.post(url, headers=self._headers, json=body) as response:
            return response.status, await response.text()

    async def generate(self, turns: Sequence[Turn]) -> str:
        if not self._api_key:
            raise GatewayConfigError("Gemini API key missing")
        if not turns:
            raise ValueError("At least one turn is required")

        url = self._config.generate_url()
        body = build_generate_payload(turns, self._config)

        start_time = time.time()
        self._request_count += 1
        try:
            status, text = await self._post(url, body)
        except asyncio.TimeoutError as e:
            self._error_count += 1
            raise GatewayTransportError(f"Request timed out after {self._config.timeout_s:.0f}s") from e
        except aiohttp.ClientError as e:
            self._error_count += 1
            raise GatewayTransportError(f"{type(e).__name__}: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        self._total_latency_ms += latency_ms

        if not 200 <= status < 300:
            self._error_count += 1
            logger.warning(f"Gemini returned HTTP {status} after {latency_ms:.0f}ms")
            raise GatewayRequestError(status, text)

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Shown as-is so an unexpected body is still visible
            logger.warning("Gemini response was not JSON")
            return text

        reply = extract_reply_text(data) if isinstance(data, dict) else text
        logger.debug(f"Gemini replied in {latency_ms:.0f}ms ({len(reply)} chars)")
        return reply

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics."""
        ok = self._request_count - self._error_count
        return {
            "requests": self._request_count,
            "errors": self._error_count,
            "avg_latency_ms": self._total_latency_ms / ok if ok > 0 else 0.0,
        }
