"""
Aiohttp transport for the img2img endpoint.

Requests are sent from a background task and exposed as a PendingResponse
that the workflow polls between cooperative suspensions.
"""

import asyncio
import json
import logging
import ssl
from typing import Optional

import aiohttp
import certifi
from yarl import URL

from ..settings import BridgeSettings
from .errors import NetworkError

logger = logging.getLogger(__name__)


def basic_auth_header(settings: BridgeSettings) -> Optional[str]:
    """Authorization header value, or None when auth is off or incomplete."""
    if not settings.has_credentials:
        return None
    return aiohttp.BasicAuth(settings.username, settings.password, encoding="utf-8").encode()


class PendingResponse:
    """Handle to a request running in the background."""

    def __init__(self, task: "asyncio.Task[str]", url: str):
        self._task = task
        self.url = url

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        return self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    @property
    def error(self) -> Optional[NetworkError]:
        """Transport failure of a finished request, None on success or while pending."""
        if not self._task.done() or self._task.cancelled():
            return None
        exc = self._task.exception()
        if exc is None:
            return None
        if isinstance(exc, NetworkError):
            return exc
        return NetworkError(0, f"{type(exc).__name__}: {exc}", self.url)

    @property
    def text(self) -> Optional[str]:
        if self.error is not None or not self._task.done() or self._task.cancelled():
            return None
        return self._task.result()


class TransportClient:
    def __init__(self, settings: BridgeSettings):
        self.settings = settings
        self._session: aiohttp.ClientSession | None = None

    async def ensure_session(self):
        """Lazy session creation with proper SSL context."""
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self._session = aiohttp.ClientSession(connector=connector)

    def _timeout(self) -> aiohttp.ClientTimeout | None:
        if self.settings.timeout:
            return aiohttp.ClientTimeout(total=self.settings.timeout)
        return None

    def submit(
        self, url: str, body: str, auth_header: Optional[str] = None
    ) -> Optional[PendingResponse]:
        """Start a JSON POST in the background.

        Returns None when the request cannot be built; the error is logged.
        """
        try:
            target = URL(url)
            if target.scheme not in ("http", "https") or not target.host:
                raise ValueError(f"Unsupported URL: {url}")
            headers = {"Content-Type": "application/json"}
            if auth_header:
                headers["Authorization"] = auth_header
            task = asyncio.get_running_loop().create_task(self._post(url, body, headers))
        except (ValueError, TypeError, RuntimeError) as e:
            logger.error(f"Could not send request to {url}: {e}")
            return None
        logger.info(f"Submitted img2img request to {url}")
        return PendingResponse(task, url)

    async def _post(self, url: str, body: str, headers: dict) -> str:
        await self.ensure_session()
        assert self._session is not None

        try:
            async with self._session.post(
                url, data=body.encode("utf-8"), headers=headers, timeout=self._timeout()
            ) as response:
                return await self._handle_response(response, url)
        except aiohttp.ClientError as e:
            raise NetworkError(0, str(e), url) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(
                0, "Connection timed out, the server took too long to respond", url
            ) from e

    async def fetch_progress(self, auth_header: Optional[str] = None) -> float:
        """Current generation progress in [0, 1] as reported by the server."""
        await self.ensure_session()
        assert self._session is not None

        url = self.settings.progress_url
        headers = {"Authorization": auth_header} if auth_header else {}
        try:
            async with self._session.get(url, headers=headers) as response:
                text = await self._handle_response(response, url)
        except aiohttp.ClientError as e:
            raise NetworkError(0, str(e), url) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(0, "Progress request timed out", url) from e
        try:
            return float(json.loads(text).get("progress", 0.0))
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise NetworkError(0, f"Invalid progress payload: {e}", url) from e

    async def _handle_response(self, response: aiohttp.ClientResponse, url: str) -> str:
        if response.status >= 400:
            text = await response.text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict):
                error = data.get("detail") or data.get("error") or "Network error"
                raise NetworkError(
                    response.status,
                    f"{error} ({response.reason})",
                    url,
                    status=response.status,
                    data=data,
                )
            raise NetworkError(
                response.status,
                f"{text} ({response.reason})",
                url,
                status=response.status,
            )
        return await response.text()

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
