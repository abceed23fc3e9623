"""Timed HTTP GET transport for the device's plain-text API."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import requests

from ..errors import CommandFailed

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class DeviceTransport:
    """
    Issue one GET per call against ``{endpoint}{path}``.

    The blocking ``requests`` call runs in the loop's default executor and is
    bounded twice: by the socket timeout handed to ``requests`` and by
    ``asyncio.wait_for`` so the awaiting coroutine is released on time even if
    the socket lingers. No retries happen here.
    """

    def __init__(self, *, default_timeout: float = 3.0, session: Optional[requests.Session] = None) -> None:
        self._default_timeout = default_timeout
        self._session = session or requests.Session()

    async def get(self, endpoint: str, path: str, *, timeout: Optional[float] = None) -> str:
        url = f"{endpoint.rstrip('/')}{path}"
        limit = timeout if timeout is not None else self._default_timeout
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self._fetch, url, limit, path),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            logger.debug("GET %s timed out after %.1fs", url, limit)
            raise CommandFailed(path, "timeout", detail=url) from None

    def close(self) -> None:
        self._session.close()

    def _fetch(self, url: str, timeout: float, path: str) -> str:
        try:
            response = self._session.get(url, headers=dict(NO_CACHE_HEADERS), timeout=timeout)
        except requests.exceptions.Timeout as exc:
            raise CommandFailed(path, "timeout", detail=str(exc)) from exc
        except requests.exceptions.RequestException as exc:
            raise CommandFailed(path, "network", detail=str(exc)) from exc
        if not response.ok:
            raise CommandFailed(path, "status", status=response.status_code, detail=response.text[:200])
        return response.text
