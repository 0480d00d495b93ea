import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from loro.adapters.base import BaseUpstreamAdapter, auth_headers
from loro.adapters.dialects import adapter_for_url
from loro.errors import ApiError, HttpClientError, JsonParseError, UpstreamTimeout

logger = logging.getLogger("loro.upstream")


class UpstreamClient:
    """
    One configured model backend (small or large).

    Each method performs a single attempt and maps httpx failures onto the
    gateway's error taxonomy; retries are layered on top by the caller.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str,
        model_name: str,
        http: httpx.AsyncClient,
        timeout_secs: float,
        adapter: Optional[BaseUpstreamAdapter] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.http = http
        self.timeout_secs = timeout_secs
        self.adapter = adapter or adapter_for_url(self.base_url)
        self.url = self.adapter.endpoint(self.base_url)
        self._headers = auth_headers(api_key)

    async def post_json(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Non-streaming call bounded by this backend's timeout."""
        try:
            resp = await asyncio.wait_for(
                self.http.post(self.url, json=body, headers=self._headers, timeout=self.timeout_secs),
                timeout=self.timeout_secs,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise UpstreamTimeout(self.timeout_secs)
        except httpx.TransportError as e:
            raise HttpClientError(repr(e), provider=self.name) from e

        if resp.status_code >= 400:
            raise ApiError(self.name, resp.status_code, resp.text[:500])
        try:
            data = resp.json()
        except ValueError as e:
            raise JsonParseError(f"Failed to parse {self.name} model response: {e}") from e
        if not isinstance(data, dict):
            raise JsonParseError(f"Unexpected {self.name} model response shape")
        return data

    async def open_stream(self, body: Dict[str, Any]) -> httpx.Response:
        """
        Send a streaming request and return the open response once the
        status is known. The caller owns the response and must close it.
        """
        request = self.http.build_request("POST", self.url, json=body, headers=self._headers)
        try:
            resp = await self.http.send(request, stream=True)
        except httpx.TimeoutException:
            raise UpstreamTimeout(self.timeout_secs)
        except httpx.TransportError as e:
            raise HttpClientError(repr(e), provider=self.name) from e

        if resp.status_code >= 400:
            try:
                await resp.aread()
                detail = resp.text[:500]
            except httpx.HTTPError:
                detail = ""
            finally:
                await resp.aclose()
            raise ApiError(self.name, resp.status_code, detail)

        logger.debug(f"[Upstream] {self.name} stream opened ({self.adapter.dialect.value}) {self.url}")
        return resp
