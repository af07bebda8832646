"""Shared JSON-over-HTTP helper for providers that expose plain REST APIs."""

from __future__ import annotations

from typing import Any

import httpx

from shared.observability import get_logger, provider_call

from .base import ProviderError

logger = get_logger(__name__)


class RestClient:
    """Bearer-token JSON client; every failure surfaces as ProviderError."""

    def __init__(
        self,
        provider: str,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Send a request and decode the JSON body.

        Returns:
            Decoded body, None for empty bodies or an allowed 404
        """
        operation = f"{method} {path}"
        with provider_call(logger, self.provider, operation):
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
                transport=self._transport,
            ) as http:
                try:
                    response = await http.request(method, path, params=params, json=json, data=data)
                except httpx.HTTPError as e:
                    raise ProviderError(f"{self.provider} {operation} failed: {e}") from e

            if response.status_code == 404 and allow_not_found:
                return None
            if response.is_error:
                raise ProviderError(
                    f"{self.provider} {operation} returned HTTP {response.status_code}: {response.text[:200]}"
                )

        if not response.content:
            return None
        return response.json()
