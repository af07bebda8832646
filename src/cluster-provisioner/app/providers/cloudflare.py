"""Cloudflare DNS, usable with any cloud when ``dns_provider=cloudflare``."""

from __future__ import annotations

import httpx

from .base import ProviderError, TXTRecord
from .rest import RestClient

CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"


class CloudflareDNS:
    def __init__(self, api_token: str, transport: httpx.AsyncBaseTransport | None = None):
        self.api = RestClient("cloudflare", CLOUDFLARE_API, api_token, transport=transport)

    async def _zone_id(self, zone: str) -> str:
        body = await self.api.request("GET", "/zones", params={"name": zone})
        results = body.get("result") or []
        if not results:
            raise ProviderError(f"cloudflare zone {zone} not found")
        return results[0]["id"]

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        zone_id = await self._zone_id(zone)
        body = await self.api.request(
            "GET", f"/zones/{zone_id}/dns_records", params={"type": "TXT", "per_page": 500}
        )
        return [TXTRecord(name=r["name"], value=r["content"]) for r in body.get("result") or []]

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        zone_id = await self._zone_id(zone)
        payload = {"type": "TXT", "name": name, "content": value, "ttl": ttl}
        body = await self.api.request(
            "GET", f"/zones/{zone_id}/dns_records", params={"type": "TXT", "name": name}
        )
        existing = body.get("result") or []
        if existing:
            await self.api.request("PUT", f"/zones/{zone_id}/dns_records/{existing[0]['id']}", json=payload)
        else:
            await self.api.request("POST", f"/zones/{zone_id}/dns_records", json=payload)
