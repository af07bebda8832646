"""Civo adapter: DNS, object store state bucket and volume cleanup."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx

from shared.models import Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from .base import DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord
from .rest import RestClient

if TYPE_CHECKING:
    from ..pipeline.config import ProviderConfig

logger = get_logger(__name__)

CIVO_API = "https://api.civo.com/v2"


class CivoDNS:
    def __init__(self, api: RestClient):
        self.api = api

    async def _domain_id(self, zone: str) -> str:
        for domain in await self.api.request("GET", "/dns") or []:
            if domain["name"] == zone:
                return domain["id"]
        raise ProviderError(f"civo dns domain {zone} not found")

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        domain_id = await self._domain_id(zone)
        records = await self.api.request("GET", f"/dns/{domain_id}/records") or []
        return [
            TXTRecord(name=f"{r['name']}.{zone}" if r["name"] else zone, value=r["value"])
            for r in records
            if r.get("type", "").upper() == "TXT"
        ]

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        domain_id = await self._domain_id(zone)
        label = name.removesuffix(f".{zone}")
        records = await self.api.request("GET", f"/dns/{domain_id}/records") or []
        payload = {"type": "TXT", "name": label, "value": value, "ttl": ttl}
        for record in records:
            if record.get("type", "").upper() == "TXT" and record["name"] == label:
                await self.api.request("PUT", f"/dns/{domain_id}/records/{record['id']}", data=payload)
                return
        await self.api.request("POST", f"/dns/{domain_id}/records", data=payload)


class CivoAdapter(ProviderAdapter):
    name = "civo"
    # Object store credentials are provisioned asynchronously by Civo
    credential_attempts = 12
    credential_poll_interval = 10.0

    def __init__(self, cluster: Cluster, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(cluster)
        self.api = RestClient("civo", CIVO_API, cluster.civo_auth.token, transport=transport)

    def _region(self) -> dict[str, str]:
        return {"region": self.cluster.cloud_region}

    def native_dns(self) -> DNSRecordProvider:
        return CivoDNS(self.api)

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        name = self.cluster.state_store_details.name
        body = await self.api.request("GET", "/objectstore/credentials", params=self._region()) or {}
        for item in body.get("items", []):
            if item["name"] == name:
                credential_id = item["id"]
                break
        else:
            created = await self.api.request(
                "POST", "/objectstore/credentials", json={"name": name, **self._region()}
            )
            credential_id = created["id"]
            logger.info("Created civo object store credential", credential=name)

        for attempt in range(1, self.credential_attempts + 1):
            creds = await self.api.request(
                "GET", f"/objectstore/credentials/{credential_id}", params=self._region()
            )
            if creds.get("access_key_id") and creds.get("secret_access_key_id"):
                return StateStoreCredentials(
                    access_key_id=creds["access_key_id"],
                    secret_access_key=creds["secret_access_key_id"],
                    name=creds["name"],
                    id=creds["id"],
                )
            logger.warning("Waiting for civo credential creation", attempt=attempt)
            await asyncio.sleep(self.credential_poll_interval)
        raise ProviderError(f"civo object store credential {name} could not be fetched")

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        name = self.cluster.state_store_details.name
        bucket = await self.api.request(
            "POST",
            "/objectstores",
            json={
                "name": name,
                "access_key_id": credentials.access_key_id,
                "max_size_gb": 500,
                **self._region(),
            },
        )
        return StateStoreDetails(
            name=bucket.get("name", name),
            id=bucket["id"],
            hostname=bucket.get("bucket_url", f"objectstore.{self.cluster.cloud_region.lower()}.civo.com"),
        )

    def terraform_env(self) -> dict[str, str]:
        return {
            "CIVO_TOKEN": self.cluster.civo_auth.token,
            "TF_VAR_civo_token": self.cluster.civo_auth.token,
        }

    def external_dns_credentials(self) -> dict[str, str]:
        return {"civo-token": self.cluster.civo_auth.token, **super().external_dns_credentials()}

    async def before_cloud_destroy(self, config: ProviderConfig) -> None:
        """Delete volumes left behind by the cluster's persistent volume claims."""
        body = await self.api.request("GET", "/kubernetes/clusters", params=self._region()) or {}
        cluster_id = next(
            (c["id"] for c in body.get("items", []) if c["name"] == self.cluster.cluster_name),
            None,
        )
        if cluster_id is None:
            logger.warning("Civo kubernetes cluster not found, skipping volume cleanup")
            return
        volumes = await self.api.request("GET", "/volumes", params=self._region()) or []
        for volume in volumes:
            if volume.get("cluster_id") != cluster_id:
                continue
            logger.info("Removing volume", volume=volume["name"])
            await self.api.request("DELETE", f"/volumes/{volume['id']}", params=self._region())
