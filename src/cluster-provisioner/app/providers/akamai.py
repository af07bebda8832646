"""Akamai (Linode) adapter: Linode DNS and object storage."""

from __future__ import annotations

import httpx

from shared.models import Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from .base import DanglingResource, DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord
from .rest import RestClient

logger = get_logger(__name__)

LINODE_API = "https://api.linode.com/v4"


class LinodeDNS:
    def __init__(self, api: RestClient):
        self.api = api

    async def _domain_id(self, zone: str) -> int:
        body = await self.api.request("GET", "/domains", params={"page_size": 500})
        for domain in body.get("data", []):
            if domain["domain"] == zone:
                return domain["id"]
        raise ProviderError(f"linode domain {zone} not found")

    async def _records(self, domain_id: int) -> list[dict]:
        body = await self.api.request("GET", f"/domains/{domain_id}/records", params={"page_size": 500})
        return [r for r in body.get("data", []) if r["type"] == "TXT"]

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        domain_id = await self._domain_id(zone)
        return [
            TXTRecord(name=f"{r['name']}.{zone}" if r["name"] else zone, value=r["target"])
            for r in await self._records(domain_id)
        ]

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        domain_id = await self._domain_id(zone)
        label = name.removesuffix(f".{zone}")
        payload = {"type": "TXT", "name": label, "target": value, "ttl_sec": ttl}
        for record in await self._records(domain_id):
            if record["name"] == label:
                await self.api.request("PUT", f"/domains/{domain_id}/records/{record['id']}", json=payload)
                return
        await self.api.request("POST", f"/domains/{domain_id}/records", json=payload)


class AkamaiAdapter(ProviderAdapter):
    name = "akamai"

    def __init__(self, cluster: Cluster, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(cluster)
        self.api = RestClient("akamai", LINODE_API, cluster.akamai_auth.token, transport=transport)

    @property
    def object_storage_cluster(self) -> str:
        return f"{self.cluster.cloud_region}-1"

    def native_dns(self) -> DNSRecordProvider:
        return LinodeDNS(self.api)

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        name = self.cluster.state_store_details.name
        key = await self.api.request("POST", "/object-storage/keys", json={"label": name})
        return StateStoreCredentials(
            access_key_id=key["access_key"],
            secret_access_key=key["secret_key"],
            name=key["label"],
            id=str(key["id"]),
        )

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        name = self.cluster.state_store_details.name
        bucket = await self.api.request(
            "POST",
            "/object-storage/buckets",
            json={"label": name, "cluster": self.object_storage_cluster},
        )
        return StateStoreDetails(
            name=bucket["label"],
            id=bucket["label"],
            hostname=bucket.get("hostname", f"{self.object_storage_cluster}.linodeobjects.com"),
        )

    def terraform_env(self) -> dict[str, str]:
        return {
            "LINODE_TOKEN": self.cluster.akamai_auth.token,
            "TF_VAR_linode_token": self.cluster.akamai_auth.token,
        }

    def external_dns_credentials(self) -> dict[str, str]:
        return {"linode-token": self.cluster.akamai_auth.token, **super().external_dns_credentials()}

    async def list_dangling_resources(self, cluster_id: str) -> list[DanglingResource]:
        """Block storage volumes created for the LKE cluster's volume claims."""
        clusters = await self.api.request("GET", "/lke/clusters") or {}
        lke = next((c for c in clusters.get("data", []) if c["label"] == self.cluster.cluster_name), None)
        if lke is None:
            return []
        volumes = await self.api.request("GET", "/volumes", params={"page_size": 500}) or {}
        tag = f"lke{lke['id']}"
        return [
            DanglingResource(kind="volume", id=str(v["id"]), name=v["label"], region=v.get("region", ""))
            for v in volumes.get("data", [])
            if tag in (v.get("tags") or [])
        ]

    async def delete_dangling_resource(self, resource: DanglingResource) -> None:
        if resource.kind != "volume":
            await super().delete_dangling_resource(resource)
        await self.api.request("DELETE", f"/volumes/{resource.id}", allow_not_found=True)
