"""DigitalOcean adapter: DNS via the public API, state store in Spaces."""

from __future__ import annotations

import asyncio

import boto3
import httpx
from botocore.exceptions import ClientError

from shared.models import Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from .base import DanglingResource, DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord
from .rest import RestClient

logger = get_logger(__name__)

DIGITALOCEAN_API = "https://api.digitalocean.com/v2"


class DigitaloceanDNS:
    def __init__(self, api: RestClient):
        self.api = api

    async def _records(self, zone: str) -> list[dict]:
        body = await self.api.request(
            "GET", f"/domains/{zone}/records", params={"type": "TXT", "per_page": 200}
        )
        return body.get("domain_records", [])

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        return [
            TXTRecord(name=zone if r["name"] == "@" else f"{r['name']}.{zone}", value=r["data"])
            for r in await self._records(zone)
        ]

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        label = name.removesuffix(f".{zone}")
        payload = {"type": "TXT", "name": label, "data": value, "ttl": ttl}
        for record in await self._records(zone):
            if record["name"] == label:
                await self.api.request("PUT", f"/domains/{zone}/records/{record['id']}", json=payload)
                return
        await self.api.request("POST", f"/domains/{zone}/records", json=payload)


class DigitaloceanAdapter(ProviderAdapter):
    name = "digitalocean"

    def __init__(self, cluster: Cluster, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(cluster)
        self.api = RestClient("digitalocean", DIGITALOCEAN_API, cluster.do_auth.token, transport=transport)

    @property
    def spaces_endpoint(self) -> str:
        return f"https://{self.cluster.cloud_region}.digitaloceanspaces.com"

    def native_dns(self) -> DNSRecordProvider:
        return DigitaloceanDNS(self.api)

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        auth = self.cluster.do_auth
        if not auth.spaces_key or not auth.spaces_secret:
            raise ProviderError("digitalocean spaces_key and spaces_secret are required for the state store")
        return StateStoreCredentials(
            access_key_id=auth.spaces_key,
            secret_access_key=auth.spaces_secret,
            name=self.cluster.state_store_details.name,
        )

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        name = self.cluster.state_store_details.name
        s3 = boto3.client(
            "s3",
            endpoint_url=self.spaces_endpoint,
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            region_name=self.cluster.cloud_region,
        )
        try:
            await asyncio.to_thread(s3.create_bucket, Bucket=name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "BucketAlreadyOwnedByYou":
                raise ProviderError(f"creating spaces bucket {name} failed: {e}") from e
            logger.info("Spaces bucket already exists", bucket=name)
        return StateStoreDetails(
            name=name,
            id=name,
            hostname=self.spaces_endpoint.removeprefix("https://"),
        )

    def terraform_env(self) -> dict[str, str]:
        auth = self.cluster.do_auth
        return {
            "DO_TOKEN": auth.token,
            "TF_VAR_do_token": auth.token,
            "DIGITALOCEAN_TOKEN": auth.token,
            "SPACES_ACCESS_KEY_ID": auth.spaces_key,
            "SPACES_SECRET_ACCESS_KEY": auth.spaces_secret,
        }

    def external_dns_credentials(self) -> dict[str, str]:
        return {"do-token": self.cluster.do_auth.token, **super().external_dns_credentials()}

    async def list_dangling_resources(self, cluster_id: str) -> list[DanglingResource]:
        body = await self.api.request("GET", "/kubernetes/clusters") or {}
        do_cluster = next(
            (c for c in body.get("kubernetes_clusters", []) if c["name"] == self.cluster.cluster_name),
            None,
        )
        if do_cluster is None:
            return []
        resources = await self.api.request(
            "GET",
            f"/kubernetes/clusters/{do_cluster['id']}/destroy_with_associated_resources",
        ) or {}
        return [
            DanglingResource(kind="volume", id=v["id"], name=v.get("name", ""))
            for v in resources.get("volumes", [])
        ]

    async def delete_dangling_resource(self, resource: DanglingResource) -> None:
        if resource.kind != "volume":
            await super().delete_dangling_resource(resource)
        await self.api.request("DELETE", f"/volumes/{resource.id}", allow_not_found=True)
