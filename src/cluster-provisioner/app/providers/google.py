"""Google Cloud adapter: Cloud DNS and a GCS state bucket.

The Google SDKs are an optional extra and are imported when the adapter is
built.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from shared.models import Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from .base import DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord

if TYPE_CHECKING:
    from ..pipeline.config import ProviderConfig

logger = get_logger(__name__)


class GoogleDNS:
    def __init__(self, dns_client: Any):
        self.client = dns_client

    async def _zone(self, zone: str) -> Any:
        zones = await asyncio.to_thread(lambda: list(self.client.list_zones()))
        for managed_zone in zones:
            if managed_zone.dns_name.rstrip(".") == zone:
                return managed_zone
        raise ProviderError(f"google cloud dns zone {zone} not found")

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        managed_zone = await self._zone(zone)
        record_sets = await asyncio.to_thread(lambda: list(managed_zone.list_resource_record_sets()))
        return [
            TXTRecord(name=rs.name.rstrip("."), value=value.strip('"'))
            for rs in record_sets
            if rs.record_type == "TXT"
            for value in rs.rrdatas
        ]

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        managed_zone = await self._zone(zone)
        fqdn = f"{name}."

        def apply() -> None:
            changes = managed_zone.changes()
            for existing in managed_zone.list_resource_record_sets():
                if existing.name == fqdn and existing.record_type == "TXT":
                    changes.delete_record_set(existing)
            changes.add_record_set(managed_zone.resource_record_set(fqdn, "TXT", ttl, [f'"{value}"']))
            changes.create()

        await asyncio.to_thread(apply)


class GoogleAdapter(ProviderAdapter):
    name = "google"
    auto_unseal = True

    def __init__(self, cluster: Cluster):
        super().__init__(cluster)
        try:
            from google.cloud import dns, storage
            from google.oauth2 import service_account
        except ImportError as e:
            raise ProviderError("google support requires the 'google' extra") from e

        auth = cluster.google_auth
        try:
            self.credentials = service_account.Credentials.from_service_account_info(json.loads(auth.key_file))
        except (ValueError, KeyError) as e:
            raise ProviderError(f"invalid google service account key: {e}") from e
        self.dns_client = dns.Client(project=auth.project_id, credentials=self.credentials)
        self.storage_client = storage.Client(project=auth.project_id, credentials=self.credentials)
        self._key_path: str = ""

    def native_dns(self) -> DNSRecordProvider:
        return GoogleDNS(self.dns_client)

    async def prepare(self, config: ProviderConfig) -> None:
        # Terraform's google provider reads credentials from a file
        key_path = config.cluster_dir / "google-credentials.json"
        key_path.parent.mkdir(parents=True, exist_ok=True)
        key_path.write_text(self.cluster.google_auth.key_file)
        key_path.chmod(0o600)
        self._key_path = str(key_path)

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        # The service account itself writes state; no separate key pair
        return StateStoreCredentials(name=self.cluster.state_store_details.name)

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        name = self.cluster.state_store_details.name

        def create() -> Any:
            bucket = self.storage_client.lookup_bucket(name)
            if bucket is None:
                bucket = self.storage_client.create_bucket(name, location=self.cluster.cloud_region)
            return bucket

        bucket = await asyncio.to_thread(create)
        return StateStoreDetails(name=bucket.name, id=bucket.id or bucket.name, hostname="storage.googleapis.com")

    def terraform_env(self) -> dict[str, str]:
        return {
            "GOOGLE_APPLICATION_CREDENTIALS": self._key_path,
            "TF_VAR_project": self.cluster.google_auth.project_id,
            "TF_VAR_google_region": self.cluster.cloud_region,
        }
