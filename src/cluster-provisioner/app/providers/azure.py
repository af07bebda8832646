"""Azure adapter: Azure DNS and a storage account container for state.

The Azure SDKs are an optional extra and are imported when the adapter is
built.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from shared.models import Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from .base import DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord

logger = get_logger(__name__)

RESOURCE_GROUP_PATTERN = re.compile(r"/resourceGroups/([^/]+)/", re.IGNORECASE)


class AzureDNS:
    def __init__(self, dns_client: Any):
        self.client = dns_client

    async def _zone(self, zone: str) -> tuple[str, str]:
        zones = await asyncio.to_thread(lambda: list(self.client.zones.list()))
        for dns_zone in zones:
            if dns_zone.name == zone:
                match = RESOURCE_GROUP_PATTERN.search(dns_zone.id)
                if match:
                    return match.group(1), dns_zone.name
        raise ProviderError(f"azure dns zone {zone} not found")

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        resource_group, zone_name = await self._zone(zone)
        record_sets = await asyncio.to_thread(
            lambda: list(self.client.record_sets.list_by_type(resource_group, zone_name, "TXT"))
        )
        records = []
        for record_set in record_sets:
            name = zone if record_set.name == "@" else f"{record_set.name}.{zone}"
            for txt in record_set.txt_records or []:
                records.append(TXTRecord(name=name, value="".join(txt.value)))
        return records

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        resource_group, zone_name = await self._zone(zone)
        await asyncio.to_thread(
            self.client.record_sets.create_or_update,
            resource_group,
            zone_name,
            name.removesuffix(f".{zone}"),
            "TXT",
            {"ttl": ttl, "txt_records": [{"value": [value]}]},
        )


class AzureAdapter(ProviderAdapter):
    name = "azure"

    def __init__(self, cluster: Cluster):
        super().__init__(cluster)
        try:
            from azure.identity import ClientSecretCredential
            from azure.mgmt.dns import DnsManagementClient
            from azure.mgmt.resource import ResourceManagementClient
            from azure.mgmt.storage import StorageManagementClient
        except ImportError as e:
            raise ProviderError("azure support requires the 'azure' extra") from e

        auth = cluster.azure_auth
        credential = ClientSecretCredential(auth.tenant_id, auth.client_id, auth.client_secret)
        self.dns_client = DnsManagementClient(credential, auth.subscription_id)
        self.resource_client = ResourceManagementClient(credential, auth.subscription_id)
        self.storage_client = StorageManagementClient(credential, auth.subscription_id)

    @property
    def resource_group(self) -> str:
        return self.cluster.state_store_details.azure_storage_resource_group or f"kubefirst-{self.cluster.cluster_name}"

    @property
    def storage_account(self) -> str:
        # 3-24 lowercase alphanumerics, globally unique
        raw = f"k1{self.cluster.cluster_name}{self.cluster.cluster_id}"
        return re.sub(r"[^a-z0-9]", "", raw.lower())[:24]

    def native_dns(self) -> DNSRecordProvider:
        return AzureDNS(self.dns_client)

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        keys = await asyncio.to_thread(
            self.storage_client.storage_accounts.list_keys, self.resource_group, self.storage_account
        )
        return StateStoreCredentials(
            access_key_id=self.storage_account,
            secret_access_key=keys.keys[0].value,
            name=self.storage_account,
        )

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        container = self.cluster.state_store_details.name

        def create() -> None:
            self.storage_client.blob_containers.create(
                self.resource_group, self.storage_account, container, {}
            )

        await asyncio.to_thread(create)
        return StateStoreDetails(
            name=container,
            id=self.storage_account,
            hostname=f"{self.storage_account}.blob.core.windows.net",
            azure_storage_resource_group=self.resource_group,
            azure_storage_container_name=container,
        )

    async def prepare(self, config: Any) -> None:
        """Make sure the resource group and storage account holding state exist."""

        def ensure() -> None:
            self.resource_client.resource_groups.create_or_update(
                self.resource_group, {"location": self.cluster.cloud_region}
            )
            self.storage_client.storage_accounts.begin_create(
                self.resource_group,
                self.storage_account,
                {
                    "location": self.cluster.cloud_region,
                    "kind": "StorageV2",
                    "sku": {"name": "Standard_LRS"},
                },
            ).result()

        if not self.cluster.state_store_create_check:
            await asyncio.to_thread(ensure)
            logger.info("Ensured azure state storage account", account=self.storage_account)

    def terraform_env(self) -> dict[str, str]:
        auth = self.cluster.azure_auth
        return {
            "ARM_CLIENT_ID": auth.client_id,
            "ARM_CLIENT_SECRET": auth.client_secret,
            "ARM_TENANT_ID": auth.tenant_id,
            "ARM_SUBSCRIPTION_ID": auth.subscription_id,
            "ARM_ACCESS_KEY": self.cluster.state_store_credentials.secret_access_key,
        }
