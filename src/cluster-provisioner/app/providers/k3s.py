"""k3s adapter for pre-existing hosts reached over SSH.

There is no cloud API: DNS must be Cloudflare and terraform state lives in
the artifacts bucket credentials the caller supplies.
"""

from __future__ import annotations

import json

from shared.models import StateStoreCredentials, StateStoreDetails

from .base import DNSRecordProvider, ProviderAdapter, ProviderError


class K3sAdapter(ProviderAdapter):
    name = "k3s"

    def native_dns(self) -> DNSRecordProvider:
        raise ProviderError("k3s clusters require dns_provider cloudflare")

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        return StateStoreCredentials(name=self.cluster.state_store_details.name)

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        # Terraform keeps local state on the provisioning host
        name = self.cluster.state_store_details.name
        return StateStoreDetails(name=name, id=name)

    def terraform_env(self) -> dict[str, str]:
        auth = self.cluster.k3s_auth
        return {
            "TF_VAR_servers_private_ips": json.dumps(auth.servers_private_ips),
            "TF_VAR_servers_public_ips": json.dumps(auth.servers_public_ips),
            "TF_VAR_servers_args": json.dumps(auth.servers_args),
            "TF_VAR_ssh_user": auth.ssh_user,
            "TF_VAR_ssh_private_key": auth.ssh_privatekey,
        }
