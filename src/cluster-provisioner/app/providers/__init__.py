"""Cloud provider adapters.

Adapters are looked up by the cluster's cloud provider and built per run.
"""

from collections.abc import Callable

from shared.models import CloudProvider, Cluster

from .akamai import AkamaiAdapter
from .aws import AWSAdapter
from .azure import AzureAdapter
from .base import (
    DanglingResource,
    DNSRecordProvider,
    InfrastructureHandle,
    ProviderAdapter,
    ProviderError,
    TXTRecord,
)
from .civo import CivoAdapter
from .cloudflare import CloudflareDNS
from .digitalocean import DigitaloceanAdapter
from .google import GoogleAdapter
from .k3s import K3sAdapter

ADAPTERS: dict[str, Callable[[Cluster], ProviderAdapter]] = {
    CloudProvider.AKAMAI.value: AkamaiAdapter,
    CloudProvider.AWS.value: AWSAdapter,
    CloudProvider.AZURE.value: AzureAdapter,
    CloudProvider.CIVO.value: CivoAdapter,
    CloudProvider.DIGITALOCEAN.value: DigitaloceanAdapter,
    CloudProvider.GOOGLE.value: GoogleAdapter,
    CloudProvider.K3S.value: K3sAdapter,
}


def get_adapter(cluster: Cluster) -> ProviderAdapter:
    """Build the adapter for the cluster's cloud provider."""
    try:
        factory = ADAPTERS[str(cluster.cloud_provider)]
    except KeyError as e:
        raise ProviderError(f"unsupported cloud provider {cluster.cloud_provider}") from e
    return factory(cluster)


__all__ = [
    "ADAPTERS",
    "AWSAdapter",
    "AkamaiAdapter",
    "AzureAdapter",
    "CivoAdapter",
    "CloudflareDNS",
    "DNSRecordProvider",
    "DanglingResource",
    "DigitaloceanAdapter",
    "GoogleAdapter",
    "InfrastructureHandle",
    "K3sAdapter",
    "ProviderAdapter",
    "ProviderError",
    "TXTRecord",
    "get_adapter",
]
