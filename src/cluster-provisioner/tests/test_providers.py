"""Tests for provider adapters and their DNS capabilities."""

import json

import httpx
import pytest

from shared.models import CloudflareAuth, DigitaloceanAuth

from app.pipeline import ProviderConfig, initialize_cluster
from app.providers import (
    ADAPTERS,
    CivoAdapter,
    CloudflareDNS,
    DanglingResource,
    DigitaloceanAdapter,
    K3sAdapter,
    ProviderError,
    get_adapter,
)
from app.providers.rest import RestClient


class RecordingAPI:
    """MockTransport handler that serves canned routes and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "not found"})
        status, body = handler
        return httpx.Response(status, json=body)

    def sent(self, method):
        return [r for r in self.requests if r.method == method]


@pytest.fixture
def civo_cluster(civo_definition, settings):
    return initialize_cluster(civo_definition, None, settings.pipeline)


class TestRestClient:
    async def test_error_status_raises_provider_error(self):
        api = RecordingAPI({("GET", "/v2/things"): (500, {"message": "internal"})})
        client = RestClient("civo", "https://api.example.com/v2", "token", transport=httpx.MockTransport(api))

        with pytest.raises(ProviderError, match="HTTP 500"):
            await client.request("GET", "/things")

    async def test_allow_not_found_returns_none(self):
        api = RecordingAPI({})
        client = RestClient("civo", "https://api.example.com/v2", "token", transport=httpx.MockTransport(api))

        assert await client.request("DELETE", "/volumes/1", allow_not_found=True) is None
        with pytest.raises(ProviderError):
            await client.request("DELETE", "/volumes/1")

    async def test_sends_bearer_token(self):
        api = RecordingAPI({("GET", "/v2/things"): (200, {"ok": True})})
        client = RestClient("civo", "https://api.example.com/v2", "secret", transport=httpx.MockTransport(api))

        assert await client.request("GET", "/things") == {"ok": True}
        assert api.requests[0].headers["Authorization"] == "Bearer secret"


class TestCivoDNS:
    async def test_creates_missing_txt_record(self, civo_cluster):
        api = RecordingAPI(
            {
                ("GET", "/v2/dns"): (200, [{"id": "dom-1", "name": "example.com"}]),
                ("GET", "/v2/dns/dom-1/records"): (200, [{"id": "r1", "type": "A", "name": "www", "value": "1.2.3.4"}]),
                ("POST", "/v2/dns/dom-1/records"): (200, {"id": "r2"}),
            }
        )
        dns = CivoAdapter(civo_cluster, transport=httpx.MockTransport(api)).dns()

        assert await dns.list_txt_records("example.com") == []
        await dns.upsert_txt_record("example.com", "kubefirst-liveness.example.com", "domain record propagated", 600)

        posted = api.sent("POST")[0]
        assert b"name=kubefirst-liveness" in posted.content
        assert b"type=TXT" in posted.content

    async def test_updates_existing_txt_record(self, civo_cluster):
        api = RecordingAPI(
            {
                ("GET", "/v2/dns"): (200, [{"id": "dom-1", "name": "example.com"}]),
                ("GET", "/v2/dns/dom-1/records"): (
                    200,
                    [{"id": "r1", "type": "txt", "name": "kubefirst-liveness", "value": "old"}],
                ),
                ("PUT", "/v2/dns/dom-1/records/r1"): (200, {"id": "r1"}),
            }
        )
        dns = CivoAdapter(civo_cluster, transport=httpx.MockTransport(api)).dns()

        records = await dns.list_txt_records("example.com")
        await dns.upsert_txt_record("example.com", "kubefirst-liveness.example.com", "new", 600)

        assert [r.name for r in records] == ["kubefirst-liveness.example.com"]
        assert len(api.sent("PUT")) == 1
        assert api.sent("POST") == []

    async def test_unknown_zone(self, civo_cluster):
        api = RecordingAPI({("GET", "/v2/dns"): (200, [])})
        dns = CivoAdapter(civo_cluster, transport=httpx.MockTransport(api)).dns()

        with pytest.raises(ProviderError, match="not found"):
            await dns.list_txt_records("example.com")


class TestCloudflareDNS:
    async def test_upsert_posts_new_record(self):
        api = RecordingAPI(
            {
                ("GET", "/client/v4/zones"): (200, {"result": [{"id": "zone-1"}]}),
                ("GET", "/client/v4/zones/zone-1/dns_records"): (200, {"result": []}),
                ("POST", "/client/v4/zones/zone-1/dns_records"): (200, {"result": {"id": "rec-1"}}),
            }
        )
        dns = CloudflareDNS("cf-token", transport=httpx.MockTransport(api))

        await dns.upsert_txt_record("example.com", "kubefirst-liveness.example.com", "value", 600)

        body = json.loads(api.sent("POST")[0].content)
        assert body == {"type": "TXT", "name": "kubefirst-liveness.example.com", "content": "value", "ttl": 600}

    async def test_adapter_prefers_cloudflare_when_configured(self, civo_cluster):
        civo_cluster.dns_provider = "cloudflare"
        civo_cluster.cloudflare_auth = CloudflareAuth(api_token="cf-token")

        adapter = CivoAdapter(civo_cluster)

        assert isinstance(adapter.dns(), CloudflareDNS)
        assert adapter.external_dns_credentials()["cf-api-token"] == "cf-token"


class TestCivoAdapter:
    async def test_before_destroy_removes_cluster_volumes(self, civo_cluster, settings):
        api = RecordingAPI(
            {
                ("GET", "/v2/kubernetes/clusters"): (200, {"items": [{"id": "k8s-1", "name": "kf-civo"}]}),
                ("GET", "/v2/volumes"): (
                    200,
                    [
                        {"id": "vol-1", "name": "pvc-1", "cluster_id": "k8s-1"},
                        {"id": "vol-2", "name": "other", "cluster_id": "k8s-9"},
                    ],
                ),
                ("DELETE", "/v2/volumes/vol-1"): (200, {"result": "success"}),
            }
        )
        adapter = CivoAdapter(civo_cluster, transport=httpx.MockTransport(api))

        await adapter.before_cloud_destroy(ProviderConfig.from_cluster(civo_cluster, settings.pipeline))

        assert [r.url.path for r in api.sent("DELETE")] == ["/v2/volumes/vol-1"]

    def test_terraform_env_carries_token(self, civo_cluster):
        env = CivoAdapter(civo_cluster).terraform_env()

        assert env["CIVO_TOKEN"] == "civo-token"
        assert env["TF_VAR_civo_token"] == "civo-token"


class TestDigitaloceanAdapter:
    async def test_lists_and_deletes_dangling_volumes(self, civo_cluster):
        civo_cluster.cloud_provider = "digitalocean"
        civo_cluster.do_auth = DigitaloceanAuth(token="do-token")
        api = RecordingAPI(
            {
                ("GET", "/v2/kubernetes/clusters"): (
                    200,
                    {"kubernetes_clusters": [{"id": "do-1", "name": "kf-civo"}]},
                ),
                ("GET", "/v2/kubernetes/clusters/do-1/destroy_with_associated_resources"): (
                    200,
                    {"volumes": [{"id": "v-1", "name": "pvc-data"}]},
                ),
            }
        )
        adapter = DigitaloceanAdapter(civo_cluster, transport=httpx.MockTransport(api))

        dangling = await adapter.list_dangling_resources(civo_cluster.cluster_id)
        assert dangling == [DanglingResource(kind="volume", id="v-1", name="pvc-data")]

        # Already gone volumes are tolerated
        await adapter.delete_dangling_resource(dangling[0])

    async def test_unknown_resource_kind_rejected(self, civo_cluster):
        civo_cluster.do_auth = DigitaloceanAuth(token="do-token")
        adapter = DigitaloceanAdapter(civo_cluster, transport=httpx.MockTransport(RecordingAPI({})))

        with pytest.raises(ProviderError):
            await adapter.delete_dangling_resource(DanglingResource(kind="load_balancer", id="lb-1"))


class TestAdapterLookup:
    def test_every_cloud_has_an_adapter(self):
        assert set(ADAPTERS) == {"akamai", "aws", "azure", "civo", "digitalocean", "google", "k3s"}

    def test_get_adapter_builds_by_cloud(self, civo_cluster):
        assert isinstance(get_adapter(civo_cluster), CivoAdapter)

    def test_k3s_requires_cloudflare(self, civo_cluster):
        civo_cluster.cloud_provider = "k3s"
        adapter = K3sAdapter(civo_cluster)

        with pytest.raises(ProviderError, match="cloudflare"):
            adapter.dns()
