"""Tests for domain liveness validation."""

import time
from unittest.mock import AsyncMock, patch

import dns.exception
import dns.resolver
import pytest

from shared.config import LivenessSettings

from app.providers.base import TXTRecord
from app.services.liveness import DNSResolver, DomainLivenessValidator, LivenessTimeoutError


class FakeDNS:
    def __init__(self, records: list[TXTRecord] | None = None):
        self.records = list(records or [])
        self.upserts: list[tuple[str, str, str, int]] = []

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        return list(self.records)

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        self.upserts.append((zone, name, value, ttl))
        self.records = [r for r in self.records if r.name != name]
        self.records.append(TXTRecord(name=name, value=value))


class FakeResolver:
    """Resolver double that starts answering after ``resolve_after`` lookups."""

    def __init__(self, value: str, resolve_after: int | None = 0, fail_first: bool = False):
        self.value = value
        self.resolve_after = resolve_after
        self.fail_first = fail_first
        self.lookups = 0

    async def lookup_txt(self, name: str) -> list[str]:
        self.lookups += 1
        if self.fail_first and self.lookups == 1:
            raise dns.exception.Timeout()
        if self.resolve_after is not None and self.lookups > self.resolve_after:
            return [f'"{self.value}"']
        return []

    async def lookup_ns(self, domain: str) -> list[str]:
        return ["ns1.example.net", "ns2.example.net"]


@pytest.fixture
def liveness_settings():
    return LivenessSettings(retries=50, interval_seconds=0.01)


class TestDomainLivenessValidator:
    async def test_existing_record_fast_path_is_idempotent(self, liveness_settings):
        record_name = f"{liveness_settings.record_label}.example.com"
        dns_provider = FakeDNS([TXTRecord(name=record_name, value=liveness_settings.record_value)])
        resolver = FakeResolver(liveness_settings.record_value)
        validator = DomainLivenessValidator(liveness_settings, resolver=resolver)

        assert await validator.validate("example.com", dns_provider) is True
        assert await validator.validate("example.com", dns_provider) is True

        assert dns_provider.upserts == []
        assert resolver.lookups == 0

    async def test_second_call_after_creation_takes_fast_path(self, liveness_settings):
        dns_provider = FakeDNS()
        validator = DomainLivenessValidator(liveness_settings, resolver=FakeResolver(liveness_settings.record_value))

        assert await validator.validate("example.com", dns_provider) is True
        assert await validator.validate("example.com", dns_provider) is True

        assert len(dns_provider.upserts) == 1
        assert len(dns_provider.records) == 1

    async def test_creates_record_with_provider_ttl(self, liveness_settings):
        dns_provider = FakeDNS()
        validator = DomainLivenessValidator(liveness_settings, resolver=FakeResolver(liveness_settings.record_value))

        await validator.validate("example.com", dns_provider, ttl=10)

        zone, name, value, ttl = dns_provider.upserts[0]
        assert zone == "example.com"
        assert name == "kubefirst-liveness.example.com"
        assert value == liveness_settings.record_value
        assert ttl == 10

    async def test_resolves_after_a_few_attempts(self, liveness_settings):
        resolver = FakeResolver(liveness_settings.record_value, resolve_after=2, fail_first=True)
        validator = DomainLivenessValidator(liveness_settings, resolver=resolver)

        assert await validator.validate("example.com", FakeDNS()) is True
        assert resolver.lookups == 3

    async def test_times_out_within_bound(self):
        settings = LivenessSettings(retries=3, interval_seconds=0.05)
        resolver = FakeResolver(settings.record_value, resolve_after=None)
        validator = DomainLivenessValidator(settings, resolver=resolver)

        start = time.monotonic()
        with pytest.raises(LivenessTimeoutError, match="timed out waiting for domain check"):
            await validator.validate("example.com", FakeDNS())
        elapsed = time.monotonic() - start

        assert elapsed < settings.retries * settings.interval_seconds + 1.0

    async def test_failure_message_lists_nameservers(self, liveness_settings):
        validator = DomainLivenessValidator(liveness_settings, resolver=FakeResolver("x"))

        message = await validator.failure_message("example.com")

        assert "example.com" in message
        assert "ns1.example.net" in message


class TestDNSResolver:
    async def test_falls_back_to_public_resolver(self):
        resolver = DNSResolver(fallback_nameserver="9.9.9.9")
        calls = []

        async def fake_txt(name, nameserver):
            calls.append(nameserver)
            if nameserver is None:
                raise dns.resolver.NXDOMAIN()
            return ["value"]

        with patch.object(resolver, "_txt", side_effect=fake_txt):
            assert await resolver.lookup_txt("kubefirst-liveness.example.com") == ["value"]

        assert calls == [None, "9.9.9.9"]

    async def test_both_resolvers_failing_raises(self):
        resolver = DNSResolver()

        with patch.object(resolver, "_txt", AsyncMock(side_effect=dns.exception.Timeout())):
            with pytest.raises(dns.exception.DNSException):
                await resolver.lookup_txt("kubefirst-liveness.example.com")
