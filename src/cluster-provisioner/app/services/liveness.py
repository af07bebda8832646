"""Domain liveness validation.

Proves the caller controls a domain and that its DNS is publicly served:
a well-known TXT record is created through the provider's DNS API and then
polled through public resolution until it appears or a deadline passes.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import dns.asyncresolver
import dns.exception
import dns.resolver

from shared.config import LivenessSettings
from shared.observability import get_logger

if TYPE_CHECKING:
    from ..providers.base import DNSRecordProvider

logger = get_logger(__name__)


class LivenessTimeoutError(Exception):
    """Raised when the check record never became resolvable."""

    def __init__(self, message: str = "timed out waiting for domain check"):
        super().__init__(message)


class DomainLivenessError(Exception):
    """Raised by the pipeline phase with an operator-facing description."""

    pass


class DNSResolver:
    """TXT/NS lookups via the host resolver with a public fallback."""

    def __init__(self, fallback_nameserver: str = "8.8.8.8", lifetime: float = 5.0):
        self.fallback_nameserver = fallback_nameserver
        self.lifetime = lifetime

    async def lookup_txt(self, name: str) -> list[str]:
        """Resolve TXT values, retrying once via the fallback nameserver.

        Raises:
            dns.exception.DNSException: If both resolvers fail
        """
        try:
            return await self._txt(name, nameserver=None)
        except dns.exception.DNSException as e:
            logger.debug("Host resolver lookup failed, using fallback", name=name, error=str(e))
            return await self._txt(name, nameserver=self.fallback_nameserver)

    async def lookup_ns(self, domain: str) -> list[str]:
        try:
            answer = await self._resolver(None).resolve(domain, "NS")
        except dns.exception.DNSException:
            return []
        return [rdata.to_text().rstrip(".") for rdata in answer]

    async def _txt(self, name: str, nameserver: str | None) -> list[str]:
        answer = await self._resolver(nameserver).resolve(name, "TXT")
        return [b"".join(rdata.strings).decode() for rdata in answer]

    def _resolver(self, nameserver: str | None) -> dns.asyncresolver.Resolver:
        if nameserver is None:
            resolver = dns.asyncresolver.Resolver()
        else:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = [nameserver]
        resolver.lifetime = self.lifetime
        return resolver


class DomainLivenessValidator:
    """Ensure the liveness TXT record exists and resolves publicly."""

    def __init__(
        self,
        settings: LivenessSettings | None = None,
        resolver: DNSResolver | None = None,
    ):
        self.settings = settings or LivenessSettings()
        self.resolver = resolver or DNSResolver(self.settings.fallback_resolver)

    def record_name(self, domain: str) -> str:
        return f"{self.settings.record_label}.{domain}"

    @property
    def timeout_seconds(self) -> float:
        return self.settings.retries * self.settings.interval_seconds

    async def validate(self, domain: str, dns_provider: DNSRecordProvider, ttl: int | None = None) -> bool:
        """Return True once the record is confirmed.

        Raises:
            LivenessTimeoutError: If the record did not resolve within
                retries x interval
        """
        record_name = self.record_name(domain)

        existing = await dns_provider.list_txt_records(domain)
        for record in existing:
            if record.name.rstrip(".") == record_name and record.value.strip('"') == self.settings.record_value:
                logger.info("Domain liveness record already present", domain=domain, record=record_name)
                return True

        await dns_provider.upsert_txt_record(
            domain,
            record_name,
            self.settings.record_value,
            ttl or self.settings.ttl,
        )
        logger.info("Created domain liveness record", domain=domain, record=record_name)

        return await self._await_propagation(record_name)

    async def _await_propagation(self, record_name: str) -> bool:
        found: asyncio.Queue[bool] = asyncio.Queue(maxsize=1)
        poller = asyncio.create_task(self._poll(record_name, found))
        try:
            await asyncio.wait_for(found.get(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Domain liveness check timed out", record=record_name, timeout=self.timeout_seconds)
            raise LivenessTimeoutError()
        finally:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller

        logger.info("Domain liveness record resolved", record=record_name)
        return True

    async def _poll(self, record_name: str, found: asyncio.Queue[bool]) -> None:
        for attempt in range(1, self.settings.retries + 1):
            try:
                values = await self.resolver.lookup_txt(record_name)
            except dns.exception.DNSException as e:
                logger.debug("Liveness lookup failed", record=record_name, attempt=attempt, error=str(e))
            else:
                if self.settings.record_value in (v.strip('"') for v in values):
                    found.put_nowait(True)
                    return
                logger.debug("Liveness record not yet visible", record=record_name, attempt=attempt)
            await asyncio.sleep(self.settings.interval_seconds)

    async def failure_message(self, domain: str) -> str:
        """Describe a failed check, including the zone's nameservers if known."""
        message = f"failed to verify domain liveness for domain {domain}"
        nameservers = await self.resolver.lookup_ns(domain)
        if nameservers:
            message += (
                f" - last result: {', '.join(nameservers)}"
                " - it may be necessary to wait for propagation"
            )
        return message
