"""Vault initialization and secret writes through a local port-forward."""

from __future__ import annotations

from typing import Any

import httpx

from shared.observability import get_logger

logger = get_logger(__name__)

VAULT_NAMESPACE = "vault"
VAULT_UNSEAL_SECRET = "vault-unseal-secret"
VAULT_POD = "pod/vault-0"


class VaultError(Exception):
    """Raised when a Vault API call fails."""

    pass


class VaultClient:
    def __init__(
        self,
        address: str,
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.address = address.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"X-Vault-Token": self.token} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.address,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def is_initialized(self) -> bool:
        async with self._client() as http:
            try:
                response = await http.get("/v1/sys/init")
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise VaultError(f"vault init status failed: {e}") from e
        return bool(response.json().get("initialized"))

    async def initialize(self, recovery_shares: int = 5, recovery_threshold: int = 3) -> dict[str, Any]:
        """Initialize an auto-unsealing Vault.

        Returns:
            Raw init response with ``root_token`` and ``recovery_keys``
        """
        payload = {"recovery_shares": recovery_shares, "recovery_threshold": recovery_threshold}
        async with self._client() as http:
            try:
                response = await http.put("/v1/sys/init", json=payload)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise VaultError(f"vault initialization failed: {e}") from e
        logger.info("Vault initialized")
        return response.json()

    async def kv_put(self, path: str, data: dict[str, str], mount: str = "secret") -> None:
        async with self._client() as http:
            try:
                response = await http.post(f"/v1/{mount}/data/{path}", json={"data": data})
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise VaultError(f"writing vault secret {mount}/{path} failed: {e}") from e
        logger.info("Wrote vault secret", path=f"{mount}/{path}")


def unseal_secret_data(init_response: dict[str, Any]) -> dict[str, str]:
    """Shape an init response into the vault-unseal-secret layout."""
    data = {"root-token": init_response["root_token"]}
    keys = init_response.get("recovery_keys") or init_response.get("keys") or []
    for index, key in enumerate(keys, start=1):
        data[f"root-unseal-key-{index}"] = key
    return data
