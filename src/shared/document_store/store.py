"""Kubernetes Secrets-backed document store.

Each collection lives in exactly one Secret. Reads decode the whole Secret
into a document; writes replace the whole Secret. Replacements carry the
resourceVersion observed at read time so a concurrent writer causes a 409
instead of a lost update, and the mutation is re-applied on a fresh read.
"""

import base64
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from pydantic import BaseModel

from shared.config import StoreSettings
from shared.observability import get_logger

from .codec import flatten, unflatten
from .errors import (
    DocumentConflictError,
    DocumentNotFoundError,
    StoreVersionConflictError,
)

logger = get_logger(__name__)

STORE_LABELS = {"app": "kubefirst", "component": "document-store"}

T = TypeVar("T", bound=BaseModel)


@dataclass
class StoredDocument:
    """A decoded Secret together with the version it was read at."""

    name: str
    content: dict[str, Any]
    resource_version: str | None = None


class SecretDocumentStore:
    """Read/replace whole JSON documents held in Kubernetes Secrets."""

    def __init__(
        self,
        settings: StoreSettings | None = None,
        k8s_client: client.CoreV1Api | None = None,
    ):
        self.settings = settings or StoreSettings()
        self.namespace = self.settings.namespace
        self._k8s_client = k8s_client

    def _get_k8s_client(self) -> client.CoreV1Api:
        """Get or create Kubernetes API client."""
        if self._k8s_client is None:
            try:
                # Try in-cluster config first
                config.load_incluster_config()
            except config.ConfigException:
                # Fall back to kubeconfig
                config.load_kube_config()

            self._k8s_client = client.CoreV1Api()

        return self._k8s_client

    async def read(self, name: str) -> StoredDocument:
        """Read and decode a document.

        Raises:
            DocumentNotFoundError: If the backing Secret does not exist
        """
        k8s = self._get_k8s_client()
        try:
            secret = k8s.read_namespaced_secret(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                raise DocumentNotFoundError(f"secret {self.namespace}/{name} not found") from e
            raise

        flat = {
            key: base64.b64decode(value).decode()
            for key, value in (secret.data or {}).items()
        }
        return StoredDocument(
            name=name,
            content=unflatten(flat),
            resource_version=secret.metadata.resource_version if secret.metadata else None,
        )

    async def write(
        self,
        name: str,
        content: dict[str, Any],
        resource_version: str | None = None,
    ) -> None:
        """Create the Secret, or replace it when a resourceVersion is given.

        Raises:
            StoreVersionConflictError: On 409 (already exists or stale version)
        """
        k8s = self._get_k8s_client()
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=self.namespace,
                labels=STORE_LABELS,
                resource_version=resource_version,
            ),
            type="Opaque",
            data={
                key: base64.b64encode(fragment.encode()).decode()
                for key, fragment in flatten(content).items()
            },
        )

        try:
            if resource_version is None:
                k8s.create_namespaced_secret(namespace=self.namespace, body=secret)
                logger.debug("Created document", secret=name)
            else:
                k8s.replace_namespaced_secret(name=name, namespace=self.namespace, body=secret)
                logger.debug("Replaced document", secret=name)
        except ApiException as e:
            if e.status == 409:
                raise StoreVersionConflictError(f"secret {self.namespace}/{name} changed concurrently") from e
            raise

    async def update(
        self,
        name: str,
        mutate: Callable[[dict[str, Any]], dict[str, Any]],
        default: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Read-modify-write a document, retrying on version conflicts.

        Args:
            name: Secret name
            mutate: Receives the current document and returns the new one.
                It may be called more than once and must not have side effects.
            default: Starting document when the Secret does not exist yet.
                When None a missing Secret raises DocumentNotFoundError.
        """
        attempts = self.settings.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                current = await self.read(name)
            except DocumentNotFoundError:
                if default is None:
                    raise
                current = StoredDocument(name=name, content=dict(default))

            updated = mutate(current.content)
            try:
                await self.write(name, updated, current.resource_version)
                return updated
            except StoreVersionConflictError:
                logger.warning("Document version conflict, retrying", secret=name, attempt=attempt)

        raise StoreVersionConflictError(
            f"gave up updating secret {self.namespace}/{name} after {attempts} attempts"
        )

    async def delete(self, name: str) -> bool:
        """Delete a document.

        Returns:
            True if deleted, False if not found
        """
        k8s = self._get_k8s_client()
        try:
            k8s.delete_namespaced_secret(name=name, namespace=self.namespace)
            logger.info("Deleted document", secret=name)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise


class DocumentCollection(Generic[T]):
    """A list of entities kept under one key of one Secret document.

    Uniqueness of the key attribute is enforced here by scanning the decoded
    list; the store itself knows nothing about entities.
    """

    def __init__(
        self,
        store: SecretDocumentStore,
        secret_name: str,
        model: type[T],
        items_field: str,
        key_attr: str,
        header: dict[str, Any] | None = None,
    ):
        self.store = store
        self.secret_name = secret_name
        self.model = model
        self.items_field = items_field
        self.key_attr = key_attr
        self.header = header or {}

    def _empty(self) -> dict[str, Any]:
        return {**self.header, self.items_field: []}

    def _decode(self, content: dict[str, Any]) -> list[T]:
        return [self.model.model_validate(item) for item in content.get(self.items_field) or []]

    def _encode(self, content: dict[str, Any], items: list[T]) -> dict[str, Any]:
        return {
            **self.header,
            **content,
            self.items_field: [item.model_dump(mode="json") for item in items],
        }

    def _key(self, item: T) -> str:
        return getattr(item, self.key_attr)

    async def exists(self) -> bool:
        try:
            await self.store.read(self.secret_name)
            return True
        except DocumentNotFoundError:
            return False

    async def list(self) -> list[T]:
        """List entities; a missing Secret is an empty collection."""
        try:
            document = await self.store.read(self.secret_name)
        except DocumentNotFoundError:
            return []
        return self._decode(document.content)

    async def get(self, key: str) -> T:
        for item in await self.list():
            if self._key(item) == key:
                return item
        raise DocumentNotFoundError(f"{self.key_attr}={key} not found in {self.secret_name}")

    async def insert(self, entity: T) -> T:
        """Append an entity.

        Raises:
            DocumentConflictError: If an entity with the same key exists
        """
        key = self._key(entity)

        def mutate(content: dict[str, Any]) -> dict[str, Any]:
            items = self._decode(content)
            if any(self._key(item) == key for item in items):
                raise DocumentConflictError(f"{self.key_attr}={key} already exists in {self.secret_name}")
            return self._encode(content, [*items, entity])

        await self.store.update(self.secret_name, mutate, default=self._empty())
        logger.info("Inserted entity", secret=self.secret_name, key=key)
        return entity

    async def update(self, key: str, mutation: Callable[[T], T | None]) -> T:
        """Apply a mutation to one entity and persist the whole collection.

        The mutation may edit the entity in place (returning None) or return
        a replacement.
        """
        result: list[T] = []

        def mutate(content: dict[str, Any]) -> dict[str, Any]:
            items = self._decode(content)
            for index, item in enumerate(items):
                if self._key(item) == key:
                    replacement = mutation(item)
                    items[index] = replacement if replacement is not None else item
                    result[:] = [items[index]]
                    return self._encode(content, items)
            raise DocumentNotFoundError(f"{self.key_attr}={key} not found in {self.secret_name}")

        await self.store.update(self.secret_name, mutate)
        return result[0]

    async def replace(self, entity: T) -> T:
        """Overwrite the stored entity having the same key."""
        return await self.update(self._key(entity), lambda _current: entity)

    async def delete(self, key: str) -> None:
        def mutate(content: dict[str, Any]) -> dict[str, Any]:
            items = self._decode(content)
            remaining = [item for item in items if self._key(item) != key]
            if len(remaining) == len(items):
                raise DocumentNotFoundError(f"{self.key_attr}={key} not found in {self.secret_name}")
            return self._encode(content, remaining)

        await self.store.update(self.secret_name, mutate)
        logger.info("Deleted entity", secret=self.secret_name, key=key)

    async def drop(self) -> bool:
        """Remove the backing Secret entirely."""
        return await self.store.delete(self.secret_name)
