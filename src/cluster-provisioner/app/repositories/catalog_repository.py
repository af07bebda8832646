"""Gitops catalog repository."""

from __future__ import annotations

from pathlib import Path

import yaml

from shared.document_store import DocumentCollection, DocumentNotFoundError, SecretDocumentStore
from shared.models import GitopsCatalogApp, GitopsCatalogApps
from shared.observability import get_logger

logger = get_logger(__name__)

CATALOG_SECRET = "kubefirst-catalog"


class CatalogAppNotFoundError(Exception):
    """Raised when a catalog app is not found."""

    pass


class CatalogRepository:
    def __init__(self, store: SecretDocumentStore):
        self.collection: DocumentCollection[GitopsCatalogApp] = DocumentCollection(
            store,
            CATALOG_SECRET,
            GitopsCatalogApp,
            items_field="apps",
            key_attr="name",
            header={"name": "gitops-catalog"},
        )

    async def list(self) -> list[GitopsCatalogApp]:
        return await self.collection.list()

    async def get(self, name: str) -> GitopsCatalogApp:
        try:
            return await self.collection.get(name)
        except DocumentNotFoundError as e:
            raise CatalogAppNotFoundError(f"catalog app {name} not found") from e

    async def upsert(self, app: GitopsCatalogApp) -> GitopsCatalogApp:
        existing = {a.name for a in await self.list()}
        if app.name in existing:
            return await self.collection.replace(app)
        return await self.collection.insert(app)

    async def remove(self, name: str) -> None:
        try:
            await self.collection.delete(name)
        except DocumentNotFoundError as e:
            raise CatalogAppNotFoundError(f"catalog app {name} not found") from e

    async def available_for(self, cloud_provider: str, git_provider: str) -> GitopsCatalogApps:
        """Apps not denylisted for the given cloud and git provider."""
        apps = [
            app
            for app in await self.list()
            if cloud_provider not in app.cloud_denylist and git_provider not in app.git_denylist
        ]
        return GitopsCatalogApps(apps=apps)

    async def load_file(self, path: Path) -> int:
        """Seed the catalog from a YAML file with a top-level ``apps`` list."""
        data = yaml.safe_load(path.read_text()) or {}
        catalog = GitopsCatalogApps.model_validate(data)
        for app in catalog.apps:
            await self.upsert(app)
        logger.info("Loaded gitops catalog", path=str(path), apps=len(catalog.apps))
        return len(catalog.apps)
