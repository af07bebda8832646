"""Environment repository."""

from __future__ import annotations

from shared.document_store import (
    DocumentCollection,
    DocumentConflictError,
    DocumentNotFoundError,
    SecretDocumentStore,
)
from shared.models import DEFAULT_ENVIRONMENTS, Environment, EnvironmentUpdate

ENVIRONMENTS_SECRET = "kubefirst-environments"


class EnvironmentNotFoundError(Exception):
    """Raised when an environment is not found."""

    pass


class EnvironmentAlreadyExistsError(Exception):
    """Raised when an environment with the same name already exists."""

    pass


class EnvironmentRepository:
    def __init__(self, store: SecretDocumentStore):
        self.collection: DocumentCollection[Environment] = DocumentCollection(
            store,
            ENVIRONMENTS_SECRET,
            Environment,
            items_field="environments",
            key_attr="name",
        )

    async def list(self) -> list[Environment]:
        return await self.collection.list()

    async def get(self, name: str) -> Environment:
        try:
            return await self.collection.get(name)
        except DocumentNotFoundError as e:
            raise EnvironmentNotFoundError(f"environment {name} not found") from e

    async def insert(self, environment: Environment) -> Environment:
        try:
            return await self.collection.insert(environment)
        except DocumentConflictError as e:
            raise EnvironmentAlreadyExistsError(f"environment {environment.name} already exists") from e

    async def update(self, name: str, changes: EnvironmentUpdate) -> Environment:
        def apply(environment: Environment) -> Environment:
            return environment.model_copy(update=changes.model_dump(exclude_none=True))

        try:
            return await self.collection.update(name, apply)
        except DocumentNotFoundError as e:
            raise EnvironmentNotFoundError(f"environment {name} not found") from e

    async def delete(self, name: str) -> None:
        try:
            await self.collection.delete(name)
        except DocumentNotFoundError as e:
            raise EnvironmentNotFoundError(f"environment {name} not found") from e

    async def seed_defaults(self) -> list[Environment]:
        """Create development/staging/production if no environments exist."""
        existing = await self.list()
        if existing:
            return existing
        created = []
        for payload in DEFAULT_ENVIRONMENTS:
            created.append(await self.insert(Environment(**payload)))
        return created
