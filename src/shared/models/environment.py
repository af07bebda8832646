"""Environment models."""

from datetime import datetime
from uuid import uuid4

from pydantic import Field

from .base import KubefirstBaseModel
from .common import utc_now

DEFAULT_ENVIRONMENTS: list[dict[str, str]] = [
    {"name": "development", "color": "green", "description": "Environment for development"},
    {"name": "staging", "color": "gold", "description": "Environment for staging"},
    {"name": "production", "color": "pink", "description": "Environment for production"},
]


class Environment(KubefirstBaseModel):
    """Named logical grouping referenced by workload clusters."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = Field(min_length=1)
    color: str = ""
    description: str = ""
    creation_timestamp: datetime = Field(default_factory=utc_now)


class EnvironmentUpdate(KubefirstBaseModel):
    color: str | None = None
    description: str | None = None
