"""Environment request schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from shared.models import Environment


class EnvironmentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=63)
    color: str = ""
    description: str = ""

    def to_environment(self) -> Environment:
        return Environment(name=self.name, color=self.color, description=self.description)


class EnvironmentListResponse(BaseModel):
    environments: list[Environment]
    total: int
