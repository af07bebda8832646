"""Gitops catalog application models."""

from pydantic import Field

from .base import KubefirstBaseModel


class GitopsCatalogAppKeys(KubefirstBaseModel):
    name: str
    label: str = ""
    value: str = ""
    env: str = ""


class GitopsCatalogApp(KubefirstBaseModel):
    """A catalog application a user may install onto a cluster."""

    name: str
    display_name: str = ""
    category: str = ""
    description: str = ""
    image_url: str = ""
    is_template: bool = False
    secret_keys: list[GitopsCatalogAppKeys] = Field(default_factory=list)
    config_keys: list[GitopsCatalogAppKeys] = Field(default_factory=list)
    cloud_denylist: list[str] = Field(default_factory=list)
    git_denylist: list[str] = Field(default_factory=list)


class GitopsCatalogApps(KubefirstBaseModel):
    name: str = "gitops-catalog"
    apps: list[GitopsCatalogApp] = Field(default_factory=list)
