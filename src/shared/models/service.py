"""Installed application records kept per cluster."""

from pydantic import Field

from .base import KubefirstBaseModel


class Service(KubefirstBaseModel):
    name: str = Field(min_length=1)
    default: bool = False
    description: str = ""
    image: str = ""
    links: list[str] = Field(default_factory=list)
    status: str = ""
    created_by: str = ""


class ClusterServiceList(KubefirstBaseModel):
    cluster_name: str
    services: list[Service] = Field(default_factory=list)
