"""Credential payloads carried on cluster definitions and records."""

from pydantic import Field

from .base import KubefirstBaseModel


class AWSAuth(KubefirstBaseModel):
    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""


class AkamaiAuth(KubefirstBaseModel):
    token: str = ""


class AzureAuth(KubefirstBaseModel):
    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""
    subscription_id: str = ""


class CivoAuth(KubefirstBaseModel):
    token: str = ""


class CloudflareAuth(KubefirstBaseModel):
    api_token: str = ""
    origin_ca_issuer_key: str = ""


class DigitaloceanAuth(KubefirstBaseModel):
    token: str = ""
    spaces_key: str = ""
    spaces_secret: str = ""


class GoogleAuth(KubefirstBaseModel):
    key_file: str = Field(default="", description="Service account JSON key contents")
    project_id: str = ""


class K3sAuth(KubefirstBaseModel):
    """SSH access to pre-existing hosts that become the k3s cluster."""

    servers_private_ips: list[str] = Field(default_factory=list)
    servers_public_ips: list[str] = Field(default_factory=list)
    servers_args: list[str] = Field(default_factory=list)
    ssh_user: str = ""
    ssh_privatekey: str = ""


class GitAuth(KubefirstBaseModel):
    git_token: str = ""
    git_username: str = ""
    git_owner: str = ""
    public_key: str = ""
    private_key: str = ""
    public_keys: str = ""


class VaultAuth(KubefirstBaseModel):
    root_token: str = ""
    kbot_password: str = ""


class StateStoreCredentials(KubefirstBaseModel):
    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    name: str = ""
    id: str = ""


class StateStoreDetails(KubefirstBaseModel):
    name: str = ""
    id: str = ""
    hostname: str = ""
    aws_state_store_bucket: str = ""
    aws_artifacts_bucket: str = ""
    azure_storage_resource_group: str = ""
    azure_storage_container_name: str = ""
