"""AWS adapter: Route 53, S3 state store, KMS detokenization and ELB/SG cleanup."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.models import Checkpoint, Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

from ..services.gitops import detokenize
from .base import DanglingResource, DNSRecordProvider, ProviderAdapter, ProviderError, TXTRecord

if TYPE_CHECKING:
    from ..pipeline.config import ProviderConfig

logger = get_logger(__name__)

KMS_KEY_TOKEN = "<AWS_KMS_KEY_ID>"


class Route53DNS:
    def __init__(self, session: boto3.session.Session):
        self.route53 = session.client("route53")

    async def _zone_id(self, zone: str) -> str:
        response = await asyncio.to_thread(self.route53.list_hosted_zones_by_name, DNSName=zone)
        for hosted_zone in response.get("HostedZones", []):
            if hosted_zone["Name"].rstrip(".") == zone:
                return hosted_zone["Id"].split("/")[-1]
        raise ProviderError(f"route53 hosted zone {zone} not found")

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        zone_id = await self._zone_id(zone)

        def collect() -> list[TXTRecord]:
            records = []
            paginator = self.route53.get_paginator("list_resource_record_sets")
            for page in paginator.paginate(HostedZoneId=zone_id):
                for record_set in page["ResourceRecordSets"]:
                    if record_set["Type"] != "TXT":
                        continue
                    for value in record_set.get("ResourceRecords", []):
                        records.append(
                            TXTRecord(name=record_set["Name"].rstrip("."), value=value["Value"].strip('"'))
                        )
            return records

        return await asyncio.to_thread(collect)

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        zone_id = await self._zone_id(zone)
        await asyncio.to_thread(
            self.route53.change_resource_record_sets,
            HostedZoneId=zone_id,
            ChangeBatch={
                "Changes": [
                    {
                        "Action": "UPSERT",
                        "ResourceRecordSet": {
                            "Name": name,
                            "Type": "TXT",
                            "TTL": ttl,
                            "ResourceRecords": [{"Value": f'"{value}"'}],
                        },
                    }
                ]
            },
        )


class AWSAdapter(ProviderAdapter):
    name = "aws"
    liveness_ttl = 10
    post_create_checkpoint = Checkpoint.AWS_KMS_KEY_DETOKENIZED
    auto_unseal = True

    def __init__(self, cluster: Cluster, session: boto3.session.Session | None = None):
        super().__init__(cluster)
        auth = cluster.aws_auth
        self.session = session or boto3.session.Session(
            aws_access_key_id=auth.access_key_id,
            aws_secret_access_key=auth.secret_access_key,
            aws_session_token=auth.session_token or None,
            region_name=cluster.cloud_region,
        )

    async def _call(self, service: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        client = self.session.client(service)
        try:
            return await asyncio.to_thread(getattr(client, operation), **kwargs)
        except (BotoCoreError, ClientError) as e:
            raise ProviderError(f"aws {service}.{operation} failed: {e}") from e

    def native_dns(self) -> DNSRecordProvider:
        return Route53DNS(self.session)

    async def prepare(self, config: ProviderConfig) -> None:
        if not self.cluster.aws_account_id:
            identity = await self._call("sts", "get_caller_identity")
            self.cluster.aws_account_id = identity["Account"]

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        # Terraform state is written with the caller's own IAM credentials
        auth = self.cluster.aws_auth
        return StateStoreCredentials(
            access_key_id=auth.access_key_id,
            secret_access_key=auth.secret_access_key,
            session_token=auth.session_token,
            name=self.cluster.state_store_details.name,
        )

    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        details = self.cluster.state_store_details
        for bucket in (details.aws_state_store_bucket, details.aws_artifacts_bucket):
            kwargs: dict[str, Any] = {"Bucket": bucket}
            if self.cluster.cloud_region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.cluster.cloud_region}
            try:
                await self._call("s3", "create_bucket", **kwargs)
            except ProviderError as e:
                if "BucketAlreadyOwnedByYou" not in str(e):
                    raise
                logger.info("S3 bucket already exists", bucket=bucket)
            await self._call(
                "s3",
                "put_bucket_versioning",
                Bucket=bucket,
                VersioningConfiguration={"Status": "Enabled"},
            )
        return StateStoreDetails(
            name=details.aws_state_store_bucket,
            id=details.aws_state_store_bucket,
            hostname="s3.amazonaws.com",
            aws_state_store_bucket=details.aws_state_store_bucket,
            aws_artifacts_bucket=details.aws_artifacts_bucket,
        )

    def terraform_env(self) -> dict[str, str]:
        auth = self.cluster.aws_auth
        return {
            "AWS_SESSION_TOKEN": auth.session_token,
            "TF_VAR_aws_session_token": auth.session_token,
            "TF_VAR_aws_region": self.cluster.cloud_region,
            "TF_VAR_aws_account_id": self.cluster.aws_account_id,
            "TF_VAR_use_ecr": str(self.cluster.ecr).lower(),
            "AWS_REGION": self.cluster.cloud_region,
        }

    def destroy_extra_env(self) -> dict[str, str]:
        return {
            "TF_VAR_aws_account_id": self.cluster.aws_account_id,
            "TF_VAR_hosted_zone_name": self.cluster.domain_name,
        }

    async def post_create(self, config: ProviderConfig) -> bool:
        """Write the Vault KMS key id into the registry's vault application."""
        alias = f"alias/vault_{self.cluster.cluster_name}"
        key = await self._call("kms", "describe_key", KeyId=alias)
        self.cluster.aws_kms_key_id = key["KeyMetadata"]["KeyId"]
        vault_dir = config.gitops_dir / config.registry_path / "components" / "vault"
        changed = detokenize(vault_dir, {KMS_KEY_TOKEN: self.cluster.aws_kms_key_id})
        logger.info("Detokenized kms key id", key_alias=alias, files=changed)
        return changed > 0

    async def list_dangling_resources(self, cluster_id: str) -> list[DanglingResource]:
        tag = f"kubernetes.io/cluster/{self.cluster.cluster_name}"
        resources = []

        balancers = await self._call("elb", "describe_load_balancers")
        names = [lb["LoadBalancerName"] for lb in balancers.get("LoadBalancerDescriptions", [])]
        if names:
            tags = await self._call("elb", "describe_tags", LoadBalancerNames=names[:20])
            for description in tags.get("TagDescriptions", []):
                if any(t["Key"] == tag for t in description.get("Tags", [])):
                    resources.append(
                        DanglingResource(kind="elb", id=description["LoadBalancerName"], region=self.cluster.cloud_region)
                    )

        groups = await self._call("ec2", "describe_security_groups", Filters=[{"Name": "tag-key", "Values": [tag]}])
        for group in groups.get("SecurityGroups", []):
            resources.append(
                DanglingResource(
                    kind="security_group",
                    id=group["GroupId"],
                    name=group.get("GroupName", ""),
                    region=self.cluster.cloud_region,
                )
            )
        return resources

    async def delete_dangling_resource(self, resource: DanglingResource) -> None:
        if resource.kind == "elb":
            await self._call("elb", "delete_load_balancer", LoadBalancerName=resource.id)
        elif resource.kind == "security_group":
            await self._call("ec2", "delete_security_group", GroupId=resource.id)
        else:
            await super().delete_dangling_resource(resource)
