"""Serverless Aurora database infrastructure for the notes application.

This module creates the database tier: a security group admitting the
database port from the application tier only, a subnet group over the
VPC's private subnets and an Aurora MySQL cluster in serverless engine mode
whose master password is resolved from an SSM SecureString at deploy time.
"""

import logging
from collections.abc import Sequence
from typing import Any

import cdk_nag
from aws_cdk import Aspects, SecretValue, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_rds as rds
from cdk_nag import NagSuppressions
from constructs import Construct

from stacks.configs import DatabaseConfig, SecretParameterConfig
from stacks.configs.deployment_config import ANY_IPV4_CIDR
from stacks.outputs import OutputManager

from .endpoint import DatabaseEndpoint

logger = logging.getLogger(__name__)


class DatabaseStack(Stack):
    """Serverless Aurora cluster reachable only from the application tier.

    Attributes:
        security_group: Security group guarding the database port.
        subnet_group: Subnet group spanning the VPC's private subnets.
        db_cluster: Aurora cluster in serverless engine mode.
        allowed_cidrs: Source ranges admitted on the database port.
        output_manager: Manager for consistent output creation.
    """

    security_group: ec2.SecurityGroup
    subnet_group: rds.CfnDBSubnetGroup
    db_cluster: rds.CfnDBCluster
    allowed_cidrs: list[str]
    output_manager: OutputManager

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        vpc: ec2.IVpc,
        app_tier_cidrs: Sequence[str],
        database_config: DatabaseConfig,
        secret_config: SecretParameterConfig,
        **kwargs: Any,
    ) -> None:
        """Initialize database stack.

        Args:
            scope: CDK construct scope for resource creation.
            construct_id: Unique identifier for this stack.
            vpc: VPC whose private subnets host the cluster.
            app_tier_cidrs: CIDR blocks of the subnets the service runs in.
            database_config: Engine, naming, capacity and access settings.
            secret_config: SSM parameter holding the master password.
            **kwargs: Additional arguments passed to parent Stack.
        """
        super().__init__(scope, construct_id, **kwargs)

        self.output_manager = OutputManager(self, self.stack_name)
        self.vpc = vpc
        self.database_config = database_config
        self.secret_config = secret_config
        self.allowed_cidrs = self._resolve_allowed_cidrs(app_tier_cidrs)

        self._create_security_group()
        self._create_subnet_group()
        self._create_db_cluster()
        self._create_outputs()
        self._configure_security_checks()

    @property
    def endpoint(self) -> DatabaseEndpoint:
        """Connection details handed to the service stack."""
        return DatabaseEndpoint(
            address=self.db_cluster.attr_endpoint_address,
            port=self.database_config.port,
            database_name=self.database_config.database_name,
            username=self.database_config.master_username,
        )

    def _resolve_allowed_cidrs(self, app_tier_cidrs: Sequence[str]) -> list[str]:
        if self.database_config.allow_any_ipv4:
            logger.warning(
                "Database port %d is open to any IPv4 address in %s",
                self.database_config.port,
                self.node.id,
            )
            return [ANY_IPV4_CIDR]
        if self.database_config.allowed_cidrs is not None:
            return list(self.database_config.allowed_cidrs)
        if not app_tier_cidrs:
            msg = "No application tier CIDRs given for the database ingress rule"
            raise ValueError(msg)
        return list(app_tier_cidrs)

    def _configure_security_checks(self) -> None:
        """Configures AWS Solutions checks for the database tier.

        Serverless engine mode does not support IAM authentication, backtrack
        or log exports, so those rules are suppressed with the reason.
        """
        Aspects.of(self).add(cdk_nag.AwsSolutionsChecks())
        suppressions = [
            {
                "id": "AwsSolutions-RDS6",
                "reason": "IAM database authentication is not available in serverless engine mode",
            },
            {
                "id": "AwsSolutions-RDS11",
                "reason": "The application image expects the default MySQL port",
            },
            {
                "id": "AwsSolutions-RDS14",
                "reason": "Backtrack is not available in serverless engine mode",
            },
            {
                "id": "AwsSolutions-RDS16",
                "reason": "Log exports are not available in serverless engine mode",
            },
        ]
        if not self.database_config.deletion_protection:
            suppressions.append(
                {
                    "id": "AwsSolutions-RDS10",
                    "reason": "Deletion protection is disabled by deployment configuration",
                },
            )
        if self.database_config.allow_any_ipv4:
            suppressions.append(
                {
                    "id": "AwsSolutions-EC23",
                    "reason": "Open database ingress explicitly enabled by deployment configuration",
                },
            )
        NagSuppressions.add_stack_suppressions(stack=self, suppressions=suppressions)

    def _create_security_group(self) -> None:
        """Create the security group admitting the database port.

        One ingress rule is added per allowed source range; the group never
        admits traffic from outside them.
        """
        self.security_group = ec2.SecurityGroup(
            self,
            "DatabaseSecurityGroup",
            vpc=self.vpc,
            description="Database security group for the notes application",
            allow_all_outbound=False,
        )

        port = ec2.Port.tcp(self.database_config.port)
        for cidr in self.allowed_cidrs:
            self.security_group.add_ingress_rule(
                peer=ec2.Peer.ipv4(cidr),
                connection=port,
                description=f"Allow inbound to db from {cidr}",
            )
        logger.info(
            "Database port %d admitted from %s",
            self.database_config.port,
            ", ".join(self.allowed_cidrs),
        )

    def _create_subnet_group(self) -> None:
        """Create the DB subnet group over the VPC's private subnets."""
        self.subnet_group = rds.CfnDBSubnetGroup(
            self,
            "SubnetGroup",
            db_subnet_group_description="Database subnet group",
            subnet_ids=[subnet.subnet_id for subnet in self.vpc.private_subnets],
        )

    def _create_db_cluster(self) -> None:
        """Create the Aurora cluster in serverless engine mode.

        The master password is written to the template as an ``ssm-secure``
        dynamic reference, so CloudFormation resolves it at deploy time and
        the value never appears in the synthesized output.
        """
        config = self.database_config
        master_password = SecretValue.ssm_secure(
            self.secret_config.parameter_name,
            str(self.secret_config.version),
        )

        self.db_cluster = rds.CfnDBCluster(
            self,
            "DbCluster",
            engine=config.engine,
            engine_mode="serverless",
            engine_version=config.engine_version,
            database_name=config.database_name,
            master_username=config.master_username,
            master_user_password=master_password.unsafe_unwrap(),
            port=config.port,
            db_subnet_group_name=self.subnet_group.ref,
            vpc_security_group_ids=[self.security_group.security_group_id],
            storage_encrypted=True,
            backup_retention_period=config.backup_retention_days,
            deletion_protection=config.deletion_protection,
            copy_tags_to_snapshot=True,
            scaling_configuration=rds.CfnDBCluster.ScalingConfigurationProperty(
                auto_pause=config.auto_pause,
                min_capacity=config.min_capacity,
                max_capacity=config.max_capacity,
                seconds_until_auto_pause=config.seconds_until_auto_pause,
            ),
        )
        logger.info(
            "Serverless %s cluster scales between %d and %d capacity units (auto-pause %s)",
            config.engine,
            config.min_capacity,
            config.max_capacity,
            "on" if config.auto_pause else "off",
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for cross-stack references."""
        self.output_manager.add_output_with_ssm(
            "DbEndpointAddress",
            self.db_cluster.attr_endpoint_address,
            "Database cluster endpoint address",
            "DB-Endpoint-Address",
        )

        self.output_manager.add_output_with_ssm(
            "DbClusterIdentifier",
            self.db_cluster.ref,
            "Database cluster identifier",
            "DB-Cluster-Identifier",
        )
