"""Network and cluster infrastructure stack for the notes application.

This module provides the foundational infrastructure shared by the database
and service stacks: a VPC with public and private subnet tiers spread evenly
across the configured availability zones, NAT egress for the private tier,
VPC Flow Logs for traffic auditing and the ECS cluster the service runs in.

Architecture:
    - VPC with one public and one private subnet per availability zone
    - Configurable NAT gateway count (a single shared egress path by default)
    - VPC Flow Logs delivered to a retention-bound CloudWatch log group
    - ECS cluster with enhanced Container Insights, bound to the VPC
"""

import logging
from typing import Any, cast

import cdk_nag
from aws_cdk import Aspects, RemovalPolicy, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from cdk_nag import NagSuppressions
from constructs import Construct

from stacks.configs import NetworkConfig
from stacks.outputs import OutputManager

logger = logging.getLogger(__name__)


class NetworkStack(Stack):
    """VPC and ECS cluster for the notes application.

    Attributes:
        vpc: VPC holding the public and private subnet tiers.
        cluster: ECS cluster bound to the VPC.
        flow_logs_role: IAM role used to deliver VPC Flow Logs.
        flow_logs: VPC Flow Logs configuration.
        output_manager: Manager for consistent output creation.
    """

    vpc: ec2.Vpc
    cluster: ecs.Cluster
    flow_logs_role: iam.Role
    flow_logs: ec2.FlowLog
    output_manager: OutputManager

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        network_config: NetworkConfig,
        **kwargs: Any,
    ) -> None:
        """Initialize network stack with VPC, flow logs and cluster.

        Args:
            scope: CDK construct scope for resource creation.
            construct_id: Unique identifier for this stack.
            network_config: Address space, zone count and NAT settings.
            **kwargs: Additional arguments passed to parent Stack.
        """
        super().__init__(scope, construct_id, **kwargs)

        self.output_manager = OutputManager(self, self.stack_name)
        self.network_config = network_config

        self._create_vpc()
        self._create_flow_logs()
        self._create_cluster()
        self._create_outputs()
        self._configure_security_checks()

    @property
    def app_tier_cidrs(self) -> list[str]:
        """CIDR blocks of the private subnets the service tasks run in."""
        return [subnet.ipv4_cidr_block for subnet in self.vpc.private_subnets]

    def _configure_security_checks(self) -> None:
        """Configures AWS Solutions checks and the suppressions this stack needs."""
        Aspects.of(self).add(cdk_nag.AwsSolutionsChecks())
        NagSuppressions.add_resource_suppressions(
            construct=self.cluster,
            suppressions=[
                {
                    "id": "AwsSolutions-ECS4",
                    "reason": "ECS Cluster has `enhanced` Container Insights, which the rule does not recognise.",
                },
            ],
        )

    def _create_vpc(self) -> None:
        """Create VPC with public and private subnets in every used AZ.

        The private tier routes egress through the NAT gateways placed in the
        public tier, so the service tasks and the database never need public
        addresses.
        """
        self.vpc = ec2.Vpc(
            self,
            "Vpc",
            ip_addresses=ec2.IpAddresses.cidr(self.network_config.vpc_cidr),
            max_azs=self.network_config.max_azs,
            nat_gateways=self.network_config.nat_gateways,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    cidr_mask=24,
                    subnet_type=ec2.SubnetType.PUBLIC,
                ),
                ec2.SubnetConfiguration(
                    name="Private",
                    cidr_mask=24,
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                ),
            ],
            nat_gateway_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )
        logger.info(
            "VPC %s spans %d availability zone(s) with %d NAT gateway(s)",
            self.network_config.vpc_cidr,
            len(self.vpc.availability_zones),
            self.network_config.nat_gateways,
        )

    def _create_flow_logs(self) -> None:
        """Configure VPC Flow Logs for network traffic monitoring.

        Creates CloudWatch log group and IAM role for flow logs, scoped to the
        log group so the delivery role cannot write anywhere else.
        """
        flow_logs_log_group = logs.LogGroup(
            self,
            "VpcFlowLogsGroup",
            retention=self.network_config.flow_logs_retention,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.flow_logs_role = iam.Role(
            self,
            "VpcFlowLogsRole",
            assumed_by=cast(
                "iam.IPrincipal",
                iam.ServicePrincipal("vpc-flow-logs.amazonaws.com"),
            ),
            inline_policies={
                "FlowLogsDeliveryRolePolicy": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=[
                                "logs:CreateLogStream",
                                "logs:PutLogEvents",
                                "logs:DescribeLogGroups",
                                "logs:DescribeLogStreams",
                            ],
                            resources=[
                                flow_logs_log_group.log_group_arn,
                                f"{flow_logs_log_group.log_group_arn}:*",
                            ],
                        ),
                    ],
                ),
            },
        )
        # cdk-nag suppression for the log stream wildcard
        NagSuppressions.add_resource_suppressions(
            self.flow_logs_role,
            [
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "Flow Logs create their own log streams inside the dedicated log group.",
                },
            ],
            apply_to_children=True,
        )

        self.flow_logs = ec2.FlowLog(
            self,
            "VpcFlowLogs",
            resource_type=ec2.FlowLogResourceType.from_vpc(self.vpc),
            destination=ec2.FlowLogDestination.to_cloud_watch_logs(
                flow_logs_log_group,
                self.flow_logs_role,
            ),
            traffic_type=ec2.FlowLogTrafficType.ALL,
        )

    def _create_cluster(self) -> None:
        """Create the ECS cluster all service containers run in."""
        self.cluster = ecs.Cluster(
            self,
            "Cluster",
            vpc=self.vpc,
            container_insights_v2=ecs.ContainerInsights.ENHANCED,
            enable_fargate_capacity_providers=True,
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for cross-stack references."""
        self.output_manager.add_output_with_ssm(
            "VpcId",
            self.vpc.vpc_id,
            "Notes application VPC ID",
            "VPC-ID",
        )

        self.output_manager.add_output_with_ssm(
            "ClusterName",
            self.cluster.cluster_name,
            "ECS cluster name",
            "ECS-Cluster-Name",
        )
