"""Load-balanced Fargate service infrastructure for the notes application.

This module creates the application tier: an Application Load Balancer in
front of a Fargate service built from an external container image, the
target group health check, the execution-role grants needed to resolve the
database password, task-count autoscaling on a custom metric and a
CloudWatch dashboard.
"""

import logging
from typing import Any

import cdk_nag
from aws_cdk import Aspects, Duration, RemovalPolicy, Stack
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_ecs_patterns as ecs_patterns
from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from aws_cdk import aws_ssm as ssm
from cdk_nag import NagSuppressions
from constructs import Construct

from stacks.configs import (
    DashboardConfig,
    ImageConfig,
    ScalingConfig,
    SecretParameterConfig,
    ServiceConfig,
)
from stacks.constants import (
    DATASOURCE_PASSWORD_SECRET,
    LOG_RETENTION_DAYS,
    SSM_DEFAULT_KEY_ALIAS,
    STACK_PREFIX,
)
from stacks.database import DatabaseEndpoint
from stacks.outputs import OutputManager

from .auto_scaling import TaskAutoScaling
from .connection import datasource_environment
from .dashboard import ServiceDashboard
from .secrets import RetrieveOnlyParameterSecret

logger = logging.getLogger(__name__)


class ServiceStack(Stack):
    """Load-balanced Fargate service wired to the serverless database.

    Attributes:
        cluster: ECS cluster the service runs in.
        database: Connection details of the database.
        password_parameter: SSM SecureString holding the database password.
        service_log_group: CloudWatch log group for container logs.
        fargate_service: The load-balanced Fargate service pattern.
        auto_scaling: Target-tracking task-count scaling.
        dashboard: CloudWatch dashboard for the service.
        output_manager: Manager for consistent output creation.
    """

    cluster: ecs.ICluster
    database: DatabaseEndpoint
    password_parameter: ssm.IStringParameter
    service_log_group: logs.LogGroup
    fargate_service: ecs_patterns.ApplicationLoadBalancedFargateService
    auto_scaling: TaskAutoScaling
    dashboard: ServiceDashboard
    output_manager: OutputManager

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster: ecs.ICluster,
        database: DatabaseEndpoint,
        secret_config: SecretParameterConfig,
        service_config: ServiceConfig,
        scaling_config: ScalingConfig,
        dashboard_config: DashboardConfig,
        **kwargs: Any,
    ) -> None:
        """Initialize service stack.

        Args:
            scope: CDK construct scope for resource creation.
            construct_id: Unique identifier for this stack.
            cluster: ECS cluster from the network stack.
            database: Endpoint from the database stack.
            secret_config: SSM parameter holding the database password.
            service_config: Image, sizing, desired count and health check.
            scaling_config: Autoscaling bounds and custom metric policy.
            dashboard_config: Dashboard title and metric period.
            **kwargs: Additional arguments passed to parent Stack.

        Raises:
            ValueError: If the desired count lies outside the scaling bounds.
        """
        super().__init__(scope, construct_id, **kwargs)

        desired = service_config.desired_count
        if not scaling_config.min_capacity <= desired <= scaling_config.max_capacity:
            msg = (
                f"desired_count ({desired}) must lie within the autoscaling "
                f"bounds [{scaling_config.min_capacity}, {scaling_config.max_capacity}]"
            )
            raise ValueError(msg)

        self.output_manager = OutputManager(self, self.stack_name)
        self.cluster = cluster
        self.database = database
        self.secret_config = secret_config
        self.service_config = service_config
        self.scaling_config = scaling_config
        self.dashboard_config = dashboard_config

        self._import_password_parameter()
        self._create_log_group()
        self._create_fargate_service()
        self._configure_health_check()
        self._grant_secret_access()
        self._create_auto_scaling()
        self._create_dashboard()
        self._create_outputs()
        self._configure_security_checks()

    def _configure_security_checks(self) -> None:
        """Configures AWS Solutions checks and the suppressions this stack needs."""
        Aspects.of(self).add(cdk_nag.AwsSolutionsChecks())
        NagSuppressions.add_stack_suppressions(
            stack=self,
            suppressions=[
                {
                    "id": "AwsSolutions-ELB2",
                    "reason": "Load balancer access logs are not collected for this service",
                },
                {
                    "id": "AwsSolutions-EC23",
                    "reason": "The public load balancer accepts HTTP from any address",
                },
                {
                    "id": "CdkNagValidationFailure",
                    "reason": "Security group validation fails due to CDK intrinsic function references - this is expected",
                },
            ],
        )
        NagSuppressions.add_resource_suppressions(
            construct=self.fargate_service.task_definition,
            suppressions=[
                {
                    "id": "AwsSolutions-ECS2",
                    "reason": "The application reads its datasource URL and username from environment variables.",
                },
            ],
        )
        NagSuppressions.add_resource_suppressions(
            construct=self.fargate_service.task_definition.obtain_execution_role(),
            suppressions=[
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "The AWS managed SSM key is matched by alias condition and log streams are created under the service log group",
                },
            ],
            apply_to_children=True,
        )

    def _import_password_parameter(self) -> None:
        """Reference the SSM SecureString holding the database password."""
        self.password_parameter = ssm.StringParameter.from_secure_string_parameter_attributes(
            self,
            "DbPasswordParameter",
            parameter_name=self.secret_config.parameter_name,
            version=self.secret_config.version,
        )

    def _create_log_group(self) -> None:
        """Create CloudWatch log group for the application containers."""
        self.service_log_group = logs.LogGroup(
            self,
            "ServiceLogGroup",
            retention=LOG_RETENTION_DAYS,
            removal_policy=RemovalPolicy.DESTROY,
        )

    def _container_image(self, image_config: ImageConfig) -> ecs.ContainerImage:
        if image_config.registry_image is not None:
            return ecs.ContainerImage.from_registry(image_config.registry_image)
        return ecs.ContainerImage.from_asset(image_config.directory)

    def _create_fargate_service(self) -> None:
        """Create the load-balanced Fargate service.

        The datasource URL and username are plain environment values; the
        password is a container secret resolved from SSM when a task starts.
        """
        config = self.service_config
        environment = datasource_environment(self.database, config.connection_options)

        self.fargate_service = ecs_patterns.ApplicationLoadBalancedFargateService(
            self,
            "FargateService",
            cluster=self.cluster,
            desired_count=config.desired_count,
            cpu=config.cpu,
            memory_limit_mib=config.memory_limit_mib,
            public_load_balancer=True,
            circuit_breaker=ecs.DeploymentCircuitBreaker(enable=True, rollback=True),
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageOptions(
                image=self._container_image(config.image),
                container_name="app",
                container_port=config.container_port,
                environment=environment,
                secrets={
                    DATASOURCE_PASSWORD_SECRET: RetrieveOnlyParameterSecret(
                        self.password_parameter,
                    ),
                },
                log_driver=ecs.LogDrivers.aws_logs(
                    stream_prefix=STACK_PREFIX,
                    log_group=self.service_log_group,
                ),
            ),
        )
        logger.info(
            "Fargate service runs %d task(s) of %d CPU units / %d MiB on port %d",
            config.desired_count,
            config.cpu,
            config.memory_limit_mib,
            config.container_port,
        )

    def _configure_health_check(self) -> None:
        """Configure the target group health check policy."""
        health_check = self.service_config.health_check
        self.fargate_service.target_group.configure_health_check(
            port="traffic-port",
            path=health_check.path,
            interval=Duration.seconds(health_check.interval_seconds),
            timeout=Duration.seconds(health_check.timeout_seconds),
            healthy_threshold_count=health_check.healthy_threshold_count,
            unhealthy_threshold_count=health_check.unhealthy_threshold_count,
            healthy_http_codes=health_check.healthy_http_codes,
        )

    def _grant_secret_access(self) -> None:
        """Let the execution role decrypt the password.

        Retrieval itself is granted by the container secret; SecureString
        values are then decrypted with the account's AWS managed SSM key.
        """
        task_definition = self.fargate_service.task_definition
        task_definition.add_to_execution_role_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["kms:Decrypt"],
                resources=[f"arn:{self.partition}:kms:{self.region}:{self.account}:key/*"],
                conditions={
                    "ForAnyValue:StringEquals": {
                        "kms:ResourceAliases": SSM_DEFAULT_KEY_ALIAS,
                    },
                },
            ),
        )

    def _create_auto_scaling(self) -> None:
        self.auto_scaling = TaskAutoScaling(
            self,
            "AutoScaling",
            cluster=self.cluster,
            service=self.fargate_service.service,
            scaling_config=self.scaling_config,
        )

    def _create_dashboard(self) -> None:
        self.dashboard = ServiceDashboard(
            self,
            "Monitoring",
            cluster=self.cluster,
            service=self.fargate_service.service,
            load_balancer=self.fargate_service.load_balancer,
            target_group=self.fargate_service.target_group,
            scaling_config=self.scaling_config,
            dashboard_config=self.dashboard_config,
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for cross-stack references."""
        self.output_manager.add_output_with_ssm(
            "LoadBalancerDnsName",
            self.fargate_service.load_balancer.load_balancer_dns_name,
            "Application load balancer DNS name",
            "Load-Balancer-DNS",
        )

        self.output_manager.add_output_with_ssm(
            "ServiceName",
            self.fargate_service.service.service_name,
            "Fargate service name",
            "Service-Name",
        )

        self.output_manager.add_output_with_ssm(
            "DashboardName",
            self.dashboard.dashboard_name,
            "CloudWatch dashboard name",
            "Dashboard-Name",
        )

        self.output_manager.add_output_with_ssm(
            "ScalingTargetId",
            self.auto_scaling.scalable_target_id,
            "ID of the service task count scaling target",
            "Scaling-Target-ID",
        )
