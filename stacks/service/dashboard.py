"""CloudWatch dashboard for the notes application service.

The dashboard is laid out in three rows:

1. a title banner;
2. running task count, request count per target and the custom scaling metric;
3. CPU and memory utilization, and the p95 target response time.
"""

from aws_cdk import Duration, Stack
from aws_cdk import aws_cloudwatch as cloudwatch
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from constructs import Construct

from stacks.configs import DashboardConfig, ScalingConfig
from stacks.constants import STACK_PREFIX

from .auto_scaling import custom_scaling_metric


class ServiceDashboard(Construct):
    """CloudWatch dashboard visualizing a load-balanced Fargate service.

    Attributes:
        dashboard: The CloudWatch dashboard.
        rows: Widget rows in the order they were added to the dashboard.
    """

    dashboard: cloudwatch.Dashboard
    rows: list[list[cloudwatch.IWidget]]

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster: ecs.ICluster,
        service: ecs.FargateService,
        load_balancer: elbv2.ApplicationLoadBalancer,
        target_group: elbv2.ApplicationTargetGroup,
        scaling_config: ScalingConfig,
        dashboard_config: DashboardConfig,
    ) -> None:
        super().__init__(scope, construct_id)

        self.cluster = cluster
        self.service = service
        self.load_balancer = load_balancer
        self.target_group = target_group
        self.scaling_config = scaling_config
        self.dashboard_config = dashboard_config
        self.period = Duration.minutes(dashboard_config.period_minutes)

        self.dashboard = cloudwatch.Dashboard(
            self,
            "Dashboard",
            dashboard_name=f"{STACK_PREFIX}-{Stack.of(self).stack_name}",
        )
        self.rows = [
            self._title_row(),
            self._traffic_row(),
            self._utilization_row(),
        ]
        for row in self.rows:
            self.dashboard.add_widgets(*row)

    @property
    def dashboard_name(self) -> str:
        return self.dashboard.dashboard_name

    @property
    def _service_dimensions(self) -> dict[str, str]:
        return {
            "ServiceName": self.service.service_name,
            "ClusterName": self.cluster.cluster_name,
        }

    @property
    def _load_balancer_dimensions(self) -> dict[str, str]:
        return {
            "TargetGroup": self.target_group.target_group_full_name,
            "LoadBalancer": self.load_balancer.load_balancer_full_name,
        }

    def _title_row(self) -> list[cloudwatch.IWidget]:
        return [
            cloudwatch.TextWidget(
                markdown=f"# {self.dashboard_config.title}",
                width=24,
            ),
        ]

    def _traffic_row(self) -> list[cloudwatch.IWidget]:
        """Task count, request rate and the custom scaling metric."""
        # RunningTaskCount is published by Container Insights
        running_tasks = cloudwatch.Metric(
            namespace="ECS/ContainerInsights",
            metric_name="RunningTaskCount",
            label="Running",
            dimensions_map=self._service_dimensions,
            statistic="Average",
            period=self.period,
        )
        request_count = cloudwatch.Metric(
            namespace="AWS/ApplicationELB",
            metric_name="RequestCountPerTarget",
            dimensions_map=self._load_balancer_dimensions,
            color="#98df8a",
            statistic="Sum",
            period=self.period,
        )
        scaling_metric = custom_scaling_metric(self.scaling_config).with_(
            color="#d62728",
            period=self.period,
        )

        return [
            cloudwatch.GraphWidget(
                title="Task Count",
                width=8,
                left_y_axis=cloudwatch.YAxisProps(min=0),
                left=[running_tasks],
            ),
            cloudwatch.GraphWidget(
                title="ReqCountPerTarget",
                width=8,
                left=[request_count],
                stacked=True,
            ),
            cloudwatch.GraphWidget(
                title="Custom Metric",
                width=8,
                left=[scaling_metric],
                left_annotations=[
                    cloudwatch.HorizontalAnnotation(
                        value=self.scaling_config.target_value,
                        label=f"target {self.scaling_config.target_value:g}",
                    ),
                ],
            ),
        ]

    def _utilization_row(self) -> list[cloudwatch.IWidget]:
        """CPU and memory on two axes, and p95 latency."""
        cpu = cloudwatch.Metric(
            namespace="AWS/ECS",
            metric_name="CPUUtilization",
            label="CPUUtilization",
            dimensions_map=self._service_dimensions,
            statistic="Average",
            period=self.period,
        )
        memory = cloudwatch.Metric(
            namespace="AWS/ECS",
            metric_name="MemoryUtilization",
            label="MemoryUtilization",
            dimensions_map=self._service_dimensions,
            statistic="Average",
            period=self.period,
        )
        response_time = cloudwatch.Metric(
            namespace="AWS/ApplicationELB",
            metric_name="TargetResponseTime",
            dimensions_map=self._load_balancer_dimensions,
            color="#2ca02c",
            statistic="p95",
            period=self.period,
        )

        return [
            cloudwatch.GraphWidget(
                title="Task CPU and Memory",
                width=12,
                left_y_axis=cloudwatch.YAxisProps(min=0),
                left=[cpu],
                right=[memory],
            ),
            cloudwatch.GraphWidget(
                title="TargetResponseTime (P95)",
                width=12,
                left=[response_time],
                stacked=True,
            ),
        ]
