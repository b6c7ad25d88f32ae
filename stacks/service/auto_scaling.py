"""
Task-count autoscaling for the notes application Fargate service.

Provisions:
- An Application Auto Scaling target on the service's desired count
- A target-tracking policy keyed on a custom CloudWatch metric, with
  explicit scale-in and scale-out cooldowns
"""

from aws_cdk import Duration
from aws_cdk import aws_applicationautoscaling as appscaling
from aws_cdk import aws_cloudwatch as cloudwatch
from aws_cdk import aws_ecs as ecs
from constructs import Construct

from stacks.configs import ScalingConfig


class TaskAutoScaling(Construct):
    """Target-tracking scaling of a Fargate service's task count.

    The custom metric is published by a process outside this project; until
    data arrives the policy keeps the task count at its current value.
    """

    scaling_target: appscaling.ScalableTarget
    scaling_policy: appscaling.TargetTrackingScalingPolicy
    metric: cloudwatch.Metric

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster: ecs.ICluster,
        service: ecs.FargateService,
        scaling_config: ScalingConfig,
    ) -> None:
        super().__init__(scope, construct_id)
        self.scaling_config = scaling_config

        self.scaling_target = appscaling.ScalableTarget(
            self,
            "TaskScalingTarget",
            service_namespace=appscaling.ServiceNamespace.ECS,
            resource_id=f"service/{cluster.cluster_name}/{service.service_name}",
            scalable_dimension="ecs:service:DesiredCount",
            min_capacity=scaling_config.min_capacity,
            max_capacity=scaling_config.max_capacity,
        )
        self.scaling_target.node.add_dependency(service)

        self.metric = custom_scaling_metric(scaling_config)

        # Custom metric target tracking
        self.scaling_policy = self.scaling_target.scale_to_track_metric(
            "CustomMetricScaling",
            target_value=scaling_config.target_value,
            custom_metric=self.metric,
            scale_in_cooldown=Duration.seconds(scaling_config.scale_in_cooldown_seconds),
            scale_out_cooldown=Duration.seconds(scaling_config.scale_out_cooldown_seconds),
            policy_name=scaling_config.policy_name,
        )

    @property
    def scalable_target_id(self) -> str:
        return self.scaling_target.scalable_target_id


def custom_scaling_metric(scaling_config: ScalingConfig) -> cloudwatch.Metric:
    """The custom metric the scaling policy tracks and the dashboard plots."""
    return cloudwatch.Metric(
        namespace=scaling_config.metric_namespace,
        metric_name=scaling_config.metric_name,
        statistic=scaling_config.statistic,
        period=Duration.seconds(scaling_config.period_seconds),
    )
