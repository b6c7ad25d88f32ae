"""
Unit tests for task-count autoscaling of the notes application service.
"""

import pytest
from aws_cdk import App, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk.assertions import Match, Template

from stacks.configs import ScalingConfig
from stacks.service import TaskAutoScaling


def _scaling_stack(scaling_config: ScalingConfig) -> tuple[Stack, TaskAutoScaling]:
    app = App()
    stack = Stack(app, "ScalingStack")
    vpc = ec2.Vpc(stack, "TestVpc", max_azs=1)
    cluster = ecs.Cluster(stack, "Cluster", vpc=vpc)
    task_definition = ecs.FargateTaskDefinition(stack, "TaskDef")
    task_definition.add_container(
        "app",
        image=ecs.ContainerImage.from_registry("public.ecr.aws/nginx/nginx:latest"),
    )
    service = ecs.FargateService(
        stack,
        "Service",
        cluster=cluster,
        task_definition=task_definition,
        desired_count=2,
    )
    scaling = TaskAutoScaling(
        stack,
        "AutoScaling",
        cluster=cluster,
        service=service,
        scaling_config=scaling_config,
    )
    return stack, scaling


@pytest.fixture
def scaling_template():
    stack, _scaling = _scaling_stack(ScalingConfig())
    return Template.from_stack(stack)


class TestScalableTarget:
    def test_bounds(self, scaling_template):
        scaling_template.resource_count_is("AWS::ApplicationAutoScaling::ScalableTarget", 1)
        scaling_template.has_resource_properties(
            "AWS::ApplicationAutoScaling::ScalableTarget",
            {
                "MinCapacity": 2,
                "MaxCapacity": 20,
                "ScalableDimension": "ecs:service:DesiredCount",
                "ServiceNamespace": "ecs",
            },
        )

    def test_target_depends_on_service(self, scaling_template):
        targets = scaling_template.find_resources(
            "AWS::ApplicationAutoScaling::ScalableTarget",
        )
        target = next(iter(targets.values()))
        services = scaling_template.find_resources("AWS::ECS::Service")
        assert set(services) <= set(target.get("DependsOn", []))

    def test_custom_bounds(self):
        stack, _scaling = _scaling_stack(ScalingConfig(min_capacity=1, max_capacity=4))
        Template.from_stack(stack).has_resource_properties(
            "AWS::ApplicationAutoScaling::ScalableTarget",
            {"MinCapacity": 1, "MaxCapacity": 4},
        )


class TestScalingPolicy:
    def test_target_tracking_on_custom_metric(self, scaling_template):
        scaling_template.has_resource_properties(
            "AWS::ApplicationAutoScaling::ScalingPolicy",
            {
                "PolicyName": "KeepIt150",
                "PolicyType": "TargetTrackingScaling",
                "TargetTrackingScalingPolicyConfiguration": Match.object_like(
                    {
                        "TargetValue": 150,
                        "ScaleInCooldown": 60,
                        "ScaleOutCooldown": 60,
                        "CustomizedMetricSpecification": Match.object_like(
                            {
                                "MetricName": "CDKTestingCustomMetric",
                                "Namespace": "CDK/Testing",
                                "Statistic": "Average",
                            },
                        ),
                    },
                ),
            },
        )

    def test_metric_exposed(self):
        _stack, scaling = _scaling_stack(ScalingConfig())
        assert scaling.metric.metric_name == "CDKTestingCustomMetric"
        assert scaling.metric.namespace == "CDK/Testing"


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
