"""
Comprehensive test suite for the notes application service stack.

Tests cover the load-balanced Fargate service, the datasource environment
and password secret, the target group health check, the execution role
grants for the SSM SecureString, and the CloudFormation outputs.
"""

import json

import pytest
from aws_cdk import App
from aws_cdk.assertions import Match, Template

from stacks.configs import (
    DashboardConfig,
    ImageConfig,
    NetworkConfig,
    ScalingConfig,
    SecretParameterConfig,
    ServiceConfig,
)
from stacks.database import DatabaseEndpoint
from stacks.network import NetworkStack
from stacks.service import ServiceStack, build_jdbc_url

REGISTRY_IMAGE = "public.ecr.aws/docker/library/tomcat:10"
DB_ADDRESS = "notes.cluster-abc123.us-east-1.rds.amazonaws.com"


def _endpoint(address: str = DB_ADDRESS) -> DatabaseEndpoint:
    return DatabaseEndpoint(
        address=address,
        port=3306,
        database_name="notes_app",
        username="dbaadmin",
    )


def _build(aws_environment, service_config=None, endpoint=None, scaling_config=None):
    app = App()
    network = NetworkStack(
        app,
        "TestNetworkStack",
        network_config=NetworkConfig(),
        env=aws_environment,
    )
    return ServiceStack(
        app,
        "TestServiceStack",
        cluster=network.cluster,
        database=endpoint or _endpoint(),
        secret_config=SecretParameterConfig(),
        service_config=service_config
        or ServiceConfig(image=ImageConfig(registry_image=REGISTRY_IMAGE)),
        scaling_config=scaling_config or ScalingConfig(),
        dashboard_config=DashboardConfig(),
        env=aws_environment,
    )


def _container_environment(template: Template) -> dict[str, str]:
    task_definition = next(
        iter(template.find_resources("AWS::ECS::TaskDefinition").values()),
    )
    container = task_definition["Properties"]["ContainerDefinitions"][0]
    return {item["Name"]: item["Value"] for item in container["Environment"]}


def _execution_role_actions(template: Template) -> set[str]:
    actions: set[str] = set()
    for policy in template.find_resources("AWS::IAM::Policy").values():
        if "ExecutionRole" not in json.dumps(policy["Properties"]["Roles"]):
            continue
        for statement in policy["Properties"]["PolicyDocument"]["Statement"]:
            action = statement["Action"]
            actions.update([action] if isinstance(action, str) else action)
    return actions


@pytest.fixture
def service_stack(aws_environment):
    return _build(aws_environment)


@pytest.fixture
def template(service_stack):
    return Template.from_stack(service_stack)


class TestServiceStackFargateService:
    def test_service_desired_count(self, template):
        template.resource_count_is("AWS::ECS::Service", 1)
        template.has_resource_properties(
            "AWS::ECS::Service",
            {"DesiredCount": 2, "LaunchType": "FARGATE"},
        )

    def test_deployment_circuit_breaker(self, template):
        template.has_resource_properties(
            "AWS::ECS::Service",
            {
                "DeploymentConfiguration": Match.object_like(
                    {
                        "DeploymentCircuitBreaker": {
                            "Enable": True,
                            "Rollback": True,
                        },
                    },
                ),
            },
        )

    def test_task_size(self, template):
        template.has_resource_properties(
            "AWS::ECS::TaskDefinition",
            {"Cpu": "512", "Memory": "1024"},
        )

    def test_container_port_and_image(self, template):
        template.has_resource_properties(
            "AWS::ECS::TaskDefinition",
            {
                "ContainerDefinitions": [
                    Match.object_like(
                        {
                            "Image": REGISTRY_IMAGE,
                            "PortMappings": [
                                Match.object_like({"ContainerPort": 8080}),
                            ],
                        },
                    ),
                ],
            },
        )

    def test_public_load_balancer(self, template):
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::LoadBalancer",
            {"Scheme": "internet-facing", "Type": "application"},
        )

    def test_log_group_retention(self, template):
        template.has_resource_properties(
            "AWS::Logs::LogGroup",
            {"RetentionInDays": 7},
        )

    def test_image_built_from_directory(self, aws_environment, image_directory):
        stack = _build(
            aws_environment,
            service_config=ServiceConfig(
                image=ImageConfig(directory=str(image_directory)),
            ),
        )
        template = Template.from_stack(stack)
        task_definition = next(
            iter(template.find_resources("AWS::ECS::TaskDefinition").values()),
        )
        image = task_definition["Properties"]["ContainerDefinitions"][0]["Image"]
        # Asset images resolve to the bootstrap ECR repository
        assert "container-assets" in json.dumps(image)


class TestServiceStackDatasource:
    def test_datasource_environment(self, template):
        environment = _container_environment(template)
        assert environment["springdatasourceurl"] == build_jdbc_url(
            _endpoint(),
            ServiceConfig().connection_options,
        )
        assert environment["springdatasourceusername"] == "dbaadmin"

    def test_url_embeds_endpoint_address(self, template):
        url = _container_environment(template)["springdatasourceurl"]
        assert url.startswith(f"jdbc:mysql://{DB_ADDRESS}:3306/notes_app?")
        assert "autoReconnect=true" in url

    def test_url_follows_endpoint_address(self, aws_environment):
        other = _build(aws_environment, endpoint=_endpoint("other.example.internal"))
        url = _container_environment(Template.from_stack(other))["springdatasourceurl"]
        assert "other.example.internal" in url
        assert DB_ADDRESS not in url

    def test_password_is_container_secret(self, template):
        template.has_resource_properties(
            "AWS::ECS::TaskDefinition",
            {
                "ContainerDefinitions": [
                    Match.object_like(
                        {
                            "Secrets": [
                                Match.object_like({"Name": "mysqlpassword"}),
                            ],
                        },
                    ),
                ],
            },
        )

    def test_password_not_in_environment(self, template):
        assert "mysqlpassword" not in _container_environment(template)


class TestServiceStackHealthCheck:
    def test_target_group_health_check(self, template):
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::TargetGroup",
            {
                "HealthCheckPort": "traffic-port",
                "HealthCheckPath": "/",
                "HealthCheckIntervalSeconds": 5,
                "HealthCheckTimeoutSeconds": 4,
                "HealthyThresholdCount": 2,
                "UnhealthyThresholdCount": 2,
                "Matcher": {"HttpCode": "200,301,302"},
            },
        )


class TestServiceStackSecretAccess:
    def test_kms_decrypt_on_ssm_key(self, template):
        template.has_resource_properties(
            "AWS::IAM::Policy",
            {
                "PolicyDocument": {
                    "Statement": Match.array_with(
                        [
                            Match.object_like(
                                {
                                    "Action": "kms:Decrypt",
                                    "Effect": "Allow",
                                    "Condition": {
                                        "ForAnyValue:StringEquals": {
                                            "kms:ResourceAliases": "alias/aws/ssm",
                                        },
                                    },
                                },
                            ),
                        ],
                    ),
                },
            },
        )

    def test_get_parameters_on_password(self, template):
        template.has_resource_properties(
            "AWS::IAM::Policy",
            {
                "PolicyDocument": {
                    "Statement": Match.array_with(
                        [
                            Match.object_like(
                                {"Action": "ssm:GetParameters", "Effect": "Allow"},
                            ),
                        ],
                    ),
                },
            },
        )

    def test_execution_role_cannot_read_beyond_retrieval(self, template):
        actions = _execution_role_actions(template)
        assert "ssm:GetParameters" in actions
        assert not actions & {
            "ssm:GetParameter",
            "ssm:GetParameterHistory",
            "ssm:DescribeParameters",
        }

    def test_password_retrieval_scoped_to_parameter(self, template):
        statements = [
            statement
            for policy in template.find_resources("AWS::IAM::Policy").values()
            for statement in policy["Properties"]["PolicyDocument"]["Statement"]
            if statement["Action"] == "ssm:GetParameters"
        ]
        assert len(statements) == 1
        assert "parameter/mysqlpassword" in json.dumps(statements[0]["Resource"])

    def test_wildcard_suppression_scoped_to_execution_role(self, template):
        nag_metadata = template.to_json().get("Metadata", {}).get("cdk_nag", {})
        stack_suppressions = nag_metadata.get("rules_to_suppress", [])
        assert "AwsSolutions-IAM5" not in {rule["id"] for rule in stack_suppressions}

        suppressed_policies = [
            policy
            for policy in template.find_resources("AWS::IAM::Policy").values()
            if "AwsSolutions-IAM5" in json.dumps(policy.get("Metadata", {}))
        ]
        assert suppressed_policies
        for policy in suppressed_policies:
            assert "ExecutionRole" in json.dumps(policy["Properties"]["Roles"])


class TestServiceStackValidation:
    def test_desired_count_outside_scaling_bounds(self, aws_environment):
        with pytest.raises(ValueError, match="desired_count"):
            _build(
                aws_environment,
                service_config=ServiceConfig(
                    image=ImageConfig(registry_image=REGISTRY_IMAGE),
                    desired_count=1,
                ),
            )


class TestServiceStackOutputs:
    def test_outputs(self, template):
        template.has_output(
            "LoadBalancerDnsName",
            {"Export": {"Name": "TestServiceStack-Load-Balancer-DNS"}},
        )
        template.has_output(
            "ServiceName",
            {"Export": {"Name": "TestServiceStack-Service-Name"}},
        )
        template.has_output(
            "DashboardName",
            {"Export": {"Name": "TestServiceStack-Dashboard-Name"}},
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
