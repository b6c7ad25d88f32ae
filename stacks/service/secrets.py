"""Container secrets resolved from SSM Parameter Store."""

import builtins

from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_iam as iam
from aws_cdk import aws_ssm as ssm

SSM_RETRIEVE_ACTIONS: list[str] = ["ssm:GetParameters"]


class RetrieveOnlyParameterSecret(ecs.Secret):
    """ECS container secret backed by an SSM SecureString parameter.

    ECS fetches the value with ``ssm:GetParameters`` when a task starts, so
    the execution role is granted that single action on the parameter
    instead of the full read set of ``IParameter.grant_read``.
    """

    def __init__(self, parameter: ssm.IParameter) -> None:
        super().__init__()
        self._parameter = parameter

    @builtins.property
    def arn(self) -> str:
        return self._parameter.parameter_arn

    def grant_read(self, grantee: iam.IGrantable) -> iam.Grant:
        return iam.Grant.add_to_principal(
            grantee=grantee,
            actions=SSM_RETRIEVE_ACTIONS,
            resource_arns=[self._parameter.parameter_arn],
        )
