"""Cross-stack outputs for the notes application stacks.

Every value another stack or an operator needs is published twice: as a
CloudFormation export named ``<stack>-<key>`` and as an SSM String parameter
under ``/infrastructure/<stack>/<key>`` (lowercase), so it can be looked up
without knowing the stack's export list.
"""

from aws_cdk import CfnOutput
from aws_cdk import aws_ssm as ssm
from constructs import Construct

SSM_OUTPUT_ROOT = "/infrastructure"


class OutputManager:
    """Publishes stack values as exports mirrored to SSM.

    Attributes:
        scope: Stack the outputs and parameters are created in.
        stack_name: Name used to namespace exports and parameters.
        outputs: Created outputs keyed by construct ID.
    """

    def __init__(self, scope: Construct, stack_name: str) -> None:
        self.scope = scope
        self.stack_name = stack_name
        self.outputs: dict[str, CfnOutput] = {}

    def export_name(self, key: str) -> str:
        return f"{self.stack_name}-{key}"

    def parameter_name(self, key: str) -> str:
        return f"{SSM_OUTPUT_ROOT}/{self.stack_name}/{key}".lower()

    def add_output_with_ssm(
        self,
        id_: str,
        value: str,
        description: str,
        export_name: str,
    ) -> CfnOutput:
        """Export ``value`` and mirror it to an SSM parameter.

        Args:
            id_: Construct ID of the output; the parameter gets ``<id_>Parameter``.
            value: Value to publish, usually a token.
            description: Shared by the output and the parameter.
            export_name: Key appended to the stack name.

        Returns:
            The created CloudFormation output.

        Raises:
            ValueError: If an output with the same ID was already published.
        """
        if id_ in self.outputs:
            msg = f"Output {id_!r} is already published by {self.stack_name}"
            raise ValueError(msg)

        self.outputs[id_] = CfnOutput(
            self.scope,
            id_,
            value=value,
            description=description,
            export_name=self.export_name(export_name),
        )
        ssm.StringParameter(
            self.scope,
            f"{id_}Parameter",
            parameter_name=self.parameter_name(export_name),
            string_value=value,
            description=description,
        )
        return self.outputs[id_]
