"""Entry point for the notes application infrastructure deployment.

This module orchestrates the deployment of the three AWS CDK stacks that run
the notes application on Fargate: the base network and cluster, the
serverless Aurora database and the load-balanced service. It supports both
environment-based and profile-based configuration.

Environment Configuration Options:
    1. AWS Named Profile:
       AWS_PROFILE: Named profile from AWS credentials file

    2. Direct Environment Variables:
       AWS_DEFAULT_REGION: Target AWS region for deployment
       CDK_DEFAULT_ACCOUNT: Target AWS account for deployment

    ENVIRONMENT selects the deployment stage suffix and LOG_LEVEL the
    synthesis log verbosity.
"""

import logging
import os
from dataclasses import dataclass, replace

import boto3
from aws_cdk import App, Environment

from stacks.configs import load_deployment_config
from stacks.database import DatabaseStack
from stacks.network import NetworkStack
from stacks.service import ServiceStack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StackConfiguration:
    """Configuration settings for stack deployment.

    Attributes:
        app_name: Base name for stack resources and identifiers.
            Used as prefix for stack naming and resource tagging.
        environment: Optional deployment environment name.
            Used to differentiate between deployment stages.
        aws_profile: Optional AWS credentials profile name.
            Used for authentication and environment configuration.
    """

    app_name: str = "NotesApp"
    environment: str | None = None
    aws_profile: str | None = None

    @property
    def stack_name(self) -> str:
        """Generate stack name with environment suffix when applicable."""
        if self.environment:
            return f"{self.app_name}Stack-{self.environment}"
        return f"{self.app_name}Stack"

    def with_app_name(self, app_name: str) -> "StackConfiguration":
        """Create new configuration with updated app name."""
        return replace(self, app_name=app_name)


def create_deployment_environment(config: StackConfiguration) -> Environment:
    """Creates CDK Environment from configuration.

    Args:
        config: Stack configuration containing environment details.

    Returns:
        CDK Environment with account and region resolved.
    """
    if config.aws_profile:
        session = boto3.Session(profile_name=config.aws_profile)
        sts = session.client("sts")
        account = sts.get_caller_identity()["Account"]
        return Environment(
            account=account,
            region=session.region_name or "us-east-1",
        )

    return Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
    )


def initialize_app(
    environment: str | None = None,
    aws_profile: str | None = None,
    app: App | None = None,
) -> App:
    """Initializes and configures the CDK application.

    Creates the base, database and service stacks. Each stack receives only
    the values it consumes from the stack before it.

    Args:
        environment: Optional deployment environment name.
        aws_profile: Optional AWS credentials profile to use.
        app: Optional pre-built App, e.g. one carrying context overrides.

    Returns:
        Configured CDK App instance ready for synthesis.
    """
    config = StackConfiguration(environment=environment, aws_profile=aws_profile)
    env = create_deployment_environment(config)
    app = app or App()
    deployment = load_deployment_config(app)
    tags = {
        "Environment": environment or "dev",
        "Application": config.app_name,
        "ManagedBy": "AWS-CDK",
    }

    _base = NetworkStack(
        app,
        config.with_app_name("NotesAppBase").stack_name,
        network_config=deployment.network,
        env=env,
        description="VPC and ECS cluster for the notes application.",
        tags=tags,
    )

    _database = DatabaseStack(
        app,
        config.with_app_name("NotesAppDatabase").stack_name,
        vpc=_base.vpc,
        app_tier_cidrs=_base.app_tier_cidrs,
        database_config=deployment.database,
        secret_config=deployment.secret,
        env=env,
        description="Serverless Aurora MySQL cluster for the notes application.",
        tags=tags,
    )
    _database.add_dependency(_base)

    _service = ServiceStack(
        app,
        config.with_app_name("NotesAppService").stack_name,
        cluster=_base.cluster,
        database=_database.endpoint,
        secret_config=deployment.secret,
        service_config=deployment.service,
        scaling_config=deployment.scaling,
        dashboard_config=deployment.dashboard,
        env=env,
        description="Load-balanced Fargate service, autoscaling and dashboard for the notes application.",
        tags=tags,
    )
    _service.add_dependency(_base)
    _service.add_dependency(_database)

    logger.info(
        "Configured stacks %s",
        ", ".join(stack.stack_name for stack in (_base, _database, _service)),
    )
    return app


def main() -> None:
    """Main execution entry point."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    environment = os.environ.get("ENVIRONMENT")
    aws_profile = os.environ.get("AWS_PROFILE")

    app = initialize_app(environment=environment, aws_profile=aws_profile)
    app.synth()


if __name__ == "__main__":
    main()
