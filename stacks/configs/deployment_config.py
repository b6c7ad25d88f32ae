"""Configuration models for the notes application deployment.

Defines the validated configuration consumed by the base, database and
service stacks. Defaults reproduce the reference deployment; any subset can
be overridden through the ``deployment`` CDK context key in ``cdk.json`` or
with ``cdk synth -c deployment='{...}'``.
"""

import ipaddress
import json
import logging
from typing import Any, Final

from aws_cdk import aws_logs as logs
from constructs import Construct
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEPLOYMENT_CONTEXT_KEY: Final[str] = "deployment"

# Capacity units accepted by Aurora MySQL in serverless engine mode.
AURORA_SERVERLESS_CAPACITIES: Final[tuple[int, ...]] = (
    1,
    2,
    4,
    8,
    16,
    32,
    64,
    128,
    256,
)
FARGATE_CPU_UNITS: Final[tuple[int, ...]] = (256, 512, 1024, 2048, 4096)
ANY_IPV4_CIDR: Final[str] = "0.0.0.0/0"
# Source ranges wider than this need the explicit open override.
MIN_SOURCE_PREFIX_LENGTH: Final[int] = 8


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NetworkConfig(_FrozenModel):
    """Network and cluster settings.

    Attributes:
        vpc_cidr: Address space of the VPC.
        max_azs: Number of availability zones to spread subnets across.
        nat_gateways: Number of NAT gateways providing private subnet egress.
        flow_logs_retention: Retention of the VPC flow log group.
    """

    vpc_cidr: str = "10.0.0.0/16"
    max_azs: int = Field(default=3, ge=1, le=3)
    nat_gateways: int = Field(default=1, ge=1)
    flow_logs_retention: logs.RetentionDays = logs.RetentionDays.ONE_MONTH

    @model_validator(mode="after")
    def _nat_within_zones(self) -> "NetworkConfig":
        if self.nat_gateways > self.max_azs:
            msg = (
                f"nat_gateways ({self.nat_gateways}) cannot exceed "
                f"max_azs ({self.max_azs})"
            )
            raise ValueError(msg)
        return self


class SecretParameterConfig(_FrozenModel):
    """Reference to the SSM SecureString holding the database password.

    The parameter must exist before deployment. Only its name and version
    are ever written to a template.
    """

    parameter_name: str = "/mysqlpassword"
    version: int = Field(default=1, ge=1)

    @field_validator("parameter_name")
    @classmethod
    def _absolute_name(cls, value: str) -> str:
        if not value.startswith("/"):
            msg = f"SSM parameter name must start with '/': {value!r}"
            raise ValueError(msg)
        return value

    @property
    def parameter_path(self) -> str:
        """Parameter name without the leading slash, as used in ARNs."""
        return self.parameter_name.lstrip("/")


class DatabaseConfig(_FrozenModel):
    """Serverless Aurora cluster settings.

    Attributes:
        engine: Aurora engine name.
        engine_version: Engine version supporting the serverless engine mode.
        database_name: Logical database created with the cluster.
        master_username: Master user name; the password comes from SSM.
        port: Database listener port.
        min_capacity: Minimum Aurora capacity units.
        max_capacity: Maximum Aurora capacity units.
        auto_pause: Whether the cluster pauses when idle.
        seconds_until_auto_pause: Idle time before pausing.
        backup_retention_days: Automated backup retention period.
        deletion_protection: Whether the cluster is protected from deletion.
        allowed_cidrs: Source ranges allowed to reach the database port.
            Defaults to the application tier subnets when unset.
        allow_any_ipv4: Explicit override opening the port to any address.
    """

    engine: str = "aurora-mysql"
    engine_version: str = "5.7.mysql_aurora.2.11.4"
    database_name: str = "notes_app"
    master_username: str = "dbaadmin"
    port: int = Field(default=3306, ge=1, le=65535)
    min_capacity: int = 2
    max_capacity: int = 8
    auto_pause: bool = True
    seconds_until_auto_pause: int = Field(default=600, ge=300, le=86400)
    backup_retention_days: int = Field(default=7, ge=1, le=35)
    deletion_protection: bool = False
    allowed_cidrs: tuple[str, ...] | None = None
    allow_any_ipv4: bool = False

    @field_validator("min_capacity", "max_capacity")
    @classmethod
    def _valid_capacity(cls, value: int) -> int:
        if value not in AURORA_SERVERLESS_CAPACITIES:
            msg = (
                f"Capacity {value} is not one of {AURORA_SERVERLESS_CAPACITIES}"
            )
            raise ValueError(msg)
        return value

    @field_validator("allowed_cidrs")
    @classmethod
    def _no_implicit_open_range(
        cls,
        value: tuple[str, ...] | None,
    ) -> tuple[str, ...] | None:
        if value is None:
            return value
        networks = []
        for cidr in value:
            try:
                networks.append(ipaddress.IPv4Network(cidr, strict=False))
            except ValueError as exc:
                msg = f"Invalid IPv4 CIDR in allowed_cidrs: {cidr!r}"
                raise ValueError(msg) from exc
        for network in networks:
            if network.prefixlen < MIN_SOURCE_PREFIX_LENGTH:
                msg = (
                    f"{network} is broader than /{MIN_SOURCE_PREFIX_LENGTH}; "
                    "set allow_any_ipv4 to open "
                    "the database port explicitly"
                )
                raise ValueError(msg)
        if any(net.prefixlen == 0 for net in ipaddress.collapse_addresses(networks)):
            msg = (
                f"allowed_cidrs cover {ANY_IPV4_CIDR}; set allow_any_ipv4 to open "
                "the database port explicitly"
            )
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _ordered_capacity(self) -> "DatabaseConfig":
        if self.min_capacity > self.max_capacity:
            msg = (
                f"min_capacity ({self.min_capacity}) must not exceed "
                f"max_capacity ({self.max_capacity})"
            )
            raise ValueError(msg)
        return self


class HealthCheckConfig(_FrozenModel):
    """Target group health check policy."""

    path: str = "/"
    interval_seconds: int = Field(default=5, ge=5, le=300)
    timeout_seconds: int = Field(default=4, ge=2, le=120)
    healthy_threshold_count: int = Field(default=2, ge=2, le=10)
    unhealthy_threshold_count: int = Field(default=2, ge=2, le=10)
    healthy_http_codes: str = "200,301,302"

    @model_validator(mode="after")
    def _timeout_below_interval(self) -> "HealthCheckConfig":
        if self.timeout_seconds >= self.interval_seconds:
            msg = (
                f"timeout_seconds ({self.timeout_seconds}) must be lower than "
                f"interval_seconds ({self.interval_seconds})"
            )
            raise ValueError(msg)
        return self


class ImageConfig(_FrozenModel):
    """Container image source: a local build context or a registry image."""

    directory: str | None = "../springgroot-jpa"
    registry_image: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _registry_replaces_default_directory(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("registry_image") and "directory" not in data:
            return {**data, "directory": None}
        return data

    @model_validator(mode="after")
    def _single_source(self) -> "ImageConfig":
        if (self.directory is None) == (self.registry_image is None):
            msg = "Exactly one of directory or registry_image must be set"
            raise ValueError(msg)
        return self


class ServiceConfig(_FrozenModel):
    """Load-balanced Fargate service settings."""

    image: ImageConfig = ImageConfig()
    container_port: int = Field(default=8080, ge=1, le=65535)
    desired_count: int = Field(default=2, ge=0)
    cpu: int = 512
    memory_limit_mib: int = 1024
    connection_options: str = (
        "autoReconnect=true&useUnicode=true"
        "&characterEncoding=UTF-8&allowMultiQueries=true"
    )
    health_check: HealthCheckConfig = HealthCheckConfig()

    @field_validator("cpu")
    @classmethod
    def _fargate_cpu(cls, value: int) -> int:
        if value not in FARGATE_CPU_UNITS:
            msg = f"Fargate CPU must be one of {FARGATE_CPU_UNITS}, got {value}"
            raise ValueError(msg)
        return value


class ScalingConfig(_FrozenModel):
    """Target-tracking autoscaling on a custom CloudWatch metric."""

    min_capacity: int = Field(default=2, ge=0)
    max_capacity: int = Field(default=20, ge=1)
    metric_namespace: str = "CDK/Testing"
    metric_name: str = "CDKTestingCustomMetric"
    statistic: str = "Average"
    period_seconds: int = Field(default=60, ge=1)
    target_value: float = 150
    scale_in_cooldown_seconds: int = Field(default=60, ge=0)
    scale_out_cooldown_seconds: int = Field(default=60, ge=0)
    policy_name: str = "KeepIt150"

    @model_validator(mode="after")
    def _ordered_bounds(self) -> "ScalingConfig":
        if self.min_capacity > self.max_capacity:
            msg = (
                f"min_capacity ({self.min_capacity}) must not exceed "
                f"max_capacity ({self.max_capacity})"
            )
            raise ValueError(msg)
        return self


class DashboardConfig(_FrozenModel):
    title: str = "Notes App on Fargate Dashboard"
    period_minutes: int = Field(default=1, ge=1)


class DeploymentConfig(_FrozenModel):
    """Complete configuration for one deployment of the notes application."""

    network: NetworkConfig = NetworkConfig()
    secret: SecretParameterConfig = SecretParameterConfig()
    database: DatabaseConfig = DatabaseConfig()
    service: ServiceConfig = ServiceConfig()
    scaling: ScalingConfig = ScalingConfig()
    dashboard: DashboardConfig = DashboardConfig()

    @model_validator(mode="after")
    def _desired_within_bounds(self) -> "DeploymentConfig":
        desired = self.service.desired_count
        if not self.scaling.min_capacity <= desired <= self.scaling.max_capacity:
            msg = (
                f"desired_count ({desired}) must lie within the autoscaling "
                f"bounds [{self.scaling.min_capacity}, {self.scaling.max_capacity}]"
            )
            raise ValueError(msg)
        return self


def load_deployment_config(scope: Construct) -> DeploymentConfig:
    """Builds the deployment configuration from CDK context.

    The ``deployment`` context value may be a mapping (from ``cdk.json``) or a
    JSON string (from ``-c deployment=...``). Missing keys keep their defaults.

    Args:
        scope: Construct whose node context is read, usually the App.

    Returns:
        Validated deployment configuration.

    Raises:
        pydantic.ValidationError: If the overrides violate an invariant.
        ValueError: If the context value is neither a mapping nor JSON.
    """
    overrides: Any = scope.node.try_get_context(DEPLOYMENT_CONTEXT_KEY) or {}
    if isinstance(overrides, str):
        try:
            overrides = json.loads(overrides)
        except json.JSONDecodeError as exc:
            msg = f"Context '{DEPLOYMENT_CONTEXT_KEY}' is not valid JSON: {exc}"
            raise ValueError(msg) from exc
    if not isinstance(overrides, dict):
        msg = (
            f"Context '{DEPLOYMENT_CONTEXT_KEY}' must be a mapping, "
            f"got {type(overrides).__name__}"
        )
        raise ValueError(msg)

    config = DeploymentConfig.model_validate(overrides)
    logger.info(
        "Loaded deployment config with overrides for %s",
        sorted(overrides) or "nothing",
    )
    return config
