from .deployment_config import (
    DashboardConfig,
    DatabaseConfig,
    DeploymentConfig,
    HealthCheckConfig,
    ImageConfig,
    NetworkConfig,
    ScalingConfig,
    SecretParameterConfig,
    ServiceConfig,
    load_deployment_config,
)

__all__ = [
    "DashboardConfig",
    "DatabaseConfig",
    "DeploymentConfig",
    "HealthCheckConfig",
    "ImageConfig",
    "NetworkConfig",
    "ScalingConfig",
    "SecretParameterConfig",
    "ServiceConfig",
    "load_deployment_config",
]
