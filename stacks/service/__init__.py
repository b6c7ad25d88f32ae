"""Application tier module for the notes application.

This module provides the load-balanced Fargate service together with its
autoscaling policy and CloudWatch dashboard.
"""

from .auto_scaling import TaskAutoScaling
from .connection import build_jdbc_url, datasource_environment
from .dashboard import ServiceDashboard
from .secrets import RetrieveOnlyParameterSecret
from .service_stack import ServiceStack

__all__ = [
    "RetrieveOnlyParameterSecret",
    "ServiceDashboard",
    "ServiceStack",
    "TaskAutoScaling",
    "build_jdbc_url",
    "datasource_environment",
]
