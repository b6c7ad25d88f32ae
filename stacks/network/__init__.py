"""Network infrastructure module for the notes application.

This module provides the VPC and the ECS cluster the database and the
Fargate service are deployed into.
"""

from .network_stack import NetworkStack

__all__ = ["NetworkStack"]
