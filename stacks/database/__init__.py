"""Database infrastructure module for the notes application.

Provides the serverless Aurora cluster and the plain-data endpoint handed
to the service stack.
"""

from .database_stack import DatabaseStack
from .endpoint import DatabaseEndpoint

__all__ = ["DatabaseEndpoint", "DatabaseStack"]
