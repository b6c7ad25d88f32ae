"""Plain-data handoff from the database stack to its consumers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseEndpoint:
    """Connection details of the serverless Aurora cluster.

    Attributes:
        address: Endpoint hostname; a CloudFormation token when it comes
            from a deployed cluster.
        port: Listener port.
        database_name: Logical database created with the cluster.
        username: Master user name. The password is never part of the
            endpoint; consumers resolve it from the secret parameter.
    """

    address: str
    port: int
    database_name: str
    username: str
