"""Datasource settings injected into the application container."""

from stacks.constants import DATASOURCE_URL_ENV, DATASOURCE_USERNAME_ENV
from stacks.database import DatabaseEndpoint


def build_jdbc_url(endpoint: DatabaseEndpoint, options: str = "") -> str:
    """Build the MySQL JDBC URL for a database endpoint.

    The endpoint address is embedded verbatim, so a token address resolves
    to whatever the database stack exports at deploy time.

    Args:
        endpoint: Database connection details.
        options: Query string appended after ``?``; omitted when empty.

    Returns:
        JDBC URL such as ``jdbc:mysql://host:3306/notes_app?autoReconnect=true``.
    """
    url = f"jdbc:mysql://{endpoint.address}:{endpoint.port}/{endpoint.database_name}"
    if options:
        url = f"{url}?{options.lstrip('?')}"
    return url


def datasource_environment(endpoint: DatabaseEndpoint, options: str = "") -> dict[str, str]:
    """Container environment values for the datasource, without the password."""
    return {
        DATASOURCE_URL_ENV: build_jdbc_url(endpoint, options),
        DATASOURCE_USERNAME_ENV: endpoint.username,
    }
