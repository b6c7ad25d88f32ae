"""Deployment constants shared by the notes application stacks.

Values here are fixed by the application image contract rather than by the
deployment configuration: the container reads its datasource settings from
these environment variable names.
"""

from typing import Final

from aws_cdk import aws_logs as logs

STACK_PREFIX: Final[str] = "notes-app"
LOG_RETENTION_DAYS: Final[logs.RetentionDays] = logs.RetentionDays.ONE_WEEK

DATASOURCE_URL_ENV: Final[str] = "springdatasourceurl"
DATASOURCE_USERNAME_ENV: Final[str] = "springdatasourceusername"
DATASOURCE_PASSWORD_SECRET: Final[str] = "mysqlpassword"

SSM_DEFAULT_KEY_ALIAS: Final[str] = "alias/aws/ssm"
