"""Settings and DynamoDB resource construction.

Settings are read from environment variables prefixed with SHAPESTORE_ and
from a local .env file.
"""

from functools import lru_cache
from typing import TYPE_CHECKING, Any

import boto3
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from shapestore.provisioner import ProvisionedCapacity

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
else:
    DynamoDBServiceResource = Any


class ShapeStoreSettings(BaseSettings):
    """Connection, naming and capacity settings.

    Environment Variables:
        SHAPESTORE_DYNAMODB_ENDPOINT: Endpoint URL, e.g. a dynamodb-local
            instance (default: the regional AWS endpoint)
        SHAPESTORE_AWS_REGION: AWS region (default: us-east-1)
        SHAPESTORE_AWS_ACCESS_KEY: Access key id (default: boto3 credential chain)
        SHAPESTORE_AWS_SECRET_KEY: Secret access key
        SHAPESTORE_TABLE_NAME_PREFIX: Prefix for every table name (default: "")
        SHAPESTORE_READ_CAPACITY_UNITS: Table and index read capacity (default: 10)
        SHAPESTORE_WRITE_CAPACITY_UNITS: Table and index write capacity (default: 10)

    Example:
        ```python
        from shapestore.config import create_dynamodb_resource, get_settings

        settings = get_settings()
        dynamodb = create_dynamodb_resource(settings)
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="SHAPESTORE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    DYNAMODB_ENDPOINT: str | None = Field(
        default=None,
        description="DynamoDB endpoint URL; None uses the AWS default",
    )

    AWS_REGION: str = Field(
        default="us-east-1",
        description="AWS region of the DynamoDB endpoint",
    )

    AWS_ACCESS_KEY: str | None = Field(
        default=None,
        description="AWS access key id; None defers to the boto3 credential chain",
    )

    AWS_SECRET_KEY: SecretStr | None = Field(
        default=None,
        description="AWS secret access key",
    )

    TABLE_NAME_PREFIX: str = Field(
        default="",
        description="Prefix prepended to every table name",
    )

    READ_CAPACITY_UNITS: int = Field(
        default=10,
        ge=1,
        description="Provisioned read capacity for tables and indexes",
    )

    WRITE_CAPACITY_UNITS: int = Field(
        default=10,
        ge=1,
        description="Provisioned write capacity for tables and indexes",
    )

    def capacity(self) -> ProvisionedCapacity:
        return ProvisionedCapacity(
            read_capacity_units=self.READ_CAPACITY_UNITS,
            write_capacity_units=self.WRITE_CAPACITY_UNITS,
        )


@lru_cache
def get_settings() -> ShapeStoreSettings:
    """Return the process-wide settings, loaded on first use."""
    return ShapeStoreSettings()


def create_dynamodb_resource(settings: ShapeStoreSettings) -> DynamoDBServiceResource:
    """Create a boto3 DynamoDB resource from settings.

    Static credentials are used only when both the access key and the secret
    key are set.
    """
    resource_kwargs: dict[str, Any] = {"region_name": settings.AWS_REGION}
    if settings.DYNAMODB_ENDPOINT:
        resource_kwargs["endpoint_url"] = settings.DYNAMODB_ENDPOINT
    if settings.AWS_ACCESS_KEY and settings.AWS_SECRET_KEY is not None:
        resource_kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY
        resource_kwargs["aws_secret_access_key"] = settings.AWS_SECRET_KEY.get_secret_value()

    return boto3.resource("dynamodb", **resource_kwargs)


__all__ = [
    "ShapeStoreSettings",
    "create_dynamodb_resource",
    "get_settings",
]
