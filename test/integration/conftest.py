from collections.abc import Generator

import boto3
import docker
import pytest
from docker.errors import DockerException
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
from pytest import fixture
from testcontainers.core.container import DockerContainer  # type: ignore[import-untyped]
from testcontainers.core.wait_strategies import (  # type: ignore[import-untyped]
    HttpWaitStrategy,
)

DYNAMODB_IMAGE = "amazon/dynamodb-local:latest"
DYNAMODB_PORT = 8000


def _docker_available() -> bool:
    try:
        docker.from_env().ping()
    except DockerException:
        return False
    return True


@fixture(scope="session")
def dynamodb_endpoint(aws_credentials: None) -> Generator[str, None, None]:
    """Session-scoped dynamodb-local container providing its endpoint URL."""
    if not _docker_available():
        pytest.skip("Docker daemon is not reachable")

    with DockerContainer(
        DYNAMODB_IMAGE,
        ports=[DYNAMODB_PORT],
        _wait_strategy=HttpWaitStrategy(DYNAMODB_PORT).for_status_code(400),
    ) as container:
        yield (
            f"http://{container.get_container_host_ip()}:"
            f"{container.get_exposed_port(DYNAMODB_PORT)}"
        )


@fixture
def dynamodb(dynamodb_endpoint: str) -> DynamoDBServiceResource:
    """Overrides the moto resource with one pointing at dynamodb-local."""
    return boto3.resource("dynamodb", endpoint_url=dynamodb_endpoint, region_name="us-east-1")
