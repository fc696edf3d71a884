"""ShapeStore exceptions.

This module defines the exception hierarchy for the ShapeStore library.
All custom exceptions inherit from ShapeStoreError, allowing callers to catch
all library-specific errors with a single except clause.

Exception categories:
- ConfigurationError: Programming errors detected at setup (never retried)
    - UnregisteredEntityError: Entity type was never registered
    - UndeclaredIndexError: Attribute was not declared as indexed
- StorageUnavailable: The backing store failed or could not be reached
    - TableNotFoundError: Table does not exist
    - ThroughputExceededError: Provisioned capacity exhausted or throttled
    - DynamoDBClientError: Any other DynamoDB API error
- InvalidRequestError: DynamoDB rejected a malformed request (never retried)
- SerializationError: An attribute could not be converted to or from the store

StorageUnavailable errors may be retried by the caller; the library itself
never retries.
"""

from typing import Any

from botocore.exceptions import ClientError

THROUGHPUT_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
    }
)


class ShapeStoreError(Exception):
    """Base exception for all ShapeStore errors.

    Example:
        try:
            circles.save(circle)
        except ShapeStoreError as e:
            pass

    """


class ConfigurationError(ShapeStoreError):
    """Raised when the persistence layer is set up incorrectly.

    These are caller programming errors and are not meant to be retried.
    """


class UnregisteredEntityError(ConfigurationError):
    """Raised when an entity type is used without being registered.

    Attributes:
        entity_type: The type that was looked up.

    Example:
        registry.schema_for(Triangle)
        Raises UnregisteredEntityError: Entity type 'Triangle' is not registered

    """

    def __init__(self, entity_type: type) -> None:
        self.entity_type = entity_type
        super().__init__(f"Entity type '{entity_type.__name__}' is not registered")


class UndeclaredIndexError(ConfigurationError):
    """Raised when an attribute query targets an attribute without an index.

    Queries on non-indexed attributes are rejected up front instead of
    degrading to a full table scan.

    Attributes:
        attribute: The attribute that was requested.
        entity_name: Name of the entity type.

    """

    def __init__(self, *, attribute: str, entity_name: str) -> None:
        self.attribute = attribute
        self.entity_name = entity_name
        super().__init__(
            f"Attribute '{attribute}' of {entity_name} is not declared as indexed",
        )


class StorageUnavailable(ShapeStoreError):
    """Raised when the backing store fails or cannot be reached.

    Attributes:
        operation: The repository operation that failed (e.g. 'save').
        entity_name: Name of the entity type involved, if known.
        original_error: The underlying botocore exception.

    """

    def __init__(
        self,
        message: str = "DynamoDB is unavailable",
        *,
        operation: str | None = None,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.operation = operation
        self.entity_name = entity_name
        self.original_error = original_error
        if entity_name and operation:
            message = f"{message} ({entity_name} {operation})"
        elif operation:
            message = f"{message} ({operation})"
        super().__init__(message)


class TableNotFoundError(StorageUnavailable):
    """Raised when the table backing an entity type does not exist.

    Attributes:
        table_name: The missing table, if known.

    """

    def __init__(
        self,
        *,
        table_name: str | None = None,
        operation: str | None = None,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.table_name = table_name
        message = f"Table '{table_name}' not found" if table_name else "Table not found"
        super().__init__(
            message,
            operation=operation,
            entity_name=entity_name,
            original_error=original_error,
        )


class ThroughputExceededError(StorageUnavailable):
    """Raised when DynamoDB rejects a request for exceeding provisioned throughput."""

    def __init__(
        self,
        *,
        operation: str | None = None,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            "Provisioned throughput exceeded",
            operation=operation,
            entity_name=entity_name,
            original_error=original_error,
        )


class DynamoDBClientError(StorageUnavailable):
    """Raised for DynamoDB API errors without a more specific mapping.

    Attributes:
        error_code: The DynamoDB error code (e.g. 'InternalServerError').

    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        operation: str | None = None,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.error_code = error_code
        if error_code:
            message = f"{error_code}: {message}"
        super().__init__(
            message,
            operation=operation,
            entity_name=entity_name,
            original_error=original_error,
        )


class InvalidRequestError(ShapeStoreError):
    """Raised when DynamoDB rejects a request as invalid.

    The request itself is wrong, so retrying it cannot succeed.

    Attributes:
        error_code: The DynamoDB error code (e.g. 'ValidationException').
        operation: The repository operation that failed.
        entity_name: Name of the entity type involved, if known.
        original_error: The underlying botocore exception.

    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        operation: str | None = None,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.error_code = error_code
        self.operation = operation
        self.entity_name = entity_name
        self.original_error = original_error
        if error_code:
            message = f"{error_code}: {message}"
        if entity_name and operation:
            message = f"{message} ({entity_name} {operation})"
        super().__init__(message)


class SerializationError(ShapeStoreError):
    """Raised when an attribute value cannot be converted to or from DynamoDB.

    Example:
        A stored circle whose radius attribute holds "large" instead of a number
        raises SerializationError when read back.

    Attributes:
        entity_name: Name of the entity type involved, if known.
        original_error: The underlying conversion error.

    """

    def __init__(
        self,
        message: str,
        *,
        entity_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.entity_name = entity_name
        self.original_error = original_error
        if entity_name:
            message = f"{entity_name}: {message}"
        super().__init__(message)


def wrap_client_error(
    error: Exception,
    *,
    operation: str | None = None,
    entity_name: str | None = None,
    table_name: str | None = None,
) -> ShapeStoreError:
    """Translate a botocore ClientError into the ShapeStore taxonomy.

    Args:
        error: The ClientError raised by boto3.
        operation: The repository operation that failed.
        entity_name: Name of the entity type involved.
        table_name: Name of the table involved.

    Returns:
        The translated exception. The caller is expected to raise it.

    """
    response: dict[str, Any] = getattr(error, "response", {}) or {}
    error_info = response.get("Error", {})
    code = error_info.get("Code", "")
    message = error_info.get("Message", str(error))

    if code == "ResourceNotFoundException":
        return TableNotFoundError(
            table_name=table_name,
            operation=operation,
            entity_name=entity_name,
            original_error=error,
        )
    if code in THROUGHPUT_ERROR_CODES:
        return ThroughputExceededError(
            operation=operation,
            entity_name=entity_name,
            original_error=error,
        )
    if code == "ValidationException":
        if "type mismatch" in message.lower():
            return SerializationError(message, entity_name=entity_name, original_error=error)
        return InvalidRequestError(
            message,
            error_code=code,
            operation=operation,
            entity_name=entity_name,
            original_error=error,
        )
    return DynamoDBClientError(
        message,
        error_code=code or None,
        operation=operation,
        entity_name=entity_name,
        original_error=error,
    )


def wrap_boto_error(
    error: Exception,
    *,
    operation: str | None = None,
    entity_name: str | None = None,
    table_name: str | None = None,
) -> ShapeStoreError:
    """Translate any botocore exception into the ShapeStore taxonomy.

    ClientErrors are mapped by error code (see wrap_client_error). Everything
    else, such as connection failures and timeouts, is StorageUnavailable.
    """
    if isinstance(error, ClientError):
        return wrap_client_error(
            error,
            operation=operation,
            entity_name=entity_name,
            table_name=table_name,
        )
    return StorageUnavailable(
        f"DynamoDB is unavailable: {error}",
        operation=operation,
        entity_name=entity_name,
        original_error=error,
    )


__all__ = [
    "ConfigurationError",
    "DynamoDBClientError",
    "InvalidRequestError",
    "SerializationError",
    "ShapeStoreError",
    "StorageUnavailable",
    "TableNotFoundError",
    "ThroughputExceededError",
    "UndeclaredIndexError",
    "UnregisteredEntityError",
    "wrap_boto_error",
    "wrap_client_error",
]
