"""Exceptions raised by API clients and the migration engine."""

from typing import Optional


class MigrateAPIError(Exception):
    """Base exception for remote API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code, ``None`` for network level failures
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class AuthenticationError(MigrateAPIError):
    """Authentication error with a remote API."""

    pass


class NotFoundError(MigrateAPIError):
    """Resource not found error."""

    pass


class ValidationError(MigrateAPIError):
    """Request rejected by business validation."""

    pass


class GraphQLError(MigrateAPIError):
    """GraphQL response carried an ``errors`` array."""

    pass


class MigrationError(Exception):
    """Base exception for migration orchestration errors."""

    pass


class MigrationFailedError(MigrationError):
    """A migration job reached a failed terminal state."""

    def __init__(self, migration_id: str, failure_reason: Optional[str] = None):
        """Initialize migration failure.

        Args:
            migration_id: Identifier of the failed job
            failure_reason: Failure reason reported by the platform
        """
        super().__init__(failure_reason or f'Migration {migration_id} failed')
        self.migration_id = migration_id
        self.failure_reason = failure_reason


class MigrationTimeoutError(MigrationError):
    """A migration job did not reach a terminal state within the allowed time."""

    pass


class InvalidMigrationIdError(MigrationError):
    """Migration identifier does not carry a known prefix."""

    def __init__(self, migration_id: str):
        super().__init__(f'Invalid migration id: {migration_id}')
        self.migration_id = migration_id


class CredentialsError(MigrationError):
    """Required credentials are missing or conflict with each other."""

    pass


class NoMigratableReposError(MigrationError):
    """Discovery found nothing to migrate."""

    pass


class RetryExhaustedError(MigrationError):
    """An eventually consistent read never produced an acceptable value."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
