"""Polling of migration jobs until they reach a terminal state."""

from typing import Callable, Optional

from loguru import logger

from ..api.exceptions import MigrationFailedError, MigrationTimeoutError
from ..models.job import (
    JobKind,
    MigrationStatus,
    OrgMigrationStatus,
    RepoMigrationStatus,
    TerminalOutcome,
    parse_migration_id,
)
from ..utils.clock import Clock, SystemClock

DEFAULT_WAIT_INTERVAL = 10


class MigrationWaiter:
    """Waits for repository and organization migrations to finish."""

    def __init__(
        self,
        github_api,
        clock: Optional[Clock] = None,
        log=None,
        interval_seconds: int = DEFAULT_WAIT_INTERVAL,
        timeout_seconds: Optional[int] = None,
    ):
        """Initialize waiter.

        Args:
            github_api: API exposing ``get_migration`` and
                ``get_organization_migration``
            clock: Clock used between polls
            log: Logger
            interval_seconds: Delay between polls
            timeout_seconds: Give up after this many seconds; ``None`` waits
                until the job reaches a terminal state
        """
        self.github_api = github_api
        self.clock = clock or SystemClock()
        self.log = log or logger.bind(component='MigrationWaiter')
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds

    def wait_for_migration(self, migration_id: str) -> TerminalOutcome:
        """Wait for a migration identified by its ``RM_`` or ``OM_`` ID.

        Raises:
            InvalidMigrationIdError: If the ID has an unknown prefix, before
                any poll
            MigrationFailedError: If the migration fails
        """
        kind = parse_migration_id(migration_id)

        if kind is JobKind.REPOSITORY:
            self.log.info(f'Waiting for migration (ID: {migration_id}) to finish...')
            return self.wait_for_terminal(
                migration_id,
                lambda: self.github_api.get_migration(migration_id),
                self._describe_repo,
                on_terminal=self._report_repo,
            )

        self.log.info(
            f'Waiting for organization migration (ID: {migration_id}) to finish...'
        )
        return self.wait_for_terminal(
            migration_id,
            lambda: self.github_api.get_organization_migration(migration_id),
            self._describe_org,
        )

    def wait_for_terminal(
        self,
        migration_id: str,
        poll: Callable[[], MigrationStatus],
        describe: Callable[[str, MigrationStatus], str],
        interval_seconds: Optional[int] = None,
        on_terminal: Optional[Callable[[MigrationStatus], None]] = None,
    ) -> TerminalOutcome:
        """Poll until the job succeeds or fails.

        Args:
            migration_id: Job identifier
            poll: Returns the current status snapshot
            describe: Formats a status line for logging
            interval_seconds: Delay between polls, defaults to the waiter's
            on_terminal: Called once with the terminal status

        Returns:
            Outcome of a succeeded job

        Raises:
            MigrationFailedError: Carrying the platform failure reason
            MigrationTimeoutError: If ``timeout_seconds`` elapses first
        """
        interval = self.interval_seconds if interval_seconds is None else interval_seconds
        started = self.clock.now()
        polls = 0

        while True:
            status = poll()
            polls += 1
            state = status.state

            if state.is_terminal():
                if on_terminal is not None:
                    on_terminal(status)

                if state.is_succeeded():
                    self.log.success(f'Migration {migration_id} succeeded')
                    return TerminalOutcome(migration_id, status, polls)

                self.log.error(
                    f'Migration {migration_id} failed: '
                    f'{status.failure_reason or state.value}'
                )
                raise MigrationFailedError(migration_id, status.failure_reason)

            self.log.info(describe(migration_id, status))

            if (
                self.timeout_seconds is not None
                and self.clock.now() - started + interval > self.timeout_seconds
            ):
                raise MigrationTimeoutError(
                    f'Migration {migration_id} did not finish within '
                    f'{self.timeout_seconds} seconds'
                )

            self.log.info(f'Waiting {interval} seconds...')
            self.clock.sleep(interval)

    @staticmethod
    def _describe_repo(migration_id: str, status: RepoMigrationStatus) -> str:
        return (
            f'Migration {migration_id} for {status.repository_name} is '
            f'{status.state.value}'
        )

    @staticmethod
    def _describe_org(migration_id: str, status: OrgMigrationStatus) -> str:
        if status.state.is_repo_migration():
            return (
                f'Migration {migration_id} is {status.state.value} - '
                f'{status.completed_repositories_count}/'
                f'{status.total_repositories_count} repositories completed'
            )
        return f'Migration {migration_id} is {status.state.value}'

    def _report_repo(self, status: RepoMigrationStatus) -> None:
        if status.warnings_count:
            self.log.warning(
                f'{status.warnings_count} warnings encountered during this migration'
            )
        if status.migration_log_url:
            self.log.info(f'Migration log available at {status.migration_log_url}')
