"""Migration job identifiers, states and status snapshots."""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..api.exceptions import InvalidMigrationIdError

REPO_MIGRATION_ID_PREFIX = 'RM_'
ORG_MIGRATION_ID_PREFIX = 'OM_'


class JobKind(str, Enum):
    """Kind of migration job, derived from its identifier prefix."""

    REPOSITORY = 'repository'
    ORGANIZATION = 'organization'


def parse_migration_id(migration_id: str) -> JobKind:
    """Determine the job kind from a migration identifier.

    Args:
        migration_id: Identifier returned when the migration was queued

    Returns:
        Job kind

    Raises:
        InvalidMigrationIdError: If the identifier carries no known prefix
    """
    if migration_id and migration_id.startswith(REPO_MIGRATION_ID_PREFIX):
        return JobKind.REPOSITORY
    if migration_id and migration_id.startswith(ORG_MIGRATION_ID_PREFIX):
        return JobKind.ORGANIZATION
    raise InvalidMigrationIdError(migration_id)


class JobState(str, Enum):
    """Shared classification for migration job states.

    Concrete state enums list their members and the values that are still
    pending. Anything neither succeeded nor pending counts as failed, so a
    state the platform adds later is never reported as success.
    """

    @classmethod
    def pending_values(cls) -> FrozenSet[str]:
        return frozenset()

    @classmethod
    def _missing_(cls, value):
        return cls('UNKNOWN')

    @classmethod
    def parse(cls, raw: Optional[str]) -> 'JobState':
        """Parse a platform state string, mapping unknown values to UNKNOWN."""
        return cls(str(raw or '').strip().upper())

    def is_succeeded(self) -> bool:
        return self.value == 'SUCCEEDED'

    def is_pending(self) -> bool:
        return self.value in self.pending_values()

    def is_failed(self) -> bool:
        return not self.is_succeeded() and not self.is_pending()

    def is_terminal(self) -> bool:
        return not self.is_pending()


class RepoMigrationState(JobState):
    """States of a repository migration."""

    QUEUED = 'QUEUED'
    IN_PROGRESS = 'IN_PROGRESS'
    PENDING_VALIDATION = 'PENDING_VALIDATION'
    SUCCEEDED = 'SUCCEEDED'
    FAILED = 'FAILED'
    FAILED_VALIDATION = 'FAILED_VALIDATION'
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def pending_values(cls) -> FrozenSet[str]:
        return frozenset({'QUEUED', 'IN_PROGRESS', 'PENDING_VALIDATION'})


class OrgMigrationState(JobState):
    """States of an organization migration."""

    QUEUED = 'QUEUED'
    NOT_STARTED = 'NOT_STARTED'
    IN_PROGRESS = 'IN_PROGRESS'
    PRE_REPO_MIGRATION = 'PRE_REPO_MIGRATION'
    REPO_MIGRATION = 'REPO_MIGRATION'
    POST_REPO_MIGRATION = 'POST_REPO_MIGRATION'
    SUCCEEDED = 'SUCCEEDED'
    FAILED = 'FAILED'
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def pending_values(cls) -> FrozenSet[str]:
        return frozenset(
            {
                'QUEUED',
                'NOT_STARTED',
                'IN_PROGRESS',
                'PRE_REPO_MIGRATION',
                'REPO_MIGRATION',
                'POST_REPO_MIGRATION',
            }
        )

    def is_repo_migration(self) -> bool:
        return self is OrgMigrationState.REPO_MIGRATION


class RepoMigrationStatus(BaseModel):
    """Snapshot of a repository migration returned by one poll."""

    model_config = ConfigDict(frozen=True)

    state: RepoMigrationState = Field(..., description='Current state')
    repository_name: Optional[str] = Field(default=None, description='Target repo')
    warnings_count: int = Field(default=0, description='Warnings raised so far')
    failure_reason: Optional[str] = Field(
        default=None, description='Failure reason reported by the platform'
    )
    migration_log_url: Optional[str] = Field(
        default=None, description='Download URL of the migration log'
    )


class OrgMigrationStatus(BaseModel):
    """Snapshot of an organization migration returned by one poll."""

    model_config = ConfigDict(frozen=True)

    state: OrgMigrationState = Field(..., description='Current state')
    source_org_url: Optional[str] = Field(default=None, description='Source org URL')
    target_org_name: Optional[str] = Field(default=None, description='Target org')
    failure_reason: Optional[str] = Field(
        default=None, description='Failure reason reported by the platform'
    )
    remaining_repositories_count: int = Field(
        default=0, description='Repositories left to migrate'
    )
    total_repositories_count: int = Field(
        default=0, description='Repositories in the migration'
    )

    @property
    def completed_repositories_count(self) -> int:
        return self.total_repositories_count - self.remaining_repositories_count


MigrationStatus = Union[RepoMigrationStatus, OrgMigrationStatus]


@dataclass(frozen=True)
class TerminalOutcome:
    """Final state observed by the wait loop."""

    migration_id: str
    status: MigrationStatus
    polls: int

    @property
    def succeeded(self) -> bool:
        return self.status.state.is_succeeded()
