"""Data models for inventory, plans and migration jobs."""

from .inventory import (
    Inventory,
    InventoryProvider,
    Organization,
    Repository,
    SourceRepository,
    StaticInventoryProvider,
    TeamProject,
    collect_inventory,
)
from .job import (
    JobKind,
    OrgMigrationState,
    OrgMigrationStatus,
    RepoMigrationState,
    RepoMigrationStatus,
    TerminalOutcome,
    parse_migration_id,
)
from .plan import (
    Dependency,
    DependencyCondition,
    ExecutionMode,
    MigrationUnit,
    OrgPlan,
    PlanOptions,
    Stage,
    Step,
    StepKind,
    WorkflowPlan,
)

__all__ = [
    'Inventory',
    'InventoryProvider',
    'Organization',
    'Repository',
    'SourceRepository',
    'StaticInventoryProvider',
    'TeamProject',
    'collect_inventory',
    'JobKind',
    'OrgMigrationState',
    'OrgMigrationStatus',
    'RepoMigrationState',
    'RepoMigrationStatus',
    'TerminalOutcome',
    'parse_migration_id',
    'Dependency',
    'DependencyCondition',
    'ExecutionMode',
    'MigrationUnit',
    'OrgPlan',
    'PlanOptions',
    'Stage',
    'Step',
    'StepKind',
    'WorkflowPlan',
]
