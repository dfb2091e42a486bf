"""Workflow plan models produced by the planner and read by the emitter."""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExecutionMode(str, Enum):
    """Control-flow shape of the generated script."""

    SEQUENTIAL = 'sequential'
    PARALLEL = 'parallel'


class StepKind(str, Enum):
    """Kinds of steps, declared in their order inside a stage."""

    CREATE_TEAMS = 'create_teams'
    SHARE_INTEGRATION = 'share_integration'
    LOCK_SOURCE = 'lock_source'
    MIGRATE = 'migrate'
    DISABLE_SOURCE = 'disable_source'
    GRANT_TEAM_ROLE = 'grant_team_role'
    DOWNLOAD_LOGS = 'download_logs'
    REWIRE_PIPELINE = 'rewire_pipeline'

    @property
    def precedence(self) -> int:
        return list(StepKind).index(self)


class DependencyCondition(str, Enum):
    """What a step needs from its predecessor."""

    COMPLETED = 'completed'
    JOB_SUCCEEDED = 'job_succeeded'
    JOB_TERMINAL = 'job_terminal'


class Dependency(BaseModel):
    """Edge from a step to one of its predecessors."""

    model_config = ConfigDict(frozen=True)

    step_id: str = Field(..., description='Predecessor step ID')
    condition: DependencyCondition = Field(
        default=DependencyCondition.COMPLETED, description='Required condition'
    )


class Step(BaseModel):
    """One call in the generated script."""

    model_config = ConfigDict(frozen=True)

    step_id: str = Field(..., description='Stable step identifier')
    kind: StepKind = Field(..., description='Step kind')
    unit_key: str = Field(..., description='Key of the owning unit or team project')
    params: Dict[str, Any] = Field(
        default_factory=dict, description='Arguments of the call'
    )
    depends_on: List[Dependency] = Field(
        default_factory=list, description='Predecessors'
    )

    @property
    def is_migrate(self) -> bool:
        return self.kind is StepKind.MIGRATE

    @property
    def needs_job(self) -> bool:
        """Whether the step waits on the migration job of its unit."""
        return any(
            dep.condition is not DependencyCondition.COMPLETED
            for dep in self.depends_on
        )

    @property
    def runs_on_failure(self) -> bool:
        """Whether the step also runs after its migration job failed."""
        return any(
            dep.condition is DependencyCondition.JOB_TERMINAL for dep in self.depends_on
        )


class MigrationUnit(BaseModel):
    """One repository's migration from ADO to GitHub."""

    model_config = ConfigDict(frozen=True)

    org: str = Field(..., description='ADO organization')
    team_project: str = Field(..., description='ADO team project')
    repo: str = Field(..., description='ADO repository')
    target_name: str = Field(..., description='GitHub repository name')
    key: str = Field(..., description='Stable key, org/target-name')


class Stage(BaseModel):
    """Ordered steps of one migration unit."""

    model_config = ConfigDict(frozen=True)

    unit: MigrationUnit
    steps: List[Step] = Field(default_factory=list)

    @property
    def migrate_step(self) -> Step:
        for step in self.steps:
            if step.is_migrate:
                return step
        raise ValueError(f'Stage {self.unit.key} has no migrate step')

    @property
    def pre_steps(self) -> List[Step]:
        """Steps that run before the migration is queued."""
        return [s for s in self.steps if not s.is_migrate and not s.needs_job]

    @property
    def post_steps(self) -> List[Step]:
        """Steps waiting on the migration job."""
        return [s for s in self.steps if s.needs_job]

    @property
    def failure_steps(self) -> List[Step]:
        return [s for s in self.steps if s.runs_on_failure]


class PlanOptions(BaseModel):
    """Resolved options for one script generation."""

    model_config = ConfigDict(frozen=True)

    github_org: str = Field(..., description='Target GitHub organization')
    mode: ExecutionMode = Field(
        default=ExecutionMode.PARALLEL, description='Script control flow'
    )

    create_teams: bool = False
    link_idp_groups: bool = False
    lock_source: bool = False
    disable_source: bool = False
    rewire_pipelines: bool = False
    download_logs: bool = False

    cli_command: str = 'gh ado2gh'
    target_api_url: Optional[str] = None
    ado_server_url: Optional[str] = None
    target_repo_visibility: str = 'private'
    verbose: bool = False

    ghes_api_url: Optional[str] = None
    aws_bucket_name: Optional[str] = None
    aws_region: Optional[str] = None
    no_ssl_verify: bool = False
    keep_archive: bool = False
    use_github_storage: bool = False

    @field_validator('github_org')
    @classmethod
    def validate_github_org(cls, v):
        """Validate the target organization is set."""
        if not v or not v.strip():
            raise ValueError('github_org is required')
        return v

    @classmethod
    def from_flags(
        cls,
        github_org: str,
        all_steps: bool = False,
        create_teams: bool = False,
        link_idp_groups: bool = False,
        lock_source: bool = False,
        disable_source: bool = False,
        rewire_pipelines: bool = False,
        download_logs: bool = False,
        **kwargs,
    ) -> 'PlanOptions':
        """Resolve command-line style step flags.

        ``all_steps`` turns on every optional step and ``link_idp_groups``
        implies ``create_teams``.
        """
        return cls(
            github_org=github_org,
            create_teams=all_steps or create_teams or link_idp_groups,
            link_idp_groups=all_steps or link_idp_groups,
            lock_source=all_steps or lock_source,
            disable_source=all_steps or disable_source,
            rewire_pipelines=all_steps or rewire_pipelines,
            download_logs=all_steps or download_logs,
            **kwargs,
        )

    @property
    def blob_credentials_required(self) -> bool:
        return bool(self.ghes_api_url) and not self.use_github_storage


class OrgPlan(BaseModel):
    """Stages planned for one ADO organization."""

    model_config = ConfigDict(frozen=True)

    org: str
    stages: List[Stage] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    skipped_projects: List[str] = Field(default_factory=list)


class WorkflowPlan(BaseModel):
    """Complete, ordered migration plan."""

    model_config = ConfigDict(frozen=True)

    orgs: List[OrgPlan] = Field(default_factory=list)
    mode: ExecutionMode = ExecutionMode.PARALLEL
    options: PlanOptions
    warnings: List[str] = Field(default_factory=list)

    @property
    def stages(self) -> Iterator[Stage]:
        for org_plan in self.orgs:
            yield from org_plan.stages

    @property
    def units(self) -> List[MigrationUnit]:
        return [stage.unit for stage in self.stages]

    @property
    def steps(self) -> List[Step]:
        return [step for stage in self.stages for step in stage.steps]
