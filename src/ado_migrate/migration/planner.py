"""Dependency-aware planning of repository migrations."""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..api.exceptions import NoMigratableReposError
from ..models.inventory import Inventory, Organization, Repository, TeamProject
from ..models.plan import (
    Dependency,
    DependencyCondition,
    MigrationUnit,
    OrgPlan,
    PlanOptions,
    Stage,
    Step,
    StepKind,
    WorkflowPlan,
)
from ..utils.naming import migration_key, sanitize, target_repo_name

MAINTAINERS_SUFFIX = 'Maintainers'
ADMINS_SUFFIX = 'Admins'

NO_REPOS_MESSAGE = (
    'A migration script could not be generated because no migratable repos '
    'were found. Please note that disabled and TFVC repos are not migrated.'
)


class _ProjectSteps:
    """Project-scoped steps shared by every unit of one team project."""

    def __init__(self):
        self.steps: List[Step] = []
        self.team_step_ids: Dict[str, str] = {}
        self.share_step_id: Optional[str] = None
        self.integration_id: Optional[str] = None


class MigrationPlanner:
    """Turns an inventory and options into an ordered workflow plan."""

    def __init__(self, log=None):
        self.log = log or logger.bind(component='MigrationPlanner')

    def plan(self, inventory: Inventory, options: PlanOptions) -> WorkflowPlan:
        """Build the workflow plan.

        Organizations, team projects, repositories and pipelines keep their
        discovery order.

        Args:
            inventory: Discovered ADO inventory
            options: Resolved plan options

        Returns:
            Workflow plan

        Raises:
            NoMigratableReposError: If no repository at all can be migrated
        """
        warnings: List[str] = []
        seen_targets: Dict[str, Tuple[str, str, str]] = {}
        reported_duplicates: List[str] = []
        org_plans = []

        for org in inventory.organizations:
            org_plan = self._plan_org(
                org, options, warnings, seen_targets, reported_duplicates
            )
            org_plans.append(org_plan)

        unit_count = sum(len(org_plan.stages) for org_plan in org_plans)
        if unit_count == 0:
            self.log.error(NO_REPOS_MESSAGE)
            raise NoMigratableReposError(NO_REPOS_MESSAGE)

        self.log.debug(f'Planned {unit_count} repository migrations')
        return WorkflowPlan(
            orgs=org_plans, mode=options.mode, options=options, warnings=warnings
        )

    def _plan_org(
        self,
        org: Organization,
        options: PlanOptions,
        warnings: List[str],
        seen_targets: Dict[str, Tuple[str, str, str]],
        reported_duplicates: List[str],
    ) -> OrgPlan:
        notes = []
        rewire = options.rewire_pipelines and org.has_integration

        if options.rewire_pipelines and not org.has_integration:
            note = (
                f'No GitHub App in organization {org.name}, skipping the re-wiring '
                f'of Azure Pipelines to GitHub repos'
            )
            notes.append(note)
            self.log.info(note)

        stages = []
        skipped_projects = []
        for project in org.projects:
            if not project.repositories:
                warning = (
                    f'Skipping team project {org.name}/{project.name} because it '
                    f'has no git repos'
                )
                warnings.append(warning)
                skipped_projects.append(project.name)
                self.log.warning(warning)
                continue

            shared = self._project_steps(org, project, options, rewire)

            for index, repo in enumerate(project.repositories):
                unit = self._unit(org.name, project.name, repo)
                self._check_duplicate(
                    unit, seen_targets, reported_duplicates, warnings
                )

                steps = list(shared.steps) if index == 0 else []
                steps.extend(self._unit_steps(unit, repo, shared, options, rewire))
                stages.append(Stage(unit=unit, steps=steps))

        return OrgPlan(
            org=org.name,
            stages=stages,
            notes=notes,
            skipped_projects=skipped_projects,
        )

    @staticmethod
    def _unit(org: str, project: str, repo: Repository) -> MigrationUnit:
        target_name = target_repo_name(project, repo.name)
        return MigrationUnit(
            org=org,
            team_project=project,
            repo=repo.name,
            target_name=target_name,
            key=migration_key(org, target_name),
        )

    def _check_duplicate(
        self,
        unit: MigrationUnit,
        seen_targets: Dict[str, Tuple[str, str, str]],
        reported_duplicates: List[str],
        warnings: List[str],
    ) -> None:
        source = (unit.org, unit.team_project, unit.repo)
        first = seen_targets.setdefault(unit.target_name, source)
        if first == source or unit.target_name in reported_duplicates:
            return

        reported_duplicates.append(unit.target_name)
        warning = (
            f'DUPLICATE REPO NAME: {unit.target_name} '
            f'({"/".join(first)} and {"/".join(source)})'
        )
        warnings.append(warning)
        self.log.warning(warning)

    def _project_steps(
        self,
        org: Organization,
        project: TeamProject,
        options: PlanOptions,
        rewire: bool,
    ) -> _ProjectSteps:
        shared = _ProjectSteps()
        scope = f'{org.name}/{project.name}'

        if options.create_teams:
            for suffix in (MAINTAINERS_SUFFIX, ADMINS_SUFFIX):
                team_name = f'{sanitize(project.name)}-{suffix}'
                params = {'github_org': options.github_org, 'team_name': team_name}
                if options.link_idp_groups:
                    params['idp_group'] = team_name

                step = Step(
                    step_id=f'{scope}:create-team:{suffix.lower()}',
                    kind=StepKind.CREATE_TEAMS,
                    unit_key=scope,
                    params=params,
                )
                shared.steps.append(step)
                shared.team_step_ids[suffix] = step.step_id

        if rewire:
            step = Step(
                step_id=f'{scope}:share-integration',
                kind=StepKind.SHARE_INTEGRATION,
                unit_key=scope,
                params={
                    'ado_org': org.name,
                    'ado_team_project': project.name,
                    'service_connection_id': org.integration_id,
                },
            )
            shared.steps.append(step)
            shared.share_step_id = step.step_id
            shared.integration_id = org.integration_id

        return shared

    def _unit_steps(
        self,
        unit: MigrationUnit,
        repo: Repository,
        shared: _ProjectSteps,
        options: PlanOptions,
        rewire: bool,
    ) -> List[Step]:
        source = {
            'ado_org': unit.org,
            'ado_team_project': unit.team_project,
            'ado_repo': unit.repo,
        }
        target = {'github_org': options.github_org, 'github_repo': unit.target_name}
        steps = []

        migrate_dependencies = []
        if options.lock_source:
            lock = Step(
                step_id=f'{unit.key}:lock-source',
                kind=StepKind.LOCK_SOURCE,
                unit_key=unit.key,
                params=dict(source),
            )
            steps.append(lock)
            migrate_dependencies.append(Dependency(step_id=lock.step_id))

        migrate_id = f'{unit.key}:migrate'
        steps.append(
            Step(
                step_id=migrate_id,
                kind=StepKind.MIGRATE,
                unit_key=unit.key,
                params={**source, **target},
                depends_on=migrate_dependencies,
            )
        )
        succeeded = Dependency(
            step_id=migrate_id, condition=DependencyCondition.JOB_SUCCEEDED
        )

        if options.disable_source:
            steps.append(
                Step(
                    step_id=f'{unit.key}:disable-source',
                    kind=StepKind.DISABLE_SOURCE,
                    unit_key=unit.key,
                    params=dict(source),
                    depends_on=[succeeded],
                )
            )

        for suffix, role in ((MAINTAINERS_SUFFIX, 'maintain'), (ADMINS_SUFFIX, 'admin')):
            team_step_id = shared.team_step_ids.get(suffix)
            if team_step_id is None:
                continue
            steps.append(
                Step(
                    step_id=f'{unit.key}:grant-team-role:{role}',
                    kind=StepKind.GRANT_TEAM_ROLE,
                    unit_key=unit.key,
                    params={
                        **target,
                        'team': f'{sanitize(unit.team_project)}-{suffix}',
                        'role': role,
                    },
                    depends_on=[Dependency(step_id=team_step_id), succeeded],
                )
            )

        if options.download_logs:
            steps.append(
                Step(
                    step_id=f'{unit.key}:download-logs',
                    kind=StepKind.DOWNLOAD_LOGS,
                    unit_key=unit.key,
                    params=dict(target),
                    depends_on=[
                        Dependency(
                            step_id=migrate_id,
                            condition=DependencyCondition.JOB_TERMINAL,
                        )
                    ],
                )
            )

        if rewire and shared.share_step_id is not None:
            for index, pipeline in enumerate(repo.pipelines):
                steps.append(
                    Step(
                        step_id=f'{unit.key}:rewire-pipeline:{index}',
                        kind=StepKind.REWIRE_PIPELINE,
                        unit_key=unit.key,
                        params={
                            'ado_org': unit.org,
                            'ado_team_project': unit.team_project,
                            'ado_pipeline': pipeline,
                            **target,
                            'service_connection_id': shared.integration_id,
                        },
                        depends_on=[Dependency(step_id=shared.share_step_id), succeeded],
                    )
                )

        return steps
