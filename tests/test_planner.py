"""Tests for the migration planner."""

import pytest
from unittest.mock import Mock

from ado_migrate.api.exceptions import NoMigratableReposError
from ado_migrate.migration.planner import MigrationPlanner
from ado_migrate.models.inventory import (
    Inventory,
    Organization,
    Repository,
    TeamProject,
)
from ado_migrate.models.plan import (
    DependencyCondition,
    ExecutionMode,
    PlanOptions,
    StepKind,
)
from ado_migrate.utils.naming import sanitize, target_repo_name


def make_inventory(integration_id='sc-1'):
    return Inventory(
        organizations=[
            Organization(
                name='contoso',
                integration_id=integration_id,
                projects=[
                    TeamProject(
                        name='Parts Unlimited',
                        repositories=[
                            Repository(id='r1', name='Some Repo', pipelines=['\\CI', 'Builds\\Nightly']),
                            Repository(id='r2', name='web'),
                        ],
                    ),
                    TeamProject(name='Empty', repositories=[]),
                    TeamProject(
                        name='Fabrikam',
                        repositories=[Repository(id='r3', name='api')],
                    ),
                ],
            )
        ]
    )


class TestNaming:
    """Test target name derivation."""

    def test_sanitize(self):
        """Test runs of invalid characters collapse to one dash."""
        assert sanitize('Parts Unlimited') == 'Parts-Unlimited'
        assert sanitize('a  &  b') == 'a-b'
        assert sanitize('Keep_Case.v2-x') == 'Keep_Case.v2-x'

    def test_sanitize_non_ascii(self):
        """Test letters outside ASCII are replaced too."""
        assert sanitize('Projekt \u00dcbersicht') == 'Projekt-bersicht'
        assert sanitize('Caf\u00e9') == 'Caf-'
        assert target_repo_name('Caf\u00e9 Projekt', '\u00dcbersicht') == (
            'Caf-Projekt--bersicht'
        )

    def test_target_repo_name(self):
        """Test the project and repo names are joined."""
        assert target_repo_name('Parts Unlimited', 'Some Repo') == 'Parts-Unlimited-Some-Repo'


class TestMigrationPlanner:
    """Test planning."""

    def setup_method(self):
        """Set up test fixtures."""
        self.log = Mock()
        self.planner = MigrationPlanner(log=self.log)
        self.options = PlanOptions.from_flags('gh-org', all_steps=True)

    def test_minimal_plan(self):
        """Test a plan without optional steps has one migrate step per repo."""
        options = PlanOptions(github_org='gh-org')

        plan = self.planner.plan(make_inventory(), options)

        assert [unit.target_name for unit in plan.units] == [
            'Parts-Unlimited-Some-Repo',
            'Parts-Unlimited-web',
            'Fabrikam-api',
        ]
        assert [unit.key for unit in plan.units][0] == 'contoso/Parts-Unlimited-Some-Repo'
        assert all(step.kind is StepKind.MIGRATE for step in plan.steps)
        assert all(step.depends_on == [] for step in plan.steps)
        assert plan.mode is ExecutionMode.PARALLEL

    def test_empty_project_warning(self):
        """Test an empty team project is skipped with one warning."""
        plan = self.planner.plan(make_inventory(), self.options)

        org_plan = plan.orgs[0]
        assert org_plan.skipped_projects == ['Empty']
        assert all(stage.unit.team_project != 'Empty' for stage in org_plan.stages)
        empty_warnings = [w for w in plan.warnings if 'Empty' in w]
        assert len(empty_warnings) == 1

    def test_everything_empty_raises(self):
        """Test an inventory without repositories is a top-level error."""
        inventory = Inventory(
            organizations=[
                Organization(
                    name='contoso',
                    projects=[TeamProject(name='A'), TeamProject(name='B')],
                )
            ]
        )

        with pytest.raises(NoMigratableReposError):
            self.planner.plan(inventory, self.options)

        assert self.log.warning.call_count == 2
        assert self.log.error.call_count == 1

    def test_stage_precedence(self):
        """Test steps inside a stage follow the fixed precedence."""
        plan = self.planner.plan(make_inventory(), self.options)

        first = plan.orgs[0].stages[0]
        kinds = [step.kind for step in first.steps]
        assert kinds == [
            StepKind.CREATE_TEAMS,
            StepKind.CREATE_TEAMS,
            StepKind.SHARE_INTEGRATION,
            StepKind.LOCK_SOURCE,
            StepKind.MIGRATE,
            StepKind.DISABLE_SOURCE,
            StepKind.GRANT_TEAM_ROLE,
            StepKind.GRANT_TEAM_ROLE,
            StepKind.DOWNLOAD_LOGS,
            StepKind.REWIRE_PIPELINE,
            StepKind.REWIRE_PIPELINE,
        ]
        for stage in plan.orgs[0].stages:
            precedences = [step.kind.precedence for step in stage.steps]
            assert precedences == sorted(precedences)

    def test_project_steps_attached_once(self):
        """Test project-scoped steps live in the first unit's stage only."""
        plan = self.planner.plan(make_inventory(), self.options)

        second = plan.orgs[0].stages[1]
        assert second.unit.repo == 'web'
        assert StepKind.CREATE_TEAMS not in [s.kind for s in second.steps]
        assert StepKind.SHARE_INTEGRATION not in [s.kind for s in second.steps]

        grant = next(s for s in second.steps if s.kind is StepKind.GRANT_TEAM_ROLE)
        team_ids = [s.step_id for s in plan.orgs[0].stages[0].steps if s.kind is StepKind.CREATE_TEAMS]
        assert grant.depends_on[0].step_id in team_ids

    def test_dependency_wiring(self):
        """Test every step declares the right predecessors."""
        plan = self.planner.plan(make_inventory(), self.options)
        stage = plan.orgs[0].stages[0]
        by_kind = {}
        for step in stage.steps:
            by_kind.setdefault(step.kind, []).append(step)
        migrate = by_kind[StepKind.MIGRATE][0]
        lock = by_kind[StepKind.LOCK_SOURCE][0]
        share = by_kind[StepKind.SHARE_INTEGRATION][0]

        for kind in (StepKind.CREATE_TEAMS, StepKind.SHARE_INTEGRATION, StepKind.LOCK_SOURCE):
            assert all(step.depends_on == [] for step in by_kind[kind])

        assert [(d.step_id, d.condition) for d in migrate.depends_on] == [
            (lock.step_id, DependencyCondition.COMPLETED)
        ]
        assert [(d.step_id, d.condition) for d in by_kind[StepKind.DISABLE_SOURCE][0].depends_on] == [
            (migrate.step_id, DependencyCondition.JOB_SUCCEEDED)
        ]
        for grant in by_kind[StepKind.GRANT_TEAM_ROLE]:
            assert grant.depends_on[0].condition is DependencyCondition.COMPLETED
            assert grant.depends_on[1].step_id == migrate.step_id
            assert grant.depends_on[1].condition is DependencyCondition.JOB_SUCCEEDED
        assert by_kind[StepKind.DOWNLOAD_LOGS][0].depends_on[0].condition is (
            DependencyCondition.JOB_TERMINAL
        )
        for rewire in by_kind[StepKind.REWIRE_PIPELINE]:
            assert rewire.depends_on[0].step_id == share.step_id
            assert rewire.depends_on[1].condition is DependencyCondition.JOB_SUCCEEDED

    def test_grant_roles_and_idp_groups(self):
        """Test team creation and grants carry names and roles."""
        plan = self.planner.plan(make_inventory(), self.options)
        stage = plan.orgs[0].stages[0]

        teams = [s.params for s in stage.steps if s.kind is StepKind.CREATE_TEAMS]
        assert teams[0]['team_name'] == 'Parts-Unlimited-Maintainers'
        assert teams[0]['idp_group'] == 'Parts-Unlimited-Maintainers'
        assert teams[1]['team_name'] == 'Parts-Unlimited-Admins'

        grants = [s.params for s in stage.steps if s.kind is StepKind.GRANT_TEAM_ROLE]
        assert [(g['team'], g['role']) for g in grants] == [
            ('Parts-Unlimited-Maintainers', 'maintain'),
            ('Parts-Unlimited-Admins', 'admin'),
        ]

    def test_no_integration_skips_rewiring(self):
        """Test a missing integration omits rewiring with a note."""
        plan = self.planner.plan(make_inventory(integration_id=None), self.options)

        kinds = {step.kind for step in plan.steps}
        assert StepKind.REWIRE_PIPELINE not in kinds
        assert StepKind.SHARE_INTEGRATION not in kinds
        assert StepKind.MIGRATE in kinds
        assert len(plan.orgs[0].notes) == 1
        assert self.log.info.call_count == 1

    def test_duplicate_target_names(self):
        """Test colliding target names are both planned with one warning."""
        inventory = Inventory(
            organizations=[
                Organization(
                    name='contoso',
                    projects=[
                        TeamProject(name='a b', repositories=[Repository(name='c')]),
                        TeamProject(name='a', repositories=[Repository(name='b c')]),
                        TeamProject(name='a-b', repositories=[Repository(name='c')]),
                    ],
                )
            ]
        )

        plan = self.planner.plan(inventory, PlanOptions(github_org='gh-org'))

        assert [unit.target_name for unit in plan.units] == ['a-b-c', 'a-b-c', 'a-b-c']
        duplicate_warnings = [w for w in plan.warnings if 'DUPLICATE' in w]
        assert len(duplicate_warnings) == 1
        assert self.log.warning.call_count == 1

    def test_determinism(self):
        """Test identical inputs produce identical plans."""
        first = self.planner.plan(make_inventory(), self.options)
        second = MigrationPlanner(log=Mock()).plan(make_inventory(), self.options)

        assert first == second
        assert first.model_dump() == second.model_dump()

    def test_from_flags(self):
        """Test flag resolution."""
        options = PlanOptions.from_flags('gh-org', link_idp_groups=True)

        assert options.create_teams is True
        assert options.link_idp_groups is True
        assert options.lock_source is False

        everything = PlanOptions.from_flags('gh-org', all_steps=True)
        assert everything.rewire_pipelines and everything.download_logs
        assert everything.disable_source and everything.lock_source
