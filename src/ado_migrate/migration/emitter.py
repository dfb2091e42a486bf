"""Rendering of workflow plans into PowerShell migration scripts."""

from itertools import groupby
from typing import Callable, Dict, List, Optional

from loguru import logger

from ..models.plan import (
    ExecutionMode,
    OrgPlan,
    PlanOptions,
    Stage,
    Step,
    StepKind,
    WorkflowPlan,
)
from . import templates

INDENT = '    '


def quote(value) -> str:
    """Quote a value as a PowerShell string argument.

    Backticks, dollar signs and double quotes are escaped so the value is
    taken literally inside the double-quoted string.
    """
    escaped = str(value).replace('`', '``').replace('$', '`$').replace('"', '`"')
    return f'"{escaped}"'


def exec_block(command: str) -> str:
    return f'Exec {{ {command} }}'


def script_block(command: str) -> str:
    return f'{{ {command} }}'


class ScriptEmitter:
    """Renders a workflow plan as a sequential or parallel script."""

    def __init__(self, version: Optional[str] = None, log=None):
        """Initialize emitter.

        Args:
            version: Tool version written into the script banner
            log: Logger
        """
        if version is None:
            from .. import __version__

            version = __version__
        self.version = version
        self.log = log or logger.bind(component='ScriptEmitter')

    def emit(self, plan: WorkflowPlan) -> str:
        """Render the plan.

        Both modes render every step of the plan with identical command text;
        only the control flow around the commands differs.

        Args:
            plan: Workflow plan

        Returns:
            Script text
        """
        if plan.mode is ExecutionMode.SEQUENTIAL:
            lines = self._render_sequential(plan)
        else:
            lines = self._render_parallel(plan)

        self.log.debug(
            f'Rendered {len(plan.steps)} steps for {len(plan.units)} repositories '
            f'in {plan.mode.value} mode'
        )
        return '\n'.join(lines) + '\n'

    def _preamble(self, plan: WorkflowPlan) -> List[str]:
        lines = [
            templates.PWSH_SHEBANG,
            '',
            templates.VERSION_BANNER.format(version=self.version),
            templates.EXEC_FUNCTION_BLOCK,
        ]
        if plan.mode is ExecutionMode.PARALLEL:
            lines.append(templates.EXEC_AND_GET_MIGRATION_ID_FUNCTION_BLOCK)
            lines.append(templates.EXEC_BATCH_FUNCTION_BLOCK)

        lines.append(templates.VALIDATE_ADO_PAT)
        lines.append(templates.VALIDATE_GH_PAT)
        if plan.options.blob_credentials_required:
            lines.append(templates.VALIDATE_BLOB_CREDENTIALS)
        return lines

    @staticmethod
    def _by_project(org_plan: OrgPlan):
        return groupby(org_plan.stages, key=lambda stage: stage.unit.team_project)

    def _render_sequential(self, plan: WorkflowPlan) -> List[str]:
        lines = self._preamble(plan)

        for org_plan in plan.orgs:
            lines.append('')
            lines.append(f'# =========== Organization: {org_plan.org} ===========')
            lines.extend(f'# {note}' for note in org_plan.notes)
            for project in org_plan.skipped_projects:
                lines.append(
                    f'# Skipping Team Project {org_plan.org}/{project} because it '
                    f'has no git repos'
                )

            for project, stages in self._by_project(org_plan):
                lines.append('')
                lines.append(f'# === Team Project: {org_plan.org}/{project} ===')
                for stage in stages:
                    lines.append('')
                    lines.extend(
                        exec_block(self.render_step(step, plan.options))
                        for step in stage.steps
                    )

        return lines

    def _render_parallel(self, plan: WorkflowPlan) -> List[str]:
        lines = self._preamble(plan)
        lines.append(templates.COUNTERS_BLOCK)

        for org_plan in plan.orgs:
            lines.append('')
            lines.append(
                f'# =========== Queueing migration for Organization: '
                f'{org_plan.org} ==========='
            )
            lines.extend(f'# {note}' for note in org_plan.notes)
            for project in org_plan.skipped_projects:
                lines.append(
                    f'# Skipping Team Project {org_plan.org}/{project} because it '
                    f'has no git repos'
                )

            for project, stages in self._by_project(org_plan):
                lines.append('')
                lines.append(
                    f'# === Queueing repo migrations for Team Project: '
                    f'{org_plan.org}/{project} ==='
                )
                for stage in stages:
                    lines.append('')
                    lines.extend(self._submission(stage, plan.options))

        for org_plan in plan.orgs:
            lines.append('')
            lines.append(
                f'# =========== Waiting for all migrations to finish for '
                f'Organization: {org_plan.org} ==========='
            )
            for stage in org_plan.stages:
                lines.append('')
                lines.extend(self._completion(stage, plan.options))

        lines.append(templates.SUMMARY_BLOCK)
        return lines

    def _submission(self, stage: Stage, options: PlanOptions) -> List[str]:
        """Pre-steps then the queued migration of one unit.

        Pre-steps run as a batch so a failure only keeps this unit from being
        queued; its wait then finds no migration ID and counts it as failed.
        """
        key = stage.unit.key
        queue = (
            f'$MigrationID = ExecAndGetMigrationID '
            f'{script_block(self.render_step(stage.migrate_step, options, queue_only=True))}'
        )
        record = f'$RepoMigrations["{key}"] = $MigrationID'

        pre_steps = stage.pre_steps
        if not pre_steps:
            return [queue, record]

        lines = self._batch(pre_steps, options, indent='')
        lines.append('if ($Global:LastBatchFailures -eq 0) {')
        lines.append(INDENT + queue)
        lines.append(INDENT + record)
        lines.append('}')
        return lines

    def _completion(self, stage: Stage, options: PlanOptions) -> List[str]:
        unit = stage.unit
        key = unit.key
        post_steps = stage.post_steps
        failure_steps = stage.failure_steps

        lines = [
            f'# === Waiting for repo migration to finish for Team Project: '
            f'{unit.team_project} and Repo: {unit.repo}. Will then complete the '
            f'below post migration steps. ===',
            '$CanExecuteBatch = $false',
            f'if ($null -ne $RepoMigrations["{key}"]) {{',
            INDENT + self.render_wait(key, options),
            INDENT + '$CanExecuteBatch = ($lastexitcode -eq 0)',
            '}',
            'if ($CanExecuteBatch) {',
        ]

        if post_steps:
            lines.extend(self._batch(post_steps, options, indent=INDENT))
            lines.append(
                INDENT + 'if ($Global:LastBatchFailures -eq 0) { $Succeeded++ } '
                'else { $Failed++ }'
            )
        else:
            lines.append(INDENT + '$Succeeded++')

        lines.append('} else {')
        if failure_steps:
            lines.append(INDENT + f'if ($null -ne $RepoMigrations["{key}"]) {{')
            lines.extend(
                INDENT * 2 + self.render_step(step, options) for step in failure_steps
            )
            lines.append(INDENT + '}')
        lines.append(INDENT + '$Failed++')
        lines.append('}')
        return lines

    def _batch(self, steps: List[Step], options: PlanOptions, indent: str) -> List[str]:
        lines = [indent + 'ExecBatch @(']
        lines.extend(
            indent + INDENT + script_block(self.render_step(step, options))
            for step in steps
        )
        lines.append(indent + ')')
        return lines

    def render_step(
        self, step: Step, options: PlanOptions, queue_only: bool = False
    ) -> str:
        """Render the command line of one step.

        Args:
            step: Plan step
            options: Plan options
            queue_only: Queue the migration without waiting for it

        Returns:
            Command line
        """
        render = _RENDERERS[step.kind]
        command = f'{options.cli_command} {render(step.params, options)}'
        if step.kind is StepKind.MIGRATE:
            command += _migrate_suffix(options, queue_only)
        return command

    @staticmethod
    def render_wait(key: str, options: PlanOptions) -> str:
        return (
            f'{options.cli_command} wait-for-migration{_target_api(options)} '
            f'--migration-id $RepoMigrations["{key}"]'
        )


def _target_api(options: PlanOptions) -> str:
    if not options.target_api_url:
        return ''
    return f' --target-api-url {quote(options.target_api_url)}'


def _verbose(options: PlanOptions) -> str:
    return ' --verbose' if options.verbose else ''


def _ado_source(params: Dict) -> str:
    return (
        f'--ado-org {quote(params["ado_org"])} '
        f'--ado-team-project {quote(params["ado_team_project"])}'
    )


def _github_target(params: Dict) -> str:
    return (
        f'--github-org {quote(params["github_org"])} '
        f'--github-repo {quote(params["github_repo"])}'
    )


def _create_team(params: Dict, options: PlanOptions) -> str:
    command = (
        f'create-team{_target_api(options)} --github-org {quote(params["github_org"])} '
        f'--team-name {quote(params["team_name"])}{_verbose(options)}'
    )
    if params.get('idp_group'):
        command += f' --idp-group {quote(params["idp_group"])}'
    return command


def _share_integration(params: Dict, options: PlanOptions) -> str:
    return (
        f'share-service-connection {_ado_source(params)} '
        f'--service-connection-id {quote(params["service_connection_id"])}'
        f'{_verbose(options)}'
    )


def _lock_source(params: Dict, options: PlanOptions) -> str:
    return (
        f'lock-ado-repo {_ado_source(params)} --ado-repo {quote(params["ado_repo"])}'
        f'{_verbose(options)}'
    )


def _migrate(params: Dict, options: PlanOptions) -> str:
    return (
        f'migrate-repo{_target_api(options)} {_ado_source(params)} '
        f'--ado-repo {quote(params["ado_repo"])} {_github_target(params)}'
        f'{_verbose(options)}'
    )


def _migrate_suffix(options: PlanOptions, queue_only: bool) -> str:
    suffix = ' --queue-only' if queue_only else ''
    suffix += f' --target-repo-visibility {options.target_repo_visibility}'
    if options.ado_server_url:
        suffix += f' --ado-server-url {quote(options.ado_server_url)}'
    if options.ghes_api_url:
        suffix += f' --ghes-api-url {quote(options.ghes_api_url)}'
    if options.aws_bucket_name:
        suffix += f' --aws-bucket-name {quote(options.aws_bucket_name)}'
    if options.aws_region:
        suffix += f' --aws-region {quote(options.aws_region)}'
    if options.no_ssl_verify:
        suffix += ' --no-ssl-verify'
    if options.keep_archive:
        suffix += ' --keep-archive'
    if options.use_github_storage:
        suffix += ' --use-github-storage'
    return suffix


def _disable_source(params: Dict, options: PlanOptions) -> str:
    return (
        f'disable-ado-repo {_ado_source(params)} --ado-repo {quote(params["ado_repo"])}'
        f'{_verbose(options)}'
    )


def _grant_team_role(params: Dict, options: PlanOptions) -> str:
    return (
        f'add-team-to-repo{_target_api(options)} {_github_target(params)} '
        f'--team {quote(params["team"])} --role {quote(params["role"])}'
        f'{_verbose(options)}'
    )


def _download_logs(params: Dict, options: PlanOptions) -> str:
    return f'download-logs{_target_api(options)} {_github_target(params)}'


def _rewire_pipeline(params: Dict, options: PlanOptions) -> str:
    return (
        f'rewire-pipeline {_ado_source(params)} '
        f'--ado-pipeline {quote(params["ado_pipeline"])} {_github_target(params)} '
        f'--service-connection-id {quote(params["service_connection_id"])}'
        f'{_verbose(options)}'
    )


_RENDERERS: Dict[StepKind, Callable[[Dict, PlanOptions], str]] = {
    StepKind.CREATE_TEAMS: _create_team,
    StepKind.SHARE_INTEGRATION: _share_integration,
    StepKind.LOCK_SOURCE: _lock_source,
    StepKind.MIGRATE: _migrate,
    StepKind.DISABLE_SOURCE: _disable_source,
    StepKind.GRANT_TEAM_ROLE: _grant_team_role,
    StepKind.DOWNLOAD_LOGS: _download_logs,
    StepKind.REWIRE_PIPELINE: _rewire_pipeline,
}
