"""Main CLI entry point for ADO Migration Tool."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..api.client import GithubClientFactory
from ..api.exceptions import CredentialsError
from ..api.retry import RetryPolicy
from ..config.config import Config, GithubConfig
from ..migration.engine import ScriptGenerationEngine, ScriptGenerationResult
from ..migration.logs import MigrationLogDownloader
from ..migration.waiter import MigrationWaiter
from ..models.job import parse_migration_id
from ..models.plan import ExecutionMode, PlanOptions
from ..utils.logging import register_secret, setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name='ado-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """ADO Migration Tool - Migrate Azure DevOps repositories to GitHub."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Basic logging until the configuration is loaded
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]ADO Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your Azure DevOps and GitHub details[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command('generate-script')
@click.option('--github-org', help='Target GitHub organization')
@click.option('--ado-org', help='Only migrate repos from this ADO organization')
@click.option('--ado-team-project', help='Only migrate repos from this team project')
@click.option('--ado-server-url', help='Azure DevOps Server URL (on-premises)')
@click.option('--target-api-url', help='API URL of the target GitHub instance')
@click.option(
    '--inventory',
    type=click.Path(exists=True),
    help='Read the ADO inventory from a YAML file instead of the ADO API',
)
@click.option('--output', '-o', help='Script output path')
@click.option(
    '--sequential',
    is_flag=True,
    help='Wait for each migration to finish before starting the next',
)
@click.option('--all', 'all_steps', is_flag=True, help='Enable every optional step')
@click.option('--create-teams', is_flag=True, help='Create Maintainers and Admins teams')
@click.option('--link-idp-groups', is_flag=True, help='Link created teams to IdP groups')
@click.option('--lock-ado-repos', is_flag=True, help='Lock ADO repos before migrating')
@click.option('--disable-ado-repos', is_flag=True, help='Disable ADO repos after migrating')
@click.option('--rewire-pipelines', is_flag=True, help='Rewire Azure Pipelines to GitHub')
@click.option(
    '--download-migration-logs', is_flag=True, help='Download migration logs'
)
@click.option(
    '--target-repo-visibility',
    type=click.Choice(['private', 'internal', 'public']),
    help='Visibility of migrated repositories',
)
@click.option('--ghes-api-url', help='GitHub Enterprise Server API URL')
@click.option('--aws-bucket-name', help='AWS S3 bucket for migration archives')
@click.option('--aws-region', help='AWS region of the bucket')
@click.option('--no-ssl-verify', is_flag=True, help='Skip TLS verification against GHES')
@click.option('--keep-archive', is_flag=True, help='Keep archives after upload')
@click.option(
    '--use-github-storage', is_flag=True, help='Upload archives to GitHub-owned storage'
)
@click.pass_context
def generate_script(ctx: click.Context, **kwargs) -> None:
    """Generate a PowerShell script that migrates ADO repositories to GitHub."""
    console.print(
        Panel.fit(
            '[bold blue]ADO Migration Tool[/bold blue]\nGenerating migration script...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        options = _build_plan_options(ctx, config, kwargs)
        output = kwargs['output'] or config.script.output

        if not kwargs['inventory'] and not config.ado.pat:
            raise CredentialsError(
                'ADO_PAT must be set to read the inventory from Azure DevOps'
            )
        if kwargs['ado_server_url']:
            config.ado.server_url = kwargs['ado_server_url'].rstrip('/')

        engine = ScriptGenerationEngine.from_config(
            config, options.github_org, inventory_file=kwargs['inventory']
        )
        result = engine.generate(
            options,
            output=output,
            org_filter=kwargs['ado_org'] or config.ado.org,
            team_project_filter=kwargs['ado_team_project'] or config.ado.team_project,
        )

        _display_generation_summary(result)
        console.print(f'[green]✓[/green] Migration script written to: {output}')

    except Exception as e:
        console.print(f'[red]✗[/red] Script generation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command('wait-for-migration')
@click.option('--migration-id', required=True, help='ID of the migration (RM_ or OM_)')
@click.option('--target-api-url', help='API URL of the target GitHub instance')
@click.pass_context
def wait_for_migration(
    ctx: click.Context, migration_id: str, target_api_url: Optional[str]
) -> None:
    """Wait for a repository or organization migration to finish."""
    try:
        # Reject malformed IDs before touching the API
        parse_migration_id(migration_id)

        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        github_api = GithubClientFactory.create_api(
            _github_config(config, target_api_url), retry_policy=_retry_policy(config)
        )
        waiter = MigrationWaiter(
            github_api,
            interval_seconds=config.retry.wait_interval_seconds,
            timeout_seconds=config.retry.wait_timeout_seconds,
        )
        outcome = waiter.wait_for_migration(migration_id)

        console.print(
            f'[green]✓[/green] Migration {migration_id} succeeded '
            f'after {outcome.polls} status checks'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command('download-logs')
@click.option('--github-org', required=True, help='GitHub organization')
@click.option('--github-repo', required=True, help='GitHub repository')
@click.option('--target-api-url', help='API URL of the target GitHub instance')
@click.option(
    '--migration-log-file',
    help='Destination file, defaults to migration-log-<org>-<repo>.log',
)
@click.option('--overwrite', is_flag=True, help='Overwrite an existing log file')
@click.pass_context
def download_logs(
    ctx: click.Context,
    github_org: str,
    github_repo: str,
    target_api_url: Optional[str],
    migration_log_file: Optional[str],
    overwrite: bool,
) -> None:
    """Download the migration log of a repository."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        policy = _retry_policy(config)
        github_api = GithubClientFactory.create_api(
            _github_config(config, target_api_url), retry_policy=policy
        )
        downloader = MigrationLogDownloader(github_api, retry_policy=policy)
        path = downloader.download(
            github_org,
            github_repo,
            migration_log_file=migration_log_file,
            overwrite=overwrite,
        )

        console.print(f'[green]✓[/green] Migration log written to: {path}')

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to download migration logs: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]ADO Migration Tool[/bold magenta]\nConfiguration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('ADO Server URL', config.ado.server_url)
        table.add_row('ADO PAT', '✓' if config.ado.pat else '✗')
        table.add_row('ADO Organization', config.ado.org or 'all')
        table.add_row('GitHub API URL', config.github.api_url)
        table.add_row('GitHub PAT', '✓' if config.github.pat else '✗')
        table.add_row('GitHub Organization', config.github.org or '-')
        table.add_row(
            'Mode', 'sequential' if config.script.sequential else 'parallel'
        )
        table.add_row('Script Output', config.script.output)
        table.add_row('Create Teams', '✓' if config.script.create_teams else '✗')
        table.add_row('Lock ADO Repos', '✓' if config.script.lock_ado_repos else '✗')
        table.add_row(
            'Disable ADO Repos', '✓' if config.script.disable_ado_repos else '✗'
        )
        table.add_row(
            'Rewire Pipelines', '✓' if config.script.rewire_pipelines else '✗'
        )
        table.add_row(
            'Download Logs', '✓' if config.script.download_migration_logs else '✗'
        )
        table.add_row('Max Attempts', str(config.retry.max_attempts))
        table.add_row('Wait Interval', f'{config.retry.wait_interval_seconds}s')

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        config = Config.from_file(config_path)
    else:
        config = None
        for path in ['config.yaml', 'config.yml', '.ado-migrate.yaml']:
            if Path(path).exists():
                config = Config.from_file(path)
                break

        if config is None:
            config = Config.from_env()

    register_secret(config.ado.pat)
    register_secret(config.github.pat)
    return config


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _github_config(config: Config, target_api_url: Optional[str]) -> GithubConfig:
    if not config.github.pat:
        raise CredentialsError('GH_PAT must be set to authenticate to GitHub')
    if target_api_url:
        return GithubConfig(**{**config.github.model_dump(), 'api_url': target_api_url})
    return config.github


def _retry_policy(config: Config) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry.max_attempts,
        initial_delay_seconds=config.retry.delay_seconds,
    )


def _build_plan_options(ctx: click.Context, config: Config, flags: dict) -> PlanOptions:
    """Merge command-line flags over the script and storage configuration."""
    github_org = flags['github_org'] or config.github.org
    if not github_org:
        raise click.UsageError('--github-org is required')

    script = config.script
    storage = config.storage

    aws_bucket_name = flags['aws_bucket_name'] or storage.aws_bucket_name
    aws_region = flags['aws_region'] or storage.aws_region
    use_github_storage = flags['use_github_storage'] or storage.use_github_storage
    if use_github_storage and (aws_bucket_name or aws_region):
        raise CredentialsError(
            '--use-github-storage cannot be combined with --aws-bucket-name or --aws-region'
        )

    sequential = flags['sequential'] or script.sequential

    return PlanOptions.from_flags(
        github_org,
        all_steps=flags['all_steps'] or script.all,
        create_teams=flags['create_teams'] or script.create_teams,
        link_idp_groups=flags['link_idp_groups'] or script.link_idp_groups,
        lock_source=flags['lock_ado_repos'] or script.lock_ado_repos,
        disable_source=flags['disable_ado_repos'] or script.disable_ado_repos,
        rewire_pipelines=flags['rewire_pipelines'] or script.rewire_pipelines,
        download_logs=flags['download_migration_logs']
        or script.download_migration_logs,
        mode=ExecutionMode.SEQUENTIAL if sequential else ExecutionMode.PARALLEL,
        cli_command=script.cli_command,
        target_api_url=flags['target_api_url']
        or (None if config.github.is_dotcom else config.github.api_url),
        ado_server_url=flags['ado_server_url']
        or (None if config.ado.is_cloud else config.ado.server_url),
        target_repo_visibility=flags['target_repo_visibility']
        or script.target_repo_visibility,
        verbose=ctx.obj.get('verbose', False) or script.verbose,
        ghes_api_url=flags['ghes_api_url'] or storage.ghes_api_url,
        aws_bucket_name=aws_bucket_name,
        aws_region=aws_region,
        no_ssl_verify=flags['no_ssl_verify'] or storage.no_ssl_verify,
        keep_archive=flags['keep_archive'] or storage.keep_archive,
        use_github_storage=use_github_storage,
    )


def _display_generation_summary(result: ScriptGenerationResult) -> None:
    """Display the planned repository migrations."""
    table = Table(title=f'Planned Migrations ({result.plan.mode.value})')
    table.add_column('ADO Organization', style='cyan')
    table.add_column('Team Project', style='cyan')
    table.add_column('Repository', style='white')
    table.add_column('GitHub Repository', style='green')
    table.add_column('Steps', justify='right')

    for org_plan in result.plan.orgs:
        for stage in org_plan.stages:
            table.add_row(
                stage.unit.org,
                stage.unit.team_project,
                stage.unit.repo,
                stage.unit.target_name,
                str(len(stage.steps)),
            )

    console.print(table)

    for warning in result.plan.warnings:
        console.print(f'[yellow]![/yellow] {warning}')
    for org_plan in result.plan.orgs:
        for note in org_plan.notes:
            console.print(f'[blue]i[/blue] {note}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
