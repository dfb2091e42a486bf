"""Script generation engine - main entry point for generate-script."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from ..api.ado import AdoClient, AdoInventoryProvider
from ..config.config import Config
from ..models.inventory import (
    Inventory,
    InventoryProvider,
    StaticInventoryProvider,
    collect_inventory,
)
from ..models.plan import PlanOptions, WorkflowPlan
from .emitter import ScriptEmitter
from .planner import MigrationPlanner


def write_text_file(path: str, content: str) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding='utf-8')


@dataclass
class ScriptGenerationResult:
    """Outcome of one script generation."""

    inventory: Inventory
    plan: WorkflowPlan
    script: str
    output: Optional[str]


class ScriptGenerationEngine:
    """Coordinates discovery, planning and rendering of a migration script."""

    def __init__(
        self,
        provider: InventoryProvider,
        planner: Optional[MigrationPlanner] = None,
        emitter: Optional[ScriptEmitter] = None,
        log=None,
        write_file: Callable[[str, str], None] = write_text_file,
    ):
        """Initialize engine.

        Args:
            provider: Inventory provider
            planner: Migration planner
            emitter: Script emitter
            log: Logger
            write_file: Writes the script to a path
        """
        self.provider = provider
        self.log = log or logger.bind(component='ScriptGenerationEngine')
        self.planner = planner or MigrationPlanner()
        self.emitter = emitter or ScriptEmitter()
        self.write_file = write_file

    @classmethod
    def from_config(
        cls, config: Config, github_org: str, inventory_file: Optional[str] = None
    ) -> 'ScriptGenerationEngine':
        """Create an engine reading the inventory from a file or from ADO."""
        if inventory_file:
            provider = StaticInventoryProvider.from_file(inventory_file)
        else:
            provider = AdoInventoryProvider(AdoClient(config.ado), github_org)
        return cls(provider)

    def generate(
        self,
        options: PlanOptions,
        output: Optional[str] = None,
        org_filter: Optional[str] = None,
        team_project_filter: Optional[str] = None,
    ) -> ScriptGenerationResult:
        """Generate the migration script.

        Args:
            options: Resolved plan options
            output: Script path, nothing is written when ``None``
            org_filter: Only migrate this ADO organization
            team_project_filter: Only migrate this team project

        Returns:
            Generation result

        Raises:
            NoMigratableReposError: If there is nothing to migrate; no file is
                written in that case
        """
        self.log.info('Generating Script...')

        inventory = collect_inventory(
            self.provider,
            include_pipelines=options.rewire_pipelines,
            include_integrations=options.rewire_pipelines,
            org_filter=org_filter,
            team_project_filter=team_project_filter,
        )

        plan = self.planner.plan(inventory, options)
        script = self.emitter.emit(plan)

        self.log_repo_list(inventory)

        if output:
            self.write_file(output, script)
            self.log.success(f'Migration script written to {output}')

        return ScriptGenerationResult(
            inventory=inventory, plan=plan, script=script, output=output
        )

    def log_repo_list(self, inventory: Inventory) -> None:
        """Log the discovered organizations, team projects and repositories."""
        lines = []
        for org in inventory.organizations:
            lines.append(f'ADO ORG: {org.name}')
            for project in org.projects:
                lines.append(f'  Team Project: {project.name}')
                for repo in project.repositories:
                    lines.append(f'    Repo: {repo.name}')
        self.log.info('\n'.join(lines))
