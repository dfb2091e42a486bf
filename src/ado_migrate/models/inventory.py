"""Inventory of ADO organizations, team projects and repositories."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class SourceRepository(BaseModel):
    """Repository as listed by an inventory provider."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description='ADO repository ID')
    name: str = Field(..., description='Repository name')


class Repository(BaseModel):
    """ADO git repository with the pipelines built from it."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description='ADO repository ID')
    name: str = Field(..., description='Repository name')
    pipelines: List[str] = Field(
        default_factory=list, description='Pipeline names, folder included'
    )


class TeamProject(BaseModel):
    """ADO team project."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description='Team project name')
    repositories: List[Repository] = Field(
        default_factory=list, description='Git repositories'
    )


class Organization(BaseModel):
    """ADO organization."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description='Organization name')
    integration_id: Optional[str] = Field(
        default=None, description='GitHub App service connection ID'
    )
    projects: List[TeamProject] = Field(
        default_factory=list, description='Team projects'
    )

    @property
    def has_integration(self) -> bool:
        return self.integration_id is not None


class Inventory(BaseModel):
    """Discovery result handed to the planner."""

    model_config = ConfigDict(frozen=True)

    organizations: List[Organization] = Field(
        default_factory=list, description='Organizations in discovery order'
    )

    @property
    def repository_count(self) -> int:
        return sum(
            len(project.repositories)
            for org in self.organizations
            for project in org.projects
        )


class InventoryProvider(ABC):
    """Read-only source of inventory data."""

    @abstractmethod
    def list_orgs(self) -> List[str]:
        pass

    @abstractmethod
    def list_projects(self, org: str) -> List[str]:
        pass

    @abstractmethod
    def list_repos(self, org: str, project: str) -> List[SourceRepository]:
        pass

    @abstractmethod
    def list_pipelines(
        self, org: str, project: str, repo: SourceRepository
    ) -> List[str]:
        pass

    @abstractmethod
    def get_integration_id(self, org: str) -> Optional[str]:
        """Return the service connection ID of the GitHub integration, if any."""
        pass

    def has_integration(self, org: str) -> bool:
        return self.get_integration_id(org) is not None


class StaticInventoryProvider(InventoryProvider):
    """Inventory provider answering from an in-memory description.

    Accepts the same nested shape as :class:`Inventory`::

        organizations:
          - name: contoso
            integration_id: 1f3c...
            projects:
              - name: Parts Unlimited
                repositories:
                  - name: Some Repo
                    pipelines: ['Builds\\CI']
    """

    def __init__(self, data: Dict[str, Any]):
        self.inventory = Inventory.model_validate(data or {})
        self._orgs = {org.name: org for org in self.inventory.organizations}

    @classmethod
    def from_file(cls, path: str) -> 'StaticInventoryProvider':
        """Load an inventory description from a YAML file."""
        inventory_file = Path(path)

        if not inventory_file.exists():
            raise FileNotFoundError(f'Inventory file not found: {path}')

        with open(inventory_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls(data)

    def _org(self, org: str) -> Organization:
        if org not in self._orgs:
            raise KeyError(f'Unknown organization: {org}')
        return self._orgs[org]

    def _project(self, org: str, project: str) -> TeamProject:
        for candidate in self._org(org).projects:
            if candidate.name == project:
                return candidate
        raise KeyError(f'Unknown team project: {org}/{project}')

    def list_orgs(self) -> List[str]:
        return [org.name for org in self.inventory.organizations]

    def list_projects(self, org: str) -> List[str]:
        return [project.name for project in self._org(org).projects]

    def list_repos(self, org: str, project: str) -> List[SourceRepository]:
        return [
            SourceRepository(id=repo.id, name=repo.name)
            for repo in self._project(org, project).repositories
        ]

    def list_pipelines(
        self, org: str, project: str, repo: SourceRepository
    ) -> List[str]:
        for candidate in self._project(org, project).repositories:
            if candidate.name == repo.name:
                return list(candidate.pipelines)
        return []

    def get_integration_id(self, org: str) -> Optional[str]:
        return self._org(org).integration_id


def collect_inventory(
    provider: InventoryProvider,
    include_pipelines: bool = False,
    include_integrations: bool = False,
    org_filter: Optional[str] = None,
    team_project_filter: Optional[str] = None,
    log=None,
) -> Inventory:
    """Walk an inventory provider into an immutable inventory.

    Args:
        provider: Inventory provider
        include_pipelines: Whether to list pipelines per repository
        include_integrations: Whether to look up the GitHub integration per org
        org_filter: Only collect this organization
        team_project_filter: Only collect team projects with this name
        log: Logger

    Returns:
        Inventory in discovery order
    """
    log = log or logger.bind(component='InventoryCollector')

    org_names = [org_filter] if org_filter else provider.list_orgs()
    organizations = []

    for org_name in org_names:
        integration_id = None
        if include_integrations:
            integration_id = provider.get_integration_id(org_name)
            if integration_id is None:
                log.warning(
                    f'CANNOT FIND GITHUB APP SERVICE CONNECTION IN ADO ORGANIZATION: '
                    f'{org_name}. You must install the Pipelines app in GitHub and '
                    f'connect it to any Team Project in this ADO Org first.'
                )

        projects = []
        for project_name in provider.list_projects(org_name):
            if (
                team_project_filter
                and project_name.lower() != team_project_filter.lower()
            ):
                continue

            repositories = []
            for source_repo in provider.list_repos(org_name, project_name):
                pipelines = []
                if include_pipelines:
                    pipelines = provider.list_pipelines(
                        org_name, project_name, source_repo
                    )
                repositories.append(
                    Repository(
                        id=source_repo.id, name=source_repo.name, pipelines=pipelines
                    )
                )

            projects.append(TeamProject(name=project_name, repositories=repositories))

        organizations.append(
            Organization(
                name=org_name, integration_id=integration_id, projects=projects
            )
        )

    inventory = Inventory(organizations=organizations)
    log.info(
        f'Found {len(organizations)} organization(s) with '
        f'{inventory.repository_count} repositories'
    )
    return inventory
