"""Tests for inventory discovery."""

import pytest
import requests
from unittest.mock import Mock, patch

from ado_migrate.api.ado import AdoClient, AdoInventoryProvider
from ado_migrate.api.client import APIResponse
from ado_migrate.api.exceptions import AuthenticationError, MigrateAPIError
from ado_migrate.api.retry import RetryPolicy
from ado_migrate.config.config import AdoConfig
from ado_migrate.models.inventory import (
    SourceRepository,
    StaticInventoryProvider,
    collect_inventory,
)

from fakes import FakeClock, make_response

INVENTORY = {
    'organizations': [
        {
            'name': 'contoso',
            'integration_id': 'sc-1',
            'projects': [
                {
                    'name': 'Parts Unlimited',
                    'repositories': [
                        {'id': 'r1', 'name': 'Some Repo', 'pipelines': ['\\CI']},
                        {'id': 'r2', 'name': 'web'},
                    ],
                },
                {'name': 'Fabrikam', 'repositories': [{'id': 'r3', 'name': 'api'}]},
            ],
        },
        {
            'name': 'northwind',
            'projects': [{'name': 'parts unlimited', 'repositories': [{'name': 'docs'}]}],
        },
    ]
}


def api_response(data):
    return APIResponse(status_code=200, data=data, headers={}, success=True)


class TestStaticInventoryProvider:
    """Test the in-memory inventory provider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = StaticInventoryProvider(INVENTORY)

    def test_listing(self):
        """Test listing follows the description order."""
        assert self.provider.list_orgs() == ['contoso', 'northwind']
        assert self.provider.list_projects('contoso') == ['Parts Unlimited', 'Fabrikam']
        assert [r.name for r in self.provider.list_repos('contoso', 'Parts Unlimited')] == [
            'Some Repo',
            'web',
        ]
        assert self.provider.list_pipelines(
            'contoso', 'Parts Unlimited', SourceRepository(name='Some Repo')
        ) == ['\\CI']
        assert self.provider.has_integration('contoso')
        assert not self.provider.has_integration('northwind')

    def test_unknown_names(self):
        """Test unknown organizations and projects are rejected."""
        with pytest.raises(KeyError):
            self.provider.list_projects('missing')

        with pytest.raises(KeyError):
            self.provider.list_repos('contoso', 'missing')

    def test_from_file(self, tmp_path):
        """Test loading a YAML description."""
        inventory_file = tmp_path / 'inventory.yaml'
        inventory_file.write_text(
            'organizations:\n'
            '  - name: contoso\n'
            '    projects:\n'
            '      - name: Parts Unlimited\n'
            '        repositories:\n'
            '          - name: Some Repo\n'
        )

        provider = StaticInventoryProvider.from_file(str(inventory_file))

        assert provider.inventory.repository_count == 1

    def test_from_missing_file(self, tmp_path):
        """Test a missing file."""
        with pytest.raises(FileNotFoundError):
            StaticInventoryProvider.from_file(str(tmp_path / 'missing.yaml'))


class TestCollectInventory:
    """Test walking a provider into an inventory."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = StaticInventoryProvider(INVENTORY)
        self.log = Mock()

    def test_collect_everything(self):
        """Test discovery order and integrations are kept."""
        inventory = collect_inventory(
            self.provider, include_pipelines=True, include_integrations=True, log=self.log
        )

        assert [org.name for org in inventory.organizations] == ['contoso', 'northwind']
        assert inventory.repository_count == 4
        assert inventory.organizations[0].integration_id == 'sc-1'
        assert inventory.organizations[0].projects[0].repositories[0].pipelines == ['\\CI']
        assert self.log.warning.call_count == 1
        assert 'northwind' in self.log.warning.call_args.args[0]

    def test_pipelines_and_integrations_are_optional(self):
        """Test nothing extra is looked up unless asked for."""
        inventory = collect_inventory(self.provider, log=self.log)

        assert inventory.organizations[0].integration_id is None
        assert inventory.organizations[0].projects[0].repositories[0].pipelines == []
        self.log.warning.assert_not_called()

    def test_filters(self):
        """Test organization and case-insensitive team project filters."""
        inventory = collect_inventory(
            self.provider, org_filter='contoso', team_project_filter='FABRIKAM', log=self.log
        )

        assert [org.name for org in inventory.organizations] == ['contoso']
        assert [p.name for p in inventory.organizations[0].projects] == ['Fabrikam']

        inventory = collect_inventory(
            self.provider, team_project_filter='Parts Unlimited', log=self.log
        )
        assert inventory.repository_count == 3


class TestAdoClient:
    """Test the Azure DevOps client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = AdoConfig(pat='ado-token')
        self.clock = FakeClock()

    def test_requires_token(self):
        """Test a token is required."""
        with pytest.raises(AuthenticationError):
            AdoClient(AdoConfig(), clock=self.clock)

    def test_basic_auth(self):
        """Test the token is sent with basic authentication."""
        client = AdoClient(self.config, clock=self.clock, log=Mock())

        assert client.session.auth == ('', 'ado-token')
        assert client.base_url == 'https://dev.azure.com'

    def test_get_with_paging(self):
        """Test continuation tokens are followed."""
        client = AdoClient(self.config, clock=self.clock, log=Mock())
        first = make_response(
            200, {'value': [{'name': 'a'}]}, headers={'X-MS-ContinuationToken': 'next'}
        )
        second = make_response(200, {'value': [{'name': 'b'}]})

        with patch.object(client.session, 'get', side_effect=[first, second]) as get:
            items = client.get_with_paging('https://dev.azure.com/contoso/_apis/projects')

        assert items == [{'name': 'a'}, {'name': 'b'}]
        assert get.call_count == 2
        assert get.call_args_list[0].kwargs['params'] is None
        assert get.call_args_list[1].kwargs['params'] == {'continuationToken': 'next'}

    def test_transient_errors_are_retried(self):
        """Test server errors are retried."""
        client = AdoClient(self.config, clock=self.clock, log=Mock())
        responses = [make_response(503, text='busy'), make_response(200, {'value': []})]

        with patch.object(client.session, 'get', side_effect=responses) as get:
            client.get('https://dev.azure.com/contoso/_apis/projects')

        assert get.call_count == 2
        assert self.clock.sleeps == [1.0]

    def test_retry_after_is_honoured(self):
        """Test a 429 waits for the server declared delay."""
        client = AdoClient(self.config, clock=self.clock, log=Mock())
        responses = [
            make_response(429, headers={'Retry-After': '30'}),
            make_response(200, {'value': []}),
        ]

        with patch.object(client.session, 'get', side_effect=responses) as get:
            client.get('https://dev.azure.com/contoso/_apis/projects')

        assert get.call_count == 2
        assert self.clock.sleeps == [30]

    def test_connection_error_is_chained(self):
        """Test network failures keep the underlying error."""
        client = AdoClient(
            self.config, retry_policy=RetryPolicy(max_attempts=1), clock=self.clock, log=Mock()
        )
        error = requests.ConnectionError('refused')

        with patch.object(client.session, 'get', side_effect=error):
            with pytest.raises(MigrateAPIError) as exc_info:
                client.get('https://dev.azure.com/contoso/_apis/projects')

        assert exc_info.value.__cause__ is error


class TestAdoInventoryProvider:
    """Test the Azure DevOps inventory provider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.client.base_url = 'https://dev.azure.com'
        self.provider = AdoInventoryProvider(self.client, github_org='gh-org')

    def test_list_orgs(self):
        """Test organizations come from the accounts of the current user."""
        self.client.get.side_effect = [
            api_response({'coreAttributes': {'PublicAlias': {'value': 'user-1'}}}),
            api_response({'value': [{'accountName': 'contoso'}, {'accountName': 'northwind'}]}),
        ]

        assert self.provider.list_orgs() == ['contoso', 'northwind']
        assert 'memberId=user-1' in self.client.get.call_args.args[0]

    def test_list_repos_skips_disabled(self):
        """Test disabled repositories are not listed."""
        self.client.get_with_paging.return_value = [
            {'id': '1', 'name': 'Some Repo'},
            {'id': '2', 'name': 'old', 'isDisabled': True},
        ]

        repos = self.provider.list_repos('contoso', 'Parts Unlimited')

        assert repos == [SourceRepository(id='1', name='Some Repo')]
        self.client.get_with_paging.assert_called_once_with(
            'https://dev.azure.com/contoso/Parts%20Unlimited/_apis/git/repositories'
            '?api-version=6.1-preview.1'
        )

    def test_list_pipelines(self):
        """Test pipeline names carry their folder."""
        self.client.get_with_paging.return_value = [
            {'name': 'CI', 'path': '\\'},
            {'name': 'Nightly', 'path': '\\Builds'},
        ]

        pipelines = self.provider.list_pipelines(
            'contoso', 'Parts Unlimited', SourceRepository(id='r1', name='Some Repo')
        )

        assert pipelines == ['\\CI', '\\Builds\\Nightly']
        assert 'repositoryId=r1' in self.client.get_with_paging.call_args.args[0]

    def test_integration_by_github_org(self):
        """Test a GitHub endpoint named after the target org is found."""
        self.client.get_with_paging.side_effect = [
            [{'name': 'first'}, {'name': 'second'}],
            [{'type': 'azurerm', 'name': 'gh-org', 'id': 'sc-0'}],
            [{'type': 'GitHub', 'name': 'GH-ORG', 'id': 'sc-9'}],
        ]

        assert self.provider.get_integration_id('contoso') == 'sc-9'

    def test_integration_by_team_project(self):
        """Test a Pipelines app endpoint named after its team project is found."""
        self.client.get_with_paging.side_effect = [
            [{'name': 'Parts'}],
            [{'type': 'GitHubProximaPipelines', 'name': 'parts', 'id': 'sc-2'}],
        ]

        assert self.provider.get_integration_id('contoso') == 'sc-2'

    def test_no_integration(self):
        """Test an organization without the integration."""
        self.client.get_with_paging.side_effect = [
            [{'name': 'Parts'}],
            [{'type': 'GitHub', 'name': 'someone-else', 'id': 'sc-3'}],
        ]

        assert self.provider.get_integration_id('contoso') is None
