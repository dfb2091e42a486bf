"""GitHub API client implementation."""

from typing import Any, Dict, Optional

import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GithubConfig
from ..models.job import (
    OrgMigrationState,
    OrgMigrationStatus,
    RepoMigrationState,
    RepoMigrationStatus,
)
from ..utils.clock import Clock, SystemClock
from ..utils.logging import register_secret
from .exceptions import (
    AuthenticationError,
    GraphQLError,
    MigrateAPIError,
    NotFoundError,
    ValidationError,
)
from .rate_limiter import RateLimitHandler
from .retry import HTTP_RETRY_POLICY, RetryPolicy, retry

USER_AGENT = 'ado-migrate/0.1.0'

GET_MIGRATION_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on Migration {
      id
      sourceUrl
      migrationLogUrl
      migrationSource { name }
      state
      warningsCount
      failureReason
      repositoryName
    }
  }
}
"""

GET_ORGANIZATION_MIGRATION_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on OrganizationMigration {
      state
      sourceOrgUrl
      targetOrgName
      failureReason
      remainingRepositoriesCount
      totalRepositoriesCount
    }
  }
}
"""

GET_MIGRATION_LOG_URL_QUERY = """
query($org: String!, $repo: String!) {
  organization(login: $org) {
    repositoryMigrations(last: 1, repositoryName: $repo) {
      nodes {
        id
        migrationLogUrl
      }
    }
  }
}
"""


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def handle_response(response: requests.Response) -> APIResponse:
    """Handle API response and convert to standard format.

    Args:
        response: Raw HTTP response

    Returns:
        Standardized API response

    Raises:
        MigrateAPIError: For various API errors
    """
    headers = dict(response.headers)

    if response.status_code == 401:
        raise AuthenticationError('Authentication failed', status_code=401)

    if response.status_code == 404:
        raise NotFoundError('Resource not found', status_code=404)

    if response.status_code >= 400:
        error_data = None
        try:
            error_data = response.json()
            message = error_data.get('message', f'HTTP {response.status_code}')
        except (ValueError, AttributeError):
            message = f'HTTP {response.status_code}: {response.text}'

        error_class = ValidationError if response.status_code == 422 else MigrateAPIError
        raise error_class(
            f'API request failed: {message}',
            status_code=response.status_code,
            response_data=error_data if isinstance(error_data, dict) else None,
        )

    try:
        data = response.json() if response.content else None
    except ValueError:
        data = response.text

    return APIResponse(
        status_code=response.status_code,
        data=data,
        headers=headers,
        success=200 <= response.status_code < 300,
    )


class GithubClient:
    """GitHub REST/GraphQL transport with rate limit handling."""

    def __init__(
        self,
        config: GithubConfig,
        clock: Optional[Clock] = None,
        rate_limit_handler: Optional[RateLimitHandler] = None,
        log=None,
    ):
        """Initialize GitHub client.

        Args:
            config: GitHub configuration
            clock: Clock used for rate limit waits
            rate_limit_handler: Rate limit detection and backoff
            log: Logger
        """
        if not config.pat:
            raise AuthenticationError('No authentication token provided')

        self.config = config
        self.base_url = config.api_url.rstrip('/')
        self.log = log or logger.bind(component='GithubClient')
        self.clock = clock or SystemClock()
        self.rate_limit_handler = rate_limit_handler or RateLimitHandler(
            clock=self.clock, log=self.log
        )
        register_secret(config.pat)

        self.session = requests.Session()
        self.session.headers.update(
            {
                'Authorization': f'Bearer {config.pat}',
                'Accept': 'application/vnd.github+json',
                'GraphQL-Features': 'import_api,mannequin_claiming',
                'User-Agent': USER_AGENT,
            }
        )

        self.log.debug(f'Initialized GitHub client for {self.base_url}')

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        return f'{self.base_url}/{endpoint.lstrip("/")}'

    def _send(self, method: str, url: str, **kwargs) -> APIResponse:
        """Send a request, waiting out rate limits before surfacing errors.

        A rate limited request is re-issued at most
        ``rate_limit_handler.max_retries`` times; the last response then goes
        through ordinary error handling.
        """
        retry_count = 0
        while True:
            try:
                response = self.session.request(
                    method, url, timeout=self.config.timeout, **kwargs
                )
            except requests.RequestException as e:
                self.log.error(f'Network error during {method} request: {e}')
                raise MigrateAPIError(f'Network error: {e}') from e

            signal = self.rate_limit_handler.detect(
                response.status_code, response.text, response.headers, retry_count
            )
            if signal is None or retry_count >= self.rate_limit_handler.max_retries:
                return handle_response(response)

            self.rate_limit_handler.wait(signal, retry_count)
            retry_count += 1

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request."""
        return self._send('GET', self._build_url(endpoint), params=params, **kwargs)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make POST request."""
        return self._send('POST', self._build_url(endpoint), json=data, **kwargs)

    def post_graphql(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Args:
            query: GraphQL document
            variables: Query variables

        Returns:
            The ``data`` member of the response

        Raises:
            GraphQLError: If the response carries an ``errors`` array
        """
        response = self.post(
            'graphql', data={'query': query, 'variables': variables or {}}
        )
        payload = response.data if isinstance(response.data, dict) else {}

        errors = payload.get('errors')
        if errors:
            message = errors[0].get('message', 'GraphQL request failed')
            raise GraphQLError(message, status_code=response.status_code, response_data=payload)

        return payload.get('data') or {}

    def close(self):
        """Close the client session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class GithubApi:
    """Migration queries against GitHub, each wrapped in the retry policy."""

    def __init__(
        self,
        client: GithubClient,
        retry_policy: RetryPolicy = HTTP_RETRY_POLICY,
        clock: Optional[Clock] = None,
        log=None,
    ):
        self.client = client
        self.retry_policy = retry_policy
        self.clock = clock or SystemClock()
        self.log = log or logger.bind(component='GithubApi')

    def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        return retry(
            lambda: self.client.post_graphql(query, variables),
            policy=self.retry_policy,
            clock=self.clock,
            log=self.log,
        )

    def _node(self, migration_id: str, query: str) -> Dict[str, Any]:
        node = self._query(query, {'id': migration_id}).get('node')
        if not node:
            raise NotFoundError(f'Migration {migration_id} not found', status_code=404)
        return node

    def get_migration(self, migration_id: str) -> RepoMigrationStatus:
        """Get the status of a repository migration.

        Args:
            migration_id: Repository migration ID (``RM_...``)

        Returns:
            Current status snapshot
        """
        node = self._node(migration_id, GET_MIGRATION_QUERY)
        return RepoMigrationStatus(
            state=RepoMigrationState.parse(node.get('state')),
            repository_name=node.get('repositoryName'),
            warnings_count=node.get('warningsCount') or 0,
            failure_reason=node.get('failureReason'),
            migration_log_url=node.get('migrationLogUrl'),
        )

    def get_organization_migration(self, migration_id: str) -> OrgMigrationStatus:
        """Get the status of an organization migration.

        Args:
            migration_id: Organization migration ID (``OM_...``)

        Returns:
            Current status snapshot
        """
        node = self._node(migration_id, GET_ORGANIZATION_MIGRATION_QUERY)
        return OrgMigrationStatus(
            state=OrgMigrationState.parse(node.get('state')),
            source_org_url=node.get('sourceOrgUrl'),
            target_org_name=node.get('targetOrgName'),
            failure_reason=node.get('failureReason'),
            remaining_repositories_count=node.get('remainingRepositoriesCount') or 0,
            total_repositories_count=node.get('totalRepositoriesCount') or 0,
        )

    def get_migration_log_url(self, org: str, repo: str) -> Optional[str]:
        """Get the log URL of the latest migration of a repository.

        Args:
            org: GitHub organization
            repo: GitHub repository name

        Returns:
            ``None`` when the repository has no migration, an empty string
            while the log is not available yet, the URL otherwise
        """
        data = self._query(GET_MIGRATION_LOG_URL_QUERY, {'org': org, 'repo': repo})
        organization = data.get('organization') or {}
        nodes = (organization.get('repositoryMigrations') or {}).get('nodes') or []
        if not nodes:
            return None
        return nodes[0].get('migrationLogUrl') or ''


class GithubClientFactory:
    """Factory for creating GitHub API clients."""

    @staticmethod
    def create_client(config: GithubConfig, clock: Optional[Clock] = None) -> GithubClient:
        """Create GitHub client from configuration.

        Raises:
            AuthenticationError: If no personal access token is configured
        """
        if not config.pat:
            raise AuthenticationError('GH_PAT must be provided')

        return GithubClient(config, clock=clock)

    @staticmethod
    def create_api(
        config: GithubConfig,
        retry_policy: RetryPolicy = HTTP_RETRY_POLICY,
        clock: Optional[Clock] = None,
    ) -> GithubApi:
        """Create the migration query API on top of a new client."""
        clock = clock or SystemClock()
        client = GithubClientFactory.create_client(config, clock=clock)
        return GithubApi(client, retry_policy=retry_policy, clock=clock)
