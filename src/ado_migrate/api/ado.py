"""Azure DevOps REST client and the inventory provider built on it."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from loguru import logger

from ..config.config import AdoConfig
from ..models.inventory import InventoryProvider, SourceRepository
from ..utils.clock import Clock, SystemClock
from ..utils.logging import register_secret
from .client import APIResponse, USER_AGENT, handle_response
from .exceptions import AuthenticationError, MigrateAPIError
from .rate_limiter import RateLimitHandler
from .retry import HTTP_RETRY_POLICY, RetryPolicy, retry

PROFILE_URL = (
    'https://app.vssps.visualstudio.com/_apis/profile/profiles/me'
    '?api-version=5.0-preview.1'
)
ACCOUNTS_URL = (
    'https://app.vssps.visualstudio.com/_apis/accounts'
    '?memberId={member_id}&api-version=5.0-preview.1'
)
CONTINUATION_TOKEN_HEADER = 'x-ms-continuationtoken'


class AdoClient:
    """Azure DevOps API client using PAT basic authentication."""

    def __init__(
        self,
        config: AdoConfig,
        retry_policy: RetryPolicy = HTTP_RETRY_POLICY,
        clock: Optional[Clock] = None,
        rate_limit_handler: Optional[RateLimitHandler] = None,
        log=None,
    ):
        """Initialize Azure DevOps client.

        Args:
            config: Azure DevOps configuration
            retry_policy: Retry policy applied to every call
            clock: Clock used for retry and rate limit waits
            rate_limit_handler: Rate limit detection and backoff
            log: Logger
        """
        if not config.pat:
            raise AuthenticationError('ADO_PAT must be provided')

        self.config = config
        self.base_url = config.server_url.rstrip('/')
        self.retry_policy = retry_policy
        self.clock = clock or SystemClock()
        self.log = log or logger.bind(component='AdoClient')
        self.rate_limit_handler = rate_limit_handler or RateLimitHandler(
            clock=self.clock, log=self.log
        )
        register_secret(config.pat)

        self.session = requests.Session()
        self.session.auth = ('', config.pat)
        self.session.headers.update(
            {'Accept': 'application/json', 'User-Agent': USER_AGENT}
        )

    def _get_once(self, url: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """Send a GET request, sleeping through 429 responses.

        The wait honours ``Retry-After``; the last rate limited response goes
        through ordinary error handling.
        """
        retry_count = 0
        while True:
            try:
                response = self.session.get(url, params=params, timeout=self.config.timeout)
            except requests.RequestException as e:
                self.log.error(f'Network error during GET request: {e}')
                raise MigrateAPIError(f'Network error: {e}') from e

            signal = None
            if response.status_code == 429:
                signal = self.rate_limit_handler.detect(
                    response.status_code, response.text, response.headers, retry_count
                )
            if signal is None or retry_count >= self.rate_limit_handler.max_retries:
                return handle_response(response)

            self.rate_limit_handler.wait(signal, retry_count)
            retry_count += 1

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """Make GET request wrapped in the retry policy."""
        return retry(
            lambda: self._get_once(url, params),
            policy=self.retry_policy,
            clock=self.clock,
            log=self.log,
        )

    def get_with_paging(self, url: str) -> List[Dict[str, Any]]:
        """Get every item of a list endpoint, following continuation tokens.

        Args:
            url: Endpoint URL

        Returns:
            Items of the ``value`` array of every page
        """
        items = []
        continuation_token = None

        while True:
            params = {'continuationToken': continuation_token} if continuation_token else None
            response = self.get(url, params=params)
            data = response.data if isinstance(response.data, dict) else {}
            items.extend(data.get('value') or [])

            continuation_token = next(
                (
                    value
                    for key, value in response.headers.items()
                    if key.lower() == CONTINUATION_TOKEN_HEADER
                ),
                None,
            )
            if not continuation_token:
                break

        self.log.debug(f'Retrieved {len(items)} items from {url}')
        return items

    def close(self):
        """Close the client session."""
        self.session.close()


class AdoInventoryProvider(InventoryProvider):
    """Inventory provider reading from the Azure DevOps REST API."""

    def __init__(self, client: AdoClient, github_org: str):
        """Initialize provider.

        Args:
            client: Azure DevOps client
            github_org: Target GitHub organization, used to find the
                GitHub service connection
        """
        self.client = client
        self.github_org = github_org

    def _org_url(self, org: str, *parts: str) -> str:
        segments = [quote(org)] + [quote(part) for part in parts]
        return '/'.join([self.client.base_url] + segments)

    def get_user_id(self) -> str:
        data = self.client.get(PROFILE_URL).data or {}
        return data['coreAttributes']['PublicAlias']['value']

    def list_orgs(self) -> List[str]:
        user_id = self.get_user_id()
        response = self.client.get(ACCOUNTS_URL.format(member_id=user_id))
        accounts = (response.data or {}).get('value') or []
        return [account['accountName'] for account in accounts]

    def list_projects(self, org: str) -> List[str]:
        url = f'{self._org_url(org)}/_apis/projects?api-version=6.1-preview'
        return [project['name'] for project in self.client.get_with_paging(url)]

    def list_repos(self, org: str, project: str) -> List[SourceRepository]:
        url = (
            f'{self._org_url(org, project)}/_apis/git/repositories'
            f'?api-version=6.1-preview.1'
        )
        return [
            SourceRepository(id=repo['id'], name=repo['name'])
            for repo in self.client.get_with_paging(url)
            if not repo.get('isDisabled', False)
        ]

    def list_pipelines(
        self, org: str, project: str, repo: SourceRepository
    ) -> List[str]:
        url = (
            f'{self._org_url(org, project)}/_apis/build/definitions'
            f'?repositoryId={repo.id}&repositoryType=TfsGit'
            f'&queryOrder=lastModifiedDescending&api-version=6.0'
        )
        pipelines = []
        for definition in self.client.get_with_paging(url):
            path = definition.get('path') or ''
            if path == '\\':
                path = ''
            pipelines.append(f'{path}\\{definition["name"]}')
        return pipelines

    def get_integration_id(self, org: str) -> Optional[str]:
        """Find the GitHub App service connection in any team project of ``org``.

        A ``GitHub`` endpoint must be named after the target GitHub org; a
        ``GitHubProximaPipelines`` endpoint must be named after its team
        project. Names compare case-insensitively.
        """
        for project in self.list_projects(org):
            url = (
                f'{self._org_url(org, project)}/_apis/serviceendpoint/endpoints'
                f'?api-version=6.0-preview.4'
            )
            for endpoint in self.client.get_with_paging(url):
                endpoint_type = (endpoint.get('type') or '').lower()
                name = (endpoint.get('name') or '').lower()
                if endpoint_type == 'github' and name == self.github_org.lower():
                    return endpoint['id']
                if endpoint_type == 'githubproximapipelines' and name == project.lower():
                    return endpoint['id']
        return None
