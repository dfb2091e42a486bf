"""Download of repository migration logs."""

import os
from typing import Callable, Optional

import requests
from loguru import logger

from ..api.exceptions import MigrateAPIError, MigrationError, RetryExhaustedError
from ..api.retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_on_result
from ..utils.clock import Clock, SystemClock

DEFAULT_LOG_FILE_TEMPLATE = 'migration-log-{org}-{repo}.log'


class HttpDownloader:
    """Streams a URL into a local file."""

    def __init__(self, timeout: int = 300, chunk_size: int = 64 * 1024):
        self.timeout = timeout
        self.chunk_size = chunk_size

    def download_to_file(self, url: str, path: str) -> None:
        """Download ``url`` to ``path``.

        A partially written file is removed when the transfer fails.

        Raises:
            MigrateAPIError: If the download fails
        """
        opened = False
        try:
            with requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(path, 'wb') as f:
                    opened = True
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        f.write(chunk)
        except requests.RequestException as e:
            if opened and os.path.exists(path):
                os.remove(path)
            status_code = e.response.status_code if e.response is not None else None
            raise MigrateAPIError(
                f'Failed to download migration log: {e}', status_code=status_code
            ) from e


class MigrationLogDownloader:
    """Fetches the log URL of a repository migration and downloads the log.

    The log URL is populated some time after the migration finishes, so the
    lookup is retried while it comes back empty. Nothing is downloaded unless
    a URL was obtained.
    """

    def __init__(
        self,
        github_api,
        downloader: Optional[HttpDownloader] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        clock: Optional[Clock] = None,
        log=None,
        file_exists: Callable[[str], bool] = os.path.exists,
    ):
        self.github_api = github_api
        self.downloader = downloader or HttpDownloader()
        self.retry_policy = retry_policy
        self.clock = clock or SystemClock()
        self.log = log or logger.bind(component='MigrationLogDownloader')
        self.file_exists = file_exists

    def download(
        self,
        github_org: str,
        github_repo: str,
        migration_log_file: Optional[str] = None,
        overwrite: bool = False,
    ) -> str:
        """Download the log of the latest migration of a repository.

        Args:
            github_org: GitHub organization
            github_repo: GitHub repository
            migration_log_file: Destination path
            overwrite: Replace an existing destination file

        Returns:
            Path of the downloaded log

        Raises:
            MigrationError: If the destination exists or no migration is found
            RetryExhaustedError: If the log URL never becomes available
        """
        path = migration_log_file or DEFAULT_LOG_FILE_TEMPLATE.format(
            org=github_org, repo=github_repo
        )

        if self.file_exists(path) and not overwrite:
            raise MigrationError(
                f'File {path} already exists! Use --overwrite to overwrite this file.'
            )

        self.log.info(f'Downloading migration logs for {github_org}/{github_repo}...')

        result = retry_on_result(
            lambda: self.github_api.get_migration_log_url(github_org, github_repo),
            lambda url: url != '',
            policy=self.retry_policy,
            clock=self.clock,
            log=self.log,
            retry_message='Waiting for migration log to populate...',
        )

        if not result.succeeded:
            raise RetryExhaustedError(
                f'Migration log for repository {github_repo} unavailable!',
                attempts=result.attempts,
            )

        if result.value is None:
            raise MigrationError(f'Migration for repository {github_repo} not found!')

        if overwrite and self.file_exists(path):
            self.log.warning(f'Overwriting {path} due to --overwrite option.')

        self.log.info(f'Downloading log for repository {github_repo} to {path}...')
        self.downloader.download_to_file(result.value, path)
        self.log.success(f'Downloaded {github_repo} log to {path}.')
        return path
