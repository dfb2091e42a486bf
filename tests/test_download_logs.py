"""Tests for migration log downloads."""

import pytest
from unittest.mock import MagicMock, Mock, patch
import requests

from ado_migrate.api.exceptions import (
    MigrateAPIError,
    MigrationError,
    RetryExhaustedError,
)
from ado_migrate.migration.logs import HttpDownloader, MigrationLogDownloader

from fakes import FakeClock


class TestMigrationLogDownloader:
    """Test downloading migration logs."""

    def setup_method(self):
        """Set up test fixtures."""
        self.github_api = Mock()
        self.downloader = Mock()
        self.clock = FakeClock()
        self.log = Mock()
        self.existing = set()
        self.log_downloader = MigrationLogDownloader(
            self.github_api,
            downloader=self.downloader,
            clock=self.clock,
            log=self.log,
            file_exists=lambda path: path in self.existing,
        )

    def test_url_populated_on_sixth_lookup(self):
        """Test the lookup is retried until the URL shows up."""
        self.github_api.get_migration_log_url.side_effect = [
            '', '', '', '', '', 'https://logs/1'
        ]

        path = self.log_downloader.download('gh-org', 'repo')

        assert path == 'migration-log-gh-org-repo.log'
        assert self.github_api.get_migration_log_url.call_count == 6
        self.downloader.download_to_file.assert_called_once_with(
            'https://logs/1', 'migration-log-gh-org-repo.log'
        )
        assert self.clock.sleeps == [4.0, 8.0, 12.0, 16.0, 20.0]
        assert self.log.success.call_count == 1

    def test_url_never_populated(self):
        """Test nothing is downloaded when the URL stays empty."""
        self.github_api.get_migration_log_url.return_value = ''

        with pytest.raises(RetryExhaustedError) as exc_info:
            self.log_downloader.download('gh-org', 'repo')

        assert exc_info.value.attempts == 6
        assert 'unavailable' in str(exc_info.value)
        assert self.github_api.get_migration_log_url.call_count == 6
        self.downloader.download_to_file.assert_not_called()

    def test_migration_not_found(self):
        """Test a repository without migrations."""
        self.github_api.get_migration_log_url.return_value = None

        with pytest.raises(MigrationError, match='not found'):
            self.log_downloader.download('gh-org', 'repo')

        assert self.github_api.get_migration_log_url.call_count == 1
        self.downloader.download_to_file.assert_not_called()

    def test_existing_file_without_overwrite(self):
        """Test an existing destination is not replaced by default."""
        self.existing.add('custom.log')

        with pytest.raises(MigrationError, match='already exists'):
            self.log_downloader.download('gh-org', 'repo', migration_log_file='custom.log')

        self.github_api.get_migration_log_url.assert_not_called()

    def test_existing_file_with_overwrite(self):
        """Test overwrite replaces an existing destination with a warning."""
        self.existing.add('custom.log')
        self.github_api.get_migration_log_url.return_value = 'https://logs/2'

        path = self.log_downloader.download(
            'gh-org', 'repo', migration_log_file='custom.log', overwrite=True
        )

        assert path == 'custom.log'
        assert self.log.warning.call_count == 1
        self.downloader.download_to_file.assert_called_once_with('https://logs/2', 'custom.log')


class TestHttpDownloader:
    """Test streaming downloads."""

    def test_download_to_file(self, tmp_path):
        """Test chunks are written to the destination."""
        response = MagicMock()
        response.iter_content.return_value = [b'line 1\n', b'line 2\n']
        response.__enter__.return_value = response
        target = tmp_path / 'log.txt'

        with patch('ado_migrate.migration.logs.requests.get', return_value=response) as get:
            HttpDownloader(timeout=5).download_to_file('https://logs/1', str(target))

        get.assert_called_once_with('https://logs/1', stream=True, timeout=5)
        assert target.read_bytes() == b'line 1\nline 2\n'

    def test_download_failure(self, tmp_path):
        """Test request failures become API errors."""
        with patch(
            'ado_migrate.migration.logs.requests.get',
            side_effect=requests.ConnectionError('down'),
        ):
            with pytest.raises(MigrateAPIError) as exc_info:
                HttpDownloader().download_to_file('https://logs/1', str(tmp_path / 'x'))

        assert exc_info.value.status_code is None

    def test_partial_file_removed(self, tmp_path):
        """Test a transfer failing mid-stream leaves no file behind."""
        error = requests.ConnectionError('reset')

        def chunks(chunk_size):
            yield b'line 1\n'
            raise error

        response = MagicMock()
        response.iter_content.side_effect = chunks
        response.__enter__.return_value = response
        target = tmp_path / 'log.txt'

        with patch('ado_migrate.migration.logs.requests.get', return_value=response):
            with pytest.raises(MigrateAPIError) as exc_info:
                HttpDownloader().download_to_file('https://logs/1', str(target))

        assert not target.exists()
        assert exc_info.value.__cause__ is error
