"""Tests for configuration management."""

import pytest
import tempfile
import os
from unittest.mock import patch

import yaml

from ado_migrate.config.config import (
    AdoConfig,
    Config,
    GithubConfig,
    LoggingConfig,
    RetryConfig,
    ScriptConfig,
    StorageConfig,
)


class TestAdoConfig:
    """Test Azure DevOps configuration."""

    def test_defaults(self):
        """Test default values."""
        config = AdoConfig()

        assert config.server_url == 'https://dev.azure.com'
        assert config.pat is None
        assert config.timeout == 30
        assert config.is_cloud

    def test_url_validation(self):
        """Test URL validation."""
        config = AdoConfig(server_url='https://ado.example.com/tfs/')
        assert config.server_url == 'https://ado.example.com/tfs'
        assert not config.is_cloud

        with pytest.raises(ValueError):
            AdoConfig(server_url='ado.example.com')


class TestGithubConfig:
    """Test GitHub configuration."""

    def test_defaults(self):
        """Test default values."""
        config = GithubConfig(pat='gh-token')

        assert config.api_url == 'https://api.github.com'
        assert config.is_dotcom

    def test_ghes_url(self):
        """Test a GitHub Enterprise Server URL."""
        config = GithubConfig(api_url='https://ghes.example.com/api/v3/')

        assert config.api_url == 'https://ghes.example.com/api/v3'
        assert not config.is_dotcom


class TestStorageConfig:
    """Test archive storage settings."""

    def test_blob_credentials_required(self):
        """Test blob credentials are needed only for GHES without GitHub storage."""
        assert not StorageConfig().blob_credentials_required
        assert StorageConfig(ghes_api_url='https://ghes/api/v3').blob_credentials_required
        assert not StorageConfig(
            ghes_api_url='https://ghes/api/v3', use_github_storage=True
        ).blob_credentials_required

    def test_github_storage_conflicts_with_aws(self):
        """Test GitHub storage cannot be combined with AWS settings."""
        with pytest.raises(ValueError):
            StorageConfig(use_github_storage=True, aws_bucket_name='bucket')


class TestScriptAndRetryConfig:
    """Test script and retry settings."""

    def test_visibility(self):
        """Test visibility validation."""
        assert ScriptConfig(target_repo_visibility='Internal').target_repo_visibility == (
            'internal'
        )

        with pytest.raises(ValueError):
            ScriptConfig(target_repo_visibility='secret')

    def test_retry_defaults(self):
        """Test retry defaults."""
        config = RetryConfig()

        assert config.max_attempts == 6
        assert config.delay_seconds == 4.0
        assert config.wait_interval_seconds == 10
        assert config.wait_timeout_seconds is None

    def test_retry_validation(self):
        """Test retry validation."""
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

        with pytest.raises(ValueError):
            RetryConfig(delay_seconds=-1)

    def test_log_level(self):
        """Test log level validation."""
        assert LoggingConfig(level='debug').level == 'DEBUG'

        with pytest.raises(ValueError):
            LoggingConfig(level='chatty')


class TestConfig:
    """Test main configuration class."""

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config_dict = {
            'ado': {'pat': 'ado-token', 'org': 'contoso'},
            'github': {'pat': 'gh-token', 'org': 'gh-org'},
            'script': {'sequential': True, 'lock_ado_repos': True},
        }

        config = Config(**config_dict)

        assert config.ado.org == 'contoso'
        assert config.github.org == 'gh-org'
        assert config.script.sequential is True
        assert config.script.output == 'migrate.ps1'
        assert config.retry.max_attempts == 6

    def test_unknown_section(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ValueError):
            Config(source={'url': 'https://example.com'})

    def test_config_from_file(self):
        """Test configuration loading from YAML file."""
        config_content = """
ado:
  pat: ado-token
  org: contoso

github:
  pat: gh-token
  org: gh-org

script:
  sequential: true
  rewire_pipelines: true

retry:
  wait_interval_seconds: 30
"""

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(config_content)
            f.flush()

            try:
                config = Config.from_file(f.name)
                assert config.ado.org == 'contoso'
                assert config.github.pat == 'gh-token'
                assert config.script.rewire_pipelines is True
                assert config.retry.wait_interval_seconds == 30
            finally:
                os.unlink(f.name)

    def test_config_from_env(self):
        """Test configuration loading from environment variables."""
        env_vars = {
            'ADO_PAT': 'ado-token',
            'ADO_ORG': 'contoso',
            'GH_PAT': 'gh-token',
            'GITHUB_ORG': 'gh-org',
            'GHES_API_URL': 'https://ghes.example.com/api/v3',
            'LOG_LEVEL': 'debug',
        }

        with patch.dict(os.environ, env_vars, clear=True):
            with patch('ado_migrate.config.config.load_dotenv'):
                config = Config.from_env()

        assert config.ado.pat == 'ado-token'
        assert config.ado.org == 'contoso'
        assert config.ado.server_url == 'https://dev.azure.com'
        assert config.github.pat == 'gh-token'
        assert config.github.org == 'gh-org'
        assert config.storage.ghes_api_url == 'https://ghes.example.com/api/v3'
        assert config.logging.level == 'DEBUG'

    def test_create_template(self, tmp_path):
        """Test the template is a loadable configuration."""
        template_path = tmp_path / 'config.yaml'

        Config.create_template(str(template_path))

        data = yaml.safe_load(template_path.read_text())
        assert set(data) == {'ado', 'github', 'script', 'retry', 'logging'}
        assert Config(**data).script.output == 'migrate.ps1'

    def test_invalid_config_file(self):
        """Test handling of invalid configuration file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('invalid: yaml: content:')
            f.flush()

            try:
                with pytest.raises(Exception):
                    Config.from_file(f.name)
            finally:
                os.unlink(f.name)

    def test_missing_config_file(self):
        """Test handling of missing configuration file."""
        with pytest.raises(FileNotFoundError):
            Config.from_file('/nonexistent/config.yaml')
