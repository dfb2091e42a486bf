"""Configuration management for ADO Migration Tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import yaml
from dotenv import load_dotenv


def _validate_url(v: str) -> str:
    if not v.startswith(('http://', 'https://')):
        raise ValueError('URL must start with http:// or https://')
    return v.rstrip('/')


class AdoConfig(BaseModel):
    """Configuration for the Azure DevOps source."""

    server_url: str = Field(
        default='https://dev.azure.com', description='Azure DevOps server URL'
    )
    pat: Optional[str] = Field(default=None, description='Personal access token')
    org: Optional[str] = Field(
        default=None, description='Only migrate repos from this organization'
    )
    team_project: Optional[str] = Field(
        default=None, description='Only migrate repos from this team project'
    )
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @field_validator('server_url')
    @classmethod
    def validate_server_url(cls, v):
        """Validate server URL format."""
        return _validate_url(v)

    @property
    def is_cloud(self) -> bool:
        return self.server_url == 'https://dev.azure.com'


class GithubConfig(BaseModel):
    """Configuration for the GitHub target."""

    api_url: str = Field(
        default='https://api.github.com', description='GitHub API URL'
    )
    pat: Optional[str] = Field(default=None, description='Personal access token')
    org: Optional[str] = Field(default=None, description='Target organization')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v):
        """Validate API URL format."""
        return _validate_url(v)

    @property
    def is_dotcom(self) -> bool:
        return self.api_url == 'https://api.github.com'


class StorageConfig(BaseModel):
    """Archive transfer settings used when migrating through GHES."""

    ghes_api_url: Optional[str] = Field(
        default=None, description='GitHub Enterprise Server API URL'
    )
    aws_bucket_name: Optional[str] = Field(default=None, description='AWS S3 bucket')
    aws_region: Optional[str] = Field(default=None, description='AWS region')
    use_github_storage: bool = Field(
        default=False, description='Upload archives to GitHub-owned storage'
    )
    no_ssl_verify: bool = Field(
        default=False, description='Skip TLS verification against GHES'
    )
    keep_archive: bool = Field(
        default=False, description='Keep archives after upload'
    )

    @model_validator(mode='after')
    def validate_storage_scheme(self):
        """Reject GitHub-owned storage combined with AWS settings."""
        if self.use_github_storage and (self.aws_bucket_name or self.aws_region):
            raise ValueError(
                'use_github_storage cannot be combined with aws_bucket_name or aws_region'
            )
        return self

    @property
    def blob_credentials_required(self) -> bool:
        return bool(self.ghes_api_url) and not self.use_github_storage


class ScriptConfig(BaseModel):
    """Migration script generation settings."""

    sequential: bool = Field(
        default=False, description='Wait for each migration before starting the next'
    )
    output: str = Field(default='migrate.ps1', description='Script output path')
    cli_command: str = Field(
        default='gh ado2gh', description='Command prefix used inside the script'
    )
    target_repo_visibility: str = Field(
        default='private', description='Visibility of migrated repositories'
    )
    verbose: bool = Field(default=False, description='Pass --verbose to every call')

    all: bool = Field(default=False, description='Enable every optional step')
    create_teams: bool = Field(default=False, description='Create teams per team project')
    link_idp_groups: bool = Field(
        default=False, description='Link created teams to IdP groups'
    )
    lock_ado_repos: bool = Field(default=False, description='Lock ADO repos first')
    disable_ado_repos: bool = Field(
        default=False, description='Disable ADO repos after migrating'
    )
    rewire_pipelines: bool = Field(
        default=False, description='Rewire Azure Pipelines to GitHub repos'
    )
    download_migration_logs: bool = Field(
        default=False, description='Download migration logs'
    )

    @field_validator('target_repo_visibility')
    @classmethod
    def validate_visibility(cls, v):
        """Validate repository visibility."""
        valid = ['private', 'internal', 'public']
        if v.lower() not in valid:
            raise ValueError(f'Visibility must be one of: {valid}')
        return v.lower()


class RetryConfig(BaseModel):
    """Retry and polling settings."""

    max_attempts: int = Field(default=6, description='Attempts per remote call')
    delay_seconds: float = Field(
        default=4.0, description='Base delay between attempts in seconds'
    )
    wait_interval_seconds: int = Field(
        default=10, description='Polling interval while waiting for migrations'
    )
    wait_timeout_seconds: Optional[int] = Field(
        default=None, description='Give up waiting after this many seconds'
    )

    @field_validator('max_attempts', 'wait_interval_seconds')
    @classmethod
    def validate_positive(cls, v):
        """Validate counts and intervals are positive."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @field_validator('delay_seconds')
    @classmethod
    def validate_delay(cls, v):
        """Validate delay is not negative."""
        if v < 0:
            raise ValueError('Delay must not be negative')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for ADO Migration Tool."""

    model_config = ConfigDict(extra='forbid')

    ado: AdoConfig = Field(default_factory=AdoConfig, description='ADO source')
    github: GithubConfig = Field(
        default_factory=GithubConfig, description='GitHub target'
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description='Archive storage settings'
    )
    script: ScriptConfig = Field(
        default_factory=ScriptConfig, description='Script generation settings'
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig, description='Retry and polling settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        config_data = {
            'ado': {
                'server_url': os.getenv('ADO_SERVER_URL'),
                'pat': os.getenv('ADO_PAT'),
                'org': os.getenv('ADO_ORG'),
                'team_project': os.getenv('ADO_TEAM_PROJECT'),
            },
            'github': {
                'api_url': os.getenv('GH_API_URL'),
                'pat': os.getenv('GH_PAT'),
                'org': os.getenv('GITHUB_ORG'),
            },
            'storage': {
                'ghes_api_url': os.getenv('GHES_API_URL'),
                'aws_bucket_name': os.getenv('AWS_BUCKET_NAME'),
                'aws_region': os.getenv('AWS_REGION'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'ado': {
                'server_url': 'https://dev.azure.com',
                'pat': 'your-ado-personal-access-token',
                'org': 'your-ado-organization',
            },
            'github': {
                'api_url': 'https://api.github.com',
                'pat': 'your-github-personal-access-token',
                'org': 'your-github-organization',
            },
            'script': {
                'sequential': False,
                'output': 'migrate.ps1',
                'target_repo_visibility': 'private',
                'create_teams': True,
                'link_idp_groups': False,
                'lock_ado_repos': True,
                'disable_ado_repos': True,
                'rewire_pipelines': False,
                'download_migration_logs': True,
            },
            'retry': {
                'max_attempts': 6,
                'delay_seconds': 4.0,
                'wait_interval_seconds': 10,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
