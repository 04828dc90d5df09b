"""Configuration management for the Coding migration tool."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..exceptions import ConfigurationInvalid

# Environment variable -> (section, key)
ENV_MAPPINGS: Dict[str, Tuple[str, str]] = {
    'CODING_ACCESS_TOKEN': ('source', 'token'),
    'CODING_BASE_URL': ('source', 'url'),
    'GITHUB_ACCESS_TOKEN': ('destination', 'token'),
    'GITHUB_BASE_URL': ('destination', 'url'),
    'GITHUB_ORGANIZATION': ('destination', 'organization'),
    'GITHUB_OVERWRITE_EXISTING': ('destination', 'overwrite_existing'),
    'MIGRATION_CONCURRENT_LIMIT': ('migration', 'concurrent_limit'),
    'MIGRATION_MAX_RETRY_ATTEMPTS': ('migration', 'max_retry_attempts'),
    'MIGRATION_RETRY_DELAY': ('migration', 'retry_delay_seconds'),
    'GIT_TEMP_DIR': ('git', 'temp_dir'),
    'LOG_LEVEL': ('logging', 'level'),
    'LOG_FILE': ('logging', 'file'),
}

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.coding-migrate.yaml']

# Tokens shorter than this are masked completely
MASK_MIN_LENGTH = 8


def _validate_url(value: str) -> str:
    if not value.startswith(('http://', 'https://')):
        raise ValueError('URL must start with http:// or https://')
    return value.rstrip('/')


class SourceConfig(BaseModel):
    """Coding platform connection settings."""

    model_config = ConfigDict(extra='forbid')

    url: str = Field(default='https://e.coding.net', description='Coding base URL')
    token: Optional[str] = Field(default=None, description='Coding personal access token')
    timeout: int = Field(default=30, gt=0, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=1.0, gt=0, description='API requests per second limit'
    )

    @field_validator('url')
    def validate_url(cls, v):
        """Require http(s) and drop trailing slashes."""
        return _validate_url(v)

    @model_validator(mode='after')
    def require_token(self) -> 'SourceConfig':
        """Coding API calls always need a token."""
        if not self.token:
            raise ValueError('token must be provided (CODING_ACCESS_TOKEN)')
        return self


class DestinationConfig(BaseModel):
    """GitHub connection and target policy settings."""

    model_config = ConfigDict(extra='forbid')

    url: str = Field(default='https://api.github.com', description='GitHub API URL')
    token: Optional[str] = Field(default=None, description='GitHub access token')
    organization: Optional[str] = Field(default=None, description='Target organization')
    overwrite_existing: bool = Field(
        default=False, description='Force-push into repositories that already exist'
    )
    timeout: int = Field(default=30, gt=0, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=1.0, gt=0, description='API requests per second limit'
    )

    @field_validator('url')
    def validate_url(cls, v):
        """Require http(s) and drop trailing slashes."""
        return _validate_url(v)

    @model_validator(mode='after')
    def require_credentials(self) -> 'DestinationConfig':
        """Both a token and a target organization are mandatory."""
        missing = []
        if not self.token:
            missing.append('token (GITHUB_ACCESS_TOKEN)')
        if not self.organization:
            missing.append('organization (GITHUB_ORGANIZATION)')
        if missing:
            raise ValueError('missing required settings: ' + ', '.join(missing))
        return self


class MigrationConfig(BaseModel):
    """Batch and per-repository migration settings."""

    model_config = ConfigDict(extra='forbid')

    concurrent_limit: int = Field(default=3, ge=1, le=10, description='Repositories per group')
    max_retry_attempts: int = Field(default=3, ge=1, le=10, description='Push attempts')
    retry_delay_seconds: float = Field(
        default=5, ge=0, le=60, description='Fixed delay between push attempts'
    )
    push_timeout: int = Field(default=300, gt=0, description='Per-attempt push timeout')
    skip_empty: bool = Field(default=True, description='Skip repositories without content')
    group_retry_attempts: int = Field(
        default=0, ge=0, le=5, description='Re-attempts of failed repositories per group'
    )
    dry_run: bool = Field(default=False, description='Resolve targets only, change nothing')

    repository_prefix: str = Field(default='', description='Prefix for target names')
    name_separator: str = Field(default='-', description='Joins project and repository')
    name_replacement: str = Field(default='_', description='Replaces invalid characters')
    lowercase_names: bool = Field(default=False, description='Lowercase target names')
    remote_name: str = Field(default='github', description='Git remote for the target')

    @field_validator('name_separator', 'name_replacement')
    def validate_name_characters(cls, v):
        """Separators must be single characters GitHub accepts in names."""
        if len(v) != 1 or v not in '-._':
            raise ValueError("must be one of '-', '.', '_'")
        return v

    @field_validator('repository_prefix')
    def validate_prefix(cls, v):
        """The prefix is used verbatim, so it must already be a valid name part."""
        if any(not (ch.isascii() and (ch.isalnum() or ch in '-._')) for ch in v):
            raise ValueError('prefix may only contain letters, digits, "-", "." and "_"')
        return v


class GitConfig(BaseModel):
    """Git operations configuration."""

    model_config = ConfigDict(extra='forbid')

    temp_dir: str = Field(
        default='./temp/repositories', description='Directory holding repository workspaces'
    )
    git_command: str = Field(default='git', description='Git executable')
    clone_timeout: int = Field(default=3600, gt=0, description='Clone timeout in seconds')
    cleanup_temp: bool = Field(
        default=True, description='Remove workspaces after a successful migration'
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra='forbid')

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default='./logs/migration.log', description='Log file path')
    format: Optional[str] = Field(default=None, description='Console log format')

    @field_validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for the Coding migration tool."""

    model_config = ConfigDict(extra='forbid')

    source: SourceConfig = Field(..., description='Coding source platform')
    destination: DestinationConfig = Field(..., description='GitHub destination')
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    git: GitConfig = Field(default_factory=GitConfig, description='Git operations settings')
    exclude_repositories: List[str] = Field(
        default_factory=list, description='Full names (project/repository) never migrated'
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description='Logging')

    @field_validator('exclude_repositories')
    def validate_exclusions(cls, v):
        """Exclusions are full ``project/repository`` names."""
        invalid = [name for name in v if name.count('/') != 1]
        if invalid:
            raise ValueError(f'entries must look like "project/repository": {invalid}')
        return v

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Validate a raw configuration mapping.

        Raises:
            ConfigurationInvalid: If any setting fails validation
        """
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationInvalid(_format_errors(e)) from e

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from a YAML file, overlaid with the environment."""
        return cls.from_dict(_apply_env(_read_yaml(config_path)))

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables only."""
        return cls.from_dict(_apply_env({}))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'Config':
        """Load from ``config_path``, a default location, or the environment."""
        if config_path:
            return cls.from_file(config_path)

        for path in DEFAULT_CONFIG_PATHS:
            if Path(path).exists():
                return cls.from_file(path)

        return cls.from_env()

    def masked(self) -> Dict[str, Any]:
        """Return the configuration as a dict with tokens hidden.

        Tokens of at least ``MASK_MIN_LENGTH`` characters keep their last four
        characters; shorter ones are hidden completely.
        """
        data = self.model_dump()
        for section in ('source', 'destination'):
            token = str(data[section].get('token') or '')
            if len(token) >= MASK_MIN_LENGTH:
                data[section]['token'] = '***' + token[-4:]
            elif token:
                data[section]['token'] = '***'
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        _write_yaml(config_path, self.model_dump())

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'source': {
                'url': 'https://e.coding.net',
                'token': 'your-coding-personal-access-token',
                'timeout': 30,
                'rate_limit_per_second': 1.0,
            },
            'destination': {
                'url': 'https://api.github.com',
                'token': 'your-github-access-token',
                'organization': 'your-github-organization',
                'overwrite_existing': False,
                'timeout': 30,
            },
            'migration': {
                'concurrent_limit': 3,
                'max_retry_attempts': 3,
                'retry_delay_seconds': 5,
                'push_timeout': 300,
                'skip_empty': True,
                'group_retry_attempts': 0,
                'repository_prefix': '',
                'name_separator': '-',
                'name_replacement': '_',
            },
            'git': {
                'temp_dir': './temp/repositories',
                'cleanup_temp': True,
            },
            'exclude_repositories': [],
            'logging': {
                'level': 'INFO',
                'file': './logs/migration.log',
            },
        }
        _write_yaml(output_path, template_config)


def _read_yaml(config_path: str) -> Dict[str, Any]:
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f'Configuration file not found: {config_path}')

    with open(config_file, 'r', encoding='utf-8') as f:
        try:
            config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationInvalid([f'{config_path}: invalid YAML: {e}']) from e

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        raise ConfigurationInvalid([f'{config_path}: top level must be a mapping'])
    return config_data


def _write_yaml(config_path: str, data: Dict[str, Any]) -> None:
    config_file = Path(config_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, indent=2, sort_keys=False, allow_unicode=True)


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay environment variables (and a local ``.env``) onto ``data``.

    A section left empty in YAML loads as None and counts as not given.
    """
    load_dotenv()

    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if value is not None
    }
    for env_key, (section, key) in ENV_MAPPINGS.items():
        value = os.getenv(env_key)
        if value is None or value == '':
            continue
        target = merged.setdefault(section, {})
        if isinstance(target, dict):
            target[key] = value

    # Required sections may come from the environment alone
    merged.setdefault('source', {})
    merged.setdefault('destination', {})
    return merged


def _format_errors(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item['loc']) or 'config'
        messages.append(f"{location}: {item['msg']}")
    return messages
