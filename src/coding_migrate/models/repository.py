"""Repository entity models."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.dates import parse_timestamp


def _pick(record: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


class Repository(BaseModel):
    """Coding repository (depot) to migrate."""

    model_config = ConfigDict(frozen=True)

    project_id: int = Field(..., description='Coding project ID')
    id: int = Field(..., description='Coding depot ID')
    project_name: str = Field(..., min_length=1, description='Coding project name')
    name: str = Field(..., min_length=1, description='Repository name')
    description: str = Field(default='', description='Repository description')

    created_at: Optional[datetime] = Field(default=None, description='Creation timestamp')
    updated_at: Optional[datetime] = Field(default=None, description='Last push timestamp')

    # Clone URLs
    ssh_url: Optional[str] = Field(default=None, description='SSH clone URL')
    https_url: Optional[str] = Field(default=None, description='HTTPS clone URL')
    git_url: Optional[str] = Field(default=None, description='Git protocol clone URL')

    is_shared: bool = Field(default=False, description='Repository is publicly shared')

    @field_validator('created_at', 'updated_at', mode='before')
    def normalize_timestamp(cls, v):
        """Accept epoch seconds, epoch milliseconds and ISO strings."""
        return parse_timestamp(v)

    @field_validator('description', mode='before')
    def default_description(cls, v):
        """Coding returns null for repositories without a description."""
        return v or ''

    @model_validator(mode='after')
    def require_clone_url(self) -> 'Repository':
        """A repository without any clone URL cannot be migrated."""
        if not (self.ssh_url or self.https_url or self.git_url):
            raise ValueError(f'repository {self.project_name}/{self.name} has no clone URL')
        return self

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> 'Repository':
        """Build a repository from a Coding ``DescribeTeamDepotInfoList`` record.

        Both the API's PascalCase keys and snake_case keys are accepted.
        """
        return cls(
            project_id=_pick(record, 'ProjectId', 'project_id'),
            id=_pick(record, 'Id', 'id'),
            project_name=_pick(record, 'ProjectName', 'project_name'),
            name=_pick(record, 'Name', 'name'),
            description=_pick(record, 'Description', 'description', default=''),
            created_at=_pick(record, 'CreatedAt', 'created_at'),
            updated_at=_pick(record, 'LastPushAt', 'UpdatedAt', 'updated_at'),
            ssh_url=_pick(record, 'SshUrl', 'ssh_url') or None,
            https_url=_pick(record, 'HttpsUrl', 'https_url') or None,
            git_url=_pick(record, 'GitUrl', 'git_url') or None,
            is_shared=bool(_pick(record, 'IsShared', 'is_shared', default=False)),
        )

    @property
    def full_name(self) -> str:
        """``project/repository`` name used for exclusions and reporting."""
        return f'{self.project_name}/{self.name}'

    @property
    def clone_url(self) -> str:
        """First available clone URL, preferring ssh, then https, then git."""
        return self.ssh_url or self.https_url or self.git_url


class RepositoryCreate(BaseModel):
    """Payload for creating a repository in a GitHub organization."""

    name: str = Field(..., min_length=1, max_length=100, description='Repository name')
    description: str = Field(default='', description='Repository description')
    private: bool = Field(default=True, description='Create as private repository')
    auto_init: bool = Field(default=False, description='Create an initial commit')

    @field_validator('description', mode='before')
    def single_line_description(cls, v):
        """GitHub rejects control characters in descriptions."""
        return ' '.join(str(v or '').split())

    @classmethod
    def for_repository(cls, repository: Repository, name: str) -> 'RepositoryCreate':
        """Creation payload for migrating ``repository`` under ``name``."""
        return cls(
            name=name,
            description=repository.description,
            private=not repository.is_shared,
        )


class TargetRepository(BaseModel):
    """Repository on the GitHub side of a migration."""

    name: str = Field(..., description='Repository name')
    full_name: str = Field(..., description='owner/name')
    clone_url: Optional[str] = Field(default=None, description='HTTPS clone URL')
    ssh_url: Optional[str] = Field(default=None, description='SSH clone URL')
    html_url: Optional[str] = Field(default=None, description='Web URL')
    private: bool = Field(default=True, description='Repository is private')
    description: str = Field(default='', description='Repository description')
    language: Optional[str] = Field(default=None, description='Primary language')
    size: int = Field(default=0, description='Size in kilobytes')
    created_at: Optional[datetime] = Field(default=None, description='Creation timestamp')
    updated_at: Optional[datetime] = Field(default=None, description='Last update timestamp')

    # Transient marker, set when the target existed and overwrite is disabled
    skipped: bool = Field(default=False, exclude=True)

    @field_validator('created_at', 'updated_at', mode='before')
    def normalize_timestamp(cls, v):
        """GitHub sends ISO 8601 strings."""
        return parse_timestamp(v)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TargetRepository':
        """Build a target from a GitHub repository payload."""
        return cls(
            name=data['name'],
            full_name=data.get('full_name') or data['name'],
            clone_url=data.get('clone_url'),
            ssh_url=data.get('ssh_url'),
            html_url=data.get('html_url'),
            private=bool(data.get('private', True)),
            description=data.get('description') or '',
            language=data.get('language'),
            size=int(data.get('size') or 0),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )

    @property
    def push_url(self) -> Optional[str]:
        """URL to push to, preferring ssh."""
        return self.ssh_url or self.clone_url
