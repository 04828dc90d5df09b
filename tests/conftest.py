"""Shared fixtures and in-memory collaborators for migration tests."""

import shutil
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from coding_migrate.api.exceptions import APINotFoundError
from coding_migrate.exceptions import TransferError
from coding_migrate.migration.strategy import MigrationSettings
from coding_migrate.models.repository import Repository, RepositoryCreate, TargetRepository


def make_repository(project: str = 'teamA', name: str = 'svc-x', **overrides) -> Repository:
    """Build a repository with an ssh clone URL derived from its names."""
    data = {
        'project_id': 1,
        'id': abs(hash((project, name))) % 100000,
        'project_name': project,
        'name': name,
        'description': f'{name} service',
        'ssh_url': f'git@e.coding.net:acme/{project}/{name}.git',
    }
    data.update(overrides)
    return Repository(**data)


def make_target(name: str, org: str = 'acme') -> TargetRepository:
    return TargetRepository(
        name=name,
        full_name=f'{org}/{name}',
        clone_url=f'https://github.com/{org}/{name}.git',
        ssh_url=f'git@github.com:{org}/{name}.git',
    )


class FakeDestination:
    """GitHub stand-in keeping repositories in a dict."""

    def __init__(self, existing: Optional[List[str]] = None, org: str = 'acme'):
        self.org = org
        self.repositories: Dict[str, TargetRepository] = {
            name: make_target(name, org) for name in (existing or [])
        }
        self.exists_errors: Dict[str, Exception] = {}
        self.create_errors: Dict[str, Exception] = {}
        self.delete_errors: Dict[str, Exception] = {}
        self.deleted: List[str] = []
        self.exists_calls: List[str] = []
        self.created: List[RepositoryCreate] = []

    async def repository_exists(self, owner: str, name: str) -> bool:
        self.exists_calls.append(name)
        if name in self.exists_errors:
            raise self.exists_errors[name]
        return name in self.repositories

    async def get_repository(self, owner: str, name: str) -> TargetRepository:
        if name not in self.repositories:
            raise APINotFoundError(f'{owner}/{name} not found', status_code=404)
        return self.repositories[name]

    async def create_repository(self, owner: str, repository: RepositoryCreate) -> TargetRepository:
        if repository.name in self.create_errors:
            raise self.create_errors[repository.name]
        self.created.append(repository)
        target = make_target(repository.name, owner)
        self.repositories[repository.name] = target
        return target

    def list_organization_repositories(self, owner: str) -> List[TargetRepository]:
        return list(self.repositories.values())

    def delete_repository(self, owner: str, name: str) -> None:
        if name in self.delete_errors:
            raise self.delete_errors[name]
        self.deleted.append(name)
        self.repositories.pop(name, None)


class FakeTransfer:
    """Git stand-in that creates real workspace directories but runs no git.

    ``push_failures`` maps a clone URL to the number of pushes that fail
    before one succeeds; ``empty`` holds clone URLs of repositories without
    commits.
    """

    def __init__(self):
        self.push_failures: Dict[str, int] = {}
        self.clone_failures: Dict[str, str] = {}
        self.empty: set = set()
        self.branch = 'main'
        self.urls: Dict[str, str] = {}
        self.clones: List[str] = []
        self.remotes: List[tuple] = []
        self.pushes: List[dict] = []
        self.cleanups: List[str] = []

    def pushes_for(self, url: str) -> List[dict]:
        return [push for push in self.pushes if self.urls.get(push['path']) == url]

    async def clone(self, url: str, path: str) -> str:
        self.clones.append(url)
        if url in self.clone_failures:
            raise TransferError('git clone failed', output=self.clone_failures[url], exit_code=128)
        Path(path).mkdir(parents=True, exist_ok=True)
        (Path(path) / 'README.md').write_text('content')
        self.urls[path] = url
        return path

    async def add_remote(self, path: str, name: str, url: str) -> None:
        self.remotes.append((path, name, url))

    async def detect_default_branch(self, path: str) -> str:
        return self.branch

    async def push(self, path, remote, branch, force=False, timeout=None) -> None:
        self.pushes.append(
            {'path': path, 'remote': remote, 'branch': branch, 'force': force, 'timeout': timeout}
        )
        url = self.urls.get(path)
        remaining = self.push_failures.get(url, 0)
        if remaining:
            self.push_failures[url] = remaining - 1
            raise TransferError('git push failed', output='remote rejected', exit_code=1)

    async def is_empty(self, path: str) -> bool:
        return self.urls.get(path) in self.empty

    async def has_content(self, path: str) -> bool:
        return self.urls.get(path) not in self.empty

    async def cleanup(self, path: str) -> None:
        self.cleanups.append(path)
        shutil.rmtree(path, ignore_errors=True)


class RecordingSink:
    """Progress sink collecting every message."""

    def __init__(self):
        self.messages: List[tuple] = []

    def notify(self, message: str, unit_label: str) -> None:
        self.messages.append((unit_label, message))


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / 'workspaces'


@pytest.fixture
def settings(workspace_root):
    return MigrationSettings(
        organization='acme',
        retry_delay=0,
        push_timeout=30,
        temp_dir=str(workspace_root),
    )


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def transfer():
    return FakeTransfer()
