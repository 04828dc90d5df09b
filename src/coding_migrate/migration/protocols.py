"""Contracts between the migration core and its collaborators.

The core (``RepositoryMigrationStrategy`` and ``BatchOrchestrator``) only
talks to the outside world through these protocols:

1. SourceLister: lists the repositories to migrate (Coding)
2. DestinationClient: looks up and creates target repositories (GitHub);
   DestinationAdmin lists and deletes them for the cleanup command
3. TransferPrimitive: moves repository content (git)
4. ProgressSink / BatchProgress: report progress to the user interface
5. UnitStrategy: what the batch orchestrator runs per repository

Tests substitute in-memory implementations for all of them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from ..models.repository import Repository, RepositoryCreate, TargetRepository
    from .result import MigrationResult, UnitOutcome


class SourceLister(Protocol):
    """Lists every repository on the source platform."""

    def list_all_repositories(self) -> List[Repository]:
        """Return all repositories, following pagination.

        Raises:
            APIError: If the source cannot be listed
        """
        ...


class DestinationClient(Protocol):
    """Repository operations on the destination platform."""

    async def repository_exists(self, owner: str, name: str) -> bool:
        """True if ``owner/name`` exists."""
        ...

    async def get_repository(self, owner: str, name: str) -> TargetRepository:
        """Fetch an existing repository.

        Raises:
            APINotFoundError: If it does not exist
        """
        ...

    async def create_repository(self, owner: str, repository: RepositoryCreate) -> TargetRepository:
        """Create a repository in organization ``owner``.

        Raises:
            APIValidationError: If the destination rejects the payload
            APIError: For any other failure
        """
        ...


class DestinationAdmin(Protocol):
    """Blocking organization housekeeping, used to clean up after a failed run."""

    def list_organization_repositories(self, owner: str) -> List[TargetRepository]:
        ...

    def delete_repository(self, owner: str, name: str) -> None:
        ...


class TransferPrimitive(Protocol):
    """Content transfer between a source clone URL and a destination remote.

    Every failing operation raises ``TransferError`` (``TransferTimeout`` for
    timeouts).
    """

    async def clone(self, url: str, path: str) -> str:
        ...

    async def add_remote(self, path: str, name: str, url: str) -> None:
        ...

    async def detect_default_branch(self, path: str) -> str:
        ...

    async def push(
        self,
        path: str,
        remote: str,
        branch: str,
        force: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        ...

    async def is_empty(self, path: str) -> bool:
        """True if the clone has no commits."""
        ...

    async def has_content(self, path: str) -> bool:
        """True if the clone has tracked or untracked files."""
        ...

    async def cleanup(self, path: str) -> None:
        """Remove a workspace; a missing path is not an error."""
        ...


class ProgressSink(Protocol):
    """Receives per-step messages while a repository is migrated."""

    def notify(self, message: str, unit_label: str) -> None:
        ...


class BatchProgress(Protocol):
    """Called once, synchronously, after every completed repository."""

    def __call__(self, label: str, result: MigrationResult) -> None:
        ...


class UnitStrategy(Protocol):
    """What ``BatchOrchestrator`` runs for every repository.

    ``target_name_for`` names where a repository ends up (a GitHub name, or a
    local directory for downloads); two repositories with the same name
    would overwrite each other.
    """

    def target_name_for(self, unit: Repository) -> str:
        ...

    async def migrate_unit(
        self, unit: Repository, known_target: Optional[TargetRepository] = None
    ) -> UnitOutcome:
        """Return a finalized outcome; never raises for repository failures."""
        ...
