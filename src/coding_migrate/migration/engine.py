"""Migration engine - main entry point for migration operations."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..api.coding import CodingClient
from ..api.exceptions import APIError
from ..api.github import GitHubClient
from ..config.config import Config
from ..exceptions import ConfigurationInvalid
from ..git.operations import GitOperations
from ..models.repository import Repository, TargetRepository
from ..utils.logging import get_logger
from .download import DownloadStrategy
from .naming import NamingRule, target_name
from .orchestrator import BatchOrchestrator
from .protocols import BatchProgress, DestinationClient, ProgressSink, SourceLister, TransferPrimitive
from .result import MigrationResult
from .strategy import MigrationSettings, RepositoryMigrationStrategy


@dataclass
class PlannedMigration:
    """One line of a migration plan."""

    repository: Repository
    target_name: str
    excluded: bool


def build_settings(config: Config) -> MigrationSettings:
    """Derive the core settings from the application configuration.

    Raises:
        ConfigurationInvalid: If the combination of settings is unusable
    """
    migration = config.migration
    try:
        return MigrationSettings(
            organization=config.destination.organization,
            overwrite_existing=config.destination.overwrite_existing,
            skip_empty=migration.skip_empty,
            dry_run=migration.dry_run,
            max_retry_attempts=migration.max_retry_attempts,
            retry_delay=migration.retry_delay_seconds,
            push_timeout=migration.push_timeout,
            group_retry_attempts=migration.group_retry_attempts,
            concurrency=migration.concurrent_limit,
            exclusions=frozenset(config.exclude_repositories),
            naming=NamingRule(
                separator=migration.name_separator,
                replacement=migration.name_replacement,
                lowercase=migration.lowercase_names,
                prefix=migration.repository_prefix,
            ),
            remote_name=migration.remote_name,
            temp_dir=config.git.temp_dir,
            cleanup_workspace=config.git.cleanup_temp,
        )
    except ValidationError as e:
        raise ConfigurationInvalid(
            [f"{'.'.join(str(p) for p in item['loc'])}: {item['msg']}" for item in e.errors()]
        ) from e


class MigrationEngine:
    """Wires configuration, platform clients and git into a batch migration."""

    def __init__(
        self,
        config: Config,
        source: Optional[SourceLister] = None,
        destination: Optional[DestinationClient] = None,
        transfer: Optional[TransferPrimitive] = None,
        log=None,
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            source: Source lister, a ``CodingClient`` by default
            destination: Destination client, a ``GitHubClient`` by default
            transfer: Transfer primitive, ``GitOperations`` by default
            log: Optional logger to bind instead of the global one
        """
        self.config = config
        self.settings = build_settings(config)
        self._log = log
        self.logger = get_logger('MigrationEngine', log)

        self.source = source or CodingClient(config.source, log=log)
        self.destination = destination or GitHubClient(config.destination, log=log)
        self.transfer = transfer or GitOperations(
            git_command=config.git.git_command,
            clone_timeout=config.git.clone_timeout,
            log=log,
        )

    def test_connectivity(self) -> Dict[str, bool]:
        """Check both platforms; clients without ``test_connection`` count as reachable."""
        results = {}
        for name, client in (('coding', self.source), ('github', self.destination)):
            check = getattr(client, 'test_connection', None)
            results[name] = bool(check()) if check else True
        return results

    def list_repositories(self) -> List[Repository]:
        """List all source repositories."""
        self.logger.info('Listing Coding repositories')
        return self.source.list_all_repositories()

    def plan(self, repositories: List[Repository]) -> List[PlannedMigration]:
        """Target names and exclusion status for ``repositories``."""
        return [
            PlannedMigration(
                repository=repository,
                target_name=target_name(
                    repository.project_name, repository.name, self.settings.naming
                ),
                excluded=repository.full_name in self.settings.exclusions,
            )
            for repository in repositories
        ]

    async def _require_git(self) -> None:
        check = getattr(self.transfer, 'check_git_available', None)
        if check is not None and not await check():
            raise ConfigurationInvalid([f'git executable {self.config.git.git_command!r} is not available'])

    async def migrate(
        self,
        repositories: Optional[List[Repository]] = None,
        progress: Optional[BatchProgress] = None,
        step_progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
        dry_run: Optional[bool] = None,
    ) -> MigrationResult:
        """Run the batch migration.

        Args:
            repositories: Repositories to migrate, listed from the source if None
            progress: Called after every completed repository
            step_progress: Receives per-step messages
            cancel_event: Set to stop the batch between repositories
            dry_run: Override the configured dry run flag

        Returns:
            Sealed batch result

        Raises:
            ConfigurationInvalid: If git is unavailable
            APIError: If the source repositories cannot be listed
        """
        settings = self.settings
        if dry_run is not None and dry_run != settings.dry_run:
            settings = settings.model_copy(update={'dry_run': dry_run})

        if not settings.dry_run:
            await self._require_git()
            Path(settings.temp_dir).mkdir(parents=True, exist_ok=True)

        if repositories is None:
            repositories = self.list_repositories()

        strategy = RepositoryMigrationStrategy(
            settings,
            self.destination,
            self.transfer,
            progress=step_progress,
            cancel_event=cancel_event,
            log=self._log,
        )
        orchestrator = BatchOrchestrator(
            strategy,
            exclusions=settings.exclusions,
            group_retry_attempts=settings.group_retry_attempts,
            retry_delay=settings.retry_delay,
            cancel_event=cancel_event,
            log=self._log,
        )

        mode = 'dry run' if settings.dry_run else 'migration'
        self.logger.info(
            f'Starting {mode} of {len(repositories)} repositories to {settings.organization}'
        )
        result = await orchestrator.run(repositories, settings.concurrency, progress=progress)
        self._log_result(mode, result)
        return result

    async def download(
        self,
        output_dir: str,
        exclude_empty: bool = False,
        concurrency: Optional[int] = None,
        repositories: Optional[List[Repository]] = None,
        progress: Optional[BatchProgress] = None,
        step_progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MigrationResult:
        """Clone every source repository into ``output_dir/<project>/<repository>``.

        Configured exclusions apply. Existing directories are skipped.

        Args:
            output_dir: Root of the download tree
            exclude_empty: Remove and skip repositories without content
            concurrency: Repositories cloned at once, the configured limit if None
            repositories: Repositories to download, listed from the source if None
            progress: Called after every completed repository
            step_progress: Receives per-step messages
            cancel_event: Set to stop the batch between repositories

        Returns:
            Sealed batch result; ``migrated`` details list the new clones

        Raises:
            ConfigurationInvalid: If git is unavailable
            APIError: If the source repositories cannot be listed
        """
        await self._require_git()
        Path(output_dir).mkdir(parents=True, exist_ok=True)

        if repositories is None:
            repositories = self.list_repositories()

        strategy = DownloadStrategy(
            self.transfer,
            output_dir,
            exclude_empty=exclude_empty,
            progress=step_progress,
            cancel_event=cancel_event,
            log=self._log,
        )
        orchestrator = BatchOrchestrator(
            strategy,
            exclusions=self.settings.exclusions,
            cancel_event=cancel_event,
            log=self._log,
        )

        self.logger.info(f'Starting download of {len(repositories)} repositories to {output_dir}')
        result = await orchestrator.run(
            repositories, concurrency or self.settings.concurrency, progress=progress
        )
        self._log_result('download', result)
        return result

    def list_target_repositories(self, organization: Optional[str] = None) -> List[TargetRepository]:
        """Repositories currently in the destination organization."""
        return self.destination.list_organization_repositories(
            organization or self.settings.organization
        )

    def delete_target_repositories(
        self,
        names: List[str],
        organization: Optional[str] = None,
        progress: Optional[BatchProgress] = None,
    ) -> MigrationResult:
        """Delete ``names`` from the destination organization, one at a time.

        A failed deletion is recorded and the rest still run.

        Returns:
            Sealed result; ``details['deleted']`` lists ``org/name`` of every deletion
        """
        org = organization or self.settings.organization
        result = MigrationResult()

        for name in names:
            full_name = f'{org}/{name}'
            try:
                self.destination.delete_repository(org, name)
            except APIError as e:
                self.logger.error(f'Failed to delete {full_name}: {e}')
                result.add_error(f'{full_name}: {e}')
            else:
                result.add_success(full_name)
                result.append_detail('deleted', full_name)

            if progress is not None:
                progress(full_name, result)

        self._log_result('deletion', result)
        return result.seal()

    def _log_result(self, mode: str, result: MigrationResult) -> None:
        if result.is_success():
            self.logger.success(f'{mode.capitalize()} completed: {result.success_count} succeeded')
        else:
            self.logger.error(
                f'{mode.capitalize()} completed with {result.error_count} error(s), '
                f'{result.success_count} succeeded'
            )

    def close(self) -> None:
        """Close platform client sessions."""
        for client in (self.source, self.destination):
            close = getattr(client, 'close', None)
            if close is not None:
                close()
