"""Single repository migration: resolve, clone, check, push, clean up."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..api.exceptions import APIError, APINotFoundError, APIRateLimitError
from ..exceptions import (
    ContentGuardSkip,
    MigrationCancelled,
    MigrationError,
    RetryExhausted,
    TargetResolutionError,
    TransferError,
)
from ..models.repository import Repository, RepositoryCreate, TargetRepository
from ..utils.logging import get_logger
from .naming import NamingRule, target_name, workspace_name
from .protocols import DestinationClient, ProgressSink, TransferPrimitive
from .result import OutcomeStatus, UnitOutcome
from .retry import RetryPolicy

SKIP_TARGET_EXISTS = 'target exists, overwrite disabled'
SKIP_EMPTY_SOURCE = 'empty source'
SKIP_DRY_RUN_CREATE = 'dry run: would create'
SKIP_DRY_RUN_OVERWRITE = 'dry run: would overwrite'


class MigrationSettings(BaseModel):
    """Read-only settings consumed by the migration core."""

    model_config = ConfigDict(frozen=True)

    organization: str = Field(..., min_length=1, description='Target GitHub organization')
    overwrite_existing: bool = Field(default=False, description='Force-push existing targets')
    skip_empty: bool = Field(default=True, description='Skip repositories without content')
    dry_run: bool = Field(default=False, description='Only resolve targets')
    max_retry_attempts: int = Field(default=3, ge=1, description='Push attempts')
    retry_delay: float = Field(default=5.0, ge=0, description='Seconds between attempts')
    push_timeout: float = Field(default=300.0, gt=0, description='Per-push timeout')
    group_retry_attempts: int = Field(default=0, ge=0, description='Group re-attempts')
    concurrency: int = Field(default=3, ge=1, description='Repositories per group')
    exclusions: FrozenSet[str] = Field(default_factory=frozenset, description='Excluded full names')
    naming: NamingRule = Field(default_factory=NamingRule, description='Target naming rule')
    remote_name: str = Field(default='github', description='Git remote for the target')
    temp_dir: str = Field(default='./temp/repositories', description='Workspace root')
    cleanup_workspace: bool = Field(default=True, description='Remove workspaces when done')


class RepositoryMigrationStrategy:
    """Migrates one repository through a strictly forward sequence of steps.

    Resolve the target, clone the source, skip empty sources, add the target
    remote, push with retries and remove the workspace. Every failure is
    caught here and turned into a ``failed`` outcome; nothing escapes
    ``migrate_unit``.

    Workspace handling: removed after success, skips and cancellation unless
    ``cleanup_workspace`` is off; a partial clone is always removed; kept
    after remote or push failures so they can be inspected.
    """

    def __init__(
        self,
        settings: MigrationSettings,
        destination: DestinationClient,
        transfer: TransferPrimitive,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        log=None,
    ):
        """Initialize repository migration strategy.

        Args:
            settings: Migration settings
            destination: Destination platform client
            transfer: Content transfer primitive
            progress: Optional receiver of per-step messages
            cancel_event: Optional event checked between steps
            sleep: Optional coroutine function used between push attempts
            log: Optional logger to bind instead of the global one
        """
        self.settings = settings
        self.destination = destination
        self.transfer = transfer
        self.progress = progress
        self.cancel_event = cancel_event
        self.sleep = sleep
        self._log = log
        self.logger = get_logger('RepositoryMigrationStrategy', log)

    def target_name_for(self, unit: Repository) -> str:
        return target_name(unit.project_name, unit.name, self.settings.naming)

    def workspace_for(self, unit: Repository) -> str:
        return str(Path(self.settings.temp_dir) / workspace_name(unit.project_name, unit.name))

    def _notify(self, message: str, label: str) -> None:
        if self.progress is None:
            return
        try:
            self.progress.notify(message, label)
        except Exception as e:
            self.logger.warning(f'Progress sink failed for {label}: {e}')

    def _checkpoint(self, step: str) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise MigrationCancelled(f'cancelled before {step}')

    async def _discard(self, workspace: str) -> None:
        if self.settings.cleanup_workspace:
            await self.transfer.cleanup(workspace)

    async def migrate_unit(
        self, unit: Repository, known_target: Optional[TargetRepository] = None
    ) -> UnitOutcome:
        """Migrate one repository.

        Args:
            unit: Repository to migrate
            known_target: Target resolved by an earlier attempt; skips the
                existence check so a target created by that attempt is not
                mistaken for a pre-existing one

        Returns:
            Finalized outcome (migrated, skipped or failed)
        """
        label = unit.full_name
        outcome = UnitOutcome(unit=label, target_name=self.target_name_for(unit))
        workspace = self.workspace_for(unit)

        self.logger.info(f'Migrating {label} -> {self.settings.organization}/{outcome.target_name}')
        try:
            await self._migrate(unit, outcome, workspace, known_target)
        except ContentGuardSkip as e:
            outcome.mark_skipped(str(e))
        except MigrationCancelled as e:
            if outcome.local_path:
                await self._discard(workspace)
            outcome.mark_failed(str(e))
        except RetryExhausted as e:
            outcome.attempts = e.attempts
            outcome.mark_failed(str(e))
        except MigrationError as e:
            outcome.mark_failed(str(e))
        except Exception as e:
            self.logger.exception(f'Unexpected error migrating {label}')
            outcome.mark_failed(f'Unexpected error: {e}')

        if outcome.status == OutcomeStatus.FAILED:
            self.logger.error(f'{label}: {outcome.error}')
            self._notify(f'Failed: {outcome.error}', label)
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.logger.info(f'{label} skipped: {outcome.reason}')
            self._notify(f'Skipped: {outcome.reason}', label)
        else:
            self.logger.success(f'{label} migrated to {outcome.target.full_name}')
            self._notify(f'Migrated to {outcome.target.full_name}', label)

        return outcome

    async def _migrate(
        self,
        unit: Repository,
        outcome: UnitOutcome,
        workspace: str,
        known_target: Optional[TargetRepository],
    ) -> None:
        label = unit.full_name

        self._checkpoint('resolve')
        if known_target is not None:
            target = known_target
        else:
            self._notify(f'Resolving target {outcome.target_name}', label)
            target, skip_reason = await self._resolve_target(unit, outcome.target_name)
            if target.skipped:
                outcome.mark_skipped(skip_reason)
                return
        outcome.target = target

        self._checkpoint('clone')
        self._notify('Cloning source repository', label)
        outcome.local_path = workspace
        try:
            await self.transfer.clone(unit.clone_url, workspace)
        except TransferError:
            await self.transfer.cleanup(workspace)
            raise

        if self.settings.skip_empty:
            self._checkpoint('content check')
            if await self.transfer.is_empty(workspace) or not await self.transfer.has_content(workspace):
                await self._discard(workspace)
                raise ContentGuardSkip(SKIP_EMPTY_SOURCE)

        self._checkpoint('remote')
        if not target.push_url:
            raise TransferError(f'Target {target.full_name} has no push URL')
        await self.transfer.add_remote(workspace, self.settings.remote_name, target.push_url)
        branch = await self.transfer.detect_default_branch(workspace)

        self._checkpoint('push')
        self._notify(f'Pushing {branch} to {target.full_name}', label)
        policy = RetryPolicy(
            max_attempts=self.settings.max_retry_attempts,
            delay=self.settings.retry_delay,
            timeout=self.settings.push_timeout,
            sleep=self.sleep,
            log=self._log,
        )
        await policy.call(
            self.transfer.push,
            workspace,
            self.settings.remote_name,
            branch,
            force=self.settings.overwrite_existing,
            timeout=policy.timeout,
        )
        outcome.attempts = policy.attempts

        await self._discard(workspace)
        outcome.mark_migrated()

    async def _resolve_target(
        self, unit: Repository, name: str
    ) -> Tuple[TargetRepository, Optional[str]]:
        """Find or create the target.

        A target marked ``skipped`` comes with the skip reason. The creation
        payload is validated first, so a name GitHub would refuse fails the
        unit in dry runs too.

        Raises:
            TargetResolutionError: If the payload is invalid or any destination call fails
        """
        org = self.settings.organization
        try:
            payload = RepositoryCreate.for_repository(unit, name)
        except ValidationError as e:
            problems = '; '.join(item['msg'] for item in e.errors())
            raise TargetResolutionError(f'Invalid target {org}/{name}: {problems}') from e

        try:
            exists = await self.destination.repository_exists(org, name)

            if exists and not self.settings.overwrite_existing:
                return self._skipped_target(name), SKIP_TARGET_EXISTS

            if self.settings.dry_run:
                reason = SKIP_DRY_RUN_OVERWRITE if exists else SKIP_DRY_RUN_CREATE
                return self._skipped_target(name), reason

            if exists:
                return await self.destination.get_repository(org, name), None

            return await self.destination.create_repository(org, payload), None
        except APINotFoundError as e:
            raise TargetResolutionError(f'Target {org}/{name} disappeared during lookup: {e}') from e
        except APIRateLimitError as e:
            wait = f', retry after {e.retry_after}s' if e.retry_after is not None else ''
            raise TargetResolutionError(f'Rate limited resolving {org}/{name}{wait}: {e}') from e
        except APIError as e:
            raise TargetResolutionError(f'Failed to resolve target {org}/{name}: {e}') from e

    def _skipped_target(self, name: str) -> TargetRepository:
        return TargetRepository(
            name=name, full_name=f'{self.settings.organization}/{name}', skipped=True
        )
