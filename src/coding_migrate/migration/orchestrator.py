"""Batch orchestration of repository migrations."""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.repository import Repository
from ..utils.logging import get_logger
from .protocols import BatchProgress, UnitStrategy
from .result import MigrationResult, OutcomeStatus, UnitOutcome


class BatchOrchestrator:
    """Runs repositories through the migration strategy in groups.

    Repositories are split into consecutive groups of ``concurrency_width``.
    The repositories of one group run concurrently; groups run one after the
    other. Outcomes are folded into a single result and reported to the
    progress callback under one lock, once per repository.

    A repository whose target name was already claimed by an earlier one in
    the batch fails up front and never runs.
    """

    def __init__(
        self,
        strategy: UnitStrategy,
        exclusions: Iterable[str] = (),
        group_retry_attempts: int = 0,
        retry_delay: float = 0.0,
        cancel_event: Optional[asyncio.Event] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        log=None,
    ):
        """Initialize batch orchestrator.

        Args:
            strategy: Per-repository migration strategy
            exclusions: ``project/repository`` names never migrated
            group_retry_attempts: Re-runs of failed repositories after each group
            retry_delay: Seconds slept before each group re-run
            cancel_event: Optional event checked between repositories
            sleep: Optional coroutine function used before group re-runs
            log: Optional logger to bind instead of the global one
        """
        self.strategy = strategy
        self.exclusions = frozenset(exclusions)
        self.group_retry_attempts = max(0, group_retry_attempts)
        self.retry_delay = retry_delay
        self.cancel_event = cancel_event
        self.sleep = sleep or asyncio.sleep
        self.logger = get_logger('BatchOrchestrator', log)

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def run(
        self,
        units: Sequence[Repository],
        concurrency_width: int,
        progress: Optional[BatchProgress] = None,
    ) -> MigrationResult:
        """Migrate ``units`` and return the sealed batch result.

        Args:
            units: Repositories in processing order
            concurrency_width: Repositories per group; 1 or less runs sequentially
            progress: Called as ``progress(label, result)`` after every repository

        Returns:
            Sealed batch result; repository failures never raise
        """
        result = MigrationResult()
        lock = asyncio.Lock()
        width = max(1, int(concurrency_width))

        pending: List[Repository] = []
        for unit in units:
            if unit.full_name in self.exclusions:
                self.logger.info(f'Excluded {unit.full_name}')
                result.append_detail('excluded', unit.full_name)
            else:
                pending.append(unit)

        pending, collisions = self._claim_targets(pending)
        for outcome in collisions:
            self.logger.error(f'{outcome.unit}: {outcome.error}')
            await self._record(outcome, result, lock, progress)

        groups = [pending[i:i + width] for i in range(0, len(pending), width)]
        self.logger.info(
            f'Migrating {len(pending)} repositories in {len(groups)} group(s) of up to {width}'
        )

        for index, group in enumerate(groups, start=1):
            if self._cancelled():
                not_started = [unit.full_name for rest in groups[index - 1:] for unit in rest]
                self.logger.warning(f'Cancelled, {len(not_started)} repositories not started')
                for name in not_started:
                    result.append_detail('cancelled', name)
                break

            self.logger.debug(f'Starting group {index}/{len(groups)} ({len(group)} repositories)')
            await self._run_group(group, result, lock, progress)

        result.seal()
        self.logger.info(
            f'Batch finished: {result.success_count} succeeded, {result.error_count} failed'
        )
        return result

    async def _run_group(
        self,
        group: List[Repository],
        result: MigrationResult,
        lock: asyncio.Lock,
        progress: Optional[BatchProgress],
    ) -> None:
        hold_failures = self.group_retry_attempts > 0

        async def run_one(unit: Repository) -> Optional[Tuple[Repository, UnitOutcome]]:
            outcome = await self._migrate(unit)
            if hold_failures and outcome.status == OutcomeStatus.FAILED:
                return unit, outcome
            await self._record(outcome, result, lock, progress)
            return None

        finished = await asyncio.gather(*(run_one(unit) for unit in group))
        held = [item for item in finished if item is not None]

        for attempt in range(1, self.group_retry_attempts + 1):
            if not held or self._cancelled():
                break

            self.logger.info(
                f'Re-attempting {len(held)} failed repositories '
                f'({attempt}/{self.group_retry_attempts}) in {self.retry_delay}s'
            )
            await self.sleep(self.retry_delay)

            outcomes = await asyncio.gather(
                *(self._migrate(unit, previous.target) for unit, previous in held)
            )

            still_failing = []
            for (unit, _), outcome in zip(held, outcomes):
                if outcome.status == OutcomeStatus.FAILED and attempt < self.group_retry_attempts:
                    still_failing.append((unit, outcome))
                else:
                    await self._record(outcome, result, lock, progress)
            held = still_failing

        for _, outcome in held:
            await self._record(outcome, result, lock, progress)

    def _claim_targets(
        self, units: List[Repository]
    ) -> Tuple[List[Repository], List[UnitOutcome]]:
        """Split ``units`` into those with a unique target and failed collisions.

        The first repository to claim a name keeps it. Names are compared
        case-insensitively, as GitHub does.
        """
        owners: Dict[str, Repository] = {}
        unique: List[Repository] = []
        collisions: List[UnitOutcome] = []

        for unit in units:
            name = self.strategy.target_name_for(unit)
            owner = owners.get(name.lower())
            if owner is None:
                owners[name.lower()] = unit
                unique.append(unit)
                continue
            collisions.append(
                UnitOutcome(unit=unit.full_name, target_name=name).mark_failed(
                    f'target name {name} collides with {owner.full_name}'
                )
            )

        return unique, collisions

    async def _migrate(self, unit: Repository, known_target=None) -> UnitOutcome:
        try:
            return await self.strategy.migrate_unit(unit, known_target=known_target)
        except Exception as e:
            self.logger.exception(f'Strategy raised for {unit.full_name}')
            return UnitOutcome(unit=unit.full_name).mark_failed(f'Unexpected error: {e}')

    async def _record(
        self,
        outcome: UnitOutcome,
        result: MigrationResult,
        lock: asyncio.Lock,
        progress: Optional[BatchProgress],
    ) -> None:
        async with lock:
            result.record(outcome)
            if progress is None:
                return
            try:
                progress(outcome.unit, result)
            except Exception as e:
                self.logger.warning(f'Progress callback failed for {outcome.unit}: {e}')
