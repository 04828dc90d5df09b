"""Download repositories into a local ``<project>/<repository>`` tree."""

import asyncio
import os
from pathlib import Path
from typing import Optional

from ..exceptions import ContentGuardSkip, MigrationCancelled, MigrationError, TransferError
from ..models.repository import Repository, TargetRepository
from ..utils.logging import get_logger
from .protocols import ProgressSink, TransferPrimitive
from .result import OutcomeStatus, UnitOutcome
from .strategy import SKIP_EMPTY_SOURCE

SKIP_DIRECTORY_EXISTS = 'directory exists'


class DownloadStrategy:
    """Clones each repository to ``<output_dir>/<project>/<repository>``.

    Nothing is ever overwritten: a repository whose directory already exists
    is skipped, so an interrupted download can simply be run again. With
    ``exclude_empty`` a clone without commits or files is removed and
    skipped. Runs under ``BatchOrchestrator`` like the migration strategy.
    """

    def __init__(
        self,
        transfer: TransferPrimitive,
        output_dir: str,
        exclude_empty: bool = False,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
        log=None,
    ):
        """Initialize download strategy.

        Args:
            transfer: Content transfer primitive
            output_dir: Root of the download tree
            exclude_empty: Remove and skip repositories without content
            progress: Optional receiver of per-step messages
            cancel_event: Optional event checked before cloning
            log: Optional logger to bind instead of the global one
        """
        self.transfer = transfer
        self.output_dir = output_dir
        self.exclude_empty = exclude_empty
        self.progress = progress
        self.cancel_event = cancel_event
        self.logger = get_logger('DownloadStrategy', log)

    def target_name_for(self, unit: Repository) -> str:
        return str(Path(self.output_dir) / unit.project_name / unit.name)

    def _notify(self, message: str, label: str) -> None:
        if self.progress is None:
            return
        try:
            self.progress.notify(message, label)
        except Exception as e:
            self.logger.warning(f'Progress sink failed for {label}: {e}')

    async def migrate_unit(
        self, unit: Repository, known_target: Optional[TargetRepository] = None
    ) -> UnitOutcome:
        """Download one repository.

        Args:
            unit: Repository to download
            known_target: Ignored; downloads have no remote target

        Returns:
            Finalized outcome; ``migrated`` means cloned
        """
        label = unit.full_name
        path = self.target_name_for(unit)
        outcome = UnitOutcome(unit=label, target_name=path)

        try:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise MigrationCancelled('cancelled before clone')
            if os.path.lexists(path):
                outcome.mark_skipped(SKIP_DIRECTORY_EXISTS)
            else:
                await self._download(unit, path, outcome)
        except ContentGuardSkip as e:
            outcome.mark_skipped(str(e))
        except MigrationError as e:
            outcome.mark_failed(str(e))
        except Exception as e:
            self.logger.exception(f'Unexpected error downloading {label}')
            outcome.mark_failed(f'Unexpected error: {e}')

        if outcome.status == OutcomeStatus.FAILED:
            self.logger.error(f'{label}: {outcome.error}')
            self._notify(f'Failed: {outcome.error}', label)
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.logger.info(f'{label} skipped: {outcome.reason}')
            self._notify(f'Skipped: {outcome.reason}', label)
        else:
            self.logger.success(f'{label} downloaded to {path}')
            self._notify(f'Saved to {path}', label)

        return outcome

    async def _download(self, unit: Repository, path: str, outcome: UnitOutcome) -> None:
        self._notify('Cloning source repository', unit.full_name)
        outcome.local_path = path
        try:
            await self.transfer.clone(unit.clone_url, path)
        except TransferError:
            await self.transfer.cleanup(path)
            raise

        if self.exclude_empty:
            if await self.transfer.is_empty(path) or not await self.transfer.has_content(path):
                await self.transfer.cleanup(path)
                raise ContentGuardSkip(SKIP_EMPTY_SOURCE)

        outcome.mark_migrated()
