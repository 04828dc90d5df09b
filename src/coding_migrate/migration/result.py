"""Per-repository outcomes and the batch result accumulator."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..exceptions import MigrationError
from ..models.repository import TargetRepository


class OutcomeStatus(str, Enum):
    """Terminal status of one repository migration."""

    MIGRATED = 'migrated'
    SKIPPED = 'skipped'
    FAILED = 'failed'


class UnitOutcome(BaseModel):
    """Outcome of migrating one repository.

    Created when the repository enters the state machine with no status and
    finalized exactly once by one of the ``mark_*`` methods.
    """

    unit: str = Field(..., description='project/repository label')
    status: Optional[OutcomeStatus] = Field(default=None, description='Terminal status')
    target_name: Optional[str] = Field(default=None, description='GitHub repository name')
    reason: Optional[str] = Field(default=None, description='Skip reason')
    error: Optional[str] = Field(default=None, description='Failure message')
    local_path: Optional[str] = Field(default=None, description='Workspace directory')
    target: Optional[TargetRepository] = Field(default=None, description='Resolved target')
    attempts: int = Field(default=0, description='Push attempts made')

    @property
    def finalized(self) -> bool:
        return self.status is not None

    @property
    def is_success(self) -> bool:
        """Migrated and skipped outcomes both count as successes."""
        return self.status in (OutcomeStatus.MIGRATED, OutcomeStatus.SKIPPED)

    def _finalize(self, status: OutcomeStatus) -> 'UnitOutcome':
        if self.finalized:
            raise MigrationError(f'Outcome for {self.unit} already finalized as {self.status.value}')
        self.status = status
        return self

    def mark_migrated(self) -> 'UnitOutcome':
        return self._finalize(OutcomeStatus.MIGRATED)

    def mark_skipped(self, reason: str) -> 'UnitOutcome':
        self.reason = reason
        return self._finalize(OutcomeStatus.SKIPPED)

    def mark_failed(self, error: str) -> 'UnitOutcome':
        self.error = error
        return self._finalize(OutcomeStatus.FAILED)


class ResultSealedError(MigrationError):
    """A sealed batch result was modified."""


class MigrationResult:
    """Accumulates the outcome of a batch of repository migrations.

    Successes and errors are kept in completion order. ``total_count`` is
    always ``success_count + error_count``. Once ``seal`` is called the
    result is a read-only snapshot and every mutator raises
    ``ResultSealedError``.
    """

    def __init__(self):
        self._success = True
        self._sealed = False
        self._success_items: List[str] = []
        self._errors: List[str] = []
        self._details: Dict[str, Any] = {}

    def _check_mutable(self) -> None:
        if self._sealed:
            raise ResultSealedError('Migration result is sealed and can no longer change')

    @property
    def success_items(self) -> List[str]:
        return list(self._success_items)

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def details(self) -> Dict[str, Any]:
        return {key: list(value) if isinstance(value, list) else value
                for key, value in self._details.items()}

    @property
    def success_count(self) -> int:
        return len(self._success_items)

    @property
    def error_count(self) -> int:
        return len(self._errors)

    @property
    def total_count(self) -> int:
        return self.success_count + self.error_count

    @property
    def sealed(self) -> bool:
        return self._sealed

    def has_errors(self) -> bool:
        return bool(self._errors)

    def is_success(self) -> bool:
        """True when no error was recorded; an empty batch is a success."""
        return self._success and not self._errors

    def add_success(self, item: str) -> 'MigrationResult':
        self._check_mutable()
        self._success_items.append(item)
        return self

    def add_error(self, message: str) -> 'MigrationResult':
        self._check_mutable()
        self._errors.append(message)
        self._success = False
        return self

    def add_detail(self, key: str, value: Any) -> 'MigrationResult':
        self._check_mutable()
        self._details[key] = value
        return self

    def append_detail(self, key: str, value: Any) -> 'MigrationResult':
        """Append ``value`` to the list stored under ``key``."""
        self._check_mutable()
        current = self._details.get(key)
        if not isinstance(current, list):
            current = [] if current is None else [current]
        current.append(value)
        self._details[key] = current
        return self

    def record(self, outcome: UnitOutcome) -> 'MigrationResult':
        """Fold a finalized repository outcome into the result."""
        self._check_mutable()
        if outcome.status == OutcomeStatus.MIGRATED:
            self.add_success(outcome.unit)
            target = outcome.target.full_name if outcome.target else outcome.target_name
            self.append_detail('migrated', f'{outcome.unit} -> {target}')
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.add_success(outcome.unit)
            self.append_detail('skipped', f'{outcome.unit}: {outcome.reason}')
        elif outcome.status == OutcomeStatus.FAILED:
            self.add_error(f'{outcome.unit}: {outcome.error}')
        else:
            raise MigrationError(f'Outcome for {outcome.unit} was never finalized')
        return self

    def merge(self, other: 'MigrationResult') -> 'MigrationResult':
        """Fold ``other`` into this result and return this result.

        Errors and success items are concatenated, list details are
        concatenated, scalar details from ``other`` win, and the success
        flags are combined with a logical AND.
        """
        self._check_mutable()
        self._errors.extend(other._errors)
        self._success_items.extend(other._success_items)
        for key, value in other._details.items():
            current = self._details.get(key)
            if isinstance(current, list) and isinstance(value, list):
                self._details[key] = current + value
            else:
                self._details[key] = list(value) if isinstance(value, list) else value
        self._success = self._success and other._success
        return self

    def seal(self) -> 'MigrationResult':
        """Freeze the result; sealing twice is harmless."""
        self._sealed = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Summary suitable for reporting."""
        return {
            'success': self.is_success(),
            'has_errors': self.has_errors(),
            'total_count': self.total_count,
            'success_count': self.success_count,
            'error_count': self.error_count,
            'errors': self.errors,
            'success_items': self.success_items,
            'details': self.details,
        }

    def __repr__(self) -> str:
        return (
            f'MigrationResult(success={self.is_success()}, '
            f'succeeded={self.success_count}, failed={self.error_count})'
        )
