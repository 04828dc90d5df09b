"""Migration engine, orchestrator and per-repository strategy."""

from .download import DownloadStrategy
from .engine import MigrationEngine, PlannedMigration, build_settings
from .naming import NamingRule, normalize_segment, target_name, workspace_name
from .orchestrator import BatchOrchestrator
from .result import MigrationResult, OutcomeStatus, ResultSealedError, UnitOutcome
from .retry import RetryPolicy
from .strategy import MigrationSettings, RepositoryMigrationStrategy

__all__ = [
    'BatchOrchestrator',
    'DownloadStrategy',
    'MigrationEngine',
    'MigrationResult',
    'MigrationSettings',
    'NamingRule',
    'OutcomeStatus',
    'PlannedMigration',
    'RepositoryMigrationStrategy',
    'ResultSealedError',
    'RetryPolicy',
    'UnitOutcome',
    'build_settings',
    'normalize_segment',
    'target_name',
    'workspace_name',
]
