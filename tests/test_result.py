"""Tests for the batch result accumulator."""

import pytest

from coding_migrate.exceptions import MigrationError
from coding_migrate.migration.result import (
    MigrationResult,
    ResultSealedError,
    UnitOutcome,
)
from conftest import make_target


class TestMigrationResult:
    """Counting, merging and sealing."""

    def test_empty_result_is_success(self):
        result = MigrationResult()

        assert result.is_success()
        assert not result.has_errors()
        assert result.total_count == 0

    def test_counts_add_up(self):
        result = MigrationResult()
        result.add_success('a/one').add_success('a/two').add_error('a/three: boom')

        assert result.success_count == 2
        assert result.error_count == 1
        assert result.total_count == 3
        assert not result.is_success()

    def test_accessors_return_copies(self):
        result = MigrationResult().add_success('a/one').append_detail('skipped', 'x')

        result.success_items.append('tampered')
        result.details['skipped'].append('tampered')

        assert result.success_items == ['a/one']
        assert result.details['skipped'] == ['x']

    def test_merge(self):
        left = MigrationResult().add_success('a/one').add_detail('mode', 'live')
        left.append_detail('skipped', 'a/one: empty source')
        right = MigrationResult().add_error('b/two: boom').add_detail('mode', 'dry run')
        right.append_detail('skipped', 'b/three: empty source')

        merged = left.merge(right)

        assert merged is left
        assert merged.success_items == ['a/one']
        assert merged.errors == ['b/two: boom']
        assert merged.details['mode'] == 'dry run'
        assert merged.details['skipped'] == ['a/one: empty source', 'b/three: empty source']
        assert not merged.is_success()

    def test_sealed_result_rejects_changes(self):
        result = MigrationResult().add_success('a/one').seal()

        assert result.sealed
        for mutate in (
            lambda: result.add_success('a/two'),
            lambda: result.add_error('boom'),
            lambda: result.add_detail('k', 'v'),
            lambda: result.append_detail('k', 'v'),
            lambda: result.merge(MigrationResult()),
            lambda: result.record(UnitOutcome(unit='a/b').mark_migrated()),
        ):
            with pytest.raises(ResultSealedError):
                mutate()
        assert result.success_count == 1

    def test_to_dict(self):
        summary = MigrationResult().add_success('a/one').add_error('a/two: boom').to_dict()

        assert summary['success'] is False
        assert summary['total_count'] == 2
        assert summary['errors'] == ['a/two: boom']
        assert summary['success_items'] == ['a/one']


class TestRecord:
    """Folding unit outcomes into a result."""

    def test_migrated(self):
        outcome = UnitOutcome(unit='teamA/svc-x', target=make_target('teamA-svc_x'))
        result = MigrationResult().record(outcome.mark_migrated())

        assert result.success_items == ['teamA/svc-x']
        assert result.details['migrated'] == ['teamA/svc-x -> acme/teamA-svc_x']

    def test_skipped_counts_as_success(self):
        outcome = UnitOutcome(unit='teamA/svc-x').mark_skipped('empty source')
        result = MigrationResult().record(outcome)

        assert result.is_success()
        assert result.details['skipped'] == ['teamA/svc-x: empty source']

    def test_failed(self):
        outcome = UnitOutcome(unit='teamA/svc-x').mark_failed('git clone failed')
        result = MigrationResult().record(outcome)

        assert result.errors == ['teamA/svc-x: git clone failed']

    def test_unfinalized_outcome_rejected(self):
        with pytest.raises(MigrationError):
            MigrationResult().record(UnitOutcome(unit='teamA/svc-x'))
