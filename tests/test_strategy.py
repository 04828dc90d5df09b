"""Tests for the single repository migration state machine."""

import asyncio
import os

import pytest

from coding_migrate.api.exceptions import APIError, APIRateLimitError, APIValidationError
from coding_migrate.migration.naming import NamingRule
from coding_migrate.migration.result import OutcomeStatus
from coding_migrate.migration.strategy import (
    SKIP_DRY_RUN_CREATE,
    SKIP_DRY_RUN_OVERWRITE,
    SKIP_EMPTY_SOURCE,
    SKIP_TARGET_EXISTS,
    RepositoryMigrationStrategy,
)
from conftest import RecordingSink, make_repository, make_target, no_sleep


def build(settings, destination, transfer, **kwargs):
    kwargs.setdefault('sleep', no_sleep)
    return RepositoryMigrationStrategy(settings, destination, transfer, **kwargs)


class TestSuccessfulMigration:
    """Repositories that reach the destination."""

    @pytest.mark.asyncio
    async def test_new_target_is_created_and_pushed(self, settings, destination, transfer):
        """A missing target is created, then the default branch is pushed."""
        unit = make_repository('teamA', 'svc-x', description='Service X')
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.MIGRATED
        assert outcome.unit == 'teamA/svc-x'
        assert outcome.target_name == 'teamA-svc_x'
        assert outcome.target.full_name == 'acme/teamA-svc_x'
        assert outcome.attempts == 1
        assert destination.created[0].name == 'teamA-svc_x'
        assert destination.created[0].description == 'Service X'
        assert destination.created[0].private is True
        assert destination.created[0].auto_init is False
        assert transfer.clones == [unit.ssh_url]
        assert transfer.remotes[0][1:] == ('github', 'git@github.com:acme/teamA-svc_x.git')
        push = transfer.pushes[0]
        assert push['branch'] == 'main'
        assert push['remote'] == 'github'
        assert push['force'] is False
        assert push['timeout'] == 30

    @pytest.mark.asyncio
    async def test_push_fails_twice_then_succeeds(self, settings, destination, transfer):
        """Two failed pushes are retried; the third attempt migrates the repository."""
        unit = make_repository('teamA', 'svc-x')
        settings = settings.model_copy(update={'max_retry_attempts': 3})
        transfer.push_failures[unit.ssh_url] = 2
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.MIGRATED
        assert outcome.error is None
        assert outcome.attempts == 3
        assert len(transfer.pushes) == 3
        assert not os.path.exists(strategy.workspace_for(unit))

    @pytest.mark.asyncio
    async def test_existing_target_is_force_pushed_when_overwrite_enabled(
        self, settings, transfer
    ):
        """With overwrite enabled an existing target is fetched, not created."""
        from conftest import FakeDestination

        destination = FakeDestination(existing=['teamA-svc_x'])
        settings = settings.model_copy(update={'overwrite_existing': True})
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.MIGRATED
        assert destination.created == []
        assert transfer.pushes[0]['force'] is True

    @pytest.mark.asyncio
    async def test_shared_repository_is_created_public(self, settings, destination, transfer):
        """Visibility follows the Coding ``IsShared`` flag."""
        strategy = build(settings, destination, transfer)

        await strategy.migrate_unit(make_repository(is_shared=True))

        assert destination.created[0].private is False

    @pytest.mark.asyncio
    async def test_naming_rule_is_applied(self, settings, destination, transfer):
        """Prefix, separator and lowercasing come from the settings."""
        settings = settings.model_copy(
            update={'naming': NamingRule(separator='.', lowercase=True, prefix='coding-')}
        )
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository('TeamA', 'Svc X'))

        assert outcome.target_name == 'coding-teama.svc_x'

    @pytest.mark.asyncio
    async def test_workspace_kept_when_cleanup_disabled(self, settings, destination, transfer):
        """Disabling workspace cleanup leaves the clone on disk."""
        settings = settings.model_copy(update={'cleanup_workspace': False})
        unit = make_repository()
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.MIGRATED
        assert os.path.isdir(strategy.workspace_for(unit))

    @pytest.mark.asyncio
    async def test_known_target_skips_existence_check(self, settings, destination, transfer):
        """A target handed over from an earlier attempt is used as is."""
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(
            make_repository(), known_target=make_target('teamA-svc_x')
        )

        assert outcome.status == OutcomeStatus.MIGRATED
        assert destination.exists_calls == []
        assert destination.created == []


class TestSkippedMigration:
    """Repositories intentionally left alone."""

    @pytest.mark.asyncio
    async def test_existing_target_skipped_without_side_effects(
        self, settings, transfer, workspace_root
    ):
        """Overwrite disabled: no clone, no push, nothing written to disk."""
        from conftest import FakeDestination

        destination = FakeDestination(existing=['teamA-svc_x'])
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository('teamA', 'svc-x'))

        assert outcome.status == OutcomeStatus.SKIPPED
        assert outcome.reason == SKIP_TARGET_EXISTS
        assert outcome.local_path is None
        assert transfer.clones == []
        assert transfer.pushes == []
        assert not workspace_root.exists()

    @pytest.mark.asyncio
    async def test_empty_source_skipped_and_cleaned_up(self, settings, destination, transfer):
        """A repository without commits is skipped and leaves no workspace."""
        unit = make_repository()
        transfer.empty.add(unit.ssh_url)
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.SKIPPED
        assert outcome.reason == SKIP_EMPTY_SOURCE
        assert outcome.is_success
        assert transfer.pushes == []
        assert not os.path.exists(strategy.workspace_for(unit))

    @pytest.mark.asyncio
    async def test_empty_source_pushed_when_guard_disabled(self, settings, destination, transfer):
        """With skip_empty off the content check is not run."""
        unit = make_repository()
        transfer.empty.add(unit.ssh_url)
        settings = settings.model_copy(update={'skip_empty': False})
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.MIGRATED
        assert len(transfer.pushes) == 1

    @pytest.mark.asyncio
    async def test_dry_run_reports_plan_only(self, settings, transfer):
        """Dry run creates, clones and pushes nothing."""
        from conftest import FakeDestination

        destination = FakeDestination(existing=['teamA-old'])
        settings = settings.model_copy(update={'dry_run': True, 'overwrite_existing': True})
        strategy = build(settings, destination, transfer)

        new = await strategy.migrate_unit(make_repository('teamA', 'new'))
        old = await strategy.migrate_unit(make_repository('teamA', 'old'))

        assert new.reason == SKIP_DRY_RUN_CREATE
        assert old.reason == SKIP_DRY_RUN_OVERWRITE
        assert destination.created == []
        assert transfer.clones == []


class TestFailedMigration:
    """Repositories that end in a failed outcome."""

    @pytest.mark.asyncio
    async def test_push_exhaustion_keeps_workspace(self, settings, destination, transfer):
        """N failing pushes give exactly N attempts and a failed outcome."""
        unit = make_repository()
        settings = settings.model_copy(update={'max_retry_attempts': 4})
        transfer.push_failures[unit.ssh_url] = 10
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.attempts == 4
        assert len(transfer.pushes) == 4
        assert 'Push failed after 4 attempt(s)' in outcome.error
        assert 'remote rejected' in outcome.error
        assert os.path.isdir(strategy.workspace_for(unit))

    @pytest.mark.asyncio
    async def test_resolution_error_fails_before_clone(self, settings, destination, transfer):
        """An API error while resolving fails the unit without touching disk."""
        destination.exists_errors['teamA-svc_x'] = APIError('GitHub API request failed: boom')
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.FAILED
        assert 'Failed to resolve target acme/teamA-svc_x' in outcome.error
        assert transfer.clones == []

    @pytest.mark.asyncio
    async def test_create_rejected(self, settings, destination, transfer):
        """A validation error from repository creation is a resolution failure."""
        destination.create_errors['teamA-svc_x'] = APIValidationError('name already exists')
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.FAILED
        assert 'name already exists' in outcome.error

    @pytest.mark.asyncio
    async def test_rate_limit_reports_wait(self, settings, destination, transfer):
        destination.exists_errors['teamA-svc_x'] = APIRateLimitError('limited', retry_after=30)
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error.startswith('Rate limited resolving acme/teamA-svc_x, retry after 30s')

    @pytest.mark.asyncio
    @pytest.mark.parametrize('dry_run', [False, True])
    async def test_overlong_target_name_fails_resolution(
        self, settings, destination, transfer, dry_run
    ):
        """A name GitHub would refuse is a failed outcome, never an escaped error."""
        settings = settings.model_copy(update={
            'naming': NamingRule(prefix='x' * 95),
            'dry_run': dry_run,
        })
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error.startswith('Invalid target acme/' + 'x' * 95)
        assert 'at most 100 characters' in outcome.error
        assert destination.exists_calls == []
        assert destination.created == []
        assert transfer.clones == []

    @pytest.mark.asyncio
    async def test_clone_failure_removes_partial_workspace(self, settings, destination, transfer):
        """Clone errors are fatal and do not leave a workspace behind."""
        unit = make_repository()
        transfer.clone_failures[unit.ssh_url] = 'repository not found'
        strategy = build(settings, destination, transfer)

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.FAILED
        assert 'git clone failed' in outcome.error
        assert 'repository not found' in outcome.error
        assert transfer.pushes == []
        assert strategy.workspace_for(unit) in transfer.cleanups

    @pytest.mark.asyncio
    async def test_cancelled_between_steps(self, settings, destination, transfer):
        """A set cancel event fails the unit before its next step."""
        event = asyncio.Event()
        unit = make_repository()

        class CancelAfterClone:
            def notify(self, message, unit_label):
                if message.startswith('Cloning'):
                    event.set()

        strategy = build(settings, destination, transfer, cancel_event=event, progress=CancelAfterClone())

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error == 'cancelled before content check'
        assert transfer.pushes == []
        assert not os.path.exists(strategy.workspace_for(unit))

    @pytest.mark.asyncio
    async def test_cancelled_keeps_workspace_when_cleanup_disabled(
        self, settings, destination, transfer
    ):
        event = asyncio.Event()
        unit = make_repository()
        settings = settings.model_copy(update={'cleanup_workspace': False})

        class CancelAfterClone:
            def notify(self, message, unit_label):
                if message.startswith('Cloning'):
                    event.set()

        strategy = build(settings, destination, transfer, cancel_event=event, progress=CancelAfterClone())

        outcome = await strategy.migrate_unit(unit)

        assert outcome.status == OutcomeStatus.FAILED
        assert transfer.cleanups == []
        assert os.path.isdir(strategy.workspace_for(unit))


class TestProgressMessages:
    """Per-step progress reporting."""

    @pytest.mark.asyncio
    async def test_messages_are_labelled(self, settings, destination, transfer):
        sink = RecordingSink()
        strategy = build(settings, destination, transfer, progress=sink)

        await strategy.migrate_unit(make_repository())

        labels = {label for label, _ in sink.messages}
        assert labels == {'teamA/svc-x'}
        assert sink.messages[-1][1] == 'Migrated to acme/teamA-svc_x'

    @pytest.mark.asyncio
    async def test_failing_sink_is_ignored(self, settings, destination, transfer):
        """A sink that raises never changes the outcome."""

        class BrokenSink:
            def notify(self, message, unit_label):
                raise RuntimeError('display gone')

        strategy = build(settings, destination, transfer, progress=BrokenSink())

        outcome = await strategy.migrate_unit(make_repository())

        assert outcome.status == OutcomeStatus.MIGRATED
