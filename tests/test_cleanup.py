"""
Unit tests for empty group cleanup.

Tests the grace period bookkeeping, the sweep performed by
TabGroupingService.auto_cleanup_empty_groups, and the periodic scheduler.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tab_grouper.grouping.cleanup import CleanupCoordinator, CleanupScheduler
from tab_grouper.grouping.errors import HostOperationError
from tab_grouper.grouping.models import GroupColor, GroupingSettings
from tab_grouper.grouping.tab_grouping_service import TabGroupingService

GRACE_MS = 1000


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(10_000.0)


@pytest.fixture
def service(host, store, clock):
    return TabGroupingService(host, store, cleanup=CleanupCoordinator(clock=clock))


class TestCleanupCoordinator:
    """Tests for pending-cleanup bookkeeping."""

    def test_mark_pending_keeps_first_timestamp(self, clock):
        coordinator = CleanupCoordinator(clock=clock)
        assert coordinator.mark_pending(1) == 10_000.0
        clock.now += 500
        assert coordinator.mark_pending(1) == 10_000.0
        assert coordinator.elapsed_ms(1) == 500

    def test_clear_pending(self, clock):
        coordinator = CleanupCoordinator(clock=clock)
        coordinator.mark_pending(1)
        coordinator.clear_pending(1)
        coordinator.clear_pending(2)
        assert coordinator.get_timestamp(1) is None
        assert coordinator.elapsed_ms(1) == 0.0

    def test_retain_only(self, clock):
        coordinator = CleanupCoordinator(clock=clock)
        for group_id in (1, 2, 3):
            coordinator.mark_pending(group_id)
        coordinator.retain_only([2])
        assert coordinator.pending_group_ids() == [2]


class TestSweep:
    """Tests for the empty group sweep."""

    def test_empty_group_not_removed_before_grace(self, service, host, clock):
        host.add_group(5, title="Tech", color=GroupColor.BLUE)

        report = asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert report.removed == []
        assert report.pending == [5]

        clock.now += GRACE_MS - 1
        report = asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert report.removed == []
        assert 5 in host.groups

    def test_empty_group_removed_after_grace(self, service, host, clock):
        host.add_group(5, title="Tech", color=GroupColor.BLUE)
        asyncio.run(service.group_state.persist("Tech", 5, GroupColor.BLUE))

        asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        clock.now += GRACE_MS
        report = asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))

        assert report.removed == [5]
        assert 5 not in host.groups
        assert service.group_state.group_id_for("Tech") is None
        assert service.cleanup.get_timestamp(5) is None

    def test_refilled_group_is_never_removed_for_that_episode(self, service, host, clock):
        host.add_group(5, title="Tech")
        asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))

        clock.now += GRACE_MS / 2
        host.add_tab(1, group_id=5)
        asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert service.cleanup.get_timestamp(5) is None

        # Emptied again: the grace timer restarts
        host.tabs[1].group_id = None
        clock.now += GRACE_MS / 2
        report = asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert report.removed == []
        assert service.cleanup.get_timestamp(5) == clock.now

        clock.now += GRACE_MS
        report = asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert report.removed == [5]

    def test_zero_grace_removes_on_first_pass(self, service, host):
        host.add_group(5, title="Tech")
        report = asyncio.run(service.auto_cleanup_empty_groups(0))
        assert report.removed == [5]

    def test_negative_grace_treated_as_zero(self, service, host):
        host.add_group(5, title="Tech")
        report = asyncio.run(service.auto_cleanup_empty_groups(-50))
        assert report.removed == [5]

    def test_group_refilled_during_recheck_is_kept(self, service, host):
        host.add_group(5, title="Tech")
        original_query_tabs = host.query_tabs
        calls = {"n": 0}

        async def query_tabs(window_id=None, group_id=None, active=None):
            calls["n"] += 1
            if calls["n"] == 2:
                # The tab arrives between the scan and the confirmation
                host.add_tab(1, group_id=5)
            return await original_query_tabs(window_id=window_id, group_id=group_id, active=active)

        host.query_tabs = query_tabs
        report = asyncio.run(service.auto_cleanup_empty_groups(0))

        assert report.removed == []
        assert 5 in host.groups
        assert service.cleanup.get_timestamp(5) is None

    def test_active_group_is_kept(self, service, host):
        host.add_group(5, window_id=1, title="Tech")

        async def query_tabs(window_id=None, group_id=None, active=None):
            if active:
                return [host.add_tab(9, window_id=1, group_id=5, active=True).model_copy()]
            return []

        host.query_tabs = query_tabs
        report = asyncio.run(service.auto_cleanup_empty_groups(0))

        assert report.removed == []
        assert 5 in host.groups

    def test_active_check_failure_treated_as_inactive(self, service, host):
        host.add_group(5, title="Tech")
        original_query_tabs = host.query_tabs

        async def query_tabs(window_id=None, group_id=None, active=None):
            if active:
                raise HostOperationError("bridge down")
            return await original_query_tabs(window_id=window_id, group_id=group_id, active=active)

        host.query_tabs = query_tabs
        report = asyncio.run(service.auto_cleanup_empty_groups(0))
        assert report.removed == [5]

    def test_failure_on_one_group_does_not_stop_sweep(self, service, host):
        host.add_group(5, title="Tech")
        host.add_group(6, title="News")
        original_remove = host.remove_group

        async def remove_group(group_id):
            if group_id == 5:
                raise HostOperationError("locked")
            await original_remove(group_id)

        host.remove_group = remove_group
        report = asyncio.run(service.auto_cleanup_empty_groups(0))

        assert report.removed == [6]
        assert 5 in host.groups

    def test_listing_failure_returns_empty_report(self, service, host):
        host.failures["query_groups"] = HostOperationError("bridge down")
        report = asyncio.run(service.auto_cleanup_empty_groups(0))
        assert report.removed == []
        assert report.pending == []

    def test_vanished_groups_lose_their_marks(self, service, host):
        host.add_group(5, title="Tech")
        asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        del host.groups[5]
        asyncio.run(service.auto_cleanup_empty_groups(GRACE_MS))
        assert service.cleanup.pending_group_ids() == []


class TestCleanupScheduler:
    """Tests for the periodic trigger."""

    def test_tick_sweeps_with_stored_grace(self, store):
        service = AsyncMock()
        asyncio.run(store.write_settings(GroupingSettings(auto_cleanup_grace_ms=1234)))

        asyncio.run(CleanupScheduler(service, store).tick())

        service.auto_cleanup_empty_groups.assert_awaited_once_with(1234)

    def test_tick_uses_override_grace(self, store):
        service = AsyncMock()
        asyncio.run(CleanupScheduler(service, store, grace_ms=0).tick())
        service.auto_cleanup_empty_groups.assert_awaited_once_with(0)

    def test_tick_skipped_when_disabled(self, store):
        service = AsyncMock()
        asyncio.run(store.write_settings(GroupingSettings(auto_cleanup_enabled=False)))
        asyncio.run(CleanupScheduler(service, store).tick())
        service.auto_cleanup_empty_groups.assert_not_awaited()

    def test_tick_errors_are_swallowed(self, store):
        service = AsyncMock()
        service.auto_cleanup_empty_groups.side_effect = RuntimeError("boom")
        asyncio.run(CleanupScheduler(service, store).tick())

    def test_start_runs_ticks_until_stopped(self, store):
        service = AsyncMock()

        async def scenario():
            scheduler = CleanupScheduler(service, store, interval_seconds=0.01)
            scheduler.start()
            scheduler.start()
            assert scheduler.running
            await asyncio.sleep(0.1)
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(scenario())

        assert not scheduler.running
        assert service.auto_cleanup_empty_groups.await_count >= 2
