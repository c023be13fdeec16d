"""
Unit tests for per-key mutual exclusion.
"""

import asyncio

import pytest

from tab_grouper.grouping.lock_manager import LockManager


def test_same_key_runs_sequentially_in_arrival_order():
    async def scenario():
        locks = LockManager()
        events = []

        def make_task(name):
            async def task():
                events.append(f"{name}-start")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                events.append(f"{name}-end")
                return name
            return task

        results = await asyncio.gather(
            locks.run_exclusive("Tech", make_task("a")),
            locks.run_exclusive("Tech", make_task("b")),
            locks.run_exclusive("Tech", make_task("c")),
        )
        return results, events

    results, events = asyncio.run(scenario())

    assert results == ["a", "b", "c"]
    assert events == ["a-start", "a-end", "b-start", "b-end", "c-start", "c-end"]


def test_different_keys_do_not_block_each_other():
    async def scenario():
        locks = LockManager()
        gate = asyncio.Event()

        async def waits_for_gate():
            await gate.wait()
            return "tech"

        async def opens_gate():
            gate.set()
            return "news"

        # Would deadlock if "News" had to wait for "Tech"
        return await asyncio.wait_for(
            asyncio.gather(
                locks.run_exclusive("Tech", waits_for_gate),
                locks.run_exclusive("News", opens_gate),
            ),
            timeout=1.0,
        )

    assert asyncio.run(scenario()) == ["tech", "news"]


def test_failure_releases_lock_for_next_waiter():
    async def scenario():
        locks = LockManager()

        async def fails():
            await asyncio.sleep(0)
            raise ValueError("boom")

        async def succeeds():
            return "ok"

        return await asyncio.gather(
            locks.run_exclusive("Tech", fails),
            locks.run_exclusive("Tech", succeeds),
            return_exceptions=True,
        )

    first, second = asyncio.run(scenario())

    assert isinstance(first, ValueError)
    assert second == "ok"


def test_locks_are_discarded_when_idle():
    async def scenario():
        locks = LockManager()
        seen = []

        async def task():
            seen.append((locks.is_locked("Tech"), locks.active_keys()))

        await locks.run_exclusive("Tech", task)
        return locks, seen

    locks, seen = asyncio.run(scenario())

    assert seen == [(True, ["Tech"])]
    assert locks.active_keys() == []
    assert locks.is_locked("Tech") is False


def test_exception_propagates_to_caller():
    async def fails():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        asyncio.run(LockManager().run_exclusive("Tech", fails))
