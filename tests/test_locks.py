"""Tests for per-key async locks."""

import asyncio

import pytest

from guestlog.services.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    events = []

    async def worker(tag):
        async with locks.hold("5551234567"):
            events.append(f"{tag}-start")
            await asyncio.sleep(0.01)
            events.append(f"{tag}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = KeyedLock()
    both_inside = asyncio.Event()
    inside = 0

    async def worker(key):
        nonlocal inside
        async with locks.hold(key):
            inside += 1
            if inside == 2:
                both_inside.set()
            await asyncio.wait_for(both_inside.wait(), timeout=1)

    await asyncio.gather(worker("5550000001"), worker("5550000002"))
    assert both_inside.is_set()


@pytest.mark.asyncio
async def test_idle_locks_are_released():
    locks = KeyedLock()

    async with locks.hold("5551234567"):
        assert len(locks) == 1

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_when_block_raises():
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold("5551234567"):
            raise RuntimeError("boom")

    assert len(locks) == 0
    async with locks.hold("5551234567"):
        pass
