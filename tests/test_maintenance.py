import asyncio

import pytest

from deepticker.maintenance import CacheSweeper
from deepticker.observability import RuntimeObservability


def test_sweep_once_records_heartbeat(cache, clock):
    cache.set("k", 1, expiry_seconds=5)
    clock.advance(10)
    obs = RuntimeObservability()
    sweeper = CacheSweeper(cache, interval_seconds=60, observability=obs)

    assert sweeper.sweep_once() == 1
    assert obs.last_swept_entries == 1
    assert obs.seconds_since_last_sweep() is not None


@pytest.mark.asyncio
async def test_sweeper_loop_runs_until_stopped(cache, clock):
    cache.set("k", 1, expiry_seconds=5)
    clock.advance(10)
    sweeper = CacheSweeper(cache, interval_seconds=0.01, observability=RuntimeObservability())

    task = asyncio.create_task(sweeper.start())
    await asyncio.sleep(0.05)
    await sweeper.stop()
    await asyncio.wait_for(task, 1.0)

    assert "k" not in cache
    assert task.done()
