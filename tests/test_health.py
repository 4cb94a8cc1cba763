"""Tests for bounded connection probing."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from chain_gateway.errors import ConnectionError
from chain_gateway.health import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS, ConnectionHealth


class ScriptedProbe:
    """Returns False until `succeed_on`, then True. None means never succeed."""

    def __init__(self, succeed_on=None, raises=None):
        self.succeed_on = succeed_on
        self.raises = raises
        self.count = 0

    async def __call__(self):
        self.count += 1
        if self.raises is not None and self.count != self.succeed_on:
            raise self.raises
        return self.succeed_on is not None and self.count >= self.succeed_on


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def test_always_failing_probe_exhausts_attempts():
    for attempts in (1, 4, 10):
        probe = ScriptedProbe()
        sleep = RecordingSleep()
        health = ConnectionHealth(probe, sleep=sleep)
        try:
            asyncio.run(health.await_ready(max_attempts=attempts, interval=0.5))
            assert False, "should be unreachable"
        except ConnectionError as e:
            assert "unreachable" in str(e)
        assert probe.count == attempts
        # No sleep after the final attempt
        assert sleep.delays == [0.5] * (attempts - 1)
    print("  [PASS] Failing probe runs exactly N attempts then raises")


def test_succeeds_on_attempt_k():
    for k in (1, 3, 5):
        probe = ScriptedProbe(succeed_on=k)
        sleep = RecordingSleep()
        health = ConnectionHealth(probe, max_attempts=5, interval=2.0, sleep=sleep)
        taken = asyncio.run(health.await_ready())
        assert taken == k
        assert probe.count == k
        assert sleep.delays == [2.0] * (k - 1)
    print("  [PASS] Returns after exactly k probes")


def test_raising_probe_counts_as_failure():
    probe = ScriptedProbe(succeed_on=3, raises=OSError("connection refused"))
    sleep = RecordingSleep()
    health = ConnectionHealth(probe, max_attempts=3, interval=0, sleep=sleep)
    assert asyncio.run(health.await_ready()) == 3

    failing = ConnectionHealth(ScriptedProbe(raises=OSError("refused")), max_attempts=2, sleep=sleep)
    assert asyncio.run(failing.probe()) is False
    assert isinstance(failing.last_error, OSError)
    print("  [PASS] Exceptions from the probe count as unhealthy")


def test_single_probe_does_not_retry():
    probe = ScriptedProbe()
    health = ConnectionHealth(probe, sleep=RecordingSleep())
    assert asyncio.run(health.probe()) is False
    assert probe.count == 1
    print("  [PASS] probe() is a single unretried check")


def test_defaults():
    health = ConnectionHealth(ScriptedProbe())
    assert health.max_attempts == DEFAULT_MAX_ATTEMPTS == 10
    assert health.interval == DEFAULT_INTERVAL == 3.0
    try:
        asyncio.run(health.await_ready(max_attempts=0))
        assert False, "zero attempts should be rejected"
    except ValueError:
        pass
    print("  [PASS] Defaults: 10 attempts, 3 seconds apart")


if __name__ == "__main__":
    print("Testing connection health...\n")
    test_always_failing_probe_exhausts_attempts()
    test_succeeds_on_attempt_k()
    test_raising_probe_counts_as_failure()
    test_single_probe_does_not_retry()
    test_defaults()
    print(f"\n{'='*50}")
    print("All 5 health tests passed!")
