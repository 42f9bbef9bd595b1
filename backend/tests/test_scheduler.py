import asyncio

import pytest

from logistics_ai.agents.scheduler import SweepScheduler


def _counting_sweep(name: str, calls: list):
    def sweep() -> dict:
        calls.append(name)
        return {"sweep": name, "examined": len(calls)}

    return sweep


def _failing_sweep() -> dict:
    raise RuntimeError("database unavailable")


class TestSweepScheduler:
    def test_every_sweep_needs_an_interval(self):
        with pytest.raises(ValueError):
            SweepScheduler({"a": lambda: {}, "b": lambda: {}}, {"a": 1.0})

    async def test_run_now_executes_and_remembers_result(self):
        calls = []
        scheduler = SweepScheduler({"routes": _counting_sweep("routes", calls)}, {"routes": 60.0})

        result = await scheduler.run_now("routes")

        assert result == {"sweep": "routes", "examined": 1}
        assert scheduler.last_result("routes") == result
        assert scheduler.last_result("anomalies") is None

    async def test_unknown_sweep(self):
        scheduler = SweepScheduler({"routes": lambda: {}}, {"routes": 60.0})

        with pytest.raises(KeyError):
            await scheduler.run_now("weather")

    async def test_sweep_exception_is_captured(self):
        scheduler = SweepScheduler({"anomalies": _failing_sweep}, {"anomalies": 60.0})

        result = await scheduler.run_now("anomalies")

        assert result == {"sweep": "anomalies", "error": "database unavailable"}

    async def test_periodic_loops_run_independently(self):
        calls = []
        scheduler = SweepScheduler(
            {
                "fast": _counting_sweep("fast", calls),
                "broken": _failing_sweep,
                "slow": _counting_sweep("slow", calls),
            },
            {"fast": 0.01, "broken": 0.01, "slow": 60.0},
        )

        await scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.2)
        await scheduler.stop()

        assert not scheduler.is_running
        assert calls.count("fast") >= 2
        assert "slow" not in calls
        assert scheduler.last_result("broken")["error"] == "database unavailable"

    async def test_start_twice_keeps_one_loop_per_sweep(self):
        scheduler = SweepScheduler({"routes": lambda: {}}, {"routes": 60.0})

        await scheduler.start()
        await scheduler.start()
        assert scheduler.names == ["routes"]
        await scheduler.stop()
