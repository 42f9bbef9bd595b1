"""
스윕 스케줄러 — 모니터링 스윕마다 독립된 asyncio 태스크를 두고 고정 주기로 실행한다.
- 스윕 본문은 블로킹 DB 작업이므로 executor 스레드에서 실행
- 같은 스윕은 겹쳐 실행되지 않는다 (스윕별 asyncio.Lock)
- run_now(name)으로 즉시 1회 실행 (API 수동 트리거)
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

Sweep = Callable[[], dict]


class SweepScheduler:
    def __init__(self, sweeps: dict[str, Sweep], intervals: dict[str, float]):
        missing = set(sweeps) - set(intervals)
        if missing:
            raise ValueError(f"interval missing for sweeps: {sorted(missing)}")
        self._sweeps = dict(sweeps)
        self._intervals = dict(intervals)
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._last_results: dict[str, dict] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def names(self) -> list[str]:
        return list(self._sweeps)

    def last_result(self, name: str) -> dict | None:
        return self._last_results.get(name)

    async def start(self):
        if self._running:
            return
        self._running = True
        for name in self._sweeps:
            self._tasks[name] = asyncio.create_task(self._loop(name), name=f"sweep-{name}")
        logger.info(
            "SweepScheduler 시작: "
            + ", ".join(f"{n}({self._intervals[n]:.0f}s)" for n in self._sweeps)
        )

    async def stop(self):
        self._running = False
        for task in self._tasks.values():
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks = {}
        logger.info("SweepScheduler 중지 완료")

    async def _loop(self, name: str):
        interval = self._intervals[name]
        while self._running:
            try:
                await asyncio.sleep(interval)
                await self.run_now(name)
            except asyncio.CancelledError:
                break
            except Exception as e:
                # run_now가 스윕 예외를 삼키므로 여기 오는 건 스케줄러 자체 오류
                logger.error(f"스윕 루프 에러 ({name}): {e}")

    async def run_now(self, name: str) -> dict:
        """스윕 1회 실행. 모르는 이름이면 KeyError."""
        sweep = self._sweeps[name]
        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(None, sweep)
            except Exception as e:
                logger.exception(f"스윕 실행 실패 ({name}): {e}")
                result = {"sweep": name, "error": str(e)}
        self._last_results[name] = result
        return result
