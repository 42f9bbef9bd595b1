"""
시간 소스 — 영업시간 보정, 상태 체류 시간 계산을 결정적으로 테스트하기 위해 주입한다.
모든 시각은 naive UTC로 통일한다 (SQLite 호환).
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """실제 시스템 시각"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """고정 시각 — 테스트/리플레이용. advance()로 시간을 앞당긴다."""

    def __init__(self, current: datetime):
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime):
        self._current = current

    def advance(self, **kwargs) -> datetime:
        self._current = self._current + timedelta(**kwargs)
        return self._current


system_clock = SystemClock()


def to_naive_utc(moment: datetime) -> datetime:
    """외부 입력 시각(타임존 포함 가능)을 naive UTC로 맞춘다."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)
