"""
인메모리 메트릭 — 오케스트레이터와 모니터링 엔진에 주입되는 카운터/처리시간 윈도우.
전역 싱글톤을 두지 않고 앱 수명주기에서 하나를 만들어 넘긴다.
"""

import threading
from collections import Counter, deque
from dataclasses import dataclass


@dataclass
class ProcessingSample:
    order_id: int
    outcome: str  # "READY_FOR_PICKUP" | "CANCELLED"
    duration_ms: int


class MetricsSink:
    """스레드 안전 카운터 + 최근 주문 처리시간 이동 윈도우"""

    def __init__(self, window: int = 1000):
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._samples: deque[ProcessingSample] = deque(maxlen=window)

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] += amount

    def count(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def record_processing(self, order_id: int, outcome: str, duration_ms: int):
        with self._lock:
            self._samples.append(ProcessingSample(order_id, outcome, duration_ms))
            self._counters[f"orders.{outcome.lower()}"] += 1

    @property
    def average_processing_ms(self) -> float:
        with self._lock:
            if not self._samples:
                return 0.0
            return sum(s.duration_ms for s in self._samples) / len(self._samples)

    def success_rate(self) -> float:
        """최근 윈도우 기준 READY_FOR_PICKUP 도달 비율"""
        with self._lock:
            if not self._samples:
                return 0.0
            ok = sum(1 for s in self._samples if s.outcome == "READY_FOR_PICKUP")
            return ok / len(self._samples)

    def snapshot(self) -> dict:
        with self._lock:
            counters = dict(self._counters)
            samples = len(self._samples)
        return {
            "counters": counters,
            "processed_in_window": samples,
            "average_processing_ms": round(self.average_processing_ms, 1),
            "success_rate": round(self.success_rate(), 3),
        }

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._samples.clear()
