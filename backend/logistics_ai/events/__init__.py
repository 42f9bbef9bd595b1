"""
이벤트 시스템 패키지
- 비동기 pub/sub 이벤트 버스
- Redis Streams 기반, 인메모리 fallback
"""

from logistics_ai.events.event_bus import AsyncEventBus, TOPICS

__all__ = ["AsyncEventBus", "TOPICS"]
