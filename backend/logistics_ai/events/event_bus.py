"""
비동기 이벤트 버스 — pub/sub 패턴
- Redis Streams 사용 시도, 실패 시 인메모리 asyncio.Queue로 fallback
- 토픽 기반 구독/발행
- 스윕 워커 스레드에서도 publish_threadsafe()로 발행할 수 있다.
"""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# 지원하는 토픽 목록
TOPICS = [
    "orders.created",               # 새 주문 접수
    "orders.status_changed",        # 주문 상태 변경
    "shipments.scheduled",          # 배차/일정 확정
    "shipments.status_changed",     # 운송 상태 변경
    "inventory.updated",            # 재고 변동 (예약, 해제, 재주문)
    "anomaly.detected",             # 이상 감지됨
    "monitoring.sweep_completed",   # 모니터링 스윕 1회 완료
    "notifications.client",         # 고객 알림
    "notifications.internal",       # 내부 부서 알림
    "notifications.urgent",         # 긴급 알림
]

# 핸들러 타입: async callable(topic, data)
Handler = Callable[[str, dict], Coroutine[Any, Any, None]]


class AsyncEventBus:
    """
    비동기 이벤트 버스 — Redis Streams 기반, 인메모리 fallback.

    사용법:
        bus = AsyncEventBus(redis_url="redis://localhost:6379")
        await bus.subscribe("orders.status_changed", my_handler)
        await bus.start()  # 구독자 루프 시작
        await bus.publish("orders.status_changed", {"order_id": 1, "new_status": "VALIDATED"})
    """

    def __init__(self, redis_url: str | None = "redis://localhost:6379"):
        self._redis_url = redis_url
        self._redis = None
        self._use_redis = False

        # 토픽별 핸들러 목록
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

        # 인메모리 큐 (fallback)
        self._queues: dict[str, asyncio.Queue] = {}

        # 최근 이벤트 저장 (조회용)
        self._recent_events: dict[str, list[dict]] = defaultdict(list)
        self._max_recent = 500

        # 상태
        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._consumer_tasks: list[asyncio.Task] = []

    @property
    def is_redis(self) -> bool:
        return self._use_redis

    @property
    def is_running(self) -> bool:
        return self._running

    async def _try_connect_redis(self):
        """Redis 연결 시도"""
        if not self._redis_url:
            return
        try:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(self._redis_url, decode_responses=True)
            await self._redis.ping()
            self._use_redis = True
            logger.info("AsyncEventBus: Redis 연결 성공")
        except Exception as e:
            logger.warning(f"AsyncEventBus: Redis 연결 실패 ({e}) — 인메모리 모드")
            self._redis = None
            self._use_redis = False

    async def subscribe(self, topic: str, handler: Handler):
        """토픽에 핸들러를 구독 등록한다."""
        self._handlers[topic].append(handler)
        if topic not in self._queues:
            self._queues[topic] = asyncio.Queue(maxsize=10000)
        logger.debug(f"구독 등록: {topic} → {handler.__qualname__}")

    async def publish(self, topic: str, data: dict):
        """이벤트를 토픽에 발행한다."""
        event = {
            "topic": topic,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        self._recent_events[topic].append(event)
        if len(self._recent_events[topic]) > self._max_recent:
            self._recent_events[topic] = self._recent_events[topic][-self._max_recent:]

        if self._use_redis and self._redis:
            try:
                serialized = {k: json.dumps(v, default=str) if isinstance(v, (dict, list)) else str(v)
                              for k, v in data.items()}
                serialized["_timestamp"] = event["timestamp"]
                await self._redis.xadd(topic, serialized, maxlen=1000)
            except Exception as e:
                logger.error(f"Redis publish 실패 ({topic}): {e}")
                await self._enqueue_inmemory(topic, event)
        else:
            await self._enqueue_inmemory(topic, event)

    def publish_threadsafe(self, topic: str, data: dict) -> bool:
        """
        다른 스레드(스윕 워커 등)에서 fire-and-forget 발행.
        이벤트 루프가 없으면 False를 반환하고 아무것도 하지 않는다.
        """
        loop = self._loop
        if loop is None or loop.is_closed() or not self._running:
            return False
        future = asyncio.run_coroutine_threadsafe(self.publish(topic, data), loop)
        future.add_done_callback(_log_publish_failure)
        return True

    async def _enqueue_inmemory(self, topic: str, event: dict):
        """인메모리 큐에 이벤트를 넣는다. 구독자가 없는 토픽은 최근 이벤트에만 남긴다."""
        queue = self._queues.get(topic)
        if queue is None:
            return
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            # 오래된 이벤트 버리고 새 이벤트 추가
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            queue.put_nowait(event)

    async def _inmemory_consumer(self, topic: str):
        """인메모리 큐 소비자 루프"""
        queue = self._queues.get(topic)
        if not queue:
            return

        while self._running:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=1.0)
                await self._dispatch(topic, event["data"])
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"인메모리 소비자 에러 ({topic}): {e}")
                await asyncio.sleep(0.1)

    async def _redis_consumer(self, topic: str):
        """Redis Streams 소비자 루프"""
        last_id = "$"  # 새 메시지만 구독
        while self._running:
            try:
                results = await self._redis.xread({topic: last_id}, count=10, block=1000)
                for _stream, messages in results:
                    for msg_id, msg_data in messages:
                        last_id = msg_id
                        data = {k: v for k, v in msg_data.items() if k != "_timestamp"}
                        for k, v in data.items():
                            try:
                                data[k] = json.loads(v)
                            except (json.JSONDecodeError, TypeError):
                                pass
                        await self._dispatch(topic, data)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Redis 소비자 에러 ({topic}): {e}")
                await asyncio.sleep(1.0)

    async def _dispatch(self, topic: str, data: dict):
        """핸들러들에게 이벤트를 전달한다."""
        for handler in self._handlers.get(topic, []):
            try:
                await handler(topic, data)
            except Exception as e:
                logger.error(f"핸들러 에러 ({topic}, {handler.__qualname__}): {e}")

    async def start(self):
        """이벤트 버스 시작 — 구독자 루프를 생성한다."""
        await self._try_connect_redis()
        self._loop = asyncio.get_running_loop()
        self._running = True

        for topic in self._handlers:
            if self._use_redis:
                task = asyncio.create_task(self._redis_consumer(topic), name=f"redis-consumer-{topic}")
            else:
                task = asyncio.create_task(self._inmemory_consumer(topic), name=f"inmemory-consumer-{topic}")
            self._consumer_tasks.append(task)

        logger.info(
            f"AsyncEventBus 시작: {len(self._consumer_tasks)}개 소비자 "
            f"({'Redis' if self._use_redis else '인메모리'})"
        )

    async def stop(self):
        """이벤트 버스 중지"""
        self._running = False
        for task in self._consumer_tasks:
            task.cancel()
        if self._consumer_tasks:
            await asyncio.gather(*self._consumer_tasks, return_exceptions=True)
        self._consumer_tasks = []

        if self._redis:
            await self._redis.aclose()
            self._redis = None
        self._loop = None

        logger.info("AsyncEventBus 중지 완료")

    def get_recent(self, topic: str, count: int = 10) -> list[dict]:
        """최근 이벤트 조회 (동기)"""
        return self._recent_events.get(topic, [])[-count:]


def _log_publish_failure(future):
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"이벤트 발행 실패: {exc}")
