"""
알림 협력자 — 고객/내부 부서/긴급 알림 계약과 구현.
- 모든 알림은 fire-and-forget: 전달 실패가 파이프라인을 멈추지 않는다.
- NotificationService는 로그를 남기고, 이벤트 버스가 연결돼 있으면 notifications.* 토픽으로 발행한다.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_client(self, client_id: str, message: str) -> None: ...

    def notify_internal(self, department: str, message: str) -> None: ...

    def notify_urgent(self, recipient: str, message: str) -> None: ...

    def publish(self, topic: str, data: dict) -> None: ...


@dataclass
class Notification:
    channel: str  # "client" | "internal" | "urgent"
    recipient: str
    message: str
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None)
    )

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "recipient": self.recipient,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class RecordingNotifier:
    """메모리에 알림과 발행 이벤트를 보관한다. 테스트와 최근 알림 조회에 사용."""

    def __init__(self, maxlen: int | None = None):
        self._lock = threading.Lock()
        self.notifications: deque[Notification] = deque(maxlen=maxlen)
        self.events: deque[tuple[str, dict]] = deque(maxlen=maxlen)

    def notify_client(self, client_id: str, message: str) -> None:
        self._record("client", client_id, message)

    def notify_internal(self, department: str, message: str) -> None:
        self._record("internal", department, message)

    def notify_urgent(self, recipient: str, message: str) -> None:
        self._record("urgent", recipient, message)

    def publish(self, topic: str, data: dict) -> None:
        with self._lock:
            self.events.append((topic, data))

    def _record(self, channel: str, recipient: str, message: str) -> Notification:
        notification = Notification(channel=channel, recipient=recipient, message=message)
        with self._lock:
            self.notifications.append(notification)
        return notification

    # --- 조회 헬퍼 ---

    def messages(self, channel: str | None = None, recipient: str | None = None) -> list[str]:
        with self._lock:
            return [
                n.message for n in self.notifications
                if (channel is None or n.channel == channel)
                and (recipient is None or n.recipient == recipient)
            ]

    @property
    def client_messages(self) -> list[str]:
        return self.messages("client")

    @property
    def internal_messages(self) -> list[str]:
        return self.messages("internal")

    @property
    def urgent_messages(self) -> list[str]:
        return self.messages("urgent")

    def topics(self) -> list[str]:
        with self._lock:
            return [topic for topic, _ in self.events]

    def recent(self, count: int = 50) -> list[dict]:
        with self._lock:
            return [n.to_dict() for n in list(self.notifications)[-count:]]


class NotificationService(RecordingNotifier):
    """
    운영용 알림 서비스.

    attach(bus)로 AsyncEventBus를 연결하면 알림/이벤트를 버스로 발행한다.
    버스가 없거나 중지돼 있으면 로그와 최근 알림 버퍼에만 남긴다.
    """

    def __init__(self, bus=None, maxlen: int = 500):
        super().__init__(maxlen=maxlen)
        self._bus = bus

    def attach(self, bus):
        self._bus = bus

    def detach(self):
        self._bus = None

    def notify_client(self, client_id: str, message: str) -> None:
        logger.info(f"[고객 알림] {client_id}: {message}")
        self._deliver("client", client_id, message)

    def notify_internal(self, department: str, message: str) -> None:
        logger.info(f"[내부 알림] {department}: {message}")
        self._deliver("internal", department, message)

    def notify_urgent(self, recipient: str, message: str) -> None:
        logger.warning(f"[긴급 알림] {recipient}: {message}")
        self._deliver("urgent", recipient, message)

    def publish(self, topic: str, data: dict) -> None:
        super().publish(topic, data)
        self._send(topic, data)

    def _deliver(self, channel: str, recipient: str, message: str):
        notification = self._record(channel, recipient, message)
        self._send(f"notifications.{channel}", notification.to_dict())

    def _send(self, topic: str, data: dict):
        bus = self._bus
        if bus is None:
            return
        try:
            bus.publish_threadsafe(topic, data)
        except Exception as e:
            logger.error(f"알림 발행 실패 ({topic}): {e}")
