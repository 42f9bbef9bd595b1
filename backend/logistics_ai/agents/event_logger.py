"""
에이전트 이벤트 로거 — 파이프라인/모니터링 활동을 agent_events 테이블에 기록한다.
- 스윕 워커 스레드에서 쓰는 동기 log()
- 이벤트 루프에서 쓰는 비동기 log_event() (블로킹 DB 작업은 run_in_executor)
- 기록 실패는 로그만 남기고 호출자의 업무 흐름을 막지 않는다.
"""

import asyncio
import logging
import uuid

from logistics_ai.clock import Clock, system_clock
from logistics_ai.database import SessionLocal
from logistics_ai.models.agent_event import (
    AgentEvent, AgentType, EventSeverity, ExecutionMode,
)

logger = logging.getLogger(__name__)


class AgentEventLogger:
    """에이전트 이벤트 로거 — agent_events 테이블에 기록"""

    def __init__(self, session_factory=SessionLocal, clock: Clock = system_clock):
        self.session_factory = session_factory
        self.clock = clock

    def log(
        self,
        agent_type: AgentType,
        event_type: str,
        severity: EventSeverity,
        title: str,
        description: str = "",
        payload: dict | None = None,
        action_taken: str | None = None,
        execution_mode: ExecutionMode | None = None,
        order_id: int | None = None,
        duration_ms: int | None = None,
    ) -> AgentEvent | None:
        """이벤트를 별도 세션으로 저장하고 반환한다. 실패하면 None."""
        event = AgentEvent(
            event_id=str(uuid.uuid4()),
            agent_type=agent_type,
            event_type=event_type,
            severity=severity,
            title=title[:200],
            description=description,
            payload=payload,
            action_taken=action_taken,
            execution_mode=execution_mode,
            order_id=order_id,
            duration_ms=duration_ms,
            created_at=self.clock.now(),
        )

        try:
            self._save_to_db(event)
        except Exception as e:
            logger.error(f"에이전트 이벤트 DB 저장 실패 ({event_type}): {e}")
            return None

        logger.info(f"[AgentEvent] {agent_type.value} | {event_type} [{severity.value}] | {title}")
        return event

    async def log_event(self, *args, **kwargs) -> AgentEvent | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.log(*args, **kwargs))

    def _save_to_db(self, event: AgentEvent):
        """블로킹 DB 저장"""
        db = self.session_factory()
        try:
            db.add(event)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
