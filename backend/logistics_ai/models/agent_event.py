"""
agent_events 테이블 — 파이프라인/모니터링 에이전트 활동 로그
- 단계 완료/취소, 자동 진행, 에스컬레이션, 재주문, 이상 감지를 남긴다.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Enum, DateTime, JSON

from logistics_ai.database import Base


class AgentType(str, enum.Enum):
    VALIDATION = "VALIDATION"
    INVENTORY = "INVENTORY"
    FULFILLMENT = "FULFILLMENT"
    WAREHOUSE = "WAREHOUSE"
    SHIPPING = "SHIPPING"
    DISPATCH = "DISPATCH"
    ORCHESTRATOR = "ORCHESTRATOR"
    MONITOR = "MONITOR"


class EventSeverity(str, enum.Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


class ExecutionMode(str, enum.Enum):
    AUTO = "AUTO"
    ESCALATED = "ESCALATED"


class AgentEvent(Base):
    __tablename__ = "agent_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), unique=True, nullable=False)  # UUID
    agent_type = Column(Enum(AgentType), nullable=False)
    event_type = Column(String(50), nullable=False)  # "ORDER_CANCELLED", "AUTO_ADVANCE" 등
    severity = Column(Enum(EventSeverity), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    payload = Column(JSON)
    action_taken = Column(String(200), nullable=True)
    execution_mode = Column(Enum(ExecutionMode), nullable=True)
    order_id = Column(Integer, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))
