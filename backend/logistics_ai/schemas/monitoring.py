"""
모니터링 관련 Pydantic 스키마
"""

from datetime import datetime
from pydantic import BaseModel


class AgentEventResponse(BaseModel):
    id: int
    event_id: str
    agent_type: str
    event_type: str
    severity: str
    title: str
    description: str | None = None
    payload: dict | None = None
    action_taken: str | None = None
    execution_mode: str | None = None
    order_id: int | None = None
    duration_ms: int | None = None
    created_at: datetime


class MetricsResponse(BaseModel):
    counters: dict[str, int]
    processed_in_window: int
    average_processing_ms: float
    success_rate: float
    orders_by_status: dict[str, int]
    last_sweeps: dict[str, dict]


class NotificationResponse(BaseModel):
    channel: str
    recipient: str
    message: str
    created_at: datetime
