"""
모니터링 API — 스윕 수동 실행, 에이전트 이벤트 로그, 메트릭, 최근 알림
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from logistics_ai.api.deps import Services, get_db, get_services
from logistics_ai.models import AgentEvent, Order
from logistics_ai.schemas.monitoring import (
    AgentEventResponse, MetricsResponse, NotificationResponse,
)

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])


@router.post("/sweeps/{name}")
async def run_sweep(name: str, services: Services = Depends(get_services)) -> dict:
    """스윕 즉시 1회 실행 후 요약 반환"""
    if name not in services.scheduler.names:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown sweep: {name}. Available: {', '.join(services.scheduler.names)}",
        )
    return await services.scheduler.run_now(name)


@router.get("/events", response_model=list[AgentEventResponse])
def list_events(
    agent_type: str | None = Query(None, description="에이전트 타입 필터 (MONITOR, ORCHESTRATOR, ...)"),
    event_type: str | None = Query(None, description="이벤트 타입 필터"),
    order_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """에이전트 이벤트 로그 (최신순)"""
    query = db.query(AgentEvent)
    if agent_type:
        query = query.filter(AgentEvent.agent_type == agent_type)
    if event_type:
        query = query.filter(AgentEvent.event_type == event_type)
    if order_id is not None:
        query = query.filter(AgentEvent.order_id == order_id)

    events = query.order_by(desc(AgentEvent.created_at), desc(AgentEvent.id)).limit(limit).all()
    return [
        AgentEventResponse(
            id=e.id,
            event_id=e.event_id,
            agent_type=e.agent_type.value,
            event_type=e.event_type,
            severity=e.severity.value,
            title=e.title,
            description=e.description,
            payload=e.payload,
            action_taken=e.action_taken,
            execution_mode=e.execution_mode.value if e.execution_mode else None,
            order_id=e.order_id,
            duration_ms=e.duration_ms,
            created_at=e.created_at,
        )
        for e in events
    ]


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(services: Services = Depends(get_services), db: Session = Depends(get_db)):
    snapshot = services.metrics.snapshot()
    rows = db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    return MetricsResponse(
        **snapshot,
        orders_by_status={status.value: count for status, count in rows},
        last_sweeps={
            name: result for name in services.scheduler.names
            if (result := services.scheduler.last_result(name)) is not None
        },
    )


@router.get("/notifications", response_model=list[NotificationResponse])
def recent_notifications(
    limit: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
):
    return services.notifier.recent(limit)
