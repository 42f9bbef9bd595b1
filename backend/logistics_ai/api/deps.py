"""
API 의존성 — 앱 수명주기 동안 공유하는 서비스 묶음과 DB 세션 제공.
- main.py lifespan(또는 테스트)이 set_services()로 교체할 수 있다.
"""

import random
from dataclasses import dataclass

from fastapi import Depends

from logistics_ai.agents.dispatch_agent import DispatchAgent
from logistics_ai.agents.event_logger import AgentEventLogger
from logistics_ai.agents.fulfillment_agent import FulfillmentAgent
from logistics_ai.agents.llm_client import explain_anomaly
from logistics_ai.agents.monitor_agent import AutonomousMonitor
from logistics_ai.agents.orchestrator import LogisticsOrchestrator
from logistics_ai.agents.scheduler import SweepScheduler
from logistics_ai.clock import Clock, system_clock
from logistics_ai.config import settings
from logistics_ai.database import SessionLocal, engine as default_engine
from logistics_ai.events.event_bus import AsyncEventBus
from logistics_ai.metrics import MetricsSink
from logistics_ai.notifier import NotificationService


@dataclass
class Services:
    engine: object
    session_factory: object
    clock: Clock
    notifier: NotificationService
    metrics: MetricsSink
    event_logger: AgentEventLogger
    orchestrator: LogisticsOrchestrator
    dispatcher: DispatchAgent
    monitor: AutonomousMonitor
    scheduler: SweepScheduler
    event_bus: AsyncEventBus | None = None


def sweep_intervals() -> dict[str, float]:
    return {
        "stuck_orders": settings.STUCK_ORDER_SWEEP_SECONDS,
        "delivery_predictions": settings.DELIVERY_PREDICTION_SWEEP_SECONDS,
        "inventory_reorder": settings.INVENTORY_REORDER_SWEEP_SECONDS,
        "anomalies": settings.ANOMALY_SWEEP_SECONDS,
        "routes": settings.ROUTE_OPTIMIZATION_SWEEP_SECONDS,
    }


def build_services(
    engine=default_engine,
    session_factory=SessionLocal,
    clock: Clock = system_clock,
    rng: random.Random | None = None,
    explainer=explain_anomaly,
) -> Services:
    """협력자를 한 번씩만 만들어 에이전트들에 주입한다."""
    notifier = NotificationService()
    metrics = MetricsSink()
    event_logger = AgentEventLogger(session_factory, clock)
    fulfillment = FulfillmentAgent()

    orchestrator = LogisticsOrchestrator(
        session_factory, notifier, clock, metrics, event_logger, fulfillment_agent=fulfillment,
    )
    dispatcher = DispatchAgent(session_factory, notifier, clock, fulfillment, event_logger)
    monitor = AutonomousMonitor(
        session_factory, notifier, clock,
        rng=rng or random.Random(settings.MONITORING_RANDOM_SEED),
        metrics=metrics,
        event_logger=event_logger,
        explainer=explainer,
        fulfillment_agent=fulfillment,
    )
    scheduler = SweepScheduler(monitor.sweeps(), sweep_intervals())

    return Services(
        engine=engine,
        session_factory=session_factory,
        clock=clock,
        notifier=notifier,
        metrics=metrics,
        event_logger=event_logger,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        monitor=monitor,
        scheduler=scheduler,
    )


_services: Services | None = None


def set_services(services: Services | None):
    global _services
    _services = services


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def get_db(services: Services = Depends(get_services)):
    """FastAPI Depends용 DB 세션 제공."""
    db = services.session_factory()
    try:
        yield db
    finally:
        db.close()
