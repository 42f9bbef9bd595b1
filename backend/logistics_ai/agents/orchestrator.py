"""
주문 처리 오케스트레이터 — Validation → Inventory → Fulfillment → Warehouse/Shipping 파이프라인.

- 주문 1건당 asyncio 태스크 1개가 파이프라인을 끝까지 실행한다.
- 각 단계는 별도 세션/트랜잭션으로 executor 스레드에서 실행하고, 성공한 단계까지만 커밋된다.
- 단계가 거절하면 주문을 CANCELLED로 전이하고 고객에게 사유를 알린다. 재시도는 없다.
- 예상치 못한 예외도 여기서 잡아 강제 취소한다. 결과는 항상 READY_FOR_PICKUP 또는 CANCELLED.
- 각 단계는 시작 상태를 확인한다. 다른 파이프라인이나 모니터링 스윕이 주문을 먼저 옮겼으면
  (버전 충돌 포함) 이 파이프라인은 아무것도 바꾸지 않고 멈춘다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm.exc import StaleDataError

from logistics_ai.agents.event_logger import AgentEventLogger
from logistics_ai.agents.fulfillment_agent import FulfillmentAgent
from logistics_ai.agents.inventory_agent import InventoryAgent
from logistics_ai.agents.lifecycle import cancel_order, status_event
from logistics_ai.agents.shipping_agent import ShippingAgent
from logistics_ai.agents.validation_agent import ValidationAgent
from logistics_ai.agents.warehouse_agent import WarehouseAgent
from logistics_ai.clock import Clock, system_clock, to_naive_utc
from logistics_ai.database import SessionLocal
from logistics_ai.exceptions import InvalidOrderError
from logistics_ai.metrics import MetricsSink
from logistics_ai.models import Order
from logistics_ai.models.agent_event import AgentType, EventSeverity, ExecutionMode
from logistics_ai.models.order import OrderStatus
from logistics_ai.notifier import Notifier, RecordingNotifier
from logistics_ai.repositories import OrderRepository, ProductRepository

logger = logging.getLogger(__name__)

ACTOR = "orchestrator"
LARGE_ORDER_WEIGHT_KG = 1000.0

# 이 상태에 도달하면 파이프라인 종료
PIPELINE_END_STATUSES = frozenset({OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED})

# 예상치 못한 예외로 취소될 때 호출자에게 돌려주는 일반 문구
INTERNAL_FAILURE_MESSAGE = "Order processing failed due to an internal error"


@dataclass
class StageOutcome:
    """단계 실행 결과 — 커밋 후에 알림/이벤트를 내보낸다."""
    status: OrderStatus | None
    message: str
    notices: list[tuple[str, str, str]] = field(default_factory=list)  # (channel, recipient, message)
    events: list[tuple[str, dict]] = field(default_factory=list)       # (topic, data)
    severity: EventSeverity = EventSeverity.INFO
    superseded: bool = False  # 다른 작성자가 먼저 주문을 진행시킴, 이 파이프라인은 조용히 멈춘다
    error: str | None = None  # 예상치 못한 예외 요약 (내부 기록용)

    def notify(self, channel: str, recipient: str, message: str):
        self.notices.append((channel, recipient, message))

    def publish(self, topic: str, data: dict):
        self.events.append((topic, data))


class LogisticsOrchestrator:
    def __init__(
        self,
        session_factory=SessionLocal,
        notifier: Notifier | None = None,
        clock: Clock = system_clock,
        metrics: MetricsSink | None = None,
        event_logger: AgentEventLogger | None = None,
        validation_agent: ValidationAgent | None = None,
        inventory_agent: InventoryAgent | None = None,
        fulfillment_agent: FulfillmentAgent | None = None,
        warehouse_agent: WarehouseAgent | None = None,
        shipping_agent: ShippingAgent | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or RecordingNotifier()
        self.clock = clock
        self.metrics = metrics or MetricsSink()
        self.event_logger = event_logger or AgentEventLogger(session_factory, clock)
        self.validation_agent = validation_agent or ValidationAgent(clock)
        self.inventory_agent = inventory_agent or InventoryAgent()
        self.fulfillment_agent = fulfillment_agent or FulfillmentAgent()
        self.warehouse_agent = warehouse_agent or WarehouseAgent()
        self.shipping_agent = shipping_agent or ShippingAgent(clock)

        # (에이전트, 단계 시작 시 주문이 있어야 하는 상태, 단계)
        self._stages = [
            (AgentType.VALIDATION, OrderStatus.RECEIVED, self._validate),
            (AgentType.INVENTORY, OrderStatus.VALIDATED, self._check_inventory),
            (AgentType.FULFILLMENT, OrderStatus.INVENTORY_CHECKED, self._fulfill),
            (AgentType.SHIPPING, OrderStatus.FULFILLED, self._schedule_shipment),
        ]
        self._tasks: set[asyncio.Task] = set()

    # ── 주문 접수 ──

    def create_order(
        self,
        client_id: str,
        client_name: str,
        delivery_address: str,
        requested_delivery_date: datetime,
        lines: list[tuple[str, int, float]],
    ) -> Order:
        """
        (sku, quantity, unit_price) 목록으로 RECEIVED 주문을 만든다.
        모르는 SKU면 ProductNotFoundError, 수량이 0 이하면 InvalidOrderError.
        """
        now = self.clock.now()
        with self.session_factory() as db:
            products = ProductRepository(db)
            order = Order(
                client_id=client_id,
                client_name=client_name,
                delivery_address=delivery_address,
                requested_delivery_date=to_naive_utc(requested_delivery_date),
                status=OrderStatus.RECEIVED,
                order_date=now,
                status_changed_at=now,
            )
            for sku, quantity, unit_price in lines:
                if quantity <= 0:
                    raise InvalidOrderError(f"Quantity for {sku} must be positive")
                order.add_item(products.require_by_sku(sku), quantity, unit_price)

            OrderRepository(db).add(order)
            db.commit()

        self.metrics.increment("orders.received")
        logger.info(f"[Orchestrator] 주문 #{order.id} 접수: {client_name} ({len(order.items)}개 품목)")

        self.notifier.notify_client(
            order.client_id,
            f"Order #{order.id} received and is being processed.",
        )
        self.notifier.notify_internal(
            "ORDER_PROCESSING",
            f"New order received: #{order.id} from {order.client_name} - {len(order.items)} items",
        )
        self.notifier.publish("orders.created", {
            "order_id": order.id,
            "client_id": order.client_id,
            "items": len(order.items),
            "total_weight_kg": round(order.total_weight_kg, 2),
        })
        return order

    def submit(self, order_id: int) -> asyncio.Task:
        """파이프라인을 asyncio 태스크로 예약한다. 실행 중인 이벤트 루프 안에서 호출해야 한다."""
        task = asyncio.create_task(self.process_order(order_id), name=f"order-pipeline-{order_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[Orchestrator] 파이프라인 태스크 실패 ({task.get_name()}): {task.exception()}")

    async def drain(self):
        """대기 중인 파이프라인 태스크가 모두 끝날 때까지 기다린다 (종료 시)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── 파이프라인 ──

    async def process_order(self, order_id: int) -> str:
        """주문 1건을 끝까지 처리하고 사람이 읽을 수 있는 결과 문자열을 반환한다."""
        loop = asyncio.get_running_loop()
        status = await loop.run_in_executor(None, self._current_status, order_id)
        if status != OrderStatus.RECEIVED:
            logger.info(f"[Orchestrator] 주문 #{order_id}는 처리 대상이 아님 (상태 {status.value})")
            return f"Order #{order_id} is not awaiting processing (status {status.value})"

        start = time.monotonic()
        logger.info(f"[Orchestrator] 주문 #{order_id} 파이프라인 시작")

        agent_type = AgentType.ORCHESTRATOR
        try:
            for agent_type, expected, stage in self._stages:
                try:
                    outcome = await loop.run_in_executor(None, self._run_stage, order_id, expected, stage)
                except StaleDataError:
                    # 같은 주문을 다른 파이프라인/스윕이 먼저 갱신함. 상태가 그대로면 예외로 취급
                    outcome = await loop.run_in_executor(None, self._check_superseded, order_id, expected)
                    if outcome is None:
                        raise
                if outcome.superseded:
                    break
                self._emit(outcome)
                if outcome.status in PIPELINE_END_STATUSES:
                    await self._record(agent_type, order_id, outcome, start)
                    break
        except Exception as e:
            logger.exception(f"[Orchestrator] 주문 #{order_id} 처리 중 예외 ({agent_type.value}): {e}")
            self.metrics.increment("pipeline.errors")
            outcome = await loop.run_in_executor(None, self._force_cancel, order_id, e)
            self._emit(outcome)
            await self._record(agent_type, order_id, outcome, start)

        if outcome.superseded:
            logger.info(f"[Orchestrator] 주문 #{order_id} 파이프라인 중단: {outcome.message}")
            return outcome.message

        elapsed = int((time.monotonic() - start) * 1000)
        final = outcome.status.value if outcome.status else "FAILED"
        self.metrics.record_processing(order_id, final, elapsed)
        logger.info(f"[Orchestrator] 주문 #{order_id} 파이프라인 종료: {final} ({elapsed}ms)")
        return outcome.message

    def _current_status(self, order_id: int) -> OrderStatus:
        with self.session_factory() as db:
            return OrderRepository(db).require(order_id).status

    def _run_stage(self, order_id: int, expected: OrderStatus, stage) -> StageOutcome:
        """
        단계 1개를 자체 트랜잭션으로 실행 (executor 스레드).
        주문이 이미 expected 상태를 벗어났으면 단계를 건너뛰고 superseded 결과를 돌려준다.
        """
        with self.session_factory() as db:
            order = OrderRepository(db).require(order_id)
            if order.status != expected:
                return self._superseded(order_id, order.status)
            outcome = stage(order)
            db.commit()
        return outcome

    def _check_superseded(self, order_id: int, expected: OrderStatus) -> StageOutcome | None:
        """버전 충돌 후 재조회. 다른 작성자가 상태를 옮겼으면 superseded, 그대로면 None."""
        with self.session_factory() as db:
            status = OrderRepository(db).require(order_id).status
        if status == expected:
            return None
        return self._superseded(order_id, status)

    @staticmethod
    def _superseded(order_id: int, status: OrderStatus) -> StageOutcome:
        return StageOutcome(
            status,
            f"Order #{order_id} is already being processed (status {status.value})",
            superseded=True,
        )

    def _advance(self, order, target: OrderStatus, reason: str) -> StageOutcome:
        previous = order.status
        order.transition_to(target, self.clock.now(), reason=reason, actor=ACTOR)
        outcome = StageOutcome(target, reason)
        outcome.publish("orders.status_changed", status_event(order, previous, ACTOR))
        return outcome

    def _cancel(self, order, reason: str, client_message: str, result_message: str) -> StageOutcome:
        previous = order.status
        released = cancel_order(order, self.clock.now(), reason, ACTOR, self.fulfillment_agent)
        outcome = StageOutcome(OrderStatus.CANCELLED, result_message, severity=EventSeverity.WARNING)
        outcome.notify("client", order.client_id, client_message)
        outcome.publish("orders.status_changed", status_event(order, previous, ACTOR))
        if released:
            outcome.publish("inventory.updated", {
                "order_id": order.id, "reason": "released", "items": [list(r) for r in released],
            })
        return outcome

    def _validate(self, order) -> StageOutcome:
        result = self.validation_agent.validate(order)
        if not result.valid:
            return self._cancel(
                order, result.reason,
                f"Order #{order.id} cancelled: {result.reason}",
                f"Order cancelled: {result.reason}",
            )

        outcome = self._advance(order, OrderStatus.VALIDATED, result.reason)
        outcome.notify(
            "internal", "VALIDATION",
            f"Order #{order.id} validated successfully - proceeding to inventory check",
        )
        return outcome

    def _check_inventory(self, order) -> StageOutcome:
        result = self.inventory_agent.check_availability(order)
        if not result.available:
            return self._cancel(
                order, result.message,
                f"Order #{order.id} cancelled: {result.message}",
                f"Order cancelled: {result.message}",
            )

        outcome = self._advance(order, OrderStatus.INVENTORY_CHECKED, result.message)
        for warning in result.warnings:
            outcome.notify("internal", "INVENTORY", f"Order #{order.id}: {warning}")
        return outcome

    def _fulfill(self, order) -> StageOutcome:
        result = self.fulfillment_agent.fulfill(order)
        if not result.success:
            return self._cancel(
                order, result.message,
                f"Order #{order.id} cancelled: {result.message}",
                f"Order fulfillment failed: {result.message}",
            )

        outcome = self._advance(order, OrderStatus.FULFILLED, result.message)
        outcome.publish("inventory.updated", {
            "order_id": order.id, "reason": "reserved", "items": [list(r) for r in result.reserved],
        })
        outcome.notify(
            "client", order.client_id,
            f"Order #{order.id} has been fulfilled. Inventory reserved and shipment is being scheduled.",
        )
        outcome.notify(
            "internal", "FULFILLMENT",
            f"Order #{order.id} fulfilled - Weight: {order.total_weight_kg:.1f}kg, "
            f"Volume: {order.total_volume_m3:.2f}m³",
        )
        if order.total_weight_kg > LARGE_ORDER_WEIGHT_KG:
            outcome.notify(
                "internal", "WAREHOUSE",
                f"Large order fulfilled: #{order.id} - Weight: {order.total_weight_kg:.1f}kg - "
                "Review inventory levels for affected products",
            )
        return outcome

    def _schedule_shipment(self, order) -> StageOutcome:
        instructions = self.warehouse_agent.generate_instructions(order)
        shipment = self.shipping_agent.schedule_shipment(order, instructions)

        outcome = self._advance(
            order, OrderStatus.READY_FOR_PICKUP, f"Shipment #{shipment.id} scheduled",
        )
        outcome.message = f"Order processed successfully. Shipment ID: {shipment.id}"
        outcome.notify(
            "client", order.client_id,
            f"Order #{order.id} processed successfully. Shipment #{shipment.id} scheduled for pickup "
            f"at {shipment.scheduled_pickup:%Y-%m-%d %H:%M}. Truck: {shipment.truck_id}",
        )
        outcome.publish("shipments.scheduled", {
            "shipment_id": shipment.id,
            "order_id": order.id,
            "truck_id": shipment.truck_id,
            "driver_id": shipment.driver_id,
            "scheduled_pickup": shipment.scheduled_pickup.isoformat(),
            "estimated_delivery": shipment.estimated_delivery.isoformat(),
        })
        return outcome

    def _force_cancel(self, order_id: int, error: Exception) -> StageOutcome:
        """
        예외 발생 후 새 세션에서 주문을 강제 취소한다.
        예외 내용은 로그와 에이전트 이벤트에만 남기고 고객/호출자에게는 일반 문구만 보낸다.
        """
        try:
            with self.session_factory() as db:
                order = OrderRepository(db).require(order_id)
                if order.is_terminal:
                    outcome = StageOutcome(order.status, INTERNAL_FAILURE_MESSAGE, severity=EventSeverity.CRITICAL)
                else:
                    outcome = self._cancel(
                        order, "Processing failed: internal error",
                        f"Order #{order_id} could not be processed due to an internal error",
                        INTERNAL_FAILURE_MESSAGE,
                    )
                    db.commit()
        except Exception as e:
            logger.error(f"[Orchestrator] 주문 #{order_id} 강제 취소 실패: {e}")
            outcome = StageOutcome(None, INTERNAL_FAILURE_MESSAGE)

        outcome.severity = EventSeverity.CRITICAL
        outcome.error = f"{type(error).__name__}: {error}"
        return outcome

    def _emit(self, outcome: StageOutcome):
        for channel, recipient, message in outcome.notices:
            getattr(self.notifier, f"notify_{channel}")(recipient, message)
        for topic, data in outcome.events:
            self.notifier.publish(topic, data)

    async def _record(self, stage: AgentType, order_id: int, outcome: StageOutcome, start: float):
        """파이프라인 종료 이벤트는 ORCHESTRATOR로 남기고, 끝난 단계는 payload에 기록한다."""
        cancelled = outcome.status != OrderStatus.READY_FOR_PICKUP
        payload = {"stage": stage.value}
        if outcome.error:
            payload["error"] = outcome.error
        await self.event_logger.log_event(
            AgentType.ORCHESTRATOR,
            "ORDER_CANCELLED" if cancelled else "ORDER_READY",
            outcome.severity,
            f"주문 #{order_id} {'취소' if cancelled else '출고 준비 완료'}",
            description=outcome.message,
            action_taken="CANCEL_ORDER" if cancelled else "SCHEDULE_SHIPMENT",
            execution_mode=ExecutionMode.AUTO,
            payload=payload,
            order_id=order_id,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
