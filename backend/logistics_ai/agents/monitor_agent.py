"""
자율 모니터링 엔진 — 주기적으로 실행되는 5개 스윕.

- stuck_orders:          상태 체류 시간이 기대치를 넘은 주문 자동 진행/에스컬레이션 + 배송 지연 처리
- delivery_predictions:  운송 중 도착 예정 시각 보정 (교통/날씨/경로 절감 시뮬레이션)
- inventory_reorder:     저재고 품목 수요 예측 후 자동 보충
- anomalies:             처리 지연 주문, 카테고리 수요 급증 감지
- routes:                트럭별 운송 경로 재정렬 후 도착 예정 시각 재산정

각 스윕은 동기 메서드이며 스케줄러가 워커 스레드에서 호출한다.
엔티티 단위로 커밋/롤백하고, 한 건의 실패가 스윕 전체를 멈추지 않는다.
"""

import logging
import random
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from itertools import groupby

from logistics_ai.agents import rules
from logistics_ai.agents.event_logger import AgentEventLogger
from logistics_ai.agents.fulfillment_agent import FulfillmentAgent
from logistics_ai.agents.lifecycle import status_event
from logistics_ai.agents.llm_client import explain_anomaly
from logistics_ai.agents.rules import AdvanceDecision
from logistics_ai.agents.shipping_agent import ShippingAgent
from logistics_ai.agents.validation_agent import ValidationAgent
from logistics_ai.agents.warehouse_agent import WarehouseAgent
from logistics_ai.clock import Clock, system_clock
from logistics_ai.database import SessionLocal
from logistics_ai.metrics import MetricsSink
from logistics_ai.models.agent_event import AgentType, EventSeverity, ExecutionMode
from logistics_ai.notifier import Notifier, RecordingNotifier
from logistics_ai.repositories import OrderRepository, ProductRepository, ShipmentRepository

logger = logging.getLogger(__name__)

ACTOR = "monitor"


@dataclass
class AdvanceContext:
    """자동 진행 규칙이 쓰는 협력자 묶음"""
    products: ProductRepository
    validation_agent: ValidationAgent
    fulfillment_agent: FulfillmentAgent
    warehouse_agent: WarehouseAgent
    shipping_agent: ShippingAgent


def _summary(sweep: str) -> dict:
    return {"sweep": sweep, "examined": 0, "changed": 0, "escalated": 0, "failed": 0}


class AutonomousMonitor:
    def __init__(
        self,
        session_factory=SessionLocal,
        notifier: Notifier | None = None,
        clock: Clock = system_clock,
        rng: random.Random | None = None,
        metrics: MetricsSink | None = None,
        event_logger: AgentEventLogger | None = None,
        explainer=explain_anomaly,
        validation_agent: ValidationAgent | None = None,
        fulfillment_agent: FulfillmentAgent | None = None,
        warehouse_agent: WarehouseAgent | None = None,
        shipping_agent: ShippingAgent | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or RecordingNotifier()
        self.clock = clock
        self.rng = rng or random.Random()
        self.metrics = metrics or MetricsSink()
        self.event_logger = event_logger or AgentEventLogger(session_factory, clock)
        self.explainer = explainer
        self.validation_agent = validation_agent or ValidationAgent(clock)
        self.fulfillment_agent = fulfillment_agent or FulfillmentAgent()
        self.warehouse_agent = warehouse_agent or WarehouseAgent()
        self.shipping_agent = shipping_agent or ShippingAgent(clock)

    def sweeps(self) -> dict:
        """스윕 이름 → 호출 가능 객체"""
        return {
            "stuck_orders": self.resolve_stuck_orders,
            "delivery_predictions": self.adjust_delivery_predictions,
            "inventory_reorder": self.reorder_inventory,
            "anomalies": self.detect_anomalies,
            "routes": self.optimize_routes,
        }

    # ── 1. 정체 주문 ──

    def resolve_stuck_orders(self) -> dict:
        summary = _summary("stuck_orders")
        summary.update(rescheduled=0)
        now = self.clock.now()
        # 기대 시간이 가장 짧은 상태 기준으로 1차 필터 후 상태별로 다시 거른다
        shortest = min(rules.EXPECTED_PROCESSING_HOURS.values())

        with self.session_factory() as db:
            orders = OrderRepository(db)
            stuck_ids = [
                o.id for o in orders.find_in_status_since_before(now - timedelta(hours=shortest))
                if o.hours_in_status(now) > rules.expected_processing_hours(o.status)
            ]

            for order_id in stuck_ids:
                summary["examined"] += 1
                try:
                    result = self._resolve_stuck(db, orders.require(order_id), now)
                    if result:
                        summary[result] += 1
                except Exception as e:
                    db.rollback()
                    summary["failed"] += 1
                    logger.error(f"[Monitor] 정체 주문 #{order_id} 처리 실패: {e}")

            self._check_overdue_deliveries(db, now, summary)

        return self._finish(summary)

    def _resolve_stuck(self, db, order, now) -> str | None:
        if order.is_terminal or order.hours_in_status(now) <= rules.expected_processing_hours(order.status):
            return None  # 조회 이후 다른 쪽에서 처리됨

        hours = order.hours_in_status(now)
        current = order.status
        logger.warning(f"[Monitor] 정체 주문 감지: #{order.id} {current.value} {hours:.1f}시간")

        decision = self._try_advance(db, order, now)
        if decision.advance:
            target = order.status
            self.notifier.notify_internal(
                "AI_AUTOMATION",
                f"Auto-advanced order #{order.id} from {current.value} to {target.value}",
            )
            self.notifier.publish("orders.status_changed", status_event(order, current, ACTOR))
            self.event_logger.log(
                AgentType.MONITOR, "AUTO_ADVANCE", EventSeverity.INFO,
                f"주문 #{order.id} 자동 진행 {current.value} → {target.value}",
                description=decision.reason,
                payload={"hours_in_status": round(hours, 2)},
                action_taken=f"ADVANCE_TO_{target.value}",
                execution_mode=ExecutionMode.AUTO,
                order_id=order.id,
            )
            return "changed"

        self.notifier.notify_urgent(
            "ORDER_MANAGEMENT",
            f"Order #{order.id} has been stuck in {current.value} status for excessive time "
            f"({hours:.1f}h). Manual intervention required. Reason: {decision.reason}",
        )
        self.event_logger.log(
            AgentType.MONITOR, "STUCK_ORDER_ESCALATED", EventSeverity.WARNING,
            f"주문 #{order.id} {current.value} 정체 — 수동 개입 필요",
            description=decision.reason,
            payload={"status": current.value, "hours_in_status": round(hours, 2)},
            action_taken="NOTIFY_ORDER_MANAGEMENT",
            execution_mode=ExecutionMode.ESCALATED,
            order_id=order.id,
        )
        return "escalated"

    def _try_advance(self, db, order, now) -> AdvanceDecision:
        """한 단계 전진을 시도하고 커밋한다. 거절/실패면 롤백 후 사유 반환."""
        rule = rules.AUTO_ADVANCE_RULES.get(order.status)
        if rule is None:
            return AdvanceDecision(False, f"no automatic successor for {order.status.value}")

        ctx = AdvanceContext(
            products=ProductRepository(db),
            validation_agent=self.validation_agent,
            fulfillment_agent=self.fulfillment_agent,
            warehouse_agent=self.warehouse_agent,
            shipping_agent=self.shipping_agent,
        )
        try:
            decision = rule.check(order, ctx)
            if decision.advance:
                decision = rule.apply(order, ctx)
            if not decision.advance:
                db.rollback()
                return decision

            order.transition_to(
                rules.NEXT_STATUS[rule.status], now, reason=f"Auto-advanced: {decision.reason}", actor=ACTOR,
            )
            db.commit()
            return decision
        except Exception as e:
            db.rollback()
            logger.error(f"[Monitor] 주문 #{order.id} 자동 진행 실패: {e}")
            return AdvanceDecision(False, f"auto-advance failed: {e}")

    def _check_overdue_deliveries(self, db, now, summary: dict):
        """도착 예정 시각이 지난 운송 — 경미하면 재조정, 아니면 에스컬레이션"""
        shipments = ShipmentRepository(db)
        overdue = [s for s in shipments.find_in_transit() if s.is_overdue(now)]

        for shipment in overdue:
            summary["examined"] += 1
            try:
                hours_overdue = (now - shipment.estimated_delivery).total_seconds() / 3600
                order = shipment.order
                if hours_overdue < rules.OVERDUE_RESCHEDULE_LIMIT_HOURS:
                    new_eta = now + timedelta(hours=rules.RESCHEDULE_OFFSET_HOURS)
                    shipment.estimated_delivery = new_eta
                    db.commit()
                    summary["rescheduled"] += 1
                    self.notifier.notify_client(
                        order.client_id,
                        f"Auto-reschedule: Your order #{order.id} delivery has been rescheduled to "
                        f"{new_eta:%Y-%m-%d %H:%M} due to logistics optimization.",
                    )
                    self.event_logger.log(
                        AgentType.MONITOR, "DELIVERY_RESCHEDULED", EventSeverity.INFO,
                        f"운송 #{shipment.id} 도착 예정 재조정",
                        payload={"hours_overdue": round(hours_overdue, 2), "new_eta": new_eta.isoformat()},
                        action_taken="RESCHEDULE_DELIVERY",
                        execution_mode=ExecutionMode.AUTO,
                        order_id=order.id,
                    )
                else:
                    summary["escalated"] += 1
                    self.notifier.notify_urgent(
                        "DELIVERY_MANAGEMENT",
                        f"Shipment #{shipment.id} is significantly overdue. Original estimate: "
                        f"{shipment.estimated_delivery:%Y-%m-%d %H:%M}. Manual intervention required.",
                    )
                    self.event_logger.log(
                        AgentType.MONITOR, "DELIVERY_OVERDUE", EventSeverity.CRITICAL,
                        f"운송 #{shipment.id} 배송 지연 {hours_overdue:.1f}시간",
                        payload={"hours_overdue": round(hours_overdue, 2)},
                        action_taken="NOTIFY_DELIVERY_MANAGEMENT",
                        execution_mode=ExecutionMode.ESCALATED,
                        order_id=order.id,
                    )
            except Exception as e:
                db.rollback()
                summary["failed"] += 1
                logger.error(f"[Monitor] 운송 #{shipment.id} 지연 처리 실패: {e}")

    # ── 2. 도착 예정 시각 보정 ──

    def adjust_delivery_predictions(self) -> dict:
        summary = _summary("delivery_predictions")

        with self.session_factory() as db:
            for shipment in ShipmentRepository(db).find_in_transit():
                summary["examined"] += 1
                try:
                    adjustment = self._simulated_adjustment_minutes()
                    if abs(adjustment) <= rules.SIGNIFICANT_ETA_CHANGE_MINUTES:
                        continue

                    previous = shipment.estimated_delivery
                    shipment.estimated_delivery = previous + timedelta(minutes=adjustment)
                    order = shipment.order
                    db.commit()
                    summary["changed"] += 1

                    self.notifier.notify_client(
                        order.client_id,
                        f"Delivery update: Delivery time for order #{order.id} updated to "
                        f"{shipment.estimated_delivery:%Y-%m-%d %H:%M} based on real-time conditions.",
                    )
                    self.notifier.publish("shipments.status_changed", {
                        "shipment_id": shipment.id,
                        "order_id": order.id,
                        "status": shipment.status.value,
                        "estimated_delivery": shipment.estimated_delivery.isoformat(),
                    })
                    self.event_logger.log(
                        AgentType.MONITOR, "ETA_UPDATED", EventSeverity.INFO,
                        f"운송 #{shipment.id} 도착 예정 {adjustment:+d}분 보정",
                        payload={"previous": previous.isoformat(), "adjustment_minutes": adjustment},
                        action_taken="UPDATE_ETA",
                        execution_mode=ExecutionMode.AUTO,
                        order_id=order.id,
                    )
                except Exception as e:
                    db.rollback()
                    summary["failed"] += 1
                    logger.error(f"[Monitor] 운송 #{shipment.id} ETA 보정 실패: {e}")

        return self._finish(summary)

    def _simulated_adjustment_minutes(self) -> int:
        """교통 + 날씨 - 경로 최적화 절감 (실제 예측 모델 자리)"""
        traffic = self.rng.randint(0, rules.TRAFFIC_DELAY_MAX_MINUTES)
        weather = self.rng.randint(0, rules.WEATHER_DELAY_MAX_MINUTES)
        savings = self.rng.randint(0, rules.ROUTE_SAVINGS_MAX_MINUTES)
        return traffic + weather - savings

    # ── 3. 재고 보충 ──

    def reorder_inventory(self) -> dict:
        summary = _summary("inventory_reorder")

        with self.session_factory() as db:
            products = ProductRepository(db)
            for product in products.find_low_stock(rules.LOW_STOCK_THRESHOLD):
                summary["examined"] += 1
                try:
                    stock = products.current_stock(product.id)
                    demand = rules.predict_demand(product.category, self.rng)
                    quantity = rules.reorder_quantity(stock, demand)
                    if quantity <= 0:
                        continue

                    products.increment_stock(product.id, quantity)
                    db.commit()
                    summary["changed"] += 1

                    self.notifier.notify_internal(
                        "INVENTORY",
                        f"Auto-reorder: {quantity} units of {product.name} (SKU: {product.sku}) "
                        f"- Predicted demand: {demand}",
                    )
                    self.notifier.publish("inventory.updated", {
                        "product_id": product.id, "sku": product.sku,
                        "reason": "reorder", "quantity": quantity,
                    })
                    self.event_logger.log(
                        AgentType.MONITOR, "AUTO_REORDER", EventSeverity.INFO,
                        f"{product.sku} {quantity}개 자동 보충",
                        payload={"stock_before": stock, "predicted_demand": demand},
                        action_taken="REORDER",
                        execution_mode=ExecutionMode.AUTO,
                    )
                except Exception as e:
                    db.rollback()
                    summary["failed"] += 1
                    logger.error(f"[Monitor] {product.sku} 재주문 실패: {e}")

        return self._finish(summary)

    # ── 4. 이상 감지 ──

    def detect_anomalies(self) -> dict:
        summary = _summary("anomalies")
        now = self.clock.now()

        with self.session_factory() as db:
            orders = OrderRepository(db)

            try:
                active = orders.find_active()
                summary["examined"] += len(active)
                delayed = [
                    o for o in active
                    if o.hours_since_order(now) > rules.expected_processing_hours(o.status) * rules.ANOMALY_FACTOR
                ]
                if delayed:
                    self._alert_processing_delay(delayed)
                    summary["escalated"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"[Monitor] 처리 지연 감지 실패: {e}")

            try:
                demand: dict[str, int] = defaultdict(int)
                for order in orders.find_recent(now - timedelta(hours=rules.DEMAND_WINDOW_HOURS)):
                    for item in order.items:
                        demand[item.product.category] += item.quantity

                for category, quantity in sorted(demand.items()):
                    summary["examined"] += 1
                    normal = rules.normal_daily_demand(category)
                    if quantity > normal * rules.ANOMALY_FACTOR:
                        self._alert_demand_spike(category, quantity, normal)
                        summary["escalated"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"[Monitor] 수요 급증 감지 실패: {e}")

        return self._finish(summary)

    def _alert_processing_delay(self, delayed: list):
        by_status: dict[str, int] = defaultdict(int)
        for order in delayed:
            by_status[order.status.value] += 1
        facts = {"count": len(delayed), "by_status": dict(by_status)}
        explanation = self.explainer("PROCESSING_DELAY", facts)
        ids = ", ".join(str(o.id) for o in delayed)

        self.notifier.notify_urgent(
            "OPERATIONS",
            f"Anomaly Alert: {len(delayed)} orders detected with unusual processing times. "
            f"Order IDs: {ids}. {explanation}",
        )
        self.notifier.publish("anomaly.detected", {"type": "PROCESSING_DELAY", **facts})
        self.event_logger.log(
            AgentType.MONITOR, "PROCESSING_DELAY", EventSeverity.CRITICAL,
            f"처리 지연 주문 {len(delayed)}건 감지",
            description=explanation,
            payload={**facts, "order_ids": [o.id for o in delayed]},
            action_taken="NOTIFY_OPERATIONS",
            execution_mode=ExecutionMode.ESCALATED,
        )

    def _alert_demand_spike(self, category: str, quantity: int, normal: int):
        facts = {"category": category, "demand": quantity, "normal": normal}
        explanation = self.explainer("DEMAND_SPIKE", facts)

        self.notifier.notify_urgent(
            "DEMAND_ANALYSIS",
            f"Unusual demand spike detected for {category}. Today: {quantity}, Normal: {normal}. "
            f"Consider increasing inventory levels. {explanation}",
        )
        self.notifier.publish("anomaly.detected", {"type": "DEMAND_SPIKE", **facts})
        self.event_logger.log(
            AgentType.MONITOR, "DEMAND_SPIKE", EventSeverity.WARNING,
            f"{category} 수요 급증 ({quantity} / 평소 {normal})",
            description=explanation,
            payload=facts,
            action_taken="NOTIFY_DEMAND_ANALYSIS",
            execution_mode=ExecutionMode.ESCALATED,
        )

    # ── 5. 경로 재최적화 ──

    def optimize_routes(self) -> dict:
        summary = _summary("routes")
        now = self.clock.now()

        with self.session_factory() as db:
            in_transit = sorted(ShipmentRepository(db).find_in_transit(), key=lambda s: s.truck_id)

            for truck_id, group in groupby(in_transit, key=lambda s: s.truck_id):
                stops = list(group)
                summary["examined"] += len(stops)
                if len(stops) < 2:
                    continue
                try:
                    # 주소 문자열 순서를 근접도 대용으로 사용 (실제 지리 최적화 자리)
                    stops.sort(key=lambda s: s.order.delivery_address)
                    updated = []
                    for position, shipment in enumerate(stops):
                        eta = now + timedelta(
                            hours=rules.ROUTE_FIRST_STOP_HOURS + position * rules.ROUTE_STOP_INTERVAL_HOURS
                        )
                        if shipment.estimated_delivery != eta:
                            shipment.estimated_delivery = eta
                            updated.append(shipment.id)
                    db.commit()
                    summary["changed"] += len(updated)

                    if updated:
                        self.event_logger.log(
                            AgentType.MONITOR, "ROUTE_OPTIMIZED", EventSeverity.INFO,
                            f"{truck_id} 경로 재정렬 ({len(stops)}곳)",
                            payload={"truck_id": truck_id, "route": [s.id for s in stops], "updated": updated},
                            action_taken="REORDER_STOPS",
                            execution_mode=ExecutionMode.AUTO,
                        )
                except Exception as e:
                    db.rollback()
                    summary["failed"] += 1
                    logger.error(f"[Monitor] {truck_id} 경로 최적화 실패: {e}")

        return self._finish(summary)

    # ── 공통 ──

    def _finish(self, summary: dict) -> dict:
        summary["completed_at"] = self.clock.now().isoformat()
        self.metrics.increment(f"sweeps.{summary['sweep']}")
        self.metrics.increment("monitor.changed", summary["changed"])
        self.metrics.increment("monitor.escalated", summary["escalated"])
        logger.info(
            f"[Monitor] {summary['sweep']} 스윕 완료: 검사 {summary['examined']}, "
            f"변경 {summary['changed']}, 에스컬레이션 {summary['escalated']}, 실패 {summary['failed']}"
        )
        self.notifier.publish("monitoring.sweep_completed", dict(summary))
        return summary
