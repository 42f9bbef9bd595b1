"""
Dispatch Agent — 창고 적재부터 배송 완료까지의 수동 운영 작업.

운송 상태와 주문 상태를 한 트랜잭션 안에서 함께 전이해 둘이 어긋나지 않게 한다.
알림은 커밋이 끝난 뒤에 보낸다.
"""

import logging
from datetime import datetime

from logistics_ai.agents.event_logger import AgentEventLogger
from logistics_ai.agents.fulfillment_agent import FulfillmentAgent
from logistics_ai.agents.lifecycle import cancel_order, status_event
from logistics_ai.clock import Clock, system_clock, to_naive_utc
from logistics_ai.database import SessionLocal
from logistics_ai.exceptions import InvalidRequestError, ShipmentStateError
from logistics_ai.models import Order, Shipment
from logistics_ai.models.agent_event import AgentType, EventSeverity, ExecutionMode
from logistics_ai.models.order import OrderStatus
from logistics_ai.models.shipment import ShipmentStatus
from logistics_ai.notifier import Notifier, RecordingNotifier
from logistics_ai.repositories import OrderRepository, ShipmentRepository

logger = logging.getLogger(__name__)

ACTOR = "dispatch"


class DispatchAgent:
    def __init__(
        self,
        session_factory=SessionLocal,
        notifier: Notifier | None = None,
        clock: Clock = system_clock,
        fulfillment_agent: FulfillmentAgent | None = None,
        event_logger: AgentEventLogger | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or RecordingNotifier()
        self.clock = clock
        self.fulfillment_agent = fulfillment_agent or FulfillmentAgent()
        self.event_logger = event_logger or AgentEventLogger(session_factory, clock)

    def start_loading(self, shipment_id: int) -> Shipment:
        with self.session_factory() as db:
            shipment = ShipmentRepository(db).require(shipment_id)
            if shipment.status != ShipmentStatus.SCHEDULED:
                raise ShipmentStateError(
                    f"Cannot start loading - shipment status is: {shipment.status.value}"
                )
            shipment.transition_to(ShipmentStatus.LOADING)
            events = self._move_order(shipment.order, OrderStatus.LOADING, "Loading started")
            db.commit()

        self._publish(shipment, events)
        self.notifier.notify_internal(
            "WAREHOUSE",
            f"Loading started for shipment #{shipment.id}, Order #{shipment.order_id}, "
            f"Truck: {shipment.truck_id}",
        )
        return shipment

    def complete_loading(self, shipment_id: int) -> Shipment:
        with self.session_factory() as db:
            shipment = ShipmentRepository(db).require(shipment_id)
            if shipment.status != ShipmentStatus.LOADING:
                raise ShipmentStateError(
                    f"Cannot complete loading - shipment status is: {shipment.status.value}"
                )
            shipment.transition_to(ShipmentStatus.LOADED)
            shipment.actual_pickup = self.clock.now()
            order = shipment.order
            db.commit()

        self._publish(shipment, [])
        self.notifier.notify_client(
            order.client_id,
            f"Your order #{order.id} has been loaded and is ready for dispatch. "
            f"Estimated delivery: {shipment.estimated_delivery:%Y-%m-%d %H:%M}. Truck: {shipment.truck_id}",
        )
        self.notifier.notify_internal(
            "LOGISTICS",
            f"Shipment #{shipment.id} loaded and ready for dispatch. "
            f"Truck: {shipment.truck_id}, Driver: {shipment.driver_id}",
        )
        return shipment

    def dispatch(self, shipment_id: int) -> Shipment:
        with self.session_factory() as db:
            shipment = ShipmentRepository(db).require(shipment_id)
            if shipment.status != ShipmentStatus.LOADED:
                raise ShipmentStateError(
                    f"Cannot dispatch - shipment must be loaded first. Status: {shipment.status.value}"
                )
            shipment.transition_to(ShipmentStatus.IN_TRANSIT)
            if shipment.actual_pickup is None:
                shipment.actual_pickup = self.clock.now()
            order = shipment.order
            events = self._move_order(order, OrderStatus.IN_TRANSIT, "Shipment dispatched")
            db.commit()

        self._publish(shipment, events)
        self.notifier.notify_client(
            order.client_id,
            f"Your order #{order.id} is now in transit. Truck: {shipment.truck_id}. "
            f"Estimated delivery: {shipment.estimated_delivery:%Y-%m-%d %H:%M}",
        )
        return shipment

    def mark_delivered(self, shipment_id: int) -> Shipment:
        with self.session_factory() as db:
            shipment = ShipmentRepository(db).require(shipment_id)
            if shipment.status != ShipmentStatus.IN_TRANSIT:
                raise ShipmentStateError(
                    f"Cannot mark as delivered - shipment must be in transit. Status: {shipment.status.value}"
                )
            now = self.clock.now()
            shipment.transition_to(ShipmentStatus.DELIVERED)
            shipment.actual_delivery = now
            order = shipment.order
            events = self._move_order(order, OrderStatus.DELIVERED, "Delivered to client")
            db.commit()

        self._publish(shipment, events)
        self.notifier.notify_client(
            order.client_id,
            f"Your order #{order.id} has been delivered successfully at {now:%Y-%m-%d %H:%M}. "
            "Thank you for choosing our service!",
        )
        self.notifier.notify_internal(
            "DELIVERY",
            f"Shipment #{shipment.id} delivered successfully. "
            f"Order #{order.id} completed for {order.client_name}",
        )
        return shipment

    def report_delivery_problem(self, shipment_id: int, problem: str,
                                new_estimated_delivery: datetime | None = None) -> Shipment:
        """배송 문제 보고. 새 ETA는 현재 이후여야 한다."""
        with self.session_factory() as db:
            shipment = ShipmentRepository(db).require(shipment_id)
            if shipment.status != ShipmentStatus.IN_TRANSIT:
                raise ShipmentStateError(
                    f"Cannot report delivery problem - shipment status: {shipment.status.value}"
                )
            if new_estimated_delivery is not None:
                new_estimated_delivery = to_naive_utc(new_estimated_delivery)
                if new_estimated_delivery <= self.clock.now():
                    raise InvalidRequestError("New estimated delivery must be in the future")
                shipment.estimated_delivery = new_estimated_delivery
            order = shipment.order
            db.commit()

        message = f"Delivery attempt for order #{order.id} encountered an issue: {problem}"
        if new_estimated_delivery is not None:
            message += f". New estimated delivery: {new_estimated_delivery:%Y-%m-%d %H:%M}"
        else:
            message += ". Our team will contact you to reschedule delivery."

        self.notifier.notify_client(order.client_id, message)
        self.notifier.notify_urgent(
            "DELIVERY_MANAGEMENT",
            f"Delivery problem reported for shipment #{shipment.id}: {problem}. "
            f"Client: {order.client_name}, Contact required for resolution.",
        )
        self.event_logger.log(
            AgentType.DISPATCH, "DELIVERY_PROBLEM", EventSeverity.WARNING,
            f"운송 #{shipment.id} 배송 문제 보고",
            description=problem,
            payload={"new_estimated_delivery": new_estimated_delivery.isoformat()
                     if new_estimated_delivery else None},
            action_taken="NOTIFY_DELIVERY_MANAGEMENT",
            execution_mode=ExecutionMode.ESCALATED,
            order_id=order.id,
        )
        return shipment

    def cancel_order(self, order_id: int, reason: str = "Cancelled by request") -> Order:
        """
        종료되지 않은 주문 취소. 종료 상태면 InvalidStatusTransitionError.
        창고를 떠나지 않은 예약 재고는 되돌린다.
        """
        with self.session_factory() as db:
            order = OrderRepository(db).require(order_id)
            previous = order.status
            released = cancel_order(order, self.clock.now(), reason, ACTOR, self.fulfillment_agent)
            db.commit()

        self.notifier.publish("orders.status_changed", status_event(order, previous, ACTOR))
        if released:
            self.notifier.publish("inventory.updated", {
                "order_id": order.id, "reason": "released", "items": [list(r) for r in released],
            })
        self.notifier.notify_client(order.client_id, f"Order #{order.id} cancelled: {reason}")
        self.event_logger.log(
            AgentType.DISPATCH, "ORDER_CANCELLED", EventSeverity.INFO,
            f"주문 #{order.id} 수동 취소",
            description=reason,
            payload={"previous_status": previous.value, "released": [list(r) for r in released]},
            action_taken="CANCEL_ORDER",
            execution_mode=ExecutionMode.AUTO,
            order_id=order.id,
        )
        return order

    def _move_order(self, order, target: OrderStatus, reason: str) -> list[dict]:
        """주문이 이미 목표 상태면 그대로 둔다 (LOADING을 건너뛴 주문의 출발 등)."""
        if order.status == target:
            return []
        previous = order.status
        order.transition_to(target, self.clock.now(), reason=reason, actor=ACTOR)
        return [status_event(order, previous, ACTOR)]

    def _publish(self, shipment, order_events: list[dict]):
        self.notifier.publish("shipments.status_changed", {
            "shipment_id": shipment.id,
            "order_id": shipment.order_id,
            "status": shipment.status.value,
        })
        for event in order_events:
            self.notifier.publish("orders.status_changed", event)
        logger.info(f"[Dispatch] 운송 #{shipment.id} → {shipment.status.value}")
