"""
주문 수명주기 공통 동작 — 오케스트레이터, 배차 에이전트, 모니터링 엔진이 함께 쓴다.
"""

import logging
from datetime import datetime

from logistics_ai.models.order import OrderStatus
from logistics_ai.models.shipment import ShipmentStatus

logger = logging.getLogger(__name__)

# 예약 재고가 아직 창고를 떠나지 않은 상태: 취소 시 재고를 되돌린다
STOCK_HELD_ORDER_STATUSES = frozenset({
    OrderStatus.FULFILLED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.LOADING,
})


def cancel_order(order, at: datetime, reason: str, actor: str, fulfillment_agent) -> list[tuple[int, int]]:
    """
    주문을 CANCELLED로 전이하고, 진행 중인 운송을 취소하고, 창고에 남은 예약 재고를 해제한다.
    종료 상태의 주문이면 InvalidStatusTransitionError가 그대로 올라간다.
    반환값은 해제한 (product_id, quantity) 목록.
    """
    released = []
    if order.status in STOCK_HELD_ORDER_STATUSES:
        released = fulfillment_agent.release(order)

    shipment = order.shipment
    if shipment is not None and not shipment.is_terminal:
        shipment.transition_to(ShipmentStatus.CANCELLED)

    order.transition_to(OrderStatus.CANCELLED, at, reason=reason, actor=actor)
    logger.info(f"주문 #{order.id} 취소 ({actor}): {reason}")
    return released


def status_event(order, previous: OrderStatus, actor: str) -> dict:
    """orders.status_changed 토픽 페이로드"""
    return {
        "order_id": order.id,
        "client_id": order.client_id,
        "previous_status": previous.value,
        "new_status": order.status.value,
        "actor": actor,
    }
