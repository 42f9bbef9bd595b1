"""
모니터링 결정 테이블 — 상태별 기대 처리 시간, 전진 표, 자동 진행 규칙, 수요 테이블.

각 자동 진행 규칙은 AutoAdvanceRule 프로토콜을 구현:
  status: OrderStatus
  check(order, ctx) -> AdvanceDecision   # 진행해도 되는지 (읽기 전용)
  apply(order, ctx) -> AdvanceDecision   # 실제 부수효과 수행 (재고 예약, 운송 생성 등)
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from logistics_ai.models.order import OrderStatus
from logistics_ai.models.product import ProductCategory

logger = logging.getLogger(__name__)

# 상태별 기대 처리 시간 (시간)
EXPECTED_PROCESSING_HOURS = {
    OrderStatus.RECEIVED: 2,
    OrderStatus.VALIDATED: 1,
    OrderStatus.INVENTORY_CHECKED: 1,
    OrderStatus.FULFILLED: 3,
    OrderStatus.READY_FOR_PICKUP: 6,
    OrderStatus.LOADING: 2,
    OrderStatus.IN_TRANSIT: 24,
}
DEFAULT_EXPECTED_HOURS = 12

# 자동 진행 전진 표. 여기 없는 상태는 항상 에스컬레이션
NEXT_STATUS = {
    OrderStatus.RECEIVED: OrderStatus.VALIDATED,
    OrderStatus.VALIDATED: OrderStatus.INVENTORY_CHECKED,
    OrderStatus.INVENTORY_CHECKED: OrderStatus.FULFILLED,
    OrderStatus.FULFILLED: OrderStatus.READY_FOR_PICKUP,
}

SIMPLE_ORDER_MAX_WEIGHT_KG = 100.0
SIMPLE_ORDER_MAX_ITEMS = 3
AMPLE_STOCK_FACTOR = 2

# 재주문
LOW_STOCK_THRESHOLD = 50
DEMAND_BASE_RATE = {
    ProductCategory.TILES.value: 50,
    ProductCategory.CONSTRUCTION_MATERIALS.value: 75,
    ProductCategory.ROOFING_MATERIALS.value: 40,
    ProductCategory.PLUMBING_SUPPLIES.value: 30,
}
DEFAULT_DEMAND_BASE = 25
DEMAND_VARIATION = 12
REORDER_TARGET_FACTOR = 3

# 이상 감지
ANOMALY_FACTOR = 2
DEMAND_WINDOW_HOURS = 24
NORMAL_DAILY_DEMAND = {
    ProductCategory.TILES.value: 200,
    ProductCategory.CONSTRUCTION_MATERIALS.value: 150,
    ProductCategory.ROOFING_MATERIALS.value: 100,
    ProductCategory.PLUMBING_SUPPLIES.value: 75,
}
DEFAULT_NORMAL_DEMAND = 50

# 도착 예정 시각 보정 (분)
SIGNIFICANT_ETA_CHANGE_MINUTES = 30
TRAFFIC_DELAY_MAX_MINUTES = 60
WEATHER_DELAY_MAX_MINUTES = 30
ROUTE_SAVINGS_MAX_MINUTES = 20

# 경로 재최적화 (시간)
ROUTE_FIRST_STOP_HOURS = 2
ROUTE_STOP_INTERVAL_HOURS = 1

# 배송 지연
OVERDUE_RESCHEDULE_LIMIT_HOURS = 4
RESCHEDULE_OFFSET_HOURS = 2


def expected_processing_hours(status: OrderStatus) -> int:
    return EXPECTED_PROCESSING_HOURS.get(status, DEFAULT_EXPECTED_HOURS)


def predict_demand(category: str, rng) -> int:
    """카테고리 기본 수요 ± 무작위 변동 (실제 예측 모델 자리)"""
    base = DEMAND_BASE_RATE.get(category, DEFAULT_DEMAND_BASE)
    return base + rng.randint(-DEMAND_VARIATION, DEMAND_VARIATION)


def reorder_quantity(current_stock: int, predicted_demand: int) -> int:
    """재고가 예측 수요의 절반 미만일 때만 수요 3배까지 채운다."""
    if current_stock < predicted_demand // 2:
        return max(0, predicted_demand * REORDER_TARGET_FACTOR - current_stock)
    return 0


def normal_daily_demand(category: str) -> int:
    return NORMAL_DAILY_DEMAND.get(category, DEFAULT_NORMAL_DEMAND)


@dataclass(frozen=True)
class AdvanceDecision:
    advance: bool
    reason: str


class AutoAdvanceRule(Protocol):
    """자동 진행 규칙 프로토콜"""
    status: OrderStatus

    def check(self, order, ctx) -> AdvanceDecision: ...

    def apply(self, order, ctx) -> AdvanceDecision: ...


def _ample_stock(order, ctx) -> AdvanceDecision:
    for item in order.items:
        stock = ctx.products.current_stock(item.product_id) or 0
        if stock <= item.quantity * AMPLE_STOCK_FACTOR:
            return AdvanceDecision(
                False, f"{item.product.sku} stock {stock} not above {AMPLE_STOCK_FACTOR}x quantity {item.quantity}"
            )
    return AdvanceDecision(True, "Stock clearly available")


class ReceivedRule:
    """작고 단순한 주문이며 검증을 통과하면 VALIDATED로"""

    status = OrderStatus.RECEIVED

    def check(self, order, ctx) -> AdvanceDecision:
        if order.total_weight_kg >= SIMPLE_ORDER_MAX_WEIGHT_KG:
            return AdvanceDecision(False, f"weight {order.total_weight_kg:.1f}kg too high for auto-advance")
        if len(order.items) > SIMPLE_ORDER_MAX_ITEMS:
            return AdvanceDecision(False, f"{len(order.items)} items too many for auto-advance")
        result = ctx.validation_agent.validate(order)
        return AdvanceDecision(result.valid, result.reason)

    def apply(self, order, ctx) -> AdvanceDecision:
        return AdvanceDecision(True, "Auto-validated simple order")


class ValidatedRule:
    """재고가 수량의 2배를 넘으면 INVENTORY_CHECKED로"""

    status = OrderStatus.VALIDATED

    def check(self, order, ctx) -> AdvanceDecision:
        return _ample_stock(order, ctx)

    def apply(self, order, ctx) -> AdvanceDecision:
        return AdvanceDecision(True, "Auto-checked inventory")


class InventoryCheckedRule:
    """재고가 넉넉하고 전량 예약에 성공하면 FULFILLED로"""

    status = OrderStatus.INVENTORY_CHECKED

    def check(self, order, ctx) -> AdvanceDecision:
        return _ample_stock(order, ctx)

    def apply(self, order, ctx) -> AdvanceDecision:
        result = ctx.fulfillment_agent.fulfill(order)
        return AdvanceDecision(result.success, result.message)


class FulfilledRule:
    """특수 취급 품목이 없으면 지시서/운송을 만들고 READY_FOR_PICKUP으로"""

    status = OrderStatus.FULFILLED

    def check(self, order, ctx) -> AdvanceDecision:
        if order.has_heavy_items or order.has_fragile_items:
            return AdvanceDecision(False, "special handling items require manual scheduling")
        return AdvanceDecision(True, "No special handling required")

    def apply(self, order, ctx) -> AdvanceDecision:
        instructions = ctx.warehouse_agent.generate_instructions(order)
        shipment = ctx.shipping_agent.schedule_shipment(order, instructions)
        return AdvanceDecision(True, f"Shipment #{shipment.id} scheduled")


AUTO_ADVANCE_RULES: dict[OrderStatus, AutoAdvanceRule] = {
    rule.status: rule
    for rule in (ReceivedRule(), ValidatedRule(), InventoryCheckedRule(), FulfilledRule())
}
