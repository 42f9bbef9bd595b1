"""
Inventory Agent — 읽기 전용 가용성 점검 + 안전재고 경고.
- 품목별로 현재 재고를 다시 읽어 부족하면 즉시 실패한다.
- 예약 후 재고가 안전재고 아래로 떨어지면 경고만 남기고 통과시킨다.
"""

import logging

from sqlalchemy.orm import object_session

from logistics_ai.agents.results import InventoryCheckResult
from logistics_ai.models.product import ProductCategory
from logistics_ai.repositories import ProductRepository

logger = logging.getLogger(__name__)

SAFETY_STOCK_BASE = 10
SAFETY_STOCK_HEAVY_BONUS = 10
SAFETY_STOCK_CATEGORY_BONUS = {
    ProductCategory.TILES.value: 20,                   # 회전율 높은 품목
    ProductCategory.CONSTRUCTION_MATERIALS.value: 15,  # 수요가 꾸준한 품목
}


def safety_stock(product) -> int:
    """기본값 + 카테고리 가산 + 중량물 가산 (중량물은 조달 리드타임이 길다)"""
    level = SAFETY_STOCK_BASE + SAFETY_STOCK_CATEGORY_BONUS.get(product.category, 0)
    if product.is_heavy:
        level += SAFETY_STOCK_HEAVY_BONUS
    return level


class InventoryAgent:
    def check_availability(self, order) -> InventoryCheckResult:
        db = object_session(order)
        products = ProductRepository(db) if db is not None else None
        warnings = []

        for item in order.items:
            product = products.get(item.product_id) if products else item.product
            if product is None:
                sku = item.product.sku if item.product is not None else item.product_id
                return InventoryCheckResult(False, f"Product not found: {sku}")

            stock = products.current_stock(product.id) if products else product.stock_quantity
            if stock < item.quantity:
                return InventoryCheckResult(
                    False,
                    f"Insufficient stock for product: {product.name} (SKU {product.sku}). "
                    f"Available: {stock}, Requested: {item.quantity}",
                )

            threshold = safety_stock(product)
            if stock - item.quantity < threshold:
                warning = (
                    f"Low stock warning for {product.sku}: {stock - item.quantity} left after "
                    f"reservation, safety stock {threshold}"
                )
                logger.warning(f"[Inventory] 주문 #{order.id} 안전재고 경고 — {warning}")
                warnings.append(warning)

        return InventoryCheckResult(
            True, "All items available in sufficient quantity", tuple(warnings)
        )
