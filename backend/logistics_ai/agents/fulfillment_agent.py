"""
Fulfillment Agent — 주문 품목 재고를 전부 예약하거나 하나도 예약하지 않는다.

품목마다 조건부 UPDATE(stock >= qty)로 차감하고, 도중에 하나라도 실패하면
이번 호출에서 차감한 수량을 같은 트랜잭션 안에서 되돌린 뒤 실패를 반환한다.
커밋은 호출자(오케스트레이터/모니터링 엔진)가 주문 상태 전이와 함께 한다.
"""

import logging

from sqlalchemy.orm import object_session

from logistics_ai.agents.results import FulfillmentResult
from logistics_ai.repositories import ProductRepository

logger = logging.getLogger(__name__)


class FulfillmentAgent:
    def fulfill(self, order) -> FulfillmentResult:
        products = ProductRepository(object_session(order))
        reserved: list[tuple[int, int]] = []

        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                self._rollback(products, reserved)
                return FulfillmentResult(
                    False, f"Fulfillment failed: Product not found: {item.product_id}"
                )

            if not products.try_decrement_stock(product.id, item.quantity):
                self._rollback(products, reserved)
                return FulfillmentResult(
                    False, f"Fulfillment failed: Insufficient stock for: {product.name} ({product.sku})"
                )

            reserved.append((product.id, item.quantity))
            logger.debug(f"[Fulfillment] 주문 #{order.id}: {product.sku} {item.quantity}개 예약")

        logger.info(f"[Fulfillment] 주문 #{order.id} 재고 예약 완료 ({len(reserved)}개 품목)")
        return FulfillmentResult(True, "Order fulfilled successfully", tuple(reserved))

    def release(self, order) -> list[tuple[int, int]]:
        """취소된 주문의 예약 재고를 되돌린다."""
        products = ProductRepository(object_session(order))
        released = []
        for item in order.items:
            if products.increment_stock(item.product_id, item.quantity):
                released.append((item.product_id, item.quantity))
        logger.info(f"[Fulfillment] 주문 #{order.id} 예약 재고 해제 ({len(released)}개 품목)")
        return released

    @staticmethod
    def _rollback(products: ProductRepository, reserved: list[tuple[int, int]]):
        for product_id, quantity in reversed(reserved):
            products.increment_stock(product_id, quantity)
