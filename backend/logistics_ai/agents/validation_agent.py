"""
Validation Agent — 형식/정책 위반 주문을 거절한다.
부수효과 없는 순수 함수이며 같은 입력과 시각에 대해 항상 같은 결과를 낸다.
"""

import logging
from datetime import timedelta

from logistics_ai.agents.results import ValidationResult
from logistics_ai.clock import Clock, system_clock

logger = logging.getLogger(__name__)

MIN_LEAD_TIME = timedelta(days=1)
MAX_ITEMS_PER_ORDER = 50

# 배송 가능 지역 키워드 (소문자 부분 문자열 매칭)
DELIVERY_REGION_KEYWORDS = ("germany", "deutschland", "hamburg", "berlin", "munich", "köln")


class ValidationAgent:
    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    def validate(self, order) -> ValidationResult:
        """규칙을 순서대로 적용하고 처음 걸린 사유를 반환한다."""
        if not order.items:
            return ValidationResult(False, "Order contains no items")

        address = (order.delivery_address or "").strip()
        if not address:
            return ValidationResult(False, "Invalid delivery address")

        if order.requested_delivery_date < self.clock.now() + MIN_LEAD_TIME:
            return ValidationResult(False, "Delivery date must be at least 1 day in advance")

        if not (order.client_id or "").strip():
            return ValidationResult(False, "Client ID is required")

        if not (order.client_name or "").strip():
            return ValidationResult(False, "Client name is required")

        if len(order.items) > MAX_ITEMS_PER_ORDER:
            return ValidationResult(
                False, f"Order too large - maximum {MAX_ITEMS_PER_ORDER} items per order"
            )

        if not is_deliverable_region(address):
            return ValidationResult(False, "Delivery address must be in Germany")

        return ValidationResult(True, "Order is valid")


def is_deliverable_region(address: str) -> bool:
    lowered = address.lower()
    return any(keyword in lowered for keyword in DELIVERY_REGION_KEYWORDS)
