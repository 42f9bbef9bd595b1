"""
Warehouse Agent — 피킹/적재 지시서와 예상 피킹 시간 생성.

- 품목을 창고 위치 코드별로 묶고 위치 코드 사전순으로 방문한다
  (실제 창고 동선 최적화 대신 쓰는 단순 경로).
- 예상 피킹 시간 = Σ(품목별 기본 시간 + 수량/중량/파손 가산) + Σ(위치 그룹별 이동 시간)
- 같은 주문에 대해 몇 번을 호출해도 같은 결과를 낸다.
"""

import logging
from itertools import groupby

from logistics_ai.agents.results import WarehouseInstructions

logger = logging.getLogger(__name__)

ITEM_BASE_MINUTES = 3
LARGE_QUANTITY_THRESHOLD = 5
LARGE_QUANTITY_MINUTES = 2
HEAVY_ITEM_MINUTES = 3
FRAGILE_ITEM_MINUTES = 2

BULK_QUANTITY_THRESHOLD = 10
WEIGHT_ALERT_KG = 1000.0

# 위치 코드 첫 글자(구역)별 이동 시간, A가 출고장에서 가장 가깝다
ZONE_TRAVEL_MINUTES = {"A": 2, "B": 4, "C": 6, "D": 8}
DEFAULT_TRAVEL_MINUTES = 5


def travel_minutes(location: str) -> int:
    zone = location[:1].upper()
    return ZONE_TRAVEL_MINUTES.get(zone, DEFAULT_TRAVEL_MINUTES)


def item_picking_minutes(item) -> int:
    minutes = ITEM_BASE_MINUTES
    if item.quantity > LARGE_QUANTITY_THRESHOLD:
        minutes += LARGE_QUANTITY_MINUTES
    if item.product.is_heavy:
        minutes += HEAVY_ITEM_MINUTES
    if item.product.is_fragile:
        minutes += FRAGILE_ITEM_MINUTES
    return minutes


class WarehouseAgent:
    def generate_instructions(self, order) -> WarehouseInstructions:
        lines = [
            f"PICKING INSTRUCTIONS FOR ORDER #{order.id}",
            f"Client: {order.client_name}",
            f"Delivery: {order.delivery_address}",
            "",
            "PICKING ROUTE:",
        ]

        # 위치 코드 순 정렬 (같은 위치 안에서는 주문 품목 순서 유지)
        items = sorted(order.items, key=lambda i: i.product.location)
        total_minutes = 0
        sequence = 1

        for location, group in groupby(items, key=lambda i: i.product.location):
            travel = travel_minutes(location)
            total_minutes += travel
            lines.append(f"Location: {location} (travel {travel} min)")

            for item in group:
                product = item.product
                lines.append(f"{sequence}. Pick {item.quantity} x {product.name} (SKU: {product.sku})")
                sequence += 1

                if product.is_heavy:
                    lines.append(f"    HEAVY ITEM ({product.weight_kg}kg) - Use forklift or lifting equipment")
                if product.is_fragile:
                    lines.append("    FRAGILE - Handle with care, use protective packaging")
                if item.quantity > BULK_QUANTITY_THRESHOLD:
                    lines.append("    LARGE QUANTITY - Consider using pallet")

                total_minutes += item_picking_minutes(item)
            lines.append("")

        lines += [
            "LOADING SEQUENCE:",
            "1. Heavy construction materials first (bottom of truck)",
            "2. Medium weight items in middle sections",
            "3. Fragile tiles last (top, with extra protection)",
            "4. Small items fill remaining spaces",
            "",
        ]

        if order.total_weight_kg > WEIGHT_ALERT_KG:
            lines.append(
                f"WEIGHT ALERT: Total order weight is {order.total_weight_kg:.1f}kg - "
                "Ensure truck capacity and proper weight distribution"
            )
            lines.append("")

        requires_special_handling = any(
            item.product.is_heavy or item.product.is_fragile for item in order.items
        )
        if requires_special_handling:
            lines += [
                "SPECIAL HANDLING REQUIRED:",
                "- Extra care needed for fragile/heavy items",
                "- Additional packaging materials may be required",
                "",
            ]

        lines.append(f"Estimated total picking time: {total_minutes} minutes")
        lines.append(
            f"Order summary: {len(order.items)} items, {order.total_weight_kg:.1f}kg, "
            f"{order.total_volume_m3:.2f}m³"
        )

        logger.info(
            f"[Warehouse] 주문 #{order.id} 지시서 생성: {total_minutes}분, "
            f"특수취급={'예' if requires_special_handling else '아니오'}"
        )
        return WarehouseInstructions(
            text="\n".join(lines),
            requires_special_handling=requires_special_handling,
            estimated_picking_minutes=total_minutes,
        )
