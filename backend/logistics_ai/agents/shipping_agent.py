"""
Shipping Agent — 트럭/기사 배정, 픽업 일정, 도착 예정 시각 산정 후 Shipment 생성.

결정 규칙은 모두 모듈 상수와 순수 함수로 두고, ShippingAgent는 이를 조합해 저장만 한다.
"""

import enum
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import object_session

from logistics_ai.agents.results import WarehouseInstructions
from logistics_ai.clock import Clock, system_clock
from logistics_ai.models import Shipment
from logistics_ai.models.shipment import ShipmentStatus
from logistics_ai.repositories import ShipmentRepository

logger = logging.getLogger(__name__)


class TruckClass(str, enum.Enum):
    LARGE = "LARGE"
    MEDIUM = "MEDIUM"
    FRAGILE = "FRAGILE"
    SMALL = "SMALL"


TRUCK_IDS = {
    TruckClass.LARGE: "TRUCK_LARGE_001",
    TruckClass.MEDIUM: "TRUCK_MEDIUM_002",
    TruckClass.FRAGILE: "TRUCK_FRAGILE_003",
    TruckClass.SMALL: "TRUCK_SMALL_004",
}

LARGE_TRUCK_WEIGHT_KG = 2000.0
LARGE_TRUCK_VOLUME_M3 = 25.0
MEDIUM_TRUCK_WEIGHT_KG = 800.0
MEDIUM_TRUCK_VOLUME_M3 = 15.0


class DriverPool(str, enum.Enum):
    FRAGILE_SPECIALIST = "FRAGILE_SPECIALIST"
    HEAVY_LOADS = "HEAVY_LOADS"
    EXPRESS = "EXPRESS"
    GENERAL = "GENERAL"


DRIVER_IDS = {
    DriverPool.FRAGILE_SPECIALIST: "DRIVER_FRAGILE_SPECIALIST_001",
    DriverPool.HEAVY_LOADS: "DRIVER_HEAVY_LOADS_002",
    DriverPool.EXPRESS: "DRIVER_EXPRESS_003",
    DriverPool.GENERAL: "DRIVER_GENERAL_004",
}

HEAVY_LOAD_DRIVER_WEIGHT_KG = 1500.0
URGENT_DELIVERY_WINDOW = timedelta(days=2)

# 픽업 준비 시간
BASE_PREPARATION_HOURS = 2
SPECIAL_HANDLING_HOURS = 1

# 영업시간 08:00~18:00, 월~금
BUSINESS_OPEN_HOUR = 8
BUSINESS_CLOSE_HOUR = 18
WEEKEND = (5, 6)

# 운송 소요 시간
BASE_DELIVERY_HOURS = 4
HEAVY_DELIVERY_WEIGHT_KG = 1000.0
HEAVY_DELIVERY_HOURS = 1
FRAGILE_DELIVERY_HOURS = 1
# (주소 키워드, 가산 시간), 위에서부터 처음 일치하는 항목 적용
DESTINATION_HOURS = (
    (("hamburg",), 2),
    (("berlin", "munich"), 6),
)
DEFAULT_DESTINATION_HOURS = 4


def select_truck(total_weight_kg: float, total_volume_m3: float, has_fragile_items: bool) -> TruckClass:
    if total_weight_kg > LARGE_TRUCK_WEIGHT_KG or total_volume_m3 > LARGE_TRUCK_VOLUME_M3:
        return TruckClass.LARGE
    if total_weight_kg > MEDIUM_TRUCK_WEIGHT_KG or total_volume_m3 > MEDIUM_TRUCK_VOLUME_M3:
        return TruckClass.MEDIUM
    if has_fragile_items:
        return TruckClass.FRAGILE
    return TruckClass.SMALL


def assign_driver(has_fragile_items: bool, total_weight_kg: float,
                  requested_delivery: datetime, now: datetime) -> DriverPool:
    if has_fragile_items:
        return DriverPool.FRAGILE_SPECIALIST
    if total_weight_kg > HEAVY_LOAD_DRIVER_WEIGHT_KG:
        return DriverPool.HEAVY_LOADS
    if requested_delivery < now + URGENT_DELIVERY_WINDOW:
        return DriverPool.EXPRESS
    return DriverPool.GENERAL


def preparation_hours(instructions: WarehouseInstructions) -> int:
    hours = BASE_PREPARATION_HOURS + instructions.estimated_picking_minutes // 60
    if instructions.requires_special_handling:
        hours += SPECIAL_HANDLING_HOURS
    return hours


def _opening(day: datetime) -> datetime:
    return day.replace(hour=BUSINESS_OPEN_HOUR, minute=0, second=0, microsecond=0)


def align_to_business_hours(moment: datetime) -> datetime:
    """영업시간 밖이면 다음 영업 개시 시각(08:00)으로 민다."""
    if moment.hour < BUSINESS_OPEN_HOUR:
        moment = _opening(moment)
    elif moment.hour >= BUSINESS_CLOSE_HOUR:
        moment = _opening(moment + timedelta(days=1))

    while moment.weekday() in WEEKEND:
        moment = _opening(moment + timedelta(days=1))
    return moment


def delivery_duration_hours(total_weight_kg: float, has_fragile_items: bool, address: str) -> int:
    hours = BASE_DELIVERY_HOURS
    if total_weight_kg > HEAVY_DELIVERY_WEIGHT_KG:
        hours += HEAVY_DELIVERY_HOURS
    if has_fragile_items:
        hours += FRAGILE_DELIVERY_HOURS

    lowered = (address or "").lower()
    for keywords, extra in DESTINATION_HOURS:
        if any(k in lowered for k in keywords):
            return hours + extra
    return hours + DEFAULT_DESTINATION_HOURS


def plan_pickup(now: datetime, requested_delivery: datetime, instructions: WarehouseInstructions,
                transit_hours: int) -> datetime:
    """
    준비 시간 하한(영업시간 보정)과 요청 납기에서 역산한 시각 중 늦은 쪽.
    """
    earliest = align_to_business_hours(now + timedelta(hours=preparation_hours(instructions)))
    latest = requested_delivery - timedelta(hours=transit_hours)
    return max(earliest, latest)


class ShippingAgent:
    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    def schedule_shipment(self, order, instructions: WarehouseInstructions) -> Shipment:
        """주문에 대한 Shipment를 만든다. 이미 있으면 기존 것을 그대로 반환한다."""
        shipments = ShipmentRepository(object_session(order))
        existing = shipments.find_by_order(order.id)
        if existing is not None:
            logger.info(f"[Shipping] 주문 #{order.id} 기존 운송 #{existing.id} 재사용")
            return existing

        now = self.clock.now()
        fragile = order.has_fragile_items
        truck = select_truck(order.total_weight_kg, order.total_volume_m3, fragile)
        driver = assign_driver(fragile, order.total_weight_kg, order.requested_delivery_date, now)
        transit_hours = delivery_duration_hours(order.total_weight_kg, fragile, order.delivery_address)
        pickup = plan_pickup(now, order.requested_delivery_date, instructions, transit_hours)

        shipment = shipments.add(Shipment(
            order_id=order.id,
            truck_id=TRUCK_IDS[truck],
            driver_id=DRIVER_IDS[driver],
            scheduled_pickup=pickup,
            estimated_delivery=pickup + timedelta(hours=transit_hours),
            status=ShipmentStatus.SCHEDULED,
            picking_instructions=instructions.text,
            requires_special_handling=instructions.requires_special_handling,
        ))
        order.shipment = shipment

        logger.info(
            f"[Shipping] 주문 #{order.id} → 운송 #{shipment.id}: "
            f"{shipment.truck_id}/{shipment.driver_id}, 픽업 {pickup:%Y-%m-%d %H:%M}, "
            f"도착 예정 {shipment.estimated_delivery:%Y-%m-%d %H:%M}"
        )
        return shipment
