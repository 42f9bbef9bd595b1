from datetime import datetime, timedelta

import pytest

from logistics_ai.agents.results import WarehouseInstructions
from logistics_ai.agents.shipping_agent import (
    DRIVER_IDS, TRUCK_IDS, DriverPool, ShippingAgent, TruckClass,
    align_to_business_hours, assign_driver, delivery_duration_hours,
    plan_pickup, preparation_hours, select_truck,
)
from logistics_ai.agents.warehouse_agent import WarehouseAgent
from logistics_ai.models.order import OrderStatus
from logistics_ai.models.product import ProductCategory
from logistics_ai.models.shipment import ShipmentStatus

WEDNESDAY = datetime(2025, 6, 4, 10, 0)
FRIDAY = datetime(2025, 6, 6)
SATURDAY = datetime(2025, 6, 7)
MONDAY_OPEN = datetime(2025, 6, 9, 8, 0)


def _instructions(minutes: int = 19, special: bool = False) -> WarehouseInstructions:
    return WarehouseInstructions(text="", requires_special_handling=special, estimated_picking_minutes=minutes)


class TestTruckSelection:
    @pytest.mark.parametrize("weight, volume, fragile, expected", [
        (2500, 1, False, TruckClass.LARGE),
        (2500, 1, True, TruckClass.LARGE),
        (500, 30, False, TruckClass.LARGE),
        (2000, 25, False, TruckClass.MEDIUM),
        (900, 5, True, TruckClass.MEDIUM),
        (100, 16, False, TruckClass.MEDIUM),
        (50, 5, True, TruckClass.FRAGILE),
        (800, 15, False, TruckClass.SMALL),
        (80, 0.5, False, TruckClass.SMALL),
    ])
    def test_decision_table(self, weight, volume, fragile, expected):
        assert select_truck(weight, volume, fragile) == expected

    def test_every_class_has_a_truck(self):
        assert set(TRUCK_IDS) == set(TruckClass)
        assert TRUCK_IDS[TruckClass.LARGE] == "TRUCK_LARGE_001"


class TestDriverAssignment:
    def test_fragile_specialist_first(self):
        assert assign_driver(True, 3000, WEDNESDAY, WEDNESDAY) == DriverPool.FRAGILE_SPECIALIST

    def test_heavy_loads(self):
        later = WEDNESDAY + timedelta(days=5)
        assert assign_driver(False, 1600, later, WEDNESDAY) == DriverPool.HEAVY_LOADS

    def test_urgent_delivery_gets_express(self):
        soon = WEDNESDAY + timedelta(days=1, hours=12)
        assert assign_driver(False, 200, soon, WEDNESDAY) == DriverPool.EXPRESS

    def test_general_pool(self):
        later = WEDNESDAY + timedelta(days=2)
        assert assign_driver(False, 200, later, WEDNESDAY) == DriverPool.GENERAL
        assert DRIVER_IDS[DriverPool.GENERAL] == "DRIVER_GENERAL_004"


class TestBusinessHours:
    @pytest.mark.parametrize("moment, expected", [
        (datetime(2025, 6, 4, 12, 30), datetime(2025, 6, 4, 12, 30)),
        (datetime(2025, 6, 4, 6, 15), datetime(2025, 6, 4, 8, 0)),
        (datetime(2025, 6, 4, 18, 0), datetime(2025, 6, 5, 8, 0)),
        (datetime(2025, 6, 4, 23, 59), datetime(2025, 6, 5, 8, 0)),
        (FRIDAY.replace(hour=19), MONDAY_OPEN),
        (SATURDAY.replace(hour=10), MONDAY_OPEN),
        (datetime(2025, 6, 8, 6, 0), MONDAY_OPEN),
        (datetime(2025, 6, 9, 7, 0), MONDAY_OPEN),
    ])
    def test_alignment(self, moment, expected):
        assert align_to_business_hours(moment) == expected

    def test_preparation_hours(self):
        assert preparation_hours(_instructions(19)) == 2
        assert preparation_hours(_instructions(130, special=True)) == 5


class TestDeliveryDuration:
    @pytest.mark.parametrize("weight, fragile, address, hours", [
        (500, False, "Spaldingstraße 64, Hamburg", 6),
        (1200, True, "Kantstraße 12, Berlin", 12),
        (300, False, "Leopoldstraße 88, Munich", 10),
        (300, False, "Domkloster 4, Köln", 8),
        (300, False, "", 8),
    ])
    def test_duration(self, weight, fragile, address, hours):
        assert delivery_duration_hours(weight, fragile, address) == hours


class TestPickupPlanning:
    def test_latest_feasible_wins_for_distant_delivery(self):
        requested = datetime(2025, 6, 13, 10, 0)

        pickup = plan_pickup(WEDNESDAY, requested, _instructions(19), transit_hours=6)

        assert pickup == requested - timedelta(hours=6)

    def test_preparation_floor_wins_for_tight_delivery(self):
        requested = datetime(2025, 6, 4, 14, 0)

        pickup = plan_pickup(WEDNESDAY, requested, _instructions(19), transit_hours=6)

        assert pickup == datetime(2025, 6, 4, 12, 0)

    def test_floor_rolls_over_weekend(self):
        friday_afternoon = FRIDAY.replace(hour=17)

        pickup = plan_pickup(friday_afternoon, friday_afternoon, _instructions(19), transit_hours=4)

        assert pickup == MONDAY_OPEN


class TestScheduleShipment:
    def test_creates_scheduled_shipment(self, db, clock, make_product, make_order):
        tile = make_product(category=ProductCategory.TILES, weight_kg=25.0, volume_m3=0.5)
        order = make_order([(tile, 2)], status=OrderStatus.FULFILLED,
                           address="Kantstraße 12, 10623 Berlin", delivery_in=timedelta(days=7))
        instructions = WarehouseAgent().generate_instructions(order)

        shipment = ShippingAgent(clock).schedule_shipment(order, instructions)
        db.commit()

        assert shipment.id is not None
        assert shipment.status == ShipmentStatus.SCHEDULED
        assert shipment.truck_id == "TRUCK_FRAGILE_003"
        assert shipment.driver_id == "DRIVER_FRAGILE_SPECIALIST_001"
        assert shipment.requires_special_handling
        assert shipment.picking_instructions == instructions.text
        # 4h 기본 + 파손 1h + 베를린 6h
        assert shipment.estimated_delivery - shipment.scheduled_pickup == timedelta(hours=11)
        assert shipment.scheduled_pickup >= clock.now() + timedelta(hours=3)
        assert order.shipment is shipment

    def test_existing_shipment_is_reused(self, db, clock, make_product, make_order):
        order = make_order([(make_product(), 1)], status=OrderStatus.FULFILLED)
        agent = ShippingAgent(clock)
        instructions = WarehouseAgent().generate_instructions(order)

        first = agent.schedule_shipment(order, instructions)
        db.commit()
        second = agent.schedule_shipment(order, instructions)

        assert second.id == first.id
