"""
자율 모니터링 스윕 — 정체 주문, 배송 지연, 도착 예정 보정, 재주문, 이상 감지, 경로 재정렬
"""

from datetime import timedelta

import pytest

from logistics_ai.agents.monitor_agent import AutonomousMonitor
from logistics_ai.models import AgentEvent, Shipment
from logistics_ai.models.order import OrderStatus
from logistics_ai.models.product import ProductCategory
from logistics_ai.models.shipment import ShipmentStatus


def stub_explainer(kind: str, facts: dict) -> str:
    return f"Stub analysis for {kind}."


@pytest.fixture
def build_monitor(session_factory, notifier, clock, metrics, event_logger, rng_low):
    def _build(rng=None, explainer=stub_explainer) -> AutonomousMonitor:
        return AutonomousMonitor(
            session_factory, notifier, clock,
            rng=rng or rng_low,
            metrics=metrics,
            event_logger=event_logger,
            explainer=explainer,
        )

    return _build


@pytest.fixture
def monitor(build_monitor):
    return build_monitor()


@pytest.fixture
def make_shipment(db, clock):
    def _make(order, estimated_in: timedelta, status: ShipmentStatus = ShipmentStatus.IN_TRANSIT,
              truck_id: str = "TRUCK_SMALL_004") -> Shipment:
        now = clock.now()
        shipment = Shipment(
            order_id=order.id,
            truck_id=truck_id,
            driver_id="DRIVER_GENERAL_004",
            scheduled_pickup=now - timedelta(hours=3),
            actual_pickup=now - timedelta(hours=3),
            estimated_delivery=now + estimated_in,
            status=status,
        )
        db.add(shipment)
        db.commit()
        return shipment

    return _make


def _stored_shipment(session_factory, shipment_id: int) -> Shipment:
    with session_factory() as session:
        return session.get(Shipment, shipment_id)


class TestStuckOrders:
    # (상태, 체류 시간, 기대 결과)
    CASES = [
        (OrderStatus.RECEIVED, timedelta(hours=3), "changed"),
        (OrderStatus.VALIDATED, timedelta(hours=2), "changed"),
        (OrderStatus.INVENTORY_CHECKED, timedelta(hours=2), "changed"),
        (OrderStatus.FULFILLED, timedelta(hours=4), "changed"),
        (OrderStatus.READY_FOR_PICKUP, timedelta(hours=7), "escalated"),
        (OrderStatus.LOADING, timedelta(hours=3), "escalated"),
        (OrderStatus.IN_TRANSIT, timedelta(hours=25), "escalated"),
    ]

    @pytest.mark.parametrize("status, age, expected", CASES, ids=[c[0].value for c in CASES])
    def test_every_stuck_status_advances_or_escalates(self, monitor, make_product, make_order, load_order,
                                                      status, age, expected):
        order = make_order([(make_product(stock=100), 2)], status=status, status_age=age)

        summary = monitor.resolve_stuck_orders()

        assert summary["examined"] == 1
        assert summary["failed"] == 0
        assert summary["changed"] + summary["escalated"] == 1
        assert summary[expected] == 1
        stored = load_order(order.id)
        if expected == "changed":
            history = stored.status_history
            assert len(history) == 1
            assert history[0].previous_status == status
            assert history[0].actor == "monitor"
        else:
            assert stored.status == status

    def test_all_stuck_statuses_in_one_sweep(self, monitor, make_product, make_order):
        for status, age, _ in self.CASES:
            make_order([(make_product(stock=100), 2)], status=status, status_age=age)

        summary = monitor.resolve_stuck_orders()

        assert summary["examined"] == len(self.CASES)
        assert summary["changed"] == 4
        assert summary["escalated"] == 3
        assert summary["failed"] == 0

    def test_orders_within_expected_time_are_ignored(self, monitor, make_product, make_order, notifier):
        make_order([(make_product(), 1)], status_age=timedelta(hours=1, minutes=30))
        make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT, status_age=timedelta(hours=20))

        summary = monitor.resolve_stuck_orders()

        assert summary["examined"] == 0
        assert notifier.urgent_messages == []

    def test_heavy_received_order_is_escalated(self, monitor, make_product, make_order, notifier, load_order):
        cement = make_product(category=ProductCategory.CONSTRUCTION_MATERIALS, weight_kg=25.0)
        order = make_order([(cement, 6)], status_age=timedelta(hours=3))

        summary = monitor.resolve_stuck_orders()

        assert summary["escalated"] == 1
        assert load_order(order.id).status == OrderStatus.RECEIVED
        message = notifier.messages("urgent", "ORDER_MANAGEMENT")[0]
        assert f"Order #{order.id} has been stuck in RECEIVED" in message
        assert "weight 150.0kg" in message

    def test_invalid_received_order_is_escalated(self, monitor, make_product, make_order, notifier):
        make_order([(make_product(), 1)], address="Main Street 1, Vienna", status_age=timedelta(hours=3))

        summary = monitor.resolve_stuck_orders()

        assert summary["escalated"] == 1
        assert "Delivery address must be in Germany" in notifier.urgent_messages[0]

    def test_stock_at_exactly_twice_quantity_is_not_ample(self, monitor, make_product, make_order, load_order):
        order = make_order([(make_product(stock=10), 5)], status=OrderStatus.VALIDATED,
                           status_age=timedelta(hours=2))

        summary = monitor.resolve_stuck_orders()

        assert summary["escalated"] == 1
        assert load_order(order.id).status == OrderStatus.VALIDATED

    def test_inventory_checked_advance_reserves_stock(self, monitor, make_product, make_order, stock_of):
        product = make_product(stock=50)
        make_order([(product, 10)], status=OrderStatus.INVENTORY_CHECKED, status_age=timedelta(hours=2))

        monitor.resolve_stuck_orders()

        assert stock_of(product.id) == 40

    def test_fulfilled_advance_schedules_shipment(self, monitor, make_product, make_order, load_order, notifier):
        order = make_order([(make_product(), 3)], status=OrderStatus.FULFILLED, status_age=timedelta(hours=4))

        monitor.resolve_stuck_orders()

        stored = load_order(order.id)
        assert stored.status == OrderStatus.READY_FOR_PICKUP
        assert stored.shipment is not None
        assert stored.shipment.status == ShipmentStatus.SCHEDULED
        assert notifier.messages("internal", "AI_AUTOMATION") == [
            f"Auto-advanced order #{order.id} from FULFILLED to READY_FOR_PICKUP"
        ]

    def test_fulfilled_order_with_fragile_items_is_escalated(self, monitor, make_product, make_order, load_order):
        tile = make_product(category=ProductCategory.TILES, weight_kg=20.0)
        order = make_order([(tile, 2)], status=OrderStatus.FULFILLED, status_age=timedelta(hours=4))

        summary = monitor.resolve_stuck_orders()

        assert summary["escalated"] == 1
        stored = load_order(order.id)
        assert stored.status == OrderStatus.FULFILLED
        assert stored.shipment is None

    def test_decisions_are_recorded(self, monitor, make_product, make_order, session_factory):
        make_order([(make_product(), 1)], status_age=timedelta(hours=3))
        make_order([(make_product(), 1)], status=OrderStatus.LOADING, status_age=timedelta(hours=3))

        monitor.resolve_stuck_orders()

        with session_factory() as session:
            types = sorted(e.event_type for e in session.query(AgentEvent).all())
        assert types == ["AUTO_ADVANCE", "STUCK_ORDER_ESCALATED"]


class TestOverdueDeliveries:
    def test_slightly_overdue_is_rescheduled(self, monitor, make_product, make_order, make_shipment,
                                             notifier, clock, session_factory):
        order = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT, status_age=timedelta(hours=5))
        shipment = make_shipment(order, estimated_in=-timedelta(hours=2))

        summary = monitor.resolve_stuck_orders()

        assert summary["rescheduled"] == 1
        assert _stored_shipment(session_factory, shipment.id).estimated_delivery == clock.now() + timedelta(hours=2)
        assert notifier.messages("client", order.client_id)[0].startswith("Auto-reschedule:")

    def test_badly_overdue_is_escalated(self, monitor, make_product, make_order, make_shipment,
                                        notifier, session_factory):
        order = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT, status_age=timedelta(hours=8))
        shipment = make_shipment(order, estimated_in=-timedelta(hours=5))

        summary = monitor.resolve_stuck_orders()

        assert summary["rescheduled"] == 0
        assert summary["escalated"] == 1
        assert any(f"Shipment #{shipment.id} is significantly overdue" in m
                   for m in notifier.messages("urgent", "DELIVERY_MANAGEMENT"))
        original = _stored_shipment(session_factory, shipment.id).estimated_delivery
        assert original == shipment.estimated_delivery


class TestDeliveryPredictions:
    def test_significant_delay_is_applied(self, build_monitor, rng_high, make_product, make_order,
                                          make_shipment, notifier, session_factory):
        order = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT)
        shipment = make_shipment(order, estimated_in=timedelta(hours=3))

        summary = build_monitor(rng=rng_high).adjust_delivery_predictions()

        # 교통 60 + 날씨 30 - 경로 절감 20
        assert summary["changed"] == 1
        stored = _stored_shipment(session_factory, shipment.id)
        assert stored.estimated_delivery == shipment.estimated_delivery + timedelta(minutes=70)
        assert notifier.messages("client", order.client_id)[0].startswith("Delivery update:")

    def test_small_drift_is_ignored(self, monitor, make_product, make_order, make_shipment, notifier,
                                    session_factory):
        order = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT)
        shipment = make_shipment(order, estimated_in=timedelta(hours=3))

        summary = monitor.adjust_delivery_predictions()

        assert summary["examined"] == 1
        assert summary["changed"] == 0
        assert _stored_shipment(session_factory, shipment.id).estimated_delivery == shipment.estimated_delivery
        assert notifier.client_messages == []

    def test_only_in_transit_shipments(self, build_monitor, rng_high, make_product, make_order, make_shipment):
        order = make_order([(make_product(), 1)], status=OrderStatus.READY_FOR_PICKUP)
        make_shipment(order, estimated_in=timedelta(hours=3), status=ShipmentStatus.SCHEDULED)

        assert build_monitor(rng=rng_high).adjust_delivery_predictions()["examined"] == 0


class TestInventoryReorder:
    def test_restocks_to_three_times_high_demand(self, build_monitor, rng_high, make_product, stock_of, notifier):
        tile = make_product(sku="TIL-60X60-GRY", category=ProductCategory.TILES, stock=10)

        summary = build_monitor(rng=rng_high).reorder_inventory()

        # 수요 50 + 12 = 62, 62 * 3 - 10
        assert summary["changed"] == 1
        assert stock_of(tile.id) == 10 + 176
        assert notifier.messages("internal", "INVENTORY")[0].startswith("Auto-reorder: 176 units")

    def test_restocks_with_low_demand(self, monitor, make_product, stock_of):
        tile = make_product(category=ProductCategory.TILES, stock=10)

        monitor.reorder_inventory()

        # 수요 50 - 12 = 38, 38 * 3 - 10
        assert stock_of(tile.id) == 10 + 104

    def test_stock_above_half_demand_is_left_alone(self, monitor, make_product, stock_of):
        pipe = make_product(category=ProductCategory.PLUMBING_SUPPLIES, stock=40)

        summary = monitor.reorder_inventory()

        assert summary["examined"] == 1
        assert summary["changed"] == 0
        assert stock_of(pipe.id) == 40

    def test_products_above_threshold_are_not_examined(self, monitor, make_product):
        make_product(stock=50)

        assert monitor.reorder_inventory()["examined"] == 0


class TestAnomalyDetection:
    def test_delayed_orders_raise_one_operations_alert(self, monitor, make_product, make_order, notifier):
        first = make_order([(make_product(), 1)], order_age=timedelta(hours=5))
        second = make_order([(make_product(), 1)], status=OrderStatus.VALIDATED, order_age=timedelta(hours=3))
        make_order([(make_product(), 1)], order_age=timedelta(hours=3))

        summary = monitor.detect_anomalies()

        alerts = notifier.messages("urgent", "OPERATIONS")
        assert len(alerts) == 1
        assert f"Order IDs: {first.id}, {second.id}." in alerts[0]
        assert alerts[0].endswith("Stub analysis for PROCESSING_DELAY.")
        assert summary["escalated"] == 1

    def test_terminal_orders_are_not_delayed(self, monitor, make_product, make_order, notifier):
        make_order([(make_product(), 1)], status=OrderStatus.DELIVERED, order_age=timedelta(hours=40))

        monitor.detect_anomalies()

        assert notifier.messages("urgent", "OPERATIONS") == []

    def test_category_demand_spike(self, monitor, make_product, make_order, notifier):
        tile = make_product(category=ProductCategory.TILES, stock=1000)
        make_order([(tile, 450)], status=OrderStatus.DELIVERED, order_age=timedelta(hours=2))

        monitor.detect_anomalies()

        alerts = notifier.messages("urgent", "DEMAND_ANALYSIS")
        assert len(alerts) == 1
        assert "Unusual demand spike detected for TILES. Today: 450, Normal: 200." in alerts[0]
        assert "anomaly.detected" in notifier.topics()

    def test_demand_outside_window_is_ignored(self, monitor, make_product, make_order, notifier):
        tile = make_product(category=ProductCategory.TILES, stock=1000)
        make_order([(tile, 450)], status=OrderStatus.DELIVERED, order_age=timedelta(hours=30))

        monitor.detect_anomalies()

        assert notifier.urgent_messages == []

    def test_explainer_failure_does_not_stop_the_sweep(self, build_monitor, make_product, make_order, notifier):
        def flaky(kind, facts):
            if kind == "PROCESSING_DELAY":
                raise RuntimeError("analysis unavailable")
            return "ok"

        tile = make_product(category=ProductCategory.TILES, stock=1000)
        make_order([(tile, 450)], order_age=timedelta(hours=5))

        summary = build_monitor(explainer=flaky).detect_anomalies()

        assert summary["failed"] == 1
        assert len(notifier.messages("urgent", "DEMAND_ANALYSIS")) == 1


class TestRouteOptimization:
    def test_stops_reordered_by_address(self, monitor, make_product, make_order, make_shipment,
                                        clock, session_factory):
        berlin = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT, address="Kantstraße 12, Berlin")
        augsburg = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT,
                              address="Annastraße 3, Augsburg, Germany")
        solo = make_order([(make_product(), 1)], status=OrderStatus.IN_TRANSIT, address="Hamburg")
        berlin_stop = make_shipment(berlin, estimated_in=timedelta(hours=9), truck_id="TRUCK_MEDIUM_002")
        augsburg_stop = make_shipment(augsburg, estimated_in=timedelta(hours=9), truck_id="TRUCK_MEDIUM_002")
        solo_stop = make_shipment(solo, estimated_in=timedelta(hours=9), truck_id="TRUCK_LARGE_001")

        summary = monitor.optimize_routes()

        now = clock.now()
        # "Annastraße..." < "Kantstraße..."
        assert _stored_shipment(session_factory, augsburg_stop.id).estimated_delivery == now + timedelta(hours=2)
        assert _stored_shipment(session_factory, berlin_stop.id).estimated_delivery == now + timedelta(hours=3)
        assert _stored_shipment(session_factory, solo_stop.id).estimated_delivery == now + timedelta(hours=9)
        assert summary["examined"] == 3
        assert summary["changed"] == 2


class TestSweepBookkeeping:
    def test_sweep_names(self, monitor):
        assert set(monitor.sweeps()) == {
            "stuck_orders", "delivery_predictions", "inventory_reorder", "anomalies", "routes",
        }

    def test_completion_is_published_and_counted(self, monitor, notifier, metrics):
        summary = monitor.reorder_inventory()

        assert "completed_at" in summary
        assert ("monitoring.sweep_completed", summary) in list(notifier.events)
        assert metrics.count("sweeps.inventory_reorder") == 1
