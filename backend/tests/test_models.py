"""
주문/운송 상태 머신, 품목 잠금, 재고 원자 연산, 낙관적 잠금
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from logistics_ai.exceptions import InvalidStatusTransitionError, OrderLockedError
from logistics_ai.models import Order, Product, Shipment
from logistics_ai.models.order import ORDER_TRANSITIONS, OrderStatus, TERMINAL_ORDER_STATUSES
from logistics_ai.models.product import ProductCategory
from logistics_ai.models.shipment import ShipmentStatus
from logistics_ai.repositories import ProductRepository


class TestOrderTransitions:
    def test_forward_transition_records_history(self, make_product, make_order, clock, db):
        order = make_order([(make_product(), 2)])
        at = clock.advance(minutes=5)

        history = order.transition_to(OrderStatus.VALIDATED, at, reason="ok", actor="test")
        db.commit()

        assert order.status == OrderStatus.VALIDATED
        assert order.status_changed_at == at
        assert history.previous_status == OrderStatus.RECEIVED
        assert history.new_status == OrderStatus.VALIDATED
        assert history.actor == "test"
        assert [h.new_status for h in order.status_history] == [OrderStatus.VALIDATED]

    def test_skipping_a_stage_is_rejected(self, make_product, make_order, clock):
        order = make_order([(make_product(), 1)])

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            order.transition_to(OrderStatus.FULFILLED, clock.now())

        assert "RECEIVED" in str(exc_info.value)
        assert order.status == OrderStatus.RECEIVED

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_ORDER_STATUSES, key=lambda s: s.value))
    def test_terminal_states_cannot_change(self, make_product, make_order, clock, terminal):
        order = make_order([(make_product(), 1)], status=terminal)

        for target in OrderStatus:
            with pytest.raises(InvalidStatusTransitionError):
                order.transition_to(target, clock.now())

    def test_every_non_terminal_status_can_be_cancelled(self):
        for status, targets in ORDER_TRANSITIONS.items():
            if status not in TERMINAL_ORDER_STATUSES:
                assert OrderStatus.CANCELLED in targets, status

    def test_ready_for_pickup_may_skip_loading(self):
        assert OrderStatus.IN_TRANSIT in ORDER_TRANSITIONS[OrderStatus.READY_FOR_PICKUP]


class TestOrderItems:
    def test_totals_recalculated_on_each_item(self, make_product):
        cement = make_product(weight_kg=25.0, volume_m3=0.02)
        pipe = make_product(weight_kg=2.5, volume_m3=0.1)
        order = Order(status=OrderStatus.RECEIVED)

        order.add_item(cement, 4, 6.9)
        assert order.total_weight_kg == pytest.approx(100.0)

        order.add_item(pipe, 2, 4.5)
        assert order.total_weight_kg == pytest.approx(105.0)
        assert order.total_volume_m3 == pytest.approx(0.28)

    def test_items_locked_after_fulfillment(self, make_product, make_order):
        product = make_product()
        order = make_order([(product, 1)], status=OrderStatus.FULFILLED)

        with pytest.raises(OrderLockedError):
            order.add_item(product, 1, 10.0)
        assert len(order.items) == 1

    def test_item_price_and_weight(self, make_product, make_order):
        order = make_order([(make_product(weight_kg=12.0), 3)], unit_price=7.5)
        item = order.items[0]

        assert item.total_price == pytest.approx(22.5)
        assert item.weight_kg == pytest.approx(36.0)

    def test_handling_flags(self, make_product, make_order):
        tile = make_product(category=ProductCategory.TILES, weight_kg=20.0)
        steel = make_product(category=ProductCategory.CONSTRUCTION_MATERIALS, weight_kg=68.0)

        assert tile.is_fragile and not tile.is_heavy
        assert steel.is_heavy and not steel.is_fragile

        order = make_order([(tile, 1), (steel, 1)])
        assert order.has_fragile_items
        assert order.has_heavy_items

    def test_time_in_status_and_since_order(self, make_product, make_order, clock):
        order = make_order([(make_product(), 1)], status_age=timedelta(hours=3), order_age=timedelta(hours=10))

        assert order.hours_in_status(clock.now()) == pytest.approx(3.0)
        assert order.hours_since_order(clock.now()) == pytest.approx(10.0)


class TestShipmentTransitions:
    def _shipment(self, db, make_product, make_order, clock):
        order = make_order([(make_product(), 1)], status=OrderStatus.READY_FOR_PICKUP)
        shipment = Shipment(
            order_id=order.id,
            truck_id="TRUCK_SMALL_004",
            driver_id="DRIVER_GENERAL_004",
            scheduled_pickup=clock.now() + timedelta(hours=2),
            estimated_delivery=clock.now() + timedelta(hours=8),
            status=ShipmentStatus.SCHEDULED,
        )
        db.add(shipment)
        db.commit()
        return shipment

    def test_full_path(self, db, make_product, make_order, clock):
        shipment = self._shipment(db, make_product, make_order, clock)

        for target in (ShipmentStatus.LOADING, ShipmentStatus.LOADED,
                       ShipmentStatus.IN_TRANSIT, ShipmentStatus.DELIVERED):
            shipment.transition_to(target)

        assert shipment.is_terminal

    def test_cannot_dispatch_before_loading(self, db, make_product, make_order, clock):
        shipment = self._shipment(db, make_product, make_order, clock)

        with pytest.raises(InvalidStatusTransitionError):
            shipment.transition_to(ShipmentStatus.IN_TRANSIT)

    def test_overdue_only_while_in_transit(self, db, make_product, make_order, clock):
        shipment = self._shipment(db, make_product, make_order, clock)
        late = clock.now() + timedelta(hours=9)

        assert not shipment.is_overdue(late)

        for target in (ShipmentStatus.LOADING, ShipmentStatus.LOADED, ShipmentStatus.IN_TRANSIT):
            shipment.transition_to(target)

        assert not shipment.is_overdue(clock.now() + timedelta(hours=8))
        assert shipment.is_overdue(late)
        shipment.transition_to(ShipmentStatus.DELIVERED)
        assert not shipment.is_overdue(late)


class TestStockOperations:
    def test_decrement_only_when_sufficient(self, db, make_product, stock_of):
        product = make_product(stock=5)
        products = ProductRepository(db)

        assert products.try_decrement_stock(product.id, 3) is True
        assert products.try_decrement_stock(product.id, 3) is False
        db.commit()

        assert stock_of(product.id) == 2

    def test_decrement_refreshes_loaded_instance(self, db, make_product):
        product = make_product(stock=10)

        ProductRepository(db).try_decrement_stock(product.id, 4)

        assert product.stock_quantity == 6

    def test_increment(self, db, make_product, stock_of):
        product = make_product(stock=0)

        assert ProductRepository(db).increment_stock(product.id, 7)
        db.commit()

        assert stock_of(product.id) == 7

    def test_negative_stock_rejected_by_database(self, db, make_product):
        product = make_product(stock=1)

        product.stock_quantity = -1
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_low_stock_query(self, db, make_product):
        make_product(sku="LOW-1", stock=10)
        make_product(sku="HIGH-1", stock=80)

        assert [p.sku for p in ProductRepository(db).find_low_stock(50)] == ["LOW-1"]


class TestOptimisticLocking:
    def test_concurrent_status_write_raises_stale_data(self, make_product, make_order, session_factory, clock):
        order = make_order([(make_product(), 1)])

        first, second = session_factory(), session_factory()
        try:
            mine = first.get(Order, order.id)
            theirs = second.get(Order, order.id)

            mine.transition_to(OrderStatus.VALIDATED, clock.now(), actor="orchestrator")
            first.commit()

            theirs.transition_to(OrderStatus.CANCELLED, clock.now(), actor="monitor")
            with pytest.raises(StaleDataError):
                second.commit()
            second.rollback()
        finally:
            first.close()
            second.close()

        with session_factory() as session:
            assert session.get(Order, order.id).status == OrderStatus.VALIDATED

    def test_version_increments(self, make_product, make_order, db, clock):
        order = make_order([(make_product(), 1)])
        version = order.version

        order.transition_to(OrderStatus.VALIDATED, clock.now())
        db.commit()

        assert order.version == version + 1


def test_product_repr(make_product):
    assert repr(make_product(sku="PLU-CU-22", stock=3)) == "<Product PLU-CU-22 stock=3>"
    assert Product.__tablename__ == "products"
