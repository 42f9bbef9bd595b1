"""
공용 픽스처 — 테스트마다 독립된 파일 SQLite DB, 고정 시각, 기록용 알림, 결정적 난수.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from logistics_ai.agents.event_logger import AgentEventLogger
from logistics_ai.clock import FixedClock
from logistics_ai.database import Base, build_engine
from logistics_ai.metrics import MetricsSink
from logistics_ai.models import Order, Product
from logistics_ai.models.order import OrderStatus
from logistics_ai.models.product import ProductCategory
from logistics_ai.notifier import RecordingNotifier

# 2025-06-04 수요일 10:00 (영업시간 내)
NOW = datetime(2025, 6, 4, 10, 0)


class StubRandom:
    """randint가 항상 상한(high=True) 또는 하한을 돌려주는 난수 대역"""

    def __init__(self, high: bool = True):
        self.high = high

    def randint(self, a: int, b: int) -> int:
        return b if self.high else a


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'logistics_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def metrics():
    return MetricsSink()


@pytest.fixture
def event_logger(session_factory, clock):
    return AgentEventLogger(session_factory, clock)


@pytest.fixture
def rng_high():
    return StubRandom(high=True)


@pytest.fixture
def rng_low():
    return StubRandom(high=False)


@pytest.fixture
def make_product(db):
    """품목 생성 헬퍼 — 기본값은 경량 배관자재"""
    counter = {"n": 0}

    def _make(
        sku: str | None = None,
        category: ProductCategory | str = ProductCategory.PLUMBING_SUPPLIES,
        weight_kg: float = 8.0,
        volume_m3: float = 0.05,
        stock: int = 100,
        location: str = "B-01-01",
        name: str | None = None,
    ) -> Product:
        counter["n"] += 1
        sku = sku or f"SKU-{counter['n']:03d}"
        product = Product(
            sku=sku,
            name=name or f"Artikel {sku}",
            category=category.value if isinstance(category, ProductCategory) else category,
            weight_kg=weight_kg,
            volume_m3=volume_m3,
            stock_quantity=stock,
            location=location,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_order(db, clock):
    """
    주문 생성 헬퍼. items는 (product, quantity) 목록.
    status를 주면 품목 추가 후 해당 상태로 바로 저장한다 (전이 이력 없이).
    """

    def _make(
        items,
        status: OrderStatus = OrderStatus.RECEIVED,
        client_id: str = "CLIENT-001",
        client_name: str = "Hamburger Bau GmbH",
        address: str = "Spaldingstraße 64, 20097 Hamburg, Germany",
        delivery_in: timedelta = timedelta(days=5),
        status_age: timedelta = timedelta(0),
        order_age: timedelta | None = None,
        unit_price: float = 10.0,
    ) -> Order:
        now = clock.now()
        order = Order(
            client_id=client_id,
            client_name=client_name,
            delivery_address=address,
            requested_delivery_date=now + delivery_in,
            status=OrderStatus.RECEIVED,
            order_date=now - (order_age if order_age is not None else status_age),
            status_changed_at=now - status_age,
        )
        for product, quantity in items:
            order.add_item(product, quantity, unit_price)
        order.status = status
        db.add(order)
        db.commit()
        return order

    return _make


@pytest.fixture
def stock_of(session_factory):
    """새 세션으로 현재 재고 조회"""

    def _stock(product_id: int) -> int:
        with session_factory() as session:
            return session.get(Product, product_id).stock_quantity

    return _stock


@pytest.fixture
def load_order(session_factory):
    """새 세션으로 주문을 다시 읽는다 (이력, 운송, 품목 포함)."""

    def _load(order_id: int) -> Order:
        with session_factory() as session:
            order = session.get(Order, order_id)
            _ = order.status_history, order.shipment, [i.product for i in order.items]
            return order

    return _load
