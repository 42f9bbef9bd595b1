"""
영속성 계약 — 에이전트가 사용하는 좁은 조회/저장 인터페이스.
- id 조회, 저장, 단순 조건 조회 (상태별, 고객별, 기간, 운송 중)
- 재고 증감은 조건부 UPDATE 한 문장으로 원자적으로 수행한다.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from logistics_ai.exceptions import OrderNotFoundError, ProductNotFoundError, ShipmentNotFoundError
from logistics_ai.models import Order, Product, Shipment
from logistics_ai.models.order import OrderStatus, TERMINAL_ORDER_STATUSES
from logistics_ai.models.shipment import ShipmentStatus


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Order | None:
        return self.db.get(Order, order_id)

    def require(self, order_id: int) -> Order:
        order = self.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def find_all(self) -> list[Order]:
        return list(self.db.scalars(select(Order).order_by(Order.id)))

    def find_by_status(self, status: OrderStatus) -> list[Order]:
        return list(self.db.scalars(select(Order).where(Order.status == status).order_by(Order.id)))

    def find_active(self) -> list[Order]:
        """종료되지 않은 주문 전체"""
        return list(self.db.scalars(
            select(Order).where(Order.status.not_in(list(TERMINAL_ORDER_STATUSES))).order_by(Order.id)
        ))

    def find_in_status_since_before(self, cutoff: datetime) -> list[Order]:
        """cutoff 이전부터 현재 상태에 머문 미종료 주문"""
        return list(self.db.scalars(
            select(Order)
            .where(Order.status.not_in(list(TERMINAL_ORDER_STATUSES)), Order.status_changed_at < cutoff)
            .order_by(Order.id)
        ))

    def find_recent(self, since: datetime) -> list[Order]:
        return list(self.db.scalars(
            select(Order).where(Order.order_date >= since).order_by(Order.order_date.desc())
        ))


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Product | None:
        return self.db.get(Product, product_id)

    def find_by_sku(self, sku: str) -> Product | None:
        return self.db.scalars(select(Product).where(Product.sku == sku)).first()

    def require_by_sku(self, sku: str) -> Product:
        product = self.find_by_sku(sku)
        if product is None:
            raise ProductNotFoundError(sku)
        return product

    def add(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def find_all(self) -> list[Product]:
        return list(self.db.scalars(select(Product).order_by(Product.sku)))

    def find_low_stock(self, threshold: int) -> list[Product]:
        return list(self.db.scalars(
            select(Product).where(Product.stock_quantity < threshold).order_by(Product.sku)
        ))

    def current_stock(self, product_id: int) -> int | None:
        """세션 캐시를 거치지 않고 현재 재고를 읽는다."""
        return self.db.scalar(select(Product.stock_quantity).where(Product.id == product_id))

    def try_decrement_stock(self, product_id: int, quantity: int) -> bool:
        """재고가 충분할 때만 차감 — 동시 호출에도 음수가 되지 않는다."""
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        self._refresh(product_id)
        return result.rowcount == 1

    def increment_stock(self, product_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        self._refresh(product_id)
        return result.rowcount == 1

    def _refresh(self, product_id: int):
        # 세션에 로드된 인스턴스가 있으면 DB 값으로 다시 읽도록 만료
        product = self.db.identity_map.get(self.db.identity_key(Product, product_id))
        if product is not None:
            self.db.expire(product, ["stock_quantity"])


class ShipmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, shipment_id: int) -> Shipment | None:
        return self.db.get(Shipment, shipment_id)

    def require(self, shipment_id: int) -> Shipment:
        shipment = self.get(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    def add(self, shipment: Shipment) -> Shipment:
        self.db.add(shipment)
        self.db.flush()
        return shipment

    def find_by_order(self, order_id: int) -> Shipment | None:
        return self.db.scalars(select(Shipment).where(Shipment.order_id == order_id)).first()

    def find_by_status(self, status: ShipmentStatus) -> list[Shipment]:
        return list(self.db.scalars(
            select(Shipment).where(Shipment.status == status).order_by(Shipment.id)
        ))

    def find_in_transit(self) -> list[Shipment]:
        return self.find_by_status(ShipmentStatus.IN_TRANSIT)

    def find_all(self) -> list[Shipment]:
        return list(self.db.scalars(select(Shipment).order_by(Shipment.id)))
