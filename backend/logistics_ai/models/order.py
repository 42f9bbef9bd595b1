"""
orders / order_items / order_status_history 테이블 — B2B 주문, 주문 품목, 상태 변경 이력
- 상태 전이는 ORDER_TRANSITIONS 표를 통해서만 가능하다.
- version 컬럼으로 낙관적 잠금 (오케스트레이터와 모니터링 엔진의 동시 갱신 대비).
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, Enum
from sqlalchemy.orm import relationship

from logistics_ai.database import Base
from logistics_ai.exceptions import InvalidStatusTransitionError, OrderLockedError


class OrderStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    INVENTORY_CHECKED = "INVENTORY_CHECKED"
    FULFILLED = "FULFILLED"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    LOADING = "LOADING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.RECEIVED: frozenset({OrderStatus.VALIDATED, OrderStatus.CANCELLED}),
    OrderStatus.VALIDATED: frozenset({OrderStatus.INVENTORY_CHECKED, OrderStatus.CANCELLED}),
    OrderStatus.INVENTORY_CHECKED: frozenset({OrderStatus.FULFILLED, OrderStatus.CANCELLED}),
    OrderStatus.FULFILLED: frozenset({OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED}),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.LOADING, OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED,
    }),
    OrderStatus.LOADING: frozenset({OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED}),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# 재고가 이미 예약된 상태: 품목 변경 불가
RESERVED_ORDER_STATUSES = frozenset({
    OrderStatus.FULFILLED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.LOADING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(50), nullable=False)
    client_name = Column(String(200), nullable=False)
    delivery_address = Column(String(500), nullable=False)
    requested_delivery_date = Column(DateTime, nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.RECEIVED, nullable=False)
    order_date = Column(DateTime, nullable=False, default=_utcnow)
    status_changed_at = Column(DateTime, nullable=False, default=_utcnow)  # 현재 상태 진입 시각
    total_weight_kg = Column(Float, nullable=False, default=0.0)
    total_volume_m3 = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False, default=1)

    items = relationship(
        "OrderItem", back_populates="order", lazy="selectin",
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )
    status_history = relationship(
        "OrderStatusHistory", back_populates="order", lazy="select",
        cascade="all, delete-orphan", order_by="OrderStatusHistory.id",
    )
    shipment = relationship("Shipment", back_populates="order", uselist=False, lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def has_fragile_items(self) -> bool:
        return any(item.product.is_fragile for item in self.items)

    @property
    def has_heavy_items(self) -> bool:
        return any(item.product.is_heavy for item in self.items)

    def add_item(self, product, quantity: int, unit_price: float) -> "OrderItem":
        """품목 추가 후 총 중량/부피를 다시 계산한다."""
        if self.status in RESERVED_ORDER_STATUSES or self.status == OrderStatus.CANCELLED:
            raise OrderLockedError(
                f"Order #{self.id} items are locked in status {self.status.value}"
            )
        item = OrderItem(product=product, quantity=quantity, unit_price=unit_price)
        self.items.append(item)
        self.recalculate_totals()
        return item

    def recalculate_totals(self):
        self.total_weight_kg = sum(i.quantity * i.product.weight_kg for i in self.items)
        self.total_volume_m3 = sum(i.quantity * i.product.volume_m3 for i in self.items)

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in ORDER_TRANSITIONS.get(self.status, frozenset())

    def transition_to(self, target: OrderStatus, at: datetime, reason: str = "",
                      actor: str = "system") -> "OrderStatusHistory":
        """상태 전이 — 표에 없는 전이는 InvalidStatusTransitionError"""
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError("Order", self.id, self.status, target)

        history = OrderStatusHistory(
            previous_status=self.status,
            new_status=target,
            reason=reason[:500],
            actor=actor,
            created_at=at,
        )
        self.status_history.append(history)
        self.status = target
        self.status_changed_at = at
        return history

    def hours_in_status(self, now: datetime) -> float:
        return (now - self.status_changed_at).total_seconds() / 3600

    def hours_since_order(self, now: datetime) -> float:
        return (now - self.order_date).total_seconds() / 3600

    def __repr__(self):
        return f"<Order #{self.id} {self.status.value if self.status else None}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="joined")

    @property
    def total_price(self) -> float:
        return self.quantity * self.unit_price

    @property
    def weight_kg(self) -> float:
        return self.quantity * self.product.weight_kg


class OrderStatusHistory(Base):
    """주문 상태 변경 이력 — 누가, 왜 바꿨는지 기록"""

    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    previous_status = Column(Enum(OrderStatus), nullable=False)
    new_status = Column(Enum(OrderStatus), nullable=False)
    reason = Column(Text, nullable=False, default="")
    actor = Column(String(50), nullable=False)  # "orchestrator", "monitor", "dispatch" 등
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    order = relationship("Order", back_populates="status_history")
