"""
shipments 테이블 — 주문 1건에 대응하는 운송 기록 (트럭/기사/일정)
- FULFILLED 이후 Shipping Agent가 생성한다.
- 삭제하지 않고 종료 상태(DELIVERED/CANCELLED)로만 전이한다.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from logistics_ai.database import Base
from logistics_ai.exceptions import InvalidStatusTransitionError


class ShipmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    LOADING = "LOADING"
    LOADED = "LOADED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


SHIPMENT_TRANSITIONS: dict[ShipmentStatus, frozenset[ShipmentStatus]] = {
    ShipmentStatus.SCHEDULED: frozenset({ShipmentStatus.LOADING, ShipmentStatus.CANCELLED}),
    ShipmentStatus.LOADING: frozenset({ShipmentStatus.LOADED, ShipmentStatus.CANCELLED}),
    ShipmentStatus.LOADED: frozenset({ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED}),
    ShipmentStatus.IN_TRANSIT: frozenset({ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED}),
    ShipmentStatus.DELIVERED: frozenset(),
    ShipmentStatus.CANCELLED: frozenset(),
}

TERMINAL_SHIPMENT_STATUSES = frozenset({ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED})


class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)  # 1:1
    truck_id = Column(String(50), nullable=False)
    driver_id = Column(String(50), nullable=False)
    scheduled_pickup = Column(DateTime, nullable=False)
    actual_pickup = Column(DateTime, nullable=True)
    estimated_delivery = Column(DateTime, nullable=False)
    actual_delivery = Column(DateTime, nullable=True)
    status = Column(Enum(ShipmentStatus), default=ShipmentStatus.SCHEDULED, nullable=False)
    picking_instructions = Column(Text, nullable=True)
    requires_special_handling = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="shipment", lazy="joined")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SHIPMENT_STATUSES

    def transition_to(self, target: ShipmentStatus):
        if target not in SHIPMENT_TRANSITIONS.get(self.status, frozenset()):
            raise InvalidStatusTransitionError("Shipment", self.id, self.status, target)
        self.status = target

    def is_overdue(self, now: datetime) -> bool:
        """운송 중인데 도착 예정 시각이 지남"""
        return self.status == ShipmentStatus.IN_TRANSIT and self.estimated_delivery < now

    def __repr__(self):
        return f"<Shipment #{self.id} order={self.order_id} {self.status.value if self.status else None}>"
