"""
SQLAlchemy ORM 모델 패키지
- 모든 모델을 여기서 import하여 Base.metadata에 등록한다.
"""

from logistics_ai.models.product import Product
from logistics_ai.models.order import Order, OrderItem, OrderStatusHistory
from logistics_ai.models.shipment import Shipment
from logistics_ai.models.agent_event import AgentEvent

__all__ = [
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Shipment",
    "AgentEvent",
]
