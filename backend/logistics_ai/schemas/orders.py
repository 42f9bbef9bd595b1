"""
주문 관련 Pydantic 스키마
"""

from datetime import datetime
from pydantic import BaseModel, Field


class OrderItemRequest(BaseModel):
    sku: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)


class OrderCreateRequest(BaseModel):
    client_id: str
    client_name: str
    delivery_address: str
    requested_delivery_date: datetime
    items: list[OrderItemRequest]


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    sku: str | None = None
    product_name: str | None = None
    quantity: int
    unit_price: float
    weight_kg: float


class ShipmentSummary(BaseModel):
    id: int
    truck_id: str
    driver_id: str
    status: str
    scheduled_pickup: datetime
    estimated_delivery: datetime


class OrderResponse(BaseModel):
    id: int
    client_id: str
    client_name: str
    delivery_address: str
    requested_delivery_date: datetime
    status: str
    order_date: datetime
    status_changed_at: datetime
    total_weight_kg: float
    total_volume_m3: float
    items: list[OrderItemResponse] = []
    shipment: ShipmentSummary | None = None
    outcome: str | None = None  # wait=true로 처리까지 기다린 경우 결과 문자열


class OrderListResponse(BaseModel):
    total: int
    orders: list[OrderResponse]


class StatusHistoryResponse(BaseModel):
    id: int
    previous_status: str
    new_status: str
    reason: str
    actor: str
    created_at: datetime


class CancelRequest(BaseModel):
    reason: str = "Cancelled by request"
