"""
창고/운송 관련 Pydantic 스키마
"""

from datetime import datetime
from pydantic import BaseModel


class ShipmentResponse(BaseModel):
    id: int
    order_id: int
    truck_id: str
    driver_id: str
    status: str
    scheduled_pickup: datetime
    actual_pickup: datetime | None = None
    estimated_delivery: datetime
    actual_delivery: datetime | None = None
    requires_special_handling: bool
    picking_instructions: str | None = None

    model_config = {"from_attributes": True}


class DeliveryProblemRequest(BaseModel):
    problem: str
    new_estimated_delivery: datetime | None = None
