"""
품목 관련 Pydantic 스키마
"""

from pydantic import BaseModel


class ProductResponse(BaseModel):
    id: int
    sku: str
    name: str
    category: str
    weight_kg: float
    volume_m3: float
    stock_quantity: int
    location: str
    is_heavy: bool
    is_fragile: bool

    model_config = {"from_attributes": True}
