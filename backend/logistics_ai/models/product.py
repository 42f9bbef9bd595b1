"""
products 테이블 — 창고 보관 품목(건자재) 정보
- stock_quantity는 CHECK 제약으로 음수를 막는다.
- 재고 증감은 반드시 ProductRepository의 원자적 UPDATE를 통해 수행한다.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String

from logistics_ai.database import Base

# 50kg 초과 품목은 중량물
HEAVY_WEIGHT_KG = 50.0


class ProductCategory(str, enum.Enum):
    TILES = "TILES"
    CONSTRUCTION_MATERIALS = "CONSTRUCTION_MATERIALS"
    ROOFING_MATERIALS = "ROOFING_MATERIALS"
    PLUMBING_SUPPLIES = "PLUMBING_SUPPLIES"


# 취급 주의 카테고리
FRAGILE_CATEGORIES = frozenset({ProductCategory.TILES.value})


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(50), unique=True, nullable=False)  # 예: "TIL-60X60-GRY"
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)  # ProductCategory 값 (그 외 문자열도 허용)
    weight_kg = Column(Float, nullable=False)  # 단위 중량
    volume_m3 = Column(Float, nullable=False)  # 단위 부피
    stock_quantity = Column(Integer, nullable=False, default=0)
    location = Column(String(50), nullable=False)  # 창고 위치 코드, 예: "A-01-03"
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )

    @property
    def is_heavy(self) -> bool:
        return self.weight_kg > HEAVY_WEIGHT_KG

    @property
    def is_fragile(self) -> bool:
        return self.category in FRAGILE_CATEGORIES

    def is_available(self, quantity: int) -> bool:
        return self.stock_quantity >= quantity

    def __repr__(self):
        return f"<Product {self.sku} stock={self.stock_quantity}>"
