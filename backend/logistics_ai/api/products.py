"""
품목 API — 재고 현황 조회
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from logistics_ai.agents.rules import LOW_STOCK_THRESHOLD
from logistics_ai.repositories import ProductRepository
from logistics_ai.api.deps import get_db
from logistics_ai.schemas.products import ProductResponse

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=list[ProductResponse])
def list_products(
    category: str | None = Query(None, description="카테고리 필터 (TILES, CONSTRUCTION_MATERIALS, ...)"),
    db: Session = Depends(get_db),
):
    products = ProductRepository(db).find_all()
    if category:
        products = [p for p in products if p.category == category]
    return products


@router.get("/low-stock", response_model=list[ProductResponse])
def list_low_stock(
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=0),
    db: Session = Depends(get_db),
):
    """재고가 threshold 미만인 품목"""
    return ProductRepository(db).find_low_stock(threshold)
