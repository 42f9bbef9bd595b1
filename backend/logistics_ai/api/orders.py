"""
주문 API — 주문 접수, 목록/상세/이력 조회, 취소
"""

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import desc
from sqlalchemy.orm import Session

from logistics_ai.api.deps import Services, get_db, get_services
from logistics_ai.models import Order, OrderStatusHistory
from logistics_ai.models.order import OrderStatus
from logistics_ai.repositories import OrderRepository
from logistics_ai.schemas.orders import (
    CancelRequest, OrderCreateRequest, OrderItemResponse, OrderListResponse,
    OrderResponse, ShipmentSummary, StatusHistoryResponse,
)

router = APIRouter(prefix="/api/orders", tags=["orders"])


def order_to_response(order: Order, outcome: str | None = None) -> OrderResponse:
    """Order ORM → OrderResponse 변환 헬퍼"""
    shipment = order.shipment
    return OrderResponse(
        id=order.id,
        client_id=order.client_id,
        client_name=order.client_name,
        delivery_address=order.delivery_address,
        requested_delivery_date=order.requested_delivery_date,
        status=order.status.value,
        order_date=order.order_date,
        status_changed_at=order.status_changed_at,
        total_weight_kg=round(order.total_weight_kg, 3),
        total_volume_m3=round(order.total_volume_m3, 3),
        items=[
            OrderItemResponse(
                id=item.id,
                product_id=item.product_id,
                sku=item.product.sku,
                product_name=item.product.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                weight_kg=round(item.weight_kg, 3),
            )
            for item in order.items
        ],
        shipment=ShipmentSummary(
            id=shipment.id,
            truck_id=shipment.truck_id,
            driver_id=shipment.driver_id,
            status=shipment.status.value,
            scheduled_pickup=shipment.scheduled_pickup,
            estimated_delivery=shipment.estimated_delivery,
        ) if shipment is not None else None,
        outcome=outcome,
    )


def _load_response(services: Services, order_id: int, outcome: str | None = None) -> OrderResponse:
    with services.session_factory() as db:
        return order_to_response(OrderRepository(db).require(order_id), outcome)


@router.post("", response_model=OrderResponse, status_code=201)
async def submit_order(
    request: OrderCreateRequest,
    wait: bool = Query(False, description="파이프라인 완료까지 기다린 뒤 응답"),
    services: Services = Depends(get_services),
):
    """주문 접수 → 파이프라인 실행 예약 (wait=true면 처리 결과까지 반환)"""
    order = await run_in_threadpool(
        services.orchestrator.create_order,
        request.client_id,
        request.client_name,
        request.delivery_address,
        request.requested_delivery_date,
        [(i.sku, i.quantity, i.unit_price) for i in request.items],
    )

    outcome = None
    if wait:
        outcome = await services.orchestrator.process_order(order.id)
    else:
        services.orchestrator.submit(order.id)

    return await run_in_threadpool(_load_response, services, order.id, outcome)


@router.get("", response_model=OrderListResponse)
def list_orders(
    status: str | None = Query(None, description="주문 상태 필터"),
    client_id: str | None = Query(None, description="고객 ID 필터"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """주문 목록 조회 (최신순)"""
    query = db.query(Order)

    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            pass  # 잘못된 상태값은 무시
    if client_id:
        query = query.filter(Order.client_id == client_id)

    total = query.count()
    orders = query.order_by(desc(Order.order_date), desc(Order.id)).offset(offset).limit(limit).all()
    return OrderListResponse(total=total, orders=[order_to_response(o) for o in orders])


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return order_to_response(OrderRepository(db).require(order_id))


@router.get("/{order_id}/history", response_model=list[StatusHistoryResponse])
def get_order_history(order_id: int, db: Session = Depends(get_db)):
    """주문 상태 변경 이력 (오래된 순)"""
    OrderRepository(db).require(order_id)
    history = (
        db.query(OrderStatusHistory)
        .filter(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.id)
        .all()
    )
    return [
        StatusHistoryResponse(
            id=h.id,
            previous_status=h.previous_status.value,
            new_status=h.new_status.value,
            reason=h.reason,
            actor=h.actor,
            created_at=h.created_at,
        )
        for h in history
    ]


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    request: CancelRequest | None = None,
    services: Services = Depends(get_services),
):
    reason = request.reason if request else CancelRequest().reason
    order = services.dispatcher.cancel_order(order_id, reason)
    return _load_response(services, order.id)
