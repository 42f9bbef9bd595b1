"""
창고 운영 API — 운송 목록 조회, 적재/출발/배송 완료/배송 문제 처리
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from logistics_ai.api.deps import Services, get_db, get_services
from logistics_ai.models import Shipment
from logistics_ai.models.shipment import ShipmentStatus
from logistics_ai.schemas.warehouse import DeliveryProblemRequest, ShipmentResponse

router = APIRouter(prefix="/api/warehouse", tags=["warehouse"])


def _to_response(shipment: Shipment) -> ShipmentResponse:
    return ShipmentResponse(
        id=shipment.id,
        order_id=shipment.order_id,
        truck_id=shipment.truck_id,
        driver_id=shipment.driver_id,
        status=shipment.status.value,
        scheduled_pickup=shipment.scheduled_pickup,
        actual_pickup=shipment.actual_pickup,
        estimated_delivery=shipment.estimated_delivery,
        actual_delivery=shipment.actual_delivery,
        requires_special_handling=shipment.requires_special_handling,
        picking_instructions=shipment.picking_instructions,
    )


@router.get("/shipments", response_model=list[ShipmentResponse])
def list_shipments(
    status: str | None = Query(None, description="운송 상태 필터 (SCHEDULED, LOADING, ...)"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """운송 목록 (픽업 예정 시각 순)"""
    query = db.query(Shipment)
    if status:
        try:
            query = query.filter(Shipment.status == ShipmentStatus(status))
        except ValueError:
            pass
    shipments = query.order_by(Shipment.scheduled_pickup, Shipment.id).limit(limit).all()
    return [_to_response(s) for s in shipments]


@router.post("/shipments/{shipment_id}/start-loading", response_model=ShipmentResponse)
def start_loading(shipment_id: int, services: Services = Depends(get_services)):
    return _to_response(services.dispatcher.start_loading(shipment_id))


@router.post("/shipments/{shipment_id}/complete-loading", response_model=ShipmentResponse)
def complete_loading(shipment_id: int, services: Services = Depends(get_services)):
    return _to_response(services.dispatcher.complete_loading(shipment_id))


@router.post("/shipments/{shipment_id}/dispatch", response_model=ShipmentResponse)
def dispatch_shipment(shipment_id: int, services: Services = Depends(get_services)):
    return _to_response(services.dispatcher.dispatch(shipment_id))


@router.post("/shipments/{shipment_id}/delivered", response_model=ShipmentResponse)
def mark_delivered(shipment_id: int, services: Services = Depends(get_services)):
    return _to_response(services.dispatcher.mark_delivered(shipment_id))


@router.post("/shipments/{shipment_id}/delivery-problem", response_model=ShipmentResponse)
def report_delivery_problem(
    shipment_id: int,
    request: DeliveryProblemRequest,
    services: Services = Depends(get_services),
):
    shipment = services.dispatcher.report_delivery_problem(
        shipment_id, request.problem, request.new_estimated_delivery,
    )
    return _to_response(shipment)
