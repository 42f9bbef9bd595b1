"""
도메인 예외
- 에이전트는 예상 가능한 업무 결과(검증 실패, 재고 부족 등)를 결과 객체로 반환한다.
- 아래 예외는 조회 실패, 상태 머신 위반처럼 호출자가 처리해야 하는 경우에 사용한다.
- API 계층이 HTTP 응답으로 변환한다.
"""


class LogisticsError(Exception):
    """모든 도메인 예외의 기반 클래스"""

    status_code = 400


class OrderNotFoundError(LogisticsError):
    status_code = 404

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ProductNotFoundError(LogisticsError):
    status_code = 404

    def __init__(self, sku):
        self.sku = sku
        super().__init__(f"Product not found: {sku}")


class ShipmentNotFoundError(LogisticsError):
    status_code = 404

    def __init__(self, shipment_id):
        self.shipment_id = shipment_id
        super().__init__(f"Shipment not found: {shipment_id}")


class InvalidStatusTransitionError(LogisticsError):
    """허용되지 않은 상태 전이 (종료 상태 변경 포함)"""

    status_code = 409

    def __init__(self, entity: str, entity_id, current, target):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"{entity} #{entity_id} cannot move from {_name(current)} to {_name(target)}"
        )


class OrderLockedError(LogisticsError):
    """FULFILLED 이후 품목 변경 시도"""

    status_code = 409


class InvalidOrderError(LogisticsError):
    """검증 실패 — 클라이언트 입력 결함"""


class ShipmentStateError(LogisticsError):
    """현재 운송 상태에서 허용되지 않는 창고/배송 작업"""

    status_code = 409


class InvalidRequestError(LogisticsError):
    """요청 값 자체가 잘못됨 (과거 ETA 등)"""


def _name(status) -> str:
    return getattr(status, "value", str(status))
