"""
에이전트 결과 객체 — 예상 가능한 업무 결과(통과/거절)는 예외 대신 이 값으로 반환한다.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str


@dataclass(frozen=True)
class InventoryCheckResult:
    available: bool
    message: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class FulfillmentResult:
    success: bool
    message: str
    # 이번 호출에서 실제로 차감한 (product_id, quantity)
    reserved: tuple[tuple[int, int], ...] = field(default=())


@dataclass(frozen=True)
class WarehouseInstructions:
    text: str
    requires_special_handling: bool
    estimated_picking_minutes: int
