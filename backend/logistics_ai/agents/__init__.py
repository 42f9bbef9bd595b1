"""
에이전트 패키지
- Validation / Inventory / Fulfillment / Warehouse / Shipping: 주문 처리 파이프라인 단계
- Dispatch Agent: 적재, 출발, 배송 완료, 배송 문제, 취소
- LogisticsOrchestrator: 파이프라인 관리
- AutonomousMonitor + SweepScheduler: 자율 모니터링 스윕
"""

from logistics_ai.agents.validation_agent import ValidationAgent
from logistics_ai.agents.inventory_agent import InventoryAgent
from logistics_ai.agents.fulfillment_agent import FulfillmentAgent
from logistics_ai.agents.warehouse_agent import WarehouseAgent
from logistics_ai.agents.shipping_agent import ShippingAgent
from logistics_ai.agents.dispatch_agent import DispatchAgent
from logistics_ai.agents.orchestrator import LogisticsOrchestrator
from logistics_ai.agents.monitor_agent import AutonomousMonitor
from logistics_ai.agents.scheduler import SweepScheduler
from logistics_ai.agents.event_logger import AgentEventLogger

__all__ = [
    "ValidationAgent",
    "InventoryAgent",
    "FulfillmentAgent",
    "WarehouseAgent",
    "ShippingAgent",
    "DispatchAgent",
    "LogisticsOrchestrator",
    "AutonomousMonitor",
    "SweepScheduler",
    "AgentEventLogger",
]
