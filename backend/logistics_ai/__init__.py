"""
B2B 출하 자동화 서비스
- 주문 검증 → 재고 확인 → 재고 예약 → 피킹 지시 → 배차/일정 파이프라인
- 자율 모니터링 엔진 (정체 주문 해소, 도착 예측, 재주문, 이상 감지, 경로 재최적화)
"""

__version__ = "0.4.0"
