"""
FastAPI 앱 엔트리포인트
- CORS 설정
- 라우터 등록 (주문, 창고, 품목, 모니터링)
- AsyncEventBus + 알림 서비스 연결 + 모니터링 스윕 스케줄러 백그라운드 시작
- 헬스체크 엔드포인트
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from logistics_ai import __version__
from logistics_ai.api import monitoring, orders, products, warehouse
from logistics_ai.api.deps import get_services
from logistics_ai.api.errors import register_exception_handlers
from logistics_ai.config import settings
from logistics_ai.database import Base
from logistics_ai.events.event_bus import TOPICS, AsyncEventBus
from logistics_ai.models import Product
from logistics_ai.schemas.common import HealthResponse

# 로깅 설정
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 시 백그라운드 컴포넌트 관리"""
    services = get_services()

    # ── 1. DB 테이블 확인 ──
    Base.metadata.create_all(bind=services.engine)
    logger.info("데이터베이스 테이블 확인 완료")

    with services.session_factory() as db:
        product_count = db.query(Product).count()
    if product_count == 0:
        logger.warning("마스터 데이터가 없습니다. 먼저 python seed_data.py를 실행하세요.")
    else:
        logger.info(f"마스터 데이터 확인: Products {product_count}개")

    # ── 2. AsyncEventBus 생성 및 토픽별 카운터 구독 ──
    bus = AsyncEventBus(settings.REDIS_URL)

    async def _count_event(topic: str, data: dict):
        services.metrics.increment(f"events.{topic}")

    for topic in TOPICS:
        await bus.subscribe(topic, _count_event)
    await bus.start()
    services.event_bus = bus

    # ── 3. 알림 서비스를 버스에 연결 ──
    services.notifier.attach(bus)

    # ── 4. 모니터링 스윕 시작 ──
    if settings.MONITORING_ENABLED:
        await services.scheduler.start()
    else:
        logger.info("MONITORING_ENABLED=false — 스윕 스케줄러 비활성화 (수동 실행만 가능)")

    yield

    # ── 종료 ──
    await services.scheduler.stop()
    await services.orchestrator.drain()
    services.notifier.detach()
    await bus.stop()
    services.event_bus = None
    logger.info("종료 완료")


app = FastAPI(
    title="B2B 출하 자동화 AI 에이전트",
    description="주문 처리 파이프라인 + 자율 모니터링 엔진",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(orders.router)
app.include_router(warehouse.router)
app.include_router(products.router)
app.include_router(monitoring.router)


@app.get("/api/health", response_model=HealthResponse)
def health_check():
    """시스템 상태 확인"""
    services = get_services()
    db_ok = False
    try:
        with services.session_factory() as db:
            db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning(f"헬스체크 DB 연결 실패: {e}")

    bus = services.event_bus
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        db_connected=db_ok,
        redis_connected=bus.is_redis if bus else False,
        monitoring_running=services.scheduler.is_running,
        timestamp=datetime.now(timezone.utc),
    )
