"""
예외 → HTTP 응답 변환
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from logistics_ai.exceptions import LogisticsError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(LogisticsError)
    async def handle_logistics_error(request: Request, exc: LogisticsError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} 실패: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} 거절 ({exc.status_code}): {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(StaleDataError)
    async def handle_stale_data(request: Request, exc: StaleDataError):
        # 다른 에이전트가 같은 주문/운송을 먼저 갱신함
        logger.warning(f"{request.method} {request.url.path} 동시 갱신 충돌: {exc}")
        return JSONResponse(
            status_code=409,
            content={"error": "ConcurrentUpdate", "detail": "Resource was modified concurrently, retry"},
        )
