"""
애플리케이션 설정
- DB, Redis, 모니터링 스윕 주기, LLM 관련 설정을 관리한다.
- 의사결정 임계치는 각 에이전트 모듈의 상수로 둔다.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 데이터베이스
    DATABASE_URL: str = "sqlite:///logistics.db"

    # Redis (없으면 인메모리 큐로 fallback)
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # 로그 레벨
    LOG_LEVEL: str = "INFO"

    # 자율 모니터링 스윕 주기 (초)
    MONITORING_ENABLED: bool = True
    STUCK_ORDER_SWEEP_SECONDS: float = 120.0
    DELIVERY_PREDICTION_SWEEP_SECONDS: float = 300.0
    INVENTORY_REORDER_SWEEP_SECONDS: float = 3600.0
    ANOMALY_SWEEP_SECONDS: float = 600.0
    ROUTE_OPTIMIZATION_SWEEP_SECONDS: float = 900.0

    # 교통/날씨 시뮬레이션용 난수 시드 (None이면 비결정적)
    MONITORING_RANDOM_SEED: int | None = None

    # Claude API (이상 원인 요약)
    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "claude-sonnet-4-5-20250929"
    LLM_MAX_TOKENS: int = 512
    LLM_TEMPERATURE: float = 0.3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
