"""
데이터베이스 엔진 및 세션 관리
- 기본은 SQLite를 사용한다.
- FastAPI dependency injection용 get_db() 제공.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from logistics_ai.config import settings


def build_engine(url: str):
    """URL에 맞는 엔진 생성 (SQLite는 스레드 공유 허용)"""
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI 워커 스레드 + 스윕 스레드에서 같은 DB에 접근
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, echo=False)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI Depends용 DB 세션 제공."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
