"""
데이터베이스 엔진 및 세션 관리
- 기본은 SQLite, DATABASE_URL로 다른 SQL 저장소 사용 가능.
- 모듈 수준 engine/SessionLocal은 기본 설정용, 테스트는 make_engine으로 별도 생성.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from materialflow.config import settings

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """URL로 엔진 생성. SQLite는 스레드 공유 + 외래키 활성화."""
    connect_args = {}
    if url.startswith("sqlite"):
        # SQLite에서는 check_same_thread=False 필요 (executor 스레드에서 접근)
        connect_args["check_same_thread"] = False

    new_engine = create_engine(url, connect_args=connect_args, echo=False)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def make_session_factory(bind: Engine) -> sessionmaker:
    # 커밋 후에도 분리된 객체의 속성을 읽을 수 있도록 expire 하지 않는다
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine(settings.DATABASE_URL)

SessionLocal = make_session_factory(engine)
