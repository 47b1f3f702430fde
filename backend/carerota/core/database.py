from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from .config import settings

# 預設使用 psycopg 驅動連線 PostgreSQL；測試與本機開發可用 SQLite
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql"):
        # 經由 PgBouncer（交易模式）連線時不能使用 server-side prepared statements
        return {"prepare_threshold": 0}
    if url.startswith("sqlite"):
        # 定時生成在背景執行緒中使用連線
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    database_url,
    connect_args=_connect_args(database_url),
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 所有模型的基底類別
Base = declarative_base()


# FastAPI 依賴：每個請求一個 Session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# 路由以外（定時任務、初始化腳本）使用的 Session
@contextmanager
def session_scope():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    # 匯入模型以註冊到 metadata
    from .. import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
