from dotenv import load_dotenv
load_dotenv()
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import uvicorn
from sqlalchemy import text
from contextlib import asynccontextmanager

from carerota.core.config import settings
from carerota.core.database import engine, create_tables
from carerota.routes import routers
from carerota.tasks.pattern_generation_tasks import pattern_generation_task_manager
from carerota.utils.timezone import get_timezone_info

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
# 降低第三方套件噪音
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 啟動時執行
    logger.info("正在啟動照護排班系統...")

    timezone_info = get_timezone_info()
    logger.info(f"時區設定: {timezone_info['timezone']}，當地時間: {timezone_info['local_time']}")

    try:
        create_tables()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info(f"資料庫連接成功，資料庫名稱：{engine.url.database}")
    except Exception as e:
        logger.error(f"資料庫連接失敗: {str(e)}")
        raise RuntimeError("無法連接到資料庫，請檢查資料庫配置和連接狀態") from e

    try:
        pattern_generation_task_manager.start_scheduler()
    except Exception as e:
        logger.error(f"啟動班型定時生成任務失敗: {str(e)}")

    yield

    # 關閉時執行
    try:
        pattern_generation_task_manager.stop_scheduler()
    except Exception as e:
        logger.error(f"停止定時任務時發生錯誤: {str(e)}")

    logger.info("系統已安全關閉")


app = FastAPI(
    title=settings.APP_NAME,
    description="照護機構班型排班 API",
    version="1.0.0",
    lifespan=lifespan
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
)

# 註冊所有路由
for router in routers:
    app.include_router(router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "系統運行正常"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
