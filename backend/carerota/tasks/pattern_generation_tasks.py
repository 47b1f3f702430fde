import asyncio
import logging
import threading
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..core.config import settings
from ..core.database import session_scope
from ..models.enums import GenerationType
from ..services.pattern_generation_service import PatternGenerationService, load_batch_items
from ..services.sql_store import SqlAlchemyShiftStore
from ..utils.timezone import now

logger = logging.getLogger(__name__)


class PatternGenerationTaskManager:
    """班型排班定時生成任務管理器"""

    def __init__(self):
        self.scheduler = None
        self.cancel_event = threading.Event()

    def start_scheduler(self):
        """啟動排程器"""
        if not settings.ENABLE_GENERATION_SCHEDULER:
            logger.info("班型定時生成未啟用（ENABLE_GENERATION_SCHEDULER=false）")
            return

        if self.scheduler is None:
            self.cancel_event.clear()
            self.scheduler = AsyncIOScheduler()

            self.scheduler.add_job(
                func=self.run_scheduled_generation,
                trigger=IntervalTrigger(minutes=settings.GENERATION_SCHEDULER_INTERVAL_MINUTES),
                id='pattern_generation_regular',
                name='定期生成班型班次',
                replace_existing=True,
                max_instances=1  # 確保同時只有一個實例在運行
            )

            # 系統啟動後執行一次
            self.scheduler.add_job(
                func=self.run_scheduled_generation,
                trigger='date',
                run_date=now() + timedelta(seconds=30),
                id='initial_pattern_generation',
                name='初始生成班型班次',
                replace_existing=True
            )

            self.scheduler.start()
            logger.info(
                f"班型定時生成任務已啟動 - 每{settings.GENERATION_SCHEDULER_INTERVAL_MINUTES}分鐘檢查需要生成的指派"
            )

    def stop_scheduler(self):
        """停止排程器，進行中的批次會在下一個日期邊界停止"""
        self.cancel_event.set()
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("班型定時生成任務已停止")

    def generate_due_assignments(self):
        with session_scope() as db:
            store = SqlAlchemyShiftStore(db)
            items = load_batch_items(store)
            logger.info(f"開始定時生成，共 {len(items)} 個進行中的指派")
            return PatternGenerationService(store).run_batch(
                items,
                cancel_event=self.cancel_event,
                generation_type=GenerationType.SCHEDULED,
            )

    async def run_scheduled_generation(self):
        try:
            # 批次生成會等待請求間隔，放到執行緒中避免阻塞事件迴圈
            result = await asyncio.to_thread(self.generate_due_assignments)
            logger.info(
                f"定時生成完成：處理 {result.assignments_processed} 個指派，"
                f"產生 {result.total_shifts_generated} 個班次，錯誤 {len(result.errors)} 筆"
            )
        except Exception as e:
            logger.error(f"執行定時生成時發生錯誤: {str(e)}")


# 全局任務管理器實例
pattern_generation_task_manager = PatternGenerationTaskManager()
