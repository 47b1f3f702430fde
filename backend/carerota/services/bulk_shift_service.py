import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

from ..core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BulkCreateResult:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class _Counter:
    def __init__(self, total: int, on_progress: Optional[Callable[[int, int], None]]):
        self.total = total
        self.completed = 0
        self.result = BulkCreateResult()
        self.on_progress = on_progress
        self.lock = threading.Lock()

    def record(self, error: Optional[str] = None) -> None:
        with self.lock:
            if error is None:
                self.result.success += 1
            else:
                self.result.failed += 1
                self.result.errors.append(error)
            self.completed += 1
            completed = self.completed
            # 進度回呼在鎖內呼叫，保證 completed 依序遞增
            if self.on_progress:
                try:
                    self.on_progress(completed, self.total)
                except Exception as e:
                    logger.warning(f"批量建立進度回呼失敗: {str(e)}")


def bulk_create_shifts(items: List[T], create_fn: Callable[[T], object],
                       concurrency: Optional[int] = None,
                       on_progress: Optional[Callable[[int, int], None]] = None) -> BulkCreateResult:
    """以固定數量的工作執行緒從共用佇列取出項目並建立班次

    用於手動一次輸入多個班次，與班型生成無關。單一項目失敗不影響其他項目，
    每完成一個項目（不論成功或失敗）都會呼叫 on_progress(completed, total)。
    """
    concurrency = concurrency or settings.BULK_CREATE_CONCURRENCY
    total = len(items)
    counter = _Counter(total, on_progress)
    if total == 0:
        return counter.result

    work: "queue.Queue[T]" = queue.Queue()
    for item in items:
        work.put(item)

    def worker(worker_id: int):
        while True:
            try:
                item = work.get_nowait()
            except queue.Empty:
                return
            error = None
            try:
                create_fn(item)
            except Exception as e:
                logger.error(f"[Worker {worker_id}] 批量建立班次失敗: {str(e)}")
                error = str(e) or e.__class__.__name__
            finally:
                work.task_done()
            counter.record(error)

    threads = []
    for i in range(min(concurrency, total)):
        thread = threading.Thread(target=worker, args=(i + 1,), name=f"BulkShiftWorker-{i + 1}", daemon=True)
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join()

    logger.info(f"批量建立班次完成：成功 {counter.result.success}，失敗 {counter.result.failed}")
    return counter.result
