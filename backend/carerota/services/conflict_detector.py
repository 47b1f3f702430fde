import logging
from datetime import date, timedelta
from typing import List, Optional, Set

from ..schemas.generation import Conflict
from .data_store import ShiftDataStore

logger = logging.getLogger(__name__)


class ConflictDetector:
    """找出員工在日期區間內的既有班次與核准假別"""

    def __init__(self, store: ShiftDataStore):
        self.store = store

    def detect_conflicts(self, staff_member_id: str, start_date: date, end_date: date,
                         exclude_assignment_id: Optional[str] = None) -> List[Conflict]:
        """回傳衝突清單；先列出既有班次，再列出假別，不保證依日期排序

        exclude_assignment_id 所產生的班次不算衝突，重新生成同一個指派時才不會自我衝突。
        """
        conflicts: List[Conflict] = []
        logger.debug(f"檢查員工 {staff_member_id} 在 {start_date} 至 {end_date} 的衝突")

        for shift in self.store.query_shifts(staff_member_id, start_date, end_date):
            if exclude_assignment_id and shift.pattern_assignment_id == exclude_assignment_id:
                continue
            conflicts.append(Conflict(
                date=shift.shift_date,
                type="existing_shift",
                description=f"Existing shift {shift.start_time:%H:%M} - {shift.end_time:%H:%M}",
                existing_shift_id=shift.id,
            ))

        leave_dates: Set[date] = set()
        for leave in self.store.query_approved_leave(staff_member_id, start_date, end_date):
            # 將假別區間展開成每一天，並與查詢區間取交集
            current = max(leave.absence_start, start_date)
            last = min(leave.absence_end, end_date)
            while current <= last:
                if current not in leave_dates:
                    leave_dates.add(current)
                    conflicts.append(Conflict(
                        date=current,
                        type="approved_leave",
                        description=f"Approved leave: {leave.absence_type_name or 'Leave'}",
                        existing_leave_id=leave.id,
                    ))
                current += timedelta(days=1)

        logger.debug(f"員工 {staff_member_id} 共發現 {len(conflicts)} 筆衝突")
        return conflicts
