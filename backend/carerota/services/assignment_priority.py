from datetime import date
from typing import Iterable, Optional

from ..models.enums import AssignmentStatus
from ..schemas.pattern import StaffPatternAssignment
from .rotation import day_name, is_day_included


def covers_date(assignment: StaffPatternAssignment, target_date: date) -> bool:
    if assignment.assignment_status != AssignmentStatus.ACTIVE:
        return False
    if target_date < assignment.start_date:
        return False
    if assignment.end_date is not None and target_date > assignment.end_date:
        return False
    return is_day_included(day_name(target_date), assignment.applies_to_days)


def resolve_assignment_for_date(assignments: Iterable[StaffPatternAssignment],
                                target_date: date) -> Optional[StaffPatternAssignment]:
    """同一員工有多個指派涵蓋同一天時，選出優先權最高（priority 最小）的指派

    priority 相同時依開始日期較早者、再依 id 決定，結果與資料取得順序無關。
    """
    candidates = [a for a in assignments if covers_date(a, target_date)]
    if not candidates:
        return None
    return min(candidates, key=lambda a: (a.priority, a.start_date, a.id))
