from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from ..schemas.pattern import PatternDay
from .rotation import day_name, day_of_week, is_day_included

SKIP_NOT_IN_APPLIES_TO = "day not in applies-to list"
SKIP_NO_PATTERN_DAY = "no pattern day defined"
SKIP_REST_DAY = "rest day"


@dataclass
class DayLookup:
    """單日查詢結果：有 pattern_day 代表要上班，否則 skip_reason 說明原因"""
    pattern_day: Optional[PatternDay] = None
    skip_reason: Optional[str] = None


class PatternDayIndex:
    """(週次, 星期) -> 班型日 的查詢表，每次生成只建立一次"""

    def __init__(self, pattern_days: Iterable[PatternDay], applies_to_days: Optional[List[str]] = None):
        self._days: Dict[Tuple[int, int], PatternDay] = {
            (d.week_number, d.day_of_week): d for d in pattern_days
        }
        self.applies_to_days = applies_to_days or []

    def __len__(self) -> int:
        return len(self._days)

    def get(self, week_number: int, weekday: int) -> Optional[PatternDay]:
        return self._days.get((week_number, weekday))

    def applies_to(self, target_date: date) -> bool:
        return is_day_included(day_name(target_date), self.applies_to_days)

    def lookup(self, target_date: date, week_number: int) -> DayLookup:
        # 先檢查適用星期，再查班型日，最後判斷休息日
        if not self.applies_to(target_date):
            return DayLookup(skip_reason=SKIP_NOT_IN_APPLIES_TO)

        pattern_day = self.get(week_number, day_of_week(target_date))
        if pattern_day is None:
            return DayLookup(skip_reason=SKIP_NO_PATTERN_DAY)
        if pattern_day.is_rest_day:
            return DayLookup(pattern_day=pattern_day, skip_reason=SKIP_REST_DAY)
        return DayLookup(pattern_day=pattern_day)
