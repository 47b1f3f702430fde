"""
輪班週次計算

所有函式皆為純函式，不存取資料庫。
"""

import json
import re
from datetime import date
from typing import Iterable, List, Optional, Union

from ..models.enums import DAY_NAMES

_IDENTIFIER_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def resolve_week(assignment_start: date, rotation_start_week: int, cycle_weeks: int,
                 target_date: date) -> int:
    """計算目標日期落在輪班週期的第幾週（從 1 開始）

    呼叫端需確保 target_date 不早於 assignment_start。
    """
    weeks_since_start = (target_date - assignment_start).days // 7
    adjusted = (weeks_since_start + rotation_start_week - 1) % cycle_weeks
    return adjusted + 1


def day_of_week(value: date) -> int:
    """星期一 = 1 … 星期日 = 7"""
    return value.isoweekday()


def day_name(value: Union[date, int]) -> str:
    if isinstance(value, date):
        value = day_of_week(value)
    return DAY_NAMES[value]


def parse_applies_to_days(raw: Union[str, Iterable[str], None]) -> List[str]:
    """解析指派的適用星期（JSON 字串或清單），格式錯誤時視為不限制"""
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return []
        if not isinstance(raw, list):
            return []
    return [d for d in raw if isinstance(d, str)]


def is_day_included(name: str, applies_to_days: List[str]) -> bool:
    if not applies_to_days:
        return True
    return any(d.lower() == name.lower() for d in applies_to_days)


def is_valid_identifier(value: Optional[str]) -> bool:
    """嚴格檢查識別碼格式（8-4-4-4-12 十六進位）"""
    if not value or not isinstance(value, str):
        return False
    return bool(_IDENTIFIER_PATTERN.match(value.strip()))
