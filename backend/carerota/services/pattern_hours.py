from datetime import time
from typing import Iterable, Tuple


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def calculate_pattern_hours(days: Iterable, rotation_cycle_weeks: int) -> Tuple[float, float]:
    """回傳 (平均每週工時, 整個輪班週期總工時)，皆四捨五入到小數兩位

    跨夜或結束時間不晚於開始時間的班次加 24 小時；休息時間從工時扣除。
    """
    total_minutes = 0
    for day in days:
        if day.is_rest_day or day.start_time is None or day.end_time is None:
            continue

        start = _minutes(day.start_time)
        end = _minutes(day.end_time)
        if day.is_overnight or end <= start:
            end += 24 * 60

        shift_minutes = end - start - (day.break_minutes or 0)
        total_minutes += max(0, shift_minutes)

    total_hours = round(total_minutes / 60, 2)
    average_hours = round(total_hours / rotation_cycle_weeks, 2) if rotation_cycle_weeks > 0 else 0
    return average_hours, total_hours
