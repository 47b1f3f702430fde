"""
時區工具模組
提供照護機構所在時區（預設 Europe/London）的時間處理功能
"""

import pytz
from datetime import date, datetime
from typing import Optional

from ..core.config import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

def now(tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    返回當前時間，預設使用機構所在時區

    Args:
        tz: 時區，如果為 None 則使用機構時區

    Returns:
        datetime: 當前時間（機構時區時不帶時區資訊）
    """
    if tz is None:
        return datetime.now(LOCAL_TZ).replace(tzinfo=None)
    return datetime.now(tz)

def today() -> date:
    """返回機構時區的今天日期"""
    return now().date()

def utc_now() -> datetime:
    """
    返回 UTC 時間

    Returns:
        datetime: UTC 時間（不帶時區資訊）
    """
    return datetime.now(pytz.UTC).replace(tzinfo=None)

def get_timezone_info() -> dict:
    """
    獲取時區資訊

    Returns:
        dict: 包含時區資訊的字典
    """
    local_time = now()
    utc_time = utc_now()
    time_diff = local_time - utc_time

    return {
        "local_time": local_time,
        "utc_time": utc_time,
        "timezone": settings.TIMEZONE,
        "time_difference_hours": round(time_diff.total_seconds() / 3600, 2)
    }
