"""
英國照護機構常用的標準班型

每個班型以 PatternTemplateCreate 描述，未列出的星期皆為休息日。
"""

import logging
from dataclasses import dataclass, field
from datetime import time
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.pattern import PatternTemplate
from ..schemas.pattern import PatternDayCreate, PatternTemplateCreate
from .pattern_template_service import PatternTemplateService

logger = logging.getLogger(__name__)

MON, TUE, WED, THU, FRI, SAT, SUN = range(1, 8)

DAY_08_20 = (time(8, 0), time(20, 0), 60, False)
NIGHT_20_08 = (time(20, 0), time(8, 0), 60, True)
DAY_07_19 = (time(7, 0), time(19, 0), 60, False)
NIGHT_19_07 = (time(19, 0), time(7, 0), 60, True)
OFFICE_09_17 = (time(9, 0), time(17, 0), 30, False)


def _days(weeks: Dict[int, Dict[int, tuple]]) -> List[PatternDayCreate]:
    days = []
    for week_number, working in weeks.items():
        for weekday in range(MON, SUN + 1):
            shift = working.get(weekday)
            if shift is None:
                days.append(PatternDayCreate(week_number=week_number, day_of_week=weekday, is_rest_day=True))
                continue
            start, end, break_minutes, overnight = shift
            days.append(PatternDayCreate(
                week_number=week_number,
                day_of_week=weekday,
                start_time=start,
                end_time=end,
                break_minutes=break_minutes,
                is_overnight=overnight,
            ))
    return days


def _pattern(name: str, description: str, weeks: Dict[int, Dict[int, tuple]],
             generation_window_weeks: int = 2) -> PatternTemplateCreate:
    return PatternTemplateCreate(
        name=name,
        description=description,
        rotation_cycle_weeks=len(weeks),
        generation_window_weeks=generation_window_weeks,
        is_standard_template=True,
        days=_days(weeks),
    )


STANDARD_PATTERNS: List[PatternTemplateCreate] = [
    _pattern(
        "Standard Days (Mon-Fri)",
        "Monday to Friday, 09:00-17:00 with 30-minute unpaid break. 37.5 hours per week.",
        {1: {d: OFFICE_09_17 for d in (MON, TUE, WED, THU, FRI)}},
    ),
    _pattern(
        "4-on-4-off Day Shifts",
        "Four consecutive 12-hour day shifts (08:00-20:00) followed by four days off.",
        {1: {d: DAY_08_20 for d in (MON, TUE, WED, THU)},
         2: {d: DAY_08_20 for d in (FRI, SAT, SUN)}},
    ),
    _pattern(
        "4-on-4-off Night Shifts",
        "Four consecutive 12-hour night shifts (20:00-08:00) followed by four days off.",
        {1: {d: NIGHT_20_08 for d in (MON, TUE, WED, THU)},
         2: {d: NIGHT_20_08 for d in (FRI, SAT, SUN)}},
    ),
    _pattern(
        "3x12 Hour Shifts",
        "Three 12-hour shifts per week (08:00-20:00) on Monday, Tuesday and Wednesday.",
        {1: {d: DAY_08_20 for d in (MON, TUE, WED)}},
    ),
    _pattern(
        "2-Week Rotating",
        "Week 1: Mon, Tue, Sat, Sun working. Week 2: Wed, Thu, Fri working. 08:00-16:00 with 30-minute break.",
        {1: {d: (time(8, 0), time(16, 0), 30, False) for d in (MON, TUE, SAT, SUN)},
         2: {d: (time(8, 0), time(16, 0), 30, False) for d in (WED, THU, FRI)}},
    ),
    _pattern(
        "Continental Rotation",
        "4-week rotation with 2 day shifts (07:00-19:00), 2 night shifts (19:00-07:00), then days off.",
        {1: {MON: DAY_07_19, TUE: DAY_07_19, WED: NIGHT_19_07, THU: NIGHT_19_07},
         2: {TUE: DAY_07_19, WED: DAY_07_19, THU: NIGHT_19_07, FRI: NIGHT_19_07},
         3: {WED: DAY_07_19, THU: DAY_07_19, FRI: NIGHT_19_07, SAT: NIGHT_19_07},
         4: {THU: DAY_07_19, FRI: DAY_07_19, SAT: NIGHT_19_07, SUN: NIGHT_19_07}},
        generation_window_weeks=4,
    ),
    _pattern(
        "Part-Time 16 Hours",
        "Two 8-hour shifts per week on Tuesday and Thursday (09:00-17:00).",
        {1: {TUE: OFFICE_09_17, THU: OFFICE_09_17}},
    ),
    _pattern(
        "Part-Time 24 Hours",
        "Three 8-hour shifts per week on Monday, Wednesday and Friday (09:00-17:00).",
        {1: {MON: OFFICE_09_17, WED: OFFICE_09_17, FRI: OFFICE_09_17}},
    ),
    _pattern(
        "Early Shifts (Mon-Fri)",
        "Monday to Friday, 07:00-15:00 with 30-minute unpaid break. 37.5 hours per week.",
        {1: {d: (time(7, 0), time(15, 0), 30, False) for d in (MON, TUE, WED, THU, FRI)}},
    ),
    _pattern(
        "Late Shifts (Mon-Fri)",
        "Monday to Friday, 14:00-22:00 with 30-minute unpaid break. 37.5 hours per week.",
        {1: {d: (time(14, 0), time(22, 0), 30, False) for d in (MON, TUE, WED, THU, FRI)}},
    ),
    _pattern(
        "Weekend Worker",
        "Saturday and Sunday 12-hour shifts (08:00-20:00).",
        {1: {SAT: DAY_08_20, SUN: DAY_08_20}},
    ),
]

PATTERN_CATEGORIES = {
    "full_time": ["Standard Days (Mon-Fri)", "Early Shifts (Mon-Fri)", "Late Shifts (Mon-Fri)"],
    "rotating": ["4-on-4-off Day Shifts", "4-on-4-off Night Shifts", "2-Week Rotating", "Continental Rotation"],
    "compressed": ["3x12 Hour Shifts"],
    "part_time": ["Part-Time 16 Hours", "Part-Time 24 Hours", "Weekend Worker"],
}


def get_standard_pattern(name: str) -> Optional[PatternTemplateCreate]:
    return next((p for p in STANDARD_PATTERNS if p.name == name), None)


@dataclass
class SeedResult:
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def seed_standard_patterns(db: Session, location_id: Optional[str] = None) -> SeedResult:
    """建立尚未存在的標準班型；同一據點已有同名標準班型時略過"""
    result = SeedResult()

    existing_query = db.query(PatternTemplate.name).filter(PatternTemplate.is_standard_template.is_(True))
    if location_id:
        existing_query = existing_query.filter(PatternTemplate.location_id == location_id)
    existing = {row.name for row in existing_query.all()}

    for pattern in STANDARD_PATTERNS:
        if pattern.name in existing:
            result.skipped.append(pattern.name)
            continue
        try:
            PatternTemplateService.create_template(db, pattern.model_copy(update={"location_id": location_id}))
            result.created.append(pattern.name)
        except Exception as e:
            logger.error(f"建立標準班型 {pattern.name} 失敗: {str(e)}")
            result.errors.append(f"{pattern.name}: {str(e)}")

    logger.info(
        f"標準班型初始化完成：新增 {len(result.created)} 個，略過 {len(result.skipped)} 個，"
        f"失敗 {len(result.errors)} 個"
    )
    return result
