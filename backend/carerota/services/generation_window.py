from datetime import date, timedelta
from typing import Iterable, Optional

from ..core.config import settings
from ..models.enums import AssignmentStatus
from ..schemas.generation import GenerationWindow
from ..schemas.pattern import PatternDay, PatternTemplate, StaffPatternAssignment
from ..utils.timezone import today as local_today


def calculate_generation_window(assignment: StaffPatternAssignment, template: PatternTemplate,
                                today: Optional[date] = None) -> GenerationWindow:
    """計算指派需要（重新）生成的日期區間

    起始日：上次生成日的隔天；從未生成則取指派開始日與今天較晚者，且不得早於今天。
    結束日：今天加上模板的生成週數，若指派有結束日且較早則以結束日為準。
    """
    today = today or local_today()

    if assignment.last_generated_date:
        start_date = assignment.last_generated_date + timedelta(days=1)
    else:
        start_date = max(assignment.start_date, today)

    if start_date < today:
        start_date = today

    end_date = today + timedelta(weeks=template.generation_window_weeks)
    if assignment.end_date and assignment.end_date < end_date:
        end_date = assignment.end_date

    return GenerationWindow(
        start_date=start_date,
        end_date=end_date,
        days_to_generate=max(0, (end_date - start_date).days + 1),
    )


def is_generation_needed(assignment: StaffPatternAssignment, template: PatternTemplate,
                         today: Optional[date] = None) -> bool:
    """判斷指派是否需要生成班次

    未生成過一定需要；否則在已生成班次即將用完（距今 GENERATION_LEAD_DAYS 天內）時需要。
    """
    today = today or local_today()

    if assignment.assignment_status != AssignmentStatus.ACTIVE:
        return False
    if assignment.end_date and assignment.end_date < today:
        return False
    if not assignment.last_generated_date:
        return True

    run_out_date = assignment.last_generated_date + timedelta(weeks=template.generation_window_weeks)
    threshold = today + timedelta(days=settings.GENERATION_LEAD_DAYS)
    return run_out_date < threshold


def days_until_generation_needed(assignment: StaffPatternAssignment, template: PatternTemplate,
                                 today: Optional[date] = None) -> int:
    """距離需要生成還有幾天；負數代表已逾期，從未生成則回傳 -1"""
    if not assignment.last_generated_date:
        return -1
    today = today or local_today()
    run_out_date = assignment.last_generated_date + timedelta(weeks=template.generation_window_weeks)
    return (run_out_date - today).days


def format_generation_window(window: GenerationWindow) -> str:
    return (
        f"{window.start_date.day} {window.start_date:%b} - "
        f"{window.end_date.day} {window.end_date:%b %Y} ({window.days_to_generate} days)"
    )


def estimate_shifts_to_generate(pattern_days: Iterable[PatternDay], rotation_cycle_weeks: int,
                                days_to_generate: int) -> int:
    """依班型的平均每週上班天數粗估會產生的班次數"""
    working_days = sum(1 for d in pattern_days if not d.is_rest_day)
    per_week = working_days / rotation_cycle_weeks if rotation_cycle_weeks > 0 else 0
    return round(per_week * days_to_generate / 7)
