from datetime import date, datetime, time
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.enums import DAY_NAMES, GENERATION_WINDOW_WEEKS, AssignmentStatus, PatternStatus, PublishStatus
from ..services.rotation import parse_applies_to_days

# 基本班型日
class PatternDayBase(BaseModel):
    week_number: int = Field(ge=1)
    day_of_week: int = Field(ge=1, le=7)
    is_rest_day: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_overnight: bool = False
    break_minutes: int = Field(default=0, ge=0)
    shift_reference_id: Optional[str] = None
    shift_activity_id: Optional[str] = None
    display_order: Optional[int] = None

# 用於創建班型日
class PatternDayCreate(PatternDayBase):

    @model_validator(mode="after")
    def check_working_day_times(self):
        # 非休息日必須同時有開始與結束時間
        if not self.is_rest_day and (self.start_time is None or self.end_time is None):
            raise ValueError(
                f"Week {self.week_number} {DAY_NAMES[self.day_of_week]} is missing start/end time"
            )
        return self

# 班型日快照（生成引擎使用）
class PatternDay(PatternDayBase):
    id: str
    template_id: str

    class Config:
        from_attributes = True

# 基本班型模板
class PatternTemplateBase(BaseModel):
    name: str
    description: Optional[str] = None
    rotation_cycle_weeks: int = Field(default=1, ge=1)
    default_publish_status: PublishStatus = PublishStatus.UNPUBLISHED
    generation_window_weeks: int = 2
    is_standard_template: bool = False
    location_id: Optional[str] = None

    @field_validator("generation_window_weeks")
    def check_window(cls, v: int) -> int:
        if v not in GENERATION_WINDOW_WEEKS:
            raise ValueError(f"generation window must be one of {GENERATION_WINDOW_WEEKS} weeks")
        return v

# 用於創建班型模板
class PatternTemplateCreate(PatternTemplateBase):
    days: List[PatternDayCreate] = []

    @model_validator(mode="after")
    def check_days_within_cycle(self):
        seen = set()
        for day in self.days:
            if day.week_number > self.rotation_cycle_weeks:
                raise ValueError(
                    f"week {day.week_number} is outside a {self.rotation_cycle_weeks}-week rotation"
                )
            key = (day.week_number, day.day_of_week)
            if key in seen:
                raise ValueError(f"duplicate pattern day for week {key[0]} day {key[1]}")
            seen.add(key)
        return self

# 用於部分更新班型模板（班型日另以 PatternDaysReplace 更新）
class PatternTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    rotation_cycle_weeks: Optional[int] = Field(default=None, ge=1)
    default_publish_status: Optional[PublishStatus] = None
    generation_window_weeks: Optional[int] = None
    is_standard_template: Optional[bool] = None
    location_id: Optional[str] = None

    @field_validator("generation_window_weeks")
    def check_window(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in GENERATION_WINDOW_WEEKS:
            raise ValueError(f"generation window must be one of {GENERATION_WINDOW_WEEKS} weeks")
        return v

# 複製班型模板
class PatternTemplateClone(BaseModel):
    name: Optional[str] = None

# 用於更新班型模板的班型日
class PatternDaysReplace(BaseModel):
    days: List[PatternDayCreate]

# 班型模板快照（生成引擎使用）
class PatternTemplate(PatternTemplateBase):
    id: str
    pattern_status: PatternStatus = PatternStatus.ACTIVE
    average_weekly_hours: Optional[float] = None
    total_rotation_hours: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# 包含班型日的模板響應
class PatternTemplateDetail(PatternTemplate):
    days: List[PatternDay] = []

# 基本人員班型指派
class StaffPatternAssignmentBase(BaseModel):
    staff_member_id: str
    template_id: str
    start_date: date
    end_date: Optional[date] = None
    rotation_start_week: int = Field(default=1, ge=1)
    priority: int = 1
    applies_to_days: List[str] = []
    override_publish_status: bool = False
    publish_status: Optional[PublishStatus] = None

    @field_validator("applies_to_days", mode="before")
    def split_applies_to_days(cls, v):
        return parse_applies_to_days(v)

# 用於創建人員班型指派
class StaffPatternAssignmentCreate(StaffPatternAssignmentBase):

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

# 用於部分更新人員班型指派
class StaffPatternAssignmentUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rotation_start_week: Optional[int] = Field(default=None, ge=1)
    priority: Optional[int] = None
    applies_to_days: Optional[List[str]] = None
    override_publish_status: Optional[bool] = None
    publish_status: Optional[PublishStatus] = None

    @field_validator("applies_to_days", mode="before")
    def split_applies_to_days(cls, v):
        return None if v is None else parse_applies_to_days(v)

# 人員班型指派快照（生成引擎使用）
class StaffPatternAssignment(StaffPatternAssignmentBase):
    id: str
    name: Optional[str] = None
    last_generated_date: Optional[date] = None
    assignment_status: AssignmentStatus = AssignmentStatus.ACTIVE

    class Config:
        from_attributes = True

# 結束指派
class AssignmentEnd(BaseModel):
    end_date: date

# 批量指派
class BulkAssignmentRequest(BaseModel):
    template_id: str
    staff_member_ids: List[str]
    start_date: date
    end_date: Optional[date] = None
    stagger_type: Literal["same", "stagger", "custom"] = "same"
    # staff_member_id -> rotation_start_week
    stagger_settings: Dict[str, int] = {}
    override_publish_status: bool = False
    publish_status: Optional[PublishStatus] = None

class BulkAssignmentResult(BaseModel):
    created: List[StaffPatternAssignment] = []
    errors: List[Dict[str, str]] = []
