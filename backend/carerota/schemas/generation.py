from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.enums import GenerationType, PublishStatus
from .pattern import PatternDay, PatternTemplate, StaffPatternAssignment

ConflictType = Literal["existing_shift", "approved_leave"]
ConflictResolution = Literal["keep", "skip", "override"]

# 衝突：既有班次或核准假別與要生成的日期重疊
class Conflict(BaseModel):
    date: date
    type: ConflictType
    description: str
    existing_shift_id: Optional[str] = None
    existing_leave_id: Optional[str] = None

# 略過的日期與原因
class SkippedDate(BaseModel):
    date: date
    reason: str

# 既有班次（外部資料服務回傳）
class ShiftRecord(BaseModel):
    id: str
    shift_date: date
    start_time: datetime
    end_time: datetime
    status: Optional[int] = None
    break_minutes: Optional[int] = 0
    rota_id: Optional[str] = None
    staff_member_id: Optional[str] = None
    pattern_assignment_id: Optional[str] = None
    is_generated_from_pattern: bool = False
    pattern_week: Optional[int] = None
    pattern_day_of_week: Optional[int] = None

    class Config:
        from_attributes = True

# 核准假別（外部資料服務回傳）
class LeaveRecord(BaseModel):
    id: str
    staff_member_id: str
    absence_start: date
    absence_end: date
    absence_type_name: Optional[str] = None

    class Config:
        from_attributes = True

# 建立班次的內容（不含關聯）
class ShiftCreateData(BaseModel):
    name: str
    shift_date: date
    start_time: datetime
    end_time: datetime
    status: PublishStatus
    break_minutes: int = 0
    is_generated_from_pattern: bool = True
    pattern_week: Optional[int] = None
    pattern_day_of_week: Optional[int] = None
    shift_reference_id: Optional[str] = None
    shift_activity_id: Optional[str] = None

# 生成區間
class GenerationWindow(BaseModel):
    start_date: date
    end_date: date
    days_to_generate: int

# 單一指派的生成結果，每次呼叫重新產生，不直接保存
class GenerationResult(BaseModel):
    assignment_id: str
    shifts_created: List[ShiftRecord] = []
    shifts_skipped: List[SkippedDate] = []
    conflicts: List[Conflict] = []
    errors: List[str] = []
    warnings: List[str] = []
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    dry_run: bool = False
    cancelled: bool = False

# 批次生成結果
class BatchGenerationResult(BaseModel):
    assignments_processed: int = 0
    assignments_skipped: int = 0
    total_shifts_generated: int = 0
    total_conflicts_detected: int = 0
    errors: List[str] = []
    results: Dict[str, GenerationResult] = {}
    cancelled: bool = False

# 批次項目：已取得的指派、模板、班型日快照
class BatchItem(BaseModel):
    assignment: StaffPatternAssignment
    template: PatternTemplate
    pattern_days: List[PatternDay]
    rota_id: Optional[str] = None

# 生成紀錄（寫入）
class GenerationLogCreate(BaseModel):
    name: str
    assignment_id: str
    generation_date: datetime
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    shifts_generated: int = 0
    conflicts_detected: int = 0
    conflict_details: Optional[str] = None
    generation_type: GenerationType = GenerationType.MANUAL

# 生成紀錄響應
class GenerationLog(GenerationLogCreate):
    id: str

    class Config:
        from_attributes = True

# API 請求：依指派生成班次
class GenerateShiftsRequest(BaseModel):
    assignment_id: str
    start_date: date
    end_date: date
    rota_id: str
    # 日期 (YYYY-MM-DD) -> keep / skip / override
    conflict_resolutions: Dict[date, ConflictResolution] = {}
    dry_run: bool = False

# API 請求：查詢衝突
class ConflictQuery(BaseModel):
    staff_member_id: str
    start_date: date
    end_date: date
    exclude_assignment_id: Optional[str] = None

# API 請求：執行批次生成
class BatchRunRequest(BaseModel):
    assignment_ids: List[str] = []
    dry_run: bool = False
    delay_ms: Optional[int] = Field(default=None, ge=0)

# 班型變更後的重新生成計畫（只計算，不執行）
class RegenerationPlan(BaseModel):
    assignments_to_regenerate: List[StaffPatternAssignment] = []
    shifts_to_delete: List[ShiftRecord] = []
    effective_date: date
    summary: str
