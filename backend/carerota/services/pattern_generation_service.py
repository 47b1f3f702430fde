"""
班型排班生成服務

將多週輪班班型展開成具體日期的班次。每個指派依日期順序處理：
輪班週次 -> 班型日 -> 優先權 -> 衝突處理 -> 建立班次。
單一日期或單一指派的失敗只記錄在結果中，不會中止其他日期或指派。
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from ..core.config import settings
from ..core.exceptions import AssociationError, CareRotaError, LoggingError, ValidationError
from ..models.enums import AssignmentStatus, GenerationType, PublishStatus
from ..schemas.generation import (
    BatchGenerationResult,
    BatchItem,
    Conflict,
    ConflictResolution,
    GenerationLogCreate,
    GenerationResult,
    RegenerationPlan,
    ShiftRecord,
    SkippedDate,
)
from ..schemas.pattern import PatternDay, PatternTemplate, StaffPatternAssignment
from ..utils.timezone import now
from .assignment_priority import resolve_assignment_for_date
from .conflict_detector import ConflictDetector
from .data_store import ShiftDataStore
from .generation_window import calculate_generation_window, is_generation_needed
from .pattern_day_index import SKIP_NOT_IN_APPLIES_TO, PatternDayIndex
from .rotation import day_name, resolve_week
from .shift_materializer import ShiftMaterializer, build_shift_data, resolve_publish_status

logger = logging.getLogger(__name__)

SKIP_SUPERSEDED = "superseded by higher-priority assignment"
SKIP_BEFORE_START = "before assignment start date"
SKIP_AFTER_END = "after assignment end date"
EMPTY_WINDOW_MESSAGE = "No days to generate - generation window is empty"

# 只有尚未開始執行的班次會因班型變更而被取代
REPLACEABLE_SHIFT_STATUSES = (int(PublishStatus.PUBLISHED), int(PublishStatus.UNPUBLISHED))


@dataclass
class GenerationEvents:
    """生成過程的事件回呼，未設定的回呼直接略過"""
    on_progress: Optional[Callable[[int, int], None]] = None
    on_warning: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[str], None]] = None

    def progress(self, completed: int, total: int) -> None:
        if self.on_progress:
            self.on_progress(completed, total)

    def warning(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning:
            self.on_warning(message)

    def error(self, message: str) -> None:
        logger.error(message)
        if self.on_error:
            self.on_error(message)


def validate_generation_data(assignment: StaffPatternAssignment, template: PatternTemplate,
                             pattern_days: List[PatternDay]) -> List[str]:
    """生成前檢查資料是否完整，回傳錯誤訊息清單（空清單代表可以生成）"""
    errors = []

    if not assignment.staff_member_id:
        errors.append("Assignment has no staff member")
    if not assignment.start_date:
        errors.append("Assignment has no start date")
    if assignment.assignment_status != AssignmentStatus.ACTIVE:
        errors.append("Assignment is not active")

    if not template.rotation_cycle_weeks or template.rotation_cycle_weeks < 1:
        errors.append("Pattern has invalid rotation cycle")

    if not pattern_days:
        errors.append("Pattern has no days defined")
    else:
        working_days = [d for d in pattern_days if not d.is_rest_day]
        if not working_days:
            errors.append("Pattern has no working days")
        for d in working_days:
            if d.start_time is None or d.end_time is None:
                errors.append(f"Week {d.week_number} {day_name(d.day_of_week)} is missing start/end time")

    return errors


def summarize_generation_result(result: GenerationResult) -> str:
    parts = []
    if result.shifts_created:
        parts.append(f"{len(result.shifts_created)} shifts created")
    if result.shifts_skipped:
        parts.append(f"{len(result.shifts_skipped)} dates skipped")
    if result.conflicts:
        parts.append(f"{len(result.conflicts)} conflicts")
    if result.errors:
        parts.append(f"{len(result.errors)} errors")
    return ", ".join(parts) or "No changes"


def get_shifts_affected_by_pattern_change(shifts: Iterable[ShiftRecord], effective_date: date) -> List[ShiftRecord]:
    """班型變更生效日（含）之後、由班型產生且尚未執行的班次"""
    return [
        s for s in shifts
        if s.is_generated_from_pattern
        and s.shift_date >= effective_date
        and s.status in REPLACEABLE_SHIFT_STATUSES
    ]


def plan_pattern_change_regeneration(assignments: Iterable[StaffPatternAssignment],
                                     affected_shifts: List[ShiftRecord],
                                     effective_date: date) -> RegenerationPlan:
    active = [a for a in assignments if a.assignment_status == AssignmentStatus.ACTIVE]
    return RegenerationPlan(
        assignments_to_regenerate=active,
        shifts_to_delete=affected_shifts,
        effective_date=effective_date,
        summary=(
            f"{len(active)} assignments will be regenerated. "
            f"{len(affected_shifts)} existing shifts will be replaced."
        ),
    )


def _conflict_skip_reason(conflicts: List[Conflict], resolution: str) -> str:
    types = ", ".join(dict.fromkeys(c.type for c in conflicts))
    return f"Conflict: {types} - {resolution}"


class PatternGenerationService:
    """班型排班生成服務"""

    def __init__(self, store: ShiftDataStore, events: Optional[GenerationEvents] = None):
        self.store = store
        self.events = events or GenerationEvents()
        self.conflict_detector = ConflictDetector(store)
        self.materializer = ShiftMaterializer(store)

    def detect_conflicts(self, staff_member_id: str, start_date: date, end_date: date,
                         exclude_assignment_id: Optional[str] = None) -> List[Conflict]:
        return self.conflict_detector.detect_conflicts(
            staff_member_id, start_date, end_date, exclude_assignment_id
        )

    def preview_active_assignment(self, staff_member_id: str, target_date: date) -> Optional[StaffPatternAssignment]:
        """查詢某員工在某日實際生效的班型指派"""
        assignments = self.store.list_staff_assignments(staff_member_id)
        return resolve_assignment_for_date(assignments, target_date)

    def generate_shifts_from_pattern(self, assignment_id: str, start_date: date, end_date: date,
                                     rota_id: str,
                                     conflict_resolutions: Optional[Dict[date, ConflictResolution]] = None,
                                     dry_run: bool = False,
                                     generation_type: GenerationType = GenerationType.MANUAL,
                                     cancel_event: Optional[threading.Event] = None) -> GenerationResult:
        """依指派 id 讀取最新資料後，生成指定日期區間的班次"""
        result = GenerationResult(
            assignment_id=assignment_id, period_start=start_date, period_end=end_date, dry_run=dry_run
        )

        try:
            assignment = self.store.get_assignment(assignment_id)
            if assignment is None:
                result.errors.append(f"Assignment {assignment_id} not found")
                return result
            template = self.store.get_template(assignment.template_id)
            if template is None:
                result.errors.append(f"Pattern template {assignment.template_id} not found")
                return result
            pattern_days = self.store.list_pattern_days(template.id)
        except CareRotaError as e:
            self.events.error(f"讀取指派 {assignment_id} 資料失敗: {str(e)}")
            result.errors.append(str(e))
            return result

        return self.generate_for_assignment(
            assignment, template, pattern_days, rota_id,
            start_date=start_date,
            end_date=end_date,
            conflict_resolutions=conflict_resolutions,
            dry_run=dry_run,
            generation_type=generation_type,
            cancel_event=cancel_event,
        )

    def generate_for_assignment(self, assignment: StaffPatternAssignment, template: PatternTemplate,
                                pattern_days: List[PatternDay], rota_id: Optional[str],
                                start_date: Optional[date] = None, end_date: Optional[date] = None,
                                conflict_resolutions: Optional[Dict[date, ConflictResolution]] = None,
                                dry_run: bool = False,
                                generation_type: GenerationType = GenerationType.MANUAL,
                                cancel_event: Optional[threading.Event] = None,
                                today: Optional[date] = None) -> GenerationResult:
        """對已取得的指派快照執行生成；未指定區間時使用生成區間計算結果"""
        if start_date is None or end_date is None:
            window = calculate_generation_window(assignment, template, today=today)
            start_date = start_date or window.start_date
            end_date = end_date or window.end_date

        result = GenerationResult(
            assignment_id=assignment.id, period_start=start_date, period_end=end_date, dry_run=dry_run
        )

        if end_date < start_date:
            result.errors.append(EMPTY_WINDOW_MESSAGE)
            return result

        validation_errors = validate_generation_data(assignment, template, pattern_days)
        if validation_errors:
            result.errors.extend(validation_errors)
            return result

        try:
            conflicts = self.detect_conflicts(
                assignment.staff_member_id, start_date, end_date, exclude_assignment_id=assignment.id
            )
        except CareRotaError as e:
            self.events.error(f"指派 {assignment.id} 衝突檢查失敗: {str(e)}")
            result.errors.append(str(e))
            return result
        result.conflicts = conflicts

        conflicts_by_date: Dict[date, List[Conflict]] = {}
        for conflict in conflicts:
            conflicts_by_date.setdefault(conflict.date, []).append(conflict)

        logger.info(
            f"開始生成指派 {assignment.id}：{start_date} 至 {end_date}，"
            f"發現 {len(conflicts)} 筆衝突{'（試算）' if dry_run else ''}"
        )

        last_processed = self._run_dates(
            result, assignment, template, pattern_days, rota_id,
            start_date, end_date, conflicts_by_date, conflict_resolutions or {},
            dry_run, cancel_event,
        )

        if not dry_run:
            # 取消時水位只推進到最後一個處理完的日期，續跑不會重複建立
            if result.shifts_created and last_processed is not None:
                self._advance_watermark(result, assignment, last_processed)
            self._write_generation_log(result, generation_type)

        logger.info(f"指派 {assignment.id} 生成完成：{summarize_generation_result(result)}")
        return result

    def _run_dates(self, result: GenerationResult, assignment: StaffPatternAssignment,
                   template: PatternTemplate, pattern_days: List[PatternDay], rota_id: Optional[str],
                   start_date: date, end_date: date, conflicts_by_date: Dict[date, List[Conflict]],
                   resolutions: Dict[date, ConflictResolution], dry_run: bool,
                   cancel_event: Optional[threading.Event]) -> Optional[date]:
        """依序處理每個日期，回傳最後一個完整處理的日期（一天都沒處理則為 None）"""
        index = PatternDayIndex(pattern_days, assignment.applies_to_days)
        publish_status = resolve_publish_status(assignment, template)
        siblings = self._load_sibling_assignments(assignment, result)

        last_processed: Optional[date] = None
        total_days = (end_date - start_date).days + 1
        for offset in range(total_days):
            # 取消只在日期之間檢查，單一日期一定完整處理
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(f"指派 {assignment.id} 的生成已取消，停在 {start_date + timedelta(days=offset)}")
                break

            target_date = start_date + timedelta(days=offset)
            self._process_date(
                result, assignment, template, index, siblings, publish_status, rota_id,
                target_date, conflicts_by_date.get(target_date), resolutions, dry_run,
            )
            last_processed = target_date
            self.events.progress(offset + 1, total_days)
        return last_processed

    def _load_sibling_assignments(self, assignment: StaffPatternAssignment,
                                  result: GenerationResult) -> List[StaffPatternAssignment]:
        try:
            assignments = self.store.list_staff_assignments(assignment.staff_member_id)
        except CareRotaError as e:
            message = f"Could not load other assignments for priority check: {str(e)}"
            result.warnings.append(message)
            self.events.warning(message)
            return [assignment]
        # 以本次的快照為準
        return [a for a in assignments if a.id != assignment.id] + [assignment]

    def _process_date(self, result: GenerationResult, assignment: StaffPatternAssignment,
                      template: PatternTemplate, index: PatternDayIndex,
                      siblings: List[StaffPatternAssignment], publish_status: PublishStatus,
                      rota_id: Optional[str], target_date: date,
                      day_conflicts: Optional[List[Conflict]],
                      resolutions: Dict[date, ConflictResolution], dry_run: bool) -> None:
        # 適用星期優先於日期範圍
        if not index.applies_to(target_date):
            result.shifts_skipped.append(SkippedDate(date=target_date, reason=SKIP_NOT_IN_APPLIES_TO))
            return
        if target_date < assignment.start_date:
            result.shifts_skipped.append(SkippedDate(date=target_date, reason=SKIP_BEFORE_START))
            return
        if assignment.end_date is not None and target_date > assignment.end_date:
            result.shifts_skipped.append(SkippedDate(date=target_date, reason=SKIP_AFTER_END))
            return

        week = resolve_week(
            assignment.start_date, assignment.rotation_start_week, template.rotation_cycle_weeks, target_date
        )
        lookup = index.lookup(target_date, week)
        if lookup.skip_reason:
            result.shifts_skipped.append(SkippedDate(date=target_date, reason=lookup.skip_reason))
            return

        winner = resolve_assignment_for_date(siblings, target_date)
        if winner is not None and winner.id != assignment.id:
            result.shifts_skipped.append(SkippedDate(date=target_date, reason=SKIP_SUPERSEDED))
            return

        if day_conflicts:
            resolution = resolutions.get(target_date, "skip")
            if resolution != "override":
                result.shifts_skipped.append(
                    SkippedDate(date=target_date, reason=_conflict_skip_reason(day_conflicts, resolution))
                )
                return
            self._clear_conflicting_shifts(result, day_conflicts, dry_run)

        try:
            if dry_run:
                self.materializer.validate(assignment.staff_member_id, rota_id)
                shift = self._dry_run_record(assignment, target_date, lookup.pattern_day, week, publish_status, rota_id)
            else:
                materialized = self.materializer.materialize(
                    assignment, target_date, lookup.pattern_day, week, publish_status, rota_id
                )
                shift = materialized.shift
                for warning in materialized.warnings:
                    result.warnings.append(warning)
                    self.events.warning(warning)
            result.shifts_created.append(shift)
        except ValidationError as e:
            self._record_date_error(result, target_date, str(e))
        except AssociationError as e:
            self._record_date_error(result, target_date, str(e))
        except CareRotaError as e:
            self._record_date_error(result, target_date, f"Failed to create shift: {str(e)}")

    def _clear_conflicting_shifts(self, result: GenerationResult, conflicts: List[Conflict], dry_run: bool) -> None:
        # 覆寫：盡量刪除既有班次；假別沒有可刪除的對象
        for conflict in conflicts:
            if conflict.type != "existing_shift" or not conflict.existing_shift_id or dry_run:
                continue
            try:
                self.store.delete_shift(conflict.existing_shift_id)
                logger.info(f"已刪除衝突班次 {conflict.existing_shift_id} ({conflict.date})")
            except CareRotaError as e:
                message = f"{conflict.date.isoformat()}: could not delete conflicting shift {conflict.existing_shift_id} ({str(e)})"
                result.warnings.append(message)
                self.events.warning(message)

    def _dry_run_record(self, assignment: StaffPatternAssignment, target_date: date, pattern_day: PatternDay,
                        week: int, publish_status: PublishStatus, rota_id: Optional[str]) -> ShiftRecord:
        data = build_shift_data(target_date, pattern_day, week, publish_status)
        return ShiftRecord(
            id=f"dry-run-{target_date.isoformat()}",
            shift_date=data.shift_date,
            start_time=data.start_time,
            end_time=data.end_time,
            status=int(data.status),
            break_minutes=data.break_minutes,
            rota_id=rota_id,
            staff_member_id=assignment.staff_member_id,
            pattern_assignment_id=assignment.id,
            is_generated_from_pattern=True,
            pattern_week=data.pattern_week,
            pattern_day_of_week=data.pattern_day_of_week,
        )

    def _record_date_error(self, result: GenerationResult, target_date: date, message: str) -> None:
        message = f"{target_date.isoformat()}: {message}"
        result.errors.append(message)
        self.events.error(message)

    def _advance_watermark(self, result: GenerationResult, assignment: StaffPatternAssignment, end_date: date) -> None:
        # 水位只往後推進
        if assignment.last_generated_date is not None and assignment.last_generated_date >= end_date:
            return
        try:
            self.store.update_last_generated_date(assignment.id, end_date)
            logger.info(f"指派 {assignment.id} 的最後生成日更新為 {end_date}")
        except CareRotaError as e:
            message = f"Failed to update last generated date: {str(e)}"
            result.errors.append(message)
            self.events.error(message)

    def _write_generation_log(self, result: GenerationResult, generation_type: GenerationType) -> None:
        generated_at = now()
        limited = result.conflicts[:settings.CONFLICT_LOG_LIMIT]
        log = GenerationLogCreate(
            name=f"Generation {generated_at:%Y-%m-%d %H:%M:%S}",
            assignment_id=result.assignment_id,
            generation_date=generated_at,
            period_start=result.period_start,
            period_end=result.period_end,
            shifts_generated=len(result.shifts_created),
            conflicts_detected=len(result.conflicts),
            conflict_details=json.dumps([c.model_dump(mode="json") for c in limited]),
            generation_type=generation_type,
        )
        try:
            self.store.create_generation_log(log)
        except Exception as e:
            # 紀錄寫入失敗不影響生成結果
            logger.warning(str(LoggingError(f"寫入生成紀錄失敗: {str(e)}")))

    def run_batch(self, items: List[BatchItem], dry_run: bool = False, delay_ms: Optional[int] = None,
                  on_progress: Optional[Callable[[int, int], None]] = None,
                  cancel_event: Optional[threading.Event] = None,
                  generation_type: GenerationType = GenerationType.MANUAL,
                  today: Optional[date] = None) -> BatchGenerationResult:
        """依序處理多個指派，指派之間等待 delay_ms 以控制對資料服務的請求速率"""
        delay_ms = settings.GENERATION_DELAY_MS if delay_ms is None else delay_ms
        batch = BatchGenerationResult()
        total = len(items)

        for i, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                batch.cancelled = True
                break

            assignment = item.assignment
            try:
                self._run_batch_item(batch, item, dry_run, cancel_event, generation_type, today)
            except CareRotaError as e:
                batch.errors.append(f"Assignment {assignment.id}: {str(e)}")
                self.events.error(f"批次處理指派 {assignment.id} 失敗: {str(e)}")

            if on_progress:
                on_progress(i + 1, total)
            if batch.cancelled:
                break

            if delay_ms > 0 and i < total - 1:
                if cancel_event is not None:
                    cancel_event.wait(delay_ms / 1000)
                else:
                    time.sleep(delay_ms / 1000)

        logger.info(
            f"批次生成完成：處理 {batch.assignments_processed} 個指派，略過 {batch.assignments_skipped} 個，"
            f"產生 {batch.total_shifts_generated} 個班次，錯誤 {len(batch.errors)} 筆"
        )
        return batch

    def _run_batch_item(self, batch: BatchGenerationResult, item: BatchItem, dry_run: bool,
                        cancel_event: Optional[threading.Event], generation_type: GenerationType,
                        today: Optional[date]) -> None:
        assignment = item.assignment
        if not is_generation_needed(assignment, item.template, today=today):
            batch.assignments_skipped += 1
            return

        window = calculate_generation_window(assignment, item.template, today=today)
        if window.days_to_generate <= 0:
            batch.errors.append(f"Assignment {assignment.id}: {EMPTY_WINDOW_MESSAGE}")
            return

        rota_id = item.rota_id or self.store.find_rota_for_staff(assignment.staff_member_id)
        if not rota_id:
            batch.errors.append(
                f"Assignment {assignment.id}: No rota found for staff member {assignment.staff_member_id}"
            )
            return

        result = self.generate_for_assignment(
            assignment, item.template, item.pattern_days, rota_id,
            start_date=window.start_date,
            end_date=window.end_date,
            dry_run=dry_run,
            generation_type=generation_type,
            cancel_event=cancel_event,
        )
        batch.results[assignment.id] = result
        batch.assignments_processed += 1
        batch.total_shifts_generated += len(result.shifts_created)
        batch.total_conflicts_detected += len(result.conflicts)
        batch.errors.extend(f"Assignment {assignment.id}: {e}" for e in result.errors)
        if result.cancelled:
            batch.cancelled = True


def load_batch_items(store: ShiftDataStore, assignment_ids: Optional[List[str]] = None,
                     on_date: Optional[date] = None) -> List[BatchItem]:
    """讀取批次生成需要的指派、模板與班型日快照；資料不完整的指派直接略過"""
    if assignment_ids:
        assignments = [a for a in (store.get_assignment(i) for i in assignment_ids) if a is not None]
    else:
        assignments = store.list_active_assignments(on_date or now().date())

    items = []
    templates: Dict[str, PatternTemplate] = {}
    days_by_template: Dict[str, List[PatternDay]] = {}
    for assignment in assignments:
        if assignment.template_id not in templates:
            template = store.get_template(assignment.template_id)
            if template is None:
                logger.warning(f"指派 {assignment.id} 的班型模板 {assignment.template_id} 不存在，略過")
                continue
            templates[assignment.template_id] = template
            days_by_template[assignment.template_id] = store.list_pattern_days(template.id)
        items.append(BatchItem(
            assignment=assignment,
            template=templates[assignment.template_id],
            pattern_days=days_by_template[assignment.template_id],
        ))
    return items
