import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from ..core.exceptions import AssociationError, ValidationError
from ..models.enums import PublishStatus
from ..schemas.generation import ShiftCreateData, ShiftRecord
from ..schemas.pattern import PatternDay, PatternTemplate, StaffPatternAssignment
from .data_store import RELATION_ASSIGNMENT, RELATION_ROTA, RELATION_STAFF, ShiftDataStore
from .rotation import is_valid_identifier
from .saga import ON_FAILURE_LOG, ON_FAILURE_WARN, Saga, SagaStep

logger = logging.getLogger(__name__)


def resolve_publish_status(assignment: StaffPatternAssignment, template: PatternTemplate) -> PublishStatus:
    """指派有覆寫時使用指派的發布狀態，否則使用模板預設值"""
    if assignment.override_publish_status and assignment.publish_status is not None:
        return PublishStatus(assignment.publish_status)
    return PublishStatus(template.default_publish_status)


def shift_timestamps(target_date: date, pattern_day: PatternDay):
    start = datetime.combine(target_date, pattern_day.start_time or time(9, 0))
    end_date = target_date + timedelta(days=1) if pattern_day.is_overnight else target_date
    end = datetime.combine(end_date, pattern_day.end_time or time(17, 0))
    return start, end


def build_shift_data(target_date: date, pattern_day: PatternDay, rotation_week: int,
                     publish_status: PublishStatus) -> ShiftCreateData:
    start, end = shift_timestamps(target_date, pattern_day)
    return ShiftCreateData(
        name=f"Pattern Shift - {target_date.isoformat()}",
        shift_date=target_date,
        start_time=start,
        end_time=end,
        status=publish_status,
        break_minutes=pattern_day.break_minutes or 0,
        is_generated_from_pattern=True,
        pattern_week=rotation_week,
        pattern_day_of_week=pattern_day.day_of_week,
        shift_reference_id=pattern_day.shift_reference_id if is_valid_identifier(pattern_day.shift_reference_id) else None,
        shift_activity_id=pattern_day.shift_activity_id if is_valid_identifier(pattern_day.shift_activity_id) else None,
    )


@dataclass
class MaterializedShift:
    shift: ShiftRecord
    warnings: List[str] = field(default_factory=list)


class ShiftMaterializer:
    """建立班次並建立必要關聯

    班表關聯失敗時刪除剛建立的班次；人員關聯失敗只記警告；指派關聯失敗只寫日誌。
    """

    def __init__(self, store: ShiftDataStore):
        self.store = store

    @staticmethod
    def validate(staff_member_id: Optional[str], rota_id: Optional[str]) -> None:
        if not is_valid_identifier(staff_member_id):
            raise ValidationError(f"Cannot create shift: Invalid staffMemberId \"{staff_member_id}\"")
        if not is_valid_identifier(rota_id):
            raise ValidationError(f"Cannot create shift: Invalid rotaId \"{rota_id}\"")

    def materialize(self, assignment: StaffPatternAssignment, target_date: date, pattern_day: PatternDay,
                    rotation_week: int, publish_status: PublishStatus, rota_id: str) -> MaterializedShift:
        staff_member_id = assignment.staff_member_id
        self.validate(staff_member_id, rota_id)

        data = build_shift_data(target_date, pattern_day, rotation_week, publish_status)
        atomic = self.store.supports_atomic_rota_binding
        store = self.store

        def create(ctx):
            ctx["shift"] = store.create_shift(data, rota_id=rota_id if atomic else None)
            logger.debug(f"已建立班次 {ctx['shift'].id} ({target_date})")

        def delete_created(ctx):
            store.delete_shift(ctx["shift"].id)
            logger.warning(f"因班表關聯失敗，已刪除孤立班次 {ctx['shift'].id}")

        def link(relation, target_id, field_name):
            def _action(ctx):
                store.associate(ctx["shift"].id, relation, target_id)
                ctx["shift"] = ctx["shift"].model_copy(update={field_name: target_id})
            return _action

        def rota_error(exc, ctx):
            shift = ctx.get("shift")
            return AssociationError(
                RELATION_ROTA,
                f"Failed to associate shift with rota: {exc}",
                mandatory=True,
                shift_id=shift.id if shift else None,
            )

        steps = [SagaStep("create_shift", create, compensate=None if atomic else delete_created)]
        if not atomic:
            steps.append(SagaStep("associate_rota", link(RELATION_ROTA, rota_id, "rota_id"), error=rota_error))
        steps.append(SagaStep("associate_staff", link(RELATION_STAFF, staff_member_id, "staff_member_id"),
                              on_failure=ON_FAILURE_WARN))
        if is_valid_identifier(assignment.id):
            steps.append(SagaStep("associate_assignment",
                                  link(RELATION_ASSIGNMENT, assignment.id, "pattern_assignment_id"),
                                  on_failure=ON_FAILURE_LOG))

        outcome = Saga(f"materialize {target_date.isoformat()}", steps).run()
        warnings = [f"{target_date.isoformat()}: shift created without staff assignment ({w})"
                    for w in outcome.warnings]
        return MaterializedShift(shift=outcome.context["shift"], warnings=warnings)
