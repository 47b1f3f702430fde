"""測試用的資料工廠與記憶體資料服務"""

import uuid
from datetime import date, time
from typing import Dict, List, Optional, Set

from carerota.core.exceptions import ExternalServiceError
from carerota.models.enums import AssignmentStatus, PublishStatus
from carerota.schemas.generation import GenerationLog, LeaveRecord, ShiftRecord
from carerota.schemas.pattern import PatternDay, PatternTemplate, StaffPatternAssignment
from carerota.services.data_store import RELATION_ASSIGNMENT, RELATION_ROTA, RELATION_STAFF, ShiftDataStore

STAFF_ID = "5f0c7d1e-2a4b-4c6d-8e9f-0a1b2c3d4e5f"
OTHER_STAFF_ID = "6a1d8e2f-3b5c-4d7e-9f0a-1b2c3d4e5f60"
ROTA_ID = "7b2e9f30-4c6d-4e8f-a01b-2c3d4e5f6071"
TEMPLATE_ID = "8c3fa041-5d7e-4f90-b12c-3d4e5f607182"
ASSIGNMENT_ID = "9d40b152-6e8f-4a01-c23d-4e5f60718293"

MONDAY = date(2024, 1, 1)

_FIELDS = {
    RELATION_ROTA: "rota_id",
    RELATION_STAFF: "staff_member_id",
    RELATION_ASSIGNMENT: "pattern_assignment_id",
}


def new_id() -> str:
    return str(uuid.uuid4())


def make_template(cycle_weeks=1, window_weeks=2, publish_status=PublishStatus.UNPUBLISHED,
                  template_id=TEMPLATE_ID) -> PatternTemplate:
    return PatternTemplate(
        id=template_id,
        name=f"{cycle_weeks}-week pattern",
        rotation_cycle_weeks=cycle_weeks,
        generation_window_weeks=window_weeks,
        default_publish_status=publish_status,
    )


def make_day(week, weekday, start=time(9, 0), end=time(17, 0), rest=False, overnight=False,
             break_minutes=0, template_id=TEMPLATE_ID) -> PatternDay:
    return PatternDay(
        id=new_id(),
        template_id=template_id,
        week_number=week,
        day_of_week=weekday,
        is_rest_day=rest,
        start_time=None if rest else start,
        end_time=None if rest else end,
        is_overnight=overnight,
        break_minutes=break_minutes,
    )


def every_day(week=1, **kwargs) -> List[PatternDay]:
    return [make_day(week, d, **kwargs) for d in range(1, 8)]


def make_assignment(start_date=MONDAY, assignment_id=ASSIGNMENT_ID, staff_member_id=STAFF_ID,
                    template_id=TEMPLATE_ID, **overrides) -> StaffPatternAssignment:
    data = dict(
        id=assignment_id,
        staff_member_id=staff_member_id,
        template_id=template_id,
        start_date=start_date,
        rotation_start_week=1,
        priority=1,
        assignment_status=AssignmentStatus.ACTIVE,
    )
    data.update(overrides)
    return StaffPatternAssignment(**data)


def make_shift(shift_date, staff_member_id=STAFF_ID, shift_id=None, assignment_id=None,
               status=int(PublishStatus.UNPUBLISHED), generated=False) -> ShiftRecord:
    return ShiftRecord(
        id=shift_id or new_id(),
        shift_date=shift_date,
        start_time=f"{shift_date.isoformat()}T08:00:00",
        end_time=f"{shift_date.isoformat()}T16:00:00",
        status=status,
        staff_member_id=staff_member_id,
        pattern_assignment_id=assignment_id,
        is_generated_from_pattern=generated,
    )


def make_leave(start, end, staff_member_id=STAFF_ID, type_name="Annual Leave") -> LeaveRecord:
    return LeaveRecord(
        id=new_id(),
        staff_member_id=staff_member_id,
        absence_start=start,
        absence_end=end,
        absence_type_name=type_name,
    )


class InMemoryShiftStore(ShiftDataStore):
    """記憶體資料服務，可注入失敗以測試補償與錯誤累積"""

    def __init__(self, atomic: bool = False):
        self.supports_atomic_rota_binding = atomic
        self.assignments: Dict[str, StaffPatternAssignment] = {}
        self.templates: Dict[str, PatternTemplate] = {}
        self.pattern_days: Dict[str, List[PatternDay]] = {}
        self.shifts: Dict[str, ShiftRecord] = {}
        self.leave: List[LeaveRecord] = []
        self.staff_rotas: Dict[str, str] = {}
        self.logs: List[GenerationLog] = []
        self.calls: List[tuple] = []
        # 操作名稱 -> 要拋出的例外
        self.failures: Dict[str, Exception] = {}
        self.failing_relations: Set[str] = set()
        self.undeletable: Set[str] = set()

    def _call(self, operation, *args):
        self.calls.append((operation,) + args)
        if operation in self.failures:
            raise self.failures[operation]

    def add(self, assignment=None, template=None, days=None):
        if template is not None:
            self.templates[template.id] = template
            self.pattern_days[template.id] = list(days or [])
        if assignment is not None:
            self.assignments[assignment.id] = assignment
        return self

    def add_shift(self, shift: ShiftRecord) -> ShiftRecord:
        self.shifts[shift.id] = shift
        return shift

    def shifts_on(self, shift_date) -> List[ShiftRecord]:
        return [s for s in self.shifts.values() if s.shift_date == shift_date]

    def get_assignment(self, assignment_id):
        self._call("get_assignment", assignment_id)
        return self.assignments.get(assignment_id)

    def get_template(self, template_id):
        self._call("get_template", template_id)
        return self.templates.get(template_id)

    def list_pattern_days(self, template_id):
        self._call("list_pattern_days", template_id)
        return list(self.pattern_days.get(template_id, []))

    def list_staff_assignments(self, staff_member_id):
        self._call("list_staff_assignments", staff_member_id)
        return [a for a in self.assignments.values() if a.staff_member_id == staff_member_id]

    def list_active_assignments(self, on_date):
        self._call("list_active_assignments", on_date)
        return [
            a for a in self.assignments.values()
            if a.assignment_status == AssignmentStatus.ACTIVE and (a.end_date is None or a.end_date >= on_date)
        ]

    def find_rota_for_staff(self, staff_member_id):
        self._call("find_rota_for_staff", staff_member_id)
        return self.staff_rotas.get(staff_member_id)

    def query_shifts(self, staff_member_id, start_date, end_date):
        self._call("query_shifts", staff_member_id, start_date, end_date)
        return sorted(
            (s for s in self.shifts.values()
             if s.staff_member_id == staff_member_id and start_date <= s.shift_date <= end_date),
            key=lambda s: s.shift_date,
        )

    def query_approved_leave(self, staff_member_id, start_date, end_date):
        self._call("query_approved_leave", staff_member_id, start_date, end_date)
        return [
            leave for leave in self.leave
            if leave.staff_member_id == staff_member_id
            and leave.absence_start <= end_date and leave.absence_end >= start_date
        ]

    def create_shift(self, data, rota_id: Optional[str] = None):
        self._call("create_shift", data.shift_date, rota_id)
        record = ShiftRecord(
            id=new_id(),
            rota_id=rota_id,
            **data.model_dump(include={
                "shift_date", "start_time", "end_time", "break_minutes",
                "is_generated_from_pattern", "pattern_week", "pattern_day_of_week",
            }),
            status=int(data.status),
        )
        self.shifts[record.id] = record
        return record

    def delete_shift(self, shift_id):
        self._call("delete_shift", shift_id)
        if shift_id in self.undeletable:
            raise ExternalServiceError("delete_shift", f"shift {shift_id} is locked")
        if shift_id not in self.shifts:
            raise ExternalServiceError("delete_shift", f"shift {shift_id} not found")
        del self.shifts[shift_id]

    def associate(self, shift_id, relation, target_id):
        self._call("associate", shift_id, relation, target_id)
        if relation in self.failing_relations:
            raise ExternalServiceError("associate", f"{relation} association rejected")
        shift = self.shifts[shift_id]
        self.shifts[shift_id] = shift.model_copy(update={_FIELDS[relation]: target_id})

    def update_last_generated_date(self, assignment_id, value):
        self._call("update_last_generated_date", assignment_id, value)
        assignment = self.assignments[assignment_id]
        if assignment.last_generated_date is None or value > assignment.last_generated_date:
            self.assignments[assignment_id] = assignment.model_copy(update={"last_generated_date": value})

    def create_generation_log(self, log):
        self._call("create_generation_log", log.assignment_id)
        self.logs.append(GenerationLog(id=new_id(), **log.model_dump()))

    def list_generation_logs(self, assignment_id):
        self._call("list_generation_logs", assignment_id)
        return sorted(
            (log for log in self.logs if log.assignment_id == assignment_id),
            key=lambda log: log.generation_date,
            reverse=True,
        )
