import logging
from typing import Callable, Dict, Optional, TypeVar

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ExternalServiceError
from ..models.enums import AbsenceStatus, AssignmentStatus
from ..models.pattern import PatternDay, PatternTemplate, ShiftGenerationLog, StaffPatternAssignment
from ..models.shift import Shift, StaffAbsence, StaffMember
from ..schemas import generation as gen_schemas
from ..schemas import pattern as pattern_schemas
from .data_store import ShiftDataStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlAlchemyShiftStore(ShiftDataStore):
    """以 SQLAlchemy Session 實作的資料服務"""

    supports_atomic_rota_binding = True

    def __init__(self, db: Session, relationship_schema: Optional[Dict[str, str]] = None):
        self.db = db
        schema = relationship_schema or settings.RELATIONSHIP_SCHEMA
        # 關聯名稱在建立時一次解析完成
        columns = set(Shift.__table__.columns.keys())
        unknown = {rel: col for rel, col in schema.items() if col not in columns}
        if unknown:
            raise ValueError(f"關聯設定對應到不存在的欄位: {unknown}")
        self._relation_columns = dict(schema)

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"資料庫操作失敗 ({operation}): {str(e)}")
            raise ExternalServiceError(operation, str(e)) from e

    # ------------------------------------------------------------------
    # 讀取
    # ------------------------------------------------------------------

    def get_assignment(self, assignment_id):
        def _get():
            row = self.db.query(StaffPatternAssignment).filter(
                StaffPatternAssignment.id == assignment_id
            ).first()
            return pattern_schemas.StaffPatternAssignment.model_validate(row) if row else None
        return self._run("get_assignment", _get)

    def get_template(self, template_id):
        def _get():
            row = self.db.query(PatternTemplate).filter(PatternTemplate.id == template_id).first()
            return pattern_schemas.PatternTemplate.model_validate(row) if row else None
        return self._run("get_template", _get)

    def list_pattern_days(self, template_id):
        def _list():
            rows = self.db.query(PatternDay).filter(
                PatternDay.template_id == template_id
            ).order_by(PatternDay.week_number, PatternDay.day_of_week).all()
            return [pattern_schemas.PatternDay.model_validate(r) for r in rows]
        return self._run("list_pattern_days", _list)

    def list_staff_assignments(self, staff_member_id):
        def _list():
            rows = self.db.query(StaffPatternAssignment).filter(
                StaffPatternAssignment.staff_member_id == staff_member_id
            ).all()
            return [pattern_schemas.StaffPatternAssignment.model_validate(r) for r in rows]
        return self._run("list_staff_assignments", _list)

    def list_active_assignments(self, on_date):
        def _list():
            rows = self.db.query(StaffPatternAssignment).filter(
                StaffPatternAssignment.assignment_status == int(AssignmentStatus.ACTIVE),
                or_(StaffPatternAssignment.end_date.is_(None), StaffPatternAssignment.end_date >= on_date),
            ).order_by(StaffPatternAssignment.priority, StaffPatternAssignment.start_date).all()
            return [pattern_schemas.StaffPatternAssignment.model_validate(r) for r in rows]
        return self._run("list_active_assignments", _list)

    def find_rota_for_staff(self, staff_member_id):
        def _find():
            staff = self.db.query(StaffMember).filter(StaffMember.id == staff_member_id).first()
            return staff.default_rota_id if staff else None
        return self._run("find_rota_for_staff", _find)

    def query_shifts(self, staff_member_id, start_date, end_date):
        def _query():
            rows = self.db.query(Shift).filter(
                Shift.staff_member_id == staff_member_id,
                Shift.shift_date >= start_date,
                Shift.shift_date <= end_date,
            ).order_by(Shift.shift_date).all()
            return [gen_schemas.ShiftRecord.model_validate(r) for r in rows]
        return self._run("query_shifts", _query)

    def query_approved_leave(self, staff_member_id, start_date, end_date):
        def _query():
            rows = self.db.query(StaffAbsence).filter(
                StaffAbsence.staff_member_id == staff_member_id,
                StaffAbsence.absence_status == int(AbsenceStatus.APPROVED),
                StaffAbsence.absence_start <= end_date,
                StaffAbsence.absence_end >= start_date,
            ).order_by(StaffAbsence.absence_start).all()
            return [gen_schemas.LeaveRecord.model_validate(r) for r in rows]
        return self._run("query_approved_leave", _query)

    def list_generation_logs(self, assignment_id):
        def _list():
            rows = self.db.query(ShiftGenerationLog).filter(
                ShiftGenerationLog.assignment_id == assignment_id
            ).order_by(ShiftGenerationLog.generation_date.desc()).all()
            return [gen_schemas.GenerationLog.model_validate(r) for r in rows]
        return self._run("list_generation_logs", _list)

    # ------------------------------------------------------------------
    # 寫入
    # ------------------------------------------------------------------

    def create_shift(self, data, rota_id=None):
        def _create():
            shift = Shift(**data.model_dump())
            shift.status = int(data.status)
            if rota_id is not None:
                # 建立與綁定班表在同一個交易中完成
                setattr(shift, self._relation_columns["rota"], rota_id)
            self.db.add(shift)
            self.db.commit()
            self.db.refresh(shift)
            return gen_schemas.ShiftRecord.model_validate(shift)
        return self._run("create_shift", _create)

    def delete_shift(self, shift_id):
        def _delete():
            deleted = self.db.query(Shift).filter(Shift.id == shift_id).delete()
            self.db.commit()
            if not deleted:
                raise ExternalServiceError("delete_shift", f"shift {shift_id} not found")
        return self._run("delete_shift", _delete)

    def associate(self, shift_id, relation, target_id):
        column = self._relation_columns.get(relation)
        if column is None:
            raise ExternalServiceError("associate", f"unknown relation {relation}")

        def _associate():
            shift = self.db.query(Shift).filter(Shift.id == shift_id).first()
            if not shift:
                raise ExternalServiceError("associate", f"shift {shift_id} not found")
            setattr(shift, column, target_id)
            self.db.commit()
        return self._run("associate", _associate)

    def update_last_generated_date(self, assignment_id, value):
        def _update():
            assignment = self.db.query(StaffPatternAssignment).filter(
                StaffPatternAssignment.id == assignment_id
            ).first()
            if not assignment:
                raise ExternalServiceError("update_last_generated_date", f"assignment {assignment_id} not found")
            # 水位只能往後推進
            if assignment.last_generated_date is None or value > assignment.last_generated_date:
                assignment.last_generated_date = value
                self.db.commit()
        return self._run("update_last_generated_date", _update)

    def create_generation_log(self, log):
        def _create():
            self.db.add(ShiftGenerationLog(**log.model_dump()))
            self.db.commit()
        return self._run("create_generation_log", _create)
