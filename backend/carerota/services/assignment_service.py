import json
import logging
from datetime import date
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ValidationError
from ..models.enums import AssignmentStatus, PatternStatus
from ..models.pattern import PatternTemplate, ShiftGenerationLog, StaffPatternAssignment
from ..models.shift import Shift, StaffMember
from ..schemas.pattern import (
    BulkAssignmentRequest,
    BulkAssignmentResult,
    StaffPatternAssignment as AssignmentSnapshot,
    StaffPatternAssignmentCreate,
    StaffPatternAssignmentUpdate,
)
from ..utils.timezone import now

logger = logging.getLogger(__name__)


def rotation_start_week_for(stagger_type: str, index: int, staff_member_id: str, stagger_settings: dict) -> int:
    """批量指派時每位員工的起始週次

    same：全部從第 1 週開始；stagger：第 1、2 週交替；custom：依設定，未設定者為第 1 週。
    """
    if stagger_type == "stagger":
        return (index % 2) + 1
    if stagger_type == "custom":
        return stagger_settings.get(staff_member_id, 1)
    return 1


class AssignmentService:
    """人員班型指派服務"""

    @classmethod
    def get_assignment(cls, db: Session, assignment_id: str) -> Optional[StaffPatternAssignment]:
        return db.query(StaffPatternAssignment).filter(StaffPatternAssignment.id == assignment_id).first()

    @classmethod
    def create_assignment(cls, db: Session, data: StaffPatternAssignmentCreate) -> StaffPatternAssignment:
        template = db.query(PatternTemplate).filter(PatternTemplate.id == data.template_id).first()
        if not template:
            raise ValidationError(f"Pattern template {data.template_id} not found")
        if template.pattern_status != int(PatternStatus.ACTIVE):
            raise ValidationError(f"Pattern template {template.name} is not active")
        if data.rotation_start_week > template.rotation_cycle_weeks:
            raise ValidationError(
                f"rotation start week {data.rotation_start_week} exceeds the "
                f"{template.rotation_cycle_weeks}-week rotation"
            )
        if data.override_publish_status and data.publish_status is None:
            raise ValidationError("publish_status is required when override_publish_status is set")

        staff = db.query(StaffMember).filter(StaffMember.id == data.staff_member_id).first()
        if not staff:
            raise ValidationError(f"Staff member {data.staff_member_id} not found")

        assignment = StaffPatternAssignment(
            name=f"{staff.full_name} - {template.name}",
            staff_member_id=data.staff_member_id,
            template_id=data.template_id,
            start_date=data.start_date,
            end_date=data.end_date,
            rotation_start_week=data.rotation_start_week,
            priority=data.priority,
            applies_to_days=json.dumps(data.applies_to_days) if data.applies_to_days else None,
            override_publish_status=data.override_publish_status,
            publish_status=int(data.publish_status) if data.publish_status is not None else None,
            assignment_status=int(AssignmentStatus.ACTIVE),
        )
        try:
            db.add(assignment)
            db.commit()
            db.refresh(assignment)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"建立班型指派失敗: {str(e)}")
            raise

        logger.info(f"已將班型 {template.name} 指派給 {staff.full_name}（自 {data.start_date} 起）")
        return assignment

    @classmethod
    def end_assignment(cls, db: Session, assignment: StaffPatternAssignment, end_date: date) -> StaffPatternAssignment:
        if end_date < assignment.start_date:
            raise ValidationError("end_date must not be before the assignment start date")

        assignment.end_date = end_date
        assignment.assignment_status = int(AssignmentStatus.ENDED)
        assignment.updated_at = now()
        try:
            db.commit()
            db.refresh(assignment)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"結束班型指派 {assignment.id} 失敗: {str(e)}")
            raise

        logger.info(f"班型指派 {assignment.id} 已於 {end_date} 結束")
        return assignment

    @classmethod
    def update_assignment(cls, db: Session, assignment: StaffPatternAssignment,
                          data: StaffPatternAssignmentUpdate) -> StaffPatternAssignment:
        """部分更新指派；已生成的班次不會因此改變"""
        changes = data.model_dump(exclude_unset=True)
        for field in ("start_date", "rotation_start_week", "priority", "override_publish_status"):
            if field in changes and changes[field] is None:
                del changes[field]

        start_date = changes.get("start_date", assignment.start_date)
        end_date = changes.get("end_date", assignment.end_date)
        if end_date is not None and end_date < start_date:
            raise ValidationError("end_date must not be before start_date")

        cycle = assignment.template.rotation_cycle_weeks
        rotation_start_week = changes.get("rotation_start_week", assignment.rotation_start_week)
        if rotation_start_week > cycle:
            raise ValidationError(
                f"rotation start week {rotation_start_week} exceeds the {cycle}-week rotation"
            )

        override = changes.get("override_publish_status", assignment.override_publish_status)
        publish_status = changes.get("publish_status", assignment.publish_status)
        if override and publish_status is None:
            raise ValidationError("publish_status is required when override_publish_status is set")

        if "applies_to_days" in changes:
            days = changes["applies_to_days"]
            changes["applies_to_days"] = json.dumps(days) if days else None
        if changes.get("publish_status") is not None:
            changes["publish_status"] = int(changes["publish_status"])
        for field, value in changes.items():
            setattr(assignment, field, value)
        assignment.updated_at = now()

        try:
            db.commit()
            db.refresh(assignment)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"更新班型指派 {assignment.id} 失敗: {str(e)}")
            raise

        logger.info(f"班型指派 {assignment.id} 已更新: {', '.join(changes) or '無變更'}")
        return assignment

    @classmethod
    def delete_assignment(cls, db: Session, assignment: StaffPatternAssignment) -> None:
        """刪除指派；已生成的班次與生成紀錄保留，但解除與此指派的關聯"""
        assignment_id = assignment.id
        try:
            db.query(Shift).filter(Shift.pattern_assignment_id == assignment_id).update(
                {Shift.pattern_assignment_id: None}, synchronize_session=False
            )
            db.query(ShiftGenerationLog).filter(ShiftGenerationLog.assignment_id == assignment_id).update(
                {ShiftGenerationLog.assignment_id: None}, synchronize_session=False
            )
            db.delete(assignment)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"刪除班型指派 {assignment_id} 失敗: {str(e)}")
            raise
        logger.info(f"已刪除班型指派 {assignment_id}")

    @classmethod
    def bulk_assign_pattern(cls, db: Session, request: BulkAssignmentRequest) -> BulkAssignmentResult:
        """將同一個班型指派給多位員工；單一員工失敗不影響其他人"""
        result = BulkAssignmentResult()

        for index, staff_member_id in enumerate(request.staff_member_ids):
            try:
                data = StaffPatternAssignmentCreate(
                    staff_member_id=staff_member_id,
                    template_id=request.template_id,
                    start_date=request.start_date,
                    end_date=request.end_date,
                    rotation_start_week=rotation_start_week_for(
                        request.stagger_type, index, staff_member_id, request.stagger_settings
                    ),
                    override_publish_status=request.override_publish_status,
                    publish_status=request.publish_status,
                )
                assignment = cls.create_assignment(db, data)
                result.created.append(AssignmentSnapshot.model_validate(assignment))
            except (ValidationError, PydanticValidationError, SQLAlchemyError) as e:
                logger.warning(f"批量指派給員工 {staff_member_id} 失敗: {str(e)}")
                result.errors.append({"staff_member_id": staff_member_id, "error": str(e)})

        logger.info(f"批量指派完成：成功 {len(result.created)} 位，失敗 {len(result.errors)} 位")
        return result
