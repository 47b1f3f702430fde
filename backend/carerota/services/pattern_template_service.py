import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ValidationError
from ..models.enums import AssignmentStatus, PatternStatus
from ..models.pattern import PatternDay, PatternTemplate
from ..schemas.pattern import PatternDayCreate, PatternTemplateCreate, PatternTemplateUpdate
from ..utils.timezone import now
from .pattern_hours import calculate_pattern_hours

logger = logging.getLogger(__name__)


class PatternTemplateService:
    """班型模板服務"""

    @classmethod
    def list_templates(cls, db: Session, pattern_status: Optional[PatternStatus] = None,
                       standard_only: Optional[bool] = None,
                       location_id: Optional[str] = None) -> List[PatternTemplate]:
        query = db.query(PatternTemplate)
        if pattern_status is not None:
            query = query.filter(PatternTemplate.pattern_status == int(pattern_status))
        if standard_only is not None:
            query = query.filter(PatternTemplate.is_standard_template.is_(standard_only))
        if location_id:
            query = query.filter(PatternTemplate.location_id == location_id)
        return query.order_by(PatternTemplate.name).all()

    @classmethod
    def get_template(cls, db: Session, template_id: str) -> Optional[PatternTemplate]:
        return db.query(PatternTemplate).filter(PatternTemplate.id == template_id).first()

    @classmethod
    def create_template(cls, db: Session, data: PatternTemplateCreate) -> PatternTemplate:
        average_hours, total_hours = calculate_pattern_hours(data.days, data.rotation_cycle_weeks)
        template = PatternTemplate(
            **data.model_dump(exclude={"days"}),
            average_weekly_hours=average_hours,
            total_rotation_hours=total_hours,
            pattern_status=int(PatternStatus.ACTIVE),
        )
        template.default_publish_status = int(data.default_publish_status)
        template.days = [PatternDay(**day.model_dump()) for day in data.days]

        try:
            db.add(template)
            db.commit()
            db.refresh(template)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"建立班型模板 {data.name} 失敗: {str(e)}")
            raise

        logger.info(f"已建立班型模板 {template.name}（{len(data.days)} 個班型日，每週平均 {average_hours} 小時）")
        return template

    @classmethod
    def replace_pattern_days(cls, db: Session, template: PatternTemplate,
                             days: List[PatternDayCreate]) -> PatternTemplate:
        """以新的班型日取代模板原有的全部班型日，並重新計算快取工時"""
        seen = set()
        for day in days:
            if day.week_number > template.rotation_cycle_weeks:
                raise ValidationError(
                    f"week {day.week_number} is outside a {template.rotation_cycle_weeks}-week rotation"
                )
            key = (day.week_number, day.day_of_week)
            if key in seen:
                raise ValidationError(f"duplicate pattern day for week {key[0]} day {key[1]}")
            seen.add(key)

        try:
            # 先刪除舊資料再新增，避免違反 (template, week, day) 唯一約束
            template.days.clear()
            db.flush()
            template.days.extend(PatternDay(**day.model_dump()) for day in days)
            template.average_weekly_hours, template.total_rotation_hours = calculate_pattern_hours(
                days, template.rotation_cycle_weeks
            )
            template.updated_at = now()
            db.commit()
            db.refresh(template)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"更新班型模板 {template.id} 的班型日失敗: {str(e)}")
            raise

        logger.info(f"班型模板 {template.name} 已更新為 {len(days)} 個班型日")
        return template

    @classmethod
    def set_status(cls, db: Session, template: PatternTemplate, pattern_status: PatternStatus) -> PatternTemplate:
        template.pattern_status = int(pattern_status)
        template.updated_at = now()
        try:
            db.commit()
            db.refresh(template)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"更新班型模板 {template.id} 狀態失敗: {str(e)}")
            raise
        logger.info(f"班型模板 {template.name} 狀態改為 {pattern_status.name}")
        return template

    @classmethod
    def archive(cls, db: Session, template: PatternTemplate) -> PatternTemplate:
        return cls.set_status(db, template, PatternStatus.ARCHIVED)

    @classmethod
    def restore(cls, db: Session, template: PatternTemplate) -> PatternTemplate:
        return cls.set_status(db, template, PatternStatus.ACTIVE)

    @classmethod
    def update_template(cls, db: Session, template: PatternTemplate, data: PatternTemplateUpdate) -> PatternTemplate:
        """部分更新模板欄位；輪班週數改變時重新計算快取工時"""
        changes = data.model_dump(exclude_unset=True)
        # 只有說明與地點可以清空
        for field in ("name", "rotation_cycle_weeks", "default_publish_status",
                      "generation_window_weeks", "is_standard_template"):
            if field in changes and changes[field] is None:
                del changes[field]

        cycle = changes.get("rotation_cycle_weeks", template.rotation_cycle_weeks)
        cycle_changed = cycle != template.rotation_cycle_weeks
        if cycle_changed:
            longest = max((day.week_number for day in template.days), default=0)
            if longest > cycle:
                raise ValidationError(
                    f"week {longest} is outside a {cycle}-week rotation; update the pattern days first"
                )
            assigned = [a for a in template.assignments if a.rotation_start_week > cycle]
            if assigned:
                raise ValidationError(
                    f"{len(assigned)} assignment(s) start on a week outside a {cycle}-week rotation"
                )

        if "default_publish_status" in changes:
            changes["default_publish_status"] = int(changes["default_publish_status"])
        for field, value in changes.items():
            setattr(template, field, value)
        if cycle_changed:
            template.average_weekly_hours, template.total_rotation_hours = calculate_pattern_hours(
                template.days, cycle
            )
        template.updated_at = now()

        try:
            db.commit()
            db.refresh(template)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"更新班型模板 {template.id} 失敗: {str(e)}")
            raise

        logger.info(f"班型模板 {template.name} 已更新: {', '.join(changes) or '無變更'}")
        return template

    @classmethod
    def clone_template(cls, db: Session, template: PatternTemplate, name: Optional[str] = None) -> PatternTemplate:
        """複製模板與全部班型日；複本一律不是標準班型"""
        days = [PatternDayCreate.model_validate(day, from_attributes=True) for day in template.days]
        data = PatternTemplateCreate(
            name=name or f"{template.name} (Copy)",
            description=template.description,
            rotation_cycle_weeks=template.rotation_cycle_weeks,
            default_publish_status=template.default_publish_status,
            generation_window_weeks=template.generation_window_weeks,
            is_standard_template=False,
            location_id=template.location_id,
            days=days,
        )
        clone = cls.create_template(db, data)
        logger.info(f"已將班型模板 {template.name} 複製為 {clone.name}")
        return clone

    @classmethod
    def delete_template(cls, db: Session, template: PatternTemplate) -> None:
        """刪除模板；仍有指派（包含已結束的指派）時拒絕"""
        if template.assignments:
            active = sum(1 for a in template.assignments if a.assignment_status == int(AssignmentStatus.ACTIVE))
            raise ValidationError(
                f"Cannot delete pattern template with assignments ({active} active, "
                f"{len(template.assignments) - active} ended). Please end or remove all assignments first."
            )

        name = template.name
        try:
            db.delete(template)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"刪除班型模板 {template.id} 失敗: {str(e)}")
            raise
        logger.info(f"已刪除班型模板 {name}")
