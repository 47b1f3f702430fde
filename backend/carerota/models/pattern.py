import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Time, Boolean, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.database import Base
from .enums import PublishStatus, PatternStatus, AssignmentStatus, GenerationType


def _uuid() -> str:
    return str(uuid.uuid4())


class PatternTemplate(Base):
    """
    班型模板：可重複使用的多週輪班定義
    """
    __tablename__ = "shift_pattern_templates"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    rotation_cycle_weeks = Column(Integer, nullable=False, default=1)
    # 由班型日推算並快取，編輯班型日時重新計算
    average_weekly_hours = Column(Float)
    total_rotation_hours = Column(Float)
    is_standard_template = Column(Boolean, default=False)
    default_publish_status = Column(Integer, default=int(PublishStatus.UNPUBLISHED))
    generation_window_weeks = Column(Integer, default=2)
    pattern_status = Column(Integer, default=int(PatternStatus.ACTIVE))
    location_id = Column(String(36))
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # 關聯
    days = relationship("PatternDay", back_populates="template", cascade="all, delete-orphan",
                        order_by="PatternDay.week_number")
    assignments = relationship("StaffPatternAssignment", back_populates="template")


class PatternDay(Base):
    """
    班型日：模板中某一週某一天的班次定義
    """
    __tablename__ = "shift_pattern_days"

    id = Column(String(36), primary_key=True, default=_uuid)
    template_id = Column(String(36), ForeignKey("shift_pattern_templates.id"), nullable=False)
    week_number = Column(Integer, nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 1=星期一 … 7=星期日
    is_rest_day = Column(Boolean, default=False)
    start_time = Column(Time)
    end_time = Column(Time)
    is_overnight = Column(Boolean, default=False)
    break_minutes = Column(Integer, default=0)
    shift_reference_id = Column(String(36))
    shift_activity_id = Column(String(36))
    display_order = Column(Integer)

    # 唯一約束
    __table_args__ = (
        UniqueConstraint('template_id', 'week_number', 'day_of_week'),
    )

    # 關聯
    template = relationship("PatternTemplate", back_populates="days")


class StaffPatternAssignment(Base):
    """
    人員班型指派：將一位員工綁定到一個班型模板
    """
    __tablename__ = "staff_pattern_assignments"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200))
    staff_member_id = Column(String(36), ForeignKey("staff_members.id"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("shift_pattern_templates.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    rotation_start_week = Column(Integer, default=1)
    priority = Column(Integer, default=1)  # 數字越小優先
    applies_to_days = Column(String(200))  # JSON 陣列，例如 '["Monday","Tuesday"]'
    override_publish_status = Column(Boolean, default=False)
    publish_status = Column(Integer)
    last_generated_date = Column(Date)
    assignment_status = Column(Integer, default=int(AssignmentStatus.ACTIVE))
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # 關聯
    template = relationship("PatternTemplate", back_populates="assignments")
    staff_member = relationship("StaffMember", back_populates="pattern_assignments")
    generation_logs = relationship("ShiftGenerationLog", back_populates="assignment")


class ShiftGenerationLog(Base):
    """班次生成紀錄（摘要），每次非預覽生成寫入一筆"""
    __tablename__ = "shift_generation_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200))
    assignment_id = Column(String(36), ForeignKey("staff_pattern_assignments.id"), index=True)
    generation_date = Column(DateTime, default=func.now())
    period_start = Column(Date)
    period_end = Column(Date)
    shifts_generated = Column(Integer, default=0)
    conflicts_detected = Column(Integer, default=0)
    conflict_details = Column(Text)  # JSON，僅保留前 N 筆
    generation_type = Column(Integer, default=int(GenerationType.MANUAL))

    # 關聯
    assignment = relationship("StaffPatternAssignment", back_populates="generation_logs")
