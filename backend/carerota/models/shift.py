import uuid

from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.database import Base
from .enums import PublishStatus, AbsenceStatus


def _uuid() -> str:
    return str(uuid.uuid4())


class StaffMember(Base):
    __tablename__ = "staff_members"

    id = Column(String(36), primary_key=True, default=_uuid)
    full_name = Column(String(200), nullable=False)
    job_title = Column(String(100))
    # 員工預設所屬班表，供定時生成使用（子據點對應邏輯由外部處理）
    default_rota_id = Column(String(36), ForeignKey("rotas.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # 關聯
    default_rota = relationship("Rota")
    shifts = relationship("Shift", back_populates="staff_member")
    absences = relationship("StaffAbsence", back_populates="staff_member")
    pattern_assignments = relationship("StaffPatternAssignment", back_populates="staff_member")


class Rota(Base):
    __tablename__ = "rotas"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    sublocation_id = Column(String(36))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())

    # 關聯
    shifts = relationship("Shift", back_populates="rota")


class Shift(Base):
    __tablename__ = "shifts"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200))
    shift_date = Column(Date, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(Integer, default=int(PublishStatus.UNPUBLISHED))
    break_minutes = Column(Integer, default=0)
    rota_id = Column(String(36), ForeignKey("rotas.id"))
    staff_member_id = Column(String(36), ForeignKey("staff_members.id"), index=True)
    pattern_assignment_id = Column(String(36), ForeignKey("staff_pattern_assignments.id"))
    shift_reference_id = Column(String(36))
    shift_activity_id = Column(String(36))
    # 由班型生成時的回溯標記
    is_generated_from_pattern = Column(Boolean, default=False)
    pattern_week = Column(Integer)
    pattern_day_of_week = Column(Integer)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # 關聯
    rota = relationship("Rota", back_populates="shifts")
    staff_member = relationship("StaffMember", back_populates="shifts")
    pattern_assignment = relationship("StaffPatternAssignment")


class StaffAbsence(Base):
    """員工請假紀錄，只有核准（APPROVED）的假別會阻擋班次生成"""
    __tablename__ = "staff_absences"

    id = Column(String(36), primary_key=True, default=_uuid)
    staff_member_id = Column(String(36), ForeignKey("staff_members.id"), nullable=False, index=True)
    absence_start = Column(Date, nullable=False)
    absence_end = Column(Date, nullable=False)
    absence_status = Column(Integer, default=int(AbsenceStatus.PENDING))
    absence_type_name = Column(String(100))
    created_at = Column(DateTime, default=func.now())

    # 關聯
    staff_member = relationship("StaffMember", back_populates="absences")
