import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import ValidationError
from ..models.pattern import StaffPatternAssignment as AssignmentRow
from ..schemas.generation import GenerationWindow, RegenerationPlan
from ..schemas.pattern import (
    AssignmentEnd,
    BulkAssignmentRequest,
    BulkAssignmentResult,
    PatternTemplate,
    StaffPatternAssignment,
    StaffPatternAssignmentCreate,
    StaffPatternAssignmentUpdate,
)
from ..services.assignment_service import AssignmentService
from ..services.generation_window import (
    calculate_generation_window,
    days_until_generation_needed,
    estimate_shifts_to_generate,
    format_generation_window,
    is_generation_needed,
)
from ..services.pattern_generation_service import (
    get_shifts_affected_by_pattern_change,
    plan_pattern_change_regeneration,
)
from ..services.sql_store import SqlAlchemyShiftStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/pattern-assignments",
    tags=["pattern assignments"]
)


class GenerationStatus(BaseModel):
    assignment_id: str
    is_generation_needed: bool
    days_until_generation_needed: int
    window: GenerationWindow
    window_label: str
    estimated_shifts: int


def _get_assignment_or_404(db: Session, assignment_id: str):
    assignment = AssignmentService.get_assignment(db, assignment_id)
    if not assignment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="找不到指定的班型指派"
        )
    return assignment


@router.get("", response_model=List[StaffPatternAssignment])
def list_assignments(
    staff_member_id: Optional[str] = None,
    template_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    query = db.query(AssignmentRow)
    if staff_member_id:
        query = query.filter(AssignmentRow.staff_member_id == staff_member_id)
    if template_id:
        query = query.filter(AssignmentRow.template_id == template_id)
    return query.order_by(AssignmentRow.priority, AssignmentRow.start_date).all()


@router.post("", response_model=StaffPatternAssignment, status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: StaffPatternAssignmentCreate,
    db: Session = Depends(get_db)
):
    try:
        return AssignmentService.create_assignment(db, data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"建立班型指派時發生錯誤: {str(e)}"
        )


@router.post("/bulk", response_model=BulkAssignmentResult)
def bulk_assign(
    request: BulkAssignmentRequest,
    db: Session = Depends(get_db)
):
    """
    將同一班型指派給多位員工（起始週次可相同、交錯或自訂）
    """
    return AssignmentService.bulk_assign_pattern(db, request)


@router.patch("/{assignment_id}", response_model=StaffPatternAssignment)
def update_assignment(
    assignment_id: str,
    data: StaffPatternAssignmentUpdate,
    db: Session = Depends(get_db)
):
    assignment = _get_assignment_or_404(db, assignment_id)
    try:
        return AssignmentService.update_assignment(db, assignment, data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"更新班型指派時發生錯誤: {str(e)}"
        )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: str,
    db: Session = Depends(get_db)
):
    """
    刪除指派；已生成的班次保留為一般班次
    """
    assignment = _get_assignment_or_404(db, assignment_id)
    try:
        AssignmentService.delete_assignment(db, assignment)
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"刪除班型指派時發生錯誤: {str(e)}"
        )


@router.post("/{assignment_id}/end", response_model=StaffPatternAssignment)
def end_assignment(
    assignment_id: str,
    data: AssignmentEnd,
    db: Session = Depends(get_db)
):
    assignment = _get_assignment_or_404(db, assignment_id)
    try:
        return AssignmentService.end_assignment(db, assignment, data.end_date)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/{assignment_id}/generation-status", response_model=GenerationStatus)
def get_generation_status(
    assignment_id: str,
    db: Session = Depends(get_db)
):
    """
    指派是否需要生成、下一個生成區間與預估班次數
    """
    row = _get_assignment_or_404(db, assignment_id)
    assignment = StaffPatternAssignment.model_validate(row)
    template = PatternTemplate.model_validate(row.template)

    window = calculate_generation_window(assignment, template)
    return GenerationStatus(
        assignment_id=assignment.id,
        is_generation_needed=is_generation_needed(assignment, template),
        days_until_generation_needed=days_until_generation_needed(assignment, template),
        window=window,
        window_label=format_generation_window(window),
        estimated_shifts=estimate_shifts_to_generate(
            row.template.days, template.rotation_cycle_weeks, window.days_to_generate
        ),
    )


@router.get("/{assignment_id}/pattern-change-impact", response_model=RegenerationPlan)
def get_pattern_change_impact(
    assignment_id: str,
    effective_date: date,
    db: Session = Depends(get_db)
):
    """
    班型變更後需要取代的既有班次（只計算，不執行）
    """
    row = _get_assignment_or_404(db, assignment_id)
    assignment = StaffPatternAssignment.model_validate(row)

    # 已生成的班次最晚到最後生成日；未生成過則查詢一個生成區間
    last_date = assignment.last_generated_date or effective_date + timedelta(weeks=row.template.generation_window_weeks)
    store = SqlAlchemyShiftStore(db)
    shifts = [
        s for s in store.query_shifts(assignment.staff_member_id, effective_date, max(last_date, effective_date))
        if s.pattern_assignment_id == assignment.id
    ]
    affected = get_shifts_affected_by_pattern_change(shifts, effective_date)
    return plan_pattern_change_regeneration([assignment], affected, effective_date)
