import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import CareRotaError
from ..schemas.generation import (
    BatchGenerationResult,
    BatchRunRequest,
    Conflict,
    ConflictQuery,
    GenerateShiftsRequest,
    GenerationLog,
    GenerationResult,
)
from ..schemas.pattern import StaffPatternAssignment
from ..services.pattern_generation_service import PatternGenerationService, load_batch_items
from ..services.sql_store import SqlAlchemyShiftStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/pattern-generation",
    tags=["pattern generation"]
)


def get_generation_service(db: Session = Depends(get_db)) -> PatternGenerationService:
    return PatternGenerationService(SqlAlchemyShiftStore(db))


def _check_range(start_date: date, end_date: date):
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="結束日期不可早於開始日期"
        )


@router.post("/generate", response_model=GenerationResult)
def generate_shifts(
    request: GenerateShiftsRequest,
    service: PatternGenerationService = Depends(get_generation_service)
):
    """
    依班型指派生成指定日期區間的班次
    """
    _check_range(request.start_date, request.end_date)
    return service.generate_shifts_from_pattern(
        request.assignment_id,
        request.start_date,
        request.end_date,
        request.rota_id,
        conflict_resolutions=request.conflict_resolutions,
        dry_run=request.dry_run,
    )


@router.post("/preview", response_model=GenerationResult)
def preview_generation(
    request: GenerateShiftsRequest,
    service: PatternGenerationService = Depends(get_generation_service)
):
    """
    試算生成結果，不寫入任何資料
    """
    _check_range(request.start_date, request.end_date)
    return service.generate_shifts_from_pattern(
        request.assignment_id,
        request.start_date,
        request.end_date,
        request.rota_id,
        conflict_resolutions=request.conflict_resolutions,
        dry_run=True,
    )


@router.post("/conflicts", response_model=List[Conflict])
def detect_conflicts(
    query: ConflictQuery,
    service: PatternGenerationService = Depends(get_generation_service)
):
    _check_range(query.start_date, query.end_date)
    try:
        return service.detect_conflicts(
            query.staff_member_id, query.start_date, query.end_date, query.exclude_assignment_id
        )
    except CareRotaError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"衝突檢查失敗: {str(e)}"
        )


@router.post("/batch", response_model=BatchGenerationResult)
def run_batch_generation(
    request: BatchRunRequest,
    service: PatternGenerationService = Depends(get_generation_service)
):
    """
    對需要生成的指派執行批次生成；未指定指派時處理所有進行中的指派
    """
    try:
        items = load_batch_items(service.store, request.assignment_ids)
    except CareRotaError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"讀取批次生成資料失敗: {str(e)}"
        )
    logger.info(f"開始批次生成，共 {len(items)} 個指派")
    return service.run_batch(items, dry_run=request.dry_run, delay_ms=request.delay_ms)


@router.get("/logs/{assignment_id}", response_model=List[GenerationLog])
def get_generation_logs(
    assignment_id: str,
    service: PatternGenerationService = Depends(get_generation_service)
):
    return service.store.list_generation_logs(assignment_id)


@router.get("/active-assignment", response_model=StaffPatternAssignment)
def get_active_assignment(
    staff_member_id: str,
    target_date: date,
    service: PatternGenerationService = Depends(get_generation_service)
):
    """
    查詢員工在指定日期實際生效（優先權最高）的班型指派
    """
    assignment = service.preview_active_assignment(staff_member_id, target_date)
    if not assignment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="該員工在此日期沒有生效的班型指派"
        )
    return assignment
