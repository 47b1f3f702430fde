import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import ValidationError
from ..models.enums import PatternStatus
from ..schemas.pattern import (
    PatternDaysReplace,
    PatternTemplate,
    PatternTemplateClone,
    PatternTemplateCreate,
    PatternTemplateDetail,
    PatternTemplateUpdate,
)
from ..services.pattern_template_service import PatternTemplateService
from ..services.standard_patterns import PATTERN_CATEGORIES, seed_standard_patterns

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/patterns",
    tags=["pattern templates"]
)


def _get_template_or_404(db: Session, template_id: str):
    template = PatternTemplateService.get_template(db, template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="找不到指定的班型模板"
        )
    return template


@router.get("", response_model=List[PatternTemplate])
def list_pattern_templates(
    db: Session = Depends(get_db),
    pattern_status: Optional[PatternStatus] = None,
    standard_only: Optional[bool] = None,
    location_id: Optional[str] = None
):
    return PatternTemplateService.list_templates(db, pattern_status, standard_only, location_id)


@router.post("", response_model=PatternTemplateDetail, status_code=status.HTTP_201_CREATED)
def create_pattern_template(
    data: PatternTemplateCreate,
    db: Session = Depends(get_db)
):
    try:
        return PatternTemplateService.create_template(db, data)
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"建立班型模板時發生錯誤: {str(e)}"
        )


@router.get("/standard/categories", response_model=Dict[str, List[str]])
def get_standard_pattern_categories():
    return PATTERN_CATEGORIES


@router.post("/standard/seed", response_model=Dict[str, List[str]])
def seed_standard_pattern_templates(
    db: Session = Depends(get_db),
    location_id: Optional[str] = None
):
    """
    建立尚未存在的標準班型
    """
    result = seed_standard_patterns(db, location_id)
    return {"created": result.created, "skipped": result.skipped, "errors": result.errors}


@router.get("/{template_id}", response_model=PatternTemplateDetail)
def get_pattern_template(
    template_id: str,
    db: Session = Depends(get_db)
):
    return _get_template_or_404(db, template_id)


@router.put("/{template_id}/days", response_model=PatternTemplateDetail)
def replace_pattern_days(
    template_id: str,
    data: PatternDaysReplace,
    db: Session = Depends(get_db)
):
    """
    取代模板的全部班型日，並重新計算工時
    """
    template = _get_template_or_404(db, template_id)
    try:
        return PatternTemplateService.replace_pattern_days(db, template, data.days)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"更新班型日時發生錯誤: {str(e)}"
        )


@router.post("/{template_id}/archive", response_model=PatternTemplate)
def archive_pattern_template(
    template_id: str,
    db: Session = Depends(get_db)
):
    template = _get_template_or_404(db, template_id)
    return PatternTemplateService.archive(db, template)


@router.post("/{template_id}/restore", response_model=PatternTemplate)
def restore_pattern_template(
    template_id: str,
    db: Session = Depends(get_db)
):
    template = _get_template_or_404(db, template_id)
    return PatternTemplateService.restore(db, template)


@router.patch("/{template_id}", response_model=PatternTemplateDetail)
def update_pattern_template(
    template_id: str,
    data: PatternTemplateUpdate,
    db: Session = Depends(get_db)
):
    """
    部分更新模板欄位；輪班週數改變時重新計算工時
    """
    template = _get_template_or_404(db, template_id)
    try:
        return PatternTemplateService.update_template(db, template, data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"更新班型模板時發生錯誤: {str(e)}"
        )


@router.post("/{template_id}/clone", response_model=PatternTemplateDetail, status_code=status.HTTP_201_CREATED)
def clone_pattern_template(
    template_id: str,
    data: PatternTemplateClone,
    db: Session = Depends(get_db)
):
    template = _get_template_or_404(db, template_id)
    try:
        return PatternTemplateService.clone_template(db, template, data.name)
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"複製班型模板時發生錯誤: {str(e)}"
        )


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pattern_template(
    template_id: str,
    db: Session = Depends(get_db)
):
    template = _get_template_or_404(db, template_id)
    try:
        PatternTemplateService.delete_template(db, template)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"刪除班型模板時發生錯誤: {str(e)}"
        )
