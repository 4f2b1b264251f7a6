"""
Curriculum Routes

Endpoints for validating generated curricula against the catalog and for
managing an owner's saved curricula. Generation itself happens upstream;
these routes receive its output.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, Dict, List, Annotated

from .dependencies import get_curriculum_service
from .models import (
    CurriculumSaveRequest,
    CurriculumValidateRequest,
    OperationResult,
    ProgressUpdateRequest,
)
from ..services.curriculum_service import CurriculumService

router = APIRouter(prefix="/curriculum", tags=["curriculum"])

CurriculumDep = Annotated[CurriculumService, Depends(get_curriculum_service)]


@router.post("/validate", summary="Resolve a generated curriculum against the catalog")
async def validate_curriculum(req: CurriculumValidateRequest, curricula: CurriculumDep) -> Dict[str, Any]:
    return await curricula.validate(req.candidate)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Validate and save a generated curriculum",
)
async def save_curriculum(req: CurriculumSaveRequest, curricula: CurriculumDep) -> Dict[str, Any]:
    """
    Validate the candidate, then prepend it to the owner's curricula.

    A structurally invalid candidate is rejected before anything is written.
    """
    return await curricula.validate_and_save(req.owner_id, req.form_data, req.candidate)


@router.get("/user/{owner_id}", summary="List an owner's curricula, newest first")
async def list_curricula(owner_id: str, curricula: CurriculumDep) -> List[Dict[str, Any]]:
    return await curricula.list_curricula(owner_id)


@router.get("/{owner_id}/{curriculum_id}", summary="Get one curriculum")
async def get_curriculum(owner_id: str, curriculum_id: str, curricula: CurriculumDep) -> Dict[str, Any]:
    record = await curricula.get_curriculum(owner_id, curriculum_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Curriculum '{curriculum_id}' not found",
        )
    return record


@router.delete(
    "/{owner_id}/{curriculum_id}",
    response_model=OperationResult,
    summary="Delete a curriculum",
)
async def delete_curriculum(owner_id: str, curriculum_id: str, curricula: CurriculumDep) -> OperationResult:
    await curricula.delete_curriculum(owner_id, curriculum_id)
    return OperationResult(status="deleted", count=1)


@router.put("/{owner_id}/{curriculum_id}/progress", summary="Replace a curriculum's progress")
async def update_progress(
    owner_id: str,
    curriculum_id: str,
    req: ProgressUpdateRequest,
    curricula: CurriculumDep,
) -> Dict[str, Any]:
    return await curricula.update_progress(owner_id, curriculum_id, req.progress)
