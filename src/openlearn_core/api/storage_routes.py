"""
Storage Routes

Read/write endpoints for the global content list, owner profiles and the
catalog snapshot. Every write goes through the document store's optimistic
concurrency primitives; adding content schedules a catalog rebuild after
the response is sent.
"""

import logging
from typing import Any, Dict, List, Annotated

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, status
from pydantic import ValidationError

from .dependencies import (
    get_catalog_service,
    get_content_service,
    get_profile_service,
)
from .models import (
    CatalogRegenerateResponse,
    CatalogStats,
    CatalogTextResponse,
    OperationResult,
)
from ..catalog.models import ContentItem
from ..services.catalog_service import CatalogService
from ..services.content_service import ContentService
from ..services.profile_service import ProfileService

logger = logging.getLogger("openlearn.api.storage")

router = APIRouter(prefix="/storage", tags=["storage"])


# ---------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------

async def _regenerate_in_background(catalog: CatalogService) -> None:
    """
    Rebuild the catalog after a content change.

    Runs after the response has been sent, so failures can only be logged;
    the next reader regenerates a missing snapshot on demand.
    """
    try:
        await catalog.regenerate()
    except Exception:
        logger.exception("Background catalog regeneration failed")


# ---------------------------------------------------------------------
# Global Content
# ---------------------------------------------------------------------

@router.get("/global", summary="List global content")
async def list_global_content(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> List[Any]:
    return await catalog.list_contents()


@router.post(
    "/global",
    response_model=OperationResult,
    summary="Add a content item to the global list",
)
async def add_global_content(
    item: Annotated[Dict[str, Any], Body()],
    background_tasks: BackgroundTasks,
    contents: Annotated[ContentService, Depends(get_content_service)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> OperationResult:
    """
    Prepend a content item and schedule a catalog rebuild.
    """
    try:
        ContentItem.model_validate(item)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid content item: {exc.error_count()} validation error(s)",
        ) from None

    updated = await contents.add_content(item)
    background_tasks.add_task(_regenerate_in_background, catalog)

    return OperationResult(status="created", count=len(updated))


# ---------------------------------------------------------------------
# Owner Profiles
# ---------------------------------------------------------------------

@router.get("/user/{owner_id}", summary="Read an owner's profile (created if missing)")
async def get_owner_profile(
    owner_id: str,
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
) -> Dict[str, Any]:
    return await profiles.get_profile(owner_id)


@router.post(
    "/user/{owner_id}",
    response_model=OperationResult,
    summary="Merge-update an owner's profile",
)
async def update_owner_profile(
    owner_id: str,
    changes: Annotated[Dict[str, Any], Body()],
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
) -> OperationResult:
    profile = await profiles.update_profile(owner_id, changes)
    return OperationResult(status="updated", details=profile)


# ---------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------

@router.get("/catalog", summary="Current catalog snapshot")
async def get_catalog(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> Dict[str, Any]:
    snapshot = await catalog.get_snapshot()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Catalog not found. Use POST /storage/catalog/regenerate to create it.",
        )
    return snapshot.to_document()


@router.get(
    "/catalog/text",
    response_model=CatalogTextResponse,
    summary="Catalog rendered as prompt text",
)
async def get_catalog_text(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CatalogTextResponse:
    return CatalogTextResponse(text=await catalog.render())


@router.post(
    "/catalog/regenerate",
    response_model=CatalogRegenerateResponse,
    summary="Rebuild the catalog snapshot now",
)
async def regenerate_catalog(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CatalogRegenerateResponse:
    snapshot = await catalog.regenerate()
    return CatalogRegenerateResponse(
        stats=CatalogStats(
            total_content=snapshot.total_available,
            categories=len(snapshot.categories),
        )
    )
