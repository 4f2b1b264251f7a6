"""
User Lookup Routes

Resolves many owner ids to their profiles in one call, for list views.
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict, Optional, Annotated

from .dependencies import get_profile_service
from .models import BatchLookupRequest
from ..services.profile_service import ProfileService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/batch-lookup", summary="Look up many profiles at once")
async def batch_lookup(
    req: BatchLookupRequest,
    profiles: Annotated[ProfileService, Depends(get_profile_service)],
) -> Dict[str, Optional[Dict[str, Any]]]:
    """
    Map each requested owner id to its profile, or null when the profile is
    missing or could not be read. Missing profiles are not created.
    """
    return await profiles.batch_lookup(req.owner_ids)
