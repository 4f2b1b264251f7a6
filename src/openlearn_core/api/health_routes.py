from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_github_client
from ..config import settings
from ..github.api_client import GitHubContentsClient

router = APIRouter(tags=["health"])

@router.get("/health")
def health():
    return {
        "status": "ok",
        "repository": f"{settings.github_owner}/{settings.github_repo}@{settings.github_branch}",
    }

@router.get("/health/storage")
async def storage_health(client: Annotated[GitHubContentsClient, Depends(get_github_client)]):
    checks = await client.check_access()
    ok = str(checks["auth"]).startswith("Authenticated") and str(checks["repo_access"]).startswith("Access OK")
    return {"status": "ok" if ok else "error", "checks": checks}
