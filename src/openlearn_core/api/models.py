"""
API Models

Pydantic request/response models for the storage, curriculum and user
lookup endpoints. Documents themselves are opaque JSON and pass through as
plain dicts; only the envelopes are typed here.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------
# Generic Results
# ---------------------------------------------------------------------

class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    """
    status: Literal["updated", "deleted", "created", "ok"]
    count: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Catalog Models
# ---------------------------------------------------------------------

class CatalogStats(BaseModel):
    total_content: int = Field(..., ge=0)
    categories: int = Field(..., ge=0)


class CatalogRegenerateResponse(BaseModel):
    status: Literal["ok"] = "ok"
    stats: CatalogStats


class CatalogTextResponse(BaseModel):
    text: str


# ---------------------------------------------------------------------
# Curriculum Models
# ---------------------------------------------------------------------

class CurriculumValidateRequest(BaseModel):
    """
    A generated record set awaiting resolution against the catalog.
    Must contain a `curriculum` object; other keys pass through.
    """
    candidate: Dict[str, Any]

    model_config = ConfigDict(extra="forbid")


class CurriculumSaveRequest(BaseModel):
    """
    Validate a generated record set and store it for an owner.
    """
    owner_id: str = Field(..., min_length=1, alias="userId")
    form_data: Dict[str, Any] = Field(default_factory=dict, alias="formData")
    candidate: Dict[str, Any]

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ProgressUpdateRequest(BaseModel):
    progress: Dict[str, Any]

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# User Lookup Models
# ---------------------------------------------------------------------

class BatchLookupRequest(BaseModel):
    owner_ids: List[str] = Field(..., alias="userIds", max_length=500)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
