"""
Error Taxonomy & Global Error Handling

This module defines the exception hierarchy shared by the document store,
the catalog and the matching engine, plus the application-wide exception
handlers registered on the FastAPI app.

Design Goals
------------
- One base class (`OpenLearnError`) for every expected failure
- Absence and corruption share a type so callers handle them identically
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("openlearn.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class OpenLearnError(RuntimeError):
    """Base class for all expected application failures."""

    status_code: int = 500
    error_code: str = "internal_error"


class DocumentNotFoundError(OpenLearnError):
    """Raised when no document exists at a path."""

    status_code = 404
    error_code = "not_found"

    def __init__(self, path: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"No document at '{path}'")
        self.path = path


class CorruptPayloadError(DocumentNotFoundError):
    """
    Raised when the stored bytes at a path are empty or not valid JSON.

    Subclasses `DocumentNotFoundError` so that callers treat a corrupt
    payload exactly like a missing one. The blob's current revision is kept
    so the path can still be overwritten.
    """

    error_code = "corrupt_payload"

    def __init__(self, path: str, revision: Optional[str], reason: str) -> None:
        super().__init__(path, f"Document at '{path}' is unreadable: {reason}")
        self.revision = revision
        self.reason = reason


class RecordNotFoundError(OpenLearnError):
    """Raised when a list document has no element matching a predicate."""

    status_code = 404
    error_code = "record_not_found"


class RevisionConflictError(OpenLearnError):
    """Raised when the backing store rejects a write because its revision is stale."""

    status_code = 409
    error_code = "conflict"

    def __init__(self, path: str, attempts: int = 1) -> None:
        super().__init__(
            f"Revision conflict writing '{path}' after {attempts} attempt(s)"
        )
        self.path = path
        self.attempts = attempts


class BlobTransportError(OpenLearnError):
    """Raised when the backing repository is unreachable or answers with an error."""

    status_code = 502
    error_code = "storage_unavailable"


class ValidationInputError(OpenLearnError, ValueError):
    """Raised when a candidate curriculum is structurally invalid."""

    status_code = 422
    error_code = "invalid_curriculum"


class InvalidOwnerError(OpenLearnError, ValueError):
    """Raised when an owner id is missing or could escape its storage path."""

    status_code = 400
    error_code = "invalid_owner"


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def openlearn_error_handler(
    request: Request,
    exc: OpenLearnError,
) -> JSONResponse:
    """
    Map an expected application error to its HTTP status.

    The client receives the error code and a one-line summary; transport
    failures are summarized generically since their message may carry
    upstream response details.
    """
    if isinstance(exc, BlobTransportError):
        logger.error(
            "Storage backend failure during request: %s %s (%s)",
            request.method,
            request.url.path,
            exc,
        )
        detail = "Storage backend unavailable"
    else:
        logger.info(
            "Request %s %s failed: %s",
            request.method,
            request.url.path,
            exc,
        )
        detail = str(exc)

    payload: Dict[str, Any] = {
        "error": exc.error_code,
        "detail": detail,
    }

    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
