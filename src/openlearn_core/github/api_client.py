"""
GitHub Contents API Client

This module provides an async client for reading and writing single files
in a GitHub repository through the REST "contents" endpoints. It is the only
component that knows about HTTP, base64 and GitHub status codes; everything
above it sees raw bytes and opaque revision tokens (blob SHAs).

Contract
--------
- `get_content(path)` returns the file's bytes and SHA, or raises
  `BlobNotFoundError`.
- `put_content(path, data, message, revision)` creates the file when
  `revision` is None and updates it otherwise, returning the new SHA.
- A stale or missing SHA on update raises `RevisionConflictError`.
- Every other failure (network, timeout, unexpected status) raises
  `BlobTransportError`; nothing is retried here.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..config import RepositoryConfig
from ..core.errors import BlobTransportError, RevisionConflictError

logger = logging.getLogger("openlearn.github")

GITHUB_API_VERSION = "2022-11-28"
JSON_MEDIA_TYPE = "application/vnd.github+json"
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

class BlobNotFoundError(LookupError):
    """Raised when no file exists at the requested path."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No file at '{path}'")
        self.path = path


@dataclass(frozen=True)
class BlobContent:
    """Raw file bytes plus the revision token needed for the next write."""
    data: bytes
    revision: str


# ---------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------

class GitHubContentsClient:
    """
    Async client for one repository/branch of the GitHub contents API.
    """

    def __init__(
        self,
        config: RepositoryConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Parameters
        ----------
        config : RepositoryConfig
            Repository coordinates and credentials.

        transport : Optional[httpx.AsyncBaseTransport]
            Testing override for the HTTP transport.
        """
        self._config = config
        self._transport = transport

    @property
    def config(self) -> RepositoryConfig:
        return self._config

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> Dict[str, str]:
        headers = {
            "Accept": accept,
            "User-Agent": self._config.user_agent,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._config.token is not None:
            headers["Authorization"] = f"Bearer {self._config.token.get_secret_value()}"
        return headers

    def _contents_url(self, path: str) -> str:
        return (
            f"{self._config.api_base_url}/repos/"
            f"{self._config.owner}/{self._config.repo}/contents/"
            f"{quote(path.strip('/'))}"
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        path: str,
        accept: str = JSON_MEDIA_TYPE,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(accept),
                )
        except httpx.HTTPError as exc:
            logger.error("GitHub %s %s failed: %s", method, path, type(exc).__name__)
            raise BlobTransportError(
                f"GitHub {method} '{path}' failed: {type(exc).__name__}"
            ) from exc

    @staticmethod
    def _unexpected(method: str, path: str, resp: httpx.Response) -> BlobTransportError:
        logger.error(
            "GitHub %s %s returned HTTP %s: %s",
            method,
            path,
            resp.status_code,
            resp.text[:200],
        )
        return BlobTransportError(
            f"GitHub {method} '{path}' returned HTTP {resp.status_code}"
        )

    @staticmethod
    def _json_body(method: str, path: str, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            logger.error("GitHub %s %s returned a non-JSON body", method, path)
            raise BlobTransportError(
                f"GitHub {method} '{path}' returned a non-JSON body"
            ) from None

    @staticmethod
    def _is_sha_rejection(resp: httpx.Response) -> bool:
        """
        True when a 422 is about the `sha` precondition rather than the
        request itself (bad path, content or branch).
        """
        try:
            body = resp.json()
        except ValueError:
            return False
        message = body.get("message", "") if isinstance(body, dict) else ""
        return "sha" in str(message).lower()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_content(self, path: str, ref: Optional[str] = None) -> BlobContent:
        """
        Fetch a file's bytes and blob SHA.

        Parameters
        ----------
        path : str
            Repository-relative file path (e.g. 'data/global/contents.json').

        ref : Optional[str]
            Branch, tag or commit to read from. Defaults to the configured branch.

        Returns
        -------
        BlobContent
            Decoded bytes and the revision token.

        Raises
        ------
        BlobNotFoundError
            If the path does not exist on the ref.

        BlobTransportError
            If the path is a directory or the request fails.
        """
        url = self._contents_url(path)
        params = {"ref": ref or self._config.branch}

        resp = await self._send("GET", url, path=path, params=params)
        if resp.status_code == 404:
            raise BlobNotFoundError(path)
        if resp.status_code != 200:
            raise self._unexpected("GET", path, resp)

        meta = self._json_body("GET", path, resp)
        if not isinstance(meta, dict) or meta.get("type") != "file":
            raise BlobTransportError(f"'{path}' is not a file")

        sha = meta.get("sha")
        if not isinstance(sha, str) or not sha:
            raise BlobTransportError(f"GitHub GET '{path}' returned no blob SHA")
        encoding = meta.get("encoding")

        if encoding == "base64":
            try:
                data = base64.b64decode(meta.get("content") or "")
            except (TypeError, ValueError) as exc:
                raise BlobTransportError(f"GitHub GET '{path}' returned undecodable content") from exc
            return BlobContent(data=data, revision=sha)

        # Files above the inline size limit come back with encoding "none";
        # fetch the bytes again with the raw media type.
        logger.debug("Fetching %s (%s bytes) with raw media type", path, meta.get("size"))
        raw = await self._send("GET", url, path=path, accept=RAW_MEDIA_TYPE, params=params)
        if raw.status_code == 404:
            raise BlobNotFoundError(path)
        if raw.status_code != 200:
            raise self._unexpected("GET", path, raw)

        return BlobContent(data=raw.content, revision=sha)

    async def put_content(
        self,
        path: str,
        data: bytes,
        message: str,
        revision: Optional[str] = None,
    ) -> str:
        """
        Create or replace a file with a single commit.

        Parameters
        ----------
        path : str
            Repository-relative file path.

        data : bytes
            Complete new file contents.

        message : str
            Commit message.

        revision : Optional[str]
            Blob SHA of the version being replaced. Omit to create.

        Returns
        -------
        str
            Blob SHA of the written file.

        Raises
        ------
        RevisionConflictError
            If GitHub rejects the SHA as stale, or it was omitted for an
            existing file.

        BlobTransportError
            For any other failure.
        """
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self._config.branch,
        }
        if revision:
            body["sha"] = revision

        resp = await self._send("PUT", self._contents_url(path), path=path, json=body)

        # 409: sha does not match; 422 naming the sha: missing for an existing file.
        # Any other 422 is a malformed request and will never succeed on retry.
        if resp.status_code == 409 or (resp.status_code == 422 and self._is_sha_rejection(resp)):
            logger.warning(
                "GitHub rejected write to %s (HTTP %s, revision=%s)",
                path,
                resp.status_code,
                revision,
            )
            raise RevisionConflictError(path)
        if resp.status_code not in (200, 201):
            raise self._unexpected("PUT", path, resp)

        body = self._json_body("PUT", path, resp)
        content = body.get("content") if isinstance(body, dict) else None
        new_revision = content.get("sha") if isinstance(content, dict) else None
        if not isinstance(new_revision, str) or not new_revision:
            raise BlobTransportError(f"GitHub PUT '{path}' returned no blob SHA")

        logger.info("Saved %s to GitHub (revision %s)", path, new_revision[:7])
        return new_revision

    async def check_access(self) -> Dict[str, Any]:
        """
        Report whether the token authenticates and the repository is reachable.

        Failures are reported in the result rather than raised.
        """
        checks: Dict[str, Any] = {
            "config": {
                "has_token": self._config.token is not None,
                "owner": self._config.owner,
                "repo": self._config.repo,
                "branch": self._config.branch,
            },
            "auth": None,
            "repo_access": None,
        }

        try:
            resp = await self._send("GET", f"{self._config.api_base_url}/user", path="/user")
            if resp.status_code == 200:
                user = self._json_body("GET", "/user", resp)
                login = user.get("login") if isinstance(user, dict) else None
                checks["auth"] = f"Authenticated as {login}"
            else:
                checks["auth"] = f"Failed: HTTP {resp.status_code}"
        except BlobTransportError as exc:
            checks["auth"] = f"Failed: {exc}"

        if not (self._config.owner and self._config.repo):
            checks["repo_access"] = "Skipped: owner or repo missing"
            return checks

        repo_path = f"/repos/{self._config.owner}/{self._config.repo}"
        try:
            resp = await self._send("GET", f"{self._config.api_base_url}{repo_path}", path=repo_path)
            if resp.status_code == 200:
                data = self._json_body("GET", repo_path, resp)
                if not isinstance(data, dict):
                    data = {}
                visibility = "private" if data.get("private") else "public"
                checks["repo_access"] = f"Access OK: {data.get('full_name')} ({visibility})"
            else:
                checks["repo_access"] = f"Failed: HTTP {resp.status_code}"
        except BlobTransportError as exc:
            checks["repo_access"] = f"Failed: {exc}"

        return checks
