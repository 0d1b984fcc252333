"""
Versioned file stores.

A store holds text files addressed by path. Every read returns an opaque
version token, and every write must present the token it read
(compare-and-swap). The GitHub contents API provides this natively through
blob SHAs; the in-memory store reproduces the same contract for local runs
and tests.

Public API
----------
RemoteFileStore.read(path)                                   -> VersionedFile | None
RemoteFileStore.write(path, content, expected_version, msg)  -> new version
RemoteFileStore.ensure_initialized(path, default_content)    -> VersionedFile
"""
from __future__ import annotations

import abc
import base64
import hashlib
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from culture_tracker.core.errors import (
    AuthFailureError,
    StoreError,
    TransientStoreError,
    VersionConflictError,
)
from culture_tracker.models.record import VersionedFile

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/vnd.github+json"
RAW_MEDIA_TYPE = "application/vnd.github.raw"


class RemoteFileStore(abc.ABC):

    @abc.abstractmethod
    def read(self, path: str) -> Optional[VersionedFile]:
        """Return the current content and version, or None when the file does not exist."""

    @abc.abstractmethod
    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        """
        Replace `path` with `content` if it is still at `expected_version`.
        `expected_version=None` creates the file and fails if it already exists.
        Returns the new version token.
        """

    def ensure_initialized(self, path: str, default_content: str) -> VersionedFile:
        """
        Read `path`, creating it with `default_content` if absent.

        An existing file is returned untouched, even when empty. If another
        caller creates the file first, their version is returned instead of
        writing a second initial revision.
        """
        current = self.read(path)
        if current is not None:
            return current
        try:
            version = self.write(path, default_content, None, f"Initialize {path}")
        except VersionConflictError:
            logger.info("%s was initialized concurrently; using the existing file", path)
            current = self.read(path)
            if current is None:
                raise StoreError(f"{path} vanished during initialization.", path=path)
            return current
        logger.info("Initialized %s", path)
        return VersionedFile(content=default_content, version=version)


# ---------------------------------------------------------------------------
# GitHub contents API
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GitHubConfig:
    token: str
    owner: str
    repo: str
    branch: Optional[str] = None
    api_url: str = "https://api.github.com"
    timeout: float = 10.0
    user_agent: str = "culture-tracker"


class GitHubFileStore(RemoteFileStore):
    """Files in a GitHub repository; the blob SHA is the version token."""

    def __init__(self, config: GitHubConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        c = self.config
        return f"{c.api_url}/repos/{c.owner}/{c.repo}/contents/{quote(path.lstrip('/'), safe='/')}"

    def _blob_url(self, sha: str) -> str:
        c = self.config
        return f"{c.api_url}/repos/{c.owner}/{c.repo}/git/blobs/{sha}"

    def _request(
        self,
        method: str,
        path: str,
        url: Optional[str] = None,
        accept: str = JSON_MEDIA_TYPE,
        **kwargs,
    ) -> requests.Response:
        headers = {
            "Authorization": f"token {self.config.token}",
            "Accept": accept,
            "User-Agent": self.config.user_agent,
        }
        try:
            return self.session.request(
                method,
                url or self._url(path),
                headers=headers,
                timeout=self.config.timeout,
                **kwargs,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientStoreError(f"GitHub {method} {path} failed: {exc}", path=path) from exc
        except requests.RequestException as exc:
            raise StoreError(f"GitHub {method} {path} failed: {exc}", path=path) from exc

    def _raise_for_status(self, resp: requests.Response, method: str, path: str) -> None:
        code = resp.status_code
        if code < 400:
            return
        text = resp.text or ""
        message = f"GitHub {method} {path} failed: {code} {text[:200]}".rstrip()

        if code == 401:
            raise AuthFailureError(message, path=path, upstream_status=code)
        if code == 403:
            if resp.headers.get("X-RateLimit-Remaining") == "0" or "rate limit" in text.lower():
                raise TransientStoreError(message, path=path, upstream_status=code)
            raise AuthFailureError(message, path=path, upstream_status=code)
        if code == 429 or code >= 500:
            raise TransientStoreError(message, path=path, upstream_status=code)
        if code == 409 or (code == 422 and "sha" in text.lower()):
            raise VersionConflictError(message, path=path, upstream_status=code)
        raise StoreError(message, path=path, upstream_status=code)

    def read(self, path: str) -> Optional[VersionedFile]:
        params = {"ref": self.config.branch} if self.config.branch else None
        resp = self._request("GET", path, params=params)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, "GET", path)

        payload = resp.json()
        if not isinstance(payload, dict) or "sha" not in payload:
            raise StoreError(f"{path} is not a file.", path=path)
        sha = payload["sha"]
        try:
            # files over 1 MB come back with encoding "none" and no inline content
            if payload.get("encoding", "base64") == "base64":
                data = base64.b64decode(payload.get("content") or "")
            else:
                data = self._read_blob(path, sha)
            content = data.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            raise StoreError(f"{path} has undecodable content: {exc}", path=path) from exc
        return VersionedFile(content=content, version=sha)

    def _read_blob(self, path: str, sha: str) -> bytes:
        """Raw bytes of blob `sha`; pinned to the version the contents API reported."""
        resp = self._request("GET", path, url=self._blob_url(sha), accept=RAW_MEDIA_TYPE)
        self._raise_for_status(resp, "GET", path)
        logger.info("Fetched %s as raw blob %s (%d bytes)", path, sha, len(resp.content))
        return resp.content

    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        body = {
            "message": message or f"Update {path}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if expected_version is not None:
            body["sha"] = expected_version
        if self.config.branch:
            body["branch"] = self.config.branch

        resp = self._request("PUT", path, json=body)
        self._raise_for_status(resp, "PUT", path)
        new_version = resp.json()["content"]["sha"]
        logger.info("Wrote %s (%s -> %s)", path, expected_version or "new", new_version)
        return new_version


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

def blob_sha(content: str) -> str:
    """Git's blob hash of `content`, so versions look like the real thing."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


class InMemoryFileStore(RemoteFileStore):
    """
    Thread-safe dict-backed store with the same compare-and-swap contract.

    Only the last `history_limit` versions of each path are remembered by
    `revisions()`.
    """

    def __init__(self, files: Optional[dict[str, str]] = None, history_limit: int = 100):
        self._lock = threading.Lock()
        self._files: dict[str, VersionedFile] = {}
        self._history: dict[str, deque[str]] = {}
        self.history_limit = max(1, history_limit)
        for path, content in (files or {}).items():
            self._put(path, content)

    def _put(self, path: str, content: str) -> str:
        version = blob_sha(content)
        self._files[path] = VersionedFile(content=content, version=version)
        history = self._history.get(path)
        if history is None:
            history = self._history[path] = deque(maxlen=self.history_limit)
        history.append(version)
        return version

    def read(self, path: str) -> Optional[VersionedFile]:
        with self._lock:
            return self._files.get(path)

    def write(
        self,
        path: str,
        content: str,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        with self._lock:
            current = self._files.get(path)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise VersionConflictError(
                    f"{path} is at {current_version or 'nothing'}, expected {expected_version or 'nothing'}.",
                    path=path,
                )
            version = self._put(path, content)
        logger.debug("Wrote %s: %s", path, message)
        return version

    def revisions(self, path: str) -> list[str]:
        """Recent versions of `path`, oldest first."""
        with self._lock:
            return list(self._history.get(path, ()))
