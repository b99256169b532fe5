"""
Remote repository gateway.

``RepositoryGateway`` is the capability set the provisioning pipeline consumes;
``GitHubGateway`` implements it against the GitHub REST API with httpx. One
gateway instance is bound to one delegated credential.
"""
from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from provisioner.config import settings
from provisioner.core.exceptions import GitHubAPIError, GitHubNotFoundError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class Identity:
    login: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class WriteResult:
    sha: str
    created: bool


@dataclass(frozen=True)
class RunSummary:
    id: int
    name: str | None
    status: str | None
    conclusion: str | None
    head_branch: str | None
    event: str | None
    created_at: str | None
    html_url: str | None


class RepositoryGateway(ABC):
    """Operations against a remote source-controlled repository."""

    @abstractmethod
    async def get_authenticated_identity(self) -> Identity:
        """Resolve the identity behind the bound credential."""

    @abstractmethod
    async def get_permission_level(self, owner: str, repo: str, username: str) -> str:
        """Return one of ``admin``, ``write``, ``read`` or ``none``."""

    @abstractmethod
    async def read_path(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Return a file object, or a list of entries for a directory.

        Raises ``GitHubNotFoundError`` when nothing exists at ``path``.
        """

    @abstractmethod
    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> WriteResult:
        """Create or replace ``path`` with ``content``."""

    @abstractmethod
    async def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        sha: str,
        message: str,
        branch: str | None = None,
    ) -> None:
        """Delete ``path``; ``sha`` must be the file's current content hash."""

    @abstractmethod
    async def list_workflow_runs(self, owner: str, repo: str, page_size: int) -> list[RunSummary]:
        """Most recent workflow runs for the repository, newest first."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


class GitHubGateway(RepositoryGateway):
    """GitHub REST client bound to one OAuth access token."""

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not token:
            raise ValueError("GitHub access token is required")
        self.token = token
        self.base_url = (base_url or settings.github_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.github_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @staticmethod
    def _repo_url(owner: str, repo: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._headers(),
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            logger.error("GitHub %s %s failed: %s", method, url, exc)
            raise GitHubAPIError(f"GitHub request failed: {exc}") from exc

        if response.status_code == 404:
            raise GitHubNotFoundError(_error_message(response))
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("GitHub %s %s returned %s: %s", method, url, response.status_code, message)
            raise GitHubAPIError(message, status=response.status_code)
        return response

    async def get_authenticated_identity(self) -> Identity:
        data = (await self._send("GET", "/user")).json()
        return Identity(login=data["login"], name=data.get("name"), email=data.get("email"))

    async def get_permission_level(self, owner: str, repo: str, username: str) -> str:
        url = f"{self._repo_url(owner, repo)}/collaborators/{quote(username, safe='')}/permission"
        data = (await self._send("GET", url)).json()
        return str(data.get("permission") or "none")

    async def read_path(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        url = f"{self._repo_url(owner, repo)}/contents/{quote(path.strip('/'))}"
        params = {"ref": ref} if ref else None
        return (await self._send("GET", url, params=params)).json()

    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> WriteResult:
        # The contents API only replaces an existing file when given its current sha.
        existing_sha = None
        try:
            current = await self.read_path(owner, repo, path, ref=branch)
        except GitHubNotFoundError:
            current = None
        if isinstance(current, dict):
            existing_sha = current.get("sha")

        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if existing_sha:
            payload["sha"] = existing_sha

        url = f"{self._repo_url(owner, repo)}/contents/{quote(path.strip('/'))}"
        response = await self._send("PUT", url, json=payload)
        body = response.json() if response.content else {}
        sha = (body.get("content") or {}).get("sha") or ""
        return WriteResult(sha=sha, created=response.status_code == 201)

    async def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        sha: str,
        message: str,
        branch: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"message": message, "sha": sha}
        if branch:
            payload["branch"] = branch
        url = f"{self._repo_url(owner, repo)}/contents/{quote(path.strip('/'))}"
        await self._send("DELETE", url, json=payload)

    async def list_workflow_runs(self, owner: str, repo: str, page_size: int) -> list[RunSummary]:
        url = f"{self._repo_url(owner, repo)}/actions/runs"
        data = (await self._send("GET", url, params={"per_page": page_size})).json()
        return [
            RunSummary(
                id=int(run["id"]),
                name=run.get("name"),
                status=run.get("status"),
                conclusion=run.get("conclusion"),
                head_branch=run.get("head_branch"),
                event=run.get("event"),
                created_at=run.get("created_at"),
                html_url=run.get("html_url"),
            )
            for run in data.get("workflow_runs", [])
        ]
