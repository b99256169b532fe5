"""
Workflow provisioning pipeline.

Every create runs the same linear sequence and stops at the first failure:
session check, input validation, identity, admin permission, render, ensure
``.github/workflows`` exists, write, settle-and-verify, then best-effort
config/audit persistence. Nothing is retried; every remote failure is
reported to the caller with its own error kind.
"""
from __future__ import annotations

import asyncio
import posixpath
import re
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from croniter import croniter

from provisioner.config import settings
from provisioner.core.exceptions import (
    BadRequest,
    DirectoryEnsureFailed,
    Forbidden,
    GitHubAPIError,
    GitHubNotFoundError,
    InvalidCredential,
    NoCredential,
    PermissionCheckFailed,
    RemoteError,
    TemplateNotFound,
    Unauthorized,
    VerificationFailed,
    WriteFailed,
)
from provisioner.core.logger import get_logger
from provisioner.core.security import SessionContext
from provisioner.integrations.github import Identity, RepositoryGateway, RunSummary, WriteResult
from provisioner.models.workflow import (
    AuditEvent,
    ProvisionResult,
    ScheduledJobSpec,
    WorkflowFile,
    WorkflowTemplate,
)
from provisioner.services.audit_sink import AuditSink
from provisioner.services.substitution import render, render_template
from provisioner.templates import SCHEDULED_JOB_BODY, WORKFLOW_TEMPLATES

logger = get_logger(__name__)

WORKFLOWS_DIR = ".github/workflows"
DIRECTORY_MARKER = ".gitkeep"
MARKER_PATH = f"{WORKFLOWS_DIR}/{DIRECTORY_MARKER}"
SCHEDULED_JOB_TEMPLATE_ID = "cron"

GatewayFactory = Callable[[str], RepositoryGateway]


def workflow_path_for_name(name: str) -> str:
    """``"Daily Backup"`` -> ``.github/workflows/daily-backup.yml``.

    Names that would leave ``.github/workflows`` raise BadRequest.
    """
    if "/" in name or "\\" in name:
        raise BadRequest("Job name must not contain path separators", details={"name": name})
    slug = re.sub(r"\s+", "-", name.strip().lower())
    if slug in {".", ".."}:
        raise BadRequest("Invalid job name", details={"name": name})
    return f"{WORKFLOWS_DIR}/{slug}.yml"


def checked_workflow_path(path: str) -> str:
    """Normalise ``path`` and require a ``.yml`` file directly in ``.github/workflows``."""
    normalized = posixpath.normpath(path.strip())
    directory, filename = posixpath.split(normalized)
    if (
        directory != WORKFLOWS_DIR
        or not filename.endswith(".yml")
        or ".." in path.replace("\\", "/").split("/")
    ):
        raise BadRequest(f"Path must be a .yml file inside {WORKFLOWS_DIR}", details={"path": path})
    return normalized


def workflow_path_for_template(template_id: str) -> str:
    return f"{WORKFLOWS_DIR}/{template_id}.yml"


def parse_repo_name(repo_name: str) -> tuple[str, str]:
    parts = [part.strip() for part in repo_name.split("/")]
    if len(parts) != 2 or not all(parts):
        raise BadRequest(
            "Invalid repository name format. Expected format: owner/repo",
            details={"repoName": repo_name},
        )
    return parts[0], parts[1]


def next_run_time(schedule: str, now: datetime | None = None) -> datetime:
    """Next UTC fire time for a five-field cron expression; BadRequest if invalid."""
    expression = schedule.strip()
    if len(expression.split()) != 5 or not croniter.is_valid(expression):
        raise BadRequest(
            "Invalid cron schedule. Expected five fields, e.g. '0 0 * * *'",
            details={"schedule": schedule},
        )
    base = now or datetime.now(timezone.utc)
    return croniter(expression, base).get_next(datetime)


class ProvisioningPipeline:
    """Creates, lists and deletes workflow files in a user's GitHub repository."""

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        sink: AuditSink | None = None,
        *,
        templates: Mapping[str, WorkflowTemplate] = WORKFLOW_TEMPLATES,
        branch: str | None = None,
        web_url: str | None = None,
        settle_seconds: float | None = None,
        runs_page_size: int | None = None,
    ):
        self.gateway_factory = gateway_factory
        self.sink = sink or AuditSink()
        self.templates = templates
        self.branch = branch or settings.github_default_branch
        self.web_url = (web_url or settings.github_web_base).rstrip("/")
        self.settle_seconds = settings.workflow_settle_seconds if settle_seconds is None else settle_seconds
        self.runs_page_size = runs_page_size or settings.workflow_runs_page_size

    # -- stages -----------------------------------------------------------

    @staticmethod
    def _require_session(session: SessionContext | None) -> SessionContext:
        if session is None:
            logger.error("No session found")
            raise Unauthorized("Unauthorized")
        if not session.access_token:
            logger.error("No access token in session for %s", session.actor)
            raise NoCredential("No access token")
        return session

    @staticmethod
    async def _resolve_identity(gateway: RepositoryGateway) -> Identity:
        try:
            identity = await gateway.get_authenticated_identity()
        except GitHubAPIError as exc:
            logger.error("Token validation error: %s", exc)
            raise InvalidCredential("Invalid GitHub token", details=str(exc)) from exc
        logger.info("Authenticated as: %s", identity.login)
        return identity

    @staticmethod
    async def _check_admin(gateway: RepositoryGateway, owner: str, repo: str, identity: Identity) -> None:
        try:
            permission = await gateway.get_permission_level(owner, repo, identity.login)
        except GitHubAPIError as exc:
            logger.error("Error checking repository permissions: %s", exc)
            raise PermissionCheckFailed("Failed to check repository permissions", details=str(exc)) from exc
        logger.info("Repository permission for %s on %s/%s: %s", identity.login, owner, repo, permission)
        if permission != "admin":
            raise Forbidden(
                "Insufficient repository permissions. Admin access required.",
                details={"permission": permission},
            )

    async def _ensure_directory(self, gateway: RepositoryGateway, owner: str, repo: str) -> None:
        """Make sure ``.github/workflows`` exists by committing an empty marker file."""
        try:
            await gateway.read_path(owner, repo, WORKFLOWS_DIR, ref=self.branch)
            logger.info("%s directory exists", WORKFLOWS_DIR)
            return
        except GitHubNotFoundError:
            logger.info("Creating %s directory", WORKFLOWS_DIR)
        except GitHubAPIError as exc:
            # Any read failure is treated as a missing directory.
            logger.warning("Reading %s failed (%s); creating it anyway", WORKFLOWS_DIR, exc)

        try:
            await gateway.write_file(
                owner,
                repo,
                MARKER_PATH,
                "",
                "Create workflows directory",
                self.branch,
            )
        except GitHubAPIError as exc:
            logger.error("Error creating workflows directory: %s", exc)
            raise DirectoryEnsureFailed("Failed to create workflows directory", details=str(exc)) from exc
        logger.info("Created %s directory", WORKFLOWS_DIR)

    async def _write(
        self,
        gateway: RepositoryGateway,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
    ) -> WriteResult:
        logger.info("Creating workflow file %s in %s/%s", path, owner, repo)
        try:
            return await gateway.write_file(owner, repo, path, content, message, self.branch)
        except GitHubAPIError as exc:
            logger.error("Error creating workflow file %s: %s", path, exc)
            raise WriteFailed("Failed to create workflow file", details=str(exc)) from exc

    async def _confirm_written(self, gateway: RepositoryGateway, owner: str, repo: str, path: str) -> None:
        """Wait for the contents index to settle, then re-read ``path``."""
        if self.settle_seconds:
            await asyncio.sleep(self.settle_seconds)
        try:
            found = await gateway.read_path(owner, repo, path, ref=self.branch)
        except GitHubAPIError as exc:
            logger.error("Verification read of %s failed: %s", path, exc)
            raise VerificationFailed("Failed to verify workflow file creation", details=str(exc)) from exc
        if not found or not isinstance(found, dict):
            logger.error("Verification read of %s returned nothing", path)
            raise VerificationFailed("Failed to verify workflow file creation", details={"path": path})

    async def _best_effort(self, label: str, func: Callable[..., Any], *args: Any) -> None:
        """Run a blocking sink call in a worker thread and log any failure.

        The call is awaited, so a slow audit store delays the response but
        can never fail it. Records are therefore committed before the caller
        sees success.
        """
        try:
            await asyncio.to_thread(func, *args)
        except Exception as exc:
            logger.warning("Failed to %s: %s", label, exc)

    async def _record(
        self,
        actor: str,
        repo_name: str,
        template_id: str,
        variables: dict[str, Any],
        event: AuditEvent,
    ) -> None:
        await self._best_effort(
            "save workflow config to database",
            self.sink.save_workflow_config,
            actor,
            repo_name,
            template_id,
            variables,
        )
        await self._best_effort("log audit event", self.sink.log_audit_event, event)

    def _blob_url(self, owner: str, repo: str, path: str) -> str:
        return f"{self.web_url}/{owner}/{repo}/blob/{self.branch}/{path}"

    # -- operations -------------------------------------------------------

    async def create_scheduled_job(
        self, session: SessionContext | None, job: ScheduledJobSpec
    ) -> ProvisionResult:
        session = self._require_session(session)
        fields = {
            "name": job.name,
            "schedule": job.schedule,
            "command": job.command,
            "owner": job.owner,
            "repo": job.repo,
        }
        missing = [key for key, value in fields.items() if not (value or "").strip()]
        if missing:
            logger.error("Missing required fields: %s", missing)
            raise BadRequest("Missing required fields", details={"missing": missing})
        next_run_at = next_run_time(job.schedule)
        path = workflow_path_for_name(job.name)

        owner, repo = job.owner.strip(), job.repo.strip()
        gateway = self.gateway_factory(session.access_token)
        identity = await self._resolve_identity(gateway)
        await self._check_admin(gateway, owner, repo, identity)

        content = render(
            SCHEDULED_JOB_BODY,
            {"name": job.name, "schedule": job.schedule, "command": job.command},
        )
        await self._ensure_directory(gateway, owner, repo)

        written = await self._write(gateway, owner, repo, path, content, f"Add {job.name} cron job")
        await self._confirm_written(gateway, owner, repo, path)

        repo_name = f"{owner}/{repo}"
        variables = {"name": job.name, "schedule": job.schedule, "command": job.command}
        await self._record(
            session.actor,
            repo_name,
            SCHEDULED_JOB_TEMPLATE_ID,
            variables,
            AuditEvent(
                actor=session.actor,
                action="create" if written.created else "update",
                resource_type="cron",
                resource_id=path,
                details={**variables, "repo": repo_name},
            ),
        )
        logger.info("Cron job %s provisioned at %s in %s", job.name, path, repo_name)
        return ProvisionResult(
            repository=repo_name,
            path=path,
            url=self._blob_url(owner, repo, path),
            sha=written.sha,
            created=written.created,
            next_run_at=next_run_at,
        )

    async def create_from_template(
        self,
        session: SessionContext | None,
        template_id: str,
        variables: Mapping[str, Any] | None,
        repo_name: str,
    ) -> ProvisionResult:
        session = self._require_session(session)
        if not (repo_name or "").strip():
            logger.error("No repository name provided")
            raise BadRequest("Repository name is required")

        template = self.templates.get(template_id)
        if template is None:
            logger.error("Template not found: %s", template_id)
            raise TemplateNotFound("Template not found", details={"templateId": template_id})

        owner, repo = parse_repo_name(repo_name)
        content = render_template(template, variables)

        gateway = self.gateway_factory(session.access_token)
        identity = await self._resolve_identity(gateway)
        await self._check_admin(gateway, owner, repo, identity)
        await self._ensure_directory(gateway, owner, repo)

        path = workflow_path_for_template(template.id)
        written = await self._write(gateway, owner, repo, path, content, f"Add {template.name} workflow")
        await self._confirm_written(gateway, owner, repo, path)

        full_name = f"{owner}/{repo}"
        supplied = dict(variables or {})
        await self._record(
            session.actor,
            full_name,
            template.id,
            supplied,
            AuditEvent(
                actor=session.actor,
                action="create" if written.created else "update",
                resource_type="workflow",
                resource_id=path,
                details={"templateId": template.id, "variables": supplied, "repo": full_name},
            ),
        )
        logger.info("Template %s provisioned at %s in %s", template.id, path, full_name)
        return ProvisionResult(
            repository=full_name,
            path=path,
            url=self._blob_url(owner, repo, path),
            sha=written.sha,
            created=written.created,
        )

    async def list_scheduled_jobs(
        self, session: SessionContext | None, owner: str | None, repo: str | None
    ) -> list[WorkflowFile]:
        session = self._require_session(session)
        if not (owner or "").strip() or not (repo or "").strip():
            raise BadRequest("Owner and repo parameters are required")

        gateway = self.gateway_factory(session.access_token)
        try:
            entries = await gateway.read_path(owner, repo, WORKFLOWS_DIR, ref=self.branch)
        except GitHubNotFoundError:
            logger.info("No workflows directory found in %s/%s", owner, repo)
            return []
        except GitHubAPIError as exc:
            logger.error("Error fetching workflow files: %s", exc)
            raise RemoteError("Failed to fetch cron jobs", details=str(exc)) from exc

        if not isinstance(entries, list):
            return []
        return [
            WorkflowFile(
                name=entry["name"][: -len(".yml")],
                path=entry["path"],
                url=entry.get("html_url"),
                sha=entry.get("sha", ""),
                size=int(entry.get("size") or 0),
                download_url=entry.get("download_url"),
            )
            for entry in entries
            if entry.get("name", "").endswith(".yml") and entry.get("name") != DIRECTORY_MARKER
        ]

    async def delete_scheduled_job(
        self,
        session: SessionContext | None,
        owner: str | None,
        repo: str | None,
        path: str | None,
    ) -> None:
        session = self._require_session(session)
        if not all((value or "").strip() for value in (owner, repo, path)):
            raise BadRequest("Owner, repo, and path parameters are required")
        path = checked_workflow_path(path)

        gateway = self.gateway_factory(session.access_token)
        # The delete call needs the file's current sha, so always read it first.
        try:
            current = await gateway.read_path(owner, repo, path, ref=self.branch)
            if not isinstance(current, dict) or not current.get("sha"):
                raise RemoteError("Failed to delete cron job", details=f"{path} is not a file")
            await gateway.delete_file(
                owner,
                repo,
                path,
                current["sha"],
                f"Remove {path.rsplit('/', 1)[-1]}",
                self.branch,
            )
        except GitHubAPIError as exc:
            logger.error("Error deleting cron job %s: %s", path, exc)
            raise RemoteError("Failed to delete cron job", details=str(exc)) from exc

        logger.info("Deleted %s from %s/%s", path, owner, repo)
        await self._best_effort(
            "log audit event",
            self.sink.log_audit_event,
            AuditEvent(
                actor=session.actor,
                action="delete",
                resource_type="cron",
                resource_id=path,
                details={"repo": f"{owner}/{repo}"},
            ),
        )

    async def list_workflow_runs(
        self, session: SessionContext | None, owner: str, repo: str
    ) -> list[RunSummary]:
        session = self._require_session(session)
        if not owner.strip() or not repo.strip():
            raise BadRequest("Owner and repo parameters are required")
        gateway = self.gateway_factory(session.access_token)
        try:
            return await gateway.list_workflow_runs(owner, repo, self.runs_page_size)
        except GitHubAPIError as exc:
            logger.error("Error fetching workflow runs: %s", exc)
            raise RemoteError("Failed to fetch workflow runs", details=str(exc)) from exc
