from __future__ import annotations
import logging
from typing import List, Optional, Type, TypeVar
from urllib.parse import quote
import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from ci_migrator.core.config import Settings, settings as default_settings
from ci_migrator.core.errors import AuthenticationError, DecodeError, TransportError
from ci_migrator.core.transport import BearerAuthTransport, successful
from ci_migrator.schemas.tasks import Build, Changes, MigrationRequest, MigrationTask, PagedBuildsResponse

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MIGRATIONS = "/api/migrations"


def _path(*parts: str) -> str:
    return "/".join(quote(p, safe="") for p in parts)


class MigrationClient:
    """Client for the migration API of the CI server."""

    def __init__(self, transport: BearerAuthTransport):
        self.transport = transport

    @classmethod
    def create(cls, server_url: str, client_id: str, client_secret: str, **kwargs) -> "MigrationClient":
        return cls(BearerAuthTransport(server_url, client_id, client_secret, **kwargs))

    @classmethod
    def from_settings(cls, s: Settings | None = None, http: Optional[httpx.AsyncClient] = None) -> "MigrationClient":
        s = s or default_settings
        return cls(BearerAuthTransport(
            s.server_url,
            s.client_id,
            s.client_secret,
            token_ttl=s.token_ttl_minutes * 60,
            timeout=s.request_timeout,
            http=http,
        ))

    async def _call(self, operation: str, method: str, path: str, body=None) -> bytes:
        try:
            res = await self.transport.request(method, path, body)
            return successful(res, operation=f"{operation} api")
        except (TransportError, AuthenticationError) as e:
            raise type(e)(f"{operation} api: {e}") from e

    @staticmethod
    def _decode(operation: str, data: bytes, model: Type[M]) -> M:
        try:
            return model.model_validate_json(data)
        except ValidationError as e:
            raise DecodeError(f"{operation} api: error while unmarshalling response: {e}") from e

    async def queue(self, request: MigrationRequest) -> MigrationTask:
        """Queue a migration.

        Without an id the server creates the task, otherwise the existing task
        with that id is updated.
        """
        if request.callback_url == "":
            request = request.model_copy(update={"callback_url": None})
        data = await self._call("queue", "POST", MIGRATIONS, request.to_wire())
        task = self._decode("queue", data, MigrationTask)
        log.info("migration queued", extra={"task_id": task.id, "stage": "-"})
        return task

    async def get_by_id(self, task_id: str) -> MigrationTask:
        data = await self._call("getMigrationByID", "GET", f"{MIGRATIONS}/{_path(task_id)}")
        return self._decode("getMigrationByID", data, MigrationTask)

    async def get_by_from_repo(self, source: str, owner: str, name: str) -> MigrationTask:
        data = await self._call("getMigrationByFromRepo", "GET", f"{MIGRATIONS}/from/{_path(source, owner, name)}")
        return self._decode("getMigrationByFromRepo", data, MigrationTask)

    async def list_all(self) -> List[MigrationTask]:
        data = await self._call("getMigrations", "GET", MIGRATIONS)
        try:
            return TypeAdapter(Optional[List[MigrationTask]]).validate_json(data) or []
        except ValidationError as e:
            raise DecodeError(f"getMigrations api: error while unmarshalling response: {e}") from e

    async def rollback(self, task_id: str) -> Changes:
        data = await self._call("rollback", "DELETE", f"{MIGRATIONS}/{_path(task_id)}")
        return self._decode("rollback", data, Changes)

    async def _set_archived(self, operation: str, source: str, owner: str, repo: str) -> None:
        data = await self._call(operation, "PUT", f"{MIGRATIONS}/from/{_path(source, owner, repo)}/{operation}")
        # summary is decoded to validate the response, callers only need success
        self._decode(operation, data, Changes)

    async def archive(self, source: str, owner: str, repo: str) -> None:
        await self._set_archived("archive", source, owner, repo)

    async def unarchive(self, source: str, owner: str, repo: str) -> None:
        await self._set_archived("unarchive", source, owner, repo)

    async def get_latest_build_status(
        self, source: str, owner: str, name: str, branch: str, revision: str | None = None
    ) -> str:
        """Status of the given revision's build, or of the newest build on branch.

        Returns an empty string when no build on the branch exists.
        """
        builds = f"/api/pipelines/{_path(source, owner, name)}/builds"
        if revision:
            data = await self._call("getLatestBuildStatus", "GET", f"{builds}/{_path(revision)}")
            return self._decode("getLatestBuildStatus", data, Build).build_status
        data = await self._call("getLatestBuildStatus", "GET", builds)
        page = self._decode("getLatestBuildStatus", data, PagedBuildsResponse)
        items = sorted(
            page.items,
            key=lambda b: b.started_at.timestamp() if b.started_at else float("-inf"),
            reverse=True,
        )
        for build in items:
            if build.repo_branch == branch:
                return build.build_status
        return ""

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "MigrationClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
