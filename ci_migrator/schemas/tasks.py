from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_serializer, model_validator
from ci_migrator.core.workflow import StageName, Status, Step

_TLD = re.compile(r"\.(com|org)")


@dataclass(frozen=True)
class Change:
    """One migrated entity: its id at the source and the id created at the destination."""
    from_id: int
    to_id: int


class Changes(BaseModel):
    """Rows undone by a rollback, per category."""
    model_config = ConfigDict(populate_by_name=True)

    releases: int = 0
    release_logs: int = Field(default=0, alias="releaseLogs")
    builds: int = 0
    build_logs: int = Field(default=0, alias="buildLogs")
    build_versions: int = Field(default=0, alias="buildVersions")


class MigrationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    from_source: str = Field(alias="fromSource")
    from_owner: str = Field(alias="fromOwner")
    from_name: str = Field(alias="fromName")
    to_source: str = Field(alias="toSource")
    to_owner: str = Field(alias="toOwner")
    to_name: str = Field(alias="toName")
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")
    restart: Optional[str] = None

    @field_validator("id", "restart", mode="before")
    @classmethod
    def _empty_is_absent(cls, value):
        if isinstance(value, StageName):
            return value.value
        return value or None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_REQUEST_KEYS = {
    key
    for name, info in MigrationRequest.model_fields.items()
    for key in (name, info.alias)
    if key
}


class MigrationTask(BaseModel):
    """Mutable state of one migration.

    In memory the task keeps its originating request as a separate record; on
    the wire both are a single flat JSON object.
    """
    model_config = ConfigDict(populate_by_name=True)

    request: MigrationRequest
    status: Status = Status.UNSET
    last_step: Step = Field(default=Step.WAITING, alias="lastStep")
    builds: int = 0
    releases: int = 0
    total_duration: timedelta = Field(default=timedelta(0), alias="totalDuration")
    error_details: Optional[str] = Field(default=None, alias="errorDetails")
    queued_at: Optional[datetime] = Field(default=None, alias="queuedAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def _inline_request(cls, data):
        if not isinstance(data, dict) or "request" in data:
            return data
        request = {k: v for k, v in data.items() if k in _REQUEST_KEYS}
        rest = {k: v for k, v in data.items() if k not in _REQUEST_KEYS}
        rest["request"] = request
        return rest

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        if isinstance(value, str):
            return Status.from_label(value)
        return value

    @field_validator("last_step", mode="before")
    @classmethod
    def _parse_step(cls, value):
        if isinstance(value, str):
            return Step.from_label(value)
        return value

    @field_validator("total_duration", mode="before")
    @classmethod
    def _parse_nanoseconds(cls, value):
        if isinstance(value, int):
            return timedelta(microseconds=value / 1000)
        return value

    @field_serializer("status", "last_step")
    def _serialize_label(self, value):
        return value.label

    @field_serializer("total_duration")
    def _serialize_nanoseconds(self, value: timedelta) -> int:
        return (value // timedelta(microseconds=1)) * 1000

    @model_serializer(mode="wrap")
    def _flatten_request(self, handler):
        data = handler(self)
        request = data.pop("request", None) or {}
        flat = {k: v for k, v in request.items() if v is not None}
        flat.update({k: v for k, v in data.items() if v is not None})
        return flat

    @property
    def id(self) -> Optional[str]:
        return self.request.id

    @property
    def callback_url(self) -> Optional[str]:
        return self.request.callback_url

    @property
    def from_fqn(self) -> str:
        r = self.request
        return f"{r.from_source}/{r.from_owner}/{r.from_name}"

    @property
    def to_fqn(self) -> str:
        r = self.request
        return f"{r.to_source}/{r.to_owner}/{r.to_name}"

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def sql_args(self) -> Dict[str, Any]:
        """Named query arguments used by the task store."""
        r = self.request
        return {
            "id": r.id,
            "status": self.status.label,
            "lastStep": self.last_step.label,
            "builds": self.builds,
            "releases": self.releases,
            "totalDuration": self.total_duration,
            "fromSource": r.from_source,
            "fromSourceName": _TLD.sub("", r.from_source),
            "fromOwner": r.from_owner,
            "fromName": r.from_name,
            "fromFullName": f"{r.from_owner}/{r.from_name}",
            "toSource": r.to_source,
            "toSourceName": _TLD.sub("", r.to_source),
            "toOwner": r.to_owner,
            "toName": r.to_name,
            "toFullName": f"{r.to_owner}/{r.to_name}",
            "callbackURL": r.callback_url,
            "errorDetails": self.error_details,
            "queuedAt": self.queued_at,
            "updatedAt": self.updated_at,
        }


class Build(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    repo_source: str = Field(default="", alias="repoSource")
    repo_owner: str = Field(default="", alias="repoOwner")
    repo_name: str = Field(default="", alias="repoName")
    repo_branch: str = Field(default="", alias="repoBranch")
    repo_revision: str = Field(default="", alias="repoRevision")
    build_version: Optional[str] = Field(default=None, alias="buildVersion")
    build_status: str = Field(default="", alias="buildStatus")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    inserted_at: Optional[datetime] = Field(default=None, alias="insertedAt")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    page: int = 0
    size: int = 0
    total_pages: int = Field(default=0, alias="totalPages")
    total_items: int = Field(default=0, alias="totalItems")


class PagedBuildsResponse(BaseModel):
    items: List[Build] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
