from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone
from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from ci_migrator.core.workflow import Status, Step
from ci_migrator.db.session import Base
from ci_migrator.db.types import StatusType, StepType
from ci_migrator.schemas.tasks import MigrationRequest, MigrationTask


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationTaskRecord(Base):
    __tablename__ = "migration_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    queued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    from_source: Mapped[str] = mapped_column(String(255), nullable=False)
    from_owner: Mapped[str] = mapped_column(String(255), nullable=False)
    from_name: Mapped[str] = mapped_column(String(255), nullable=False)
    to_source: Mapped[str] = mapped_column(String(255), nullable=False)
    to_owner: Mapped[str] = mapped_column(String(255), nullable=False)
    to_name: Mapped[str] = mapped_column(String(255), nullable=False)
    callback_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    restart: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[Status] = mapped_column(StatusType, default=Status.QUEUED, nullable=False)
    last_step: Mapped[Step] = mapped_column(StepType, default=Step.WAITING, nullable=False)
    builds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    releases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # nanoseconds, same unit as the wire format
    total_duration: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    error_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    @classmethod
    def from_task(cls, task: MigrationTask) -> "MigrationTaskRecord":
        r = task.request
        record = cls(
            queued_at=task.queued_at or _utcnow(),
            updated_at=task.updated_at or _utcnow(),
            from_source=r.from_source,
            from_owner=r.from_owner,
            from_name=r.from_name,
            to_source=r.to_source,
            to_owner=r.to_owner,
            to_name=r.to_name,
            callback_url=r.callback_url,
            restart=r.restart,
            status=task.status if task.status >= 0 else Status.QUEUED,
            last_step=task.last_step,
            builds=task.builds,
            releases=task.releases,
            total_duration=(task.total_duration // timedelta(microseconds=1)) * 1000,
            error_details=task.error_details,
        )
        # leave the id unset so the column default generates one
        if r.id:
            record.id = r.id
        return record

    def to_task(self) -> MigrationTask:
        return MigrationTask(
            request=MigrationRequest(
                id=self.id,
                from_source=self.from_source,
                from_owner=self.from_owner,
                from_name=self.from_name,
                to_source=self.to_source,
                to_owner=self.to_owner,
                to_name=self.to_name,
                callback_url=self.callback_url,
                restart=self.restart,
            ),
            status=self.status,
            last_step=self.last_step,
            builds=self.builds,
            releases=self.releases,
            total_duration=self.total_duration,
            error_details=self.error_details,
            queued_at=self.queued_at,
            updated_at=self.updated_at,
        )
