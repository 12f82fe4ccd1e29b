from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from sqlalchemy.orm import Session, sessionmaker
from ci_migrator.core.engine import Updater
from ci_migrator.db.models import MigrationTaskRecord
from ci_migrator.schemas.tasks import MigrationTask

log = logging.getLogger(__name__)


def save_task(db: Session, task: MigrationTask) -> MigrationTaskRecord:
    now = datetime.now(timezone.utc)
    if task.queued_at is None:
        existing = db.get(MigrationTaskRecord, task.request.id) if task.request.id else None
        task.queued_at = existing.queued_at if existing else now
    task.updated_at = now
    record = db.merge(MigrationTaskRecord.from_task(task))
    db.commit()
    if task.request.id is None:
        task.request.id = record.id
    return record


def load_task(db: Session, task_id: str) -> MigrationTask | None:
    record = db.get(MigrationTaskRecord, task_id)
    return record.to_task() if record else None


def session_updater(session_factory: sessionmaker) -> Updater:
    """Build a pipeline updater that upserts the task snapshot into the database."""
    def _save(task: MigrationTask) -> None:
        db: Session = session_factory()
        try:
            save_task(db, task)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def update(task: MigrationTask) -> None:
        await asyncio.to_thread(_save, task)
        log.debug("task snapshot saved", extra={"task_id": task.id, "stage": str(task.last_step)})

    return update
