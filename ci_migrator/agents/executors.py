from __future__ import annotations
import logging
from typing import List
import httpx
from ci_migrator.core.config import settings
from ci_migrator.core.errors import TransportError
from ci_migrator.core.transport import successful
from ci_migrator.core.workflow import Status
from ci_migrator.schemas.tasks import Change, MigrationTask

log = logging.getLogger(__name__)


async def callback_executor(task: MigrationTask) -> List[Change]:
    """Post the task snapshot to its callback URL, if it has one."""
    if not task.callback_url:
        return []
    async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
        try:
            res = await client.post(
                task.callback_url,
                json=task.to_wire(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"failed to post migration callback: {e}") from e
    successful(res, operation="migration callback")
    log.info("callback sent to %s", task.callback_url, extra={"task_id": task.id, "stage": "callback"})
    return []


async def completed_executor(task: MigrationTask) -> List[Change]:
    task.status = Status.COMPLETED
    return []
