"""Tests for the built-in callback and completion executors."""
import json
from datetime import datetime, timezone
import httpx
import pytest
import respx
from ci_migrator.agents.executors import callback_executor, completed_executor
from ci_migrator.core.errors import RemoteStatusError, TransportError
from ci_migrator.core.workflow import Status, Step

CALLBACK = "http://hooks.local/migrations/done"


@pytest.mark.asyncio
async def test_callback_posts_task(task_factory):
    task = task_factory(Step.BUILD_VERSIONS_DONE, id="test-456", callback_url=CALLBACK)
    task.status = Status.IN_PROGRESS
    task.builds = 10
    task.releases = 11
    task.queued_at = datetime(2020, 1, 1, tzinfo=timezone.utc)

    with respx.mock() as router:
        route = router.post(CALLBACK).mock(return_value=httpx.Response(200))
        changes = await callback_executor(task)

    assert changes == []
    sent = route.calls.last.request
    assert sent.headers["Content-Type"] == "application/json"
    body = json.loads(sent.content)
    assert body["id"] == "test-456"
    assert body["callbackURL"] == CALLBACK
    assert body["status"] == "in_progress"
    assert body["lastStep"] == "build_versions_done"
    assert body["builds"] == 10
    assert body["queuedAt"] == "2020-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_callback_without_url_is_noop(waiting_task):
    with respx.mock() as router:
        assert await callback_executor(waiting_task) == []
    assert not router.calls


@pytest.mark.asyncio
async def test_callback_rejected(task_factory):
    task = task_factory(callback_url=CALLBACK)
    with respx.mock() as router:
        router.post(CALLBACK).mock(return_value=httpx.Response(503, text="try later"))
        with pytest.raises(RemoteStatusError) as exc:
            await callback_executor(task)
    assert "migration callback" in str(exc.value)
    assert "503" in str(exc.value)


@pytest.mark.asyncio
async def test_callback_unreachable(task_factory):
    task = task_factory(callback_url=CALLBACK)
    with respx.mock() as router:
        router.post(CALLBACK).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError):
            await callback_executor(task)


@pytest.mark.asyncio
async def test_completed_executor(waiting_task):
    waiting_task.status = Status.IN_PROGRESS
    assert await completed_executor(waiting_task) == []
    assert waiting_task.status is Status.COMPLETED
