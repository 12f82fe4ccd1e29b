import pytest
from ci_migrator.core.workflow import Status, Step
from ci_migrator.schemas.tasks import MigrationRequest, MigrationTask


def make_task(last_step: Step = Step.WAITING, **request_kwargs) -> MigrationTask:
    request = dict(
        id="test-1",
        from_source="github.com", from_owner="estafette", from_name="migration",
        to_source="github.com", to_owner="estafette_new", to_name="migration_new",
    )
    request.update(request_kwargs)
    return MigrationTask(
        request=MigrationRequest(**request),
        status=Status.QUEUED,
        last_step=last_step,
    )


@pytest.fixture
def waiting_task() -> MigrationTask:
    return make_task()


@pytest.fixture
def restarted_task() -> MigrationTask:
    return make_task(Step.BUILDS_FAILED)


@pytest.fixture
def task_factory():
    return make_task
