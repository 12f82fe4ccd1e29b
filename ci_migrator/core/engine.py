from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional
from ci_migrator.core.errors import PersistenceError, StageExecutionError
from ci_migrator.core.workflow import StageName, Status, Step, restart_step
from ci_migrator.schemas.tasks import Change, MigrationTask

log = logging.getLogger(__name__)

Executor = Callable[[MigrationTask], Awaitable[Optional[List[Change]]]]
Updater = Callable[[MigrationTask], Awaitable[None]]


@dataclass
class StageResult:
    stage: StageName
    changes: List[Change]
    stop: bool
    error: Optional[StageExecutionError] = None


@dataclass
class Stage:
    """One named unit of migration work and the steps it leaves behind."""
    name: StageName
    success: Step
    failure: Step
    executor: Executor

    @classmethod
    def named(cls, name: StageName | str, executor: Executor) -> "Stage":
        name = StageName(name)
        return cls(name=name, success=name.success_step, failure=name.failed_step, executor=executor)

    async def execute(self, task: MigrationTask) -> StageResult:
        start = time.perf_counter()
        task.last_step = self.success
        try:
            changes = list(await self.executor(task) or [])
        except asyncio.CancelledError:
            # unfinished, a resumed task must run this stage again
            task.last_step = self.failure
            raise
        except Exception as e:
            err = StageExecutionError(str(self.name), e)
            task.last_step = self.failure
            task.error_details = str(e)
            log.error("%s", err, exc_info=e, extra={"task_id": task.id, "stage": str(self.name)})
            return StageResult(self.name, [], True, err)
        counter = self.name.counter
        if counter:
            setattr(task, counter, len(changes))
        task.total_duration += timedelta(seconds=time.perf_counter() - start)
        return StageResult(self.name, changes, False)


@dataclass
class Stages:
    """Ordered stages of one task's migration.

    Stages may be registered in any order; they run ordered by step. Stages
    the task already completed are not registered at all, so a restarted task
    resumes where it stopped. After each stage the task is handed to the
    updater; a failing updater is logged and recorded, never fatal.

    An instance belongs to one task and must not be driven concurrently.
    """
    task: MigrationTask
    updater: Updater
    stages: List[Stage] = field(default_factory=list)
    persistence_errors: List[PersistenceError] = field(default_factory=list)
    start: Step = field(init=False)
    _cursor: int = field(default=-1, init=False, repr=False)

    def __post_init__(self):
        if self.task.request.restart:
            self.start = restart_step(self.task.request.restart)
        else:
            self.start = self.task.last_step

    def register(self, name: StageName | str, executor: Executor) -> "Stages":
        name = StageName(name)
        ctx = {"task_id": self.task.id, "stage": str(name)}
        if self.start >= name.success_step:
            log.info("skipping stage %s", name, extra=ctx)
            return self
        for s in self.stages:
            if s.name is name:
                s.executor = executor
                log.debug("overriding stage %s", name, extra=ctx)
                return self
        self.stages.append(Stage.named(name, executor))
        self.stages.sort(key=lambda s: s.failure)
        log.debug("appended stage %s", name, extra=ctx)
        return self

    def __len__(self) -> int:
        return len(self.stages)

    def has_next(self) -> bool:
        return self._cursor + 1 < len(self.stages)

    def next(self) -> Optional[Stage]:
        if not self.has_next():
            return None
        self._cursor += 1
        return self.stages[self._cursor]

    @property
    def current(self) -> Optional[Stage]:
        if self._cursor < 0 or self._cursor >= len(self.stages):
            return None
        return self.stages[self._cursor]

    async def execute_next(self) -> StageResult:
        """Run the next stage, persist the task and report whether to stop."""
        stage = self.next()
        if stage is None:
            raise IndexError("no stages left to execute")
        task = self.task
        ctx = {"task_id": task.id, "stage": str(stage.name)}
        log.info("stage started", extra=ctx)
        before = task.total_duration
        result = await stage.execute(task)
        if result.stop:
            task.status = Status.FAILED
        try:
            await self.updater(task)
        except Exception as e:
            err = PersistenceError(task.id, e)
            self.persistence_errors.append(err)
            log.error("%s", err, exc_info=e, extra=ctx)
        if result.stop:
            log.info("task failed, stopping migration from %s to %s", task.from_fqn, task.to_fqn, extra=ctx)
        else:
            log.info(
                "stage done in %.3fs, migrating %s to %s",
                (task.total_duration - before).total_seconds(), task.from_fqn, task.to_fqn,
                extra=ctx,
            )
        return result

    async def run(self) -> bool:
        """Execute stages until exhausted or one fails. Returns True if stopped on failure."""
        self.task.status = Status.IN_PROGRESS
        while self.has_next():
            result = await self.execute_next()
            if result.stop:
                return True
        return False
