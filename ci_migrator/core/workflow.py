from __future__ import annotations
from enum import Enum, IntEnum


class Step(IntEnum):
    """Progress marker of a migration task.

    Every stage owns a failed/done pair. Pairs are spaced apart so new stages
    can be slotted in later without renumbering steps that are already stored.
    Steps are persisted and sent over the wire by label only.
    """
    UNKNOWN = -1
    WAITING = 0
    RELEASES_FAILED = 11
    RELEASES_DONE = 12
    RELEASE_LOGS_FAILED = 21
    RELEASE_LOGS_DONE = 22
    RELEASE_LOG_OBJECTS_FAILED = 31
    RELEASE_LOG_OBJECTS_DONE = 32
    BUILDS_FAILED = 41
    BUILDS_DONE = 42
    BUILD_LOGS_FAILED = 51
    BUILD_LOGS_DONE = 52
    BUILD_LOG_OBJECTS_FAILED = 61
    BUILD_LOG_OBJECTS_DONE = 62
    BUILD_VERSIONS_FAILED = 71
    BUILD_VERSIONS_DONE = 72
    COMPUTED_TABLES_FAILED = 81
    COMPUTED_TABLES_DONE = 82
    ARCHIVE_FAILED = 89
    ARCHIVE_DONE = 90
    CALLBACK_FAILED = 91
    CALLBACK_DONE = 92
    COMPLETION_FAILED = 991
    COMPLETION_DONE = 992

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def label_of(cls, code: int) -> str:
        try:
            return cls(code).label
        except ValueError:
            return cls.UNKNOWN.label

    @classmethod
    def from_label(cls, label: str) -> "Step":
        member = cls.__members__.get(label.upper()) if isinstance(label, str) else None
        if member is None or member.label != label:
            return cls.UNKNOWN
        return member

    def __str__(self) -> str:
        return self.label


class Status(IntEnum):
    UNKNOWN = -2
    UNSET = -1
    QUEUED = 0
    IN_PROGRESS = 1
    FAILED = 2
    COMPLETED = 3
    CANCELED = 4

    @property
    def label(self) -> str:
        if self is Status.UNSET:
            return ""
        return self.name.lower()

    @classmethod
    def label_of(cls, code: int) -> str:
        try:
            return cls(code).label
        except ValueError:
            return cls.UNKNOWN.label

    @classmethod
    def from_label(cls, label: str) -> "Status":
        if label == "":
            return cls.UNSET
        member = cls.__members__.get(label.upper()) if isinstance(label, str) else None
        if member is None or member is cls.UNSET or member.label != label:
            return cls.UNKNOWN
        return member

    def __str__(self) -> str:
        return self.label


class StageName(str, Enum):
    RELEASES = "releases"
    RELEASE_LOGS = "release_logs"
    RELEASE_LOG_OBJECTS = "release_log_objects"
    BUILDS = "builds"
    BUILD_LOGS = "build_logs"
    BUILD_LOG_OBJECTS = "build_log_objects"
    BUILD_VERSIONS = "build_versions"
    COMPUTED_TABLES = "computed_tables"
    ARCHIVE = "archive"
    CALLBACK = "callback"
    COMPLETED = "completed"

    @property
    def success_step(self) -> Step:
        return _STEPS[self][1]

    @property
    def failed_step(self) -> Step:
        return _STEPS[self][0]

    @property
    def counter(self) -> str | None:
        """Task counter that receives the number of changes this stage produced."""
        return _COUNTERS.get(self)

    def __str__(self) -> str:
        return self.value


_STEPS = {
    StageName.RELEASES: (Step.RELEASES_FAILED, Step.RELEASES_DONE),
    StageName.RELEASE_LOGS: (Step.RELEASE_LOGS_FAILED, Step.RELEASE_LOGS_DONE),
    StageName.RELEASE_LOG_OBJECTS: (Step.RELEASE_LOG_OBJECTS_FAILED, Step.RELEASE_LOG_OBJECTS_DONE),
    StageName.BUILDS: (Step.BUILDS_FAILED, Step.BUILDS_DONE),
    StageName.BUILD_LOGS: (Step.BUILD_LOGS_FAILED, Step.BUILD_LOGS_DONE),
    StageName.BUILD_LOG_OBJECTS: (Step.BUILD_LOG_OBJECTS_FAILED, Step.BUILD_LOG_OBJECTS_DONE),
    StageName.BUILD_VERSIONS: (Step.BUILD_VERSIONS_FAILED, Step.BUILD_VERSIONS_DONE),
    StageName.COMPUTED_TABLES: (Step.COMPUTED_TABLES_FAILED, Step.COMPUTED_TABLES_DONE),
    StageName.ARCHIVE: (Step.ARCHIVE_FAILED, Step.ARCHIVE_DONE),
    StageName.CALLBACK: (Step.CALLBACK_FAILED, Step.CALLBACK_DONE),
    StageName.COMPLETED: (Step.COMPLETION_FAILED, Step.COMPLETION_DONE),
}

_COUNTERS = {
    StageName.RELEASES: "releases",
    StageName.BUILDS: "builds",
}


def restart_step(name: StageName | str | None) -> Step:
    """Step a task resumes from when it is restarted at the given stage."""
    try:
        stage = StageName(name)
    except ValueError:
        return Step.WAITING
    # callback is the last stage that does real work
    if stage is StageName.COMPLETED:
        return Step.CALLBACK_DONE
    return stage.failed_step
