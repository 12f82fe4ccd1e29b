"""Column types that store steps and statuses by label.

Labels stay valid when new steps are slotted in between existing codes,
raw integers would not.
"""
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator
from ci_migrator.core.workflow import Status, Step


class StepType(TypeDecorator):
    impl = String(50)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        label = Step.label_of(value)
        if label == Step.UNKNOWN.label:
            raise ValueError(f"unsupported value, refusing to store unknown step {value!r}")
        return label

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Step.from_label(value)


class StatusType(TypeDecorator):
    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        label = Status.label_of(value)
        if label in ("", Status.UNKNOWN.label):
            raise ValueError(f"unsupported value, refusing to store {label or 'unset'} status")
        return label

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Status.from_label(value)
