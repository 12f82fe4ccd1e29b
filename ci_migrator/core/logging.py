import logging
import sys
from ci_migrator.core.config import settings


class ContextFormatter(logging.Formatter):
    """Formatter for migration records; task_id and stage come from ``extra``."""
    def format(self, record):
        # records logged outside a pipeline carry no task context
        if not hasattr(record, 'task_id'):
            record.task_id = '-'
        if not hasattr(record, 'stage'):
            record.stage = '-'
        return super().format(record)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [task_id=%(task_id)s stage=%(stage)s] - %(message)s"
    ))
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        handlers=[handler],
    )
