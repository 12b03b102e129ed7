"""Root test configuration."""

import logging
from dataclasses import dataclass, field

import pytest
import structlog

from runnerfleet.lifecycle.context import RunContext


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@dataclass
class RecordingContext(RunContext):
    """RunContext whose sleeps are recorded instead of slept."""

    sleeps: list[float] = field(default_factory=list)

    async def sleep(self, seconds: float) -> None:
        self.check_cancelled()
        self.sleeps.append(seconds)


@pytest.fixture
def context():
    return RecordingContext()
