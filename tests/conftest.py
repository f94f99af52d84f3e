"""Shared pytest fixtures for ResumeWright tests."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest

from resumewright.config import StoreConfig
from resumewright.core.events import ChangeNotifier
from resumewright.core.store import ProgressStore
from resumewright.persistence.backends import MemoryBackend
from resumewright.utils.logging import ROOT_LOGGER_NAME


class FakeClock:
    """Deterministic clock; every call returns the current instant."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 60) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def reset_package_logging() -> Generator[None, None, None]:
    """Undo configure_logging so caplog keeps seeing package records."""
    yield
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def sync_config() -> StoreConfig:
    """Inline writes so tests can inspect the backend immediately."""
    return StoreConfig(write_mode="sync")


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def store(backend, sync_config, clock, notifier) -> Generator[ProgressStore, None, None]:
    progress_store = ProgressStore(backend, sync_config, clock=clock, notifier=notifier)
    yield progress_store
    progress_store.close()
