from __future__ import annotations

import pytest

from helpers import FakeRecognizer, FakeSink, ManualScheduler
from senavision.logger import Logger


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def sink(scheduler: ManualScheduler) -> FakeSink:
    return FakeSink(scheduler)


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def logger() -> Logger:
    return Logger(echo=False)
