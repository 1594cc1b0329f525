# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import escrowmail` works without installing.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

# Also add project root so `tests.fakes` imports
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from escrowmail.application.transfers import PendingTransferService, TransferRuntime  # noqa: E402
from escrowmail.infrastructure.directory import InMemoryDirectory  # noqa: E402
from escrowmail.infrastructure.event_log import InMemoryEventLog  # noqa: E402
from escrowmail.infrastructure.stores.memory_store import InMemoryTransferStore  # noqa: E402

from tests.fakes import T0, FakeClock, RecordingCustody, RecordingOutbox, seed_users  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def custody():
    return RecordingCustody()


@pytest.fixture
def directory():
    directory = InMemoryDirectory()
    seed_users(directory)
    return directory


@pytest.fixture
def outbox():
    return RecordingOutbox()


@pytest.fixture
def store():
    return InMemoryTransferStore()


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def runtime(store, custody, directory, outbox, event_log, clock):
    return TransferRuntime(
        store=store,
        custody=custody,
        directory=directory,
        outbox=outbox,
        event_log=event_log,
        app_url="https://app.test",
        clock=clock,
    )


@pytest.fixture
def service(runtime):
    return PendingTransferService(runtime)
