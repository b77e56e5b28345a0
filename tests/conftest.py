# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from beads_ops.bd.client import BeadsClient
from beads_ops.cache.result_cache import ResultCache
from beads_ops.cli.bootstrap import create_initial_state
from beads_ops.core.state import AppState
from beads_ops.ops.models import SchedulerConfig
from beads_ops.ops.progress import ProgressRegistry
from beads_ops.ops.scheduler import OperationScheduler

from .fakes import FakeInvoker, ManualClock, RecordingNotifier, make_settings


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def invoker() -> FakeInvoker:
    return FakeInvoker(
        {
            "ready": ([{"id": "1", "title": "first", "status": "open"}], None),
            "show": ({"id": "1", "title": "first", "status": "open"}, None),
        }
    )


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def cache(clock: ManualClock) -> ResultCache:
    return ResultCache(ttl_seconds=30.0, clock=clock)


@pytest.fixture()
def client(invoker: FakeInvoker, cache: ResultCache) -> BeadsClient:
    return BeadsClient(invoker, cache)


@pytest.fixture()
def scheduler(notifier: RecordingNotifier) -> OperationScheduler:
    return OperationScheduler(
        notifier=notifier,
        progress=ProgressRegistry(),
        config=SchedulerConfig(retry_delay=0.01),
    )


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_initial_state.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return make_settings(data_dir=tmp_path / "data")


@pytest.fixture()
def state(settings: SimpleNamespace, invoker: FakeInvoker, notifier: RecordingNotifier) -> AppState:
    """AppState wired through the real composition root with deterministic fakes."""
    return create_initial_state(settings=settings, invoker=invoker, notifier=notifier)
