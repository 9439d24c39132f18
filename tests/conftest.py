"""Pytest configuration and shared fixtures."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from stagegate.core.approval import ApprovalWorkflow
from stagegate.core.errors import StorageError
from stagegate.core.ledger import AuditLedger
from stagegate.core.rbac import PermissionResolver
from stagegate.storage import MemoryStore


BASE_TIME = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_clock(start=BASE_TIME, step=timedelta(minutes=1)):
    """Clock returning ISO timestamps that advance by ``step`` per call."""
    ticks = itertools.count()
    return lambda: (start + step * next(ticks)).isoformat()


def make_ids(prefix):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


class FailingSaveStore(MemoryStore):
    """MemoryStore whose saves raise once ``failing`` is set."""

    failing = False

    def save(self, key, value):
        if self.failing:
            raise StorageError("backend unavailable", key=key)
        super().save(key, value)


@pytest.fixture
def clock_factory():
    return make_clock


@pytest.fixture
def id_factory():
    return make_ids


@pytest.fixture
def store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def failing_store():
    return FailingSaveStore()


@pytest.fixture
def resolver(store):
    return PermissionResolver(store)


@pytest.fixture
def workflow(store):
    return ApprovalWorkflow(store, id_factory=make_ids("APR"), clock=make_clock())


@pytest.fixture
def ledger(store):
    return AuditLedger(store, id_factory=make_ids("LED"), clock=make_clock())


@pytest.fixture
def sample_config():
    """Sample configuration dictionary."""
    return {
        "storage_backend": "json",
        "data_dir": "/var/lib/stagegate",
        "on_storage_error": "fail",
        "hash_algorithm": "sha3_256",
        "seed_role_templates": True,
        "log_level": "DEBUG",
    }
