"""
Shared pytest fixtures for iamrotate tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from iamrotate import CredentialPair, KeyRecord, PersistError, RotationPolicy
from iamrotate.sinks import CredentialSinkInterface
from iamrotate.store import MemoryKeyStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class RecordingSink(CredentialSinkInterface):
    """Sink that remembers what it received, optionally failing instead."""

    def __init__(self, name: str, journal: list, fail: bool = False):
        self.name = name
        self.journal = journal
        self.fail = fail
        self.received = []

    def write(self, pair: CredentialPair) -> None:
        self.journal.append(("write", self.name))
        if self.fail:
            raise PersistError(self.name, "failed to update context: err")
        self.received.append(pair)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for age calculations."""
    return NOW


@pytest.fixture
def make_key():
    """Build a KeyRecord aged relative to NOW."""

    def _make(key_id: str, age_days: int = 0, hours: int = 0, current: bool = False) -> KeyRecord:
        return KeyRecord(
            id=key_id,
            created_at=NOW - timedelta(days=age_days, hours=hours),
            is_current=current,
            username="deploy-bot",
        )

    return _make


@pytest.fixture
def policy() -> RotationPolicy:
    """The default policy: 30 days, one key."""
    return RotationPolicy(max_age_days=30, max_key_count=1)


@pytest.fixture
def memory_store_factory():
    """Create a MemoryKeyStore holding the given keys."""

    def _make(keys, current_id, **kwargs) -> MemoryKeyStore:
        return MemoryKeyStore(keys, current_id=current_id, username="deploy-bot", **kwargs)

    return _make


@pytest.fixture
def recording_sink():
    """Create a RecordingSink writing into a shared journal."""

    def _make(name: str, journal: list, fail: bool = False) -> RecordingSink:
        return RecordingSink(name, journal, fail=fail)

    return _make
