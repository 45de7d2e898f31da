"""
iamrotate data model.

Plain dataclasses shared by the classifier, planner and executor. Records
and plans are frozen so that a plan computed once cannot drift while it is
being executed.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple, List

from iamrotate.errors import ConfigError


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_old(created_at: datetime, now: Optional[datetime] = None) -> int:
    """
    Whole days elapsed since ``created_at``.

    Truncates instead of rounding: a key created 23h59m ago is 0 days old.
    """
    now = as_utc(now or utcnow())
    return (now - as_utc(created_at)) // timedelta(days=1)


class RotationState(Enum):
    """Steps of a single rotation pass, in the order they are reached."""

    LISTED = "listed"
    CLASSIFIED = "classified"
    PLANNED = "planned"
    ROOM_MADE = "room-made"
    CREATED = "created"
    PERSISTED = "persisted"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class KeyRecord:
    """
    Metadata for one access key issued to the identity.

    Attributes:
        id: Access key id, unique within the identity's key set.
        created_at: When the key was issued.
        is_current: True for the key this process authenticated with.
        status: "Active" or "Inactive" as reported by the store.
        username: Owner of the key.
    """

    id: str
    created_at: datetime
    is_current: bool = False
    status: str = "Active"
    username: str = ""

    def age_days(self, now: Optional[datetime] = None) -> int:
        """Age of the key in whole days."""
        return days_old(self.created_at, now)


@dataclass(frozen=True)
class RotationPolicy:
    """Age and count limits for one rotation pass."""

    max_age_days: int = 30
    max_key_count: int = 1

    def __post_init__(self):
        if self.max_age_days < 0:
            raise ConfigError(f"max age must be 0 or more days, got {self.max_age_days}")
        if self.max_key_count < 1:
            raise ConfigError(f"max key count must be at least 1, got {self.max_key_count}")


@dataclass(frozen=True)
class Classification:
    """Keys partitioned by age, in listing order."""

    expired: Tuple[KeyRecord, ...]
    valid: Tuple[KeyRecord, ...]
    current: Optional[KeyRecord] = None

    @property
    def total(self) -> int:
        return len(self.expired) + len(self.valid)


@dataclass(frozen=True)
class RotationPlan:
    """
    What a rotation pass will do.

    The current key is never in ``to_delete`` except as its last element,
    and only when a replacement is to be created first.
    """

    to_delete: Tuple[KeyRecord, ...]
    create_replacement: bool
    current_id: str = ""

    @property
    def deletes_current(self) -> bool:
        return bool(self.to_delete) and self.to_delete[-1].id == self.current_id

    @property
    def room_to_make(self) -> Tuple[KeyRecord, ...]:
        """Deletions that run before a replacement is created."""
        return tuple(k for k in self.to_delete if k.id != self.current_id)

    @property
    def is_noop(self) -> bool:
        return not self.to_delete and not self.create_replacement


@dataclass
class CredentialPair:
    """
    A freshly minted access key and its secret.

    The secret is left out of ``repr()`` so the pair can be logged safely.
    """

    id: str
    secret: str = field(repr=False)
    owner_username: str = ""

    def to_dict(self) -> dict:
        """Serialize to the JSON shape written by the file sink."""
        return {
            "aws_access_key_id": self.id,
            "aws_secret_access_key": self.secret,
            "username": self.owner_username,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialPair":
        """Read back the shape produced by ``to_dict``."""
        return cls(
            id=data["aws_access_key_id"],
            secret=data["aws_secret_access_key"],
            owner_username=data.get("username", ""),
        )


@dataclass
class RotationResult:
    """
    Outcome of a rotation pass.

    Attributes:
        deleted: Key ids removed, in deletion order (planned ones on a dry run).
        created: Id of the new key, if one was created. Never the secret.
        create_replacement: True when the plan mints a new key before
            deleting the current one, including on a dry run.
        sinks: Names of the sinks that received the new key.
        state: Last step reached.
        dry_run: True when nothing was changed.
    """

    deleted: List[str] = field(default_factory=list)
    created: Optional[str] = None
    create_replacement: bool = False
    sinks: List[str] = field(default_factory=list)
    state: RotationState = RotationState.PLANNED
    dry_run: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data
