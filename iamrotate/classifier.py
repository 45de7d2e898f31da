"""
Key classification.

Splits an identity's keys into expired and valid by age. Pure functions,
no store access.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from iamrotate.models import Classification, KeyRecord, RotationPolicy, utcnow

logger = logging.getLogger(__name__)

TABLE_HEADER = "key id               | status   | username | days old | created                   | verdict"


def classify(
    keys: Iterable[KeyRecord],
    policy: RotationPolicy,
    current_id: str,
    now: Optional[datetime] = None,
) -> Classification:
    """
    Partition keys into expired and valid.

    A key is expired when its age in whole days exceeds
    ``policy.max_age_days``. Both partitions keep the listing order of
    ``keys``. The returned ``current`` is None when ``current_id`` is not
    among the keys, which callers must treat as a contract violation.

    Args:
        keys: The identity's key set, as listed by the store.
        policy: Age limit to apply.
        current_id: Access key id this process authenticated with.
        now: Reference time; defaults to the current UTC time.

    Returns:
        A Classification with new tuples; ``keys`` is not modified.
    """
    now = now or utcnow()
    expired: List[KeyRecord] = []
    valid: List[KeyRecord] = []
    current = None

    for key in keys:
        if key.id == current_id:
            current = key
        if key.age_days(now) > policy.max_age_days:
            expired.append(key)
        else:
            valid.append(key)

    return Classification(expired=tuple(expired), valid=tuple(valid), current=current)


def format_key_table(
    keys: Iterable[KeyRecord],
    policy: RotationPolicy,
    current_id: str,
    now: Optional[datetime] = None,
) -> List[str]:
    """Render one line per key for the log, header first."""
    now = now or utcnow()
    lines = [TABLE_HEADER]
    for key in keys:
        age = key.age_days(now)
        verdict = "expired" if age > policy.max_age_days else "valid"
        if key.id == current_id:
            verdict += " (current)"
        lines.append(
            f"{key.id:<20} | {key.status:<8} | {key.username} | {age:>8} | "
            f"{key.created_at.isoformat()} | {verdict}"
        )
    return lines


def log_key_table(keys, policy: RotationPolicy, current_id: str, now=None) -> None:
    """Log the classification table before anything is changed."""
    for line in format_key_table(keys, policy, current_id, now):
        logger.info(line)
