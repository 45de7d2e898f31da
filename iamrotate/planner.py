"""
Rotation planning.

Turns a classification into a RotationPlan: which keys to delete and
whether a replacement must be minted. Pure and idempotent.
"""

import logging
from typing import Sequence

from iamrotate.errors import ConfigError, ContractViolation
from iamrotate.models import KeyRecord, RotationPlan, RotationState, as_utc

logger = logging.getLogger(__name__)


def plan(
    expired: Sequence[KeyRecord],
    valid: Sequence[KeyRecord],
    current_id: str,
    max_key_count: int,
) -> RotationPlan:
    """
    Compute the deletion/creation plan for one pass.

    Order of ``to_delete``:
        1. expired keys other than the current one, in listing order;
        2. surplus valid keys other than the current one, oldest first,
           until at most ``max_key_count`` valid keys remain;
        3. the current key, last, only when it is expired.

    A replacement is created exactly when the current key is expired.

    Raises:
        ConfigError: If ``max_key_count`` is below 1.
        ContractViolation: If ``current_id`` is in neither sequence.
    """
    if max_key_count < 1:
        raise ConfigError(f"max key count must be at least 1, got {max_key_count}")

    current_expired = any(k.id == current_id for k in expired)
    current_valid = any(k.id == current_id for k in valid)
    if not current_expired and not current_valid:
        raise ContractViolation(current_id, step=RotationState.PLANNED)

    to_delete = [k for k in expired if k.id != current_id]

    surplus = len(valid) - max_key_count
    if surplus > 0:
        # sorted() is stable, so equal ages keep listing order
        candidates = sorted(
            (k for k in valid if k.id != current_id),
            key=lambda k: as_utc(k.created_at),
        )
        for key in candidates[:surplus]:
            logger.debug(f"surplus valid key {key.id} marked for deletion")
            to_delete.append(key)

    if current_expired:
        to_delete.append(next(k for k in expired if k.id == current_id))

    return RotationPlan(
        to_delete=tuple(to_delete),
        create_replacement=current_expired,
        current_id=current_id,
    )


def describe(rotation_plan: RotationPlan) -> str:
    """One-line summary of a plan for the log."""
    if rotation_plan.is_noop:
        return "nothing to do"
    parts = []
    room = rotation_plan.room_to_make
    if room:
        parts.append(f"delete {', '.join(k.id for k in room)}")
    if rotation_plan.create_replacement:
        parts.append("create a replacement key")
    if rotation_plan.deletes_current:
        parts.append(f"then delete current key {rotation_plan.current_id}")
    return "; ".join(parts)
