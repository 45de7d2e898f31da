"""
iamrotate rotation pass.

Ties the pieces together: list the identity's keys, classify them, plan,
log what is about to happen, then execute. One KeyRotator runs one pass
per ``rotate()`` call; passes against the same identity must not overlap.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from iamrotate.classifier import classify, log_key_table
from iamrotate.config import RotationSettings
from iamrotate.errors import ContractViolation, ListError, RotationError
from iamrotate.executor import RotationExecutor
from iamrotate.models import RotationPlan, RotationPolicy, RotationResult, RotationState
from iamrotate.planner import describe, plan
from iamrotate.sinks import (
    CircleCIContextSink,
    CredentialSinkInterface,
    FileSink,
    ProfileSink,
)
from iamrotate.store import IAMKeyStore, KeyStoreInterface

logger = logging.getLogger(__name__)


def sinks_from_settings(settings: RotationSettings, http_client=None) -> List[CredentialSinkInterface]:
    """
    Build the sink list for an invocation.

    The file sink always runs first. A CircleCI token switches the second
    sink from the local AWS profile to the CircleCI context.
    """
    sinks: List[CredentialSinkInterface] = [FileSink(settings.filename)]
    if settings.circleci_token:
        logger.debug("saving new keys to a CircleCI context")
        sinks.append(
            CircleCIContextSink(
                token=settings.circleci_token,
                context_id=settings.circleci_context_id,
                client=http_client,
            )
        )
    else:
        logger.debug("saving new keys to the local credentials profile")
        sinks.append(ProfileSink(profile=settings.profile or None))
    return sinks


class KeyRotator:
    """
    Runs rotation passes for one identity.

    Example:
        >>> rotator = KeyRotator(store, sinks, RotationPolicy(max_age_days=30))
        >>> result = rotator.rotate()
        >>> result.created
        'AKIA...'
    """

    def __init__(
        self,
        store: KeyStoreInterface,
        sinks: Sequence[CredentialSinkInterface],
        policy: RotationPolicy,
    ):
        self.store = store
        self.sinks = list(sinks)
        self.policy = policy

    @classmethod
    def from_settings(cls, settings: RotationSettings, store: Optional[KeyStoreInterface] = None):
        """Build a rotator for validated settings, using IAM unless a store is given."""
        settings.validate()
        policy = RotationPolicy(
            max_age_days=settings.max_days_allowed,
            max_key_count=settings.max_keys_allowed,
        )
        if store is None:
            store = IAMKeyStore.from_settings(settings)
        return cls(store, sinks_from_settings(settings), policy)

    def _list(self):
        try:
            current_id = self.store.current_key_id()
            keys = self.store.list_keys(current_id)
        except RotationError as e:
            if e.step is None:
                e.step = RotationState.LISTED
            raise
        except Exception as e:
            raise ListError(str(e), step=RotationState.LISTED) from e
        return current_id, keys

    def plan(self, now: Optional[datetime] = None) -> RotationPlan:
        """List, classify and plan without changing anything."""
        current_id, keys = self._list()
        logger.info(f"number of keys {len(keys)}")
        log_key_table(keys, self.policy, current_id, now)

        classification = classify(keys, self.policy, current_id, now)
        if classification.current is None:
            raise ContractViolation(current_id, step=RotationState.CLASSIFIED)

        logger.info(f"\t{len(classification.valid)} are valid keys")
        logger.info(f"\t{len(classification.expired)} are expired keys")

        rotation_plan = plan(
            classification.expired,
            classification.valid,
            current_id,
            self.policy.max_key_count,
        )
        logger.info(f"\t{len(rotation_plan.to_delete)} will be removed")
        logger.info(f"plan: {describe(rotation_plan)}")
        return rotation_plan

    def rotate(self, dry_run: bool = False, now: Optional[datetime] = None) -> RotationResult:
        """
        Run one full rotation pass.

        Args:
            dry_run: Stop after planning; the store and sinks are not touched.
            now: Reference time for key ages; defaults to the current UTC time.

        Returns:
            What the pass did, or would do on a dry run.

        Raises:
            RotationError: On the first failure, with the failing step set.
        """
        rotation_plan = self.plan(now)

        if dry_run:
            logger.info("dry run, no keys were changed")
            return RotationResult(
                deleted=[k.id for k in rotation_plan.to_delete],
                create_replacement=rotation_plan.create_replacement,
                state=RotationState.PLANNED,
                dry_run=True,
            )

        return RotationExecutor(self.store, self.sinks).execute(rotation_plan)
