"""
Rotation execution.

Applies a RotationPlan to a key store and a list of credential sinks:

    1. delete every planned key except the current one (make room)
    2. create the replacement, if planned
    3. hand the replacement to every sink, in order
    4. only then delete the current key, if planned

Each step runs only when the previous one succeeded. The first failure
stops the pass; nothing is retried or rolled back.
"""

import logging
from typing import Callable, Sequence

from iamrotate.errors import (
    CreateError,
    DeleteError,
    PersistError,
    RotationError,
)
from iamrotate.models import CredentialPair, RotationPlan, RotationResult, RotationState
from iamrotate.sinks import CredentialSinkInterface
from iamrotate.store import KeyStoreInterface

logger = logging.getLogger(__name__)


class RotationExecutor:
    """
    Executes one RotationPlan.

    The store and sinks are passed in explicitly; the executor keeps no
    state beyond the pass it is running and can run a single plan only.

    Example:
        >>> executor = RotationExecutor(store, [FileSink("new-key.json")])
        >>> result = executor.execute(rotation_plan)
        >>> result.deleted
        ['AKIAOLD...']
    """

    def __init__(self, store: KeyStoreInterface, sinks: Sequence[CredentialSinkInterface] = ()):
        self._store = store
        self._sinks = list(sinks)
        self._used = False
        self.state = RotationState.PLANNED

    def _fail(self, error: RotationError, step: RotationState) -> RotationError:
        if error.step is None:
            error.step = step
        logger.debug(
            f"rotation aborted during step {step.value} "
            f"(last completed: {self.state.value}): {error.message}"
        )
        return error

    def _guard(
        self,
        step: RotationState,
        call: Callable,
        wrap: Callable[[Exception], RotationError],
    ):
        """Run a collaborator call for ``step``, stamping or wrapping any failure."""
        try:
            return call()
        except RotationError as e:
            raise self._fail(e, step)
        except Exception as e:
            raise self._fail(wrap(e), step) from e

    def _delete(self, step: RotationState, key_id: str, result: RotationResult) -> None:
        self._guard(
            step,
            lambda: self._store.delete_key(key_id),
            lambda e: DeleteError(key_id, str(e)),
        )
        result.deleted.append(key_id)
        logger.info(f"removed key {key_id}")

    def _persist(self, pair: CredentialPair, result: RotationResult) -> None:
        for sink in self._sinks:
            self._guard(
                RotationState.PERSISTED,
                lambda: sink.write(pair),
                lambda e: PersistError(sink.name, str(e)),
            )
            result.sinks.append(sink.name)

    def execute(self, plan: RotationPlan) -> RotationResult:
        """
        Run the plan against the store and sinks.

        Returns:
            A RotationResult listing deleted key ids, the created key id and
            the sinks that received it.

        Raises:
            DeleteError: A planned deletion was rejected.
            CreateError: The replacement could not be minted.
            PersistError: A sink failed; later sinks were not attempted and
                the current key was kept.
            RotationError: The executor was already used.
        """
        if self._used:
            raise RotationError("a rotation executor runs a single plan", step=self.state)
        self._used = True

        result = RotationResult(state=self.state, create_replacement=plan.create_replacement)

        for key in plan.room_to_make:
            self._delete(RotationState.ROOM_MADE, key.id, result)
        self.state = result.state = RotationState.ROOM_MADE

        if plan.create_replacement:
            logger.info("no valid keys, making a new key")
            pair = self._guard(
                RotationState.CREATED,
                self._store.create_key,
                lambda e: CreateError(str(e)),
            )
            result.created = pair.id
            self.state = result.state = RotationState.CREATED
            logger.info(f"created key {pair.id}")

            self._persist(pair, result)
            self.state = result.state = RotationState.PERSISTED

        if plan.deletes_current:
            self._delete(RotationState.FINALIZED, plan.current_id, result)
        self.state = result.state = RotationState.FINALIZED

        return result
