"""
iamrotate error taxonomy.

Every error is fatal to the rotation pass that raised it. Errors carry the
step of the pass they were raised in so the operator knows where to look
before re-running.
"""

from typing import Optional


class RotationError(Exception):
    """Base exception for all rotation failures."""

    def __init__(self, message: str, step=None):
        super().__init__(message)
        self.message = message
        self.step = step

    def __str__(self) -> str:
        if self.step is not None:
            return f"[{self.step.value}] {self.message}"
        return self.message


class ConfigError(RotationError):
    """Raised when a required policy or settings value is missing or invalid."""

    pass


class ContractViolation(RotationError):
    """Raised when the key set does not contain the key this process runs as."""

    def __init__(self, current_id: str, step=None):
        super().__init__(
            f"current access key {current_id!r} is not in the key set returned by the store",
            step=step,
        )
        self.current_id = current_id


class ListError(RotationError):
    """Raised when the key store cannot list the identity's keys."""

    pass


class DeleteError(RotationError):
    """Raised when the key store rejects a deletion."""

    def __init__(self, key_id: str, reason: str, step=None):
        super().__init__(f"could not delete key {key_id!r}; {reason}", step=step)
        self.key_id = key_id


class CreateError(RotationError):
    """Raised when the key store cannot mint a new key."""

    def __init__(self, reason: str, step=None):
        super().__init__(f"problem with making a new access key: {reason}", step=step)


class PersistError(RotationError):
    """Raised when a credential sink fails to store a new key."""

    def __init__(self, sink: str, reason: str, step=None):
        super().__init__(f"sink {sink!r} failed: {reason}", step=step)
        self.sink = sink
        self.reason: Optional[str] = reason
