"""
iamrotate - rotate the AWS IAM access keys of the current user.

Retires keys that are too old or in excess of the allowed count and, when
the key in use has expired, mints a replacement and saves it to a file,
the local AWS profile or a CircleCI context.
"""

__version__ = "1.0.0"

# Rotation engine
from .models import (
    KeyRecord,
    RotationPolicy,
    RotationPlan,
    Classification,
    CredentialPair,
    RotationResult,
    RotationState,
    days_old,
)
from .classifier import classify
from .planner import plan
from .errors import (
    RotationError,
    ConfigError,
    ContractViolation,
    ListError,
    DeleteError,
    CreateError,
    PersistError,
)


# Collaborators pull in boto3 and httpx, load them on first use
def __getattr__(name):
    """Lazy loading of stores, sinks and the executor."""
    if name in ("KeyStoreInterface", "MemoryKeyStore", "IAMKeyStore"):
        from . import store

        return getattr(store, name)
    elif name in ("CredentialSinkInterface", "FileSink", "ProfileSink", "CircleCIContextSink"):
        from . import sinks

        return getattr(sinks, name)
    elif name == "RotationExecutor":
        from .executor import RotationExecutor

        return RotationExecutor
    elif name == "KeyRotator":
        from .rotator import KeyRotator

        return KeyRotator
    raise AttributeError(f"module 'iamrotate' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Engine
    "KeyRecord",
    "RotationPolicy",
    "RotationPlan",
    "Classification",
    "CredentialPair",
    "RotationResult",
    "RotationState",
    "days_old",
    "classify",
    "plan",
    # Errors
    "RotationError",
    "ConfigError",
    "ContractViolation",
    "ListError",
    "DeleteError",
    "CreateError",
    "PersistError",
    # Collaborators (lazy)
    "KeyStoreInterface",
    "MemoryKeyStore",
    "IAMKeyStore",
    "CredentialSinkInterface",
    "FileSink",
    "ProfileSink",
    "CircleCIContextSink",
    "RotationExecutor",
    "KeyRotator",
]
