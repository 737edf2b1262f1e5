"""Error hierarchy for genesis generation and verification.

Every error carries a :class:`FailureClass`. Fatal errors stop a
generation run outright; recoverable ones are folded into a
verification report. The CLI turns either into a process exit code.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class FailureClass(str, Enum):
    """How far a failure is allowed to propagate."""

    FATAL = "fatal"              # the run must stop, nothing is emitted
    RECOVERABLE = "recoverable"  # report it and let the caller decide


class GenesisError(Exception):
    """Base class for all errors raised by the engine."""

    failure_class: FailureClass = FailureClass.FATAL
    exit_code: int = 1

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def is_fatal(self) -> bool:
        return self.failure_class is FailureClass.FATAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "class": self.failure_class.value,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


class MalformedInputError(GenesisError, ValueError):
    """A numeric, address or hex field could not be parsed."""


class BytecodeSourceError(GenesisError):
    """A registered contract has no usable bytecode blob."""


class BackendConfigurationError(GenesisError):
    """The external virtual machine could not be located or built."""


class ExecutionEngineError(GenesisError):
    """The virtual machine raised instead of returning an outcome."""


class TransactionFailedError(GenesisError):
    """A bootstrap transaction finished with anything other than success."""

    def __init__(self, message: str, *, index: int, diagnosis: Any) -> None:
        super().__init__(message, index=index)
        self.index = index
        self.diagnosis = diagnosis


class ArtifactWriteError(GenesisError):
    """An output document could not be written completely."""


class SnapshotLoadError(GenesisError):
    """A persisted snapshot could not be read or parsed."""


class SchemaMismatchError(GenesisError):
    """Query output does not decode under the expected result layout."""

    failure_class = FailureClass.RECOVERABLE
