"""Interface to the external virtual machine.

The engine never interprets bytecode itself. A backend implements
:class:`VirtualMachine`: given a read-only state view, one transaction, the
block environment and a protocol revision, it returns the outcome plus the
account-level writes the transaction produced. Backends are located at
runtime from a ``"package.module:factory"`` path.
"""

from __future__ import annotations

import importlib
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable

from genesis_engine.core.config import Settings
from genesis_engine.core.errors import BackendConfigurationError
from genesis_engine.core.types import SpecId
from genesis_engine.state.world_state import AccountInfo, StateReader

logger = logging.getLogger(__name__)


# ── Transactions and environment ─────────────────────────────────────────────


@dataclass(frozen=True)
class TransactionEnvelope:
    """One transaction issued by the privileged system caller.

    ``target`` is the callee address, or ``None`` for contract creation.
    """

    caller: str
    target: str | None
    payload: bytes = b""
    value: int = 0
    gas_limit: int = 2**64 - 1
    gas_price: int = 0

    @property
    def is_create(self) -> bool:
        return self.target is None

    @property
    def selector(self) -> bytes:
        return self.payload[:4] if len(self.payload) >= 4 else b""


@dataclass(frozen=True)
class ExecutionEnvironment:
    """Block-level context shared by every transaction in a batch."""

    chain_id: int
    gas_limit: int
    timestamp: int
    block_number: int = 0
    coinbase: str = "0x" + "00" * 20
    base_fee: int = 0


def prepare_environment(chain_id: int, settings: Settings) -> ExecutionEnvironment:
    """Environment for a genesis run.

    The timestamp is wall-clock seconds; system contracts derive lock-up
    deadlines from it during initialisation.
    """
    return ExecutionEnvironment(
        chain_id=chain_id,
        gas_limit=settings.block_gas_limit,
        timestamp=int(time.time()),
    )


# ── Outcomes ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LogEntry:
    """An event emitted during execution."""

    address: str
    topics: tuple[bytes, ...] = ()
    data: bytes = b""


@dataclass(frozen=True)
class Success:
    gas_used: int
    output: bytes = b""
    logs: tuple[LogEntry, ...] = ()

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True)
class Revert:
    gas_used: int
    output: bytes = b""

    @property
    def is_success(self) -> bool:
        return False


@dataclass(frozen=True)
class Halt:
    reason: str
    gas_used: int

    @property
    def is_success(self) -> bool:
        return False


ExecutionOutcome = Union[Success, Revert, Halt]


@dataclass
class AccountChange:
    """Post-transaction state of one account touched by a transaction.

    ``storage`` holds only the slots the transaction wrote (slot → new value).
    """

    info: AccountInfo
    storage: dict[int, int] = field(default_factory=dict)
    created: bool = False
    destroyed: bool = False


@dataclass
class TransactionResult:
    outcome: ExecutionOutcome
    changes: dict[str, AccountChange] = field(default_factory=dict)


@runtime_checkable
class VirtualMachine(Protocol):
    """External execution engine."""

    def transact(
        self,
        state: StateReader,
        tx: TransactionEnvelope,
        env: ExecutionEnvironment,
        spec_id: SpecId,
    ) -> TransactionResult:
        ...


# ── Backend loading ─────────────────────────────────────────────────────────


def load_virtual_machine(path: str) -> VirtualMachine:
    """Import ``"package.module:factory"`` and build the backend.

    ``factory`` may be a class or any zero-argument callable; an object that
    already satisfies :class:`VirtualMachine` is used as-is.
    """
    if not path:
        raise BackendConfigurationError(
            "No virtual machine backend configured (set GENESIS_VM_BACKEND or pass --vm)"
        )
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise BackendConfigurationError(
            f"Invalid backend path {path!r}, expected 'package.module:factory'", path=path
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise BackendConfigurationError(
            f"Cannot import backend module {module_name}: {exc}", path=path
        ) from exc

    try:
        target = getattr(module, attr)
    except AttributeError as exc:
        raise BackendConfigurationError(
            f"Backend module {module_name} has no attribute {attr}", path=path
        ) from exc

    if not isinstance(target, type) and isinstance(target, VirtualMachine):
        backend = target
    elif callable(target):
        backend = target()
    else:
        backend = None

    if backend is None or not isinstance(backend, VirtualMachine):
        raise BackendConfigurationError(
            f"{path} did not produce an object with a transact() method", path=path
        )

    logger.info("Loaded virtual machine backend %s", path)
    return backend
