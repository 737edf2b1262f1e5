"""Outcome classifier — turns raw execution outcomes into diagnostics.

Reverts are matched by their 4-byte error selector against the system
contracts' known error set. Successful outcomes are scanned for the
``Log(string,uint256)`` debug event. Halts are surfaced verbatim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from genesis_engine.core.errors import TransactionFailedError
from genesis_engine.core.types import keccak256, to_hex_bytes
from genesis_engine.execution.vm import (
    ExecutionOutcome,
    Halt,
    LogEntry,
    Revert,
    Success,
    TransactionEnvelope,
)
from genesis_engine.registry import ContractRegistry

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    REVERT = "revert"
    HALT = "halt"


class ErrorCause(str, Enum):
    """Known revert causes raised by the system contracts."""

    ONLY_SYSTEM_CALLER = "OnlySystemCaller"
    UNKNOWN_PARAM = "UnknownParam"
    INVALID_VALUE = "InvalidValue"
    ONLY_COINBASE = "OnlyCoinbase"
    ONLY_ZERO_GAS_PRICE = "OnlyZeroGasPrice"
    ONLY_SYSTEM_CONTRACT = "OnlySystemContract"
    ERROR_STRING = "Error(string)"
    PANIC = "Panic(uint256)"
    UNKNOWN = "Unknown error selector"


KNOWN_ERROR_SELECTORS: dict[bytes, ErrorCause] = {
    bytes.fromhex("49fd36f2"): ErrorCause.ONLY_SYSTEM_CALLER,
    bytes.fromhex("97b88354"): ErrorCause.UNKNOWN_PARAM,
    bytes.fromhex("0a5a6041"): ErrorCause.INVALID_VALUE,
    bytes.fromhex("116c64a8"): ErrorCause.ONLY_COINBASE,
    bytes.fromhex("83f1b1d3"): ErrorCause.ONLY_ZERO_GAS_PRICE,
    bytes.fromhex("f22c4390"): ErrorCause.ONLY_SYSTEM_CONTRACT,
    bytes.fromhex("08c379a0"): ErrorCause.ERROR_STRING,
    bytes.fromhex("4e487b71"): ErrorCause.PANIC,
}

DIAGNOSTIC_EVENT_SIGNATURE = "Log(string,uint256)"
DIAGNOSTIC_EVENT_TOPIC = keccak256(DIAGNOSTIC_EVENT_SIGNATURE.encode())


@dataclass(frozen=True)
class DiagnosticMessage:
    """A decoded ``Log(string,uint256)`` event."""

    message: str
    value: int
    address: str = ""

    def render(self) -> str:
        return f"txn event Log: {self.message!r}, {self.value}."


@dataclass
class OutcomeDiagnosis:
    """Classification of one execution outcome."""

    kind: OutcomeKind
    gas_used: int
    output: bytes = b""
    selector: bytes | None = None
    cause: ErrorCause | None = None
    payload: bytes = b""
    reason: str = ""
    halt_reason: str = ""
    messages: list[DiagnosticMessage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def render(self) -> str:
        """Multi-line human-readable summary."""
        if self.kind is OutcomeKind.SUCCESS:
            trace = "".join(m.render() for m in self.messages)
            return f"Success with gas used: {self.gas_used}, {trace}"

        if self.kind is OutcomeKind.HALT:
            return f"Halt: {self.halt_reason} with gas used: {self.gas_used}"

        lines = [f"Revert with gas used: {self.gas_used}"]
        if self.selector is not None and self.cause is not None:
            lines.append(f"Function selector: {to_hex_bytes(self.selector)} ({self.cause.value})")
        if self.reason:
            lines.append(f"Reason: {self.reason}")
        if self.payload:
            lines.append(f"Additional data: {to_hex_bytes(self.payload)}")
        return "\n".join(lines)


# ── Decoding helpers ─────────────────────────────────────────────────────────


def decode_diagnostic_logs(logs: Sequence[LogEntry]) -> list[DiagnosticMessage]:
    """Pick out and decode every ``Log(string,uint256)`` event; others are ignored."""
    messages: list[DiagnosticMessage] = []
    for entry in logs:
        if not entry.topics or entry.topics[0] != DIAGNOSTIC_EVENT_TOPIC:
            continue
        try:
            message, value = decode(["string", "uint256"], entry.data)
        except DecodingError:
            logger.debug("Undecodable Log event from %s", entry.address)
            continue
        messages.append(DiagnosticMessage(message=message, value=value, address=entry.address))
    return messages


def _decode_reason(cause: ErrorCause, payload: bytes) -> str:
    """Text of an ``Error(string)`` revert or the code of a ``Panic(uint256)``."""
    try:
        if cause is ErrorCause.ERROR_STRING:
            (text,) = decode(["string"], payload)
            return text
        if cause is ErrorCause.PANIC:
            (code,) = decode(["uint256"], payload)
            return f"panic code {code:#04x}"
    except DecodingError:
        return ""
    return ""


def classify_outcome(outcome: ExecutionOutcome) -> OutcomeDiagnosis:
    """Classify a single outcome."""
    if isinstance(outcome, Success):
        return OutcomeDiagnosis(
            kind=OutcomeKind.SUCCESS,
            gas_used=outcome.gas_used,
            output=outcome.output,
            messages=decode_diagnostic_logs(outcome.logs),
        )

    if isinstance(outcome, Halt):
        return OutcomeDiagnosis(
            kind=OutcomeKind.HALT,
            gas_used=outcome.gas_used,
            halt_reason=outcome.reason,
        )

    if isinstance(outcome, Revert):
        diagnosis = OutcomeDiagnosis(
            kind=OutcomeKind.REVERT,
            gas_used=outcome.gas_used,
            output=outcome.output,
        )
        if len(outcome.output) >= 4:
            selector = outcome.output[:4]
            diagnosis.selector = selector
            diagnosis.cause = KNOWN_ERROR_SELECTORS.get(selector, ErrorCause.UNKNOWN)
            diagnosis.payload = outcome.output[4:]
            diagnosis.reason = _decode_reason(diagnosis.cause, diagnosis.payload)
        return diagnosis

    raise TypeError(f"Unknown execution outcome: {outcome!r}")


def ensure_all_succeeded(outcomes: Sequence[ExecutionOutcome]) -> list[OutcomeDiagnosis]:
    """Classify every outcome; raise on the first one that did not succeed.

    Raises:
        TransactionFailedError: carrying the index and diagnosis of the
            first failing transaction.
    """
    diagnoses: list[OutcomeDiagnosis] = []
    for i, outcome in enumerate(outcomes):
        diagnosis = classify_outcome(outcome)
        if not diagnosis.succeeded:
            logger.error("=== Transaction %d failed ===", i + 1)
            logger.error("Detailed analysis: %s", diagnosis.render())
            raise TransactionFailedError(
                f"Genesis transaction {i + 1} failed: {diagnosis.render()}",
                index=i,
                diagnosis=diagnosis,
            )
        diagnoses.append(diagnosis)
    return diagnoses


class LoggingOutcomeObserver:
    """Observer for :class:`SequentialExecutor` that logs each outcome's analysis."""

    def __init__(self, registry: ContractRegistry | None = None) -> None:
        self._registry = registry

    def __call__(self, index: int, tx: TransactionEnvelope, outcome: ExecutionOutcome) -> None:
        diagnosis = classify_outcome(outcome)
        target = tx.target or "<create>"
        context = {"tx_index": index, "gas_used": diagnosis.gas_used}
        if self._registry is not None and tx.target:
            target = self._registry.label(tx.target)

        if diagnosis.succeeded:
            logger.info("Transaction %d -> %s: %s", index + 1, target, diagnosis.render(),
                        extra=context)
        else:
            logger.error("Transaction %d -> %s: %s", index + 1, target, diagnosis.render(),
                         extra=context)
