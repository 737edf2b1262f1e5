"""Builders for the transactions the engine issues as the system caller."""

from __future__ import annotations

from genesis_engine.core.errors import MalformedInputError
from genesis_engine.core.types import parse_address
from genesis_engine.execution.vm import TransactionEnvelope
from genesis_engine.registry import ContractRegistry

DEFAULT_TX_GAS_LIMIT = 2**64 - 1


def system_call(
    registry: ContractRegistry,
    target: str,
    payload: bytes,
    value: int = 0,
    gas_limit: int = DEFAULT_TX_GAS_LIMIT,
) -> TransactionEnvelope:
    """Call ``target`` from the system caller at zero gas price.

    ``value`` may only be non-zero for payable entry points.
    """
    if value < 0:
        raise MalformedInputError("value must be non-negative", value=value)
    return TransactionEnvelope(
        caller=registry.system_caller,
        target=parse_address(target),
        payload=payload,
        value=value,
        gas_limit=gas_limit,
        gas_price=0,
    )


def system_create(
    registry: ContractRegistry,
    init_code: bytes,
    constructor_args: bytes = b"",
    gas_limit: int = DEFAULT_TX_GAS_LIMIT,
) -> TransactionEnvelope:
    """Deploy ``init_code`` with ABI-encoded constructor arguments appended."""
    return TransactionEnvelope(
        caller=registry.system_caller,
        target=None,
        payload=init_code + constructor_args,
        value=0,
        gas_limit=gas_limit,
        gas_price=0,
    )
