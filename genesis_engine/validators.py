"""The ``getActiveValidators()`` query shared by post-generation checks and verification."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import function_signature_to_4byte_selector

from genesis_engine.core.errors import SchemaMismatchError
from genesis_engine.core.types import checksum, to_hex_bytes
from genesis_engine.execution.transactions import system_call
from genesis_engine.execution.vm import TransactionEnvelope
from genesis_engine.registry import ContractRegistry

# address validator, bytes consensusPubkey, bytes consensusPop, uint256 votingPower,
# uint64 validatorIndex, bytes networkAddresses, bytes fullnodeAddresses
VALIDATOR_RECORD_TYPE = "(address,bytes,bytes,uint256,uint64,bytes,bytes)"
ACTIVE_VALIDATORS_RESULT_TYPE = f"{VALIDATOR_RECORD_TYPE}[]"

GET_ACTIVE_VALIDATORS_SELECTOR = function_signature_to_4byte_selector("getActiveValidators()")


@dataclass(frozen=True)
class ValidatorRecord:
    """One entry of the active validator set."""

    address: str
    consensus_pubkey: bytes
    consensus_pop: bytes
    voting_power: int
    validator_index: int
    network_addresses: bytes
    fullnode_addresses: bytes

    @property
    def has_network_addresses(self) -> bool:
        return bool(self.network_addresses)

    @property
    def has_fullnode_addresses(self) -> bool:
        return bool(self.fullnode_addresses)

    @property
    def account_address(self) -> bytes:
        """Account address derived from the consensus public key (SHA3-256)."""
        return hashlib.sha3_256(self.consensus_pubkey).digest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": checksum(self.address),
            "consensus_pubkey": to_hex_bytes(self.consensus_pubkey),
            "voting_power": self.voting_power,
            "validator_index": self.validator_index,
            "has_network_addresses": self.has_network_addresses,
            "has_fullnode_addresses": self.has_fullnode_addresses,
        }


def active_validators_call(registry: ContractRegistry) -> TransactionEnvelope:
    """Zero-value read-only query against the validator manager."""
    return system_call(registry, registry.validator_manager, GET_ACTIVE_VALIDATORS_SELECTOR)


def decode_active_validators(output: bytes) -> list[ValidatorRecord]:
    """Decode ``getActiveValidators()`` return data.

    Output produced by an older, narrower record layout can occasionally be
    parsed under the wider one without error; it never re-encodes to the
    same bytes, so the round trip is checked too.

    Raises:
        SchemaMismatchError: if the output does not match the record layout.
    """
    try:
        (rows,) = decode([ACTIVE_VALIDATORS_RESULT_TYPE], output)
    except (DecodingError, OverflowError, ValueError) as exc:
        raise SchemaMismatchError(f"ABI decode failed: {exc}", output_length=len(output)) from exc

    try:
        reencoded = encode([ACTIVE_VALIDATORS_RESULT_TYPE], [rows])
    except EncodingError as exc:
        raise SchemaMismatchError(f"ABI decode failed: {exc}", output_length=len(output)) from exc
    if reencoded != bytes(output):
        raise SchemaMismatchError(
            "ABI decode failed: output does not round-trip under the validator record layout",
            output_length=len(output),
        )

    return [
        ValidatorRecord(
            address=row[0].lower(),
            consensus_pubkey=row[1],
            consensus_pop=row[2],
            voting_power=row[3],
            validator_index=row[4],
            network_addresses=row[5],
            fullnode_addresses=row[6],
        )
        for row in rows
    ]
