"""Shared fixtures for the genesis engine test suite."""

from __future__ import annotations

from typing import Callable

import pytest
from eth_abi import encode

from genesis_engine.config_schema import GenesisConfig, parse_genesis_config
from genesis_engine.core.config import Settings
from genesis_engine.core.types import SpecId
from genesis_engine.execution.vm import (
    AccountChange,
    ExecutionEnvironment,
    Success,
    TransactionEnvelope,
    TransactionResult,
)
from genesis_engine.registry import (
    ContractRegistry,
    SystemContract,
    default_registry,
)
from genesis_engine.seeder import MappingBytecodeSource
from genesis_engine.state.world_state import AccountInfo, StateReader
from genesis_engine.validators import ACTIVE_VALIDATORS_RESULT_TYPE

Handler = Callable[[StateReader, TransactionEnvelope, ExecutionEnvironment, SpecId], TransactionResult]


# ── Fake virtual machines ────────────────────────────────────────────────────


class ScriptedVM:
    """Returns pre-scripted results, one per transaction, and records every call."""

    def __init__(self, *responses: TransactionResult | Handler) -> None:
        self.responses = list(responses)
        self.calls: list[TransactionEnvelope] = []

    def transact(
        self,
        state: StateReader,
        tx: TransactionEnvelope,
        env: ExecutionEnvironment,
        spec_id: SpecId,
    ) -> TransactionResult:
        self.calls.append(tx)
        if not self.responses:
            raise AssertionError(f"Unexpected transaction #{len(self.calls)}")
        response = self.responses.pop(0)
        if callable(response):
            return response(state, tx, env, spec_id)
        return response


class LedgerVM:
    """Moves ``value`` from caller to target and counts calls in target slot 0.

    Slot 1 of the target records the caller balance the transaction saw, so
    a reordering or a missed commit changes the final state.
    """

    def __init__(self) -> None:
        self.calls = 0

    def transact(self, state, tx, env, spec_id) -> TransactionResult:
        self.calls += 1
        caller = state.basic(tx.caller) or AccountInfo()
        target = state.basic(tx.target) or AccountInfo()
        count = state.storage(tx.target, 0)
        changes = {
            tx.caller: AccountChange(
                info=AccountInfo(
                    balance=caller.balance - tx.value,
                    nonce=caller.nonce + 1,
                    code=caller.code,
                )
            ),
            tx.target: AccountChange(
                info=target.with_balance(target.balance + tx.value),
                storage={0: count + 1, 1: caller.balance},
            ),
        }
        return TransactionResult(outcome=Success(gas_used=21_000), changes=changes)


class ConstantVM:
    """Same outcome for every transaction, no state changes."""

    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls = 0

    def transact(self, state, tx, env, spec_id) -> TransactionResult:
        self.calls += 1
        return TransactionResult(outcome=self.outcome)


# ── Settings / registry ──────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def registry() -> ContractRegistry:
    return default_registry()


@pytest.fixture
def small_registry() -> ContractRegistry:
    """Two-contract layout for merge tests."""
    return ContractRegistry(
        contracts=(
            SystemContract("Genesis", "0x" + "00" * 16 + "0000aaaa", holds_pooled_stake=True),
            SystemContract("ValidatorManagement", "0x" + "00" * 16 + "0000bbbb"),
        ),
        system_caller="0x" + "00" * 16 + "0000cccc",
        validator_manager="0x" + "00" * 16 + "0000bbbb",
    )


@pytest.fixture
def upper_case_registry(small_registry: ContractRegistry) -> ContractRegistry:
    """``small_registry`` with every address written in upper-case hex."""
    def upper(address: str) -> str:
        return "0x" + address[2:].upper()

    return ContractRegistry(
        contracts=tuple(
            SystemContract(c.name, upper(c.address), holds_pooled_stake=c.holds_pooled_stake)
            for c in small_registry
        ),
        system_caller=upper(small_registry.system_caller),
        validator_manager=upper(small_registry.validator_manager),
    )


@pytest.fixture
def bytecode_source(registry: ContractRegistry) -> MappingBytecodeSource:
    """Distinct short runtime blob per registered contract."""
    return MappingBytecodeSource(
        {name: "0x6080" + f"{i:04x}" + "00" for i, name in enumerate(registry.names)}
    )


# ── Genesis configuration ────────────────────────────────────────────────────

VALIDATOR_A = "0x" + "11" * 20
VALIDATOR_B = "0x" + "22" * 20


@pytest.fixture
def config_data() -> dict:
    return {
        "chainId": 1337,
        "validatorConfig": {
            "minimumBond": "1000000000000000000",
            "maximumBond": "1000000000000000000000000",
            "unbondingDelayMicros": 86_400_000_000,
            "allowValidatorSetChange": True,
            "votingPowerIncreaseLimitPct": 20,
            "maxValidatorSetSize": "100",
        },
        "stakingConfig": {
            "minimumStake": "1000000000000000000",
            "lockupDurationMicros": 604_800_000_000,
            "unbondingDelayMicros": 86_400_000_000,
            "minimumProposalStake": "10000000000000000000",
        },
        "governanceConfig": {
            "minVotingThreshold": "1000",
            "requiredProposerStake": "10000000000000000000",
            "votingDurationMicros": 604_800_000_000,
            "executionDelayMicros": 86_400_000_000,
            "executionWindowMicros": 172_800_000_000,
        },
        "epochIntervalMicros": 7_200_000_000,
        "majorVersion": 1,
        "consensusConfig": "0x0102",
        "executionConfig": "0x",
        "randomnessConfig": {
            "variant": 1,
            "configV2": {
                "secrecyThreshold": 6,
                "reconstructionThreshold": 7,
                "fastPathSecrecyThreshold": 8,
            },
        },
        "oracleConfig": {
            "sourceTypes": [0, 1],
            "callbacks": ["0x" + "00" * 19 + "f4", "0x" + "00" * 19 + "f5"],
            "tasks": [
                {"sourceType": 0, "sourceId": 1, "taskName": "blocks", "config": ""},
            ],
        },
        "jwkConfig": {
            "issuers": ["0x68747470733a2f2f6163636f756e74732e676f6f676c652e636f6d"],
            "jwks": [[{"kid": "k1", "kty": "RSA", "alg": "RS256", "e": "AQAB", "n": "abcd"}]],
        },
        "validators": [
            {
                "operator": VALIDATOR_A,
                "owner": VALIDATOR_A,
                "stakeAmount": "2000000000000000000",
                "moniker": "alpha",
                "consensusPubkey": "0x" + "aa" * 48,
                "consensusPop": "0x" + "bb" * 96,
                "networkAddresses": "/ip4/127.0.0.1/tcp/2024",
                "fullnodeAddresses": "/ip4/127.0.0.1/tcp/2025",
                "votingPower": "2",
            },
            {
                "operator": VALIDATOR_B,
                "owner": VALIDATOR_B,
                "stakeAmount": "3000000000000000000",
                "moniker": "beta",
                "consensusPubkey": "0x" + "cc" * 48,
                "consensusPop": "0x" + "dd" * 96,
                "networkAddresses": "/ip4/127.0.0.2/tcp/2024",
                "fullnodeAddresses": "/ip4/127.0.0.2/tcp/2025",
                "votingPower": "3",
            },
        ],
    }


@pytest.fixture
def genesis_config(config_data: dict) -> GenesisConfig:
    return parse_genesis_config(config_data)


# ── Validator query output ───────────────────────────────────────────────────


def encode_validators(rows: list[tuple]) -> bytes:
    """ABI output of ``getActiveValidators()`` for ``rows``."""
    return encode([ACTIVE_VALIDATORS_RESULT_TYPE], [rows])


def validator_row(address: str, index: int, power: int = 1) -> tuple:
    return (
        address,
        b"\xab" * 48,
        b"\xcd" * 96,
        power,
        index,
        b"\x17/ip4/127.0.0.1/tcp/2024",
        b"",
    )


@pytest.fixture
def active_validators_output() -> bytes:
    return encode_validators([validator_row(VALIDATOR_A, 0, 2), validator_row(VALIDATOR_B, 1, 3)])


@pytest.fixture
def legacy_validators_output() -> bytes:
    """Output of the older five-field record layout."""
    return encode(
        ["(address,bytes,bytes,uint256,uint64)[]"],
        [[(VALIDATOR_A, b"\xab" * 48, b"\xcd" * 96, 2, 0)]],
    )


# ── Factory fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def make_scripted_vm() -> type[ScriptedVM]:
    return ScriptedVM


@pytest.fixture
def make_constant_vm() -> type[ConstantVM]:
    return ConstantVM


@pytest.fixture
def ledger_vm() -> LedgerVM:
    return LedgerVM()


@pytest.fixture
def make_validators_output() -> Callable[[list[tuple]], bytes]:
    return encode_validators


@pytest.fixture
def make_validator_row() -> Callable[..., tuple]:
    return validator_row
