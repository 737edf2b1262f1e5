"""Encoder for the ``Genesis.initialize`` call.

Converts a :class:`GenesisConfig` into the ABI-encoded call payload and
the value (aggregate validator stake) the payable call must carry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from genesis_engine.config_schema import GenesisConfig, OracleTaskParams
from genesis_engine.core.errors import MalformedInputError
from genesis_engine.core.types import (
    ZERO_ADDRESS,
    keccak256,
    parse_address,
    parse_hex_bytes,
    parse_uint,
    parse_uint128,
    parse_uint256,
)

logger = logging.getLogger(__name__)


# ── ABI layout of GenesisInitParams ──────────────────────────────────────────

VALIDATOR_CONFIG_TYPE = "(uint256,uint256,uint64,bool,uint64,uint256,bool,uint256)"
STAKING_CONFIG_TYPE = "(uint256,uint64,uint64,uint256)"
GOVERNANCE_CONFIG_TYPE = "(uint128,uint256,uint64,uint64,uint64)"
RANDOMNESS_CONFIG_TYPE = "(uint8,(uint128,uint128,uint128))"
ORACLE_TASK_TYPE = "(uint32,uint256,bytes32,bytes)"
BRIDGE_CONFIG_TYPE = "(bool,address,uint256)"
ORACLE_CONFIG_TYPE = f"(uint32[],address[],{ORACLE_TASK_TYPE}[],{BRIDGE_CONFIG_TYPE})"
RSA_JWK_TYPE = "(string,string,string,string,string)"
JWK_CONFIG_TYPE = f"(bytes[],{RSA_JWK_TYPE}[][])"
INITIAL_VALIDATOR_TYPE = "(address,address,uint256,string,bytes,bytes,bytes,bytes,uint256)"

GENESIS_INIT_PARAMS_TYPE = (
    f"({VALIDATOR_CONFIG_TYPE},{STAKING_CONFIG_TYPE},{GOVERNANCE_CONFIG_TYPE},"
    f"uint64,uint64,bytes,bytes,{RANDOMNESS_CONFIG_TYPE},{ORACLE_CONFIG_TYPE},"
    f"{JWK_CONFIG_TYPE},{INITIAL_VALIDATOR_TYPE}[])"
)

INITIALIZE_SIGNATURE = f"initialize({GENESIS_INIT_PARAMS_TYPE})"
INITIALIZE_SELECTOR = function_signature_to_4byte_selector(INITIALIZE_SIGNATURE)


@dataclass(frozen=True)
class EncodedCall:
    payload: bytes
    value: int


class ConfigEncoder(Protocol):
    """Turns a configuration object into a call payload and funding amount."""

    def encode(self, config: GenesisConfig) -> EncodedCall:
        ...


# ── Field codecs ─────────────────────────────────────────────────────────────


def _u64(value: int | str) -> int:
    return parse_uint(value, 64)


def _address_bytes(value: str) -> bytes:
    return bytes.fromhex(parse_address(value)[2:])


def uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def bcs_encode_string(text: str) -> bytes:
    """BCS string: ULEB128 byte length followed by the UTF-8 bytes."""
    data = text.encode("utf-8")
    return uleb128(len(data)) + data


def encode_task_name(task_name: str) -> bytes:
    """``0x`` hex is left-aligned into 32 bytes; anything else is keccak-256 hashed."""
    if task_name.startswith("0x"):
        raw = parse_hex_bytes(task_name)
        if len(raw) > 32:
            raise MalformedInputError(f"taskName hex too long: {task_name}")
        return raw.ljust(32, b"\x00")
    return keccak256(task_name.encode("utf-8"))


def calculate_total_stake(config: GenesisConfig) -> int:
    """Sum of every initial validator's stake, in wei."""
    return sum(parse_uint256(v.stake_amount) for v in config.validators)


# ── Encoder ──────────────────────────────────────────────────────────────────


class GenesisInitializeEncoder:
    """ABI encoder for ``Genesis.initialize(GenesisInitParams)``."""

    def encode(self, config: GenesisConfig) -> EncodedCall:
        params = self.to_abi_params(config)
        total_stake = calculate_total_stake(config)
        self._log_parameters(config, total_stake)

        payload = INITIALIZE_SELECTOR + encode([GENESIS_INIT_PARAMS_TYPE], [params])
        logger.info("Call data length: %d", len(payload))
        return EncodedCall(payload=payload, value=total_stake)

    def to_abi_params(self, config: GenesisConfig) -> tuple:
        vc = config.validator_config
        validator_config = (
            parse_uint256(vc.minimum_bond),
            parse_uint256(vc.maximum_bond),
            _u64(vc.unbonding_delay_micros),
            vc.allow_validator_set_change,
            _u64(vc.voting_power_increase_limit_pct),
            parse_uint256(vc.max_validator_set_size),
            vc.auto_evict_enabled,
            parse_uint256(vc.auto_evict_threshold) if vc.auto_evict_threshold else 0,
        )

        sc = config.staking_config
        staking_config = (
            parse_uint256(sc.minimum_stake),
            _u64(sc.lockup_duration_micros),
            _u64(sc.unbonding_delay_micros),
            parse_uint256(sc.minimum_proposal_stake),
        )

        gc = config.governance_config
        governance_config = (
            parse_uint128(gc.min_voting_threshold),
            parse_uint256(gc.required_proposer_stake),
            _u64(gc.voting_duration_micros),
            _u64(gc.execution_delay_micros),
            _u64(gc.execution_window_micros),
        )

        rc = config.randomness_config
        randomness_config = (
            parse_uint(rc.variant, 8),
            (
                parse_uint128(rc.config_v2.secrecy_threshold),
                parse_uint128(rc.config_v2.reconstruction_threshold),
                parse_uint128(rc.config_v2.fast_path_secrecy_threshold),
            ),
        )

        oc = config.oracle_config
        bridge = oc.bridge_config
        oracle_config = (
            [parse_uint(t, 32) for t in oc.source_types],
            [_address_bytes(cb) for cb in oc.callbacks],
            [self._oracle_task(t) for t in oc.tasks],
            (
                bridge.deploy,
                _address_bytes(bridge.trusted_bridge or ZERO_ADDRESS),
                parse_uint256(bridge.trusted_source_id),
            ),
        )

        jc = config.jwk_config
        jwk_config = (
            [parse_hex_bytes(issuer) for issuer in jc.issuers],
            [[(k.kid, k.kty, k.alg, k.e, k.n) for k in provider] for provider in jc.jwks],
        )

        validators = [
            (
                _address_bytes(v.operator),
                _address_bytes(v.owner),
                parse_uint256(v.stake_amount),
                v.moniker,
                parse_hex_bytes(v.consensus_pubkey),
                parse_hex_bytes(v.consensus_pop),
                bcs_encode_string(v.network_addresses),
                bcs_encode_string(v.fullnode_addresses),
                parse_uint256(v.voting_power),
            )
            for v in config.validators
        ]

        return (
            validator_config,
            staking_config,
            governance_config,
            _u64(config.epoch_interval_micros),
            _u64(config.major_version),
            parse_hex_bytes(config.consensus_config),
            parse_hex_bytes(config.execution_config),
            randomness_config,
            oracle_config,
            jwk_config,
            validators,
        )

    @staticmethod
    def _oracle_task(task: OracleTaskParams) -> tuple:
        return (
            parse_uint(task.source_type, 32),
            parse_uint256(task.source_id),
            encode_task_name(task.task_name),
            task.config.encode("utf-8"),
        )

    @staticmethod
    def _log_parameters(config: GenesisConfig, total_stake: int) -> None:
        logger.info("=== Genesis Initialize Parameters ===")
        logger.info("Total stake value: %d wei", total_stake)
        logger.info("Validator count: %d", len(config.validators))
        logger.info("Epoch interval: %d micros", config.epoch_interval_micros)
        logger.info("Major version: %d", config.major_version)
        logger.info("Randomness variant: %d", config.randomness_config.variant)
        logger.info("Oracle source types: %s", config.oracle_config.source_types)
        logger.info("JWK issuers count: %d", len(config.jwk_config.issuers))
        bridge = config.oracle_config.bridge_config
        logger.info(
            "Bridge config: deploy=%s, trustedBridge=%s",
            bridge.deploy, bridge.trusted_bridge or "(not set)",
        )
        for i, task in enumerate(config.oracle_config.tasks):
            logger.info(
                "  Task %d: sourceType=%d, sourceId=%d, taskName=%s",
                i, task.source_type, task.source_id, task.task_name,
            )
