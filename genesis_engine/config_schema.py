"""Genesis configuration document.

The document is JSON (or YAML) with camelCase keys. Large integers are
given as decimal or ``0x`` strings and byte strings as hex; both are parsed
by the encoder so that a malformed value is reported with its field.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from genesis_engine.core.errors import MalformedInputError

logger = logging.getLogger(__name__)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ValidatorConfigParams(_ConfigModel):
    minimum_bond: str = Field(alias="minimumBond")
    maximum_bond: str = Field(alias="maximumBond")
    unbonding_delay_micros: int = Field(alias="unbondingDelayMicros")
    allow_validator_set_change: bool = Field(alias="allowValidatorSetChange")
    voting_power_increase_limit_pct: int = Field(alias="votingPowerIncreaseLimitPct")
    max_validator_set_size: str = Field(alias="maxValidatorSetSize")
    auto_evict_enabled: bool = Field(default=False, alias="autoEvictEnabled")
    auto_evict_threshold: str = Field(default="", alias="autoEvictThreshold")


class StakingConfigParams(_ConfigModel):
    minimum_stake: str = Field(alias="minimumStake")
    lockup_duration_micros: int = Field(alias="lockupDurationMicros")
    unbonding_delay_micros: int = Field(alias="unbondingDelayMicros")
    minimum_proposal_stake: str = Field(alias="minimumProposalStake")


class GovernanceConfigParams(_ConfigModel):
    min_voting_threshold: str = Field(alias="minVotingThreshold")
    required_proposer_stake: str = Field(alias="requiredProposerStake")
    voting_duration_micros: int = Field(alias="votingDurationMicros")
    execution_delay_micros: int = Field(alias="executionDelayMicros")
    execution_window_micros: int = Field(alias="executionWindowMicros")


class ConfigV2Data(_ConfigModel):
    secrecy_threshold: int | str = Field(alias="secrecyThreshold")
    reconstruction_threshold: int | str = Field(alias="reconstructionThreshold")
    fast_path_secrecy_threshold: int | str = Field(alias="fastPathSecrecyThreshold")


class RandomnessConfigData(_ConfigModel):
    variant: int  # 0 = off, 1 = v2
    config_v2: ConfigV2Data = Field(alias="configV2")


class OracleTaskParams(_ConfigModel):
    source_type: int = Field(alias="sourceType")
    source_id: int = Field(alias="sourceId")
    task_name: str = Field(alias="taskName")
    config: str = ""


class BridgeConfig(_ConfigModel):
    deploy: bool = False
    trusted_bridge: str = Field(default="", alias="trustedBridge")
    trusted_source_id: int = Field(default=0, alias="trustedSourceId")


class OracleInitParams(_ConfigModel):
    source_types: list[int] = Field(alias="sourceTypes")
    callbacks: list[str]
    tasks: list[OracleTaskParams] = Field(default_factory=list)
    bridge_config: BridgeConfig = Field(default_factory=BridgeConfig, alias="bridgeConfig")


class RsaJwk(_ConfigModel):
    kid: str
    kty: str
    alg: str
    e: str
    n: str


class JWKInitParams(_ConfigModel):
    issuers: list[str]
    jwks: list[list[RsaJwk]]


class InitialValidator(_ConfigModel):
    operator: str
    owner: str
    stake_amount: str = Field(alias="stakeAmount")
    moniker: str
    consensus_pubkey: str = Field(alias="consensusPubkey")
    consensus_pop: str = Field(alias="consensusPop")
    # human-readable multiaddr, e.g. /ip4/127.0.0.1/tcp/2024/noise-ik/<key>/handshake/0
    network_addresses: str = Field(alias="networkAddresses")
    fullnode_addresses: str = Field(alias="fullnodeAddresses")
    voting_power: str = Field(alias="votingPower")


class GenesisConfig(_ConfigModel):
    """Top-level genesis configuration."""

    chain_id: int = Field(default=1337, alias="chainId")
    validator_config: ValidatorConfigParams = Field(alias="validatorConfig")
    staking_config: StakingConfigParams = Field(alias="stakingConfig")
    governance_config: GovernanceConfigParams = Field(alias="governanceConfig")
    epoch_interval_micros: int = Field(alias="epochIntervalMicros")
    major_version: int = Field(alias="majorVersion")
    consensus_config: str = Field(alias="consensusConfig")
    execution_config: str = Field(alias="executionConfig")
    randomness_config: RandomnessConfigData = Field(alias="randomnessConfig")
    oracle_config: OracleInitParams = Field(alias="oracleConfig")
    jwk_config: JWKInitParams = Field(alias="jwkConfig")
    validators: list[InitialValidator]


def parse_genesis_config(data: dict[str, Any]) -> GenesisConfig:
    try:
        return GenesisConfig.model_validate(data)
    except ValidationError as exc:
        raise MalformedInputError(f"Invalid genesis configuration: {exc}") from exc


def load_genesis_config(path: str | Path) -> GenesisConfig:
    """Read a genesis configuration from a ``.json`` or ``.yaml``/``.yml`` file."""
    path = Path(path)
    logger.info("Reading genesis configuration from: %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedInputError(f"Failed to read config file {path}: {exc}", path=path) from exc

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise MalformedInputError(f"Failed to parse config file {path}: {exc}", path=path) from exc

    if not isinstance(data, dict):
        raise MalformedInputError(f"Config file {path} must contain an object", path=path)

    config = parse_genesis_config(data)
    logger.info("Genesis configuration loaded successfully")
    logger.info("Validator count: %d", len(config.validators))
    logger.info("Epoch interval: %d micros", config.epoch_interval_micros)
    logger.info("Major version: %d", config.major_version)
    return config
