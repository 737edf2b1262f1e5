"""System contract registry.

The registry is the single source of truth mapping contract names to their
fixed genesis addresses. It is built once at startup and handed to every
component that needs it (seeder, emitter, verifier); nothing mutates it.

Address ranges:
  0x1625F0xxx  consensus engine
  0x1625F1xxx  runtime configuration
  0x1625F2xxx  staking & validator
  0x1625F3xxx  governance
  0x1625F4xxx  oracle
  0x1625F5xxx  precompiles
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import lru_cache

from genesis_engine.core.errors import MalformedInputError
from genesis_engine.core.types import parse_address


def _system_address(suffix: str) -> str:
    return parse_address("0x" + suffix.rjust(40, "0"))


# Consensus engine
SYSTEM_CALLER_ADDR = _system_address("1625F0000")
GENESIS_ADDR = _system_address("1625F0001")

# Runtime configuration
TIMESTAMP_ADDR = _system_address("1625F1000")
STAKE_CONFIG_ADDR = _system_address("1625F1001")
VALIDATOR_CONFIG_ADDR = _system_address("1625F1002")
RANDOMNESS_CONFIG_ADDR = _system_address("1625F1003")
GOVERNANCE_CONFIG_ADDR = _system_address("1625F1004")
EPOCH_CONFIG_ADDR = _system_address("1625F1005")
VERSION_CONFIG_ADDR = _system_address("1625F1006")
CONSENSUS_CONFIG_ADDR = _system_address("1625F1007")
EXECUTION_CONFIG_ADDR = _system_address("1625F1008")
ORACLE_TASK_CONFIG_ADDR = _system_address("1625F1009")
ON_DEMAND_ORACLE_TASK_CONFIG_ADDR = _system_address("1625F100A")

# Staking & validator
STAKING_ADDR = _system_address("1625F2000")
VALIDATOR_MANAGER_ADDR = _system_address("1625F2001")
DKG_ADDR = _system_address("1625F2002")
RECONFIGURATION_ADDR = _system_address("1625F2003")
BLOCK_ADDR = _system_address("1625F2004")

# Governance
GOVERNANCE_ADDR = _system_address("1625F3000")

# Oracle
NATIVE_ORACLE_ADDR = _system_address("1625F4000")
JWK_MANAGER_ADDR = _system_address("1625F4001")
ORACLE_REQUEST_QUEUE_ADDR = _system_address("1625F4002")

# Precompiles
NATIVE_MINT_PRECOMPILE_ADDR = _system_address("1625F5000")


@dataclass(frozen=True)
class SystemContract:
    """A registered system contract: where it lives and whether it holds pooled stake."""

    name: str
    address: str
    holds_pooled_stake: bool = False


@dataclass(frozen=True)
class ContractRegistry:
    """Immutable, ordered set of system contracts plus the privileged caller."""

    contracts: tuple[SystemContract, ...]
    system_caller: str
    validator_manager: str
    _by_name: dict[str, SystemContract] = field(init=False, repr=False, compare=False)
    _by_address: dict[str, SystemContract] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        contracts = tuple(
            replace(contract, address=parse_address(contract.address))
            for contract in self.contracts
        )
        object.__setattr__(self, "contracts", contracts)
        object.__setattr__(self, "system_caller", parse_address(self.system_caller))
        object.__setattr__(self, "validator_manager", parse_address(self.validator_manager))

        by_name: dict[str, SystemContract] = {}
        by_address: dict[str, SystemContract] = {}
        for contract in contracts:
            if contract.name in by_name:
                raise MalformedInputError(f"Duplicate system contract name: {contract.name}")
            if contract.address in by_address:
                raise MalformedInputError(
                    f"Duplicate system contract address: {contract.address} "
                    f"({by_address[contract.address].name}, {contract.name})"
                )
            by_name[contract.name] = contract
            by_address[contract.address] = contract

        if self.system_caller in by_address:
            raise MalformedInputError("System caller must not be a registered contract")
        if sum(1 for c in self.contracts if c.holds_pooled_stake) > 1:
            raise MalformedInputError("At most one contract may hold pooled stake")

        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_by_address", by_address)

    def __iter__(self):
        return iter(self.contracts)

    def __len__(self) -> int:
        return len(self.contracts)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._by_address

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.contracts]

    @property
    def pooled_stake_holder(self) -> SystemContract | None:
        for contract in self.contracts:
            if contract.holds_pooled_stake:
                return contract
        return None

    def by_name(self, name: str) -> SystemContract:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown system contract: {name}") from None

    def by_address(self, address: str) -> SystemContract | None:
        return self._by_address.get(address.lower())

    def label(self, address: str) -> str:
        """Human-readable name for diagnostics, falling back to the raw address."""
        if address.lower() == self.system_caller:
            return "SystemCaller"
        contract = self.by_address(address)
        return contract.name if contract else address


# StakePool instances are created during Genesis.initialize, not pre-deployed.
DEFAULT_CONTRACTS: tuple[SystemContract, ...] = (
    SystemContract("Genesis", GENESIS_ADDR, holds_pooled_stake=True),
    SystemContract("Reconfiguration", RECONFIGURATION_ADDR),
    SystemContract("StakingConfig", STAKE_CONFIG_ADDR),
    SystemContract("Staking", STAKING_ADDR),
    SystemContract("ValidatorManagement", VALIDATOR_MANAGER_ADDR),
    SystemContract("Governance", GOVERNANCE_ADDR),
    SystemContract("ValidatorConfig", VALIDATOR_CONFIG_ADDR),
    SystemContract("Blocker", BLOCK_ADDR),
    SystemContract("Timestamp", TIMESTAMP_ADDR),
    SystemContract("JWKManager", JWK_MANAGER_ADDR),
    SystemContract("NativeOracle", NATIVE_ORACLE_ADDR),
    SystemContract("RandomnessConfig", RANDOMNESS_CONFIG_ADDR),
    SystemContract("DKG", DKG_ADDR),
    SystemContract("GovernanceConfig", GOVERNANCE_CONFIG_ADDR),
    SystemContract("EpochConfig", EPOCH_CONFIG_ADDR),
    SystemContract("VersionConfig", VERSION_CONFIG_ADDR),
    SystemContract("ConsensusConfig", CONSENSUS_CONFIG_ADDR),
    SystemContract("ExecutionConfig", EXECUTION_CONFIG_ADDR),
    SystemContract("OracleTaskConfig", ORACLE_TASK_CONFIG_ADDR),
    SystemContract("OnDemandOracleTaskConfig", ON_DEMAND_ORACLE_TASK_CONFIG_ADDR),
)


@lru_cache
def default_registry() -> ContractRegistry:
    """The network's system contract layout."""
    return ContractRegistry(
        contracts=DEFAULT_CONTRACTS,
        system_caller=SYSTEM_CALLER_ADDR,
        validator_manager=VALIDATOR_MANAGER_ADDR,
    )
