"""Genesis generator — coordinates the bootstrap pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from genesis_engine.config_schema import GenesisConfig
from genesis_engine.core.config import Settings, get_settings
from genesis_engine.core.errors import MalformedInputError
from genesis_engine.core.types import SpecId
from genesis_engine.encoder import ConfigEncoder, GenesisInitializeEncoder, calculate_total_stake
from genesis_engine.execution.classifier import (
    LoggingOutcomeObserver,
    OutcomeDiagnosis,
    ensure_all_succeeded,
)
from genesis_engine.execution.engine import SequentialExecutor
from genesis_engine.execution.transactions import system_call
from genesis_engine.execution.vm import VirtualMachine, prepare_environment
from genesis_engine.post_genesis import check_active_validators
from genesis_engine.registry import ContractRegistry, default_registry
from genesis_engine.seeder import BytecodeSource, ContractSeeder
from genesis_engine.snapshot import ArtifactPaths, ArtifactWriter, GenesisSnapshot, merge_snapshot
from genesis_engine.state.bundle import BundleRetention, StateDelta

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    delta: StateDelta
    snapshot: GenesisSnapshot
    diagnoses: list[OutcomeDiagnosis]
    paths: ArtifactPaths
    validators_match: bool


class GenesisGenerator:
    """Runs one genesis generation.

    Flow:
    1. SEED — install system contract bytecode and fund the system caller
    2. EXECUTE — run ``Genesis.initialize`` through the virtual machine
    3. CLASSIFY — abort on anything but success
    4. MERGE — overlay the delta onto the seeded contracts
    5. EMIT — write the three artifacts
    6. CHECK — query the validator set (advisory)

    Any failure before step 5 raises and leaves the output directory untouched.
    """

    def __init__(
        self,
        vm: VirtualMachine,
        registry: ContractRegistry | None = None,
        settings: Settings | None = None,
        encoder: ConfigEncoder | None = None,
    ) -> None:
        self._vm = vm
        self._registry = registry or default_registry()
        self._settings = settings or get_settings()
        self._encoder = encoder or GenesisInitializeEncoder()

    def run(
        self,
        source: BytecodeSource,
        config: GenesisConfig,
        output_dir: str | Path,
    ) -> GenerationResult:
        logger.info("=== Starting Genesis deployment and initialization ===")

        total_stake = calculate_total_stake(config)
        logger.info("Total stake required: %d wei", total_stake)

        seeder = ContractSeeder(self._registry, source, self._settings)
        seeded = seeder.seed(total_stake)

        env = prepare_environment(config.chain_id, self._settings)
        call = self._encoder.encode(config)
        pooled = self._registry.pooled_stake_holder
        if pooled is None:
            raise MalformedInputError(
                "Registry has no contract designated to receive the initialize call"
            )
        txs = [
            system_call(
                self._registry,
                pooled.address,
                call.payload,
                value=call.value,
                gas_limit=self._settings.tx_gas_limit,
            )
        ]

        executor = SequentialExecutor(
            self._vm,
            observer=LoggingOutcomeObserver(self._registry),
            retention=BundleRetention.REVERTS,
        )
        batch = executor.execute(seeded.view, SpecId(self._settings.spec_id), env, txs)
        logger.debug("The bundle state is %s", batch.delta)

        diagnoses = ensure_all_succeeded(batch.outcomes)
        logger.info("=== All %d transactions completed successfully ===", len(diagnoses))

        snapshot = merge_snapshot(seeded.records, batch.delta, self._registry)

        writer = ArtifactWriter(output_dir, self._settings)
        logger.info("Output directory: %s", writer.output_dir)
        paths = writer.write_all(batch.delta.without(self._registry.system_caller), snapshot)

        validators_match = check_active_validators(
            self._vm, seeded.view, batch.delta, config, self._registry, self._settings
        )

        logger.info("Genesis Generate completed successfully")
        return GenerationResult(
            delta=batch.delta,
            snapshot=snapshot,
            diagnoses=diagnoses,
            paths=paths,
            validators_match=validators_match,
        )
