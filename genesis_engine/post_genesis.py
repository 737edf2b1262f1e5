"""Post-generation check.

Queries the freshly generated state for its active validator set and
compares it against the configuration. The check is advisory: problems are
logged, never raised, since the artifacts have already been written.
"""

from __future__ import annotations

import logging

from genesis_engine.config_schema import GenesisConfig
from genesis_engine.core.config import Settings
from genesis_engine.core.errors import ExecutionEngineError, SchemaMismatchError
from genesis_engine.core.types import SpecId, checksum, to_hex_bytes, truncate_hex
from genesis_engine.execution.engine import SequentialExecutor
from genesis_engine.execution.vm import Halt, Revert, VirtualMachine, prepare_environment
from genesis_engine.registry import ContractRegistry
from genesis_engine.state.bundle import BundleRetention, StateDelta
from genesis_engine.state.world_state import StateReader
from genesis_engine.validators import active_validators_call, decode_active_validators

logger = logging.getLogger(__name__)


def check_active_validators(
    vm: VirtualMachine,
    seeded: StateReader,
    delta: StateDelta,
    config: GenesisConfig,
    registry: ContractRegistry,
    settings: Settings,
) -> bool:
    """Return ``True`` when the queried validator set matches ``config``."""
    executor = SequentialExecutor(vm, retention=BundleRetention.PLAIN_STATE)
    env = prepare_environment(config.chain_id, settings)
    try:
        batch = executor.execute(
            seeded,
            SpecId(settings.spec_id),
            env,
            [active_validators_call(registry)],
            pre_bundle=delta,
        )
    except ExecutionEngineError as exc:
        logger.error("verify active validators error: %s", exc.message)
        return False

    outcome = batch.outcomes[0]
    if isinstance(outcome, Revert):
        logger.error("getActiveValidators call reverted")
        logger.error("Revert output: %s", to_hex_bytes(outcome.output))
        return False
    if isinstance(outcome, Halt):
        logger.error("getActiveValidators call halted: %s", outcome.reason)
        return False

    output = outcome.output
    logger.info("=== getActiveValidators call successful ===")
    logger.info("Output length: %d bytes", len(output))
    if len(output) <= settings.raw_output_inline_limit:
        logger.info("Raw output: %s", to_hex_bytes(output))
    else:
        logger.info("Raw output (truncated): %s",
                    truncate_hex(output, settings.raw_output_preview_bytes))

    try:
        validators = decode_active_validators(output)
    except SchemaMismatchError as exc:
        logger.error("Failed to decode getActiveValidators result: %s", exc.message)
        return False

    logger.info("Active validators count: %d", len(validators))
    if len(validators) != len(config.validators):
        logger.error(
            "Validator count mismatch! Expected: %d, Actual: %d",
            len(config.validators), len(validators),
        )
        return False

    for i, validator in enumerate(validators):
        logger.info("--- Validator %d ---", i + 1)
        logger.info("  ETH Address: %s", checksum(validator.address))
        logger.info("  Account Address (from consensus pubkey): %s",
                    to_hex_bytes(validator.account_address))
        logger.info("  Consensus Pubkey: %s", to_hex_bytes(validator.consensus_pubkey))
        logger.info("  Index: %d", validator.validator_index)
        logger.info("  Voting Power: %d", validator.voting_power)

    logger.info("All %d validators initialized successfully!", len(validators))
    return True
