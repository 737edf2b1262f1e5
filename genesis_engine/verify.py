"""Replay verifier.

Loads a persisted genesis, rebuilds the account ledger from it and issues
one read-only ``getActiveValidators()`` query through the execution engine.
A genesis built from stale contract bytecode returns validator records in an
older layout; that is reported as a failed verification rather than raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from genesis_engine.core.config import Settings
from genesis_engine.core.errors import SchemaMismatchError, SnapshotLoadError
from genesis_engine.core.types import (
    SpecId,
    checksum,
    parse_address,
    parse_hex_bytes,
    parse_hex_quantity,
    parse_uint,
    truncate_hex,
)
from genesis_engine.execution.engine import SequentialExecutor
from genesis_engine.execution.vm import (
    ExecutionOutcome,
    Halt,
    Revert,
    VirtualMachine,
    prepare_environment,
)
from genesis_engine.registry import ContractRegistry
from genesis_engine.state.bundle import BundleRetention
from genesis_engine.state.world_state import Account, AccountInfo, WorldStateView
from genesis_engine.validators import (
    ValidatorRecord,
    active_validators_call,
    decode_active_validators,
)

logger = logging.getLogger(__name__)

STALE_LAYOUT_HINT = (
    "This likely means the genesis was created with old contracts lacking "
    "networkAddresses/fullnodeAddresses fields"
)


@dataclass
class VerificationReport:
    success: bool
    validators: list[ValidatorRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def validator_count(self) -> int:
        return len(self.validators)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "validator_count": self.validator_count,
            "validators": [v.to_dict() for v in self.validators],
            "errors": list(self.errors),
        }


# ── Loading ──────────────────────────────────────────────────────────────────


def _hex_field(address: str, name: str, value: Any, *, allow_int: bool = True) -> Any:
    """Reject JSON values that cannot hold a hex quantity or byte string."""
    if value is None or isinstance(value, str):
        return value
    if allow_int and isinstance(value, int) and not isinstance(value, bool):
        return value
    raise SnapshotLoadError(
        f"Account {address} has a non-hex {name}: {value!r}", address=address, field=name
    )


def _parse_nonce(value: Any) -> int:
    if value is None:
        return 0
    # decimal or 0x-prefixed, bounded to u64
    return parse_uint(value, 64)


def _parse_entry(address: str, entry: Mapping[str, Any]) -> Account:
    # merged-accounts artifact nests balance/nonce/code under "info"
    info = entry.get("info", entry)
    if not isinstance(info, Mapping):
        raise SnapshotLoadError(f"Account {address} has no account info", address=address)

    code = parse_hex_bytes(_hex_field(address, "code", info.get("code"), allow_int=False))
    raw_storage = entry.get("storage") or {}
    if not isinstance(raw_storage, Mapping):
        raise SnapshotLoadError(f"Account {address} storage is not an object", address=address)
    storage = {
        parse_hex_quantity(slot): parse_hex_quantity(_hex_field(address, "storage value", value))
        for slot, value in raw_storage.items()
    }
    return Account(
        info=AccountInfo(
            balance=parse_hex_quantity(_hex_field(address, "balance", info.get("balance"))),
            nonce=_parse_nonce(_hex_field(address, "nonce", info.get("nonce"))),
            code=code or None,
        ),
        storage={slot: value for slot, value in storage.items() if value},
    )


def parse_snapshot_document(document: Any) -> dict[str, Account]:
    """Accept either ``{"alloc": {...}}`` or a merged-accounts mapping."""
    if not isinstance(document, Mapping):
        raise SnapshotLoadError("Genesis document must be a JSON object")
    entries = document.get("alloc", document)
    if not isinstance(entries, Mapping):
        raise SnapshotLoadError("Genesis alloc must be a JSON object")

    accounts: dict[str, Account] = {}
    for raw_address, entry in entries.items():
        if not isinstance(entry, Mapping):
            raise SnapshotLoadError(f"Account {raw_address} is not an object", address=raw_address)
        try:
            address = parse_address(raw_address)
            accounts[address] = _parse_entry(raw_address, entry)
        except (TypeError, ValueError) as exc:
            raise SnapshotLoadError(
                f"Invalid account {raw_address}: {exc}", address=raw_address
            ) from exc
    return accounts


def load_snapshot(path: str | Path) -> dict[str, Account]:
    """Read a persisted genesis document.

    Raises:
        SnapshotLoadError: if the file cannot be read or parsed.
    """
    path = Path(path)
    logger.info("Loading genesis file: %s", path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SnapshotLoadError(f"Failed to read genesis file {path}: {exc}", path=path) from exc
    except json.JSONDecodeError as exc:
        raise SnapshotLoadError(f"Failed to parse genesis file {path}: {exc}", path=path) from exc

    accounts = parse_snapshot_document(document)
    logger.info("Genesis loaded successfully, %d accounts in alloc", len(accounts))
    return accounts


def rehydrate(accounts: Mapping[str, Account]) -> WorldStateView:
    """Fresh view holding every snapshot entry."""
    view = WorldStateView()
    for address, account in accounts.items():
        view.insert_account(address, account)
    return view


# ── Verification ─────────────────────────────────────────────────────────────


class ReplayVerifier:
    """Checks a genesis against the validator query the runtime performs."""

    def __init__(
        self,
        vm: VirtualMachine,
        registry: ContractRegistry,
        settings: Settings,
    ) -> None:
        self._vm = vm
        self._registry = registry
        self._settings = settings

    def verify_file(self, path: str | Path) -> VerificationReport:
        logger.info("=== Genesis Verification ===")
        return self.verify(load_snapshot(path))

    def verify(self, accounts: Mapping[str, Account]) -> VerificationReport:
        """Run the validator query against ``accounts``.

        Missing contract, reverted or halted query and undecodable output all
        come back as a failed report. Errors from the virtual machine itself
        propagate.
        """
        target = self._registry.validator_manager
        name = self._registry.label(target)
        if target not in {a.lower() for a in accounts}:
            return VerificationReport(
                success=False,
                errors=[f"{name} contract not found at expected address: {checksum(target)}"],
            )
        logger.info("%s contract found at %s", name, checksum(target))

        view = rehydrate(accounts)
        env = prepare_environment(self._settings.chain_id, self._settings)
        executor = SequentialExecutor(self._vm, retention=BundleRetention.PLAIN_STATE)

        logger.info("Simulating getActiveValidators() call...")
        batch = executor.execute(
            view,
            SpecId(self._settings.spec_id),
            env,
            [active_validators_call(self._registry)],
        )
        return self._process_outcome(batch.outcomes[0])

    def _raw(self, data: bytes) -> str:
        if len(data) <= self._settings.raw_output_inline_limit:
            return truncate_hex(data, len(data))
        return truncate_hex(data, self._settings.raw_output_preview_bytes)

    def _process_outcome(self, outcome: ExecutionOutcome) -> VerificationReport:
        if isinstance(outcome, Revert):
            logger.error("getActiveValidators() call reverted")
            logger.error("Revert output: %s", self._raw(outcome.output))
            return VerificationReport(
                success=False, errors=[f"Call reverted: {self._raw(outcome.output)}"]
            )

        if isinstance(outcome, Halt):
            logger.error("getActiveValidators() call halted: %s", outcome.reason)
            return VerificationReport(success=False, errors=[f"Call halted: {outcome.reason}"])

        output = outcome.output
        logger.info("getActiveValidators() call successful")
        logger.info("Output length: %d bytes", len(output))

        try:
            validators = decode_active_validators(output)
        except SchemaMismatchError as exc:
            logger.error("ABI decode FAILED: %s", exc.message)
            logger.error("Recompile contracts and regenerate the genesis")
            return VerificationReport(
                success=False,
                errors=[exc.message, STALE_LAYOUT_HINT, f"Raw output: {self._raw(output)}"],
            )

        logger.info("ABI decode successful! %d validators found", len(validators))
        for i, v in enumerate(validators):
            logger.info("--- Validator %d ---", i)
            logger.info("  Address: %s", checksum(v.address))
            logger.info("  Voting Power: %d", v.voting_power)
            logger.info("  Index: %d", v.validator_index)
            logger.info("  Network Addresses: %d bytes", len(v.network_addresses))
            logger.info("  Fullnode Addresses: %d bytes", len(v.fullnode_addresses))
        return VerificationReport(success=True, validators=validators)
