"""Snapshot merger and artifact emitter.

Combines the seeded system contracts with the state delta of the bootstrap
batch into the final genesis account map, and writes the three output
documents: the raw delta, the merged accounts and the bytecode-only map.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Sequence

from genesis_engine.core.config import Settings
from genesis_engine.core.errors import ArtifactWriteError
from genesis_engine.core.types import checksum, parse_address, to_hex_bytes, to_hex_quantity
from genesis_engine.registry import ContractRegistry
from genesis_engine.seeder import SystemContractRecord
from genesis_engine.state.bundle import StateDelta, info_to_dict
from genesis_engine.state.world_state import Account, AccountInfo

logger = logging.getLogger(__name__)


# ── Snapshot ─────────────────────────────────────────────────────────────────


@dataclass
class GenesisSnapshot:
    """Final address → account map of the network's founding state."""

    accounts: dict[str, Account] = field(default_factory=dict)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self.accounts

    def __len__(self) -> int:
        return len(self.accounts)

    def __iter__(self) -> Iterator[str]:
        return iter(self.accounts)

    def get(self, address: str) -> Account | None:
        return self.accounts.get(parse_address(address))

    def bytecode_map(self) -> dict[str, bytes]:
        """Address → code for every entry that carries code."""
        return {
            address: account.info.code
            for address, account in self.accounts.items()
            if account.info.code
        }

    def to_dict(self) -> dict[str, Any]:
        """Merged-accounts document: ``{address: {info, storage}}``."""
        return {
            checksum(address): {
                "info": info_to_dict(account.info),
                "storage": _storage_to_dict(account.storage),
            }
            for address, account in sorted(self.accounts.items())
        }

    def to_alloc(self) -> dict[str, Any]:
        """Genesis ``alloc`` document: ``{address: {balance, nonce, code, storage}}``."""
        alloc: dict[str, Any] = {}
        for address, account in sorted(self.accounts.items()):
            entry: dict[str, Any] = {
                "balance": to_hex_quantity(account.info.balance),
                "nonce": account.info.nonce,
            }
            if account.info.code:
                entry["code"] = to_hex_bytes(account.info.code)
            if account.storage:
                entry["storage"] = _storage_to_dict(account.storage)
            alloc[checksum(address)] = entry
        return {"alloc": alloc}


def _storage_to_dict(storage: dict[int, int]) -> dict[str, str]:
    return {to_hex_quantity(slot): to_hex_quantity(value) for slot, value in sorted(storage.items())}


def merge_snapshot(
    records: Sequence[SystemContractRecord],
    delta: StateDelta,
    registry: ContractRegistry,
) -> GenesisSnapshot:
    """Overlay the post-execution delta onto the seeded contract set.

    Seeded contracts start with their bytecode and empty storage. The system
    caller is removed from the delta first; it is an execution fixture and
    never part of the founding state. For every other account in the delta,
    existing entries get their storage extended and their info replaced,
    new ones are inserted. Accounts that no longer exist are skipped.
    """
    snapshot = GenesisSnapshot()
    for record in records:
        snapshot.accounts[record.address] = Account(info=AccountInfo(code=record.bytecode))
        logger.info("Added %s to genesis state at %s", record.name, checksum(record.address))

    delta = delta.without(registry.system_caller)
    logger.info(
        "Bundle state size is %d, contracts size %d", delta.state_size, len(records)
    )

    for address, bundle_account in delta.accounts.items():
        logger.debug("Address: %s, account: %s", address, bundle_account)
        if bundle_account.info is None:
            continue
        storage = bundle_account.present_storage()
        existing = snapshot.accounts.get(address)
        if existing is not None:
            existing.storage.update(storage)
            existing.info = bundle_account.info
        else:
            snapshot.accounts[address] = Account(info=bundle_account.info, storage=storage)

    return snapshot


# ── Artifact writing ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ArtifactPaths:
    bundle_state: Path
    genesis_accounts: Path
    genesis_contracts: Path


class ArtifactWriter:
    """Writes the generation artifacts into one output directory.

    Each document is written to a temporary file in the target directory
    and renamed into place, so a reader never sees a partial file.
    """

    def __init__(self, output_dir: str | Path, settings: Settings) -> None:
        self.output_dir = Path(output_dir)
        self.paths = ArtifactPaths(
            bundle_state=self.output_dir / settings.bundle_state_filename,
            genesis_accounts=self.output_dir / settings.genesis_accounts_filename,
            genesis_contracts=self.output_dir / settings.genesis_contracts_filename,
        )

    def write_all(self, delta: StateDelta, snapshot: GenesisSnapshot) -> ArtifactPaths:
        """Write the raw delta, the merged accounts and the bytecode map.

        Raises:
            ArtifactWriteError: on the first document that cannot be written.
        """
        self.write_json(self.paths.bundle_state, delta.to_dict())
        self.write_json(self.paths.genesis_accounts, snapshot.to_dict())
        self.write_json(
            self.paths.genesis_contracts,
            {
                checksum(addr): to_hex_bytes(code)
                for addr, code in sorted(snapshot.bytecode_map().items())
            },
        )
        return self.paths

    def write_json(self, path: Path, document: Any) -> None:
        try:
            content = json.dumps(document, indent=2)
        except (TypeError, ValueError) as exc:
            raise ArtifactWriteError(f"Cannot serialise {path.name}: {exc}", path=path) from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
        except OSError as exc:
            raise ArtifactWriteError(f"Cannot write {path}: {exc}", path=path) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug("Temporary file %s already gone", tmp_path)
            raise ArtifactWriteError(f"Cannot write {path}: {exc}", path=path) from exc

        logger.info("Wrote %s", path, extra={"artifact": path.name})
