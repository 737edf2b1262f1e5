"""Contract seeder — installs system contract bytecode into a fresh view."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

from genesis_engine.core.config import ETHER, Settings
from genesis_engine.core.errors import BytecodeSourceError, MalformedInputError
from genesis_engine.core.types import parse_hex_bytes
from genesis_engine.registry import ContractRegistry
from genesis_engine.state.world_state import AccountInfo, WorldStateView

logger = logging.getLogger(__name__)

# PUSH1 / PUSH2, the usual first opcode of solc init code
_CONSTRUCTOR_PREFIXES = (0x60, 0x61)
_CONSTRUCTOR_MIN_LENGTH = 100


# ── Bytecode sources ─────────────────────────────────────────────────────────


class BytecodeSource(Protocol):
    """Supplies one hex blob of runtime bytecode per contract name."""

    def read(self, name: str) -> str:
        ...


class DirectoryBytecodeSource:
    """Reads ``<directory>/<name><suffix>`` files."""

    def __init__(self, directory: str | Path, suffix: str = ".hex") -> None:
        self.directory = Path(directory)
        self.suffix = suffix

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}{self.suffix}"

    def read(self, name: str) -> str:
        path = self.path_for(name)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BytecodeSourceError(
                f"Failed to open {path}: {exc.strerror or exc}", contract=name, path=path
            ) from exc


class MappingBytecodeSource:
    """In-memory source, keyed by contract name."""

    def __init__(self, blobs: Mapping[str, str]) -> None:
        self._blobs = dict(blobs)

    def read(self, name: str) -> str:
        try:
            return self._blobs[name]
        except KeyError:
            raise BytecodeSourceError(f"No bytecode for {name}", contract=name) from None


def extract_runtime_bytecode(hex_text: str, name: str = "") -> bytes:
    """Decode a bytecode blob.

    Blobs that look like constructor code (PUSH1/PUSH2 prefix and longer than
    a trivial stub) are still used as-is: extracting the runtime part needs
    the constructor to actually run. A warning is logged instead.
    """
    try:
        code = parse_hex_bytes(hex_text)
    except MalformedInputError as exc:
        raise BytecodeSourceError(f"Unparsable bytecode for {name or 'contract'}: {exc}",
                                  contract=name) from exc
    if not code:
        raise BytecodeSourceError(f"Empty bytecode for {name or 'contract'}", contract=name)

    if len(code) > _CONSTRUCTOR_MIN_LENGTH and code[0] in _CONSTRUCTOR_PREFIXES:
        logger.warning("[!] %s: using possible constructor bytecode as runtime bytecode",
                       name or "contract")
    return code


# ── Records and seeding ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class SystemContractRecord:
    """A registered contract materialised with its bytecode and starting balance."""

    name: str
    address: str
    bytecode: bytes
    balance: int = 0


@dataclass
class SeededState:
    view: WorldStateView
    records: list[SystemContractRecord]


class ContractSeeder:
    """Builds the pre-execution view: funding account plus every system contract."""

    def __init__(
        self,
        registry: ContractRegistry,
        source: BytecodeSource,
        settings: Settings,
    ) -> None:
        self._registry = registry
        self._source = source
        self._funding_buffer = settings.funding_buffer_wei
        self._pooled_stake_buffer = settings.pooled_stake_buffer_wei

    def load_records(self, total_stake: int) -> list[SystemContractRecord]:
        """Read and decode bytecode for every registered contract, in registry order."""
        records: list[SystemContractRecord] = []
        for contract in self._registry:
            bytecode = extract_runtime_bytecode(self._source.read(contract.name), contract.name)
            balance = total_stake + self._pooled_stake_buffer if contract.holds_pooled_stake else 0
            records.append(
                SystemContractRecord(
                    name=contract.name,
                    address=contract.address,
                    bytecode=bytecode,
                    balance=balance,
                )
            )
        return records

    def seed(self, total_stake: int) -> SeededState:
        """Return a fresh view holding the funding account and all system contracts.

        Raises:
            BytecodeSourceError: if any contract's bytecode is missing or unparsable.
        """
        records = self.load_records(total_stake)
        view = WorldStateView()

        view.insert_account_info(
            self._registry.system_caller,
            AccountInfo(balance=total_stake + self._funding_buffer, nonce=1),
        )

        for record in records:
            view.insert_account_info(
                record.address, AccountInfo(balance=record.balance, code=record.bytecode)
            )
            context = {"contract": record.name, "address": record.address}
            if record.balance:
                logger.info(
                    "Deployed runtime bytecode with balance %d ETH",
                    record.balance // ETHER, extra=context,
                )
            else:
                logger.info("Deployed runtime bytecode", extra=context)

        return SeededState(view=view, records=records)
