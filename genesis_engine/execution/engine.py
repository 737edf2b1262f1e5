"""Sequential execution engine.

Applies an ordered batch of transactions through the external virtual
machine. Transaction ``i + 1`` always observes every write of transaction
``i``: each result is committed into a working overlay before the next
transaction runs, and nothing is reordered or batched. The base view is
only ever read; the net change of the whole batch comes back as one
:class:`StateDelta`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from genesis_engine.core.errors import ExecutionEngineError, GenesisError
from genesis_engine.core.types import SpecId, parse_address, to_hex_bytes
from genesis_engine.execution.vm import (
    AccountChange,
    ExecutionEnvironment,
    ExecutionOutcome,
    TransactionEnvelope,
    VirtualMachine,
)
from genesis_engine.state.bundle import (
    AccountRevert,
    AccountStatus,
    BundleAccount,
    BundleRetention,
    StateDelta,
    StorageSlot,
)
from genesis_engine.state.world_state import AccountInfo, StateReader

logger = logging.getLogger(__name__)

OutcomeObserver = Callable[[int, TransactionEnvelope, ExecutionOutcome], None]


@dataclass
class _CachedAccount:
    info: AccountInfo | None
    storage: dict[int, int] = field(default_factory=dict)
    storage_cleared: bool = False
    status: AccountStatus = AccountStatus.LOADED


class WorkingState:
    """Committed state of an in-flight batch, layered over a read-only base.

    Reads resolve against the overlay first, then the optional pre-existing
    delta, then the base view. The first value seen for every touched
    account and slot is remembered so the batch can be consolidated into a
    delta relative to the base.
    """

    def __init__(self, base: StateReader, pre_bundle: StateDelta | None = None) -> None:
        self._base = base
        self._accounts: dict[str, _CachedAccount] = {}
        self._original_info: dict[str, AccountInfo | None] = {}
        self._original_storage: dict[str, dict[int, int]] = {}

        if pre_bundle is not None:
            for address, account in pre_bundle.accounts.items():
                self._accounts[address] = _CachedAccount(
                    info=account.info,
                    storage=account.present_storage(),
                    storage_cleared=account.status
                    in (AccountStatus.CREATED, AccountStatus.DESTROYED),
                    status=account.status,
                )
                self._original_info[address] = account.original_info
                self._original_storage[address] = {
                    slot: s.original_value for slot, s in account.storage.items()
                }

    # ── StateReader ─────────────────────────────────────────────────────

    def basic(self, address: str) -> AccountInfo | None:
        key = parse_address(address)
        cached = self._accounts.get(key)
        if cached is not None:
            return cached.info
        return self._base.basic(key)

    def storage(self, address: str, slot: int) -> int:
        key = parse_address(address)
        cached = self._accounts.get(key)
        if cached is not None:
            if slot in cached.storage:
                return cached.storage[slot]
            if cached.storage_cleared or cached.info is None:
                return 0
        return self._base.storage(key, slot)

    # ── Commit ──────────────────────────────────────────────────────────

    @property
    def touched(self) -> list[str]:
        return list(self._accounts)

    def commit(self, changes: dict[str, AccountChange]) -> None:
        """Make one transaction's writes visible to every later transaction."""
        for address, change in changes.items():
            key = parse_address(address)
            cached = self._touch(key)

            for slot in change.storage:
                if slot not in self._original_storage[key]:
                    self._original_storage[key][slot] = self._base.storage(key, slot)

            if change.destroyed:
                cached.info = None
                cached.storage = {}
                cached.storage_cleared = True
                cached.status = AccountStatus.DESTROYED
                continue

            if change.created:
                cached.storage = {}
                cached.storage_cleared = True
                cached.status = AccountStatus.CREATED

            cached.info = change.info
            cached.storage.update(change.storage)

    def _touch(self, key: str) -> _CachedAccount:
        cached = self._accounts.get(key)
        if cached is None:
            original = self._base.basic(key)
            cached = _CachedAccount(
                info=original,
                status=AccountStatus.LOADED if original is not None
                else AccountStatus.LOADED_NOT_EXISTING,
            )
            self._accounts[key] = cached
            self._original_info[key] = original
            self._original_storage[key] = {}
        return cached

    # ── Consolidation ───────────────────────────────────────────────────

    def merge_transitions(self, retention: BundleRetention) -> StateDelta:
        """Net change of everything committed so far, relative to the base."""
        delta = StateDelta()

        for address, cached in self._accounts.items():
            originals = self._original_storage[address]
            slots = set(originals) | set(cached.storage)
            storage: dict[int, StorageSlot] = {}
            for slot in sorted(slots):
                original = originals.get(slot, 0)
                if slot in cached.storage:
                    present = cached.storage[slot]
                elif cached.storage_cleared or cached.info is None:
                    present = 0
                else:
                    present = original
                storage[slot] = StorageSlot(original_value=original, present_value=present)

            account = BundleAccount(
                original_info=self._original_info[address],
                info=cached.info,
                storage=storage,
                status=cached.status,
            )

            if retention is BundleRetention.PLAIN_STATE and account.is_reverted_to_original:
                logger.debug("Dropping unchanged account %s from delta", address)
                continue

            delta.accounts[address] = account
            if cached.info is not None and cached.info.code:
                delta.contracts[cached.info.code_hash] = cached.info.code

            if retention is BundleRetention.REVERTS:
                delta.reverts.append(
                    AccountRevert(
                        address=address,
                        previous_info=account.original_info,
                        previous_storage={
                            slot: s.original_value for slot, s in account.changed_slots.items()
                        },
                        wipe_storage=cached.storage_cleared,
                    )
                )

        return delta


@dataclass
class BatchResult:
    """Ordered outcomes of a batch plus its consolidated delta."""

    outcomes: list[ExecutionOutcome]
    delta: StateDelta

    @property
    def all_succeeded(self) -> bool:
        return all(o.is_success for o in self.outcomes)


class SequentialExecutor:
    """Runs transactions one at a time, committing between each."""

    def __init__(
        self,
        vm: VirtualMachine,
        observer: OutcomeObserver | None = None,
        retention: BundleRetention = BundleRetention.REVERTS,
    ) -> None:
        self._vm = vm
        self._observer = observer
        self._retention = retention

    def execute(
        self,
        view: StateReader,
        spec_id: SpecId,
        env: ExecutionEnvironment,
        txs: Sequence[TransactionEnvelope],
        pre_bundle: StateDelta | None = None,
    ) -> BatchResult:
        """Execute ``txs`` strictly in order against ``view``.

        Raises:
            ExecutionEngineError: if the virtual machine raises instead of
                returning an outcome.
        """
        working = WorkingState(view, pre_bundle)
        outcomes: list[ExecutionOutcome] = []

        for i, tx in enumerate(txs):
            logger.info("=== Executing transaction %d ===", i + 1, extra={"tx_index": i})
            logger.info("  Caller: %s", tx.caller)
            logger.info("  To: %s", tx.target if tx.target else "<create>")
            logger.info("  Value: %d", tx.value)
            logger.info("  Data length: %d", len(tx.payload))
            if tx.selector:
                logger.info("  Function selector: %s", to_hex_bytes(tx.selector))

            try:
                result = self._vm.transact(working, tx, env, spec_id)
            except GenesisError:
                raise
            except Exception as exc:
                raise ExecutionEngineError(
                    f"Virtual machine failed on transaction {i + 1}: {exc}", index=i
                ) from exc

            logger.debug("Transaction %d touched %d accounts", i + 1, len(result.changes))
            working.commit(result.changes)

            if self._observer is not None:
                self._observer(i, tx, result.outcome)
            outcomes.append(result.outcome)
            logger.info("=== Transaction %d completed ===", i + 1)

        delta = working.merge_transitions(self._retention)
        return BatchResult(outcomes=outcomes, delta=delta)
