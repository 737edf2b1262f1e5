"""Tests for genesis_engine.state — account ledger, delta model and delta application."""

from __future__ import annotations

from genesis_engine.core.types import KECCAK_EMPTY, keccak256
from genesis_engine.state import (
    Account,
    AccountInfo,
    AccountRevert,
    AccountStatus,
    BundleAccount,
    StateDelta,
    StateReader,
    StorageSlot,
    WorldStateView,
    apply_delta,
)

ADDR = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20


class TestAccountInfo:

    def test_empty(self):
        info = AccountInfo()
        assert info.is_empty
        assert info.code_hash == KECCAK_EMPTY
        assert not info.has_code

    def test_code_hash(self):
        info = AccountInfo(code=b"\x60\x00")
        assert info.code_hash == keccak256(b"\x60\x00")
        assert not info.is_empty

    def test_with_balance(self):
        info = AccountInfo(balance=1, nonce=3, code=b"\x00")
        assert info.with_balance(9) == AccountInfo(balance=9, nonce=3, code=b"\x00")


class TestWorldStateView:

    def test_absent_reads_as_empty(self):
        view = WorldStateView()
        assert view.basic(ADDR) is None
        assert view.storage(ADDR, 1) == 0
        assert view.account(ADDR) == Account()
        assert ADDR not in view

    def test_satisfies_reader_protocol(self):
        assert isinstance(WorldStateView(), StateReader)

    def test_insert_info_keeps_storage(self):
        view = WorldStateView()
        view.insert_account_storage(ADDR, 1, 5)
        view.insert_account_info(ADDR, AccountInfo(balance=7))
        assert view.storage(ADDR, 1) == 5
        assert view.basic(ADDR).balance == 7

    def test_zero_storage_removes_slot(self):
        view = WorldStateView()
        view.insert_account_storage(ADDR, 1, 5)
        view.insert_account_storage(ADDR, 1, 0)
        assert view.account(ADDR).storage == {}

    def test_addresses_are_case_insensitive(self):
        view = WorldStateView()
        view.insert_account_info(ADDR.upper().replace("0X", "0x"), AccountInfo(balance=1))
        assert ADDR in view
        assert view.basic(ADDR).balance == 1

    def test_copy_is_independent(self):
        view = WorldStateView()
        view.insert_account_storage(ADDR, 1, 5)
        clone = view.copy()
        clone.insert_account_storage(ADDR, 1, 6)
        assert view.storage(ADDR, 1) == 5

    def test_account_returns_copy(self):
        view = WorldStateView()
        view.insert_account_storage(ADDR, 1, 5)
        view.account(ADDR).storage[1] = 99
        assert view.storage(ADDR, 1) == 5

    def test_remove(self):
        view = WorldStateView()
        view.insert_account(ADDR, Account(info=AccountInfo(balance=1)))
        view.remove_account(ADDR)
        assert len(view) == 0


class TestStateDelta:

    def _delta(self) -> StateDelta:
        return StateDelta(
            accounts={
                ADDR: BundleAccount(
                    original_info=AccountInfo(balance=1),
                    info=AccountInfo(balance=2, code=b"\x60\x01"),
                    storage={
                        1: StorageSlot(original_value=0, present_value=5),
                        2: StorageSlot(original_value=3, present_value=3),
                    },
                ),
                OTHER: BundleAccount(original_info=None, info=AccountInfo(balance=4),
                                     status=AccountStatus.LOADED_NOT_EXISTING),
            },
            contracts={keccak256(b"\x60\x01"): b"\x60\x01"},
            reverts=[AccountRevert(address=ADDR, previous_info=AccountInfo(balance=1))],
        )

    def test_changed_slots(self):
        account = self._delta().get(ADDR)
        assert set(account.changed_slots) == {1}
        assert account.is_info_changed
        assert not account.is_reverted_to_original

    def test_reverted_to_original(self):
        account = BundleAccount(
            original_info=AccountInfo(balance=1),
            info=AccountInfo(balance=1),
            storage={1: StorageSlot(original_value=2, present_value=2)},
        )
        assert account.is_reverted_to_original

    def test_without_drops_account_and_revert(self):
        delta = self._delta().without(ADDR.upper().replace("0X", "0x"))
        assert ADDR not in delta
        assert OTHER in delta
        assert delta.reverts_size == 0

    def test_to_dict_shape(self):
        doc = self._delta().to_dict()
        assert doc["state_size"] == 2
        assert doc["reverts_size"] == 1
        state = {k.lower(): v for k, v in doc["state"].items()}
        assert state[ADDR]["info"]["balance"] == "0x2"
        assert state[ADDR]["storage"]["0x1"] == {"original_value": "0x0", "present_value": "0x5"}
        assert state[OTHER]["original_info"] is None
        assert list(doc["contracts"].values()) == ["0x6001"]


class TestApplyDelta:

    def test_writes_present_values(self):
        view = WorldStateView()
        view.insert_account_info(ADDR, AccountInfo(balance=1))
        view.insert_account_storage(ADDR, 2, 3)
        apply_delta(view, TestStateDelta()._delta())
        assert view.basic(ADDR).balance == 2
        assert view.storage(ADDR, 1) == 5
        assert view.storage(ADDR, 2) == 3
        assert view.basic(OTHER).balance == 4

    def test_destroyed_account_removed(self):
        view = WorldStateView()
        view.insert_account_info(ADDR, AccountInfo(balance=1))
        delta = StateDelta(accounts={
            ADDR: BundleAccount(original_info=AccountInfo(balance=1), info=None,
                                status=AccountStatus.DESTROYED),
        })
        apply_delta(view, delta)
        assert ADDR not in view

    def test_created_account_wipes_storage(self):
        view = WorldStateView()
        view.insert_account_storage(ADDR, 9, 9)
        delta = StateDelta(accounts={
            ADDR: BundleAccount(
                original_info=AccountInfo(),
                info=AccountInfo(code=b"\x00"),
                storage={1: StorageSlot(original_value=0, present_value=1)},
                status=AccountStatus.CREATED,
            ),
        })
        apply_delta(view, delta)
        assert view.account(ADDR).storage == {1: 1}
