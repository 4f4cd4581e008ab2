"""
Unit tests for the investor position ledger and transfer/merge logic.
"""

import pytest

from legion_sales.core.sale_exceptions import (
    InvestorPositionDoesNotExist,
    NotPositionOwner,
    UnableToMergeInvestorPosition,
    UnableToTransferInvestorPosition,
    ZeroAddressProvided,
)
from legion_sales.core.sales.positions import InvestorPositionLedger

ALICE = "0x" + "a0" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20


@pytest.fixture
def ledger():
    ledger = InvestorPositionLedger()
    alice = ledger.create(ALICE)
    alice.invested_capital = 10_000
    alice.cached_invest_amount = 10_000
    alice.cached_token_allocation_rate = 5 * 10**15
    bob = ledger.create(BOB)
    bob.invested_capital = 4_000
    bob.cached_invest_amount = 5_000
    bob.cached_token_allocation_rate = 2 * 10**15
    return ledger


class TestLookups:
    def test_ids_are_sequential(self, ledger):
        assert ledger.position_of(ALICE) == 1
        assert ledger.position_of(BOB) == 2
        assert ledger.owner_of(2) == BOB
        assert len(ledger) == 2

    def test_lookup_is_case_insensitive(self, ledger):
        assert ledger.position_of(ALICE.upper().replace("0X", "0x")) == 1

    def test_missing_position(self, ledger):
        assert ledger.position_of(CAROL) is None
        with pytest.raises(InvestorPositionDoesNotExist):
            ledger.investor_position(CAROL)
        with pytest.raises(InvestorPositionDoesNotExist):
            ledger.owner_of(99)

    def test_get_or_create_reuses_position(self, ledger):
        assert ledger.get_or_create(ALICE).position_id == 1
        assert ledger.get_or_create(CAROL).position_id == 3

    def test_zero_address_rejected(self, ledger):
        with pytest.raises(ZeroAddressProvided):
            ledger.create("0x" + "00" * 20)


class TestTransfer:
    def test_transfer_to_empty_destination_moves_record(self, ledger):
        result = ledger.transfer_position(ALICE, CAROL, 1)

        assert result == 1
        assert ledger.owner_of(1) == CAROL
        assert ledger.position_of(CAROL) == 1
        assert ledger.position_of(ALICE) is None
        assert ledger.get(1).invested_capital == 10_000

    def test_transfer_into_existing_position_merges(self, ledger):
        result = ledger.transfer_position(ALICE, BOB, 1)

        assert result == 2
        merged = ledger.get(2)
        assert merged.invested_capital == 14_000
        assert merged.cached_invest_amount == 15_000
        assert merged.cached_token_allocation_rate == 7 * 10**15
        assert ledger.position_of(ALICE) is None
        with pytest.raises(InvestorPositionDoesNotExist):
            ledger.get(1)

    def test_refunded_source_cannot_transfer(self, ledger):
        ledger.get(1).has_refunded = True
        with pytest.raises(UnableToTransferInvestorPosition):
            ledger.transfer_position(ALICE, CAROL, 1)

    def test_refunded_destination_cannot_merge(self, ledger):
        ledger.get(2).has_refunded = True
        with pytest.raises(UnableToMergeInvestorPosition):
            ledger.transfer_position(ALICE, BOB, 1)

    def test_mismatched_excess_claims_cannot_merge(self, ledger):
        ledger.get(2).has_claimed_excess = True
        with pytest.raises(UnableToMergeInvestorPosition):
            ledger.transfer_position(ALICE, BOB, 1)

    def test_matching_excess_claims_merge(self, ledger):
        ledger.get(1).has_claimed_excess = True
        ledger.get(2).has_claimed_excess = True
        assert ledger.transfer_position(ALICE, BOB, 1) == 2
        assert ledger.get(2).has_claimed_excess

    def test_non_owner_cannot_transfer(self, ledger):
        with pytest.raises(NotPositionOwner):
            ledger.transfer_position(BOB, CAROL, 1)

    def test_self_transfer_rejected(self, ledger):
        with pytest.raises(UnableToTransferInvestorPosition):
            ledger.transfer_position(ALICE, ALICE, 1)


class TestSnapshots:
    def test_restore_undoes_merge(self, ledger):
        snapshot = ledger.snapshot()
        ledger.transfer_position(ALICE, BOB, 1)
        ledger.create(CAROL)

        ledger.restore(snapshot)

        assert ledger.position_of(ALICE) == 1
        assert ledger.get(2).invested_capital == 4_000
        assert ledger.position_of(CAROL) is None
        assert ledger.next_position_id == 3
