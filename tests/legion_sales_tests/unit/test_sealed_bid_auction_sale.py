"""
Lifecycle tests for SealedBidAuctionSale and the Merkle settlement path
it shares with the other off-chain allocated sales.
"""

import pytest

from legion_sales.core.crypto_utils import deterministic_keypair_from_seed
from legion_sales.core.sale_exceptions import (
    AcceptedCapitalNotSet,
    ExcessCapitalAlreadyClaimed,
    InvalidBidPrivateKey,
    InvalidBidPublicKey,
    InvalidProof,
    InvalidSignature,
    InvalidWithdrawAmount,
    InvestorPositionDoesNotExist,
    PrivateKeyNotPublished,
    RefundPeriodIsNotOver,
    SaleResultsAlreadyPublished,
    ValidationError,
)
from legion_sales.core.sales.merkle import MerkleTree
from legion_sales.core.sales.sale_types import SaleEventType
from legion_sales.core.sales.sealed_bid import SealedBid, derive_bid_salt, encrypt_bid
from legion_sales.core.sales.sealed_bid_auction_sale import SealedBidAuctionSale
from legion_sales.core.sales.vesting import VestingConfig, VestingType

from sale_helpers import INVESTOR_FUNDS

FIXED_SALT = 7_777
TOKENS_ALLOCATED = 10**24
BID_AMOUNTS = (50_000, 20_000)


@pytest.fixture
def auction_keys():
    return deterministic_keypair_from_seed(b"auction-key")


@pytest.fixture
def sale(make_params, bid_token, registry, clock, approve_sale, auction_keys):
    _, public_key = auction_keys
    return approve_sale(
        SealedBidAuctionSale(make_params(), bid_token, registry, clock, public_key=public_key)
    )


@pytest.fixture
def place_bid(sale, platform_signer, auction_keys):
    private_key, public_key = auction_keys

    def _place(investor, amount, bid_amount):
        salt = derive_bid_salt(investor.address, FIXED_SALT)
        sealed = SealedBid(encrypt_bid(bid_amount, public_key, private_key, salt), public_key)
        authorization = platform_signer.invest(sale, investor.address, amount)
        return sale.invest(investor.address, amount, sealed, authorization)
    return _place


@pytest.fixture
def funded_auction(sale, place_bid, investors):
    place_bid(investors[0], 10_000, BID_AMOUNTS[0])
    place_bid(investors[1], 8_000, BID_AMOUNTS[1])
    return sale


@pytest.fixture
def results(investors):
    accepted = MerkleTree([(investors[0].address, 6_000), (investors[1].address, 8_000)])
    claims = MerkleTree([(investors[0].address, 4 * 10**23), (investors[1].address, 6 * 10**23)])
    return accepted, claims


def _publish(sale, clock, platform_admin, auction_keys, results, ask_token):
    accepted, claims = results
    clock.set_time(sale.status.refund_end_time)
    sale.publish_sale_results(
        platform_admin,
        claims.get_root(),
        TOKENS_ALLOCATED,
        auction_keys[0],
        FIXED_SALT,
        accepted_capital_root=accepted.get_root(),
        ask_token=ask_token,
    )


class TestCreation:
    def test_rejects_malformed_public_key(self, make_params, bid_token, registry, clock):
        with pytest.raises(InvalidBidPublicKey):
            SealedBidAuctionSale(make_params(), bid_token, registry, clock, public_key="04" + "00" * 64)

    def test_records_public_key(self, sale, auction_keys):
        assert sale.public_key == auction_keys[1].lower()
        assert sale.private_key is None


class TestSealedInvest:
    def test_invest_stores_sealed_bid(self, sale, place_bid, investors, bid_token):
        position_id = place_bid(investors[0], 10_000, BID_AMOUNTS[0])

        assert position_id == 1
        assert bid_token.balance_of(sale.address) == 10_000
        bid = sale.sealed_bid_of(investors[0].address)
        assert bid.encrypted_amount != BID_AMOUNTS[0]
        event = sale.events_of_type(SaleEventType.CAPITAL_INVESTED)[0]
        assert event.data["encrypted_amount"] == bid.encrypted_amount

    def test_bid_under_foreign_key_rejected(self, sale, platform_signer, investors, bid_token):
        other_private, other_public = deterministic_keypair_from_seed(b"other-auction")
        salt = derive_bid_salt(investors[0].address, FIXED_SALT)
        sealed = SealedBid(encrypt_bid(1, other_public, other_private, salt), other_public)
        authorization = platform_signer.invest(sale, investors[0].address, 5_000)

        with pytest.raises(InvalidBidPublicKey):
            sale.invest(investors[0].address, 5_000, sealed, authorization)

        assert bid_token.balance_of(investors[0].address) == INVESTOR_FUNDS
        assert not sale.verifier.is_used(authorization.signature)

    def test_signature_binds_invest_amount(self, sale, platform_signer, investors, auction_keys):
        _, public_key = auction_keys
        authorization = platform_signer.invest(sale, investors[0].address, 5_000)
        with pytest.raises(InvalidSignature):
            sale.invest(investors[0].address, 6_000, SealedBid(1, public_key), authorization)

    def test_no_bid_recorded(self, sale, investors):
        with pytest.raises(InvestorPositionDoesNotExist):
            sale.sealed_bid_of(investors[2].address)


class TestResults:
    def test_publish_reveals_key_and_decrypts_bids(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token, investors
    ):
        sale = funded_auction
        encrypted = sale.sealed_bid_of(investors[0].address).encrypted_amount
        with pytest.raises(PrivateKeyNotPublished):
            sale.decrypt_sealed_bid(encrypted, investors[0].address)

        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)

        assert sale.private_key == auction_keys[0]
        assert sale.fixed_salt == FIXED_SALT
        for investor, amount in zip(investors, BID_AMOUNTS):
            bid = sale.sealed_bid_of(investor.address)
            assert sale.decrypt_sealed_bid(bid.encrypted_amount, investor.address) == amount

    def test_wrong_private_key_rejected(self, funded_auction, clock, platform_admin, results, ask_token):
        sale = funded_auction
        wrong_private, _ = deterministic_keypair_from_seed(b"not-the-auction-key")
        _, claims = results
        clock.set_time(sale.status.refund_end_time)

        with pytest.raises(InvalidBidPrivateKey):
            sale.publish_sale_results(
                platform_admin, claims.get_root(), TOKENS_ALLOCATED, wrong_private, FIXED_SALT,
                ask_token=ask_token,
            )

        assert sale.private_key is None
        assert not sale.status.results_published

    def test_publish_before_refund_window(self, funded_auction, platform_admin, auction_keys, results, ask_token):
        _, claims = results
        with pytest.raises(RefundPeriodIsNotOver):
            funded_auction.publish_sale_results(
                platform_admin, claims.get_root(), TOKENS_ALLOCATED, auction_keys[0], FIXED_SALT,
                ask_token=ask_token,
            )

    def test_malformed_root_rejected(self, funded_auction, clock, platform_admin, auction_keys, ask_token):
        clock.set_time(funded_auction.status.refund_end_time)
        with pytest.raises(ValidationError):
            funded_auction.publish_sale_results(
                platform_admin, "0x1234", TOKENS_ALLOCATED, auction_keys[0], FIXED_SALT,
                ask_token=ask_token,
            )
        assert funded_auction.private_key is None

    def test_results_published_once(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token
    ):
        _publish(funded_auction, clock, platform_admin, auction_keys, results, ask_token)
        with pytest.raises(SaleResultsAlreadyPublished):
            _publish(funded_auction, clock, platform_admin, auction_keys, results, ask_token)


class TestMerkleExcessCapital:
    def test_withdraw_excess_against_accepted_root(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token, investors, bid_token
    ):
        sale = funded_auction
        accepted, _ = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        proof = accepted.generate_proof(investors[0].address, 6_000)

        assert sale.withdraw_excess_invested_capital(investors[0].address, 6_000, proof) == 4_000

        assert bid_token.balance_of(investors[0].address) == INVESTOR_FUNDS - 6_000
        position = sale.investor_position(investors[0].address)
        assert position.invested_capital == 6_000
        assert position.has_claimed_excess
        assert sale.status.total_capital_invested == 14_000

    def test_leaf_used_once(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token, investors
    ):
        sale = funded_auction
        accepted, _ = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        proof = accepted.generate_proof(investors[0].address, 6_000)
        sale.withdraw_excess_invested_capital(investors[0].address, 6_000, proof)

        with pytest.raises(ExcessCapitalAlreadyClaimed):
            sale.withdraw_excess_invested_capital(investors[0].address, 6_000, proof)

    def test_invalid_proof(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token, investors
    ):
        sale = funded_auction
        accepted, _ = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        proof = accepted.generate_proof(investors[0].address, 6_000)

        with pytest.raises(InvalidProof):
            sale.withdraw_excess_invested_capital(investors[0].address, 5_000, proof)

    def test_no_excess_when_fully_accepted(
        self, funded_auction, clock, platform_admin, auction_keys, results, ask_token, investors
    ):
        sale = funded_auction
        accepted, _ = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        proof = accepted.generate_proof(investors[1].address, 8_000)

        with pytest.raises(InvalidWithdrawAmount):
            sale.withdraw_excess_invested_capital(investors[1].address, 8_000, proof)
        assert not sale.investor_position(investors[1].address).has_claimed_excess

    def test_accepted_capital_required(self, funded_auction, investors):
        with pytest.raises(AcceptedCapitalNotSet):
            funded_auction.withdraw_excess_invested_capital(investors[0].address, 6_000, [])


class TestMerkleClaims:
    def test_claim_with_proof(
        self, funded_auction, clock, platform_admin, project_admin, auction_keys, results,
        ask_token, investors, platform_signer,
    ):
        sale = funded_auction
        _, claims = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        sale.supply_tokens(
            project_admin,
            TOKENS_ALLOCATED,
            TOKENS_ALLOCATED * 250 // 10_000,
            TOKENS_ALLOCATED * 100 // 10_000,
        )
        investor = investors[1]
        amount = 6 * 10**23
        vesting = VestingConfig(VestingType.LINEAR, start=clock.now(), duration=86_400 * 30)

        holder = sale.claim_token_allocation(
            investor.address,
            amount,
            vesting,
            platform_signer.vesting(sale, investor.address, vesting),
            claims.generate_proof(investor.address, amount),
        )

        assert holder.total_amount == amount
        assert ask_token.balance_of(holder.address) == amount
        clock.advance(86_400 * 30)
        assert sale.release_vested_tokens(investor.address) == amount
        assert ask_token.balance_of(investor.address) == amount

    def test_claim_with_inflated_amount(
        self, funded_auction, clock, platform_admin, project_admin, auction_keys, results,
        ask_token, investors, platform_signer,
    ):
        sale = funded_auction
        _, claims = results
        _publish(sale, clock, platform_admin, auction_keys, results, ask_token)
        sale.supply_tokens(
            project_admin,
            TOKENS_ALLOCATED,
            TOKENS_ALLOCATED * 250 // 10_000,
            TOKENS_ALLOCATED * 100 // 10_000,
        )
        investor = investors[0]
        vesting = VestingConfig(VestingType.LINEAR, start=clock.now(), duration=86_400)

        with pytest.raises(InvalidProof):
            sale.claim_token_allocation(
                investor.address,
                5 * 10**23,
                vesting,
                platform_signer.vesting(sale, investor.address, vesting),
                claims.generate_proof(investor.address, 4 * 10**23),
            )
        assert not sale.investor_position(investor.address).has_settled
