"""
Legion sale variants and their settlement machinery.
"""

from .base_sale import LegionSale
from .fixed_price_sale import FixedPriceSale, FixedPriceSaleParams
from .merkle import MerkleTree, hash_leaf, verify_merkle_proof
from .merkle_sale import MerkleGatedSale
from .positions import InvestorPosition, InvestorPositionLedger
from .pre_liquid_approved_sale import PreLiquidApprovedSale
from .pre_liquid_open_application_sale import PreLiquidOpenApplicationSale
from .referrer_fee_distributor import ReferrerFeeDistributor
from .sale_types import (
    SaleConfig,
    SaleEvent,
    SaleEventType,
    SaleInitializationParams,
    SaleState,
    SaleStatus,
)
from .sealed_bid import SealedBid, decrypt_bid, encrypt_bid
from .sealed_bid_auction_sale import SealedBidAuctionSale
from .signature_verifier import (
    SaleAction,
    SignatureAuthorizationVerifier,
    SignedAuthorization,
    action_digest,
)
from .vesting import VestingConfig, VestingHolder, VestingStatus, VestingType

__all__ = [
    "FixedPriceSale",
    "FixedPriceSaleParams",
    "InvestorPosition",
    "InvestorPositionLedger",
    "LegionSale",
    "MerkleGatedSale",
    "MerkleTree",
    "PreLiquidApprovedSale",
    "PreLiquidOpenApplicationSale",
    "ReferrerFeeDistributor",
    "SaleAction",
    "SaleConfig",
    "SaleEvent",
    "SaleEventType",
    "SaleInitializationParams",
    "SaleState",
    "SaleStatus",
    "SealedBid",
    "SealedBidAuctionSale",
    "SignatureAuthorizationVerifier",
    "SignedAuthorization",
    "VestingConfig",
    "VestingHolder",
    "VestingStatus",
    "VestingType",
    "action_digest",
    "decrypt_bid",
    "encrypt_bid",
    "hash_leaf",
    "verify_merkle_proof",
]
