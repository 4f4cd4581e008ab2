"""
Sealed-bid auction sale.

Investors deposit capital together with a bid whose amount is masked under
the auction's registered public key. Once the refund window closes the
platform publishes results together with the auction's private key and the
fixed salt, after which any bid can be decrypted.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from ..clock import Clock
from ..contracts.erc20 import ERC20Token
from ..registry import AddressRegistry
from ..sale_exceptions import InvestorPositionDoesNotExist, PrivateKeyNotPublished
from .access import Capability, requires_capability
from .merkle_sale import MerkleGatedSale
from .sale_types import SaleEventType, SaleInitializationParams
from .sealed_bid import (
    SealedBid,
    decrypt_bid,
    derive_bid_salt,
    validate_bid_public_key,
    verify_private_key,
)
from .signature_verifier import SignedAuthorization

logger = logging.getLogger(__name__)


class SealedBidAuctionSale(MerkleGatedSale):
    """Auction whose bids stay hidden until the private key is revealed."""

    def __init__(
        self,
        params: SaleInitializationParams,
        bid_token: ERC20Token,
        registry: AddressRegistry,
        clock: Clock,
        public_key: str,
        ask_token: Optional[ERC20Token] = None,
        address: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        # Reject malformed, identity and off-curve keys before the sale exists
        validate_bid_public_key(public_key, public_key)
        super().__init__(params, bid_token, registry, clock, ask_token, address, chain_id)
        self.public_key = public_key.lower()
        self.private_key: Optional[str] = None
        self.fixed_salt: Optional[int] = None
        self.sealed_bids: Dict[str, SealedBid] = {}

    def snapshot(self):
        snapshot = super().snapshot()
        snapshot["sealed_bids"] = dict(self.sealed_bids)
        snapshot["private_key"] = self.private_key
        snapshot["fixed_salt"] = self.fixed_salt
        return snapshot

    def restore(self, snapshot) -> None:
        super().restore(snapshot)
        self.sealed_bids = dict(snapshot["sealed_bids"])
        self.private_key = snapshot["private_key"]
        self.fixed_salt = snapshot["fixed_salt"]

    def invest(  # type: ignore[override]
        self,
        investor: str,
        amount: int,
        sealed_bid: SealedBid,
        authorization: SignedAuthorization,
    ) -> int:
        """
        Deposit capital with a sealed bid.

        Raises:
            InvalidBidPublicKey: bid not encrypted under the auction key
        """
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            self._verify_investment_window()
            validate_bid_public_key(sealed_bid.public_key, self.public_key)
            self._authorize_investment(investor, amount, authorization)
            position = self._record_investment(investor, amount)
            position.cached_invest_amount = position.invested_capital
            self.sealed_bids[investor] = sealed_bid
            self._emit(
                SaleEventType.CAPITAL_INVESTED,
                investor=investor,
                amount=amount,
                position_id=position.position_id,
                encrypted_amount=sealed_bid.encrypted_amount,
            )
        return position.position_id

    @requires_capability(Capability.PLATFORM_ADMIN)
    def publish_sale_results(  # type: ignore[override]
        self,
        caller: str,
        claim_tokens_root: str,
        tokens_allocated: int,
        private_key: str,
        fixed_salt: int,
        accepted_capital_root: Optional[str] = None,
        ask_token: Optional[ERC20Token] = None,
    ) -> None:
        """
        Publish results and reveal the auction key.

        Raises:
            InvalidBidPrivateKey: private_key * G is not the auction public key
        """
        with self._atomic():
            verify_private_key(private_key, self.public_key)
            self._publish_merkle_results(
                claim_tokens_root, tokens_allocated, accepted_capital_root, ask_token
            )
            self.private_key = private_key
            self.fixed_salt = fixed_salt
            self._emit(
                SaleEventType.SALE_RESULTS_PUBLISHED,
                tokens_allocated=tokens_allocated,
                claim_tokens_root=self.status.claim_tokens_root,
                fixed_salt=fixed_salt,
            )

    def decrypt_sealed_bid(self, encrypted_amount: int, investor: str) -> int:
        """Recover a bid amount; read-only and available once the key is published."""
        if self.private_key is None or self.fixed_salt is None:
            raise PrivateKeyNotPublished("Auction private key has not been published")
        salt = derive_bid_salt(investor, self.fixed_salt)
        return decrypt_bid(encrypted_amount, self.public_key, self.private_key, salt)

    def sealed_bid_of(self, investor: str) -> SealedBid:
        try:
            return self.sealed_bids[investor.lower()]
        except KeyError:
            raise InvestorPositionDoesNotExist(
                "Investor has not placed a bid", details={"investor": investor}
            ) from None
