"""
Merkle-gated sales.

Sales whose results are computed off-chain and committed as two Merkle
roots: the accepted-capital root caps each investor's capital, and the
claim-tokens root fixes each investor's token allocation. Investments are
authorized per action by the platform signer.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..contracts.erc20 import ERC20Token
from ..sale_exceptions import (
    AcceptedCapitalNotSet,
    ExcessCapitalAlreadyClaimed,
    InvalidProof,
    InvalidWithdrawAmount,
    InvestorHasRefunded,
    MerkleRootAlreadySet,
    ValidationError,
)
from .access import Capability, requires_capability
from .base_sale import LegionSale
from .merkle import hash_leaf, verify_merkle_proof
from .sale_types import SaleEventType
from .signature_verifier import SaleAction, SignedAuthorization
from .vesting import VestingConfig, VestingHolder

logger = logging.getLogger(__name__)


def _normalize_root(root: str) -> str:
    root = root.lower().removeprefix("0x")
    if len(root) != 64:
        raise ValidationError("Merkle root must be a 32-byte hex digest", details={"root": root})
    return root


class MerkleGatedSale(LegionSale):
    """Sale settled against published Merkle roots."""

    def _authorize_investment(
        self, investor: str, amount: int, authorization: SignedAuthorization
    ) -> None:
        self._authorize_platform(
            authorization,
            SaleAction.INVEST,
            {"investor": investor, "investAmount": amount, "tokenAllocationRate": 0},
        )

    def invest(self, investor: str, amount: int, authorization: SignedAuthorization) -> int:
        """Invest amount under a platform signature bound to that amount."""
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            self._verify_investment_window()
            self._authorize_investment(investor, amount, authorization)
            position = self._record_investment(investor, amount)
            position.cached_invest_amount = position.invested_capital
            self._emit(
                SaleEventType.CAPITAL_INVESTED,
                investor=investor,
                amount=amount,
                position_id=position.position_id,
            )
        return position.position_id

    def _set_accepted_capital_root(self, root: str) -> None:
        if self.status.accepted_capital_root is not None:
            raise MerkleRootAlreadySet("Accepted capital root has already been set")
        self.status.accepted_capital_root = _normalize_root(root)

    @requires_capability(Capability.PLATFORM_ADMIN)
    def set_accepted_capital(self, caller: str, accepted_capital_root: str) -> None:
        with self._atomic():
            self._verify_not_canceled()
            self._set_accepted_capital_root(accepted_capital_root)
            self._emit(SaleEventType.ACCEPTED_CAPITAL_SET, root=self.status.accepted_capital_root)

    def withdraw_excess_invested_capital(
        self, investor: str, accepted_capital: int, proof: Sequence[str]
    ) -> int:
        """
        Withdraw capital above the investor's Merkle-proven accepted amount.

        Returns:
            Excess capital returned (invested - accepted)

        Raises:
            AcceptedCapitalNotSet: no accepted-capital root yet
            ExcessCapitalAlreadyClaimed: the leaf or position was already used
            InvalidProof: the proof does not resolve to the root
        """
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            root = self.status.accepted_capital_root
            if root is None:
                raise AcceptedCapitalNotSet("Accepted capital has not been set")

            position = self.positions.investor_position(investor)
            if position.has_refunded:
                raise InvestorHasRefunded("Investor has refunded", details={"investor": investor})

            leaf = hash_leaf(investor, accepted_capital)
            if position.has_claimed_excess or leaf in self.used_excess_claims:
                raise ExcessCapitalAlreadyClaimed(
                    "Excess capital has already been withdrawn", details={"investor": investor}
                )
            if not verify_merkle_proof(root, investor, accepted_capital, proof):
                raise InvalidProof("Invalid Merkle proof")

            excess = position.invested_capital - accepted_capital
            if excess <= 0:
                raise InvalidWithdrawAmount(
                    "No excess capital to withdraw",
                    details={
                        "invested_capital": position.invested_capital,
                        "accepted_capital": accepted_capital,
                    },
                )

            self.used_excess_claims.add(leaf)
            position.has_claimed_excess = True
            position.invested_capital = accepted_capital
            position.cached_invest_amount = accepted_capital
            self.status.total_capital_invested -= excess
            self.bid_token.transfer(self.address, investor, excess)
            self._emit(SaleEventType.EXCESS_CAPITAL_WITHDRAWN, investor=investor, amount=excess)
        return excess

    def _publish_merkle_results(
        self,
        claim_tokens_root: str,
        tokens_allocated: int,
        accepted_capital_root: Optional[str],
        ask_token: Optional[ERC20Token],
    ) -> None:
        self._publish_results(tokens_allocated, ask_token)
        self.status.claim_tokens_root = _normalize_root(claim_tokens_root)
        if accepted_capital_root is not None:
            self._set_accepted_capital_root(accepted_capital_root)

    @requires_capability(Capability.PLATFORM_ADMIN)
    def publish_sale_results(
        self,
        caller: str,
        claim_tokens_root: str,
        tokens_allocated: int,
        accepted_capital_root: Optional[str] = None,
        ask_token: Optional[ERC20Token] = None,
    ) -> None:
        with self._atomic():
            self._publish_merkle_results(
                claim_tokens_root, tokens_allocated, accepted_capital_root, ask_token
            )
            self._emit(
                SaleEventType.SALE_RESULTS_PUBLISHED,
                tokens_allocated=tokens_allocated,
                claim_tokens_root=self.status.claim_tokens_root,
            )

    def claim_token_allocation(
        self,
        investor: str,
        amount: int,
        vesting_config: VestingConfig,
        vesting_authorization: SignedAuthorization,
        proof: Sequence[str],
    ) -> VestingHolder:
        """Claim a Merkle-proven token allocation under a signed vesting schedule."""
        investor = investor.lower()
        with self._atomic():
            position = self._verify_can_claim(investor)
            if not verify_merkle_proof(self.status.claim_tokens_root, investor, amount, proof):
                raise InvalidProof("Invalid Merkle proof")
            return self._settle_allocation(
                investor, position, amount, vesting_config, vesting_authorization
            )
