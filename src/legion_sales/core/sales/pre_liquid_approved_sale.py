"""
Pre-liquid approved sale.

Open-commitment sale for tokens that do not exist yet. Every investment
carries a platform signature over the investor's capital cap and token
allocation rate; the rate is cached on the position and later converted to
tokens against the published allocation. The sale is ended manually, and
the ask token becomes known when results are published.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import MAX_PRE_LIQUID_SALE_PERIOD_SECONDS
from ..contracts.erc20 import ERC20Token
from ..sale_exceptions import (
    ExcessCapitalAlreadyClaimed,
    InvestorHasRefunded,
    InvalidPositionAmount,
    InvalidWithdrawAmount,
    ZeroValueProvided,
)
from .access import Capability, requires_capability
from .base_sale import LegionSale
from .fees import token_allocation_from_rate
from .sale_types import SaleEventType
from .signature_verifier import SaleAction, SignedAuthorization
from .vesting import VestingConfig, VestingHolder

logger = logging.getLogger(__name__)


class PreLiquidApprovedSale(LegionSale):

    MAX_SALE_PERIOD = MAX_PRE_LIQUID_SALE_PERIOD_SECONDS

    def invest(
        self,
        investor: str,
        amount: int,
        invest_amount: int,
        token_allocation_rate: int,
        authorization: SignedAuthorization,
    ) -> int:
        """
        Invest capital under a signed cap.

        Args:
            investor: Investor address
            amount: Capital to invest now
            invest_amount: Authorized cap on the position's total invested capital
            token_allocation_rate: Authorized 18-decimal share of total tokens
            authorization: Platform signature over (investor, cap, rate)

        Returns:
            Position id
        """
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            self._verify_investment_window()
            self._authorize_platform(
                authorization,
                SaleAction.INVEST,
                {
                    "investor": investor,
                    "investAmount": invest_amount,
                    "tokenAllocationRate": token_allocation_rate,
                },
            )
            position = self._record_investment(investor, amount)
            self._check_invest_cap(position, invest_amount)

            position.cached_invest_amount = invest_amount
            position.cached_token_allocation_rate = token_allocation_rate
            self._emit(
                SaleEventType.CAPITAL_INVESTED,
                investor=investor,
                amount=amount,
                position_id=position.position_id,
            )
        return position.position_id

    def withdraw_excess_invested_capital(
        self,
        investor: str,
        amount: int,
        invest_amount: int,
        token_allocation_rate: int,
        authorization: SignedAuthorization,
    ) -> int:
        """
        Withdraw capital above a newly signed cap.

        The position keeps exactly invest_amount; amount must be the
        difference between the current invested capital and that cap.
        """
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            position = self.positions.investor_position(investor)
            if position.has_refunded:
                raise InvestorHasRefunded("Investor has refunded", details={"investor": investor})
            if position.has_claimed_excess:
                raise ExcessCapitalAlreadyClaimed(
                    "Excess capital has already been withdrawn", details={"investor": investor}
                )

            self._authorize_platform(
                authorization,
                SaleAction.WITHDRAW_EXCESS_CAPITAL,
                {
                    "investor": investor,
                    "investAmount": invest_amount,
                    "tokenAllocationRate": token_allocation_rate,
                },
            )
            if amount <= 0:
                raise ZeroValueProvided("Withdraw amount must be positive")
            if position.invested_capital - amount != invest_amount:
                raise InvalidWithdrawAmount(
                    "Withdrawal does not leave the authorized capital",
                    details={
                        "expected": position.invested_capital - invest_amount,
                        "actual": amount,
                    },
                )

            position.invested_capital -= amount
            position.cached_invest_amount = invest_amount
            position.cached_token_allocation_rate = token_allocation_rate
            position.has_claimed_excess = True
            self.status.total_capital_invested -= amount
            self.bid_token.transfer(self.address, investor, amount)
            self._emit(SaleEventType.EXCESS_CAPITAL_WITHDRAWN, investor=investor, amount=amount)
        return amount

    @requires_capability(Capability.PLATFORM_ADMIN)
    def publish_sale_results(
        self, caller: str, tokens_allocated: int, ask_token: Optional[ERC20Token] = None
    ) -> None:
        with self._atomic():
            self._publish_results(tokens_allocated, ask_token)
            self._emit(
                SaleEventType.SALE_RESULTS_PUBLISHED,
                tokens_allocated=tokens_allocated,
                ask_token=self.status.ask_token,
            )

    def token_allocation_of(self, investor: str) -> int:
        position = self.positions.investor_position(investor)
        return token_allocation_from_rate(
            position.cached_token_allocation_rate, self.status.total_tokens_allocated
        )

    def claim_token_allocation(
        self,
        investor: str,
        vesting_config: VestingConfig,
        vesting_authorization: SignedAuthorization,
    ) -> VestingHolder:
        """
        Claim rate x tokens allocated, paid out under a signed vesting schedule.

        The position must hold exactly the capital its last authorization
        was issued for; a position that invested below its cap has to
        settle the difference through withdraw_excess_invested_capital first.
        """
        investor = investor.lower()
        with self._atomic():
            position = self._verify_can_claim(investor)
            if position.invested_capital != position.cached_invest_amount:
                raise InvalidPositionAmount(
                    "Invested capital does not match the authorized amount",
                    details={
                        "invested_capital": position.invested_capital,
                        "cached_invest_amount": position.cached_invest_amount,
                    },
                )
            amount = token_allocation_from_rate(
                position.cached_token_allocation_rate, self.status.total_tokens_allocated
            )
            return self._settle_allocation(
                investor, position, amount, vesting_config, vesting_authorization
            )
