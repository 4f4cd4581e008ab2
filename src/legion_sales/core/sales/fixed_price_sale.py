"""
Fixed-price sale.

Tokens are offered at a fixed bid-token price. The sale opens with a
prefund period, pauses for a prefund allocation period while the platform
reviews prefund commitments, then reopens for the public sale period.
Results are settled through Merkle roots like the other off-chain
allocated sales.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..clock import Clock
from ..constants import (
    MAX_PREFUND_ALLOCATION_PERIOD_SECONDS,
    MAX_PREFUND_PERIOD_SECONDS,
    MIN_REFUND_PERIOD_SECONDS,
)
from ..contracts.erc20 import ERC20Token
from ..registry import AddressRegistry
from ..sale_exceptions import (
    InvalidPeriodConfig,
    InvalidSaleToken,
    PrefundAllocationPeriodNotEnded,
    ZeroValueProvided,
)
from .merkle_sale import MerkleGatedSale
from .sale_types import SaleInitializationParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedPriceSaleParams:
    prefund_period: int
    prefund_allocation_period: int
    token_price: int  # bid-token units per whole ask token


def validate_fixed_price_params(params: FixedPriceSaleParams) -> None:
    if not 0 <= params.prefund_period <= MAX_PREFUND_PERIOD_SECONDS:
        raise InvalidPeriodConfig(
            "Prefund period out of bounds",
            details={"prefund_period": params.prefund_period, "max": MAX_PREFUND_PERIOD_SECONDS},
        )
    if not MIN_REFUND_PERIOD_SECONDS <= params.prefund_allocation_period <= MAX_PREFUND_ALLOCATION_PERIOD_SECONDS:
        raise InvalidPeriodConfig(
            "Prefund allocation period out of bounds",
            details={
                "prefund_allocation_period": params.prefund_allocation_period,
                "max": MAX_PREFUND_ALLOCATION_PERIOD_SECONDS,
            },
        )
    if params.token_price <= 0:
        raise ZeroValueProvided("Token price must be positive")


class FixedPriceSale(MerkleGatedSale):

    def __init__(
        self,
        params: SaleInitializationParams,
        fixed_price_params: FixedPriceSaleParams,
        bid_token: ERC20Token,
        registry: AddressRegistry,
        clock: Clock,
        ask_token: Optional[ERC20Token] = None,
        address: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        validate_fixed_price_params(fixed_price_params)
        self.fixed_price_params = fixed_price_params
        super().__init__(params, bid_token, registry, clock, ask_token, address, chain_id)
        self.prefund_end_time = self.config.start_time - fixed_price_params.prefund_allocation_period

    @property
    def token_price(self) -> int:
        return self.fixed_price_params.token_price

    def _sale_start_time(self, now: int) -> int:
        return (
            now
            + self.fixed_price_params.prefund_period
            + self.fixed_price_params.prefund_allocation_period
        )

    def is_prefund_period(self) -> bool:
        return self.now() < self.prefund_end_time

    def _verify_investment_window(self) -> None:
        self._verify_sale_not_ended()
        now = self.now()
        if self.prefund_end_time <= now < self.config.start_time:
            raise PrefundAllocationPeriodNotEnded(
                "Investing is paused during the prefund allocation period",
                details={"prefund_end_time": self.prefund_end_time, "start_time": self.config.start_time},
            )

    def tokens_for_capital(self, capital: int) -> int:
        """Ask tokens purchasable with capital at the fixed price."""
        if self.ask_token is None:
            raise InvalidSaleToken("Sale token is not known")
        return capital * 10**self.ask_token.decimals // self.token_price
