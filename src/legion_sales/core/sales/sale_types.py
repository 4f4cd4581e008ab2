"""
Sale configuration and status records.

SaleConfig is fixed when a sale is created. SaleStatus is the mutable
singleton the lifecycle controller advances; nothing else writes to it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import (
    BASIS_POINTS_DENOMINATOR,
    MAX_REFUND_PERIOD_SECONDS,
    MAX_SALE_PERIOD_SECONDS,
    MIN_REFUND_PERIOD_SECONDS,
    MIN_SALE_PERIOD_SECONDS,
    ZERO_ADDRESS,
)
from ..sale_exceptions import InvalidFeeConfig, InvalidPeriodConfig, ZeroAddressProvided
from .fees import validate_fee_bps


class SaleState(Enum):
    ACTIVE = "active"
    ENDED = "ended"
    RESULTS_PUBLISHED = "results_published"
    TOKENS_SUPPLIED = "tokens_supplied"
    CANCELED = "canceled"


class SaleEventType(str, Enum):
    CAPITAL_INVESTED = "CapitalInvested"
    CAPITAL_REFUNDED = "CapitalRefunded"
    CAPITAL_REFUNDED_AFTER_CANCEL = "CapitalRefundedAfterCancel"
    EXCESS_CAPITAL_WITHDRAWN = "ExcessCapitalWithdrawn"
    SALE_ENDED = "SaleEnded"
    SALE_CANCELED = "SaleCanceled"
    CAPITAL_RAISED_PUBLISHED = "CapitalRaisedPublished"
    SALE_RESULTS_PUBLISHED = "SaleResultsPublished"
    ACCEPTED_CAPITAL_SET = "AcceptedCapitalSet"
    TOKENS_SUPPLIED = "TokensSupplied"
    CAPITAL_WITHDRAWN = "CapitalWithdrawn"
    TOKEN_ALLOCATION_CLAIMED = "TokenAllocationClaimed"
    VESTED_TOKENS_RELEASED = "VestedTokensReleased"
    INVESTOR_POSITION_TRANSFERRED = "InvestorPositionTransferred"
    INVESTOR_POSITION_MERGED = "InvestorPositionMerged"
    LEGION_ADDRESSES_SYNCED = "LegionAddressesSynced"
    EMERGENCY_WITHDRAW = "EmergencyWithdraw"


@dataclass(frozen=True)
class SaleEvent:
    event_type: SaleEventType
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SaleInitializationParams:
    """Parameters a project supplies when creating a sale."""

    sale_period: int
    refund_period: int
    minimum_invest_amount: int
    project_admin: str
    legion_fee_on_capital_bps: int = 250
    legion_fee_on_tokens_bps: int = 250
    referrer_fee_on_capital_bps: int = 0
    referrer_fee_on_tokens_bps: int = 0
    referrer_fee_receiver: str = ""
    sale_name: str = ""


@dataclass(frozen=True)
class SaleConfig:
    sale_period: int
    refund_period: int
    minimum_invest_amount: int
    bid_token: str
    ask_token: str
    legion_fee_on_capital_bps: int
    legion_fee_on_tokens_bps: int
    referrer_fee_on_capital_bps: int
    referrer_fee_on_tokens_bps: int
    project_admin: str
    referrer_fee_receiver: str
    start_time: int
    end_time: int
    refund_end_time: int
    sale_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_zero(address: str) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


def validate_sale_params(
    params: SaleInitializationParams,
    min_sale_period: int = MIN_SALE_PERIOD_SECONDS,
    max_sale_period: int = MAX_SALE_PERIOD_SECONDS,
) -> None:
    """
    Raises:
        ZeroAddressProvided: missing project admin or referrer receiver
        InvalidPeriodConfig: sale or refund period out of bounds
        InvalidFeeConfig: fee rates out of range or summing past 100%
    """
    if _is_zero(params.project_admin):
        raise ZeroAddressProvided("Project admin cannot be the zero address")

    if not min_sale_period <= params.sale_period <= max_sale_period:
        raise InvalidPeriodConfig(
            "Sale period out of bounds",
            details={"sale_period": params.sale_period, "min": min_sale_period, "max": max_sale_period},
        )
    if not MIN_REFUND_PERIOD_SECONDS <= params.refund_period <= MAX_REFUND_PERIOD_SECONDS:
        raise InvalidPeriodConfig(
            "Refund period out of bounds",
            details={
                "refund_period": params.refund_period,
                "min": MIN_REFUND_PERIOD_SECONDS,
                "max": MAX_REFUND_PERIOD_SECONDS,
            },
        )

    validate_fee_bps("legion_fee_on_capital_bps", params.legion_fee_on_capital_bps)
    validate_fee_bps("legion_fee_on_tokens_bps", params.legion_fee_on_tokens_bps)
    validate_fee_bps("referrer_fee_on_capital_bps", params.referrer_fee_on_capital_bps)
    validate_fee_bps("referrer_fee_on_tokens_bps", params.referrer_fee_on_tokens_bps)
    if params.legion_fee_on_capital_bps + params.referrer_fee_on_capital_bps > BASIS_POINTS_DENOMINATOR:
        raise InvalidFeeConfig("Capital fees exceed 100%")
    if params.legion_fee_on_tokens_bps + params.referrer_fee_on_tokens_bps > BASIS_POINTS_DENOMINATOR:
        raise InvalidFeeConfig("Token fees exceed 100%")

    has_referrer_fee = params.referrer_fee_on_capital_bps or params.referrer_fee_on_tokens_bps
    if has_referrer_fee and _is_zero(params.referrer_fee_receiver):
        raise ZeroAddressProvided("Referrer fee receiver required when referrer fees are set")


def build_sale_config(
    params: SaleInitializationParams,
    bid_token: str,
    ask_token: Optional[str],
    start_time: int,
) -> SaleConfig:
    if _is_zero(bid_token):
        raise ZeroAddressProvided("Bid token cannot be the zero address")

    end_time = start_time + params.sale_period
    return SaleConfig(
        sale_period=params.sale_period,
        refund_period=params.refund_period,
        minimum_invest_amount=params.minimum_invest_amount,
        bid_token=bid_token.lower(),
        ask_token=(ask_token or "").lower(),
        legion_fee_on_capital_bps=params.legion_fee_on_capital_bps,
        legion_fee_on_tokens_bps=params.legion_fee_on_tokens_bps,
        referrer_fee_on_capital_bps=params.referrer_fee_on_capital_bps,
        referrer_fee_on_tokens_bps=params.referrer_fee_on_tokens_bps,
        project_admin=params.project_admin.lower(),
        referrer_fee_receiver=params.referrer_fee_receiver.lower(),
        start_time=start_time,
        end_time=end_time,
        refund_end_time=end_time + params.refund_period,
        sale_name=params.sale_name,
    )


@dataclass
class SaleStatus:
    end_time: int
    refund_end_time: int
    ask_token: str = ""
    total_tokens_allocated: int = 0
    total_capital_invested: int = 0
    total_capital_raised: int = 0
    total_capital_withdrawn: int = 0
    has_ended: bool = False
    is_canceled: bool = False
    results_published: bool = False
    capital_raised_published: bool = False
    tokens_supplied: bool = False
    capital_withdrawn: bool = False
    claim_tokens_root: Optional[str] = None
    accepted_capital_root: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
