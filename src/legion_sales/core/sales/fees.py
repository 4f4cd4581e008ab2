"""
Fee and settlement arithmetic.

All amounts are integers in the token's smallest unit. Fees round down,
so the project's share absorbs rounding dust and published totals always
reconcile exactly: net + legion_fee + referrer_fee == total.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..constants import BASIS_POINTS_DENOMINATOR, RATE_PRECISION
from ..sale_exceptions import InvalidFeeAmount, InvalidFeeConfig


def validate_fee_bps(name: str, bps: int) -> None:
    if not isinstance(bps, int) or bps < 0 or bps > BASIS_POINTS_DENOMINATOR:
        raise InvalidFeeConfig(
            f"{name} must be between 0 and {BASIS_POINTS_DENOMINATOR} bps",
            details={"field": name, "value": bps},
        )


def calculate_fee(total: int, bps: int) -> int:
    """Return total * bps / 10_000, rounded down."""
    return total * bps // BASIS_POINTS_DENOMINATOR


@dataclass(frozen=True)
class FeeBreakdown:
    total: int
    legion_fee: int
    referrer_fee: int

    @property
    def net(self) -> int:
        return self.total - self.legion_fee - self.referrer_fee


def compute_fees(total: int, legion_bps: int, referrer_bps: int) -> FeeBreakdown:
    return FeeBreakdown(
        total=total,
        legion_fee=calculate_fee(total, legion_bps),
        referrer_fee=calculate_fee(total, referrer_bps),
    )


def verify_supplied_fees(
    breakdown: FeeBreakdown, legion_fee: int, referrer_fee: int
) -> None:
    """
    Require caller-supplied fees to equal the recomputed ones exactly.

    Raises:
        InvalidFeeAmount: carrying the expected/actual pair of the first mismatch
    """
    if legion_fee != breakdown.legion_fee:
        raise InvalidFeeAmount(
            "Legion fee does not match the published allocation",
            expected=breakdown.legion_fee,
            actual=legion_fee,
            details={"fee": "legion"},
        )
    if referrer_fee != breakdown.referrer_fee:
        raise InvalidFeeAmount(
            "Referrer fee does not match the published allocation",
            expected=breakdown.referrer_fee,
            actual=referrer_fee,
            details={"fee": "referrer"},
        )


def token_allocation_from_rate(rate: int, tokens_allocated: int) -> int:
    """Tokens owed for an 18-decimal share of the total allocation."""
    return rate * tokens_allocated // RATE_PRECISION


def initial_release_amount(allocation: int, initial_release_rate: int) -> int:
    """Part of an allocation paid out immediately at claim time."""
    return allocation * initial_release_rate // RATE_PRECISION


def capital_fees(sale_config: Any, capital_raised: int) -> FeeBreakdown:
    """Fees owed on raised capital under a sale configuration."""
    return compute_fees(
        capital_raised,
        sale_config.legion_fee_on_capital_bps,
        sale_config.referrer_fee_on_capital_bps,
    )


def token_fees(sale_config: Any, tokens_allocated: int) -> FeeBreakdown:
    """Fees owed on allocated tokens under a sale configuration."""
    return compute_fees(
        tokens_allocated,
        sale_config.legion_fee_on_tokens_bps,
        sale_config.referrer_fee_on_tokens_bps,
    )
