"""
Sale lifecycle controller.

LegionSale owns one sale's configuration, status, position ledger, replay
sets and vesting holders, and exposes every action shared by the sale
variants. Variants add their own investment, excess-capital and claim
authorization on top.

Lifecycle:
    ACTIVE -> ENDED -> RESULTS_PUBLISHED -> TOKENS_SUPPLIED
    CANCELED is terminal and reachable until tokens are supplied.

Every mutating action runs inside _atomic(): the sale state and the token
ledgers it touches are snapshotted first and restored if any step raises,
so a failed action leaves no trace.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import secrets
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .. import config as settings
from ..clock import Clock
from ..constants import MAX_SALE_PERIOD_SECONDS, MIN_SALE_PERIOD_SECONDS
from ..contracts.erc20 import ERC20Token
from ..registry import AddressRegistry, LegionAddresses
from ..sale_exceptions import (
    AlreadySettled,
    CapitalAlreadyWithdrawn,
    CapitalRaisedAlreadyPublished,
    CapitalRaisedNotPublished,
    InvalidPositionAmount,
    InvalidSaleToken,
    InvalidTokenAmountSupplied,
    InvalidWithdrawAmount,
    InvestmentAmountLessThanMinimum,
    InvestorHasClaimedExcess,
    InvestorHasRefunded,
    RefundPeriodIsNotOver,
    RefundPeriodIsOver,
    SaleHasEnded,
    SaleIsCanceled,
    SaleIsNotCanceled,
    SaleResultsAlreadyPublished,
    SaleResultsNotPublished,
    TokensAlreadySupplied,
    TokensNotSupplied,
    VestingHolderDoesNotExist,
    ZeroAddressProvided,
    ZeroValueProvided,
)
from ..typed_signing import DomainContext
from .access import Capability, requires_capability
from .fees import capital_fees, initial_release_amount, token_fees, verify_supplied_fees
from .positions import InvestorPosition, InvestorPositionLedger
from .sale_types import (
    SaleConfig,
    SaleEvent,
    SaleEventType,
    SaleInitializationParams,
    SaleState,
    SaleStatus,
    build_sale_config,
    validate_sale_params,
)
from .signature_verifier import SaleAction, SignatureAuthorizationVerifier, SignedAuthorization
from .vesting import (
    VestingConfig,
    VestingHolder,
    VestingStatus,
    create_vesting_holder,
    validate_vesting_config,
)

logger = logging.getLogger(__name__)


class LegionSale:
    """Base lifecycle controller shared by all sale variants."""

    MIN_SALE_PERIOD = MIN_SALE_PERIOD_SECONDS
    MAX_SALE_PERIOD = MAX_SALE_PERIOD_SECONDS

    def __init__(
        self,
        params: SaleInitializationParams,
        bid_token: ERC20Token,
        registry: AddressRegistry,
        clock: Clock,
        ask_token: Optional[ERC20Token] = None,
        address: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        validate_sale_params(params, self.MIN_SALE_PERIOD, self.MAX_SALE_PERIOD)

        self.clock = clock
        self.registry = registry
        self.bid_token = bid_token
        self.ask_token = ask_token
        self.address = (address or self._generate_address(params)).lower()

        now = clock.now()
        self.config: SaleConfig = build_sale_config(
            params,
            bid_token.address,
            ask_token.address if ask_token else None,
            self._sale_start_time(now),
        )
        self.status = SaleStatus(
            end_time=self.config.end_time,
            refund_end_time=self.config.refund_end_time,
            ask_token=self.config.ask_token,
        )
        self.legion_addresses = LegionAddresses.from_registry(registry)

        self.domain = DomainContext(
            chain_id=settings.CHAIN_ID if chain_id is None else chain_id,
            verifying_contract=self.address,
        )
        self.verifier = SignatureAuthorizationVerifier(self.domain)
        self.positions = InvestorPositionLedger()
        self.used_excess_claims: set[str] = set()
        self.vesting_holders: Dict[str, VestingHolder] = {}
        self.vesting_configs: Dict[str, VestingConfig] = {}
        self.events: List[SaleEvent] = []

        logger.info(
            "%s created at %s",
            type(self).__name__,
            self.address,
            extra={
                "event": "sale.created",
                "sale": self.address,
                "project_admin": self.config.project_admin[:10],
                "start_time": self.config.start_time,
                "end_time": self.config.end_time,
            },
        )

    def _generate_address(self, params: SaleInitializationParams) -> str:
        seed = f"{type(self).__name__}:{params.project_admin}:{params.sale_name}:{secrets.token_hex(8)}"
        return "0x" + hashlib.sha3_256(seed.encode()).digest()[-20:].hex()

    def _sale_start_time(self, now: int) -> int:
        return now

    # ==================== Views ====================

    def now(self) -> int:
        return self.clock.now()

    def is_ended(self) -> bool:
        return self.status.has_ended or self.now() >= self.status.end_time

    def is_refund_period_over(self) -> bool:
        return self.now() >= self.status.refund_end_time

    def sale_state(self) -> SaleState:
        if self.status.is_canceled:
            return SaleState.CANCELED
        if self.status.tokens_supplied:
            return SaleState.TOKENS_SUPPLIED
        if self.status.results_published:
            return SaleState.RESULTS_PUBLISHED
        if self.is_ended():
            return SaleState.ENDED
        return SaleState.ACTIVE

    def investor_position(self, investor: str) -> InvestorPosition:
        return self.positions.investor_position(investor)

    def position_of(self, investor: str) -> Optional[int]:
        return self.positions.position_of(investor)

    def owner_of(self, position_id: int) -> str:
        return self.positions.owner_of(position_id)

    def vesting_status(self, investor: str) -> VestingStatus:
        return self._vesting_holder(investor).status(self.now())

    def events_of_type(self, event_type: SaleEventType) -> List[SaleEvent]:
        return [event for event in self.events if event.event_type == event_type]

    # ==================== Snapshots ====================

    def snapshot(self) -> Dict[str, Any]:
        """Capture sale state and the balances of its token ledgers."""
        return {
            "status": copy.deepcopy(self.status),
            "legion_addresses": self.legion_addresses,
            "positions": self.positions.snapshot(),
            "used_signatures": set(self.verifier.used_signatures),
            "used_excess_claims": set(self.used_excess_claims),
            "vesting_holders": dict(self.vesting_holders),
            "vesting_released": {
                investor: holder.released for investor, holder in self.vesting_holders.items()
            },
            "vesting_configs": dict(self.vesting_configs),
            "events_len": len(self.events),
            "ask_token": self.ask_token,
            "bid_token_state": self.bid_token.snapshot(),
            "ask_token_state": self.ask_token.snapshot() if self.ask_token else None,
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Restore state captured by snapshot()."""
        self.status = copy.deepcopy(snapshot["status"])
        self.legion_addresses = snapshot["legion_addresses"]
        self.positions.restore(snapshot["positions"])
        self.verifier.used_signatures = set(snapshot["used_signatures"])
        self.used_excess_claims = set(snapshot["used_excess_claims"])
        self.vesting_holders = dict(snapshot["vesting_holders"])
        for investor, released in snapshot["vesting_released"].items():
            self.vesting_holders[investor].released = released
        self.vesting_configs = dict(snapshot["vesting_configs"])
        del self.events[snapshot["events_len"]:]
        self.ask_token = snapshot["ask_token"]
        self.bid_token.restore(snapshot["bid_token_state"])
        if self.ask_token is not None and snapshot["ask_token_state"] is not None:
            self.ask_token.restore(snapshot["ask_token_state"])

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        snapshot = self.snapshot()
        try:
            yield
        except Exception:
            self.restore(snapshot)
            raise

    # ==================== Events ====================

    def _emit(self, event_type: SaleEventType, **data: Any) -> SaleEvent:
        event = SaleEvent(event_type=event_type, timestamp=self.now(), data=data)
        self.events.append(event)
        logger.info(
            "%s",
            event_type.value,
            extra={"event": f"sale.{event_type.name.lower()}", "sale": self.address[:10], **data},
        )
        return event

    # ==================== State Checks ====================

    def _verify_not_canceled(self) -> None:
        if self.status.is_canceled:
            raise SaleIsCanceled("Sale has been canceled", details={"sale": self.address})

    def _verify_canceled(self) -> None:
        if not self.status.is_canceled:
            raise SaleIsNotCanceled("Sale has not been canceled", details={"sale": self.address})

    def _verify_sale_not_ended(self) -> None:
        if self.is_ended():
            raise SaleHasEnded(
                "Sale has ended",
                details={"end_time": self.status.end_time, "now": self.now()},
            )

    def _verify_refund_period_not_over(self) -> None:
        if self.is_refund_period_over():
            raise RefundPeriodIsOver(
                "Refund period is over",
                details={"refund_end_time": self.status.refund_end_time, "now": self.now()},
            )

    def _verify_refund_period_over(self) -> None:
        if not self.is_refund_period_over():
            raise RefundPeriodIsNotOver(
                "Refund period is not over",
                details={"refund_end_time": self.status.refund_end_time, "now": self.now()},
            )

    def _verify_results_not_published(self) -> None:
        if self.status.results_published:
            raise SaleResultsAlreadyPublished("Sale results have already been published")

    def _verify_investment_window(self) -> None:
        self._verify_sale_not_ended()

    def _verify_can_claim(self, investor: str) -> InvestorPosition:
        self._verify_not_canceled()
        if not self.status.tokens_supplied:
            raise TokensNotSupplied("Tokens have not been supplied")
        position = self.positions.investor_position(investor)
        if position.has_refunded:
            raise InvestorHasRefunded("Investor has refunded", details={"investor": investor})
        if position.has_settled:
            raise AlreadySettled("Token allocation already claimed", details={"investor": investor})
        return position

    def _verify_can_transfer_position(self) -> None:
        self._verify_not_canceled()
        self._verify_refund_period_over()
        self._verify_results_not_published()

    # ==================== Investment ====================

    def _record_investment(self, investor: str, amount: int) -> InvestorPosition:
        """Pull amount of bid token from investor into the sale and credit it."""
        if amount <= 0:
            raise ZeroValueProvided("Investment amount must be positive")
        if amount < self.config.minimum_invest_amount:
            raise InvestmentAmountLessThanMinimum(
                "Investment amount is less than the minimum",
                details={"amount": amount, "minimum": self.config.minimum_invest_amount},
            )

        position = self.positions.get_or_create(investor)
        if position.has_refunded:
            raise InvestorHasRefunded("Investor has refunded", details={"investor": investor})
        if position.has_claimed_excess:
            raise InvestorHasClaimedExcess(
                "Investor has withdrawn excess capital", details={"investor": investor}
            )

        position.invested_capital += amount
        self.status.total_capital_invested += amount
        self.bid_token.transfer_from(self.address, investor, self.address, amount)
        return position

    def _check_invest_cap(self, position: InvestorPosition, cap: int) -> None:
        if position.invested_capital > cap:
            raise InvalidPositionAmount(
                "Invested capital exceeds the authorized amount",
                details={"invested_capital": position.invested_capital, "cap": cap},
            )

    def _authorize_platform(
        self, authorization: SignedAuthorization, action: SaleAction, message: Dict[str, Any]
    ) -> None:
        self.verifier.authorize(authorization, self.legion_addresses.signer, action, message)

    # ==================== Refunds ====================

    def refund(self, investor: str) -> int:
        """Return an investor's full invested capital during the refund window."""
        investor = investor.lower()
        with self._atomic():
            self._verify_not_canceled()
            self._verify_refund_period_not_over()

            position = self.positions.investor_position(investor)
            if position.has_refunded:
                raise InvestorHasRefunded("Investor has already refunded", details={"investor": investor})
            if position.has_claimed_excess:
                raise InvestorHasClaimedExcess(
                    "Investor has withdrawn excess capital", details={"investor": investor}
                )
            amount = position.invested_capital
            if amount <= 0:
                raise InvalidWithdrawAmount("No capital to refund", details={"investor": investor})

            position.has_refunded = True
            position.invested_capital = 0
            self.status.total_capital_invested -= amount
            self.bid_token.transfer(self.address, investor, amount)
            self._emit(SaleEventType.CAPITAL_REFUNDED, investor=investor, amount=amount)
        return amount

    def withdraw_invested_capital_if_canceled(self, investor: str) -> int:
        investor = investor.lower()
        with self._atomic():
            self._verify_canceled()
            position = self.positions.investor_position(investor)
            amount = position.invested_capital
            if amount <= 0:
                raise InvalidWithdrawAmount(
                    "No capital left to withdraw", details={"investor": investor}
                )

            position.invested_capital = 0
            self.status.total_capital_invested -= amount
            self.bid_token.transfer(self.address, investor, amount)
            self._emit(SaleEventType.CAPITAL_REFUNDED_AFTER_CANCEL, investor=investor, amount=amount)
        return amount

    # ==================== Lifecycle ====================

    @requires_capability(Capability.EITHER_ADMIN)
    def end(self, caller: str) -> None:
        """End the sale now and restart the refund clock."""
        with self._atomic():
            self._verify_not_canceled()
            self._verify_sale_not_ended()

            now = self.now()
            self.status.has_ended = True
            self.status.end_time = now
            self.status.refund_end_time = now + self.config.refund_period
            self._emit(
                SaleEventType.SALE_ENDED,
                caller=caller.lower(),
                refund_end_time=self.status.refund_end_time,
            )

    @requires_capability(Capability.PROJECT_ADMIN)
    def cancel(self, caller: str) -> None:
        """
        Cancel the sale permanently.

        Capital the project already withdrew is pulled back from the project
        admin in the same action, so the project must have approved the sale
        for the withdrawn amount.
        """
        with self._atomic():
            self._verify_not_canceled()
            if self.status.tokens_supplied:
                raise TokensAlreadySupplied("Cannot cancel after tokens are supplied")

            returned = 0
            if self.status.capital_withdrawn:
                returned = self.status.total_capital_withdrawn
                self.bid_token.transfer_from(
                    self.address, self.config.project_admin, self.address, returned
                )
                self.status.capital_withdrawn = False
                self.status.total_capital_withdrawn = 0

            self.status.is_canceled = True
            self._emit(SaleEventType.SALE_CANCELED, capital_returned=returned)

    @requires_capability(Capability.PLATFORM_ADMIN)
    def publish_raised_capital(self, caller: str, capital_raised: int) -> None:
        with self._atomic():
            self._verify_not_canceled()
            self._verify_refund_period_over()
            if self.status.capital_raised_published:
                raise CapitalRaisedAlreadyPublished("Capital raised has already been published")
            if capital_raised > self.status.total_capital_invested:
                raise InvalidWithdrawAmount(
                    "Capital raised exceeds capital invested",
                    details={
                        "capital_raised": capital_raised,
                        "total_capital_invested": self.status.total_capital_invested,
                    },
                )

            self.status.total_capital_raised = capital_raised
            self.status.capital_raised_published = True
            self._emit(SaleEventType.CAPITAL_RAISED_PUBLISHED, capital_raised=capital_raised)

    def _publish_results(self, tokens_allocated: int, ask_token: Optional[ERC20Token]) -> None:
        self._verify_not_canceled()
        self._verify_refund_period_over()
        self._verify_results_not_published()
        if tokens_allocated <= 0:
            raise ZeroValueProvided("Tokens allocated must be positive")

        if ask_token is not None:
            if self.status.ask_token and ask_token.address != self.status.ask_token:
                raise InvalidSaleToken(
                    "Ask token does not match the sale's token",
                    details={"expected": self.status.ask_token, "actual": ask_token.address},
                )
            self.ask_token = ask_token
            self.status.ask_token = ask_token.address
        if self.ask_token is None:
            raise InvalidSaleToken("Sale token is not known")

        self.status.total_tokens_allocated = tokens_allocated
        self.status.results_published = True

    # ==================== Settlement ====================

    @requires_capability(Capability.PROJECT_ADMIN)
    def supply_tokens(self, caller: str, amount: int, legion_fee: int, referrer_fee: int) -> None:
        """
        Pull the allocated tokens and token fees from the project admin.

        Raises:
            InvalidTokenAmountSupplied: amount differs from tokens allocated
            InvalidFeeAmount: a fee differs from the recomputed value
        """
        with self._atomic():
            self._verify_not_canceled()
            if not self.status.results_published:
                raise SaleResultsNotPublished("Sale results have not been published")
            if self.status.tokens_supplied:
                raise TokensAlreadySupplied("Tokens have already been supplied")
            if amount != self.status.total_tokens_allocated:
                raise InvalidTokenAmountSupplied(
                    "Supplied amount does not match tokens allocated",
                    details={"expected": self.status.total_tokens_allocated, "actual": amount},
                )
            verify_supplied_fees(token_fees(self.config, amount), legion_fee, referrer_fee)

            project_admin = self.config.project_admin
            self.ask_token.transfer_from(self.address, project_admin, self.address, amount)
            if legion_fee:
                self.ask_token.transfer_from(
                    self.address, project_admin, self.legion_addresses.fee_receiver, legion_fee
                )
            if referrer_fee:
                self.ask_token.transfer_from(
                    self.address, project_admin, self.config.referrer_fee_receiver, referrer_fee
                )

            self.status.tokens_supplied = True
            self._emit(
                SaleEventType.TOKENS_SUPPLIED,
                amount=amount,
                legion_fee=legion_fee,
                referrer_fee=referrer_fee,
            )

    @requires_capability(Capability.PROJECT_ADMIN)
    def withdraw_raised_capital(self, caller: str) -> int:
        """Pay raised capital net of fees to the project; returns the net amount."""
        with self._atomic():
            self._verify_not_canceled()
            self._verify_refund_period_over()
            if not self.status.capital_raised_published:
                raise CapitalRaisedNotPublished("Capital raised has not been published")
            if self.status.capital_withdrawn:
                raise CapitalAlreadyWithdrawn("Capital has already been withdrawn")

            fees = capital_fees(self.config, self.status.total_capital_raised)
            self.status.capital_withdrawn = True
            self.status.total_capital_withdrawn = fees.total

            self.bid_token.transfer(self.address, self.config.project_admin, fees.net)
            if fees.legion_fee:
                self.bid_token.transfer(
                    self.address, self.legion_addresses.fee_receiver, fees.legion_fee
                )
            if fees.referrer_fee:
                self.bid_token.transfer(
                    self.address, self.config.referrer_fee_receiver, fees.referrer_fee
                )

            self._emit(
                SaleEventType.CAPITAL_WITHDRAWN,
                amount=fees.net,
                legion_fee=fees.legion_fee,
                referrer_fee=fees.referrer_fee,
            )
        return fees.net

    def _settle_allocation(
        self,
        investor: str,
        position: InvestorPosition,
        amount: int,
        vesting_config: VestingConfig,
        vesting_authorization: SignedAuthorization,
    ) -> VestingHolder:
        """
        Pay the initial release and escrow the remainder in a vesting holder.
        """
        self._authorize_platform(
            vesting_authorization,
            SaleAction.APPROVE_VESTING_CONFIG,
            vesting_config.to_message(investor),
        )
        validate_vesting_config(vesting_config, self.now())

        initial_release = initial_release_amount(amount, vesting_config.initial_release_rate)
        position.has_settled = True

        holder = create_vesting_holder(
            self.address, investor, self.ask_token, vesting_config, amount - initial_release
        )
        position.vesting_address = holder.address
        self.vesting_holders[investor] = holder
        self.vesting_configs[investor] = vesting_config

        if initial_release:
            self.ask_token.transfer(self.address, investor, initial_release)
        self.ask_token.transfer(self.address, holder.address, holder.total_amount)

        self._emit(
            SaleEventType.TOKEN_ALLOCATION_CLAIMED,
            investor=investor,
            amount=amount,
            initial_release=initial_release,
            vesting_holder=holder.address,
        )
        return holder

    def _vesting_holder(self, investor: str) -> VestingHolder:
        holder = self.vesting_holders.get(investor.lower())
        if holder is None:
            raise VestingHolderDoesNotExist(
                "Investor has no vesting holder", details={"investor": investor}
            )
        return holder

    def release_vested_tokens(self, investor: str) -> int:
        """Release everything currently vested for investor; 0 when nothing is due."""
        investor = investor.lower()
        with self._atomic():
            holder = self._vesting_holder(investor)
            released = holder.release(self.now())
            if released:
                self._emit(
                    SaleEventType.VESTED_TOKENS_RELEASED,
                    investor=investor,
                    amount=released,
                    vesting_holder=holder.address,
                )
        return released

    # ==================== Position Transfers ====================

    def _transfer_position(self, from_investor: str, to_investor: str, position_id: int) -> int:
        resulting_id = self.positions.transfer_position(from_investor, to_investor, position_id)
        if resulting_id == position_id:
            self._emit(
                SaleEventType.INVESTOR_POSITION_TRANSFERRED,
                from_investor=from_investor,
                to_investor=to_investor,
                position_id=position_id,
            )
        else:
            self._emit(
                SaleEventType.INVESTOR_POSITION_MERGED,
                from_investor=from_investor,
                to_investor=to_investor,
                position_id=position_id,
                merged_into=resulting_id,
            )
        return resulting_id

    @requires_capability(Capability.PLATFORM_ADMIN)
    def transfer_investor_position(
        self, caller: str, from_investor: str, to_investor: str, position_id: int
    ) -> int:
        with self._atomic():
            self._verify_can_transfer_position()
            return self._transfer_position(from_investor.lower(), to_investor.lower(), position_id)

    def transfer_investor_position_with_authorization(
        self,
        from_investor: str,
        to_investor: str,
        position_id: int,
        authorization: SignedAuthorization,
    ) -> int:
        """Transfer a position on the strength of its owner's signature."""
        from_investor = from_investor.lower()
        to_investor = to_investor.lower()
        with self._atomic():
            self._verify_can_transfer_position()
            self.verifier.authorize(
                authorization,
                from_investor,
                SaleAction.TRANSFER_POSITION,
                {"investor": from_investor, "to": to_investor, "positionId": position_id},
            )
            return self._transfer_position(from_investor, to_investor, position_id)

    # ==================== Administration ====================

    @requires_capability(Capability.PLATFORM_ADMIN)
    def sync_legion_addresses(self, caller: str) -> LegionAddresses:
        """Refresh the platform address snapshot from the registry."""
        with self._atomic():
            self.legion_addresses = LegionAddresses.from_registry(self.registry)
            self._emit(
                SaleEventType.LEGION_ADDRESSES_SYNCED,
                platform_admin=self.legion_addresses.platform_admin,
                signer=self.legion_addresses.signer,
                fee_receiver=self.legion_addresses.fee_receiver,
            )
        return self.legion_addresses

    @requires_capability(Capability.PLATFORM_ADMIN)
    def emergency_withdraw(self, caller: str, receiver: str, token: ERC20Token, amount: int) -> None:
        """Recover tokens held by the sale."""
        if not receiver:
            raise ZeroAddressProvided("Receiver cannot be the zero address")
        with self._atomic():
            token.transfer(self.address, receiver, amount)
            self._emit(
                SaleEventType.EMERGENCY_WITHDRAW,
                receiver=receiver.lower(),
                token=token.address,
                amount=amount,
            )
