"""
Investor position ledger.

Positions are records in an arena addressed by integer id, with an explicit
id -> owner map and a reverse investor -> id index. Every investor holds at
most one position per sale. Transfers move a record to a new owner, or merge
it into the position the destination already holds.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..sale_exceptions import (
    InvestorPositionDoesNotExist,
    NotPositionOwner,
    UnableToMergeInvestorPosition,
    UnableToTransferInvestorPosition,
    ZeroAddressProvided,
)
from ..constants import ZERO_ADDRESS

logger = logging.getLogger(__name__)


@dataclass
class InvestorPosition:
    position_id: int
    invested_capital: int = 0
    # Settlement inputs captured from the last authorization
    cached_invest_amount: int = 0
    cached_token_allocation_rate: int = 0
    has_refunded: bool = False
    has_claimed_excess: bool = False
    has_settled: bool = False
    vesting_address: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class InvestorPositionLedger:
    """Arena of investor positions for a single sale."""

    def __init__(self) -> None:
        self.positions: Dict[int, InvestorPosition] = {}
        self.owners: Dict[int, str] = {}
        self.position_ids: Dict[str, int] = {}
        self.next_position_id = 1

    def __len__(self) -> int:
        return len(self.positions)

    # ==================== Lookups ====================

    def position_of(self, investor: str) -> Optional[int]:
        return self.position_ids.get(investor.lower())

    def owner_of(self, position_id: int) -> str:
        try:
            return self.owners[position_id]
        except KeyError:
            raise InvestorPositionDoesNotExist(
                f"Position {position_id} does not exist",
                details={"position_id": position_id},
            ) from None

    def get(self, position_id: int) -> InvestorPosition:
        try:
            return self.positions[position_id]
        except KeyError:
            raise InvestorPositionDoesNotExist(
                f"Position {position_id} does not exist",
                details={"position_id": position_id},
            ) from None

    def find(self, investor: str) -> Optional[InvestorPosition]:
        position_id = self.position_of(investor)
        return None if position_id is None else self.positions[position_id]

    def investor_position(self, investor: str) -> InvestorPosition:
        position = self.find(investor)
        if position is None:
            raise InvestorPositionDoesNotExist(
                "Investor has no position in this sale",
                details={"investor": investor},
            )
        return position

    # ==================== Mutations ====================

    def get_or_create(self, investor: str) -> InvestorPosition:
        position = self.find(investor)
        if position is not None:
            return position
        return self.create(investor)

    def create(self, investor: str) -> InvestorPosition:
        investor = investor.lower()
        if not investor or investor == ZERO_ADDRESS:
            raise ZeroAddressProvided("Position owner cannot be the zero address")
        if investor in self.position_ids:
            raise UnableToTransferInvestorPosition(
                "Investor already holds a position",
                details={"investor": investor},
            )

        position_id = self.next_position_id
        self.next_position_id += 1
        position = InvestorPosition(position_id=position_id)
        self.positions[position_id] = position
        self.owners[position_id] = investor
        self.position_ids[investor] = position_id

        logger.debug(
            "Investor position %d created",
            position_id,
            extra={"event": "position.created", "investor": investor[:10]},
        )
        return position

    def burn(self, position_id: int) -> InvestorPosition:
        position = self.get(position_id)
        owner = self.owners.pop(position_id)
        del self.positions[position_id]
        del self.position_ids[owner]
        return position

    def transfer_position(self, from_investor: str, to_investor: str, position_id: int) -> int:
        """
        Move a position to another investor, merging if the destination
        already holds one.

        Returns:
            Id of the position now holding the transferred stake

        Raises:
            NotPositionOwner: from_investor does not own position_id
            UnableToTransferInvestorPosition: source refunded or self-transfer
            UnableToMergeInvestorPosition: destination cannot absorb the source
        """
        from_investor = from_investor.lower()
        to_investor = to_investor.lower()

        if self.owner_of(position_id) != from_investor:
            raise NotPositionOwner(
                "Position is not owned by the sender",
                details={"position_id": position_id, "from": from_investor},
            )
        if not to_investor or to_investor == ZERO_ADDRESS:
            raise ZeroAddressProvided("Cannot transfer a position to the zero address")
        if to_investor == from_investor:
            raise UnableToTransferInvestorPosition(
                "Cannot transfer a position to its owner",
                details={"position_id": position_id},
            )

        source = self.positions[position_id]
        if source.has_refunded:
            raise UnableToTransferInvestorPosition(
                "Refunded positions cannot be transferred",
                details={"position_id": position_id, "from": from_investor},
            )

        destination_id = self.position_of(to_investor)
        if destination_id is None:
            del self.position_ids[from_investor]
            self.owners[position_id] = to_investor
            self.position_ids[to_investor] = position_id
            logger.info(
                "Investor position %d transferred",
                position_id,
                extra={
                    "event": "position.transferred",
                    "from": from_investor[:10],
                    "to": to_investor[:10],
                },
            )
            return position_id

        self.merge_positions(position_id, destination_id)
        return destination_id

    def merge_positions(self, source_id: int, destination_id: int) -> None:
        source = self.positions[source_id]
        destination = self.positions[destination_id]

        if destination.has_refunded:
            raise UnableToMergeInvestorPosition(
                "Destination position has been refunded",
                details={"source_id": source_id, "destination_id": destination_id},
            )
        if destination.has_claimed_excess != source.has_claimed_excess:
            raise UnableToMergeInvestorPosition(
                "Positions disagree on excess capital withdrawal",
                details={"source_id": source_id, "destination_id": destination_id},
            )
        if destination.has_settled or source.has_settled:
            raise UnableToMergeInvestorPosition(
                "Settled positions cannot be merged",
                details={"source_id": source_id, "destination_id": destination_id},
            )

        destination.invested_capital += source.invested_capital
        destination.cached_invest_amount += source.cached_invest_amount
        # Rates are shares of the whole token pool, so they add
        destination.cached_token_allocation_rate += source.cached_token_allocation_rate

        self.burn(source_id)
        logger.info(
            "Investor position %d merged into %d",
            source_id,
            destination_id,
            extra={
                "event": "position.merged",
                "invested_capital": destination.invested_capital,
            },
        )

    # ==================== Snapshots ====================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "positions": copy.deepcopy(self.positions),
            "owners": dict(self.owners),
            "position_ids": dict(self.position_ids),
            "next_position_id": self.next_position_id,
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.positions = copy.deepcopy(snapshot["positions"])
        self.owners = dict(snapshot["owners"])
        self.position_ids = dict(snapshot["position_ids"])
        self.next_position_id = snapshot["next_position_id"]
