from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .. import config
from ..constants import RATE_PRECISION
from ..sale_exceptions import InvalidVestingConfig

logger = logging.getLogger(__name__)


class VestingType(IntEnum):
    LINEAR = 0
    LINEAR_EPOCH = 1


@dataclass(frozen=True)
class VestingConfig:
    vesting_type: VestingType
    start: int
    duration: int
    cliff_duration: int = 0
    epoch_duration: int = 0
    number_of_epochs: int = 0
    initial_release_rate: int = 0  # 18-decimal fraction paid at claim time

    @property
    def cliff_end(self) -> int:
        return self.start + self.cliff_duration

    @property
    def end(self) -> int:
        return self.start + self.duration

    def to_message(self, investor: str) -> dict[str, Any]:
        """Fields bound into a vesting-config approval signature."""
        return {
            "investor": investor,
            "vestingType": int(self.vesting_type),
            "vestingStart": self.start,
            "vestingDuration": self.duration,
            "cliffDuration": self.cliff_duration,
            "epochDuration": self.epoch_duration,
            "numberOfEpochs": self.number_of_epochs,
            "initialReleaseRate": self.initial_release_rate,
        }


@dataclass(frozen=True)
class VestingStatus:
    start: int
    end: int
    cliff_end: int
    duration: int
    released: int
    releasable: int
    vested: int


def validate_vesting_config(
    vesting_config: VestingConfig,
    now: int,
    max_duration: int | None = None,
    max_lockup: int | None = None,
) -> None:
    """
    Reject vesting configurations outside protocol bounds.

    Raises:
        InvalidVestingConfig: naming the offending field
    """
    max_duration = config.MAX_VESTING_DURATION_SECONDS if max_duration is None else max_duration
    max_lockup = config.MAX_VESTING_LOCKUP_SECONDS if max_lockup is None else max_lockup

    def reject(reason: str, **details: Any) -> None:
        raise InvalidVestingConfig(reason, details=details)

    if vesting_config.start > now + max_lockup:
        reject("Vesting start exceeds maximum lockup", start=vesting_config.start, max_start=now + max_lockup)
    if vesting_config.duration <= 0 or vesting_config.duration > max_duration:
        reject("Vesting duration out of range", duration=vesting_config.duration, max_duration=max_duration)
    if vesting_config.cliff_duration < 0 or vesting_config.cliff_duration > vesting_config.duration:
        reject("Cliff exceeds vesting duration", cliff=vesting_config.cliff_duration, duration=vesting_config.duration)
    if not 0 <= vesting_config.initial_release_rate <= RATE_PRECISION:
        reject("Initial release rate exceeds 100%", initial_release_rate=vesting_config.initial_release_rate)

    if vesting_config.vesting_type == VestingType.LINEAR_EPOCH:
        if vesting_config.epoch_duration <= 0 or vesting_config.number_of_epochs <= 0:
            reject(
                "Epoch vesting requires positive epoch duration and count",
                epoch_duration=vesting_config.epoch_duration,
                number_of_epochs=vesting_config.number_of_epochs,
            )
        if vesting_config.epoch_duration * vesting_config.number_of_epochs > vesting_config.duration:
            reject(
                "Epochs exceed vesting duration",
                epoch_duration=vesting_config.epoch_duration,
                number_of_epochs=vesting_config.number_of_epochs,
                duration=vesting_config.duration,
            )


def vested_amount(vesting_config: VestingConfig, total_amount: int, timestamp: int) -> int:
    """
    Amount of total_amount vested at timestamp.

    Linear schedules vest pro rata after the cliff. Epoch schedules vest
    total // number_of_epochs per fully elapsed epoch, and the final epoch
    releases the rounding remainder.
    """
    if timestamp < vesting_config.cliff_end or timestamp < vesting_config.start:
        return 0
    if timestamp >= vesting_config.end:
        return total_amount

    elapsed = timestamp - vesting_config.start

    if vesting_config.vesting_type == VestingType.LINEAR_EPOCH:
        epochs = min(elapsed // vesting_config.epoch_duration, vesting_config.number_of_epochs)
        if epochs >= vesting_config.number_of_epochs:
            return total_amount
        return epochs * (total_amount // vesting_config.number_of_epochs)

    return min(total_amount * elapsed // vesting_config.duration, total_amount)


@dataclass
class VestingHolder:
    """Investor-owned escrow releasing tokens along a vesting schedule."""

    address: str
    beneficiary: str
    token: Any
    schedule: VestingConfig
    total_amount: int
    released: int = 0

    def vested_amount(self, timestamp: int) -> int:
        return vested_amount(self.schedule, self.total_amount, timestamp)

    def releasable(self, timestamp: int) -> int:
        return self.vested_amount(timestamp) - self.released

    def status(self, timestamp: int) -> VestingStatus:
        return VestingStatus(
            start=self.schedule.start,
            end=self.schedule.end,
            cliff_end=self.schedule.cliff_end,
            duration=self.schedule.duration,
            released=self.released,
            releasable=self.releasable(timestamp),
            vested=self.vested_amount(timestamp),
        )

    def release(self, timestamp: int) -> int:
        """
        Pay out everything releasable at timestamp to the beneficiary.

        Returns:
            Amount released (0 when nothing is releasable)
        """
        amount = self.releasable(timestamp)
        if amount <= 0:
            logger.warning(
                "No vested tokens to release for %s",
                self.beneficiary[:10],
                extra={"event": "vesting.nothing_releasable", "holder": self.address},
            )
            return 0

        self.released += amount
        self.token.transfer(self.address, self.beneficiary, amount)
        logger.info(
            "Released %d vested tokens from %s",
            amount,
            self.address,
            extra={
                "event": "vesting.released",
                "holder": self.address,
                "beneficiary": self.beneficiary[:10],
                "released_total": self.released,
            },
        )
        return amount


def create_vesting_holder(
    sale_address: str,
    beneficiary: str,
    token: Any,
    schedule: VestingConfig,
    total_amount: int,
) -> VestingHolder:
    """Instantiate a holder at an address derived from the sale and investor."""
    address_hash = hashlib.sha3_256(
        f"vesting:{sale_address.lower()}:{beneficiary.lower()}".encode()
    ).digest()
    holder = VestingHolder(
        address=f"0x{address_hash[-20:].hex()}",
        beneficiary=beneficiary.lower(),
        token=token,
        schedule=schedule,
        total_amount=total_amount,
    )
    logger.info(
        "Vesting holder %s created for %s",
        holder.address,
        holder.beneficiary[:10],
        extra={
            "event": "vesting.holder_created",
            "vesting_type": schedule.vesting_type.name,
            "total_amount": total_amount,
        },
    )
    return holder
