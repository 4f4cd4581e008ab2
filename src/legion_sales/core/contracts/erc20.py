"""
Value-token ledger.

In-memory ERC20-style ledger standing in for a sale's bid (capital) and ask
(sale) tokens. Sales move funds only through transfer/transfer_from, and
snapshot()/restore() let a failed sale action undo every balance change it
made.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..constants import UINT256_MAX, ZERO_ADDRESS
from ..sale_exceptions import TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenEvent:
    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int


@dataclass
class ERC20Token:
    name: str
    symbol: str
    decimals: int = 18
    address: str = ""
    owner: str = ""  # sole minter

    total_supply: int = 0
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    events: List[TokenEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.address:
            seed = f"token:{self.symbol}:{secrets.token_hex(16)}".encode()
            self.address = "0x" + hashlib.sha3_256(seed).digest()[-20:].hex()
        self.address = self.address.lower()
        self.owner = self.owner.lower()

    def balance_of(self, account: str) -> int:
        return self.balances.get(account.lower(), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner.lower(), {}).get(spender.lower(), 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self._move(sender.lower(), recipient.lower(), amount)
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        owner, spender = owner.lower(), spender.lower()
        if not spender or spender == ZERO_ADDRESS:
            raise TokenError(f"{self.symbol}: cannot approve the zero address")
        self._check_amount(amount)
        self.allowances.setdefault(owner, {})[spender] = amount
        self.events.append(TokenEvent("Approval", owner, spender, amount))
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Move amount out of from_addr on behalf of spender.

        Raises:
            TokenError: allowance or balance is insufficient
        """
        spender, from_addr = spender.lower(), from_addr.lower()
        allowed = self.allowance(from_addr, spender)
        if allowed < amount:
            raise TokenError(
                f"{self.symbol}: insufficient allowance for {spender[:10]}",
                details={"token": self.address, "owner": from_addr, "spender": spender,
                         "expected": amount, "actual": allowed},
            )
        self._move(from_addr, to_addr.lower(), amount)
        # An unlimited allowance stays unlimited
        if allowed != UINT256_MAX:
            self.allowances[from_addr][spender] = allowed - amount
        return True

    def mint(self, minter: str, to: str, amount: int) -> bool:
        if minter.lower() != self.owner:
            raise TokenError(
                f"{self.symbol}: only the owner can mint",
                details={"expected": self.owner, "actual": minter.lower()},
            )
        to = to.lower()
        if not to or to == ZERO_ADDRESS:
            raise TokenError(f"{self.symbol}: cannot mint to the zero address")
        self._check_amount(amount)

        self.total_supply += amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self.events.append(TokenEvent("Transfer", ZERO_ADDRESS, to, amount))
        logger.info(
            "Minted %d %s",
            amount,
            self.symbol,
            extra={"event": "token.mint", "token": self.address, "to": to[:10]},
        )
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": copy.deepcopy(self.allowances),
            "events_len": len(self.events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.allowances = copy.deepcopy(snapshot["allowances"])
        del self.events[snapshot["events_len"]:]

    def _check_amount(self, amount: int) -> None:
        if not 0 <= amount <= UINT256_MAX:
            raise TokenError(
                f"{self.symbol}: amount outside uint256", details={"amount": amount}
            )

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if not recipient or recipient == ZERO_ADDRESS:
            raise TokenError(f"{self.symbol}: cannot transfer to the zero address")
        self._check_amount(amount)
        balance = self.balances.get(sender, 0)
        if balance < amount:
            raise TokenError(
                f"{self.symbol}: transfer amount exceeds balance of {sender[:10]}",
                details={"token": self.address, "account": sender,
                         "expected": amount, "actual": balance},
            )
        self.balances[sender] = balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.events.append(TokenEvent("Transfer", sender, recipient, amount))
        logger.debug(
            "Transferred %d %s",
            amount,
            self.symbol,
            extra={
                "event": "token.transfer",
                "token": self.address,
                "from": sender[:10],
                "to": recipient[:10],
            },
        )
