"""
Token ledgers used by sales.

- ERC20: Fungible value token for bid (capital) and ask (sale) tokens
"""

from .erc20 import ERC20Token, TokenError, TokenEvent

__all__ = [
    "ERC20Token",
    "TokenError",
    "TokenEvent",
]
