"""
Legion Sales Core Module

Core functionality for the sale engine including:
- Configuration, constants and structured logging
- secp256k1 signing and typed-data digests
- Token ledgers, address registry and clocks
- Sale variants and settlement (see legion_sales.core.sales)
"""

__all__ = []
