"""
Legion Sales - Token Sale Settlement Engine

Raises capital from investors under several commitment schemes and settles
capital, fees and token allocations afterwards, including vesting release.

Main Components:
- Sales: lifecycle controller and the sale variants
- Positions: per-investor ledger with transfer and merge
- Authorization: typed-data signatures, Merkle proofs and sealed bids
- Vesting: linear and epoch schedules with investor-owned holders
"""

__version__ = "0.1.0"
__author__ = "Legion Development Team"

__all__ = []
