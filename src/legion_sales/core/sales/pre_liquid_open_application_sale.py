"""
Pre-liquid open-application sale.

Investors apply with capital under a platform signature; the platform later
publishes who was accepted and how many tokens each receives as Merkle
roots. Like the approved sale it is ended manually and the ask token may be
unknown until results are published.
"""

from ..constants import MAX_PRE_LIQUID_SALE_PERIOD_SECONDS
from .merkle_sale import MerkleGatedSale


class PreLiquidOpenApplicationSale(MerkleGatedSale):
    MAX_SALE_PERIOD = MAX_PRE_LIQUID_SALE_PERIOD_SECONDS
