"""
WAX (EOSIO) transaction types, binary encoding and K1 keys.
"""

from .types import Action, Authorization, ChainHeadInfo, Transaction
from .keys import PrivateKey, PublicKey

__all__ = [
    "Action",
    "Authorization",
    "ChainHeadInfo",
    "Transaction",
    "PrivateKey",
    "PublicKey",
]
