"""HD wallet helpers: derivation paths and address derivation."""

from ethsign.hdwallet.eth import AddressInfo, ETHHDWallet
from ethsign.hdwallet.path import DerivationPath

__all__ = [
    "AddressInfo",
    "DerivationPath",
    "ETHHDWallet",
]
