"""Ethereum transaction and message signing through local keys or hardware wallets."""

__version__ = "0.1.0"
