"""Transaction and message signing.

Provides signing backends behind one pipeline:
- LocalSigner: In-memory private key (development/software wallet)
- LedgerSigner: Ledger Ethereum app over a caller supplied transport
- TrezorSigner: Trezor Connect style transport
"""

from ethsign.signing.base import (
    ExtendedPublicKey,
    RecoveryEncoding,
    SignatureComponents,
    SignerType,
    SigningBackend,
)
from ethsign.signing.events import SigningEvent, SigningState
from ethsign.signing.factory import create_backend, get_signer_type
from ethsign.signing.ledger import LedgerSigner
from ethsign.signing.local import LocalSigner
from ethsign.signing.pipeline import (
    SigningWallet,
    open_wallet,
    sign_message,
    sign_transaction,
    verify_message,
)
from ethsign.signing.trezor import TrezorSigner

__all__ = [
    "ExtendedPublicKey",
    "RecoveryEncoding",
    "SignatureComponents",
    "SignerType",
    "SigningBackend",
    "SigningEvent",
    "SigningState",
    "SigningWallet",
    "LedgerSigner",
    "LocalSigner",
    "TrezorSigner",
    "create_backend",
    "get_signer_type",
    "open_wallet",
    "sign_message",
    "sign_transaction",
    "verify_message",
]
