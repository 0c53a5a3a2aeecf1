"""Base interfaces for transaction and message signing.

Signing flow:
1. Validate the request
2. Build the unsigned transaction (signature slots seeded for EIP-155)
3. Translate it into the payload the backend expects
4. Backend returns signature components (may wait for the user)
5. Merge the components back and serialize

Backends never expose private keys: they only return (r, s, v).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from ethsign.signing.payloads import PayloadTranslator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SignerType(str, Enum):
    """Type of signing backend."""
    LOCAL = "local"      # Private key in memory (software wallet)
    LEDGER = "ledger"    # Ledger device
    TREZOR = "trezor"    # Trezor device


class RecoveryEncoding(str, Enum):
    """Form of the `v` value a backend hands back.

    Declared per backend so that the EIP-155 conversion is applied
    exactly once, never guessed from the value itself.
    """
    PARITY = "parity"                  # 0 or 1
    LEGACY = "legacy"                  # 27 or 28
    CHAIN_ADJUSTED = "chain_adjusted"  # already chain_id * 2 + 35 + parity


@dataclass(frozen=True)
class SignatureComponents:
    """Raw ECDSA signature as returned by a backend.

    Attributes:
        r: R component
        s: S component
        v: Recovery value, in the backend's RecoveryEncoding
    """
    r: int
    s: int
    v: int


@dataclass(frozen=True)
class ExtendedPublicKey:
    """Public key material exported by a backend.

    Attributes:
        public_key: Public key as hex (no prefix)
        chain_code: BIP32 chain code as hex, None when the backend holds a
            single key and cannot derive children
        address: Address of the key, when the backend reports one
    """
    public_key: str
    chain_code: Optional[str] = None
    address: Optional[str] = None


class SigningBackend(ABC):
    """Abstract base class for signing backends.

    Subclasses declare their payload translator and the `v` encodings
    they return. Backend specific failures must be raised as the typed
    errors from `ethsign.errors` (`Cancelled`, `ConnectionFailed`,
    `DeviceRejected`); anything else is reported as a generic failure.
    """

    translator: "PayloadTranslator"
    transaction_encoding: RecoveryEncoding = RecoveryEncoding.PARITY
    message_encoding: RecoveryEncoding = RecoveryEncoding.LEGACY
    # Whether a human has to confirm on a device
    requires_confirmation: bool = False

    def __init__(self, signer_type: SignerType):
        self.signer_type = signer_type

    @abstractmethod
    async def connect(self) -> Any:
        """Open (or return) the handle used to talk to the signer.

        Raises:
            ConnectionFailed: If the signer cannot be reached
        """
        pass

    @abstractmethod
    async def sign_transaction(self, payload: dict) -> SignatureComponents:
        """Sign an unsigned transaction payload built by `translator`."""
        pass

    @abstractmethod
    async def sign_personal_message(self, payload: dict) -> SignatureComponents:
        """Sign a personal (EIP-191) message payload built by `translator`."""
        pass

    @abstractmethod
    async def get_public_key(self, payload: dict) -> ExtendedPublicKey:
        """Export the public key for the path in the payload."""
        pass

    async def health_check(self) -> bool:
        """Check if the signing backend is available.

        Returns:
            True if backend is ready to sign
        """
        try:
            await self.connect()
            return True
        except Exception as e:
            logger.warning(f"{self!r} health check failed: {e}")
            return False

    @staticmethod
    async def run_blocking(func: Callable[[], T]) -> T:
        """Run a blocking transport call without stalling the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.signer_type.value})"
