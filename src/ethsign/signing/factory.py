"""Signer factory.

Creates the appropriate signing backend based on configuration.

Device backends need a transport factory from the caller: USB/HID
discovery is outside this package.
"""

import logging
import os
from typing import Callable, Optional

from ethsign.config import get_settings
from ethsign.signing.base import SignerType, SigningBackend

logger = logging.getLogger(__name__)


def get_signer_type() -> SignerType:
    """Determine which signer to use.

    Priority:
    1. SIGNER_BACKEND environment variable (explicit)
    2. `signer_backend` setting (defaults to local)

    Raises:
        ValueError: If the configured backend is unknown
    """
    explicit = os.environ.get("SIGNER_BACKEND", "").strip().lower()
    name = explicit or get_settings().signer_backend

    try:
        return SignerType(name)
    except ValueError:
        raise ValueError(
            f"Unknown signer backend {name!r}; expected one of "
            f"{', '.join(t.value for t in SignerType)}"
        ) from None


def create_backend(
    signer_type: Optional[SignerType] = None,
    transport: Optional[Callable[[], object]] = None,
    private_key: Optional[str] = None,
) -> SigningBackend:
    """Create a signing backend.

    Args:
        signer_type: Backend to create (defaults to `get_signer_type()`)
        transport: Transport factory, required for device backends
        private_key: Key for the local backend (defaults to settings)

    Returns:
        SigningBackend instance

    Raises:
        ValueError: If a device backend is requested without a transport
    """
    signer_type = signer_type or get_signer_type()
    logger.info(f"Initializing {signer_type.value} signer")

    if signer_type == SignerType.LOCAL:
        from ethsign.signing.local import LocalSigner

        if get_settings().is_production:
            logger.warning("Using the local signer in production: the private key is held in memory")
        return LocalSigner(private_key)

    if transport is None:
        raise ValueError(f"The {signer_type.value} signer requires a device transport")

    if signer_type == SignerType.LEDGER:
        from ethsign.signing.ledger import LedgerSigner
        return LedgerSigner(transport)

    from ethsign.signing.trezor import TrezorSigner
    return TrezorSigner(transport)


async def get_signer_info(backend: SigningBackend) -> dict:
    """Get information about a signer.

    Returns:
        Dict with signer type, health status and encodings
    """
    health = await backend.health_check()

    return {
        "type": backend.signer_type.value,
        "healthy": health,
        "class": backend.__class__.__name__,
        "transaction_encoding": backend.transaction_encoding.value,
        "message_encoding": backend.message_encoding.value,
    }
