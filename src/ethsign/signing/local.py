"""Local signing backend.

Uses an in-memory private key for signing. Suitable for:
- Development/testing
- Software wallets

WARNING: The private key is held in memory. Use a hardware wallet for
significant funds.
"""

import logging
from typing import Optional

from eth_keys import keys
from eth_keys.exceptions import ValidationError as KeyValidationError

from ethsign.config import get_settings
from ethsign.encoding import hex_to_bytes
from ethsign.errors import ConnectionFailed, InvalidEncoding
from ethsign.signing.base import (
    ExtendedPublicKey,
    RecoveryEncoding,
    SignatureComponents,
    SignerType,
    SigningBackend,
)
from ethsign.signing.payloads import LocalPayloadTranslator

logger = logging.getLogger(__name__)


class LocalSigner(SigningBackend):
    """Local signing backend using an in-memory private key.

    The key is taken from the constructor, or from the
    HOT_WALLET_PRIVATE_KEY setting. eth_keys returns the raw recovery
    parity (0/1) for both transactions and messages.
    """

    translator = LocalPayloadTranslator()
    transaction_encoding = RecoveryEncoding.PARITY
    message_encoding = RecoveryEncoding.PARITY

    def __init__(self, private_key: Optional[str] = None):
        super().__init__(SignerType.LOCAL)
        self._key: Optional[keys.PrivateKey] = None
        self._load_key(private_key)

    def _load_key(self, private_key: Optional[str]):
        """Load the private key from the argument or settings."""
        if private_key is None:
            settings = get_settings()
            if not settings.has_local_key:
                return
            private_key = settings.hot_wallet_private_key.get_secret_value()

        try:
            self._key = keys.PrivateKey(hex_to_bytes(private_key))
        except (InvalidEncoding, KeyValidationError) as e:
            raise ValueError(f"Invalid local private key: {e}") from e
        logger.info("Loaded local signing key")

    async def connect(self) -> keys.PrivateKey:
        if self._key is None:
            raise ConnectionFailed("No local signing key configured")
        return self._key

    async def _sign_hash(self, payload: dict) -> SignatureComponents:
        key = await self.connect()
        signature = key.sign_msg_hash(hex_to_bytes(payload["hash"]))
        return SignatureComponents(r=signature.r, s=signature.s, v=signature.v)

    async def sign_transaction(self, payload: dict) -> SignatureComponents:
        """Sign the transaction's signing hash."""
        return await self._sign_hash(payload)

    async def sign_personal_message(self, payload: dict) -> SignatureComponents:
        """Sign the EIP-191 hash of the message."""
        return await self._sign_hash(payload)

    async def get_public_key(self, payload: dict) -> ExtendedPublicKey:
        """Public key and address of the local key (no chain code)."""
        key = await self.connect()
        return ExtendedPublicKey(
            public_key=key.public_key.to_bytes().hex(),
            address=key.public_key.to_checksum_address(),
        )
