"""Ledger signing backend.

Talks to the Ethereum app on a Ledger device through a caller supplied
transport (USB/HID discovery is not handled here). The transport is
opened per operation, like the device itself expects.

Transport contract (blocking calls, run in an executor):
    get_address(path, display, return_chain_code) -> {publicKey, chainCode, address}
    sign_transaction(path, unsigned_tx_hex) -> {r, s, v}   (hex strings)
    sign_personal_message(path, message_hex) -> {r, s, v}  (v is an int)

Failures are expected to carry the APDU status word in `status_code`.

Reference:
- https://github.com/LedgerHQ/app-ethereum/blob/develop/doc/ethapp.adoc
"""

import logging
from typing import Any, Callable, Optional, Protocol

from ethsign.config import get_settings
from ethsign.encoding import parse_hex_component, strip_prefix
from ethsign.errors import Cancelled, ConnectionFailed, DeviceRejected, HardwareError
from ethsign.signing.base import (
    ExtendedPublicKey,
    RecoveryEncoding,
    SignatureComponents,
    SignerType,
    SigningBackend,
)
from ethsign.signing.payloads import LedgerPayloadTranslator

logger = logging.getLogger(__name__)

# APDU status words
STATUS_USER_DENIED = 0x6985
REJECTION_STATUSES = {
    0x5515: "Device is locked",
    0x6A80: "Invalid data",
    0x6B00: "Incorrect parameters",
    0x6D00: "Ethereum app is not open",
    0x6E00: "Ethereum app is not open",
}


class LedgerTransport(Protocol):
    def get_address(self, path: list[int], display: bool, return_chain_code: bool) -> dict: ...

    def sign_transaction(self, path: list[int], unsigned_transaction: str) -> dict: ...

    def sign_personal_message(self, path: list[int], message: str) -> dict: ...


def ledger_error(error: BaseException) -> Optional[HardwareError]:
    """Typed error for a transport failure, None if it is not a device status."""
    status = getattr(error, "status_code", None)
    if status == STATUS_USER_DENIED:
        return Cancelled()
    if status in REJECTION_STATUSES:
        return DeviceRejected(f"{REJECTION_STATUSES[status]} (0x{status:04x})")
    return None


class LedgerSigner(SigningBackend):
    """Ledger hardware wallet backend.

    The form of `v` returned for transactions varies with the app
    version, so it is a constructor argument (LEDGER_RECOVERY_ENCODING by
    default). Personal message signatures always come back as 27/28.
    """

    translator = LedgerPayloadTranslator()
    message_encoding = RecoveryEncoding.LEGACY
    requires_confirmation = True

    def __init__(
        self,
        connect: Callable[[], LedgerTransport],
        transaction_encoding: Optional[RecoveryEncoding] = None,
    ):
        """Initialize Ledger signer.

        Args:
            connect: Opens a transport to the device (may block)
            transaction_encoding: `v` form returned by sign_transaction
        """
        super().__init__(SignerType.LEDGER)
        self._connect = connect
        self.transaction_encoding = transaction_encoding or RecoveryEncoding(
            get_settings().ledger_recovery_encoding
        )

    async def connect(self) -> LedgerTransport:
        try:
            return await self.run_blocking(self._connect)
        except HardwareError:
            raise
        except Exception as e:
            typed = ledger_error(e)
            if typed is not None:
                raise typed from e
            raise ConnectionFailed(f"Could not connect to the Ledger device: {e}") from e

    async def _call(self, method: str, *args: Any) -> dict:
        transport = await self.connect()
        try:
            return await self.run_blocking(lambda: getattr(transport, method)(*args))
        except Exception as e:
            typed = ledger_error(e)
            if typed is None:
                raise
            raise typed from e

    async def sign_transaction(self, payload: dict) -> SignatureComponents:
        """Sign the serialized unsigned transaction on the device."""
        result = await self._call(
            "sign_transaction", payload["address_n"], payload["transaction"]
        )
        return _components(result)

    async def sign_personal_message(self, payload: dict) -> SignatureComponents:
        """Sign a personal message on the device."""
        result = await self._call(
            "sign_personal_message", payload["address_n"], payload["message"]
        )
        return _components(result)

    async def get_public_key(self, payload: dict) -> ExtendedPublicKey:
        """Export the public key and chain code of the given path."""
        result = await self._call("get_address", payload["address_n"], False, True)
        return ExtendedPublicKey(
            public_key=strip_prefix(result["publicKey"]),
            chain_code=strip_prefix(result["chainCode"]),
            address=result.get("address"),
        )


def _components(result: dict) -> SignatureComponents:
    return SignatureComponents(
        r=parse_hex_component(result["r"]),
        s=parse_hex_component(result["s"]),
        v=parse_hex_component(result["v"]),
    )
