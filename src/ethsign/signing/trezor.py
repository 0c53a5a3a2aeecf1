"""Trezor signing backend.

Talks to a Trezor device through a caller supplied transport with a
Trezor Connect style interface: `call(payload)` returns an envelope
`{"success": bool, "payload": {...}}`. On failure the inner payload holds
`error` (message) and `code`.

Trezor returns transaction signatures with `v` already chain adjusted,
and message signatures as a single r || s || v hex blob.

Reference:
- https://github.com/trezor/connect/blob/develop/docs/methods/ethereumSignTransaction.md
"""

import logging
from typing import Callable, Protocol

from ethsign.encoding import hex_to_bytes, parse_hex_component, strip_prefix
from ethsign.errors import Cancelled, ConnectionFailed, DeviceRejected, HardwareError
from ethsign.signing.assembler import split_signature
from ethsign.signing.base import (
    ExtendedPublicKey,
    RecoveryEncoding,
    SignatureComponents,
    SignerType,
    SigningBackend,
)
from ethsign.signing.payloads import TrezorPayloadTranslator

logger = logging.getLogger(__name__)

CANCEL_CODES = frozenset({"Failure_ActionCancelled", "Failure_PinCancelled", "Method_Cancel"})
CONNECTION_CODES = frozenset({"Device_NotFound", "Device_Disconnected", "Transport_Missing"})
REJECTION_CODES = frozenset({"Failure_DataError", "Failure_ProcessError", "Failure_FirmwareError"})


class TrezorTransport(Protocol):
    def call(self, payload: dict) -> dict: ...


class TrezorCallFailed(RuntimeError):
    """A Trezor call failed for a reason without a typed counterpart."""

    def __init__(self, message: str, code: str = ""):
        self.code = code
        super().__init__(f"{message} ({code})" if code else message)


def trezor_error(response: dict) -> Exception:
    """Typed error for a failed Trezor envelope."""
    details = response.get("payload") or {}
    message = details.get("error", "Unknown Trezor error")
    code = details.get("code", "")

    if code in CANCEL_CODES:
        return Cancelled()
    if code in CONNECTION_CODES:
        return ConnectionFailed(message)
    if code in REJECTION_CODES:
        return DeviceRejected(message)
    return TrezorCallFailed(message, code)


class TrezorSigner(SigningBackend):
    """Trezor hardware wallet backend."""

    translator = TrezorPayloadTranslator()
    transaction_encoding = RecoveryEncoding.CHAIN_ADJUSTED
    message_encoding = RecoveryEncoding.LEGACY
    requires_confirmation = True

    def __init__(self, connect: Callable[[], TrezorTransport]):
        """Initialize Trezor signer.

        Args:
            connect: Opens a transport to the device (may block)
        """
        super().__init__(SignerType.TREZOR)
        self._connect = connect

    async def connect(self) -> TrezorTransport:
        try:
            return await self.run_blocking(self._connect)
        except HardwareError:
            raise
        except Exception as e:
            raise ConnectionFailed(f"Could not connect to the Trezor device: {e}") from e

    async def _call(self, payload: dict) -> dict:
        transport = await self.connect()
        response = await self.run_blocking(lambda: transport.call(payload))
        if not response.get("success"):
            raise trezor_error(response)
        return response.get("payload") or {}

    async def sign_transaction(self, payload: dict) -> SignatureComponents:
        """Send the transaction fields to the device for signing."""
        result = await self._call(payload)
        return SignatureComponents(
            r=parse_hex_component(result["r"]),
            s=parse_hex_component(result["s"]),
            v=parse_hex_component(result["v"]),
        )

    async def sign_personal_message(self, payload: dict) -> SignatureComponents:
        """Sign a message; the device answers with one signature blob."""
        result = await self._call(payload)
        return split_signature(hex_to_bytes(result["signature"]))

    async def get_public_key(self, payload: dict) -> ExtendedPublicKey:
        """Export the public key and chain code of the given path."""
        result = await self._call(payload)
        return ExtendedPublicKey(
            public_key=strip_prefix(result["publicKey"]),
            chain_code=strip_prefix(result["chainCode"]),
            address=result.get("address"),
        )
