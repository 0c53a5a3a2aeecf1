"""Signing pipeline.

Public operations, each a single suspending sequence:

    validate -> build payload -> await backend -> assemble

The backend call is the only suspension point; it may wait indefinitely
for the user to confirm on a device. Backend failures are classified once,
here, by `classify_error`. Nothing is shared between calls: the wallet is
an immutable configuration value passed in explicitly.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Union

from ethsign.config import get_settings
from ethsign.errors import EthSignError, HardwareError, InvalidType
from ethsign.hdwallet.eth import AddressInfo, ETHHDWallet
from ethsign.hdwallet.path import DerivationPath
from ethsign.signing.assembler import assemble_message, assemble_transaction
from ethsign.signing.base import SigningBackend
from ethsign.signing.classifier import classify_error
from ethsign.signing.events import EventSink, Operation, SigningOperation, SigningState
from ethsign.signing.transaction import LegacyTransaction
from ethsign.signing.verify import address_of, verify_signature
from ethsign.validation import (
    TransactionRequest,
    validate,
    validate_chain_id,
    validate_message,
    validate_verification,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningWallet:
    """Which key signs, and where.

    Attributes:
        backend: Signing backend holding the key
        derivation_path: Path of the selected address (None for local keys)
        chain_id: Default chain for transactions
        address: Checksum address of the selected key
        public_key: Public key of the selected key (hex)
        addresses: All addresses derived when the wallet was opened
    """
    backend: SigningBackend
    derivation_path: Optional[DerivationPath] = None
    chain_id: int = 1
    address: Optional[str] = None
    public_key: Optional[str] = None
    addresses: tuple[AddressInfo, ...] = ()

    def select(self, index: int) -> "SigningWallet":
        """Same wallet, with another derived address selected."""
        if not 0 <= index < len(self.addresses):
            raise InvalidType("address_index", f"expected 0..{len(self.addresses) - 1}")
        selected = self.addresses[index]
        return replace(
            self,
            derivation_path=selected.derivation_path,
            address=selected.address,
            public_key=selected.public_key,
        )


def _classified(operation: SigningOperation, error: Exception, payload: Optional[dict]) -> HardwareError:
    classified = classify_error(error, operation.operation, payload)
    operation.fail(classified)
    return classified


def _confirmation_warning(operation: SigningOperation, backend: SigningBackend, message: str) -> None:
    if backend.requires_confirmation and get_settings().interaction_warnings:
        operation.warn(message)


async def open_wallet(
    backend: SigningBackend,
    chain_id: Optional[int] = None,
    address_count: Optional[int] = None,
    address_index: int = 0,
    events: Optional[EventSink] = None,
) -> SigningWallet:
    """Export the root public key and derive the wallet's addresses.

    The root path depends on the chain: coin type 60 on mainnet, 1 on
    test networks.

    Args:
        backend: Signing backend
        chain_id: Chain the wallet signs for (defaults to settings)
        address_count: Number of addresses to derive (defaults to settings)
        address_index: Address to select
        events: Event sink

    Returns:
        SigningWallet for the selected address

    Raises:
        Cancelled: If the user refused to export the key
    """
    settings = get_settings()
    address_count = address_count or settings.address_count

    operation = SigningOperation(Operation.OPEN_WALLET, events)
    operation.advance(SigningState.VALIDATING)
    try:
        chain_id = validate_chain_id(settings.default_chain_id if chain_id is None else chain_id)
        if not 0 <= address_index < address_count:
            raise InvalidType("address_index", f"expected 0..{address_count - 1}")
        root_path = DerivationPath.root_for_chain(chain_id)
        payload = backend.translator.public_key_payload(root_path)
    except EthSignError as e:
        operation.fail(e)
        raise

    operation.advance(SigningState.PAYLOAD_BUILT)
    _confirmation_warning(operation, backend, "Please confirm exporting the public key on your device")
    operation.advance(SigningState.AWAITING_BACKEND)
    try:
        exported = await backend.get_public_key(payload)
        operation.advance(SigningState.ASSEMBLING)

        if exported.chain_code:
            hd_wallet = ETHHDWallet(exported.public_key, exported.chain_code, root_path)
            addresses = tuple(hd_wallet.derive_addresses(address_count))
            wallet = SigningWallet(backend=backend, chain_id=chain_id, addresses=addresses)
            wallet = wallet.select(address_index)
        else:
            wallet = SigningWallet(
                backend=backend,
                chain_id=chain_id,
                address=exported.address or address_of(exported.public_key),
                public_key=exported.public_key,
            )
    except Exception as e:
        classified = _classified(operation, e, payload)
        if classified is e:
            raise
        raise classified from e

    operation.advance(SigningState.DONE, f"Opened wallet {wallet.address}")
    logger.info(f"Opened {backend!r} wallet on chain {chain_id} ({len(wallet.addresses)} derived addresses)")
    return wallet


async def sign_transaction(
    wallet: SigningWallet,
    request: Union[TransactionRequest, Mapping[str, Any]],
    events: Optional[EventSink] = None,
) -> str:
    """Sign a transaction and return the serialized signed transaction.

    The request's chain id and derivation path default to the wallet's.

    Returns:
        `0x` prefixed RLP hex of the signed transaction

    Raises:
        ValidationError: If the request is invalid (before any backend call)
        Cancelled: If the user cancelled on the device
        ConnectionFailed: If the backend could not be reached
        SigningError: For any other backend failure
    """
    operation = SigningOperation(Operation.SIGN_TRANSACTION, events)
    backend = wallet.backend

    operation.advance(SigningState.VALIDATING)
    try:
        transaction = validate(
            request,
            defaults={"chain_id": wallet.chain_id, "derivation_path": wallet.derivation_path},
        )
        unsigned = LegacyTransaction.from_request(transaction)
        payload = backend.translator.transaction_payload(
            transaction, unsigned, transaction.derivation_path
        )
    except EthSignError as e:
        operation.fail(e)
        raise

    operation.advance(SigningState.PAYLOAD_BUILT)
    logger.debug(f"Signing transaction with {backend!r}: {transaction.to_log_dict()}")
    if transaction.is_contract_deployment:
        operation.warn("Signing a contract deployment transaction (no destination address)")
    _confirmation_warning(operation, backend, "Please confirm the transaction on your device")

    operation.advance(SigningState.AWAITING_BACKEND)
    try:
        components = await backend.sign_transaction(payload)
        operation.advance(SigningState.ASSEMBLING)
        signed = assemble_transaction(
            unsigned, components, transaction.chain_id, backend.transaction_encoding
        )
    except Exception as e:
        classified = _classified(operation, e, payload)
        if classified is e:
            raise
        raise classified from e

    operation.advance(SigningState.DONE)
    return signed


async def sign_message(
    wallet: SigningWallet,
    message: Optional[str] = None,
    message_data: Any = None,
    events: Optional[EventSink] = None,
) -> str:
    """Sign a personal message (text or raw bytes).

    Returns:
        `0x` prefixed 65 byte r || s || v signature

    Raises:
        AmbiguousOrMissingMessage: Unless exactly one of message / message_data is given
        Cancelled: If the user cancelled on the device
        SigningError: For any other backend failure
    """
    operation = SigningOperation(Operation.SIGN_MESSAGE, events)
    backend = wallet.backend

    operation.advance(SigningState.VALIDATING)
    try:
        to_sign = validate_message(message, message_data)
        payload = backend.translator.message_payload(to_sign, wallet.derivation_path)
    except EthSignError as e:
        operation.fail(e)
        raise

    operation.advance(SigningState.PAYLOAD_BUILT)
    _confirmation_warning(operation, backend, "Please confirm the message signature on your device")

    operation.advance(SigningState.AWAITING_BACKEND)
    try:
        components = await backend.sign_personal_message(payload)
        operation.advance(SigningState.ASSEMBLING)
        signature = assemble_message(components, backend.message_encoding)
    except Exception as e:
        classified = _classified(operation, e, payload)
        if classified is e:
            raise
        raise classified from e

    operation.advance(SigningState.DONE)
    return signature


async def verify_message(
    signer: Union[SigningWallet, str],
    message: Union[str, bytes],
    signature: str,
    events: Optional[EventSink] = None,
) -> bool:
    """Verify a personal message signature.

    Never raises: any failure (malformed input included) is reported as a
    warning event and returns False.

    Args:
        signer: Wallet, address or public key expected to have signed
        message: The signed message
        signature: Signature hex, as returned by `sign_message`
        events: Event sink
    """
    operation = SigningOperation(Operation.VERIFY_MESSAGE, events)
    try:
        operation.advance(SigningState.VALIDATING)
        if isinstance(signer, SigningWallet):
            expected = signer.public_key or signer.address
        else:
            expected = signer
        if not expected:
            raise InvalidType("signer", "no address or public key to verify against")
        message_bytes, normalized = validate_verification(message, signature)

        operation.advance(SigningState.PAYLOAD_BUILT)
        operation.advance(SigningState.AWAITING_BACKEND)
        is_valid = verify_signature(expected, message_bytes, normalized)
        operation.advance(SigningState.ASSEMBLING)
    except Exception as e:
        operation.warn(
            f"Message signature is invalid: message ({message!r}), signature ({signature!r}): {e}"
        )
        operation.fail(e)
        return False

    if not is_valid:
        operation.warn(f"Message signature is invalid: message ({message!r}), signature ({signature!r})")
        operation.fail(ValueError("signature does not match signer"))
        return False

    operation.advance(SigningState.DONE)
    return True
