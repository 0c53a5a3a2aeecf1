"""Payload translators: one per signing backend.

Each translator maps a validated request (plus the unsigned transaction
and derivation path) onto the exact structure its backend consumes.
Payloads are plain dicts, built per call; the same dict is dumped into
error context when signing fails.
"""

from abc import ABC, abstractmethod
from typing import Optional

from eth_account.messages import encode_defunct
from eth_utils import keccak

from ethsign.encoding import normalize_address, to_even_hex
from ethsign.errors import InvalidDerivationPath, MissingField
from ethsign.hdwallet.path import DerivationPath
from ethsign.signing.transaction import LegacyTransaction
from ethsign.validation import TransactionRequest

# Trezor Connect method names
TREZOR_SIGN_TRANSACTION = "ethereumSignTransaction"
TREZOR_SIGN_MESSAGE = "ethereumSignMessage"
TREZOR_GET_PUBLIC_KEY = "ethereumGetPublicKey"


def personal_message_hash(message: bytes) -> bytes:
    """EIP-191 (version 0x45) hash of a personal message."""
    signable = encode_defunct(primitive=message)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def _require_path(path: Optional[DerivationPath]) -> DerivationPath:
    if path is None:
        raise MissingField("derivation_path")
    if not path.indices:
        raise InvalidDerivationPath("Signing path must have at least one segment")
    return path


class PayloadTranslator(ABC):
    """Builds backend payloads from validated requests."""

    @abstractmethod
    def transaction_payload(
        self,
        request: TransactionRequest,
        unsigned: LegacyTransaction,
        path: Optional[DerivationPath],
    ) -> dict:
        pass

    @abstractmethod
    def message_payload(self, message: bytes, path: Optional[DerivationPath]) -> dict:
        pass

    def public_key_payload(self, path: Optional[DerivationPath]) -> dict:
        return {"address_n": _require_path(path).to_list()}


class LocalPayloadTranslator(PayloadTranslator):
    """In-memory keys sign the 32 byte hash directly. Paths are ignored."""

    def transaction_payload(self, request, unsigned, path):
        return {"hash": to_even_hex(unsigned.signing_hash())}

    def message_payload(self, message, path):
        return {
            "hash": to_even_hex(personal_message_hash(message)),
            "message": to_even_hex(message),
        }

    def public_key_payload(self, path):
        return {}


class LedgerPayloadTranslator(PayloadTranslator):
    """Ledger signs the serialized unsigned transaction itself.

    The unsigned transaction must carry the chain id in `v` and empty
    `r` / `s`, otherwise the device hashes a pre-image for the wrong chain.
    """

    def transaction_payload(self, request, unsigned, path):
        return {
            "address_n": _require_path(path).to_list(),
            "transaction": unsigned.to_hex(prefix=False),
        }

    def message_payload(self, message, path):
        return {
            "address_n": _require_path(path).to_list(),
            "message": to_even_hex(message),
        }


class TrezorPayloadTranslator(PayloadTranslator):
    """Trezor receives the transaction fields individually.

    Every hex value is sent without the `0x` prefix. The chain id is an
    explicit integer field, and `to` is only sent when the transaction has
    a destination (contract deployments leave it out).
    """

    def transaction_payload(self, request, unsigned, path):
        payload = {
            "method": TREZOR_SIGN_TRANSACTION,
            "address_n": _require_path(path).to_list(),
            "gas_price": to_even_hex(request.gas_price),
            "gas_limit": to_even_hex(request.gas_limit),
            "chain_id": request.chain_id,
            "nonce": to_even_hex(request.nonce),
            "value": to_even_hex(request.value),
            "data": to_even_hex(request.input_data),
        }
        if request.to:
            payload["to"] = normalize_address(request.to, prefix=False)
        return payload

    def message_payload(self, message, path):
        return {
            "method": TREZOR_SIGN_MESSAGE,
            "path": _require_path(path).to_list(),
            "message": to_even_hex(message),
            "hex": True,
        }

    def public_key_payload(self, path):
        return {
            "method": TREZOR_GET_PUBLIC_KEY,
            "path": _require_path(path).to_list(),
        }
