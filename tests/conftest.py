"""Pytest configuration and fixtures.

Device backends are exercised against fake transports: a BIP32 tree built
from a fixed seed stands in for the key material on the device, and
eth_keys produces the signatures the real apps would return.
"""

import os

import pytest
from bip_utils import Bip32Secp256k1, EthAddrEncoder
from eth_keys import keys
from eth_utils import keccak

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("HOT_WALLET_PRIVATE_KEY", None)
os.environ.pop("SIGNER_BACKEND", None)

from ethsign.config import get_settings
from ethsign.hdwallet.path import serialize
from ethsign.signing.base import RecoveryEncoding
from ethsign.signing.ledger import LedgerSigner
from ethsign.signing.local import LocalSigner
from ethsign.signing.payloads import personal_message_hash
from ethsign.signing.transaction import LegacyTransaction
from ethsign.signing.trezor import TrezorSigner

# BIP32 test vector 1
TEST_SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_ADDRESS = keys.PrivateKey(bytes.fromhex(TEST_PRIVATE_KEY[2:])).public_key.to_checksum_address()

RECIPIENT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def device_node(path):
    """BIP32 node of the fake device at an index array."""
    return Bip32Secp256k1.FromSeed(TEST_SEED).DerivePath(serialize(path))


def device_key(path) -> keys.PrivateKey:
    """Private key the fake device signs with at an index array."""
    return keys.PrivateKey(device_node(path).PrivateKey().Raw().ToBytes())


def exported_public_key(path) -> dict:
    node = device_node(path)
    public_key = node.PublicKey().RawUncompressed().ToBytes()
    return {
        "publicKey": public_key.hex(),
        "chainCode": node.ChainCode().ToBytes().hex(),
        "address": EthAddrEncoder.EncodeKey(public_key),
    }


class FakeLedgerError(Exception):
    """Transport exception carrying an APDU status word."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Ledger device error 0x{status_code:04x}")


class FakeLedgerTransport:
    """In-memory Ledger Ethereum app.

    Returns transaction `v` as 27/28 hex, like the app versions that do
    not fold the chain id in.
    """

    def __init__(self, error: Exception = None, response: dict = None):
        self.error = error
        self.response = response
        self.calls = []

    def _reply(self, method, result):
        self.calls.append(method)
        if self.error is not None:
            raise self.error
        return self.response if self.response is not None else result()

    def get_address(self, path, display, return_chain_code):
        return self._reply("get_address", lambda: exported_public_key(path))

    def sign_transaction(self, path, unsigned_transaction):
        def sign():
            signature = device_key(path).sign_msg_hash(keccak(bytes.fromhex(unsigned_transaction)))
            return {
                "r": format(signature.r, "064x"),
                "s": format(signature.s, "064x"),
                "v": format(signature.v + 27, "x"),
            }

        return self._reply("sign_transaction", sign)

    def sign_personal_message(self, path, message):
        def sign():
            signature = device_key(path).sign_msg_hash(personal_message_hash(bytes.fromhex(message)))
            return {
                "r": format(signature.r, "064x"),
                "s": format(signature.s, "064x"),
                "v": signature.v + 27,
            }

        return self._reply("sign_personal_message", sign)


class FakeTrezorTransport:
    """In-memory Trezor Connect.

    Rebuilds the transaction from the individual wire fields, like the
    device does, and answers with a chain adjusted `v`.
    """

    def __init__(self, failure_code: str = None):
        self.failure_code = failure_code
        self.calls = []

    def call(self, payload: dict) -> dict:
        self.calls.append(payload)
        if self.failure_code:
            return {
                "success": False,
                "payload": {"error": "Device refused", "code": self.failure_code},
            }

        method = payload["method"]
        if method == "ethereumGetPublicKey":
            result = exported_public_key(payload["path"])
        elif method == "ethereumSignTransaction":
            result = self._sign_transaction(payload)
        elif method == "ethereumSignMessage":
            signature = device_key(payload["path"]).sign_msg_hash(
                personal_message_hash(bytes.fromhex(payload["message"]))
            )
            blob = (
                signature.r.to_bytes(32, "big")
                + signature.s.to_bytes(32, "big")
                + bytes([signature.v + 27])
            )
            result = {"address": "", "signature": blob.hex()}
        else:
            return {"success": False, "payload": {"error": f"Unknown method {method}"}}
        return {"success": True, "payload": result}

    def _sign_transaction(self, payload: dict) -> dict:
        chain_id = payload["chain_id"]
        unsigned = LegacyTransaction(
            nonce=int(payload["nonce"], 16),
            gas_price=int(payload["gas_price"], 16),
            gas=int(payload["gas_limit"], 16),
            to=bytes.fromhex(payload.get("to", "")),
            value=int(payload["value"], 16),
            data=bytes.fromhex(payload["data"]),
            v=chain_id,
            r=0,
            s=0,
        )
        signature = device_key(payload["address_n"]).sign_msg_hash(unsigned.signing_hash())
        return {
            "v": hex(signature.v + chain_id * 2 + 35),
            "r": hex(signature.r),
            "s": hex(signature.s),
        }


class EventRecorder:
    """Event sink that keeps every event."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def states(self):
        return [event.state for event in self.events]

    @property
    def warnings(self):
        return [event.message for event in self.events if event.level >= 30]


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; rebuild them for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def local_signer() -> LocalSigner:
    return LocalSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def ledger_transport() -> FakeLedgerTransport:
    return FakeLedgerTransport()


@pytest.fixture
def ledger_signer(ledger_transport) -> LedgerSigner:
    return LedgerSigner(lambda: ledger_transport, transaction_encoding=RecoveryEncoding.LEGACY)


@pytest.fixture
def trezor_transport() -> FakeTrezorTransport:
    return FakeTrezorTransport()


@pytest.fixture
def trezor_signer(trezor_transport) -> TrezorSigner:
    return TrezorSigner(lambda: trezor_transport)


@pytest.fixture
def transfer_request() -> dict:
    """Plain ETH transfer, as JS-style callers send it."""
    return {
        "chainId": 1,
        "gasPrice": "0x3b9aca00",
        "gasLimit": "0x5208",
        "nonce": 0,
        "to": RECIPIENT.lower(),
        "value": "0xde0b6b3a7640000",
        "inputData": "0x",
    }
