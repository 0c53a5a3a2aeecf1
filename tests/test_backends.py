"""Tests for signing backends, payload translators and the factory."""

import logging

import pytest
from conftest import (
    RECIPIENT,
    TEST_ADDRESS,
    TEST_PRIVATE_KEY,
    FakeLedgerError,
    FakeLedgerTransport,
    FakeTrezorTransport,
)
from eth_utils import keccak

from ethsign.errors import (
    Cancelled,
    ConnectionFailed,
    DeviceRejected,
    InvalidDerivationPath,
    MissingField,
)
from ethsign.hdwallet.path import DerivationPath
from ethsign.signing.base import RecoveryEncoding, SignerType
from ethsign.signing.factory import create_backend, get_signer_info, get_signer_type
from ethsign.signing.ledger import LedgerSigner, ledger_error
from ethsign.signing.local import LocalSigner
from ethsign.signing.payloads import (
    LedgerPayloadTranslator,
    LocalPayloadTranslator,
    TrezorPayloadTranslator,
    personal_message_hash,
)
from ethsign.signing.transaction import LegacyTransaction
from ethsign.signing.trezor import TrezorCallFailed, TrezorSigner, trezor_error
from ethsign.validation import validate

PATH = DerivationPath.parse("m/44'/60'/0'/0/0")


@pytest.fixture
def request_and_unsigned(transfer_request):
    request = validate({**transfer_request, "derivationPath": str(PATH)})
    return request, LegacyTransaction.from_request(request)


class TestPayloadTranslators:
    """Tests for the per-backend payload shapes."""

    def test_personal_message_hash(self):
        expected = keccak(b"\x19Ethereum Signed Message:\n5hello")
        assert personal_message_hash(b"hello") == expected

    def test_local_payload_is_signing_hash(self, request_and_unsigned):
        request, unsigned = request_and_unsigned

        payload = LocalPayloadTranslator().transaction_payload(request, unsigned, None)

        assert payload == {"hash": unsigned.signing_hash().hex()}

    def test_ledger_payload(self, request_and_unsigned):
        request, unsigned = request_and_unsigned

        payload = LedgerPayloadTranslator().transaction_payload(request, unsigned, PATH)

        assert payload["address_n"] == PATH.to_list()
        assert payload["transaction"] == unsigned.to_hex(prefix=False)
        assert not payload["transaction"].startswith("0x")

    def test_trezor_payload_is_unprefixed(self, request_and_unsigned):
        request, unsigned = request_and_unsigned

        payload = TrezorPayloadTranslator().transaction_payload(request, unsigned, PATH)

        assert payload == {
            "method": "ethereumSignTransaction",
            "address_n": PATH.to_list(),
            "gas_price": "3b9aca00",
            "gas_limit": "5208",
            "chain_id": 1,
            "nonce": "00",
            "value": "0de0b6b3a7640000",
            "data": "",
            "to": RECIPIENT[2:],
        }

    def test_trezor_payload_omits_to_for_deployment(self, transfer_request):
        transfer_request.pop("to")
        transfer_request["inputData"] = "0x6080"
        request = validate(transfer_request)

        payload = TrezorPayloadTranslator().transaction_payload(
            request, LegacyTransaction.from_request(request), PATH
        )

        assert "to" not in payload
        assert payload["data"] == "6080"

    def test_trezor_message_payload(self):
        payload = TrezorPayloadTranslator().message_payload(b"hi", PATH)

        assert payload == {
            "method": "ethereumSignMessage",
            "path": PATH.to_list(),
            "message": "6869",
            "hex": True,
        }

    def test_device_payloads_need_a_path(self, request_and_unsigned):
        request, unsigned = request_and_unsigned

        with pytest.raises(MissingField):
            LedgerPayloadTranslator().transaction_payload(request, unsigned, None)
        with pytest.raises(MissingField):
            TrezorPayloadTranslator().message_payload(b"hi", None)

    def test_device_payloads_reject_empty_path(self, request_and_unsigned):
        request, unsigned = request_and_unsigned
        root = DerivationPath.parse("m")

        with pytest.raises(InvalidDerivationPath):
            LedgerPayloadTranslator().transaction_payload(request, unsigned, root)
        with pytest.raises(InvalidDerivationPath):
            TrezorPayloadTranslator().public_key_payload(root)


class TestLocalSigner:
    """Tests for the in-memory key backend."""

    @pytest.mark.asyncio
    async def test_public_key(self, local_signer):
        exported = await local_signer.get_public_key({})

        assert exported.address == TEST_ADDRESS
        assert exported.chain_code is None

    @pytest.mark.asyncio
    async def test_signs_with_parity(self, local_signer):
        components = await local_signer.sign_personal_message({"hash": "11" * 32})
        assert components.v in (0, 1)

    @pytest.mark.asyncio
    async def test_no_key_configured(self):
        signer = LocalSigner()

        with pytest.raises(ConnectionFailed):
            await signer.connect()
        assert await signer.health_check() is False

    @pytest.mark.asyncio
    async def test_key_from_settings(self, monkeypatch):
        monkeypatch.setenv("HOT_WALLET_PRIVATE_KEY", TEST_PRIVATE_KEY)

        exported = await LocalSigner().get_public_key({})

        assert exported.address == TEST_ADDRESS

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            LocalSigner("0x1234")


class TestLedgerSigner:
    """Tests for the Ledger adapter."""

    @pytest.mark.parametrize(
        "status, expected",
        [
            (0x6985, Cancelled),
            (0x6D00, DeviceRejected),
            (0x5515, DeviceRejected),
        ],
    )
    def test_status_words(self, status, expected):
        assert isinstance(ledger_error(FakeLedgerError(status)), expected)

    def test_unknown_errors_are_not_typed(self):
        assert ledger_error(RuntimeError("usb")) is None
        assert ledger_error(FakeLedgerError(0x6F00)) is None

    @pytest.mark.asyncio
    async def test_user_denied_raises_cancelled(self):
        signer = LedgerSigner(lambda: FakeLedgerTransport(error=FakeLedgerError(0x6985)))

        with pytest.raises(Cancelled):
            await signer.sign_personal_message({"address_n": PATH.to_list(), "message": "00"})

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        def connect():
            raise OSError("No Ledger device found")

        signer = LedgerSigner(connect)

        with pytest.raises(ConnectionFailed):
            await signer.connect()

    @pytest.mark.asyncio
    async def test_public_key_export(self, ledger_signer, ledger_transport):
        exported = await ledger_signer.get_public_key({"address_n": PATH.to_list()})

        assert len(bytes.fromhex(exported.public_key)) == 65
        assert len(bytes.fromhex(exported.chain_code)) == 32
        assert ledger_transport.calls == ["get_address"]

    def test_transaction_encoding_from_settings(self, monkeypatch):
        monkeypatch.setenv("LEDGER_RECOVERY_ENCODING", "PARITY")

        signer = LedgerSigner(FakeLedgerTransport)

        assert signer.transaction_encoding == RecoveryEncoding.PARITY
        assert signer.message_encoding == RecoveryEncoding.LEGACY


class TestTrezorSigner:
    """Tests for the Trezor adapter."""

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("Failure_ActionCancelled", Cancelled),
            ("Method_Cancel", Cancelled),
            ("Device_NotFound", ConnectionFailed),
            ("Failure_DataError", DeviceRejected),
            ("Failure_UnexpectedMessage", TrezorCallFailed),
        ],
    )
    def test_failure_codes(self, code, expected):
        response = {"success": False, "payload": {"error": "nope", "code": code}}
        assert isinstance(trezor_error(response), expected)

    @pytest.mark.asyncio
    async def test_cancelled_on_device(self):
        signer = TrezorSigner(lambda: FakeTrezorTransport("Failure_ActionCancelled"))

        with pytest.raises(Cancelled):
            await signer.get_public_key({"method": "ethereumGetPublicKey", "path": PATH.to_list()})

    @pytest.mark.asyncio
    async def test_message_signature_is_split(self, trezor_signer):
        payload = TrezorPayloadTranslator().message_payload(b"hi", PATH)

        components = await trezor_signer.sign_personal_message(payload)

        assert components.v in (27, 28)
        assert components.r > 0 and components.s > 0

    def test_encodings(self, trezor_signer):
        assert trezor_signer.transaction_encoding == RecoveryEncoding.CHAIN_ADJUSTED
        assert trezor_signer.message_encoding == RecoveryEncoding.LEGACY
        assert trezor_signer.requires_confirmation


class TestFactory:
    """Tests for backend selection."""

    def test_default_is_local(self):
        assert get_signer_type() == SignerType.LOCAL

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SIGNER_BACKEND", "Trezor")
        assert get_signer_type() == SignerType.TREZOR

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("SIGNER_BACKEND", "kms")

        with pytest.raises(ValueError):
            get_signer_type()

    def test_create_local(self):
        backend = create_backend(SignerType.LOCAL, private_key=TEST_PRIVATE_KEY)
        assert isinstance(backend, LocalSigner)

    def test_local_in_production_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("ENVIRONMENT", "production")

        with caplog.at_level(logging.WARNING, logger="ethsign.signing.factory"):
            create_backend(SignerType.LOCAL, private_key=TEST_PRIVATE_KEY)

        assert "production" in caplog.text

    def test_local_outside_production_is_quiet(self, caplog):
        with caplog.at_level(logging.WARNING, logger="ethsign.signing.factory"):
            create_backend(SignerType.LOCAL, private_key=TEST_PRIVATE_KEY)

        assert caplog.text == ""

    def test_create_device_backends(self):
        assert isinstance(create_backend(SignerType.LEDGER, FakeLedgerTransport), LedgerSigner)
        assert isinstance(create_backend(SignerType.TREZOR, FakeTrezorTransport), TrezorSigner)

    def test_device_backend_requires_transport(self):
        with pytest.raises(ValueError):
            create_backend(SignerType.LEDGER)

    @pytest.mark.asyncio
    async def test_signer_info(self, local_signer):
        info = await get_signer_info(local_signer)

        assert info == {
            "type": "local",
            "healthy": True,
            "class": "LocalSigner",
            "transaction_encoding": "parity",
            "message_encoding": "parity",
        }
