"""Tests for the operation state machine and error classification."""

import logging

import pytest

from ethsign.errors import Cancelled, ConnectionFailed, DeviceRejected, MissingField, SigningError
from ethsign.signing.classifier import (
    CANCEL_MESSAGES,
    GENERIC_MESSAGES,
    classify_error,
    payload_to_error_string,
)
from ethsign.signing.events import Operation, SigningOperation, SigningState


class TestSigningOperation:
    """Tests for the per-call state machine."""

    def test_happy_path(self, events):
        operation = SigningOperation(Operation.SIGN_MESSAGE, events)

        for state in (
            SigningState.VALIDATING,
            SigningState.PAYLOAD_BUILT,
            SigningState.AWAITING_BACKEND,
            SigningState.ASSEMBLING,
            SigningState.DONE,
        ):
            operation.advance(state)

        assert operation.finished
        assert events.states[-1] == SigningState.DONE
        assert all(event.level == logging.DEBUG for event in events.events)

    @pytest.mark.parametrize(
        "path",
        [
            [SigningState.PAYLOAD_BUILT],
            [SigningState.VALIDATING, SigningState.AWAITING_BACKEND],
            [SigningState.VALIDATING, SigningState.CANCELLED],
            [SigningState.VALIDATING, SigningState.PAYLOAD_BUILT, SigningState.ASSEMBLING],
        ],
    )
    def test_illegal_transitions(self, path):
        operation = SigningOperation(Operation.SIGN_TRANSACTION)

        with pytest.raises(RuntimeError):
            for state in path:
                operation.advance(state)

    def test_no_transition_out_of_terminal_state(self):
        operation = SigningOperation(Operation.SIGN_TRANSACTION)
        operation.advance(SigningState.VALIDATING)
        operation.advance(SigningState.FAILED)

        with pytest.raises(RuntimeError):
            operation.advance(SigningState.PAYLOAD_BUILT)

    def test_cancel_while_awaiting_backend(self, events):
        operation = SigningOperation(Operation.SIGN_TRANSACTION, events)
        operation.advance(SigningState.VALIDATING)
        operation.advance(SigningState.PAYLOAD_BUILT)
        operation.advance(SigningState.AWAITING_BACKEND)

        operation.fail(Cancelled())

        assert operation.state == SigningState.CANCELLED

    def test_cancel_outside_backend_call_is_failure(self):
        operation = SigningOperation(Operation.SIGN_TRANSACTION)
        operation.advance(SigningState.VALIDATING)

        operation.fail(Cancelled())

        assert operation.state == SigningState.FAILED

    def test_fail_is_noop_when_finished(self):
        operation = SigningOperation(Operation.SIGN_TRANSACTION)
        operation.advance(SigningState.VALIDATING)
        operation.fail(MissingField("nonce"))

        operation.fail(RuntimeError("again"))

        assert operation.state == SigningState.FAILED

    def test_warn(self, events):
        operation = SigningOperation(Operation.VERIFY_MESSAGE, events)

        operation.warn("check the device")

        event = events.events[0]
        assert event.level == logging.WARNING
        assert event.operation == Operation.VERIFY_MESSAGE
        assert event.state == SigningState.IDLE
        assert event.message == "check the device"

    def test_default_sink_logs(self, caplog):
        operation = SigningOperation(Operation.SIGN_MESSAGE)

        with caplog.at_level(logging.DEBUG, logger="ethsign.signing.events"):
            operation.advance(SigningState.VALIDATING)

        assert "[sign_message:validating]" in caplog.text


class TestClassifyError:
    """Tests for mapping backend failures to public errors."""

    def test_cancel_gets_fixed_message(self):
        original = Cancelled("device said no")

        classified = classify_error(original, Operation.SIGN_TRANSACTION, {"address_n": [1]})

        assert isinstance(classified, Cancelled)
        assert str(classified) == CANCEL_MESSAGES[Operation.SIGN_TRANSACTION]
        assert classified.context is None

    @pytest.mark.parametrize(
        "operation",
        [Operation.SIGN_TRANSACTION, Operation.SIGN_MESSAGE, Operation.OPEN_WALLET],
    )
    def test_every_classified_operation_has_messages(self, operation):
        assert operation in CANCEL_MESSAGES
        assert operation in GENERIC_MESSAGES

    def test_generic_wraps_payload(self):
        payload = {"address_n": [44], "transaction": "e580"}

        classified = classify_error(ValueError("bad v"), Operation.SIGN_TRANSACTION, payload)

        assert isinstance(classified, SigningError)
        assert classified.context == payload
        assert str(classified).startswith(GENERIC_MESSAGES[Operation.SIGN_TRANSACTION])
        assert '"transaction": "e580"' in str(classified)
        assert "bad v" in str(classified)

    def test_message_text_is_not_inspected(self):
        """An untyped error mentioning cancellation is still generic."""
        classified = classify_error(
            RuntimeError("The user cancelled"), Operation.SIGN_MESSAGE, {}
        )

        assert isinstance(classified, SigningError)

    @pytest.mark.parametrize("error_class", [ConnectionFailed, DeviceRejected])
    def test_typed_errors_keep_their_type(self, error_class):
        error = error_class("unplugged")

        classified = classify_error(error, Operation.SIGN_MESSAGE, {"message": "00"})

        assert classified is error
        assert classified.context == {"message": "00"}

    def test_signing_error_passes_through(self):
        error = SigningError("already classified", context={"a": 1})
        assert classify_error(error, Operation.SIGN_MESSAGE, {"b": 2}) is error

    def test_payload_to_error_string(self):
        assert payload_to_error_string(None) == "{}"
        assert payload_to_error_string({"b": 1, "a": b"x"}) == '{"a": "b\'x\'", "b": 1}'
