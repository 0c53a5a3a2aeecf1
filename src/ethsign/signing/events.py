"""Signing operation lifecycle and observability hook.

Every sign / verify call walks one state machine:

    IDLE -> VALIDATING -> PAYLOAD_BUILT -> AWAITING_BACKEND
         -> ASSEMBLING -> DONE
    (or CANCELLED / FAILED)

Progress and user-facing warnings are reported to an injected event sink
instead of a global logger. The default sink forwards to `logging`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ethsign.errors import Cancelled

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Public operations that run through the pipeline."""
    SIGN_TRANSACTION = "sign_transaction"
    SIGN_MESSAGE = "sign_message"
    VERIFY_MESSAGE = "verify_message"
    OPEN_WALLET = "open_wallet"


class SigningState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PAYLOAD_BUILT = "payload_built"
    AWAITING_BACKEND = "awaiting_backend"
    ASSEMBLING = "assembling"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SigningState.DONE, SigningState.CANCELLED, SigningState.FAILED})

TRANSITIONS = {
    SigningState.IDLE: {SigningState.VALIDATING},
    SigningState.VALIDATING: {SigningState.PAYLOAD_BUILT, SigningState.FAILED},
    SigningState.PAYLOAD_BUILT: {SigningState.AWAITING_BACKEND, SigningState.FAILED},
    SigningState.AWAITING_BACKEND: {
        SigningState.ASSEMBLING,
        SigningState.CANCELLED,
        SigningState.FAILED,
    },
    SigningState.ASSEMBLING: {SigningState.DONE, SigningState.FAILED},
}


@dataclass(frozen=True)
class SigningEvent:
    """Something worth reporting during an operation.

    Attributes:
        operation: Operation the event belongs to
        state: State the operation is in
        level: logging level (logging.DEBUG, logging.WARNING, ...)
        message: Human readable description
    """
    operation: Operation
    state: SigningState
    level: int
    message: str


EventSink = Callable[[SigningEvent], None]


def logging_sink(event: SigningEvent) -> None:
    """Default sink: forward events to the module logger."""
    logger.log(event.level, f"[{event.operation.value}:{event.state.value}] {event.message}")


class SigningOperation:
    """Tracks the state of a single sign / verify call."""

    def __init__(self, operation: Operation, events: Optional[EventSink] = None):
        self.operation = operation
        self.state = SigningState.IDLE
        self._sink = events or logging_sink

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: SigningState, message: str = "") -> None:
        """Move to `state`.

        Raises:
            RuntimeError: On a transition the state machine does not allow
        """
        if state not in TRANSITIONS.get(self.state, ()):
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {state.value} for {self.operation.value}"
            )
        self.state = state
        self.emit(logging.DEBUG, message or state.value)

    def fail(self, error: BaseException) -> None:
        """Enter CANCELLED or FAILED, unless already finished."""
        if self.finished:
            return
        terminal = SigningState.CANCELLED if isinstance(error, Cancelled) else SigningState.FAILED
        if terminal not in TRANSITIONS[self.state]:
            terminal = SigningState.FAILED
        self.advance(terminal, str(error))

    def warn(self, message: str) -> None:
        self.emit(logging.WARNING, message)

    def emit(self, level: int, message: str) -> None:
        self._sink(SigningEvent(self.operation, self.state, level, message))
