"""Backend error classification.

Applied once, at the pipeline boundary, to every failure raised while
talking to a backend or assembling its answer:

- `Cancelled` (raised by the adapter) becomes a `Cancelled` carrying a
  fixed user-facing message and no context.
- `ConnectionFailed` / `DeviceRejected` keep their type and gain the
  outgoing payload as context.
- Anything else becomes a `SigningError` whose message includes a dump
  of the outgoing payload.

Verification never reaches the classifier: `verify_message` reports
failures as False.
"""

import json
import logging
from typing import Any, Optional

from ethsign.errors import Cancelled, ConnectionFailed, DeviceRejected, HardwareError, SigningError
from ethsign.signing.events import Operation

logger = logging.getLogger(__name__)

CANCEL_MESSAGES = {
    Operation.SIGN_TRANSACTION: "The transaction signing was cancelled by the user",
    Operation.SIGN_MESSAGE: "The message signing was cancelled by the user",
    Operation.OPEN_WALLET: "Exporting the wallet's public key was cancelled by the user",
}

GENERIC_MESSAGES = {
    Operation.SIGN_TRANSACTION: "Could not sign the transaction",
    Operation.SIGN_MESSAGE: "Could not sign the message",
    Operation.OPEN_WALLET: "Could not export the wallet's public key",
}


def payload_to_error_string(payload: Optional[Any]) -> str:
    """Serialize a payload for error messages."""
    if payload is None:
        return "{}"
    try:
        return json.dumps(payload, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(payload)


def classify_error(
    error: BaseException,
    operation: Operation,
    context: Optional[dict] = None,
) -> HardwareError:
    """Map a backend failure to the public error taxonomy.

    Args:
        error: The exception raised by the backend (or assembly)
        operation: Operation that was running
        context: Outgoing payload, for diagnosis

    Returns:
        The error to raise; may be `error` itself when it is already classified
    """
    if isinstance(error, Cancelled):
        return Cancelled(CANCEL_MESSAGES[operation])

    if isinstance(error, (ConnectionFailed, DeviceRejected)):
        if error.context is None:
            error.context = context
        return error

    if isinstance(error, SigningError):
        return error

    logger.error(f"{GENERIC_MESSAGES[operation]}: {error}")
    return SigningError(
        f"{GENERIC_MESSAGES[operation]}: {payload_to_error_string(context)} {error}",
        context=context,
    )
