"""Transaction and message request validation.

Requests arrive loosely typed (strings, ints, bytes, camelCase or
snake_case keys) and leave as an immutable `TransactionRequest` holding
plain integers and bytes. Validating an already validated request returns
an equal request.
"""

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional, Union

from ethsign.encoding import hex_to_bytes, normalize_address, normalize_hex, to_big_int
from ethsign.errors import (
    AmbiguousOrMissingMessage,
    InvalidEncoding,
    InvalidType,
    MissingField,
)
from ethsign.hdwallet.path import DerivationPath

UINT256_MAX = 2**256 - 1
UINT64_MAX = 2**64 - 1

REQUIRED_FIELDS = ("chain_id", "gas_price", "gas_limit", "nonce", "value", "input_data")

# Field names used by JS-style callers
FIELD_ALIASES = {
    "chainId": "chain_id",
    "gasPrice": "gas_price",
    "gasLimit": "gas_limit",
    "inputData": "input_data",
    "derivationPath": "derivation_path",
}

SIGNATURE_LENGTH = 65


@dataclass(frozen=True)
class TransactionRequest:
    """A validated legacy (EIP-155) transaction request.

    Attributes:
        chain_id: Chain the signature is bound to
        gas_price: Gas price in wei
        gas_limit: Gas limit
        nonce: Sender nonce
        value: Value in wei
        input_data: Call data (empty for plain transfers)
        to: Checksum destination address, None for contract deployment
        derivation_path: Key to sign with, None to use the wallet's
    """
    chain_id: int
    gas_price: int
    gas_limit: int
    nonce: int
    value: int
    input_data: bytes
    to: Optional[str] = None
    derivation_path: Optional[DerivationPath] = None

    @property
    def is_contract_deployment(self) -> bool:
        return self.to is None

    def to_log_dict(self) -> dict:
        """JSON friendly representation for error context."""
        data = asdict(self)
        data["input_data"] = normalize_hex(self.input_data)
        data["derivation_path"] = str(self.derivation_path) if self.derivation_path else None
        return data


def _canonical_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map aliases to snake_case keys.

    Raises:
        InvalidType: If an alias and its snake_case key carry different values
    """
    fields: dict[str, Any] = {}
    for key, value in raw.items():
        name = FIELD_ALIASES.get(key, key)
        if name in fields and fields[name] != value:
            raise InvalidType(name, "conflicting values for alias")
        fields[name] = value
    return fields


def validate_chain_id(value: Any) -> int:
    """Normalize a chain id: a positive integer that fits in 64 bits.

    Raises:
        InvalidType: If the value is not a positive integer
    """
    chain_id = _integer({"chain_id": value}, "chain_id", UINT64_MAX)
    if chain_id < 1:
        raise InvalidType("chain_id", "must be a positive integer")
    return chain_id


def _integer(fields: dict, name: str, upper: int = UINT256_MAX) -> int:
    value = fields[name]
    try:
        result = to_big_int(value)
    except InvalidEncoding as e:
        raise InvalidType(name, str(e)) from e
    if result > upper:
        raise InvalidType(name, "value too large")
    return result


def _input_data(value: Any) -> bytes:
    if value is None:
        raise MissingField("input_data")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return hex_to_bytes(value)
        except InvalidEncoding as e:
            raise InvalidType("input_data", str(e)) from e
    raise InvalidType("input_data", f"expected bytes or hex string, got {type(value).__name__}")


def _destination(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return normalize_address(value)
    except InvalidEncoding as e:
        raise InvalidType("to", str(e)) from e


def _derivation_path(value: Any) -> Optional[DerivationPath]:
    if value is None or isinstance(value, DerivationPath):
        return value
    return DerivationPath.parse(value)


def validate(
    request: Union[TransactionRequest, Mapping[str, Any]],
    defaults: Optional[Mapping[str, Any]] = None,
) -> TransactionRequest:
    """Validate and normalize a transaction request.

    Args:
        request: Mapping (or an already validated request)
        defaults: Values used for fields the request leaves out

    Returns:
        Normalized TransactionRequest

    Raises:
        MissingField: If a required field is absent
        InvalidType: If a field has the wrong type or range
        InvalidDerivationPath: If the derivation path is malformed
    """
    if isinstance(request, TransactionRequest):
        fields = asdict(request)
        fields["derivation_path"] = request.derivation_path
    elif isinstance(request, Mapping):
        fields = _canonical_keys(request)
    else:
        raise InvalidType("request", f"expected a mapping, got {type(request).__name__}")

    if defaults:
        for key, value in _canonical_keys(defaults).items():
            if fields.get(key) is None:
                fields[key] = value

    for name in REQUIRED_FIELDS:
        if fields.get(name) is None:
            raise MissingField(name)

    validated = TransactionRequest(
        chain_id=validate_chain_id(fields["chain_id"]),
        gas_price=_integer(fields, "gas_price"),
        gas_limit=_integer(fields, "gas_limit"),
        nonce=_integer(fields, "nonce", UINT64_MAX),
        value=_integer(fields, "value"),
        input_data=_input_data(fields["input_data"]),
        to=_destination(fields.get("to")),
        derivation_path=_derivation_path(fields.get("derivation_path")),
    )

    # Contract deployment needs code to deploy
    if validated.to is None and not validated.input_data:
        raise MissingField("input_data")

    return validated


def validate_message(message: Optional[str] = None, message_data: Any = None) -> bytes:
    """Validate a message request and return the bytes to sign.

    Exactly one of `message` (text, signed as UTF-8) or `message_data`
    (bytes or a `0x` hex string) must be given.

    Raises:
        AmbiguousOrMissingMessage: If both or neither are given
        InvalidType: If the given value has the wrong type
    """
    if (message is None) == (message_data is None):
        raise AmbiguousOrMissingMessage()

    if message is not None:
        if not isinstance(message, str):
            raise InvalidType("message", f"expected text, got {type(message).__name__}")
        return message.encode("utf-8")

    if isinstance(message_data, (bytes, bytearray)):
        return bytes(message_data)
    if isinstance(message_data, str):
        try:
            return hex_to_bytes(message_data)
        except InvalidEncoding as e:
            raise InvalidType("message_data", str(e)) from e
    raise InvalidType("message_data", f"expected bytes, got {type(message_data).__name__}")


def validate_verification(message: Union[str, bytes], signature: str) -> tuple[bytes, str]:
    """Validate a message verification request.

    Returns:
        Tuple of (message bytes, normalized `0x` signature)

    Raises:
        MissingField: If message or signature is absent
        InvalidType: If the signature is not a 65 byte hex sequence
    """
    if message is None:
        raise MissingField("message")
    if signature is None:
        raise MissingField("signature")

    if isinstance(message, str):
        message_bytes = message.encode("utf-8")
    elif isinstance(message, (bytes, bytearray)):
        message_bytes = bytes(message)
    else:
        raise InvalidType("message", f"expected text or bytes, got {type(message).__name__}")

    try:
        normalized = normalize_hex(signature)
    except InvalidEncoding as e:
        raise InvalidType("signature", str(e)) from e
    if len(hex_to_bytes(normalized)) != SIGNATURE_LENGTH:
        raise InvalidType("signature", f"expected {SIGNATURE_LENGTH} bytes")

    return message_bytes, normalized
