"""Personal message signature verification.

Pure: recovers the signer's address from (message, signature) and
compares it with the expected address or public key. No I/O.
"""

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_utils import to_checksum_address

from ethsign.encoding import hex_to_bytes
from ethsign.errors import InvalidEncoding


def address_of(public_key_or_address: str) -> str:
    """Checksum address for an address or a secp256k1 public key.

    Accepts 20 byte addresses, 64 / 65 byte uncompressed public keys and
    33 byte compressed public keys, as hex.

    Raises:
        InvalidEncoding: If the value is none of those
    """
    raw = hex_to_bytes(public_key_or_address)

    if len(raw) == 20:
        return to_checksum_address(raw)
    if len(raw) == 65 and raw[0] == 0x04:
        raw = raw[1:]
    if len(raw) == 64:
        return keys.PublicKey(raw).to_checksum_address()
    if len(raw) == 33:
        return keys.PublicKey.from_compressed_bytes(raw).to_checksum_address()

    raise InvalidEncoding(f"Not an address or public key ({len(raw)} bytes)")


def recover_signer(message: bytes, signature: str) -> str:
    """Recover the checksum address that signed a personal message."""
    return Account.recover_message(
        encode_defunct(primitive=message),
        signature=hex_to_bytes(signature),
    )


def verify_signature(public_key_or_address: str, message: bytes, signature: str) -> bool:
    """Check a personal message signature against an address or public key.

    May raise on malformed input; callers that need a plain boolean go
    through `ethsign.signing.pipeline.verify_message`.
    """
    return recover_signer(message, signature) == address_of(public_key_or_address)
