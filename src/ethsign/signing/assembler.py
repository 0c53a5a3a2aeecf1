"""Signature assembly.

Turns the (r, s, v) returned by a backend into the final wire string:
a serialized signed transaction, or a 65 byte personal message signature.

EIP-155: a transaction signature is bound to its chain by encoding the
chain id into the recovery value, v = recovery_id + chain_id * 2 + 35.
Whether a backend already did that is declared by its RecoveryEncoding;
the conversion below runs exactly once per signature.
"""

import logging

from ethsign.encoding import normalize_hex
from ethsign.signing.base import RecoveryEncoding, SignatureComponents
from ethsign.signing.transaction import LegacyTransaction

logger = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

LEGACY_V_OFFSET = 27
EIP155_V_OFFSET = 35


def eip155_v_range(chain_id: int) -> tuple[int, int]:
    """The two valid recovery values for a chain."""
    base = chain_id * 2 + EIP155_V_OFFSET
    return base, base + 1


def recovery_id(v: int, encoding: RecoveryEncoding, chain_id: int = 0) -> int:
    """Extract the 0/1 recovery id from a backend `v`.

    Raises:
        ValueError: If `v` is outside the range its encoding allows
    """
    if encoding == RecoveryEncoding.PARITY:
        parity = v
    elif encoding == RecoveryEncoding.LEGACY:
        parity = v - LEGACY_V_OFFSET
    else:
        parity = v - (chain_id * 2 + EIP155_V_OFFSET)

    if parity not in (0, 1):
        raise ValueError(
            f"Recovery value {v} is not valid for {encoding.value} encoding"
            + (f" on chain {chain_id}" if encoding == RecoveryEncoding.CHAIN_ADJUSTED else "")
        )
    return parity


def to_eip155_v(v: int, chain_id: int, encoding: RecoveryEncoding) -> int:
    """Chain adjusted recovery value for a transaction signature."""
    return recovery_id(v, encoding, chain_id) + chain_id * 2 + EIP155_V_OFFSET


def to_message_v(v: int, encoding: RecoveryEncoding) -> int:
    """Recovery value for a chain agnostic message signature (27 or 28)."""
    if encoding == RecoveryEncoding.CHAIN_ADJUSTED:
        raise ValueError("Message signatures are never chain adjusted")
    return recovery_id(v, encoding) + LEGACY_V_OFFSET


def _check_scalars(components: SignatureComponents) -> None:
    for name in ("r", "s"):
        value = getattr(components, name)
        if not 0 < value < SECP256K1_N:
            raise ValueError(f"Signature component {name} out of range")


def assemble_transaction(
    unsigned: LegacyTransaction,
    components: SignatureComponents,
    chain_id: int,
    encoding: RecoveryEncoding,
) -> str:
    """Merge a signature into the unsigned transaction and serialize it.

    Returns:
        `0x` prefixed RLP of the signed transaction
    """
    _check_scalars(components)
    v = to_eip155_v(components.v, chain_id, encoding)

    signed = unsigned.copy(v=v, r=components.r, s=components.s)
    logger.debug(f"Assembled transaction signature for chain {chain_id} (v={v})")
    return normalize_hex(signed.encode())


def assemble_message(components: SignatureComponents, encoding: RecoveryEncoding) -> str:
    """Concatenate r || s || v into a 65 byte signature.

    Returns:
        `0x` prefixed signature hex
    """
    _check_scalars(components)
    v = to_message_v(components.v, encoding)

    signature = (
        components.r.to_bytes(32, "big")
        + components.s.to_bytes(32, "big")
        + bytes([v])
    )
    return normalize_hex(signature)


def split_signature(signature: bytes) -> SignatureComponents:
    """Split a 65 byte r || s || v signature back into components."""
    if len(signature) != 65:
        raise ValueError(f"Expected a 65 byte signature, got {len(signature)} bytes")
    return SignatureComponents(
        r=int.from_bytes(signature[:32], "big"),
        s=int.from_bytes(signature[32:64], "big"),
        v=signature[64],
    )
