"""Legacy (pre EIP-2718) Ethereum transactions with EIP-155 replay protection.

An unsigned transaction is built with its signature slots already
present: `v` holds the chain id, `r` and `s` are empty. Serializing that
object gives the exact pre-image whose keccak hash is signed, which is
also what the Ledger app expects to receive.
"""

import rlp
from eth_utils import keccak
from rlp.sedes import Binary, big_endian_int, binary

from ethsign.encoding import hex_to_bytes, normalize_hex, to_even_hex
from ethsign.validation import TransactionRequest

# Empty signature slots
SIGNATURE_R = 0
SIGNATURE_S = 0

address = Binary.fixed_length(20, allow_empty=True)


class LegacyTransaction(rlp.Serializable):
    """RLP serializable transaction.

    Instances are immutable; use `copy(v=..., r=..., s=...)` to merge a
    signature back in.
    """

    fields = [
        ("nonce", big_endian_int),
        ("gas_price", big_endian_int),
        ("gas", big_endian_int),
        ("to", address),
        ("value", big_endian_int),
        ("data", binary),
        ("v", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]

    @classmethod
    def from_request(cls, request: TransactionRequest) -> "LegacyTransaction":
        """Build the unsigned, EIP-155 seeded transaction for a request."""
        return cls(
            nonce=request.nonce,
            gas_price=request.gas_price,
            gas=request.gas_limit,
            to=hex_to_bytes(request.to) if request.to else b"",
            value=request.value,
            data=request.input_data,
            v=request.chain_id,
            r=SIGNATURE_R,
            s=SIGNATURE_S,
        )

    @classmethod
    def from_hex(cls, raw: str) -> "LegacyTransaction":
        """Decode a serialized transaction."""
        return rlp.decode(hex_to_bytes(raw), cls)

    @property
    def is_signed(self) -> bool:
        return bool(self.r and self.s)

    def encode(self) -> bytes:
        return rlp.encode(self)

    def to_hex(self, prefix: bool = True) -> str:
        """Serialized transaction as hex."""
        encoded = self.encode()
        return normalize_hex(encoded) if prefix else to_even_hex(encoded)

    def signing_hash(self) -> bytes:
        """Keccak hash of the unsigned pre-image.

        Only meaningful on the unsigned object, whose `v` still carries
        the chain id.
        """
        if self.is_signed:
            raise ValueError("Signing hash requested for an already signed transaction")
        return keccak(self.encode())
