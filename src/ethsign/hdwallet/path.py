"""BIP32 derivation paths.

String form: m/purpose'/coin_type'/account'/change/index
Hardened segments (suffixed with `'`) carry the high bit in their index.

Root paths used when opening a hardware wallet depend on the chain:
mainnet uses coin type 60, every test network uses coin type 1.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from bip_utils import Bip32PathError, Bip32PathParser

from ethsign.errors import InvalidDerivationPath

HARDENED_OFFSET = 0x80000000
MAX_SEGMENT = HARDENED_OFFSET - 1

HEADER_KEY = "m"
DELIMITER = "/"

PURPOSE = 44
COIN_MAINNET = 60
COIN_TESTNET = 1
ACCOUNT = 0
CHANGE = 0

MAINNET_CHAIN_ID = 1

_PATH_GRAMMAR = re.compile(r"^m(/[0-9]+'?)*$")


@dataclass(frozen=True)
class DerivationPath:
    """Parsed derivation path: an ordered tuple of 32 bit indices."""

    indices: tuple[int, ...]

    @classmethod
    def parse(cls, path: str) -> "DerivationPath":
        """Parse a path string such as `m/44'/60'/0'/0/0`.

        Raises:
            InvalidDerivationPath: If the string does not follow the grammar,
                or a segment is larger than 2^31 - 1 before hardening
        """
        if not isinstance(path, str):
            raise InvalidDerivationPath(f"Derivation path must be a string, got {type(path).__name__}")

        normalized = path.strip().replace(" ", "")
        if not _PATH_GRAMMAR.match(normalized):
            raise InvalidDerivationPath(f"Malformed derivation path: {path!r}")

        for segment in normalized.split(DELIMITER)[1:]:
            if int(segment.rstrip("'")) > MAX_SEGMENT:
                raise InvalidDerivationPath(
                    f"Derivation path segment out of range: {segment!r} in {path!r}"
                )

        try:
            parsed = Bip32PathParser.Parse(normalized)
        except Bip32PathError as e:
            raise InvalidDerivationPath(f"Invalid derivation path {path!r}: {e}") from e

        return cls(tuple(int(index) for index in parsed.ToList()))

    @classmethod
    def from_components(
        cls,
        purpose: int = PURPOSE,
        coin_type: int = COIN_MAINNET,
        account: int = ACCOUNT,
        change: Optional[int] = CHANGE,
        address_index: Optional[int] = None,
    ) -> "DerivationPath":
        """Build a BIP44 path. Purpose, coin type and account are hardened.

        `change` and `address_index` are optional so that root paths
        (`m/44'/60'/0'/0`) can be built for address derivation.
        """
        indices = [
            harden(purpose),
            harden(coin_type),
            harden(account),
        ]
        if change is not None:
            indices.append(_check_segment(change))
            if address_index is not None:
                indices.append(_check_segment(address_index))
        return cls(tuple(indices))

    @classmethod
    def root_for_chain(cls, chain_id: int) -> "DerivationPath":
        """Root path whose coin type depends on the chain id."""
        coin_type = COIN_MAINNET if chain_id == MAINNET_CHAIN_ID else COIN_TESTNET
        return cls.from_components(coin_type=coin_type, change=CHANGE)

    def child(self, index: int) -> "DerivationPath":
        """Append a non-hardened index (used for address indexes)."""
        return DerivationPath(self.indices + (_check_segment(index),))

    def serialize(self) -> str:
        return serialize(self.indices)

    def to_list(self) -> list[int]:
        """Index array, in the form device transports expect (`address_n`)."""
        return list(self.indices)

    def __str__(self) -> str:
        return self.serialize()


def harden(index: int) -> int:
    """Set the hardened bit on a path segment."""
    return _check_segment(index) | HARDENED_OFFSET


def is_hardened(index: int) -> bool:
    return bool(index & HARDENED_OFFSET)


def _check_segment(index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= MAX_SEGMENT:
        raise InvalidDerivationPath(f"Derivation path segment out of range: {index!r}")
    return index


def parse(path: str) -> DerivationPath:
    """Parse a derivation path string."""
    return DerivationPath.parse(path)


def serialize(indices: Iterable[int]) -> str:
    """Inverse of `parse`: render an index array as `m/44'/60'/0'/0/0`."""
    segments = [HEADER_KEY]
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= 0xFFFFFFFF:
            raise InvalidDerivationPath(f"Not a 32 bit path index: {index!r}")
        if is_hardened(index):
            segments.append(f"{index - HARDENED_OFFSET}'")
        else:
            segments.append(str(index))
    return DELIMITER.join(segments)
