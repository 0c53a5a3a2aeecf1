"""ETH address derivation from an exported root public key.

Hardware wallets export the public key and chain code of a root path
(m/44'/60'/0'/0 on mainnet). Account addresses are then derived locally
as non-hardened children: root/0, root/1, ...

Only public keys are used - no private keys.
"""

from dataclasses import dataclass

from bip_utils import Bip32ChainCode, Bip32KeyData, Bip32Secp256k1, EthAddrEncoder

from ethsign.encoding import hex_to_bytes
from ethsign.hdwallet.path import DerivationPath


@dataclass(frozen=True)
class AddressInfo:
    """Information about a derived address."""

    address: str
    derivation_path: DerivationPath
    index: int
    public_key: str  # uncompressed, unprefixed hex


class ETHHDWallet:
    """Derives checksum addresses below a root path.

    Example:
        wallet = ETHHDWallet(public_key, chain_code, DerivationPath.root_for_chain(1))
        addr = wallet.derive_address(index=0)
        # AddressInfo(address="0x...", derivation_path=m/44'/60'/0'/0/0, ...)
    """

    def __init__(self, public_key: str, chain_code: str, root_path: DerivationPath):
        """Initialize from the root public key and chain code.

        Args:
            public_key: Compressed or uncompressed secp256k1 public key (hex)
            chain_code: 32 byte BIP32 chain code (hex)
            root_path: Path the public key was exported at

        Raises:
            ValueError: If the key material is invalid
        """
        self.root_path = root_path
        try:
            self._bip32_ctx = Bip32Secp256k1.FromPublicKey(
                hex_to_bytes(public_key),
                Bip32KeyData(chain_code=Bip32ChainCode(hex_to_bytes(chain_code))),
            )
        except Exception as e:
            raise ValueError(f"Invalid root public key: {e}") from e

    def derive_address(self, index: int) -> AddressInfo:
        """Derive the address at `root/index`."""
        path = self.root_path.child(index)
        child = self._bip32_ctx.DerivePath(str(index))

        # ETH uses the uncompressed key
        pubkey = child.PublicKey().RawUncompressed().ToBytes()
        address = EthAddrEncoder.EncodeKey(pubkey)

        return AddressInfo(
            address=address,
            derivation_path=path,
            index=index,
            public_key=pubkey.hex(),
        )

    def derive_addresses(self, count: int) -> list[AddressInfo]:
        """Derive the first `count` addresses."""
        return [self.derive_address(index) for index in range(count)]
