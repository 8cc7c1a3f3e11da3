"""
Common signer interface.
"""
from enum import Enum
from typing import Optional, Protocol

from ..signatures import SafeSignature
from ..utils import normalize_address


class SignerKind(str, Enum):
    DIRECT = "direct"
    CONTRACT = "contract"
    PASSKEY = "passkey"


class SafeSigner(Protocol):
    """Protocol shared by all owner signers"""
    address: str
    kind: SignerKind

    def sign(self, message_hash: bytes, preimage: Optional[bytes] = None) -> SafeSignature:
        """
        Sign a Safe hash.

        ``preimage`` is the data the verifying Safe passes to contract
        owners through the legacy EIP-1271 ``bytes`` interface.
        """
        ...


class AddressIdentity:
    """Mixin giving signers equality by normalized address, whatever their kind."""

    address: str

    def __eq__(self, other: object) -> bool:
        other_address = getattr(other, "address", None)
        if not isinstance(other_address, str):
            return NotImplemented
        return normalize_address(self.address) == other_address.lower()

    def __hash__(self) -> int:
        return hash(normalize_address(self.address))
