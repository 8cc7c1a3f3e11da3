"""
Signature value types.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from ..exceptions import ValidationError
from ..utils import address_to_bytes, checksum_address, normalize_address, pad32, to_hex, uint256
from ..constants import SIGNATURE_LENGTH_BYTES


class SigningMethod(str, Enum):
    """How a signer is asked to produce a signature."""
    ETH_SIGN = "eth_sign"
    ETH_SIGN_TYPED_DATA = "eth_signTypedData"
    ETH_SIGN_TYPED_DATA_V3 = "eth_signTypedData_v3"
    ETH_SIGN_TYPED_DATA_V4 = "eth_signTypedData_v4"
    SAFE_SIGNATURE = "safe_sign"


class SigningScheme(str, Enum):
    """How a signature is laid out on chain."""
    EOA_TYPED_V1 = "EOA_TYPED_V1"
    EOA_TYPED_V3 = "EOA_TYPED_V3"
    EOA_TYPED_V4 = "EOA_TYPED_V4"
    EOA_PERSONAL_SIGN = "EOA_PERSONAL_SIGN"
    APPROVED_HASH = "APPROVED_HASH"
    CONTRACT_SIGNATURE = "CONTRACT_SIGNATURE"
    PASSKEY = "PASSKEY"


STATIC_SCHEMES = frozenset({
    SigningScheme.EOA_TYPED_V1,
    SigningScheme.EOA_TYPED_V3,
    SigningScheme.EOA_TYPED_V4,
    SigningScheme.EOA_PERSONAL_SIGN,
    SigningScheme.APPROVED_HASH,
})

DYNAMIC_SCHEMES = frozenset({
    SigningScheme.CONTRACT_SIGNATURE,
    SigningScheme.PASSKEY,
})

TYPED_DATA_SCHEMES = {
    SigningMethod.ETH_SIGN_TYPED_DATA: SigningScheme.EOA_TYPED_V1,
    SigningMethod.ETH_SIGN_TYPED_DATA_V3: SigningScheme.EOA_TYPED_V3,
    SigningMethod.ETH_SIGN_TYPED_DATA_V4: SigningScheme.EOA_TYPED_V4,
}


@dataclass(frozen=True)
class SafeSignature:
    """
    One owner's signature over a Safe transaction or message.

    Attributes:
        signer: Checksummed address of the owner
        data: For static schemes, the 65-byte r || s || v slot as verified on chain.
            For contract and passkey schemes, the bytes handed to the signer's
            EIP-1271 check.
        scheme: Layout of the signature
        nested: Sub-signatures a contract signature was built from
    """
    signer: str
    data: bytes
    scheme: SigningScheme
    nested: Tuple["SafeSignature", ...] = field(default=(), compare=False)

    def __post_init__(self):
        object.__setattr__(self, "signer", checksum_address(self.signer))
        object.__setattr__(self, "data", bytes(self.data))
        if self.scheme in STATIC_SCHEMES and len(self.data) != SIGNATURE_LENGTH_BYTES:
            raise ValidationError(
                f"{self.scheme.value} signature must be {SIGNATURE_LENGTH_BYTES} bytes, "
                f"got {len(self.data)}"
            )

    @property
    def key(self) -> str:
        """Normalized signer address used as the map key."""
        return normalize_address(self.signer)

    @property
    def is_contract_signature(self) -> bool:
        return self.scheme in DYNAMIC_SCHEMES

    def static_part(self, dynamic_offset: int = 0) -> bytes:
        """
        The 65-byte slot for this signature.

        Contract signatures point at their dynamic part: r is the signer,
        s the byte offset measured from the start of the signatures blob, v is 0.
        """
        if self.is_contract_signature:
            return pad32(address_to_bytes(self.signer)) + uint256(dynamic_offset) + b"\x00"
        return self.data

    def dynamic_part(self) -> bytes:
        if self.is_contract_signature:
            return uint256(len(self.data)) + self.data
        return b""

    @property
    def hex(self) -> str:
        return to_hex(self.data)
