"""
Signer backed by a private key held in process.
"""
import logging
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount

from ..exceptions import ValidationError
from ..signatures import SafeSignature, SigningMethod, SigningScheme, adjust_v_in_signature
from ..signatures.signature import TYPED_DATA_SCHEMES
from ..utils import hex_to_bytes
from .base import AddressIdentity, SignerKind

logger = logging.getLogger(__name__)


class LocalSigner(AddressIdentity):
    """
    Externally owned account signing with a local key.

    Hashes are signed with ``eth_sign`` semantics (EIP-191 prefix, v + 4),
    typed data with ``eth_signTypedData``.
    """

    kind = SignerKind.DIRECT

    def __init__(self, account: Union[LocalAccount, str, bytes]):
        if isinstance(account, (str, bytes)):
            try:
                account = Account.from_key(account)
            except Exception as e:
                raise ValidationError(f"Invalid private key: {str(e)}") from e
        self.account = account

    @property
    def address(self) -> str:
        return self.account.address

    def __repr__(self) -> str:
        return f"LocalSigner({self.address})"

    def sign(self, message_hash: bytes, preimage: Optional[bytes] = None) -> SafeSignature:
        # ECDSA owners are always checked against the hash itself
        return self.sign_hash(message_hash)

    def sign_hash(self, message_hash: Union[str, bytes]) -> SafeSignature:
        """
        Sign a 32-byte hash the way ``eth_sign`` does.

        Raises:
            ValidationError: If the hash is not 32 bytes
        """
        raw_hash = hex_to_bytes(message_hash)
        if len(raw_hash) != 32:
            raise ValidationError(f"Expected a 32-byte hash, got {len(raw_hash)} bytes")

        signed = self.account.sign_message(encode_defunct(primitive=raw_hash))
        data = adjust_v_in_signature(SigningMethod.ETH_SIGN, signed.signature, raw_hash, self.address)
        logger.debug(f"{self.address} signed hash 0x{raw_hash.hex()} with eth_sign")
        return SafeSignature(self.address, data, SigningScheme.EOA_PERSONAL_SIGN)

    def sign_typed_data(
        self,
        typed_data: Dict[str, Any],
        method: SigningMethod = SigningMethod.ETH_SIGN_TYPED_DATA_V4
    ) -> SafeSignature:
        """
        Sign an EIP-712 structure.

        Raises:
            ValidationError: If ``method`` is not a typed data method
        """
        scheme = TYPED_DATA_SCHEMES.get(method)
        if scheme is None:
            raise ValidationError(f"{method.value} is not a typed data signing method")

        signed = self.account.sign_message(encode_typed_data(full_message=typed_data))
        data = adjust_v_in_signature(method, signed.signature)
        return SafeSignature(self.address, data, scheme)
