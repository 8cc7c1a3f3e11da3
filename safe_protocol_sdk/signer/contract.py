"""
Signer for a Safe that is itself an owner of another Safe.
"""
import logging
from typing import Optional, Sequence

from ..eip712 import forwarded_message_data, safe_message_hash
from ..exceptions import AuthorizationError, ValidationError
from ..models import Account
from ..signatures import SafeSignature, build_contract_signature
from ..versions import SafeFeature, require_safe_feature
from .base import AddressIdentity, SafeSigner, SignerKind

logger = logging.getLogger(__name__)


class ContractSigner(AddressIdentity):
    """
    A nested Safe acting as owner.

    The nested Safe validates signatures through its fallback handler, which
    wraps the data it receives in a SafeMessage of its own. Each of the
    nested owners therefore signs that SafeMessage hash, and their
    signatures are folded into one contract signature.

    Args:
        account: The nested Safe
        signers: Owners of the nested Safe that take part; they can be
            contract signers themselves
    """

    kind = SignerKind.CONTRACT

    def __init__(self, account: Account, signers: Sequence[SafeSigner]):
        if not signers:
            raise ValidationError("A contract signer needs at least one owner signer")
        for signer in signers:
            if not account.is_owner(signer.address):
                raise AuthorizationError(
                    f"{signer.address} is not an owner of {account.address}",
                    signer=signer.address,
                )
        self.account = account
        self.signers = tuple(signers)

    @property
    def address(self) -> str:
        return self.account.address

    def __repr__(self) -> str:
        return f"ContractSigner({self.address}, signers={list(self.signers)!r})"

    def sign(self, message_hash: bytes, preimage: Optional[bytes] = None) -> SafeSignature:
        """
        Build this Safe's contract signature.

        Args:
            message_hash: Hash the parent Safe verifies
            preimage: Data the parent passes to isValidSignature; without it the
                hash itself is used (bytes32 interface)

        Raises:
            UnsupportedVersionError: If the nested Safe cannot verify eth_sign signatures
        """
        account = self.account
        require_safe_feature(SafeFeature.ETH_SIGN, account.version)

        data = preimage if preimage is not None else message_hash
        nested_hash = safe_message_hash(account.address, data, account.version, account.chain_id)
        nested_data = forwarded_message_data(account.address, data, account.version, account.chain_id)

        sub_signatures = [signer.sign(nested_hash, nested_data) for signer in self.signers]
        if len(sub_signatures) < account.threshold:
            logger.warning(
                f"Contract signature for {account.address} has {len(sub_signatures)} of "
                f"{account.threshold} required owner signatures"
            )
        return build_contract_signature(sub_signatures, account.address)
