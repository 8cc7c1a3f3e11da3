"""
Contract signatures for nested Safe owners.
"""
import logging
from typing import Iterable

from .signature import SafeSignature, SigningScheme
from .store import SignatureStore

logger = logging.getLogger(__name__)


def build_contract_signature(
    signatures: Iterable[SafeSignature],
    signer_safe_address: str
) -> SafeSignature:
    """
    Fold the signatures of a nested Safe's owners into one signature of that Safe.

    The payload is the nested Safe's own encoded signature blob, so nested
    contract signatures are laid out level by level with their own static and
    dynamic regions. Whether the sub-signatures reach the nested Safe's
    threshold is only checked on chain (or by the readiness check when the
    nested account is known).

    Args:
        signatures: Signatures of the nested Safe's owners, in any order
        signer_safe_address: Address of the nested Safe

    Returns:
        A CONTRACT_SIGNATURE entry usable in the parent's signature store
    """
    store = SignatureStore(signatures)
    contract_signature = SafeSignature(
        signer=signer_safe_address,
        data=store.encode(),
        scheme=SigningScheme.CONTRACT_SIGNATURE,
        nested=tuple(store.sorted()),
    )
    logger.debug(
        f"Built contract signature for {contract_signature.signer} "
        f"from {len(store)} owner signatures ({len(contract_signature.data)} bytes)"
    )
    return contract_signature
