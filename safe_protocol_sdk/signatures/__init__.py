"""
Signature types, storage and encoding.
"""
from .signature import SafeSignature, SigningMethod, SigningScheme
from .store import SignatureStore, build_signature_bytes
from .contract import build_contract_signature
from .utils import (
    adjust_v_in_signature,
    generate_pre_validated_signature,
    is_tx_hash_signed_with_prefix,
    recover_hash_signer,
    split_signatures,
)

__all__ = [
    "SafeSignature",
    "SigningMethod",
    "SigningScheme",
    "SignatureStore",
    "build_signature_bytes",
    "build_contract_signature",
    "adjust_v_in_signature",
    "generate_pre_validated_signature",
    "is_tx_hash_signed_with_prefix",
    "recover_hash_signer",
    "split_signatures",
]
