"""
Owner signers: local keys, nested Safes and passkeys.
"""
from typing import Union

from .base import SafeSigner, SignerKind
from .contract import ContractSigner
from .local import LocalSigner
from .passkey import (
    AuthenticatorAssertion,
    PasskeyCoordinates,
    PasskeySigner,
    encode_passkey_signature,
    extract_client_data_fields,
    extract_signature,
    resolve_passkey_address,
)

Signer = Union[LocalSigner, ContractSigner, PasskeySigner]

__all__ = [
    "Signer",
    "SafeSigner",
    "SignerKind",
    "LocalSigner",
    "ContractSigner",
    "PasskeySigner",
    "PasskeyCoordinates",
    "AuthenticatorAssertion",
    "encode_passkey_signature",
    "extract_client_data_fields",
    "extract_signature",
    "resolve_passkey_address",
]
