"""
Safe protocol SDK.

Signing core for Safe m-of-n smart accounts: versioned EIP-712 hashing,
MultiSend batching, signature collection and encoding (EOA, nested Safe and
passkey owners), threshold checks and counterfactual address prediction.
"""
from .client import PredictedSafe, SafeClient
from .config import DeploymentConfig
from .eip712 import (
    domain_separator,
    encode_transaction_data,
    generate_typed_data,
    hash_safe_message,
    hash_safe_transaction,
    message_envelope_hash,
    preimage_safe_message_hash,
    preimage_safe_transaction_hash,
    safe_message_hash,
)
from .exceptions import (
    AuthorizationError,
    GatewayError,
    InsufficientSignaturesError,
    SafeSDKError,
    UnsupportedVersionError,
    ValidationError,
)
from .gateway import ChainGateway, Web3Gateway
from .models import (
    Account,
    MetaTransactionData,
    OperationType,
    SafeAccountConfig,
    SafeDeploymentConfig,
    SafeTransactionData,
    TxReceipt,
)
from .multisend import build_batch_transaction, decode_multi_send_data, encode_multi_send_data
from .predict import calculate_proxy_address, encode_setup_call_data, predict_safe_address
from .readiness import Missing, Ready, check, require_ready
from .registry import Deployment, DeploymentRegistry, VersionRegistry
from .signatures import (
    SafeSignature,
    SignatureStore,
    SigningMethod,
    SigningScheme,
    build_contract_signature,
    build_signature_bytes,
)
from .signer import ContractSigner, LocalSigner, PasskeySigner, Signer, SignerKind
from .transaction import SafeMessage, SafeTransaction
from .version import __version__
from .version_matcher import NOT_FOUND, VersionMatch, VersionMatcher
from .versions import SUPPORTED_VERSIONS, SafeFeature, has_safe_feature

__all__ = [
    "SafeClient",
    "PredictedSafe",
    "DeploymentConfig",
    "domain_separator",
    "encode_transaction_data",
    "generate_typed_data",
    "hash_safe_message",
    "hash_safe_transaction",
    "message_envelope_hash",
    "preimage_safe_message_hash",
    "preimage_safe_transaction_hash",
    "safe_message_hash",
    "SafeSDKError",
    "ValidationError",
    "AuthorizationError",
    "InsufficientSignaturesError",
    "UnsupportedVersionError",
    "GatewayError",
    "ChainGateway",
    "Web3Gateway",
    "Account",
    "MetaTransactionData",
    "OperationType",
    "SafeAccountConfig",
    "SafeDeploymentConfig",
    "SafeTransactionData",
    "TxReceipt",
    "build_batch_transaction",
    "decode_multi_send_data",
    "encode_multi_send_data",
    "calculate_proxy_address",
    "encode_setup_call_data",
    "predict_safe_address",
    "Ready",
    "Missing",
    "check",
    "require_ready",
    "Deployment",
    "DeploymentRegistry",
    "VersionRegistry",
    "SafeSignature",
    "SignatureStore",
    "SigningMethod",
    "SigningScheme",
    "build_contract_signature",
    "build_signature_bytes",
    "Signer",
    "SignerKind",
    "LocalSigner",
    "ContractSigner",
    "PasskeySigner",
    "SafeMessage",
    "SafeTransaction",
    "NOT_FOUND",
    "VersionMatch",
    "VersionMatcher",
    "SUPPORTED_VERSIONS",
    "SafeFeature",
    "has_safe_feature",
    "__version__",
]
