"""
Protocol version table.

Each supported Safe version is listed explicitly together with the quirks that
affect hashing and encoding. Nothing here is inferred from a "unified" rule:
a behavior belongs to a version because this table says so.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from .exceptions import UnsupportedVersionError, ValidationError

DEFAULT_SAFE_VERSION = "1.4.1"

# Newest first; this is also the fingerprint matching order.
SUPPORTED_VERSIONS: Tuple[str, ...] = ("1.4.1", "1.3.0", "1.2.0", "1.1.1", "1.0.0")

DOMAIN_TYPE_WITH_CHAIN_ID = "EIP712Domain(uint256 chainId,address verifyingContract)"
DOMAIN_TYPE_LEGACY = "EIP712Domain(address verifyingContract)"

SAFE_TX_TYPE = (
    "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
    "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
)
SAFE_TX_TYPE_V100 = (
    "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
    "uint256 dataGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
)
SAFE_MESSAGE_TYPE = "SafeMessage(bytes message)"

SETUP_SIGNATURE = "setup(address[],uint256,address,bytes,address,address,uint256,address)"
SETUP_SIGNATURE_V100 = "setup(address[],uint256,address,bytes,address,uint256,address)"


@dataclass(frozen=True)
class VersionProfile:
    """Hashing and encoding shape of one protocol version."""
    version: str
    domain_has_chain_id: bool
    safe_tx_type: str
    base_gas_field: str
    setup_signature: str
    setup_has_fallback_handler: bool


VERSION_PROFILES: Dict[str, VersionProfile] = {
    "1.0.0": VersionProfile("1.0.0", False, SAFE_TX_TYPE_V100, "dataGas", SETUP_SIGNATURE_V100, False),
    "1.1.1": VersionProfile("1.1.1", False, SAFE_TX_TYPE, "baseGas", SETUP_SIGNATURE, True),
    "1.2.0": VersionProfile("1.2.0", False, SAFE_TX_TYPE, "baseGas", SETUP_SIGNATURE, True),
    "1.3.0": VersionProfile("1.3.0", True, SAFE_TX_TYPE, "baseGas", SETUP_SIGNATURE, True),
    "1.4.1": VersionProfile("1.4.1", True, SAFE_TX_TYPE, "baseGas", SETUP_SIGNATURE, True),
}


class SafeFeature(str, Enum):
    """Features whose availability depends on the protocol version."""
    ETH_SIGN = "ETH_SIGN"
    ACCOUNT_ABSTRACTION = "ACCOUNT_ABSTRACTION"
    PASSKEY_SIGNER = "PASSKEY_SIGNER"
    ENCODED_MESSAGE_DATA = "ENCODED_MESSAGE_DATA"


FEATURE_RANGES: Dict[SafeFeature, str] = {
    SafeFeature.ETH_SIGN: ">=1.1.0",
    SafeFeature.ACCOUNT_ABSTRACTION: ">=1.3.0",
    SafeFeature.PASSKEY_SIGNER: ">=1.3.0",
    # Fallback handler forwards encoded SafeMessage data to contract owners
    SafeFeature.ENCODED_MESSAGE_DATA: ">=1.4.1",
}


def get_profile(version: str) -> VersionProfile:
    """
    Return the profile for a supported version.

    Raises:
        UnsupportedVersionError: If the version is not in the table
    """
    profile = VERSION_PROFILES.get(version)
    if profile is None:
        raise UnsupportedVersionError(
            f"Unsupported Safe version {version!r}. "
            f"Supported versions: {', '.join(SUPPORTED_VERSIONS)}",
            version=version,
        )
    return profile


def has_safe_feature(feature: SafeFeature, version: str) -> bool:
    try:
        parsed = Version(version)
    except InvalidVersion as e:
        raise ValidationError(f"Invalid Safe version: {version!r}") from e
    return parsed in SpecifierSet(FEATURE_RANGES[feature])


def require_safe_feature(feature: SafeFeature, version: str) -> None:
    """
    Raises:
        UnsupportedVersionError: If the feature is not available in this version
    """
    if not has_safe_feature(feature, version):
        raise UnsupportedVersionError(
            f"{feature.value} is not supported by Safe v{version} "
            f"(requires {FEATURE_RANGES[feature]})",
            feature=feature.value,
            version=version,
        )
