"""
Counterfactual Safe address prediction.

A Safe proxy is deployed by SafeProxyFactory.createProxyWithNonce through
CREATE2, so its address is fixed by the factory, the singleton, the setup
call and the salt nonce before anything is deployed.
"""
import logging
from typing import Any, Dict, Optional, Union

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from .constants import PREDETERMINED_SALT_NONCE, ZERO_ADDRESS, ZKSYNC_CREATE2_PREFIX, ZKSYNC_MAINNET, ZKSYNC_TESTNET
from .exceptions import GatewayError, UnsupportedVersionError, ValidationError
from .models import SafeAccountConfig, SafeDeploymentConfig, parse_model, validate_owners_and_threshold
from .utils import address_to_bytes, hex_to_bytes, pad32, uint256
from .versions import get_profile

logger = logging.getLogger(__name__)

PROXY_CREATION_CODE_SELECTOR = function_signature_to_4byte_selector("proxyCreationCode()")
CREATE_PROXY_WITH_NONCE_SIGNATURE = "createProxyWithNonce(address,bytes,uint256)"

# zkSync Era hashes deployed bytecode differently; only the 1.3.0 proxy is known
ZKSYNC_SAFE_PROXY_BYTECODE_HASHES = {
    "1.3.0": "0x0100004124426fb9ebb25e27d670c068e52f9ba631bd383279a188be47e3f86d",
}

_SETUP_ARG_TYPES = {
    7: ["address[]", "uint256", "address", "bytes", "address", "uint256", "address"],
    8: ["address[]", "uint256", "address", "bytes", "address", "address", "uint256", "address"],
}


def calculate_create2_address(from_address: str, salt: bytes, init_code: bytes) -> str:
    """
    EIP-1014 address: last 20 bytes of keccak(0xff || from || salt || keccak(init_code)).

    Raises:
        ValidationError: If the salt is not 32 bytes
    """
    if len(salt) != 32:
        raise ValidationError(f"CREATE2 salt must be 32 bytes, got {len(salt)}")
    digest = keccak(b"\xff" + address_to_bytes(from_address) + salt + keccak(init_code))
    return to_checksum_address(digest[12:])


def zksync_era_create2_address(from_address: str, safe_version: str, salt: bytes, constructor_input: bytes) -> str:
    """
    zkSync Era CREATE2 address of a Safe proxy.

    Raises:
        UnsupportedVersionError: If the proxy bytecode hash of this version is unknown
    """
    bytecode_hash = ZKSYNC_SAFE_PROXY_BYTECODE_HASHES.get(safe_version)
    if bytecode_hash is None:
        raise UnsupportedVersionError(
            f"Safe v{safe_version} proxies are not supported on zkSync Era",
            version=safe_version,
        )
    digest = keccak(
        hex_to_bytes(ZKSYNC_CREATE2_PREFIX)
        + pad32(address_to_bytes(from_address))
        + salt
        + hex_to_bytes(bytecode_hash)
        + keccak(constructor_input)
    )
    return to_checksum_address(digest[12:])


def proxy_salt(initializer: bytes, salt_nonce: int) -> bytes:
    """Salt used by createProxyWithNonce: keccak(keccak(initializer) || uint256(saltNonce))."""
    return keccak(keccak(initializer) + uint256(salt_nonce))


def calculate_proxy_address(
    factory: str,
    singleton: str,
    initializer: Union[str, bytes],
    salt_nonce: int,
    proxy_creation_code: Union[str, bytes]
) -> str:
    """
    Address of the proxy the factory would deploy for this singleton and setup call.

    Args:
        factory: SafeProxyFactory address
        singleton: Safe singleton (mastercopy) address
        initializer: Encoded ``setup`` call
        salt_nonce: Non-negative salt nonce
        proxy_creation_code: Value of the factory's ``proxyCreationCode()``

    Returns:
        Checksummed proxy address
    """
    if salt_nonce < 0:
        raise ValidationError("saltNonce must be greater than or equal to 0")
    salt = proxy_salt(hex_to_bytes(initializer), salt_nonce)
    init_code = hex_to_bytes(proxy_creation_code) + encode(["address"], [to_checksum_address(singleton)])
    return calculate_create2_address(factory, salt, init_code)


def get_chain_specific_default_salt_nonce(chain_id: int) -> int:
    """
    Default salt nonce, different on every chain so the same owner setup
    does not collide across chains.
    """
    return int.from_bytes(keccak(text=PREDETERMINED_SALT_NONCE + str(chain_id)), "big")


def validate_safe_account_config(config: SafeAccountConfig) -> None:
    """
    Raises:
        ValidationError: If the owners or threshold are invalid
    """
    validate_owners_and_threshold(config.owners, config.threshold)


def validate_safe_deployment_config(config: SafeDeploymentConfig) -> None:
    """
    Raises:
        ValidationError: If the salt nonce is negative or the version unknown
    """
    if config.salt_nonce is not None and config.salt_nonce < 0:
        raise ValidationError("saltNonce must be greater than or equal to 0")
    get_profile(config.safe_version)


def encode_setup_call_data(
    config: Union[SafeAccountConfig, Dict[str, Any]],
    safe_version: str,
    fallback_handler: Optional[str] = None
) -> bytes:
    """
    Encode the Safe ``setup`` call for a version.

    Safe v1.0.0 has no fallback handler argument. Later versions use the
    handler from the config, then ``fallback_handler``, then the zero address.
    """
    config = parse_model(SafeAccountConfig, config)
    profile = get_profile(safe_version)
    selector = function_signature_to_4byte_selector(profile.setup_signature)

    if not profile.setup_has_fallback_handler:
        args = [
            config.owners,
            config.threshold,
            config.to,
            config.data,
            config.payment_token,
            config.payment,
            config.payment_receiver,
        ]
    else:
        handler = config.fallback_handler or fallback_handler
        if handler is None:
            logger.warning(f"No fallback handler given for Safe v{safe_version} setup, using zero address")
            handler = ZERO_ADDRESS
        args = [
            config.owners,
            config.threshold,
            config.to,
            config.data,
            to_checksum_address(handler),
            config.payment_token,
            config.payment,
            config.payment_receiver,
        ]

    return selector + encode(_SETUP_ARG_TYPES[len(args)], args)


def encode_create_proxy_with_nonce(singleton: str, initializer: Union[str, bytes], salt_nonce: int) -> bytes:
    """Calldata for SafeProxyFactory.createProxyWithNonce."""
    return function_signature_to_4byte_selector(CREATE_PROXY_WITH_NONCE_SIGNATURE) + encode(
        ["address", "bytes", "uint256"],
        [to_checksum_address(singleton), hex_to_bytes(initializer), salt_nonce],
    )


def get_proxy_creation_code(gateway, factory: str) -> bytes:
    """
    Read the proxy creation code from the factory.

    Raises:
        GatewayError: If the call fails or the result cannot be decoded
    """
    result = gateway.call(factory, PROXY_CREATION_CODE_SELECTOR)
    try:
        (code,) = decode(["bytes"], result)
    except Exception as e:
        raise GatewayError(f"Malformed proxyCreationCode result: {str(e)}", operation="call") from e
    return code


def predict_safe_address(
    config: Union[SafeAccountConfig, Dict[str, Any]],
    deployment_config: Union[SafeDeploymentConfig, Dict[str, Any], None],
    chain_id: int,
    factory: str,
    singleton: str,
    proxy_creation_code: Union[str, bytes],
    fallback_handler: Optional[str] = None
) -> str:
    """
    Predict the address of a Safe that has not been deployed yet.

    All inputs are validated before anything is derived.

    Args:
        config: Owners, threshold and optional setup parameters
        deployment_config: Salt nonce and Safe version; the salt nonce defaults
            to the chain specific value
        chain_id: Chain the Safe will live on
        factory: SafeProxyFactory address
        singleton: Safe singleton address
        proxy_creation_code: Value of the factory's ``proxyCreationCode()``
        fallback_handler: Default fallback handler of the deployment

    Returns:
        Checksummed Safe address

    Raises:
        ValidationError: On invalid owners, threshold or salt nonce
        UnsupportedVersionError: On zkSync Era for versions without a known proxy hash
    """
    config = parse_model(SafeAccountConfig, config)
    deployment_config = parse_model(SafeDeploymentConfig, deployment_config or {})
    validate_safe_account_config(config)
    validate_safe_deployment_config(deployment_config)

    safe_version = deployment_config.safe_version
    salt_nonce = deployment_config.salt_nonce
    if salt_nonce is None:
        salt_nonce = get_chain_specific_default_salt_nonce(chain_id)

    initializer = encode_setup_call_data(config, safe_version, fallback_handler)

    if chain_id in (ZKSYNC_MAINNET, ZKSYNC_TESTNET):
        salt = proxy_salt(initializer, salt_nonce)
        constructor_input = encode(["address"], [to_checksum_address(singleton)])
        address = zksync_era_create2_address(factory, safe_version, salt, constructor_input)
    else:
        address = calculate_proxy_address(factory, singleton, initializer, salt_nonce, proxy_creation_code)

    logger.debug(f"Predicted Safe v{safe_version} address on chain {chain_id}: {address}")
    return address


def predicted_safe_init_code(
    factory: str,
    singleton: str,
    initializer: Union[str, bytes],
    salt_nonce: int
) -> bytes:
    """factory || createProxyWithNonce calldata, as used for deployments through a bundler."""
    return address_to_bytes(factory) + encode_create_proxy_with_nonce(singleton, initializer, salt_nonce)
