# EIP-712 hashing for Safe transactions and messages

import logging
from typing import Any, Dict, Union

from eth_account.messages import SignableMessage, defunct_hash_message, encode_typed_data
from eth_utils import keccak

from .models import SafeTransactionData
from .utils import address_to_bytes, checksum_address, hex_to_bytes, pad32, uint256
from .versions import (
    DOMAIN_TYPE_LEGACY,
    DOMAIN_TYPE_WITH_CHAIN_ID,
    SAFE_MESSAGE_TYPE,
    SafeFeature,
    get_profile,
    has_safe_feature,
)

logger = logging.getLogger(__name__)

EIP712_PREFIX = b"\x19\x01"

DOMAIN_SEPARATOR_TYPEHASH = keccak(text=DOMAIN_TYPE_WITH_CHAIN_ID)
DOMAIN_SEPARATOR_TYPEHASH_LEGACY = keccak(text=DOMAIN_TYPE_LEGACY)
SAFE_MSG_TYPEHASH = keccak(text=SAFE_MESSAGE_TYPE)


class SafeDomain:
    """EIP-712 domain of one Safe account"""

    def __init__(self, verifying_contract: str, version: str, chain_id: int):
        self.verifying_contract = checksum_address(verifying_contract)
        self.version = version
        self.chain_id = chain_id
        self.profile = get_profile(version)

    def to_dict(self) -> Dict[str, Any]:
        """Domain fields as they appear in typed data"""
        if self.profile.domain_has_chain_id:
            return {"chainId": self.chain_id, "verifyingContract": self.verifying_contract}
        return {"verifyingContract": self.verifying_contract}

    def types(self) -> list:
        if self.profile.domain_has_chain_id:
            return [
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ]
        return [{"name": "verifyingContract", "type": "address"}]

    def separator_hash(self) -> bytes:
        """Compute domain separator hash"""
        if self.profile.domain_has_chain_id:
            domain_data = [
                DOMAIN_SEPARATOR_TYPEHASH,
                uint256(self.chain_id),
                pad32(address_to_bytes(self.verifying_contract)),
            ]
        else:
            # Versions before 1.3.0 have no chainId in the domain
            domain_data = [
                DOMAIN_SEPARATOR_TYPEHASH_LEGACY,
                pad32(address_to_bytes(self.verifying_contract)),
            ]
        return keccak(b"".join(domain_data))


def domain_separator(safe_address: str, version: str, chain_id: int) -> bytes:
    return SafeDomain(safe_address, version, chain_id).separator_hash()


def safe_tx_struct_hash(tx: SafeTransactionData, version: str) -> bytes:
    """Hash of the SafeTx struct, fields in the order the contract encodes them."""
    profile = get_profile(version)
    encoded_data = [
        keccak(text=profile.safe_tx_type),
        pad32(address_to_bytes(tx.to)),
        uint256(tx.value),
        keccak(tx.data),
        uint256(int(tx.operation)),
        uint256(tx.safe_tx_gas),
        uint256(tx.base_gas),
        uint256(tx.gas_price),
        pad32(address_to_bytes(tx.gas_token)),
        pad32(address_to_bytes(tx.refund_receiver)),
        uint256(tx.nonce),
    ]
    return keccak(b"".join(encoded_data))


def safe_message_struct_hash(message: bytes) -> bytes:
    return keccak(SAFE_MSG_TYPEHASH + keccak(message))


def encode_transaction_data(
    safe_address: str,
    tx: SafeTransactionData,
    version: str,
    chain_id: int
) -> bytes:
    """
    Pre-image of the Safe transaction hash: 0x1901 || domainSeparator || structHash.
    """
    return (
        EIP712_PREFIX
        + domain_separator(safe_address, version, chain_id)
        + safe_tx_struct_hash(tx, version)
    )


def hash_safe_transaction(
    safe_address: str,
    tx: SafeTransactionData,
    version: str,
    chain_id: int
) -> bytes:
    """
    Compute the structured hash the Safe contract verifies signatures against.

    Args:
        safe_address: The verifying Safe
        tx: Transaction data
        version: Resolved protocol version of the Safe
        chain_id: Chain the Safe lives on (ignored by versions before 1.3.0)

    Returns:
        32-byte hash
    """
    tx_hash = keccak(encode_transaction_data(safe_address, tx, version, chain_id))
    logger.debug("Safe tx hash for %s (v%s): 0x%s", safe_address, version, tx_hash.hex())
    return tx_hash


def encode_message_data(safe_address: str, message: bytes, version: str, chain_id: int) -> bytes:
    """Pre-image of a Safe message hash."""
    return (
        EIP712_PREFIX
        + domain_separator(safe_address, version, chain_id)
        + safe_message_struct_hash(message)
    )


def safe_message_hash(safe_address: str, message: bytes, version: str, chain_id: int) -> bytes:
    """
    Hash of a SafeMessage scoped to one account.

    This matches CompatibilityFallbackHandler.getMessageHashForSafe.
    """
    return keccak(encode_message_data(safe_address, message, version, chain_id))


def message_envelope_hash(
    account_address: str,
    raw_message_hash: Union[str, bytes],
    version: str,
    chain_id: int
) -> bytes:
    """
    Wrap an already hashed message so that a signature over it is only valid
    for ``account_address``.
    """
    raw = hex_to_bytes(raw_message_hash)
    return safe_message_hash(account_address, raw, version, chain_id)


def preimage_safe_transaction_hash(
    safe_address: str,
    tx: SafeTransactionData,
    version: str,
    chain_id: int
) -> bytes:
    """
    Data a nested Safe owner has to sign over when approving a transaction of
    ``safe_address``: the legacy EIP-1271 interface passes the pre-image, not the hash.
    """
    return encode_transaction_data(safe_address, tx, version, chain_id)


def preimage_safe_message_hash(
    safe_address: str,
    message_hash: Union[str, bytes],
    version: str,
    chain_id: int
) -> bytes:
    return encode_message_data(safe_address, hex_to_bytes(message_hash), version, chain_id)


def forwarded_message_data(safe_address: str, data: bytes, version: str, chain_id: int) -> bytes:
    """
    Data the fallback handler of ``safe_address`` passes on to its contract
    owners when it validates a signature over ``data``.

    From 1.4.1 the handler forwards the encoded SafeMessage, before that it
    forwards ``data`` unchanged.
    """
    if has_safe_feature(SafeFeature.ENCODED_MESSAGE_DATA, version):
        return encode_message_data(safe_address, data, version, chain_id)
    return data


def hash_safe_message(message: Union[str, Dict[str, Any]]) -> bytes:
    """
    Hash an off-chain message before it is wrapped for a Safe.

    Strings are hashed as EIP-191 personal messages, dicts as EIP-712 typed data.
    """
    if isinstance(message, str):
        return defunct_hash_message(text=message)
    if isinstance(message, dict):
        return hash_typed_data(message)
    raise TypeError(f"Message must be a string or typed data dict, got {type(message).__name__}")


def hash_signable(signable: SignableMessage) -> bytes:
    """EIP-191 hash of an encoded message: keccak(0x19 || version || header || body)."""
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def hash_typed_data(typed_data: Dict[str, Any]) -> bytes:
    return hash_signable(encode_typed_data(full_message=typed_data))


def generate_typed_data(
    safe_address: str,
    version: str,
    chain_id: int,
    data: Union[SafeTransactionData, str, Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Create the full typed data structure wallets sign for a transaction or message.

    Messages are wrapped as SafeMessage over their EIP-191/EIP-712 hash.
    """
    domain = SafeDomain(safe_address, version, chain_id)

    if isinstance(data, SafeTransactionData):
        profile = domain.profile
        return {
            "types": {
                "EIP712Domain": domain.types(),
                "SafeTx": [
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "data", "type": "bytes"},
                    {"name": "operation", "type": "uint8"},
                    {"name": "safeTxGas", "type": "uint256"},
                    {"name": profile.base_gas_field, "type": "uint256"},
                    {"name": "gasPrice", "type": "uint256"},
                    {"name": "gasToken", "type": "address"},
                    {"name": "refundReceiver", "type": "address"},
                    {"name": "nonce", "type": "uint256"},
                ],
            },
            "primaryType": "SafeTx",
            "domain": domain.to_dict(),
            "message": {
                "to": data.to,
                "value": data.value,
                "data": data.data,
                "operation": int(data.operation),
                "safeTxGas": data.safe_tx_gas,
                profile.base_gas_field: data.base_gas,
                "gasPrice": data.gas_price,
                "gasToken": data.gas_token,
                "refundReceiver": data.refund_receiver,
                "nonce": data.nonce,
            },
        }

    return {
        "types": {
            "EIP712Domain": domain.types(),
            "SafeMessage": [{"name": "message", "type": "bytes"}],
        },
        "primaryType": "SafeMessage",
        "domain": domain.to_dict(),
        "message": {"message": hash_safe_message(data)},
    }
