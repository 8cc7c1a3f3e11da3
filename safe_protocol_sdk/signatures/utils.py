"""
Helpers for producing and inspecting owner signatures.
"""
import logging
from typing import List, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_checksum_address

from ..constants import SIGNATURE_LENGTH_BYTES
from ..exceptions import ValidationError
from ..utils import address_to_bytes, hex_to_bytes, pad32, same_address, uint256
from .signature import SafeSignature, SigningMethod, SigningScheme

logger = logging.getLogger(__name__)

ETHEREUM_V_VALUES = (0, 1, 27, 28)
MIN_VALID_V_VALUE_FOR_SAFE_ECDSA = 27
ETH_SIGN_V_OFFSET = 4


def is_tx_hash_signed_with_prefix(
    tx_hash: Union[str, bytes],
    signature: Union[str, bytes],
    owner_address: str
) -> bool:
    """
    Tell whether ``signature`` was made over the EIP-191 prefixed hash.

    If recovering the raw hash does not give back the owner, the wallet
    must have prefixed it.
    """
    try:
        recovered = recover_hash_signer(tx_hash, signature)
    except Exception as e:
        logger.debug(f"Raw hash recovery failed, assuming prefixed signature: {e}")
        return True
    return not same_address(recovered, owner_address)


def adjust_v_in_signature(
    signing_method: SigningMethod,
    signature: Union[str, bytes],
    tx_hash: Union[str, bytes, None] = None,
    signer_address: str = None
) -> bytes:
    """
    Normalize the recovery byte so the Safe contract picks the right
    verification path.

    v is moved from 0/1 to 27/28. For ``eth_sign`` signatures over a prefixed
    hash, 4 is added so the contract applies the prefix before recovery.

    Raises:
        ValidationError: If the signature is not 65 bytes or v is not a valid recovery id
    """
    raw = bytearray(hex_to_bytes(signature))
    if len(raw) != SIGNATURE_LENGTH_BYTES:
        raise ValidationError(f"Invalid signature length: {len(raw)}")

    v = raw[-1]
    if v not in ETHEREUM_V_VALUES:
        raise ValidationError("Invalid signature")

    if v < MIN_VALID_V_VALUE_FOR_SAFE_ECDSA:
        v += MIN_VALID_V_VALUE_FOR_SAFE_ECDSA

    if signing_method == SigningMethod.ETH_SIGN:
        if tx_hash is None or signer_address is None:
            raise ValidationError("eth_sign signatures need the signed hash and signer to adjust v")
        raw[-1] = v
        if is_tx_hash_signed_with_prefix(tx_hash, bytes(raw), signer_address):
            v += ETH_SIGN_V_OFFSET

    raw[-1] = v
    return bytes(raw)


def generate_pre_validated_signature(owner_address: str) -> SafeSignature:
    """
    Signature slot telling the Safe to accept ``owner_address`` because it is
    the transaction sender or has approved the hash on chain.
    """
    data = pad32(address_to_bytes(owner_address)) + uint256(0) + b"\x01"
    return SafeSignature(owner_address, data, SigningScheme.APPROVED_HASH)


def recover_hash_signer(data_hash: Union[str, bytes], signature: Union[str, bytes]) -> str:
    """
    Recover the address that signed the raw 32-byte ``data_hash``.

    eth-account only exposes raw hash recovery privately, so every caller in
    the SDK goes through here.
    """
    return Account._recover_hash(hex_to_bytes(data_hash), signature=hex_to_bytes(signature))


def _recover_owner(data_hash: bytes, slot: bytes) -> str:
    v = slot[64]
    if v > 30:
        # eth_sign: the contract recovers over the prefixed hash with v - 4
        return Account.recover_message(
            encode_defunct(primitive=data_hash),
            signature=slot[:64] + bytes([v - ETH_SIGN_V_OFFSET]),
        )
    return recover_hash_signer(data_hash, slot)


def split_signatures(blob: Union[str, bytes], data_hash: Union[str, bytes]) -> List[SafeSignature]:
    """
    Parse an encoded signatures blob back into its entries.

    Static slots are read until the offset of the first contract signature,
    which marks the start of the dynamic region. ECDSA signers are recovered
    against ``data_hash`` the same way the Safe contract does it.

    Raises:
        ValidationError: If a slot or a dynamic part is out of bounds, or v is unknown
    """
    raw = hex_to_bytes(blob)
    message_hash = hex_to_bytes(data_hash)
    signatures: List[SafeSignature] = []
    static_end = len(raw)

    position = 0
    while position < static_end:
        if position + SIGNATURE_LENGTH_BYTES > len(raw):
            raise ValidationError(f"Truncated signature slot at offset {position}")
        slot = raw[position:position + SIGNATURE_LENGTH_BYTES]
        r, s, v = slot[:32], slot[32:64], slot[64]

        if v == 0:
            offset = int.from_bytes(s, "big")
            if offset + 32 > len(raw):
                raise ValidationError(f"Dynamic signature offset {offset} out of bounds")
            length = int.from_bytes(raw[offset:offset + 32], "big")
            if offset + 32 + length > len(raw):
                raise ValidationError(f"Dynamic signature of {length} bytes out of bounds")
            signatures.append(SafeSignature(
                to_checksum_address(r[12:]),
                raw[offset + 32:offset + 32 + length],
                SigningScheme.CONTRACT_SIGNATURE,
            ))
            static_end = min(static_end, offset)
        elif v == 1:
            signatures.append(SafeSignature(
                to_checksum_address(r[12:]), slot, SigningScheme.APPROVED_HASH
            ))
        elif v in (27, 28):
            signatures.append(SafeSignature(
                _recover_owner(message_hash, slot), slot, SigningScheme.EOA_TYPED_V4
            ))
        elif v in (31, 32):
            signatures.append(SafeSignature(
                _recover_owner(message_hash, slot), slot, SigningScheme.EOA_PERSONAL_SIGN
            ))
        else:
            raise ValidationError(f"Unknown signature type v={v} at offset {position}")
        position += SIGNATURE_LENGTH_BYTES

    return signatures
