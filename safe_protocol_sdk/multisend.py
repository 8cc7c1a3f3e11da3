"""
MultiSend batch encoding.

A batch of calls is packed into one ``multiSend(bytes)`` call executed by
the Safe through DELEGATECALL. Calls run in the order they are encoded.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .exceptions import ValidationError
from .models import MetaTransactionData, OperationType, SafeTransactionData, parse_model
from .utils import address_to_bytes, hex_to_bytes, uint256

logger = logging.getLogger(__name__)

MULTI_SEND_SELECTOR = function_signature_to_4byte_selector("multiSend(bytes)")

# operation(1) + to(20) + value(32) + dataLength(32)
_HEADER_LENGTH = 1 + 20 + 32 + 32

CallLike = Union[MetaTransactionData, Dict[str, Any]]


def _encode_meta_transaction(tx: MetaTransactionData) -> bytes:
    return (
        int(tx.operation).to_bytes(1, "big")
        + address_to_bytes(tx.to)
        + uint256(tx.value)
        + uint256(len(tx.data))
        + tx.data
    )


def encode_multi_send_data(calls: Sequence[CallLike]) -> bytes:
    """
    Pack calls as operation || to || value || len(data) || data, back to back.

    Args:
        calls: Ordered calls; dicts are validated into MetaTransactionData

    Returns:
        The packed transactions bytes

    Raises:
        ValidationError: If there are no calls or a call is malformed
    """
    if not calls:
        raise ValidationError("Invalid empty array of transactions")
    txs = [parse_model(MetaTransactionData, call) for call in calls]
    return b"".join(_encode_meta_transaction(tx) for tx in txs)


def encode_multi_send_call(calls: Sequence[CallLike]) -> bytes:
    """Calldata for MultiSend.multiSend(bytes transactions)."""
    return MULTI_SEND_SELECTOR + encode(["bytes"], [encode_multi_send_data(calls)])


def decode_multi_send_data(encoded: Union[str, bytes]) -> List[MetaTransactionData]:
    """
    Unpack a MultiSend payload back into its calls.

    Accepts either the packed transactions bytes or full ``multiSend`` calldata.

    Raises:
        ValidationError: If the payload is truncated
    """
    raw = hex_to_bytes(encoded)
    if raw[:4] == MULTI_SEND_SELECTOR:
        (raw,) = decode(["bytes"], raw[4:])

    txs: List[MetaTransactionData] = []
    index = 0
    while index < len(raw):
        if index + _HEADER_LENGTH > len(raw):
            raise ValidationError(f"Truncated MultiSend entry at offset {index}")
        operation = raw[index]
        if operation not in (OperationType.CALL, OperationType.DELEGATE_CALL):
            raise ValidationError(f"Invalid operation {operation} at offset {index}")
        to = to_checksum_address(raw[index + 1:index + 21])
        value = int.from_bytes(raw[index + 21:index + 53], "big")
        data_length = int.from_bytes(raw[index + 53:index + 85], "big")
        index += _HEADER_LENGTH
        if index + data_length > len(raw):
            raise ValidationError(f"Truncated MultiSend data at offset {index}")
        data = raw[index:index + data_length]
        index += data_length
        txs.append(MetaTransactionData(
            to=to, value=value, data=data, operation=OperationType(operation)
        ))
    return txs


def build_batch_transaction(
    calls: Sequence[CallLike],
    multi_send_address: str,
    only_calls: bool = False,
    options: Optional[Dict[str, Any]] = None
) -> SafeTransactionData:
    """
    Wrap several calls into a single Safe transaction targeting MultiSend.

    Args:
        calls: Ordered calls to batch
        multi_send_address: MultiSend (or MultiSendCallOnly) deployment
        only_calls: Reject DELEGATECALL sub-calls (MultiSendCallOnly semantics)
        options: Extra SafeTransactionData fields (nonce, gas settings)

    Raises:
        ValidationError: On an empty batch or a DELEGATECALL with only_calls
    """
    txs = [parse_model(MetaTransactionData, call) for call in calls]
    if only_calls and any(tx.operation != OperationType.CALL for tx in txs):
        raise ValidationError("MultiSendCallOnly batches cannot contain DELEGATECALL operations")

    data = encode_multi_send_call(txs)
    logger.debug("Encoded MultiSend batch of %d calls (%d bytes)", len(txs), len(data))
    return parse_model(SafeTransactionData, {
        **(options or {}),
        "to": multi_send_address,
        "value": 0,
        "data": data,
        "operation": OperationType.DELEGATE_CALL,
    })