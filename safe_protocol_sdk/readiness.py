"""
Execution readiness: does a signature set reach the Safe threshold?
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from .exceptions import GatewayError, InsufficientSignaturesError, ValidationError
from .models import Account
from .signatures import SafeSignature, SignatureStore
from .utils import checksum_address, hex_to_bytes, normalize_address

logger = logging.getLogger(__name__)

APPROVED_HASHES_SELECTOR = function_signature_to_4byte_selector("approvedHashes(address,bytes32)")


@dataclass(frozen=True)
class Ready:
    """Threshold reached; ``signers`` are the owners counted towards it"""
    signers: Tuple[str, ...]

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Missing:
    """
    Threshold not reached.

    Attributes:
        count: Number of owner approvals still needed
        signers: Owners counted so far
        under_signed: Nested Safe owners whose contract signature does not
            reach their own threshold
    """
    count: int
    signers: Tuple[str, ...] = ()
    under_signed: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(InsufficientSignaturesError(self.count))


Readiness = Union[Ready, Missing]


def _nested_signature_ok(
    signature: SafeSignature,
    account: Account,
    nested_accounts: Dict[str, Account]
) -> bool:
    if not signature.nested:
        # Only the opaque blob is known, the chain will tell
        logger.debug(f"Cannot inspect contract signature of {signature.signer}, counting it")
        return True
    result = _check(
        SignatureStore(signature.nested),
        account.owners,
        account.threshold,
        (),
        nested_accounts,
    )
    return bool(result)


def _check(
    store: SignatureStore,
    owners: Sequence[str],
    threshold: int,
    on_chain_approved: Iterable[str],
    nested_accounts: Dict[str, Account]
) -> Readiness:
    if threshold < 1:
        raise ValidationError("Threshold must be greater than or equal to 1")
    owner_keys = {normalize_address(owner) for owner in owners}

    effective: Dict[str, str] = {}
    under_signed: List[str] = []
    for signature in store.values():
        if signature.key not in owner_keys:
            continue
        nested = nested_accounts.get(signature.key)
        if signature.is_contract_signature and nested is not None:
            if not _nested_signature_ok(signature, nested, nested_accounts):
                under_signed.append(signature.signer)
                continue
        effective[signature.key] = signature.signer

    for approver in on_chain_approved:
        key = normalize_address(approver)
        if key in owner_keys:
            effective.setdefault(key, checksum_address(approver))

    signers = tuple(effective.values())
    missing = threshold - len(signers)
    if missing <= 0:
        return Ready(signers)
    return Missing(missing, signers, tuple(under_signed))


def check(
    store: Union[SignatureStore, Iterable[SafeSignature]],
    owners: Sequence[str],
    threshold: int,
    on_chain_approved: Iterable[str] = (),
    nested_accounts: Optional[Iterable[Account]] = None
) -> Readiness:
    """
    Decide whether the collected signatures allow execution.

    Only owners count: signatures from other addresses are ignored here
    (signing already rejects them). On-chain approvals count like signatures.

    Args:
        store: Collected signatures
        owners: Owners of the Safe
        threshold: Required number of owners
        on_chain_approved: Owners that approved the hash on chain
        nested_accounts: Known nested Safes; their contract signatures only
            count when the nested signatures reach the nested threshold

    Returns:
        Ready, or Missing with the exact number of approvals still needed
    """
    if not isinstance(store, SignatureStore):
        store = SignatureStore(store)
    nested = {normalize_address(account.address): account for account in nested_accounts or ()}
    return _check(store, owners, threshold, on_chain_approved, nested)


def require_ready(
    store: Union[SignatureStore, Iterable[SafeSignature]],
    owners: Sequence[str],
    threshold: int,
    on_chain_approved: Iterable[str] = (),
    nested_accounts: Optional[Iterable[Account]] = None
) -> Ready:
    """
    Like check, but raise when the threshold is not reached

    Raises:
        InsufficientSignaturesError: With the number of missing signatures
    """
    result = check(store, owners, threshold, on_chain_approved, nested_accounts)
    if not result:
        raise InsufficientSignaturesError(result.count)
    return result


def get_owners_who_approved_tx(gateway, safe_address: str, owners: Sequence[str], tx_hash: Union[str, bytes]) -> List[str]:
    """
    Owners that approved ``tx_hash`` on chain through approveHash.

    Raises:
        GatewayError: If a read fails
    """
    raw_hash = hex_to_bytes(tx_hash)
    if len(raw_hash) != 32:
        raise ValidationError(f"Expected a 32-byte hash, got {len(raw_hash)} bytes")

    approved = []
    for owner in owners:
        owner = checksum_address(owner)
        result = gateway.call(
            safe_address,
            APPROVED_HASHES_SELECTOR + encode(["address", "bytes32"], [owner, raw_hash]),
        )
        try:
            (value,) = decode(["uint256"], result)
        except Exception as e:
            raise GatewayError(f"Malformed approvedHashes result: {str(e)}", operation="call") from e
        if value != 0:
            approved.append(owner)
    logger.debug(f"Owners who approved 0x{raw_hash.hex()} on {safe_address}: {approved}")
    return approved
