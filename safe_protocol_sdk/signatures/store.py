"""
Immutable signature collection and its on-chain encoding.
"""
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from ..constants import SIGNATURE_LENGTH_BYTES
from ..exceptions import ValidationError
from ..utils import address_to_int, normalize_address, to_hex
from .signature import SafeSignature


class SignatureStore(Mapping[str, SafeSignature]):
    """
    Map from normalized signer address to signature.

    Stores never change after construction: ``insert`` and ``merge`` return a
    new store, so two signing flows working from the same store cannot
    interfere with each other.
    """

    __slots__ = ("_entries",)

    def __init__(self, signatures: Iterable[SafeSignature] = ()):
        entries: Dict[str, SafeSignature] = {}
        for signature in signatures:
            # First signature per signer wins
            entries.setdefault(signature.key, signature)
        self._entries = MappingProxyType(entries)

    def __getitem__(self, address: str) -> SafeSignature:
        try:
            key = normalize_address(address)
        except ValidationError:
            raise KeyError(address) from None
        return self._entries[key]

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return address.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SignatureStore({list(self._entries.values())!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignatureStore):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def insert(self, signature: SafeSignature) -> "SignatureStore":
        """
        Return a store that also holds ``signature``.

        If the signer already signed, the existing signature is kept.
        """
        if signature.key in self._entries:
            return self
        return SignatureStore([*self._entries.values(), signature])

    def merge(self, other: Iterable[SafeSignature]) -> "SignatureStore":
        """Union over signer keys; entries already in ``self`` take precedence."""
        if isinstance(other, SignatureStore):
            other = other.values()
        return SignatureStore([*self._entries.values(), *other])

    def get_signature(self, address: str) -> Optional[SafeSignature]:
        return self._entries.get(normalize_address(address))

    def signers(self) -> List[str]:
        return [signature.signer for signature in self._entries.values()]

    def sorted(self) -> List[SafeSignature]:
        """Signatures in the order the contract expects: ascending signer address."""
        return sorted(self._entries.values(), key=lambda s: address_to_int(s.signer))

    def encode(self) -> bytes:
        """
        Concatenate signatures into the blob checked by the Safe contract.

        Static 65-byte slots come first, sorted by signer. Contract signatures
        then append ``len || data`` to a dynamic region, and their static slot
        stores the offset of that entry from the start of the blob.
        """
        signatures = self.sorted()
        static_length = len(signatures) * SIGNATURE_LENGTH_BYTES

        static_bytes = b""
        dynamic_bytes = b""
        for signature in signatures:
            if signature.is_contract_signature:
                offset = static_length + len(dynamic_bytes)
                static_bytes += signature.static_part(offset)
                dynamic_bytes += signature.dynamic_part()
            else:
                static_bytes += signature.static_part()

        return static_bytes + dynamic_bytes

    def encode_hex(self) -> str:
        return to_hex(self.encode())


def build_signature_bytes(signatures: Iterable[SafeSignature]) -> bytes:
    """Encode an arbitrary collection of signatures."""
    return SignatureStore(signatures).encode()
