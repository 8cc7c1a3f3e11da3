"""
Signed Safe transactions and messages.

Both are immutable: adding a signature returns a new object, so independent
signing flows over the same proposal can be merged afterwards.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Union

from .exceptions import ValidationError
from .models import SafeTransactionData
from .signatures import SafeSignature, SignatureStore
from .utils import to_hex


@dataclass(frozen=True)
class SafeTransaction:
    """A Safe transaction together with the signatures collected for it"""
    data: SafeTransactionData
    signatures: SignatureStore = field(default_factory=SignatureStore)

    def add_signature(self, signature: SafeSignature) -> "SafeTransaction":
        return replace(self, signatures=self.signatures.insert(signature))

    def add_signatures(self, signatures: Iterable[SafeSignature]) -> "SafeTransaction":
        return replace(self, signatures=self.signatures.merge(signatures))

    def merge(self, other: "SafeTransaction") -> "SafeTransaction":
        """
        Combine the signatures of two copies of the same transaction.

        Raises:
            ValidationError: If the transactions differ
        """
        if other.data != self.data:
            raise ValidationError("Cannot merge signatures of different transactions")
        return replace(self, signatures=self.signatures.merge(other.signatures))

    def get_signature(self, signer: str) -> Optional[SafeSignature]:
        return self.signatures.get_signature(signer)

    def encoded_signatures(self) -> bytes:
        return self.signatures.encode()

    def to_dict(self) -> Dict[str, Any]:
        result = self.data.model_dump()
        result["data"] = to_hex(self.data.data)
        result["operation"] = int(self.data.operation)
        result["signatures"] = to_hex(self.encoded_signatures())
        return result


@dataclass(frozen=True)
class SafeMessage:
    """An off-chain message to be signed by the Safe owners"""
    data: Union[str, Dict[str, Any]]
    signatures: SignatureStore = field(default_factory=SignatureStore)

    def add_signature(self, signature: SafeSignature) -> "SafeMessage":
        return replace(self, signatures=self.signatures.insert(signature))

    def merge(self, other: "SafeMessage") -> "SafeMessage":
        if other.data != self.data:
            raise ValidationError("Cannot merge signatures of different messages")
        return replace(self, signatures=self.signatures.merge(other.signatures))

    def get_signature(self, signer: str) -> Optional[SafeSignature]:
        return self.signatures.get_signature(signer)

    def encoded_signatures(self) -> bytes:
        return self.signatures.encode()
