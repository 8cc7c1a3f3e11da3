"""
Data models for the Safe protocol SDK.
"""
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .constants import ZERO_ADDRESS
from .exceptions import ValidationError
from .utils import checksum_address, hex_to_bytes, normalize_address
from .versions import DEFAULT_SAFE_VERSION, VERSION_PROFILES

M = TypeVar("M", bound=BaseModel)


class OperationType(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1


class MetaTransactionData(BaseModel):
    """One call: the unit the batch encoder packs."""
    to: str
    value: int = Field(0, ge=0, lt=2 ** 256)
    data: bytes = b""
    operation: OperationType = OperationType.CALL

    class Config:
        frozen = True

    @field_validator("to")
    @classmethod
    def _checksum_to(cls, v: str) -> str:
        return checksum_address(v)

    @field_validator("data", mode="before")
    @classmethod
    def _hex_data(cls, v: Any) -> bytes:
        if v is None:
            return b""
        return hex_to_bytes(v)


class SafeTransactionData(MetaTransactionData):
    """The hashable description of an action executed by a Safe."""
    safe_tx_gas: int = Field(0, ge=0)
    base_gas: int = Field(0, ge=0)
    gas_price: int = Field(0, ge=0)
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    nonce: int = Field(0, ge=0)

    @field_validator("gas_token", "refund_receiver")
    @classmethod
    def _checksum_addresses(cls, v: str) -> str:
        return checksum_address(v)


class Account(BaseModel):
    """
    A Safe account, either deployed or counterfactual.

    The owner order is kept as given; owner identity is compared by
    normalized address.
    """
    address: str
    owners: Tuple[str, ...]
    threshold: int
    nonce: int = Field(0, ge=0)
    chain_id: int = Field(..., gt=0)
    version: str = DEFAULT_SAFE_VERSION

    class Config:
        frozen = True

    @field_validator("address")
    @classmethod
    def _checksum_address(cls, v: str) -> str:
        return checksum_address(v)

    @field_validator("owners", mode="before")
    @classmethod
    def _checksum_owners(cls, v: Any) -> Tuple[str, ...]:
        return tuple(checksum_address(owner) for owner in v)

    @field_validator("version")
    @classmethod
    def _known_version(cls, v: str) -> str:
        if v not in VERSION_PROFILES:
            raise ValueError(f"Unsupported Safe version {v!r}")
        return v

    @model_validator(mode="after")
    def _check_threshold(self) -> "Account":
        validate_owners_and_threshold(list(self.owners), self.threshold)
        return self

    def is_owner(self, address: str) -> bool:
        try:
            candidate = normalize_address(address)
        except ValidationError:
            return False
        return any(owner.lower() == candidate for owner in self.owners)


class SafeAccountConfig(BaseModel):
    """Parameters of the Safe ``setup`` call for a counterfactual account."""
    owners: List[str]
    threshold: int
    to: str = ZERO_ADDRESS
    data: bytes = b""
    fallback_handler: Optional[str] = None
    payment_token: str = ZERO_ADDRESS
    payment: int = Field(0, ge=0)
    payment_receiver: str = ZERO_ADDRESS

    @field_validator("owners", mode="before")
    @classmethod
    def _checksum_owners(cls, v: Any) -> List[str]:
        return [checksum_address(owner) for owner in v]

    @field_validator("to", "payment_token", "payment_receiver")
    @classmethod
    def _checksum_addresses(cls, v: str) -> str:
        return checksum_address(v)

    @field_validator("fallback_handler")
    @classmethod
    def _checksum_handler(cls, v: Optional[str]) -> Optional[str]:
        return checksum_address(v) if v is not None else None

    @field_validator("data", mode="before")
    @classmethod
    def _hex_data(cls, v: Any) -> bytes:
        if v is None:
            return b""
        return hex_to_bytes(v)


class SafeDeploymentConfig(BaseModel):
    """Deployment options for a counterfactual account."""
    salt_nonce: Optional[int] = None
    safe_version: str = DEFAULT_SAFE_VERSION
    is_l1_safe_singleton: bool = False


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = []

    class Config:
        populate_by_name = True


def validate_owners_and_threshold(owners: List[str], threshold: int) -> None:
    """
    Raises:
        ValidationError: If the owner list is empty, has duplicates, or the
            threshold is outside 1..len(owners)
    """
    if len(owners) <= 0:
        raise ValidationError("Owner list must have at least one owner")
    if threshold <= 0:
        raise ValidationError("Threshold must be greater than or equal to 1")
    if threshold > len(owners):
        raise ValidationError("Threshold must be lower than or equal to owners length")
    normalized = [normalize_address(owner) for owner in owners]
    if len(set(normalized)) != len(normalized):
        raise ValidationError("Owner list must not contain duplicates")


def parse_model(model_cls: Type[M], data: Any) -> M:
    """
    Build a model, reporting invalid input as the SDK's ValidationError.
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {model_cls.__name__}: {e}") from e
