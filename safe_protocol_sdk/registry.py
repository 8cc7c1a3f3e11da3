"""
Version registry: which contracts belong to which Safe version.
"""
import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence, Tuple, Union

from .config import DeploymentConfig, resolve_deployment
from .exceptions import UnsupportedVersionError
from .utils import checksum_address, hex_to_bytes, normalize_address
from .versions import SUPPORTED_VERSIONS


@dataclass(frozen=True)
class Deployment:
    """Contract addresses and known singleton code fingerprints of one version on one chain"""
    version: str
    safe_singleton: Optional[str] = None
    safe_l2_singleton: Optional[str] = None
    proxy_factory: Optional[str] = None
    multi_send: Optional[str] = None
    multi_send_call_only: Optional[str] = None
    fallback_handler: Optional[str] = None
    l1_fingerprints: Tuple[bytes, ...] = ()
    l2_fingerprints: Tuple[bytes, ...] = ()

    @classmethod
    def from_dict(cls, version: str, data: Dict[str, Any]) -> "Deployment":
        def address(key: str) -> Optional[str]:
            value = data.get(key)
            return checksum_address(value) if value else None

        fingerprints = data.get("fingerprints") or {}
        return cls(
            version=version,
            safe_singleton=address("safeSingleton"),
            safe_l2_singleton=address("safeL2Singleton"),
            proxy_factory=address("proxyFactory"),
            multi_send=address("multiSend"),
            multi_send_call_only=address("multiSendCallOnly"),
            fallback_handler=address("fallbackHandler"),
            l1_fingerprints=tuple(hex_to_bytes(h) for h in fingerprints.get("l1", [])),
            l2_fingerprints=tuple(hex_to_bytes(h) for h in fingerprints.get("l2", [])),
        )

    def singleton(self, is_l2: bool = False) -> Optional[str]:
        return self.safe_l2_singleton if is_l2 else self.safe_singleton


class VersionRegistry(Protocol):
    """Protocol for looking up deployments by version"""

    def lookup(self, version: str, chain_id: int) -> Optional[Deployment]:
        ...

    def versions(self) -> Sequence[str]:
        ...


class DeploymentRegistry:
    """
    VersionRegistry backed by deployment data (the packaged configuration by default).

    Registries are immutable; ``with_fingerprints`` and ``with_deployment``
    return extended copies, which is how custom deployments are injected.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        if data is None:
            data = DeploymentConfig.load_deployments()
        self._data = copy.deepcopy(data)
        self._data.setdefault("versions", {})
        self._data.setdefault("chains", {})

    def versions(self) -> Sequence[str]:
        """Versions with a deployment, newest first."""
        known = self._data["versions"]
        return [version for version in SUPPORTED_VERSIONS if version in known]

    def lookup(self, version: str, chain_id: int) -> Optional[Deployment]:
        if version not in self._data["versions"]:
            return None
        return Deployment.from_dict(version, resolve_deployment(self._data, version, chain_id))

    def require(self, version: str, chain_id: int) -> Deployment:
        """
        Raises:
            UnsupportedVersionError: If there is no deployment for the version
        """
        deployment = self.lookup(version, chain_id)
        if deployment is None:
            raise UnsupportedVersionError(f"No deployment for Safe v{version}", version=version)
        return deployment

    def find_by_singleton(self, address: str, chain_id: int) -> Optional[Tuple[str, bool]]:
        """
        Find the version whose singleton lives at ``address``.

        Returns:
            (version, is_l2), or None if the address is not a known singleton
        """
        return find_singleton_version(self, address, chain_id)

    def with_fingerprints(
        self,
        version: str,
        l1: Iterable[Union[str, bytes]] = (),
        l2: Iterable[Union[str, bytes]] = (),
        chain_id: Optional[int] = None
    ) -> "DeploymentRegistry":
        """Return a registry that also knows the given code fingerprints."""
        data = copy.deepcopy(self._data)
        target = self._entry(data, version, chain_id)
        fingerprints = copy.deepcopy(
            target.get("fingerprints")
            or data["versions"].get(version, {}).get("fingerprints")
            or {}
        )
        fingerprints["l1"] = list(fingerprints.get("l1", [])) + ["0x" + hex_to_bytes(h).hex() for h in l1]
        fingerprints["l2"] = list(fingerprints.get("l2", [])) + ["0x" + hex_to_bytes(h).hex() for h in l2]
        target["fingerprints"] = fingerprints
        return DeploymentRegistry(data)

    def with_deployment(self, version: str, chain_id: Optional[int] = None, **addresses: str) -> "DeploymentRegistry":
        """
        Return a registry with some addresses replaced.

        Keyword names follow the configuration keys (``safeSingleton``,
        ``proxyFactory``, ...). With ``chain_id`` the change only applies to that chain.
        """
        data = copy.deepcopy(self._data)
        self._entry(data, version, chain_id).update(addresses)
        return DeploymentRegistry(data)

    @staticmethod
    def _entry(data: Dict[str, Any], version: str, chain_id: Optional[int]) -> Dict[str, Any]:
        if chain_id is None:
            return data["versions"].setdefault(version, {})
        data["versions"].setdefault(version, {})
        return data["chains"].setdefault(str(chain_id), {}).setdefault(version, {})


def find_singleton_version(registry: VersionRegistry, address: str, chain_id: int) -> Optional[Tuple[str, bool]]:
    """
    Find the version whose L1 or L2 singleton lives at ``address``, newest first.

    Returns:
        (version, is_l2), or None
    """
    target = normalize_address(address)
    for version in SUPPORTED_VERSIONS:
        deployment = registry.lookup(version, chain_id)
        if deployment is None:
            continue
        for is_l2 in (False, True):
            singleton = deployment.singleton(is_l2)
            if singleton is not None and singleton.lower() == target:
                return version, is_l2
    return None
