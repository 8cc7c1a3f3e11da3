"""
Deployment configuration for Safe contracts.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, List, Optional

from .exceptions import UnsupportedVersionError, ValidationError
from .versions import DEFAULT_SAFE_VERSION, VERSION_PROFILES

logger = logging.getLogger(__name__)

DEPLOYMENTS_FILE_ENV = "SAFE_DEPLOYMENTS_FILE"
DEFAULT_VERSION_ENV = "SAFE_DEFAULT_VERSION"


class DeploymentConfig:
    """
    Canonical Safe contract addresses per version.

    The packaged ``deployments.json`` is read once and cached on the class.
    ``SAFE_DEPLOYMENTS_FILE`` points to a replacement file. Entries under
    ``chains.<chain id>.<version>`` override the canonical ones on that chain.
    """

    _deployments_cache: Optional[Dict[str, Any]] = None

    @classmethod
    def load_deployments(cls) -> Dict[str, Any]:
        """
        Load deployment data from the configured file

        Returns:
            Dictionary with ``versions`` and ``chains`` sections

        Raises:
            ValidationError: If the file cannot be parsed
        """
        if cls._deployments_cache is not None:
            return cls._deployments_cache

        path = os.environ.get(DEPLOYMENTS_FILE_ENV)
        try:
            if path:
                logger.debug(f"Loading Safe deployments from {path}")
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            else:
                content = importlib.resources.files("safe_protocol_sdk").joinpath("deployments.json").read_text()
                data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid deployments file: {str(e)}") from e

        data.setdefault("versions", {})
        data.setdefault("chains", {})
        cls._deployments_cache = data
        return data

    @classmethod
    def reset_cache(cls) -> None:
        cls._deployments_cache = None

    @classmethod
    def available_versions(cls) -> List[str]:
        return list(cls.load_deployments()["versions"].keys())

    @classmethod
    def get_deployment(cls, version: str, chain_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Get the deployment of a version, with chain overrides applied

        Raises:
            UnsupportedVersionError: If the version has no deployment
        """
        return resolve_deployment(cls.load_deployments(), version, chain_id)

    @classmethod
    def get_default_version(cls) -> str:
        """
        Default Safe version, overridable with ``SAFE_DEFAULT_VERSION``

        Raises:
            UnsupportedVersionError: If the override is not a supported version
        """
        version = os.environ.get(DEFAULT_VERSION_ENV, DEFAULT_SAFE_VERSION)
        if version not in VERSION_PROFILES:
            raise UnsupportedVersionError(
                f"{DEFAULT_VERSION_ENV}={version!r} is not a supported Safe version. "
                f"Supported versions: {', '.join(VERSION_PROFILES)}",
                version=version,
            )
        return version


def resolve_deployment(data: Dict[str, Any], version: str, chain_id: Optional[int] = None) -> Dict[str, Any]:
    """Merge the canonical deployment of ``version`` with the overrides for ``chain_id``."""
    versions = data.get("versions", {})
    if version not in versions:
        available = ", ".join(versions.keys())
        raise UnsupportedVersionError(
            f"No deployment for Safe v{version}. Available versions: {available}",
            version=version,
        )

    deployment = dict(versions[version])
    if chain_id is not None:
        overrides = data.get("chains", {}).get(str(chain_id), {}).get(version, {})
        if overrides:
            logger.debug(f"Applying chain {chain_id} overrides for Safe v{version}: {sorted(overrides)}")
        deployment.update(overrides)
    return deployment
