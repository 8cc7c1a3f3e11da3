"""
Tests for the version module of the Safe protocol SDK.
"""
import pytest
import re
import importlib
from importlib import metadata as importlib_metadata
from unittest.mock import patch, mock_open
import tomli

from safe_protocol_sdk import __version__


def _raise(exc):
    def raiser(*args, **kwargs):
        raise exc
    return raiser


def test_version_format():
    """Test that the version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+$', __version__), "Version should follow semantic versioning"


@patch('importlib.metadata.version')
@patch('pathlib.Path.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_file(mock_open_file, mock_metadata_version):
    """When metadata lookup fails, pyproject.toml is read"""
    mock_metadata_version.side_effect = importlib_metadata.PackageNotFoundError
    import safe_protocol_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    import safe_protocol_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"
    mock_metadata_version.assert_called_with("safe-protocol-sdk")


def test_version_file_not_found(monkeypatch):
    """If pyproject.toml is missing, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    monkeypatch.setattr('pathlib.Path.open', _raise(FileNotFoundError()))
    import safe_protocol_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_key_error(monkeypatch):
    """If TOML exists but missing version key, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    m = mock_open(read_data=b'[project]\nname = "safe-protocol-sdk"\n')
    monkeypatch.setattr('pathlib.Path.open', m)
    import safe_protocol_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_toml_decode_error(monkeypatch):
    """If TOML parse fails, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    m = mock_open(read_data=b'invalid toml content')
    monkeypatch.setattr('pathlib.Path.open', m)
    monkeypatch.setattr(tomli, 'load', _raise(tomli.TOMLDecodeError("fail", "", 0)))
    import safe_protocol_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"
