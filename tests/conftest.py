"""
Pytest configuration and fixtures for Doko Runtime tests.
"""

import os
from pathlib import Path

import pytest
import structlog
import yaml

from doko_runtime.core.models import ContractConfig, ExecutionMode, NetworkConfig


@pytest.fixture(autouse=True)
def clear_doko_env(monkeypatch):
    """
    Remove DOKO_* variables so Settings() sees defaults in every test.

    Tests that need a setting pass it explicitly or set it with monkeypatch.
    """
    for key in list(os.environ):
        if key.startswith("DOKO_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by create_app() or main()."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def contract_config(tmp_path: Path) -> ContractConfig:
    contract_dir = tmp_path / "token"
    (contract_dir / "build").mkdir(parents=True)
    return ContractConfig(
        privateKey="APrivateKey1zkpTestKey",
        appName="token",
        contractPath=str(contract_dir),
        network=NetworkConfig(endpoint="http://localhost:3030"),
        networkName="testnet",
        mode=ExecutionMode.LEO_RUN,
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project root with pyproject.toml and aleo-config.yaml."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n")
    config = {
        "accounts": ["APrivateKey1zkpDefault"],
        "mode": "execute",
        "defaultNetwork": "testnet",
        "networks": {
            "testnet": {
                "endpoint": "http://localhost:3030",
                "accounts": ["APrivateKey1zkpTestnet"],
                "priorityFee": 0.01,
            },
            "mainnet": {
                "endpoint": "https://api.explorer.aleo.org/v1",
            },
        },
    }
    with open(root / "aleo-config.yaml", "w") as f:
        yaml.dump(config, f)
    return root
