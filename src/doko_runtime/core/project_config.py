"""Project configuration loaded from aleo-config.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from doko_runtime.core.exceptions import ConfigurationError
from doko_runtime.core.models import ContractConfig, ExecutionMode, NetworkConfig

logger = structlog.get_logger()


class NetworkEntry(BaseModel):
    """One named network in aleo-config.yaml."""

    endpoint: str
    accounts: List[str] = Field(default_factory=list)
    priorityFee: float = 0
    networkMode: Optional[int] = None


class ProjectConfig(BaseModel):
    """Parsed aleo-config.yaml."""

    accounts: List[str] = Field(default_factory=list)
    mode: ExecutionMode = ExecutionMode.LEO_RUN
    networks: Dict[str, NetworkEntry] = Field(default_factory=dict)
    defaultNetwork: Optional[str] = None

    def resolve_network(self, network: Optional[str] = None) -> Tuple[str, NetworkEntry]:
        """Named network, or the default one when network is None."""
        network_name = network or self.defaultNetwork
        if not network_name:
            raise ConfigurationError("No network given and no defaultNetwork in project config")

        entry = self.networks.get(network_name)
        if entry is None:
            raise ConfigurationError(f"Network '{network_name}' is not defined in project config")
        return network_name, entry

    def contract_config(
        self,
        app_name: str,
        contract_path: str,
        network: Optional[str] = None,
        *,
        is_imported_aleo: bool = False,
        mode: Optional[ExecutionMode] = None,
    ) -> ContractConfig:
        """Build the ContractConfig for one program on a named network."""
        network_name, entry = self.resolve_network(network)

        accounts = entry.accounts or self.accounts
        return ContractConfig(
            privateKey=accounts[0] if accounts else None,
            appName=app_name,
            contractPath=contract_path,
            network=NetworkConfig(endpoint=entry.endpoint),
            networkName=network_name,
            mode=mode or self.mode,
            priorityFee=entry.priorityFee,
            networkMode=entry.networkMode,
            isImportedAleo=is_imported_aleo,
        )


def load_project_config(path: Path) -> ProjectConfig:
    """Load and validate aleo-config.yaml."""
    if not path.exists():
        raise ConfigurationError(f"Project config not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Project config must be a mapping: {path}")

    try:
        config = ProjectConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid project config {path}: {e}") from e

    logger.debug("Loaded project config", path=str(path), networks=list(config.networks))
    return config
