"""Core data models for Doko Runtime."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from doko_runtime.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from doko_runtime.network.client import NodeClient


class ExecutionMode(str, Enum):
    """How a transition is executed."""

    LEO_RUN = "leo_run"
    LEO_EXECUTE = "leo_execute"
    EXECUTE = "execute"


class NetworkConfig(BaseModel):
    """Node endpoint for a network."""

    endpoint: str = Field(..., description="Node base URL, e.g. http://localhost:3030")

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ContractConfig(BaseModel):
    """Everything needed to deploy or call one Aleo program."""

    privateKey: Optional[str] = None
    viewKey: Optional[str] = None
    appName: Optional[str] = None
    contractPath: Optional[str] = None
    fee: Optional[str] = None
    network: Optional[NetworkConfig] = None
    networkName: Optional[str] = None
    mode: ExecutionMode = ExecutionMode.LEO_RUN
    priorityFee: float = 0
    networkMode: Optional[int] = None
    isImportedAleo: bool = False

    @property
    def program_id(self) -> str:
        return f"{self.appName}.aleo"

    @property
    def network_id(self) -> int:
        """Numeric network passed to snarkos; mainnet is 0, everything else 1."""
        if self.networkMode:
            return self.networkMode
        return 0 if self.networkName == "mainnet" else 1

    @property
    def node_endpoint(self) -> str:
        if not self.network or not self.network.endpoint:
            raise ConfigurationError("networkName missing in contract config for deployment")
        return self.network.endpoint

    def require_contract_path(self) -> str:
        if not self.contractPath:
            raise ConfigurationError(f"contractPath missing in contract config for {self.program_id}")
        return self.contractPath


class ZkExecutionOutput(BaseModel):
    """Decoded outputs of a transition plus the transaction, when there is one."""

    data: Any = None
    transaction: Optional[Dict[str, Any]] = None


class CommandResult(BaseModel):
    """Captured result of an external command."""

    command: List[str]
    cwd: Optional[str] = None
    returncode: int
    stdout: str = ""
    stderr: str = ""


class DeployResponse(BaseModel):
    """Broadcast deployment transaction and the config that produced it."""

    transaction: Dict[str, Any]
    config: ContractConfig

    @property
    def transaction_id(self) -> Optional[str]:
        return self.transaction.get("id")

    async def wait(self, client: "NodeClient") -> Optional[Dict[str, Any]]:
        """Poll the node until the deployment is confirmed or polling times out."""
        return await client.wait_transaction(self.transaction)
