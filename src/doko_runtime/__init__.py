"""Doko Runtime - deploy and invoke Aleo programs through snarkos and leo."""

__version__ = "0.1.0"
__author__ = "Doko Core Team"

from doko_runtime.core.config import Settings
from doko_runtime.core.models import ContractConfig, ZkExecutionOutput

__all__ = ["Settings", "ContractConfig", "ZkExecutionOutput", "__version__"]
