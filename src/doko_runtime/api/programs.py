"""Deploy, run and query endpoints for the programs of the current project."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from doko_runtime.core.config import Settings
from doko_runtime.core.models import ContractConfig, ExecutionMode, ZkExecutionOutput
from doko_runtime.core.project_config import ProjectConfig
from doko_runtime.execution.deploy import snark_deploy
from doko_runtime.execution.run import zk_get_mapping, zk_run
from doko_runtime.network.client import NodeClient
from doko_runtime.utils.logging import bind_contract_context

router = APIRouter()
logger = structlog.get_logger()


class DeployRequest(BaseModel):
    appName: str
    contractPath: str
    network: Optional[str] = None
    isImportedAleo: bool = False


class DeployAccepted(BaseModel):
    program: str
    transactionId: Optional[str] = None
    transaction: Dict[str, Any]


class RunRequest(BaseModel):
    appName: str
    contractPath: str
    transition: str = "main"
    params: List[str] = Field(default_factory=list)
    mode: Optional[ExecutionMode] = None
    network: Optional[str] = None


def _settings(req: Request) -> Settings:
    return req.app.state.settings


def _project(req: Request) -> ProjectConfig:
    project = getattr(req.app.state, "project_config", None)
    if project is None:
        raise HTTPException(status_code=503, detail="No aleo-config.yaml loaded")
    return project


def _contract_config(
    req: Request,
    app_name: str,
    contract_path: str,
    network: Optional[str],
    *,
    is_imported_aleo: bool = False,
    mode: Optional[ExecutionMode] = None,
) -> ContractConfig:
    root: Optional[Path] = getattr(req.app.state, "project_root", None)
    path = Path(contract_path)
    if root is not None and not path.is_absolute():
        path = root / path

    config = _project(req).contract_config(
        app_name,
        str(path),
        network,
        is_imported_aleo=is_imported_aleo,
        mode=mode,
    )
    bind_contract_context(app_name=app_name, network=config.networkName)
    return config


@router.post("/deploy", response_model=DeployAccepted, status_code=202)
async def deploy_endpoint(payload: DeployRequest, req: Request) -> DeployAccepted:
    config = _contract_config(
        req, payload.appName, payload.contractPath, payload.network, is_imported_aleo=payload.isImportedAleo
    )
    response = await snark_deploy(config, _settings(req))
    return DeployAccepted(
        program=config.program_id,
        transactionId=response.transaction_id,
        transaction=response.transaction,
    )


@router.post("/run", response_model=ZkExecutionOutput)
async def run_endpoint(payload: RunRequest, req: Request) -> ZkExecutionOutput:
    config = _contract_config(req, payload.appName, payload.contractPath, payload.network, mode=payload.mode)
    return await zk_run(config, payload.transition, payload.params, _settings(req))


@router.get("/mapping/{app_name}/{mapping_name}/{key}")
async def mapping_endpoint(
    app_name: str,
    mapping_name: str,
    key: str,
    req: Request,
    network: Optional[str] = None,
) -> Dict[str, Any]:
    config = _contract_config(req, app_name, ".", network)
    value = await zk_get_mapping(config, mapping_name, key, _settings(req))
    return {"program": config.program_id, "mapping": mapping_name, "key": key, "value": value}


@router.get("/transactions/{transaction_id}")
async def transaction_endpoint(transaction_id: str, req: Request, network: Optional[str] = None) -> Dict[str, Any]:
    settings = _settings(req)
    network_name, entry = _project(req).resolve_network(network)
    async with NodeClient(
        settings.node_endpoint or entry.endpoint,
        network_name,
        timeout=settings.request_timeout_seconds,
        poll_interval=settings.poll_interval_seconds,
        poll_timeout=settings.poll_timeout_seconds,
    ) as node:
        data = await node.validate_broadcast(transaction_id)
    if data is None:
        raise HTTPException(status_code=504, detail=f"Transaction {transaction_id} not confirmed in time")
    return data
