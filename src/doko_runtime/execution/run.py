"""Transition execution through leo and snarkos."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import structlog

from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import ConfigurationError
from doko_runtime.core.models import ContractConfig, ExecutionMode, ZkExecutionOutput
from doko_runtime.execution.decrypt import decrypt_output, load_decryptor
from doko_runtime.execution.parser import parse_cmd_output, parse_transaction_from_stdout
from doko_runtime.execution.process import execute
from doko_runtime.network.client import NodeClient

logger = structlog.get_logger()


@asynccontextmanager
async def node_client_for(
    config: ContractConfig,
    settings: Settings,
    client: Optional[NodeClient] = None,
) -> AsyncIterator[NodeClient]:
    """Yield client, or a temporary NodeClient for config's network."""
    if client is not None:
        yield client
        return

    endpoint = settings.node_endpoint or config.node_endpoint
    async with NodeClient(
        endpoint,
        config.networkName or settings.network_name,
        timeout=settings.request_timeout_seconds,
        poll_interval=settings.poll_interval_seconds,
        poll_timeout=settings.poll_timeout_seconds,
    ) as owned:
        yield owned


async def leo_run(
    config: ContractConfig,
    transition: str = "main",
    params: Sequence[str] = (),
    settings: Optional[Settings] = None,
) -> ZkExecutionOutput:
    """Evaluate a transition locally with `leo run`; no proof, no transaction."""
    settings = settings or Settings()
    cmd = [settings.leo_bin, "run", transition, *params]
    result = await execute(cmd, cwd=config.require_contract_path(), timeout=settings.command_timeout_seconds)
    logger.debug("leo run output", stdout=result.stdout)
    return parse_cmd_output(result.stdout)


async def leo_execute(
    config: ContractConfig,
    transition: str = "main",
    params: Sequence[str] = (),
    settings: Optional[Settings] = None,
) -> ZkExecutionOutput:
    """Execute a transition with `leo execute` and decode the transaction outputs."""
    settings = settings or Settings()
    cmd = [settings.leo_bin, "execute", transition, *params]
    result = await execute(cmd, cwd=config.require_contract_path(), timeout=settings.command_timeout_seconds)
    transaction = parse_cmd_output(result.stdout).transaction

    data = decrypt_output(
        transaction,
        transition,
        config.program_id,
        config.privateKey or "",
        load_decryptor(settings.decryptor),
    )
    return ZkExecutionOutput(data=data, transaction=transaction)


async def snark_execute(
    config: ContractConfig,
    transition: str = "main",
    params: Sequence[str] = (),
    settings: Optional[Settings] = None,
    client: Optional[NodeClient] = None,
) -> ZkExecutionOutput:
    """Build a transaction with `snarkos developer execute --dry-run` and broadcast it ourselves."""
    settings = settings or Settings()
    query_endpoint = settings.node_endpoint or config.node_endpoint
    if not config.privateKey:
        raise ConfigurationError(f"privateKey missing in contract config for {config.program_id}")

    cmd = [
        settings.snarkos_bin,
        "developer",
        "execute",
        config.program_id,
        transition,
        *params,
        "--private-key",
        config.privateKey,
        "--query",
        query_endpoint,
        "--dry-run",
    ]
    result = await execute(cmd, cwd=config.require_contract_path(), timeout=settings.command_timeout_seconds)
    transaction = parse_transaction_from_stdout(result.stdout)

    async with node_client_for(config, settings, client) as node:
        await node.broadcast_transaction(transaction)

    data = decrypt_output(
        transaction,
        transition,
        config.program_id,
        config.privateKey,
        load_decryptor(settings.decryptor),
    )
    return ZkExecutionOutput(data=data, transaction=transaction)


async def zk_run(
    config: ContractConfig,
    transition: str = "main",
    params: Sequence[str] = (),
    settings: Optional[Settings] = None,
    client: Optional[NodeClient] = None,
) -> ZkExecutionOutput:
    """Run a transition the way config.mode asks for."""
    if config.mode == ExecutionMode.EXECUTE:
        return await snark_execute(config, transition, params, settings, client)
    if config.mode == ExecutionMode.LEO_EXECUTE:
        return await leo_execute(config, transition, params, settings)
    return await leo_run(config, transition, params, settings)


async def zk_get_mapping(
    config: ContractConfig,
    mapping_name: str,
    key: str,
    settings: Optional[Settings] = None,
    client: Optional[NodeClient] = None,
) -> Any:
    """Read a mapping value of config's program from the node."""
    if not config.network and client is None:
        raise ConfigurationError("Network is not defined")
    settings = settings or Settings()
    async with node_client_for(config, settings, client) as node:
        return await node.get_mapping(config.program_id, mapping_name, key)


async def leo_get_contract_address(program_name: str, settings: Optional[Settings] = None) -> str:
    """Address of a program account, as printed by `leo account program`."""
    settings = settings or Settings()
    result = await execute(
        [settings.leo_bin, "account", "program", program_name],
        timeout=settings.command_timeout_seconds,
    )
    return result.stdout.strip()
