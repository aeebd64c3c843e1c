"""Program deployment through `snarkos developer deploy --dry-run`.

snarkos only builds the deployment transaction; broadcasting goes through
the node API so every network is reached the same way.
"""

from __future__ import annotations

import json
import shutil
import tempfile
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Union

import structlog

from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import AlreadyDeployedError, ConfigurationError
from doko_runtime.core.models import ContractConfig, DeployResponse
from doko_runtime.execution.parser import SnarkStdoutResponseParser
from doko_runtime.execution.process import execute
from doko_runtime.execution.run import node_client_for
from doko_runtime.network.client import NodeClient

logger = structlog.get_logger()

STAGING_PREFIX = "doko-imports-"


def make_project_for_deploy(
    program_id: str,
    aleo_code: str,
    imports_dir: Union[str, Path],
) -> Path:
    """Create a throwaway snarkos project holding one compiled program.

    Layout::

        program.json   manifest naming program_id
        main.aleo      aleo_code
        imports/       copy of imports_dir
    """
    project_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))

    manifest = {
        "program": program_id,
        "version": "0.0.0",
        "description": "",
        "license": "MIT",
    }
    try:
        (project_dir / "program.json").write_text(json.dumps(manifest), encoding="utf-8")
        (project_dir / "main.aleo").write_text(aleo_code, encoding="utf-8")
        shutil.copytree(imports_dir, project_dir / "imports")
    except BaseException:
        shutil.rmtree(project_dir, ignore_errors=True)
        raise

    logger.debug("Staged deploy project", program=program_id, path=str(project_dir))
    return project_dir


@contextmanager
def staged_deploy_project(
    program_id: str,
    aleo_code: str,
    imports_dir: Union[str, Path],
) -> Iterator[Path]:
    """make_project_for_deploy, removing the directory on exit."""
    project_dir = make_project_for_deploy(program_id, aleo_code, imports_dir)
    try:
        yield project_dir
    finally:
        shutil.rmtree(project_dir, ignore_errors=True)


def _format_fee(fee: float) -> str:
    """Plain decimal text for snarkos; whole amounts without a fraction."""
    text = format(Decimal(str(fee)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


async def _deploy_from(
    project_dir: Union[str, Path],
    config: ContractConfig,
    settings: Settings,
    node: NodeClient,
) -> DeployResponse:
    logger.info("Deploying program", program=config.program_id, network=node.network_name)

    cmd = [
        settings.snarkos_bin,
        "developer",
        "deploy",
        config.program_id,
        "--path",
        ".",
        "--priority-fee",
        _format_fee(config.priorityFee),
        "--private-key",
        config.privateKey,
        "--query",
        node.endpoint,
        "--network",
        str(config.network_id),
        "--dry-run",
    ]
    result = await execute(cmd, cwd=project_dir, timeout=settings.command_timeout_seconds)
    parsed = SnarkStdoutResponseParser().parse(result.stdout)

    await node.broadcast_transaction(parsed.transaction)
    logger.info("Deployment broadcast", program=config.program_id, transaction_id=parsed.transaction.get("id"))
    return DeployResponse(transaction=parsed.transaction, config=config)


async def snark_deploy(
    config: ContractConfig,
    settings: Optional[Settings] = None,
    client: Optional[NodeClient] = None,
) -> DeployResponse:
    """Deploy config's program and broadcast the deployment transaction.

    Leo projects deploy from ``<contractPath>/build``. Prebuilt ``.aleo``
    programs (``isImportedAleo``) are read from ``<contractPath>.aleo`` and
    staged in a temporary project whose imports are the sibling programs
    in the same directory.
    """
    settings = settings or Settings()
    contract_path = Path(config.require_contract_path())

    if not config.privateKey:
        raise ConfigurationError(f"privateKey missing in contract config for {config.program_id}")

    async with node_client_for(config, settings, client) as node:
        if await node.check_deployment(config.program_id):
            raise AlreadyDeployedError(f"Program {config.appName} is already deployed", code="ALREADY_DEPLOYED")

        if config.isImportedAleo:
            aleo_file = contract_path.with_name(contract_path.name + ".aleo")
            if not aleo_file.exists():
                raise ConfigurationError(f"Aleo program not found: {aleo_file}")
            aleo_code = aleo_file.read_text(encoding="utf-8")
            imports_dir = contract_path.parent

            with staged_deploy_project(config.program_id, aleo_code, imports_dir) as project_dir:
                return await _deploy_from(project_dir, config, settings, node)

        return await _deploy_from(contract_path / "build", config, settings, node)
