"""Tests for program deployment."""

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import AlreadyDeployedError, ConfigurationError
from doko_runtime.execution.deploy import _format_fee, make_project_for_deploy, snark_deploy, staged_deploy_project
from samples import DEPLOY_TRANSACTION, SNARKOS_DEPLOY, command_result


@pytest.fixture
def imports_dir(tmp_path: Path) -> Path:
    programs = tmp_path / "programs"
    programs.mkdir()
    (programs / "credits_helper.aleo").write_text("program credits_helper.aleo;\n")
    (programs / "token.aleo").write_text("import credits_helper.aleo;\nprogram token.aleo;\n")
    return programs


@pytest.fixture
def node():
    client = MagicMock()
    client.endpoint = "http://localhost:3030"
    client.network_name = "testnet"
    client.check_deployment = AsyncMock(return_value=False)
    client.broadcast_transaction = AsyncMock(return_value=DEPLOY_TRANSACTION["id"])
    return client


def test_make_project_for_deploy(imports_dir: Path):
    project = make_project_for_deploy("token.aleo", "program token.aleo;", imports_dir)
    try:
        assert project.name.startswith("doko-imports-")
        manifest = json.loads((project / "program.json").read_text())
        assert manifest == {"program": "token.aleo", "version": "0.0.0", "description": "", "license": "MIT"}
        assert (project / "main.aleo").read_text() == "program token.aleo;"
        assert (project / "imports" / "credits_helper.aleo").exists()
    finally:
        shutil.rmtree(project)


def test_staged_deploy_project_cleans_up(imports_dir: Path):
    with staged_deploy_project("token.aleo", "program token.aleo;", imports_dir) as project:
        assert project.exists()
    assert not project.exists()


def test_staged_deploy_project_cleans_up_failed_copy(imports_dir: Path, tmp_path: Path, monkeypatch):
    stage = tmp_path / "stage"
    stage.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(stage))
    (imports_dir / "stale.aleo").symlink_to(tmp_path / "gone.aleo")

    with pytest.raises(shutil.Error):
        with staged_deploy_project("token.aleo", "program token.aleo;", imports_dir):
            pass

    assert list(stage.iterdir()) == []


@pytest.mark.parametrize(
    "fee,expected",
    [(0, "0"), (3, "3"), (2.0, "2"), (0.5, "0.5"), (0.00001, "0.00001"), (1000000.0, "1000000")],
)
def test_format_fee_is_plain_decimal(fee, expected):
    assert _format_fee(fee) == expected


@pytest.mark.asyncio
async def test_snark_deploy_from_build_dir(contract_config, node):
    config = contract_config.model_copy(update={"priorityFee": 0.5})
    with patch("doko_runtime.execution.deploy.execute", new=AsyncMock(return_value=command_result(SNARKOS_DEPLOY))) as mock_exec:
        response = await snark_deploy(config, Settings(), client=node)

    args, kwargs = mock_exec.call_args
    assert args[0] == [
        "snarkos", "developer", "deploy", "token.aleo",
        "--path", ".",
        "--priority-fee", "0.5",
        "--private-key", "APrivateKey1zkpTestKey",
        "--query", "http://localhost:3030",
        "--network", "1",
        "--dry-run",
    ]
    assert Path(kwargs["cwd"]) == Path(contract_config.contractPath) / "build"
    node.check_deployment.assert_awaited_once_with("token.aleo")
    node.broadcast_transaction.assert_awaited_once_with(DEPLOY_TRANSACTION)
    assert response.transaction == DEPLOY_TRANSACTION
    assert response.transaction_id == "at1deploy"


@pytest.mark.asyncio
async def test_snark_deploy_mainnet_network_id(contract_config, node):
    config = contract_config.model_copy(update={"networkName": "mainnet"})
    with patch("doko_runtime.execution.deploy.execute", new=AsyncMock(return_value=command_result(SNARKOS_DEPLOY))) as mock_exec:
        await snark_deploy(config, Settings(), client=node)

    cmd = mock_exec.call_args[0][0]
    assert cmd[cmd.index("--network") + 1] == "0"


@pytest.mark.asyncio
async def test_snark_deploy_already_deployed(contract_config, node):
    node.check_deployment = AsyncMock(return_value=True)
    with patch("doko_runtime.execution.deploy.execute", new=AsyncMock()) as mock_exec:
        with pytest.raises(AlreadyDeployedError, match="token is already deployed"):
            await snark_deploy(contract_config, Settings(), client=node)
    mock_exec.assert_not_awaited()
    node.broadcast_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_snark_deploy_imported_aleo(contract_config, imports_dir, node):
    config = contract_config.model_copy(
        update={"contractPath": str(imports_dir / "token"), "isImportedAleo": True}
    )
    staged = {}

    async def fake_execute(cmd, cwd=None, env=None, timeout=None):
        project = Path(cwd)
        staged["main"] = (project / "main.aleo").read_text()
        staged["imports"] = sorted(p.name for p in (project / "imports").iterdir())
        staged["cwd"] = project
        return command_result(SNARKOS_DEPLOY)

    with patch("doko_runtime.execution.deploy.execute", new=fake_execute):
        response = await snark_deploy(config, Settings(), client=node)

    assert staged["main"] == "import credits_helper.aleo;\nprogram token.aleo;\n"
    assert staged["imports"] == ["credits_helper.aleo", "token.aleo"]
    assert not staged["cwd"].exists()
    assert response.transaction_id == "at1deploy"


@pytest.mark.asyncio
async def test_snark_deploy_imported_aleo_missing_file(contract_config, tmp_path, node):
    config = contract_config.model_copy(
        update={"contractPath": str(tmp_path / "nowhere" / "token"), "isImportedAleo": True}
    )
    with pytest.raises(ConfigurationError, match="Aleo program not found"):
        await snark_deploy(config, Settings(), client=node)


@pytest.mark.asyncio
async def test_deploy_response_wait(contract_config, node):
    node.wait_transaction = AsyncMock(return_value={"id": "at1deploy", "deployment": {}})
    with patch("doko_runtime.execution.deploy.execute", new=AsyncMock(return_value=command_result(SNARKOS_DEPLOY))):
        response = await snark_deploy(contract_config, Settings(), client=node)

    confirmed = await response.wait(node)
    assert confirmed["id"] == "at1deploy"
    node.wait_transaction.assert_awaited_once_with(DEPLOY_TRANSACTION)
