"""Tests for the HTTP API."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from doko_runtime.api.middleware import status_for
from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import AlreadyDeployedError, CommandError, ConfigurationError, DokoError
from doko_runtime.core.models import DeployResponse, ExecutionMode, ZkExecutionOutput
from doko_runtime.core.project_config import load_project_config
from doko_runtime.main import create_app
from samples import DEPLOY_TRANSACTION, TRANSACTION


@pytest.fixture
def client(project_dir: Path):
    settings = Settings(metrics_enabled=True, log_format="console")
    app = create_app(
        settings,
        project_config=load_project_config(project_dir / "aleo-config.yaml"),
        project_root=project_dir,
    )
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert "X-Request-ID" in r.headers


def test_deploy(client: TestClient, project_dir: Path):
    async def fake_deploy(config, settings=None, client=None):
        assert config.contractPath == str(project_dir / "programs" / "token")
        assert config.networkName == "testnet"
        return DeployResponse(transaction=DEPLOY_TRANSACTION, config=config)

    with patch("doko_runtime.api.programs.snark_deploy", new=fake_deploy):
        r = client.post("/deploy", json={"appName": "token", "contractPath": "programs/token"})

    assert r.status_code == 202, r.text
    assert r.json()["program"] == "token.aleo"
    assert r.json()["transactionId"] == "at1deploy"


def test_deploy_already_deployed_is_conflict(client: TestClient):
    error = AlreadyDeployedError("Program token is already deployed", code="ALREADY_DEPLOYED")
    with patch("doko_runtime.api.programs.snark_deploy", new=AsyncMock(side_effect=error)):
        r = client.post("/deploy", json={"appName": "token", "contractPath": "programs/token"})

    assert r.status_code == 409
    assert r.json()["error"] == "AlreadyDeployedError"
    assert r.json()["code"] == "ALREADY_DEPLOYED"


def test_deploy_unknown_network_is_bad_request(client: TestClient):
    r = client.post("/deploy", json={"appName": "token", "contractPath": "programs/token", "network": "devnet"})
    assert r.status_code == 400


def test_run(client: TestClient):
    with patch(
        "doko_runtime.api.programs.zk_run",
        new=AsyncMock(return_value=ZkExecutionOutput(data=["3u32"], transaction=TRANSACTION)),
    ) as mock_run:
        r = client.post(
            "/run",
            json={"appName": "token", "contractPath": "programs/token", "transition": "mint", "params": ["1u32"], "mode": "leo_run"},
        )

    assert r.status_code == 200, r.text
    assert r.json()["data"] == ["3u32"]
    config, transition, params, _settings = mock_run.call_args[0]
    assert config.mode == ExecutionMode.LEO_RUN
    assert transition == "mint"
    assert params == ["1u32"]


def test_run_command_failure_is_bad_gateway(client: TestClient):
    error = CommandError("leo failed", command=["leo", "run"], returncode=1, stderr="Error [ECLI0377002]")
    with patch("doko_runtime.api.programs.zk_run", new=AsyncMock(side_effect=error)):
        r = client.post("/run", json={"appName": "token", "contractPath": "programs/token"})

    assert r.status_code == 502
    assert "ECLI0377002" in r.json()["stderr"]


def test_mapping(client: TestClient):
    with patch("doko_runtime.api.programs.zk_get_mapping", new=AsyncMock(return_value="100u64")) as mock_get:
        r = client.get("/mapping/token/balances/aleo1owner")

    assert r.status_code == 200
    assert r.json() == {"program": "token.aleo", "mapping": "balances", "key": "aleo1owner", "value": "100u64"}
    assert mock_get.call_args[0][1:3] == ("balances", "aleo1owner")


def test_transaction_confirmed(client: TestClient):
    with patch(
        "doko_runtime.api.programs.NodeClient.validate_broadcast",
        new=AsyncMock(return_value=TRANSACTION),
    ):
        r = client.get(f"/transactions/{TRANSACTION['id']}")
    assert r.status_code == 200
    assert r.json()["id"] == TRANSACTION["id"]


def test_transaction_timeout(client: TestClient):
    with patch("doko_runtime.api.programs.NodeClient.validate_broadcast", new=AsyncMock(return_value=None)):
        r = client.get("/transactions/at1never")
    assert r.status_code == 504


def test_metrics_endpoint(client: TestClient):
    client.get("/health")
    r = client.get("/metrics/")
    assert r.status_code == 200
    assert "doko_http_requests_total" in r.text


def test_no_project_config(tmp_path: Path):
    app = create_app(Settings(), project_config=None, project_root=None)
    app.state.project_root = None
    with TestClient(app) as test_client:
        r = test_client.get("/mapping/token/balances/aleo1owner")
    assert r.status_code == 503
    assert r.json()["detail"] == "No aleo-config.yaml loaded"


def test_request_id_is_echoed(client: TestClient):
    r = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert r.headers["X-Request-ID"] == "req-42"


def test_metrics_use_route_template(client: TestClient):
    with patch("doko_runtime.api.programs.zk_get_mapping", new=AsyncMock(return_value=None)):
        client.get("/mapping/token/balances/aleo1secretowner")
    r = client.get("/metrics/")
    assert 'endpoint="/mapping/{app_name}/{mapping_name}/{key}"' in r.text
    assert "aleo1secretowner" not in r.text


@pytest.mark.parametrize(
    "exc,status",
    [
        (AlreadyDeployedError("deployed"), 409),
        (ConfigurationError("bad"), 400),
        (CommandError("failed"), 502),
        (DokoError("other"), 500),
    ],
)
def test_status_for(exc, status):
    assert status_for(exc) == status
