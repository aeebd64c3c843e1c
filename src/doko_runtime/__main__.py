"""CLI entrypoints (doko deploy, doko run, doko mapping, ...)."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import DokoError
from doko_runtime.core.models import ExecutionMode
from doko_runtime.core.project_config import ProjectConfig, load_project_config
from doko_runtime.execution.deploy import snark_deploy
from doko_runtime.execution.run import leo_get_contract_address, node_client_for, zk_get_mapping, zk_run
from doko_runtime.network.client import NodeClient
from doko_runtime.utils.fs import get_project_root
from doko_runtime.utils.logging import bind_contract_context, setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="doko", description="Deploy and invoke Aleo programs")
    parser.add_argument("--config", help="Path to aleo-config.yaml (default: discovered project root)")
    parser.add_argument("--network", help="Network name from aleo-config.yaml")
    parser.add_argument("--log-level", help="Override DOKO_LOG_LEVEL")
    sub = parser.add_subparsers(dest="cmd", required=True)

    cmd_deploy = sub.add_parser("deploy", help="Deploy a program and broadcast the deployment")
    cmd_deploy.add_argument("app_name", help="Program name without the .aleo suffix")
    cmd_deploy.add_argument("--contract-path", required=True, help="Leo project dir, or .aleo file path without suffix")
    cmd_deploy.add_argument("--imported", action="store_true", help="contract-path points at a prebuilt .aleo program")
    cmd_deploy.add_argument("--wait", action="store_true", help="Wait for the deployment to be confirmed")

    cmd_run = sub.add_parser("run", help="Run a transition")
    cmd_run.add_argument("app_name")
    cmd_run.add_argument("transition")
    cmd_run.add_argument("params", nargs="*", help="Aleo literal inputs, e.g. 1u32")
    cmd_run.add_argument("--contract-path", required=True)
    cmd_run.add_argument("--mode", choices=[m.value for m in ExecutionMode], help="Override the configured mode")

    cmd_mapping = sub.add_parser("mapping", help="Read a mapping value from the node")
    cmd_mapping.add_argument("app_name")
    cmd_mapping.add_argument("mapping")
    cmd_mapping.add_argument("key")

    cmd_wait = sub.add_parser("wait", help="Wait for a transaction to be confirmed")
    cmd_wait.add_argument("transaction_id")

    cmd_address = sub.add_parser("address", help="Print the address of a program account")
    cmd_address.add_argument("program")

    cmd_serve = sub.add_parser("serve", help="Serve the HTTP API")
    cmd_serve.add_argument("--host")
    cmd_serve.add_argument("--port", type=int)

    sub.add_parser("root", help="Print the project root directory")

    return parser


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, default=str))


def _load_project(args: argparse.Namespace, settings: Settings) -> tuple[Path, ProjectConfig]:
    if args.config:
        config_path = Path(args.config).resolve()
        return config_path.parent, load_project_config(config_path)
    root = get_project_root()
    return root, load_project_config(root / settings.config_file)


def _resolve_path(root: Path, contract_path: str) -> str:
    path = Path(contract_path)
    return str(path if path.is_absolute() else root / path)


async def _dispatch(args: argparse.Namespace, settings: Settings) -> Optional[int]:
    if args.cmd == "address":
        print(await leo_get_contract_address(args.program, settings))
        return 0

    if args.cmd == "root":
        print(get_project_root())
        return 0

    root, project = _load_project(args, settings)

    if args.cmd == "deploy":
        config = project.contract_config(
            args.app_name, _resolve_path(root, args.contract_path), args.network, is_imported_aleo=args.imported
        )
        bind_contract_context(app_name=config.appName, network=config.networkName)
        async with node_client_for(config, settings) as node:
            response = await snark_deploy(config, settings, node)
            result: dict = {"program": config.program_id, "transactionId": response.transaction_id}
            if args.wait:
                confirmed = await response.wait(node)
                result["confirmed"] = confirmed is not None and not confirmed.get("error")
        _print_json(result)
        return 0

    if args.cmd == "run":
        mode = ExecutionMode(args.mode) if args.mode else None
        config = project.contract_config(
            args.app_name, _resolve_path(root, args.contract_path), args.network, mode=mode
        )
        bind_contract_context(app_name=config.appName, network=config.networkName)
        output = await zk_run(config, args.transition, args.params, settings)
        _print_json(output.model_dump())
        return 0

    if args.cmd == "mapping":
        config = project.contract_config(args.app_name, str(root), args.network)
        _print_json(await zk_get_mapping(config, args.mapping, args.key, settings))
        return 0

    if args.cmd == "wait":
        network_name, entry = project.resolve_network(args.network)
        async with NodeClient(
            settings.node_endpoint or entry.endpoint,
            network_name,
            timeout=settings.request_timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
            poll_timeout=settings.poll_timeout_seconds,
        ) as node:
            data = await node.validate_broadcast(args.transaction_id)
        if data is None:
            print(f"Transaction {args.transaction_id} not confirmed in time", file=sys.stderr)
            return 1
        _print_json(data)
        return 0

    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.cmd == "serve":
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
    settings = Settings(**overrides)
    setup_logging(settings.log_level, settings.log_format)

    if args.cmd == "serve":
        from doko_runtime.main import run

        run(settings)
        return 0

    try:
        code = asyncio.run(_dispatch(args, settings))
    except DokoError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if code is None:
        parser.print_help()
        return 2
    return code


if __name__ == "__main__":
    sys.exit(main())
