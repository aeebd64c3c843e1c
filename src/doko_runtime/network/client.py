"""Async client for the Aleo node REST API."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
import structlog

from doko_runtime.core.exceptions import (
    BroadcastError,
    DeploymentCheckError,
    NodeError,
    OutputParseError,
)
from doko_runtime.execution.parser import parse_record_string
from doko_runtime.utils.metrics import NODE_REQUESTS_TOTAL

logger = structlog.get_logger()

MISSING_PROGRAM_MARKER = "Missing program for ID"


class NodeClient:
    """Talks to one network of an Aleo node.

    All URLs are ``{endpoint}/{network_name}/...``. Use as an async context
    manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        endpoint: str,
        network_name: str,
        *,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        poll_timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.network_name = network_name
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @property
    def base_url(self) -> str:
        return f"{self.endpoint}/{self.network_name}"

    async def __aenter__(self) -> "NodeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, url: str, operation: str) -> Any:
        """GET url and decode JSON, raising NodeError on any failure."""
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            NODE_REQUESTS_TOTAL.labels(operation=operation, status="transport_error").inc()
            raise NodeError(f"{operation} request failed: {e}") from e

        if response.is_error:
            NODE_REQUESTS_TOTAL.labels(operation=operation, status=str(response.status_code)).inc()
            raise NodeError(
                f"{operation} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        NODE_REQUESTS_TOTAL.labels(operation=operation, status=str(response.status_code)).inc()
        try:
            return response.json()
        except ValueError as e:
            raise NodeError(f"{operation} returned invalid JSON: {response.text[:200]}") from e

    async def get_mapping(self, program_id: str, mapping_name: str, key: str) -> Any:
        """Read one mapping value; None when the key is absent or the read fails."""
        url = f"{self.base_url}/program/{program_id}/mapping/{mapping_name}/{key}"
        logger.info("Querying mapping", url=url)
        try:
            data = await self._get_json(url, "mapping")
            if data is None:
                return None
            if isinstance(data, str):
                return parse_record_string(data)
            return data
        except (NodeError, OutputParseError) as e:
            logger.warning("Mapping query failed", url=url, error=str(e))
            return None

    async def check_deployment(self, program_id: str) -> bool:
        """Whether program_id is already deployed on this network."""
        url = f"{self.base_url}/program/{program_id}"
        logger.info("Checking deployment", url=url)
        try:
            await self._get_json(url, "program")
            return True
        except NodeError as e:
            if MISSING_PROGRAM_MARKER in str(e):
                logger.info("Deployment not found", program=program_id)
                return False
            logger.error("Deployment check failed", program=program_id, error=str(e))
            raise DeploymentCheckError(
                f"Failed to deploy program: {e}", status_code=e.status_code
            ) from e

    async def broadcast_transaction(self, transaction: Dict[str, Any]) -> Any:
        """Submit a transaction to the node's mempool."""
        url = f"{self.base_url}/transaction/broadcast"
        logger.info("Broadcasting transaction", url=url, transaction_id=transaction.get("id"))
        try:
            response = await self._client.post(url, json=transaction)
        except httpx.HTTPError as e:
            NODE_REQUESTS_TOTAL.labels(operation="broadcast", status="transport_error").inc()
            raise BroadcastError(f"Broadcast request failed: {e}") from e

        NODE_REQUESTS_TOTAL.labels(operation="broadcast", status=str(response.status_code)).inc()
        if response.is_error:
            raise BroadcastError(
                f"Broadcast rejected with {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return response.text

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/transaction/{transaction_id}"
        return await self._get_json(url, "transaction")

    async def validate_broadcast(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """Poll until the node knows the transaction or poll_timeout elapses.

        Returns the first transaction the node reports. A transaction with
        neither an execution nor a deployment is flagged with ``error=True``.
        Returns None on timeout.
        """
        url = f"{self.base_url}/transaction/{transaction_id}"
        start = time.monotonic()

        logger.info("Validating transaction", url=url)
        while time.monotonic() - start < self.poll_timeout:
            try:
                data = await self.get_transaction(transaction_id)
            except NodeError as e:
                logger.debug("Retrying", error=str(e))
                await asyncio.sleep(self.poll_interval)
                continue

            if not isinstance(data, dict) or not (data.get("execution") or data.get("deployment")):
                logger.error("Transaction error", transaction_id=transaction_id)
                if isinstance(data, dict):
                    data["error"] = True
            return data

        logger.warning("Timeout", transaction_id=transaction_id, timeout_seconds=self.poll_timeout)
        return None

    async def wait_transaction(self, transaction: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """validate_broadcast for a transaction dict; None if it has no id."""
        transaction_id = transaction.get("id") if transaction else None
        if transaction_id:
            return await self.validate_broadcast(transaction_id)
        return None
