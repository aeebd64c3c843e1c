"""Parsers for the text printed by leo and snarkos.

Neither tool has a machine-readable output mode for the commands used here,
so results are recovered from their human-readable stdout. Aleo values are
printed in a JSON-like notation with bare identifiers and typed literals::

    {
      owner: aleo1qx...private,
      amount: 10u64.private,
      _nonce: 123...group.public
    }

``parse_record_string`` quotes every token so the text becomes JSON.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

import structlog

from doko_runtime.core.exceptions import OutputParseError
from doko_runtime.core.models import ZkExecutionOutput

logger = structlog.get_logger()

_TOKEN_RE = re.compile(r"(['\"])?([a-z0-9A-Z_.]+)(['\"])?")
_TRANSACTION_RE = re.compile(r"\{([^)]+)\}")

OUTPUT_BULLET = "•"


def parse_record_string(record_string: str) -> Any:
    """Convert an Aleo JSON-like value into Python data.

    Every identifier or literal, quoted or not, becomes a JSON string, so
    ``{ a: 1u8 }`` turns into ``{"a": "1u8"}`` and a bare ``5u32`` into
    ``"5u32"``.
    """
    json_text = _TOKEN_RE.sub(r'"\2" ', record_string)
    try:
        return json.loads(json_text)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"Could not parse Aleo value: {record_string.strip()[:200]}") from e


def _load_transaction(block: str) -> Dict[str, Any]:
    try:
        return json.loads(block)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"Could not parse transaction block: {block.strip()[:200]}") from e


def parse_cmd_output(cmd_output: str) -> ZkExecutionOutput:
    """Split `leo run` / `leo execute` stdout into outputs and transaction.

    After the ``Outputs`` (or ``Output``) marker the text consists of
    blank-line separated blocks: the bulleted outputs, the transaction JSON
    when the command produced one, and a trailing status line.
    """
    res = ZkExecutionOutput()

    parts = cmd_output.split("Outputs")
    if len(parts) < 2 or not parts[1]:
        parts = cmd_output.split("Output")
        if len(parts) < 2 or not parts[1]:
            # No output section: transaction (if any) follows three header blocks
            blocks = cmd_output.split("\n\n")[3:]
            if blocks:
                blocks.pop()
            if blocks:
                res.transaction = _load_transaction(blocks[0])
            return res

    str_after_output = parts[1]

    blocks: List[str] = [b for b in str_after_output.split("\n\n") if b.strip()]
    # Last block is the command status line
    if blocks:
        blocks.pop()

    if blocks:
        outputs = [line for line in blocks.pop(0).split(OUTPUT_BULLET) if line.strip()]
        res.data = [parse_record_string(output) for output in outputs]

    if blocks:
        res.transaction = _load_transaction(blocks.pop(0))

    return res


def parse_transaction_from_stdout(stdout: str) -> Dict[str, Any]:
    """Pull the transaction JSON object out of snarkos stdout."""
    match = _TRANSACTION_RE.search(stdout)
    if not match:
        raise OutputParseError("No transaction found in command output")
    return _load_transaction(match.group(0))


class SnarkStdoutResponseParser:
    """Parses `snarkos developer deploy --dry-run` output."""

    def parse(self, stdout: str) -> ZkExecutionOutput:
        transaction = parse_transaction_from_stdout(stdout)
        logger.debug("Parsed snarkos transaction", transaction_id=transaction.get("id"), type=transaction.get("type"))
        return ZkExecutionOutput(transaction=transaction)
