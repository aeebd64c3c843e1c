"""Async wrapper around external command execution."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import structlog

from doko_runtime.core.exceptions import CommandError, CommandTimeoutError, ToolNotFoundError
from doko_runtime.core.models import CommandResult
from doko_runtime.utils.metrics import COMMAND_DURATION, COMMANDS_TOTAL

logger = structlog.get_logger()

# Flags whose following argument must never reach the logs
SECRET_FLAGS = {"--private-key", "--view-key"}


def redact_command(cmd: Sequence[str]) -> List[str]:
    """Copy of cmd with the values of secret flags masked."""
    redacted: List[str] = []
    hide_next = False
    for arg in cmd:
        if hide_next:
            redacted.append("[REDACTED]")
            hide_next = False
            continue
        if "=" in arg and arg.split("=", 1)[0] in SECRET_FLAGS:
            redacted.append(arg.split("=", 1)[0] + "=[REDACTED]")
            continue
        redacted.append(arg)
        hide_next = arg in SECRET_FLAGS
    return redacted


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await asyncio.shield(process.wait())


async def execute(
    cmd: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run cmd without a shell and capture its full output.

    Args:
        cmd: Program and arguments
        cwd: Working directory for the child process
        env: Extra environment variables layered over the current environment
        timeout: Seconds before the child is killed; None waits forever

    Raises:
        ToolNotFoundError: The executable does not exist
        CommandTimeoutError: The command ran longer than timeout
        CommandError: The command exited with a non-zero status
    """
    argv = [str(arg) for arg in cmd]
    tool = Path(argv[0]).name
    shown = redact_command(argv)
    workdir = str(cwd) if cwd is not None else None

    child_env = {**os.environ, **env} if env else None

    logger.info("Running command", command=" ".join(shown), cwd=workdir)
    start = time.time()

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=workdir,
            env=child_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        COMMANDS_TOTAL.labels(tool=tool, status="not_found").inc()
        raise ToolNotFoundError(
            f"Command not found: {argv[0]}", command=shown, code="TOOL_NOT_FOUND"
        ) from e

    try:
        stdout_b, stderr_b = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Command timed out, killing", pid=process.pid, timeout=timeout)
        await _kill(process)
        COMMANDS_TOTAL.labels(tool=tool, status="timeout").inc()
        raise CommandTimeoutError(
            f"Command timed out after {timeout}s: {' '.join(shown)}",
            command=shown,
            code="COMMAND_TIMEOUT",
        ) from e
    except BaseException:
        # Cancelled by the caller; the child must not outlive the task
        logger.warning("Command interrupted, killing", pid=process.pid)
        await _kill(process)
        COMMANDS_TOTAL.labels(tool=tool, status="cancelled").inc()
        raise

    duration = time.time() - start
    COMMAND_DURATION.labels(tool=tool).observe(duration)

    stdout = stdout_b.decode("utf-8", errors="replace")
    stderr = stderr_b.decode("utf-8", errors="replace")
    returncode = process.returncode if process.returncode is not None else -1

    if returncode != 0:
        COMMANDS_TOTAL.labels(tool=tool, status="error").inc()
        logger.error(
            "Command failed",
            command=" ".join(shown),
            pid=process.pid,
            exit_code=returncode,
            duration_seconds=duration,
            stderr=stderr.strip()[-2000:],
        )
        raise CommandError(
            f"Command exited with status {returncode}: {' '.join(shown)}",
            command=shown,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            code="COMMAND_FAILED",
        )

    COMMANDS_TOTAL.labels(tool=tool, status="ok").inc()
    logger.info(
        "Command finished",
        pid=process.pid,
        exit_code=returncode,
        duration_seconds=duration,
    )
    return CommandResult(command=shown, cwd=workdir, returncode=returncode, stdout=stdout, stderr=stderr)
