"""Custom exceptions for Doko Runtime."""

from typing import Optional, Sequence


class DokoError(Exception):
    """Base exception for all runtime errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ConfigurationError(DokoError):
    """Configuration error."""
    pass


class ProjectNotFoundError(ConfigurationError):
    """No Aleo project root above the working directory."""
    pass


class CommandError(DokoError):
    """External command exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        code: Optional[str] = None,
    ):
        super().__init__(message, code)
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ToolNotFoundError(CommandError):
    """External binary is not installed or not on PATH."""
    pass


class CommandTimeoutError(CommandError):
    """External command did not finish in time."""
    pass


class OutputParseError(DokoError):
    """Command output or node payload could not be parsed."""
    pass


class NodeError(DokoError):
    """Node API communication error."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.status_code = status_code


class DeploymentCheckError(NodeError):
    """Deployment lookup failed for a reason other than a missing program."""
    pass


class BroadcastError(NodeError):
    """Transaction broadcast was rejected or failed."""
    pass


class AlreadyDeployedError(DokoError):
    """Program is already deployed on the target network."""
    pass


class DecryptionError(DokoError):
    """Private transition output could not be decrypted."""
    pass
