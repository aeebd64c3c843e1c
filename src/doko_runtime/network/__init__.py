"""Aleo node HTTP API access."""

from .client import NodeClient

__all__ = ["NodeClient"]
