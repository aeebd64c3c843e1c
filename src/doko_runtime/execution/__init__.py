"""Running leo and snarkos and interpreting what they print."""

from .parser import (
    SnarkStdoutResponseParser,
    parse_cmd_output,
    parse_record_string,
    parse_transaction_from_stdout,
)
from .process import execute

__all__ = [
    "execute",
    "parse_record_string",
    "parse_cmd_output",
    "parse_transaction_from_stdout",
    "SnarkStdoutResponseParser",
]
