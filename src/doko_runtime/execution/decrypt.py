"""Decoding of transition outputs, including decryption of private ones.

Decryption itself is delegated to an external callable configured as
``module:function`` (``DOKO_DECRYPTOR``). It is called as::

    decrypt(ciphertext, program_id, function_name, output_index, private_key, tpk) -> str

and must return the plaintext Aleo value.
"""

from __future__ import annotations

import importlib
from typing import Any, Callable, Dict, List, Optional

import structlog

from doko_runtime.core.exceptions import ConfigurationError, DecryptionError
from doko_runtime.execution.parser import parse_record_string

logger = structlog.get_logger()

Decryptor = Callable[[str, str, str, int, str, str], str]


def load_decryptor(target: Optional[str]) -> Optional[Decryptor]:
    """Import the decryptor named by a ``module:function`` string."""
    if not target:
        return None

    if ":" not in target:
        raise ConfigurationError(f"Decryptor must be 'module:function', got: {target}")

    module_name, func_name = target.split(":", 1)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import decryptor module '{module_name}': {e}") from e

    func = getattr(module, func_name, None)
    if not callable(func):
        raise ConfigurationError(f"Decryptor '{target}' is not a callable")

    logger.debug("Loaded decryptor", decryptor=target)
    return func


def decrypt_output(
    transaction: Optional[Dict[str, Any]],
    transition_name: str,
    program_id: str,
    private_key: str,
    decryptor: Optional[Decryptor] = None,
) -> Optional[List[Any]]:
    """Decode the outputs of the transition_name call in transaction.

    Private outputs are decrypted, record outputs are kept as ciphertext and
    external records are reported as None.
    """
    if not transaction:
        return None
    transitions = (transaction.get("execution") or {}).get("transitions")
    if not transitions:
        return None

    transition = next(
        (
            t
            for t in transitions
            if t.get("function") == transition_name and t.get("program") == program_id
        ),
        None,
    )
    if transition is None:
        return None

    outputs = transition.get("outputs")
    if outputs is None:
        return None

    # Outputs are numbered after the inputs in the transition's register space
    offset = len(transition.get("inputs") or [])
    results: List[Any] = []
    for index, output in enumerate(outputs):
        output_type = output.get("type")
        value = output.get("value")

        if output_type == "external_record":
            results.append(None)
            continue

        if output_type == "private":
            if decryptor is None:
                raise DecryptionError(
                    f"Output {index} of {program_id}/{transition_name} is private and no decryptor is configured",
                    code="NO_DECRYPTOR",
                )
            try:
                value = decryptor(
                    value,
                    program_id,
                    transition_name,
                    offset + index,
                    private_key,
                    transition.get("tpk"),
                )
            except Exception as e:
                raise DecryptionError(
                    f"Failed to decrypt output {index} of {program_id}/{transition_name}: {e}"
                ) from e

        results.append(parse_record_string(value))

    return results
