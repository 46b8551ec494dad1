"""
Parameter fingerprinting for the request tier.

A fingerprint is the SHA-256 of a canonical serialization of a call's
parameters: dict keys are sorted at every depth, so structurally equal
parameters always produce the same request-tier key.

Values are normalized before serializing so that equal Python values agree:
integral floats become ints (``1.0`` and ``1`` share a fingerprint) and ints
outside orjson's 64-bit range are written as decimal strings.
"""

from __future__ import annotations

import hashlib
from typing import Any

import orjson

from normcache.exceptions import FingerprintError

_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS

_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1


def _normalize(value: Any) -> Any:
    """Rewrite params into values orjson encodes the same way when equal."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return value if _INT_MIN <= value <= _INT_MAX else str(value)
    if isinstance(value, dict):
        return {_normalize(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        # Order-independent: sort members by their own canonical encoding
        return sorted((_normalize(item) for item in value), key=_encode)
    return value


def _encode(value: Any) -> bytes:
    return orjson.dumps(value, option=_OPTIONS)


def canonical(params: Any) -> bytes:
    """Serialize params deterministically.

    ``None`` (no parameters at all) serializes to the empty byte string.

    Raises:
        FingerprintError: If params contain a value that cannot be serialized.
    """
    if params is None:
        return b""
    try:
        return _encode(_normalize(params))
    except TypeError as e:
        raise FingerprintError(
            "Cannot fingerprint call parameters",
            context={"error": str(e)},
        ) from e


def fingerprint(params: Any) -> str:
    """Compute the request-tier key for a parameter value.

    Args:
        params: Call parameters, usually the positional argument list.

    Returns:
        64-character hex digest.
    """
    return hashlib.sha256(canonical(params)).hexdigest()
