"""Canonical ID generation and validation for events, monitor handles, and findings."""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Callable
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_RANDOM_BYTES: Final[int] = 10
ULID_MAX_TIMESTAMP_MS: Final[int] = (1 << 48) - 1
_ULID_MAX_VALUE: Final[int] = (1 << 128) - 1
_PREFIX_SEPARATOR: Final[str] = "-"

EVENT_ID_PREFIX: Final[str] = "evt"
MONITOR_ID_PREFIX: Final[str] = "mon"
UNKEYED_FINDING_PREFIX: Final[str] = "finding"
FINDING_DIGEST_LENGTH: Final[int] = 12

_FINDING_ID_RE: Final[re.Pattern[str]] = re.compile(
    rf"^([a-z][a-z0-9_]*){_PREFIX_SEPARATOR}([0-9a-f]{{{FINDING_DIGEST_LENGTH}}})$"
)
_RULE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9_]*$")

_DECODE_TABLE: Final[dict[str, int]] = {
    char: index for index, char in enumerate(CROCKFORD_BASE32_ALPHABET)
}

_RandBytes = Callable[[int], bytes]

__all__ = [
    "CROCKFORD_BASE32_ALPHABET",
    "EVENT_ID_PREFIX",
    "FINDING_DIGEST_LENGTH",
    "MONITOR_ID_PREFIX",
    "ULID_LENGTH",
    "UNKEYED_FINDING_PREFIX",
    "finding_id",
    "finding_id_rule",
    "generate_event_id",
    "generate_monitor_id",
    "generate_prefixed_id",
    "generate_ulid",
    "parse_ulid_timestamp_ms",
    "validate_event_id",
    "validate_monitor_id",
    "validate_prefixed_id",
    "validate_ulid",
]


def generate_ulid(
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate a ULID as a 26-character uppercase Crockford Base32 string."""
    ts_ms = _resolve_timestamp_ms(timestamp_ms)
    random_bytes = _resolve_random_bytes(randbytes)
    ulid_value = (ts_ms << 80) | int.from_bytes(random_bytes, "big")
    return _encode_crockford_base32(ulid_value, ULID_LENGTH)


def validate_ulid(s: str) -> None:
    """Validate a ULID and raise ``ValueError`` with precise context on failure."""
    _ = _decode_validated_ulid(s)


def parse_ulid_timestamp_ms(s: str) -> int:
    """Extract the 48-bit millisecond timestamp from a validated ULID."""
    return _decode_validated_ulid(s) >> 80


def generate_prefixed_id(
    prefix: str,
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate an ID in the form ``<prefix>-<ulid>``."""
    _validate_prefix(prefix)
    return f"{prefix}{_PREFIX_SEPARATOR}{generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)}"


def validate_prefixed_id(id_str: str, expected_prefix: str) -> None:
    """Validate ``<prefix>-<ulid>`` format and enforce ``expected_prefix``."""
    _validate_prefix(expected_prefix)
    if not isinstance(id_str, str):
        raise ValueError(f"prefixed id must be a string, got {type(id_str).__name__}")

    expected_lead = f"{expected_prefix}{_PREFIX_SEPARATOR}"
    if not id_str.startswith(expected_lead):
        raise ValueError(f"expected prefix '{expected_lead}'")

    try:
        validate_ulid(id_str[len(expected_lead) :])
    except ValueError as exc:
        raise ValueError(f"invalid ULID part for prefix '{expected_prefix}': {exc}") from exc


def generate_event_id(*, timestamp_ms: int | None = None, randbytes: _RandBytes | None = None) -> str:
    return generate_prefixed_id(EVENT_ID_PREFIX, timestamp_ms=timestamp_ms, randbytes=randbytes)


def validate_event_id(id_str: str) -> None:
    validate_prefixed_id(id_str, EVENT_ID_PREFIX)


def generate_monitor_id(*, timestamp_ms: int | None = None, randbytes: _RandBytes | None = None) -> str:
    return generate_prefixed_id(MONITOR_ID_PREFIX, timestamp_ms=timestamp_ms, randbytes=randbytes)


def validate_monitor_id(id_str: str) -> None:
    validate_prefixed_id(id_str, MONITOR_ID_PREFIX)


def finding_id(rule: str | None, digest: str) -> str:
    """Build the display id ``<rule>-<digest prefix>`` for a finding fingerprint.

    The id embeds the pattern key so downstream lookups can recover it without the
    finding object; it is deterministic for identical fingerprints.
    """
    prefix = rule if rule is not None and _RULE_RE.fullmatch(rule) else UNKEYED_FINDING_PREFIX
    short = digest[:FINDING_DIGEST_LENGTH].lower()
    if len(short) != FINDING_DIGEST_LENGTH:
        raise ValueError(f"digest must have at least {FINDING_DIGEST_LENGTH} characters")
    return f"{prefix}{_PREFIX_SEPARATOR}{short}"


def finding_id_rule(id_str: str) -> str | None:
    """Return the pattern key embedded in a finding id, or ``None``."""
    if not isinstance(id_str, str):
        return None
    match = _FINDING_ID_RE.fullmatch(id_str)
    if match is None or match.group(1) == UNKEYED_FINDING_PREFIX:
        return None
    return match.group(1)


def _resolve_timestamp_ms(timestamp_ms: int | None) -> int:
    resolved = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if not isinstance(resolved, int):
        raise ValueError(f"timestamp_ms must be an int, got {type(resolved).__name__}")
    if not 0 <= resolved <= ULID_MAX_TIMESTAMP_MS:
        raise ValueError(
            f"timestamp_ms out of range: expected 0..{ULID_MAX_TIMESTAMP_MS}, got {resolved}"
        )
    return resolved


def _resolve_random_bytes(randbytes: _RandBytes | None) -> bytes:
    provider = secrets.token_bytes if randbytes is None else randbytes
    raw = bytes(provider(ULID_RANDOM_BYTES))
    if len(raw) != ULID_RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {ULID_RANDOM_BYTES} bytes")
    return raw


def _decode_validated_ulid(value: str) -> int:
    if not isinstance(value, str):
        raise ValueError(f"ulid must be a string, got {type(value).__name__}")
    if len(value) != ULID_LENGTH:
        raise ValueError(f"ulid length must be {ULID_LENGTH}, got {len(value)}")

    decoded = 0
    for index, char in enumerate(value):
        digit = _DECODE_TABLE.get(char.upper())
        if digit is None:
            raise ValueError(f"invalid ULID character {char!r} at index {index}")
        decoded = (decoded << 5) | digit

    if decoded > _ULID_MAX_VALUE:
        raise ValueError("ulid overflow: value exceeds maximum 128-bit ULID")
    return decoded


def _encode_crockford_base32(value: int, length: int) -> str:
    mask = 0b11111
    chars = ["0"] * length
    working = value
    for index in range(length - 1, -1, -1):
        chars[index] = CROCKFORD_BASE32_ALPHABET[working & mask]
        working >>= 5
    if working != 0:
        raise ValueError(f"value does not fit into {length} Crockford Base32 characters")
    return "".join(chars)


def _validate_prefix(prefix: str) -> None:
    if not isinstance(prefix, str) or not prefix:
        raise ValueError("prefix must be a non-empty string")
    if _PREFIX_SEPARATOR in prefix:
        raise ValueError(f"prefix must not contain '{_PREFIX_SEPARATOR}'")
