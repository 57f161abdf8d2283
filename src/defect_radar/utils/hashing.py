"""
defect-radar - hashing utilities

File: src/defect_radar/utils/hashing.py

Purpose
- Provide deterministic SHA-256 helpers for content cache keys and finding fingerprints.

Functional requirements
- Fingerprints are order-sensitive over their parts and unambiguous across part boundaries.
"""

from __future__ import annotations

import hashlib

_PART_SEPARATOR = "\x1f"

__all__ = [
    "fingerprint",
    "sha256_bytes",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding, errors="surrogatepass"))


def fingerprint(*parts: object) -> str:
    """Return a stable digest over ``parts``; ``None`` hashes as an empty field."""

    rendered = _PART_SEPARATOR.join("" if part is None else str(part) for part in parts)
    return sha256_text(f"{len(parts)}{_PART_SEPARATOR}{rendered}")
