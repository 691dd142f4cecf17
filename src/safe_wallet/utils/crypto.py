"""Hashing helpers shared by the sequencer client and transaction codec."""

from __future__ import annotations

import hashlib


def sha3_256(data: bytes) -> bytes:
    """Single SHA3-256 hash."""
    return hashlib.sha3_256(data).digest()


def sha512(data: bytes) -> bytes:
    """Single SHA-512 hash."""
    return hashlib.sha512(data).digest()


def hash_members(members: list[str]) -> str:
    """Hash a member set the way the sequencer indexes outputs.

    Member ids are sorted, concatenated and hashed with SHA3-256, so the
    same group always maps to the same hex digest regardless of order.
    """
    joined = "".join(sorted(members))
    return sha3_256(joined.encode("utf-8")).hex()
