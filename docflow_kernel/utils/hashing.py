"""
Hashes for the audit chain.

An audit entry is hashed in two steps: ``hash_payload`` digests the
entry's canonical JSON payload, then ``hash_audit_entry`` links that
digest to the previous entry's hash.  Both must be reproducible from the
stored row alone, so serialization is canonical (sorted keys, compact
separators, enums by value, timestamps in ISO-8601).
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _canonical_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot canonicalize {type(value).__name__}")


def canonicalize_json(data: Any) -> str:
    """Compact, key-sorted JSON; identical data always gives identical text."""
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), default=_canonical_value,
    )


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    """SHA-256 hex digest of ``payload``'s canonical JSON."""
    return _sha256(canonicalize_json(payload))


def hash_audit_entry(
    document_type: str,
    document_id: str,
    outcome: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Chain hash of one audit entry; the first entry links to ``GENESIS``."""
    return _sha256("|".join((
        document_type,
        document_id,
        outcome,
        payload_hash,
        prev_hash or GENESIS,
    )))
