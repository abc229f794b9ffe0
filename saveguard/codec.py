"""
saveguard/codec.py -- Wire format for save documents.

A save on the wire is a UTF-8 JSON object.  ``encode`` writes it with
sorted keys and adds a ``checksum`` field (SHA-256 of the canonical
document without the checksum) so that edits made outside the game can be
noticed on the next load.  ``decode`` verifies and strips that field again,
so ``decode(encode(doc)).document == doc``.

Older builds wrote no checksum at all; such saves decode with
``checksum_valid = None``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

from saveguard.errors import DocumentDecodeError

CHECKSUM_FIELD = "checksum"


def canonical_json(document: dict) -> str:
    """Return the canonical text form used for checksums and backups."""
    return json.dumps(
        document, sort_keys=True, ensure_ascii=False, separators=(",", ":"),
    )


def compute_checksum(document: dict) -> str:
    """SHA-256 hex digest of *document* ignoring any ``checksum`` key."""
    body = {k: v for k, v in document.items() if k != CHECKSUM_FIELD}
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


@dataclass
class Decoded:
    """Result of decoding raw save bytes."""
    document: dict
    checksum_valid: bool | None = None


def encode(document: dict) -> bytes:
    """Serialise *document* to bytes, embedding a fresh checksum."""
    body = {k: v for k, v in document.items() if k != CHECKSUM_FIELD}
    body[CHECKSUM_FIELD] = compute_checksum(body)
    return json.dumps(body, sort_keys=True, ensure_ascii=False, indent=2).encode("utf-8")


def decode(raw: bytes | str) -> Decoded:
    """Parse raw save bytes into a document.

    Raises
    ------
    DocumentDecodeError
        If the bytes are not UTF-8 JSON or the top level is not an object.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentDecodeError(f"not UTF-8 text ({exc})") from exc
    else:
        text = raw

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentDecodeError(f"invalid JSON ({exc})") from exc

    if not isinstance(data, dict):
        raise DocumentDecodeError(
            f"expected a JSON object at the top level, got {type(data).__name__}"
        )

    stored = data.pop(CHECKSUM_FIELD, None)
    if stored is None:
        return Decoded(document=data, checksum_valid=None)
    return Decoded(document=data, checksum_valid=(stored == compute_checksum(data)))
