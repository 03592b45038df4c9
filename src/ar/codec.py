# src/ar/codec.py
"""
Content hashing and snapshot compression (deterministic).

Purpose:
- content_hash() fingerprints a document's full text. The digest doubles as the
  blob store key, so identical text is always stored once.
- compress()/decompress() turn document text into a printable token and back.
  Tokens are base64 over zlib-deflated UTF-8, so they can live in plain text records.

Contract:
- decompress(compress(t)) == t for every text, including "" and multi-megabyte payloads.
- decompress() on a damaged or foreign token raises CorruptBlobError; it never
  returns partial text.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import zlib

from ar.errors import CorruptBlobError

logger = logging.getLogger(__name__)

HASH_HEX_LENGTH = 64


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compress(text: str) -> str:
    data = text.encode("utf-8")
    packed = zlib.compress(data, level=9)
    if data:
        logger.debug(
            "Compressed %d -> %d bytes (%.1f%% reduction)",
            len(data),
            len(packed),
            (1 - len(packed) / len(data)) * 100,
        )
    return base64.b64encode(packed).decode("ascii")


def decompress(token: str) -> str:
    try:
        packed = base64.b64decode(token.encode("ascii"), validate=True)
        # decompressobj lets us reject streams that stop early or carry trailing bytes
        inflater = zlib.decompressobj()
        data = inflater.decompress(packed) + inflater.flush()
        if not inflater.eof or inflater.unused_data:
            raise CorruptBlobError("Snapshot stream is truncated or has trailing data.")
        return data.decode("utf-8")
    except CorruptBlobError:
        raise
    except (UnicodeError, binascii.Error, zlib.error, ValueError) as e:
        raise CorruptBlobError(f"Snapshot payload cannot be decoded: {e}") from e
