"""
Stable hashing utilities for content-addressable caching.

Provides deterministic hashing of dicts, lists, strings, and bytes.
Uses JSON canonicalization for dicts/lists and NFC normalization for strings.
"""

import hashlib
import json
import unicodedata


def stable_hash(obj: dict | list | str | bytes) -> str:
    """
    Compute stable hash of an object.

    - Dicts and lists: JSON-serialized with sorted keys
    - Strings: NFC normalized, UTF-8 encoded
    - Bytes: used directly

    Returns:
        64-character hex string (blake2b)

    Examples:
        >>> stable_hash({"b": 2, "a": 1}) == stable_hash({"a": 1, "b": 2})
        True
    """
    if isinstance(obj, (dict, list)):
        canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        data = unicodedata.normalize("NFC", canonical).encode("utf-8")
    elif isinstance(obj, str):
        data = unicodedata.normalize("NFC", obj).encode("utf-8")
    elif isinstance(obj, bytes):
        data = obj
    else:
        raise TypeError(f"Cannot hash type {type(obj)}: {obj}")

    h = hashlib.blake2b(data, digest_size=32)
    return h.hexdigest()
