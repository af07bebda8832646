"""Flatten structured documents into Secret-compatible string maps.

A Secret only holds scalar byte strings under string keys. A document is
stored by re-serializing each top-level value as its own JSON fragment, and
read back by parsing every fragment that is valid JSON. Values that are not
valid JSON are kept as literal strings.
"""

import json
from typing import Any


def flatten(document: dict[str, Any]) -> dict[str, str]:
    """Turn a JSON-compatible mapping into a key -> JSON fragment map."""
    flat: dict[str, str] = {}
    for key, value in document.items():
        flat[key] = json.dumps(value, separators=(",", ":"), sort_keys=True)
    return flat


def unflatten(flat: dict[str, str]) -> dict[str, Any]:
    """Rebuild a document from a key -> fragment map."""
    document: dict[str, Any] = {}
    for key, raw in flat.items():
        try:
            document[key] = json.loads(raw)
        except json.JSONDecodeError:
            # Hand-edited secrets may hold bare or half-quoted strings
            document[key] = raw.strip('"')
    return document
