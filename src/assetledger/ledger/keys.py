"""assetledger.ledger.keys

Composite keys.

Layout (stable, compatible with the chaincode world-state convention):

    U+0000 <object_type> U+0000 <attr_1> U+0000 ... <attr_n> U+0000

Neither the object type nor any attribute may contain U+0000 (the delimiter)
or U+10FFFF (reserved as the range-scan upper bound), which makes the encoding
injective: two distinct attribute lists never share a key. A key built from a
prefix of the attributes is a prefix of every full key, which is what range
enumeration relies on.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from assetledger.ledger.constants import ASSET_NAMESPACE
from assetledger.runtime.errors import InvalidArgument

COMPOSITE_KEY_NAMESPACE = "\x00"
MIN_UNICODE_RUNE = "\x00"
MAX_UNICODE_RUNE = "\U0010ffff"


def _validate_part(value: object, *, field: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgument("composite_key_part_not_str", {"field": field, "type": type(value).__name__})
    if MIN_UNICODE_RUNE in value or MAX_UNICODE_RUNE in value:
        raise InvalidArgument("composite_key_part_reserved_rune", {"field": field, "value": value})
    return value


def create_composite_key(object_type: str, attributes: Sequence[str]) -> str:
    ot = _validate_part(object_type, field="object_type")
    if not ot:
        raise InvalidArgument("composite_key_empty_object_type", {})

    parts = [COMPOSITE_KEY_NAMESPACE, ot, MIN_UNICODE_RUNE]
    for i, attr in enumerate(attributes):
        parts.append(_validate_part(attr, field=f"attributes[{i}]"))
        parts.append(MIN_UNICODE_RUNE)
    return "".join(parts)


def split_composite_key(key: str) -> Tuple[str, List[str]]:
    """Inverse of create_composite_key."""
    if not isinstance(key, str) or len(key) < 3 or not key.startswith(COMPOSITE_KEY_NAMESPACE) or not key.endswith(MIN_UNICODE_RUNE):
        raise InvalidArgument("not_a_composite_key", {"key": repr(key)})

    body = key[len(COMPOSITE_KEY_NAMESPACE) : -1]
    components = body.split(MIN_UNICODE_RUNE)
    object_type = components[0]
    if not object_type:
        raise InvalidArgument("not_a_composite_key", {"key": repr(key)})
    return object_type, components[1:]


def prefix_range_end(prefix: str) -> str:
    """Exclusive upper bound for a scan over every key starting with `prefix`."""
    return prefix + MAX_UNICODE_RUNE


def asset_key(kind: str, owner: str) -> str:
    """The one key derivation every ledger operation uses for (kind, owner)."""
    return create_composite_key(ASSET_NAMESPACE, [kind, owner])


def asset_prefix(*attributes: str) -> str:
    """Partial key over the asset namespace: no attributes scans everything, (kind,) scans one kind."""
    return create_composite_key(ASSET_NAMESPACE, list(attributes))


__all__ = [
    "COMPOSITE_KEY_NAMESPACE",
    "MAX_UNICODE_RUNE",
    "create_composite_key",
    "split_composite_key",
    "prefix_range_end",
    "asset_key",
    "asset_prefix",
]
