from __future__ import annotations

import pytest

from assetledger.ledger.types import Asset
from assetledger.runtime.errors import SerializationError


def test_encoding_is_canonical_with_chaincode_field_names() -> None:
    raw = Asset(kind="gem", owner="SEO", amount=3000).encode()
    assert raw == b'{"Amount":3000,"ID":"gem","Owner":"SEO"}'


def test_decode_accepts_any_field_order() -> None:
    a = Asset.decode(b'{"Owner":"Team1","ID":"exp","Amount":6}')
    assert a == Asset(kind="exp", owner="Team1", amount=6)


@pytest.mark.parametrize(
    "raw, reason",
    [
        (b"not json", "asset_bad_json"),
        (b"\xff\xfe", "asset_bad_json"),
        (b"[1, 2]", "asset_not_object"),
        (b'{"ID":"gem","Owner":"SEO"}', "asset_missing_fields"),
        (b'{"ID":"gem","Owner":"SEO","Amount":"12"}', "asset_bad_amount"),
        (b'{"ID":"gem","Owner":"SEO","Amount":true}', "asset_bad_amount"),
        (b'{"ID":"gem","Owner":"SEO","Amount":1.5}', "asset_bad_amount"),
        (b'{"ID":"gem","Owner":"SEO","Amount":-1}', "asset_negative_amount"),
        (b'{"ID":7,"Owner":"SEO","Amount":1}', "asset_bad_identity"),
    ],
)
def test_decode_rejects_malformed_records(raw: bytes, reason: str) -> None:
    with pytest.raises(SerializationError) as e:
        Asset.decode(raw)
    assert e.value.code == "serialization_error"
    assert e.value.reason == reason
