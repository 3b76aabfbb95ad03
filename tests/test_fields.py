import dataclasses

import pytest

from qrpro.fields import (
    FIELD_TYPES,
    KIND_OF,
    ContentKind,
    SmsFields,
    WifiFields,
    field_names,
    fields_for,
)


def test_every_kind_but_microsite_has_a_field_set() -> None:
    assert set(FIELD_TYPES) == set(ContentKind) - {ContentKind.MICROSITE}
    assert all(KIND_OF[cls] is kind for kind, cls in FIELD_TYPES.items())


def test_field_names() -> None:
    assert field_names(ContentKind.WIFI) == ["ssid", "password", "encryption"]
    assert field_names(ContentKind.MICROSITE) == []


def test_unknown_keys_are_ignored() -> None:
    snapshot = {"ssid": "Home", "password": "pw", "url": "https://stale.example", "text": "stale"}
    assert fields_for(ContentKind.WIFI, snapshot) == WifiFields(ssid="Home", password="pw")


def test_none_values_take_defaults() -> None:
    assert fields_for(ContentKind.WIFI, {"encryption": None}).encryption == "WPA"
    assert fields_for(ContentKind.CRYPTO, {}).coin == "bitcoin"


def test_form_aliases() -> None:
    assert fields_for(ContentKind.SMS, {"smsPhone": "1", "smsMessage": "hi"}) == SmsFields("1", "hi")
    assert fields_for(ContentKind.EVENT, {"eventStart": "2025-01-01T10:00"}).start == "2025-01-01T10:00"
    assert fields_for(ContentKind.TWITTER, {"user": "ada"}).username == "ada"


def test_canonical_key_wins_over_alias() -> None:
    assert fields_for(ContentKind.SMS, {"smsPhone": "1", "phone": "2"}).phone == "2"
    assert fields_for(ContentKind.SMS, {"phone": "2", "smsPhone": "1"}).phone == "2"


def test_microsite_has_no_field_set() -> None:
    with pytest.raises(KeyError):
        fields_for(ContentKind.MICROSITE, {})


def test_field_sets_are_frozen() -> None:
    wifi = WifiFields(ssid="Home")
    with pytest.raises(dataclasses.FrozenInstanceError):
        wifi.ssid = "Other"
