import base64
import json
import re
from urllib.parse import quote

import pytest

from qrpro.microsite import (
    DEFAULT_CONFIG,
    ButtonStyle,
    DuplicateLinkError,
    Icon,
    LinkNotFoundError,
    LinkType,
    MicrositeConfig,
    MicrositeError,
    MicrositeLink,
    add_link,
    build_microsite_url,
    deserialize,
    extract_token,
    get_link,
    load_microsite,
    make_link,
    make_media,
    make_product,
    new_link_id,
    remove_link,
    serialize,
    token_size,
    update_link,
)

_URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def _legacy_token(data: dict) -> str:
    """Token as the browser app made it: btoa(encodeURIComponent(JSON))."""
    escaped = quote(json.dumps(data, separators=(",", ":"), ensure_ascii=False), safe="-_.!~*'()")
    return base64.b64encode(escaped.encode("ascii")).decode("ascii")


def _token_for(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("ascii")).decode("ascii").rstrip("=")


def _shop() -> MicrositeConfig:
    return MicrositeConfig(
        title="Café Ünïcode ☕ 🎉",
        description="Line one\nLine two",
        image_url="https://example.com/me.png",
        theme_color="#ff6600",
        button_style=ButtonStyle.PILL,
        links=(
            make_link("1", "Website", "https://example.com", Icon.GITHUB),
            make_product("2", price=""),
            make_media("3", LinkType.FILE, "https://example.com/a.pdf", "a.pdf", 1572864),
            make_media("4", LinkType.IMAGE, "https://example.com/pic.jpg"),
            make_media("5", "video", "https://example.com/clip.mp4"),
        ),
    )


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def test_round_trip_default() -> None:
    assert deserialize(serialize(DEFAULT_CONFIG)) == DEFAULT_CONFIG


def test_round_trip_empty_links() -> None:
    config = MicrositeConfig(title="Empty", links=())
    assert deserialize(serialize(config)) == config


def test_round_trip_unicode_and_empty_price() -> None:
    config = _shop()
    decoded = deserialize(serialize(config))
    assert decoded == config
    assert decoded.title == "Café Ünïcode ☕ 🎉"
    assert get_link(decoded, "2").price == ""


def test_token_is_url_safe() -> None:
    token = serialize(_shop())
    assert _URL_SAFE.match(token)
    assert token_size(_shop()) == len(token)


def test_invalid_base64_is_none() -> None:
    assert deserialize("not-valid-base64!!") is None
    assert deserialize("") is None


def test_not_json_is_none() -> None:
    assert deserialize(_token_for("hello world")) is None


def test_deeply_nested_json_is_none() -> None:
    assert deserialize(_token_for("[" * 100000)) is None
    assert deserialize(_token_for(quote('{"title":"x","links":' + "[" * 100000))) is None


def test_bad_percent_escapes_are_none() -> None:
    assert deserialize(_token_for("%7B%22title%")) is None
    assert deserialize(_token_for("%FF%FE")) is None


def test_wrong_schema_is_none() -> None:
    assert deserialize(_token_for(quote('{"title":1}'))) is None
    assert deserialize(_token_for(quote("[1,2,3]"))) is None
    data = DEFAULT_CONFIG.to_dict()
    data["links"] = [{"id": "1", "type": "link", "label": "x", "url": "y", "icon": "unicorn"}]
    assert deserialize(_legacy_token(data)) is None


def test_legacy_standard_alphabet_token_decodes() -> None:
    config = _shop()
    assert deserialize(_legacy_token(config.to_dict())) == config


def test_missing_icon_defaults_to_link() -> None:
    link = MicrositeLink.from_dict({"id": "9", "type": "link", "label": "x", "url": "https://x"})
    assert link.icon is Icon.LINK


def test_link_dict_omits_unset_fields() -> None:
    assert list(make_link("1").to_dict()) == ["id", "type", "label", "url", "icon"]
    product = make_product("2").to_dict()
    assert product["subLabel"] == "Description..."
    assert product["price"] == "9.99"
    assert product["currency"] == "$"
    assert product["icon"] == "shopping-bag"


def test_file_size_note() -> None:
    link = make_media("3", "file", "https://example.com/a.pdf", "a.pdf", 1572864)
    assert link.sub_label == "Size: 1.50MB"
    assert link.icon is Icon.DOWNLOAD
    with pytest.raises(MicrositeError):
        make_media("4", LinkType.PRODUCT, "https://example.com")


# ---------------------------------------------------------------------------
# URL contract
# ---------------------------------------------------------------------------

def test_build_url_and_extract_token() -> None:
    url = build_microsite_url(_shop(), "https://view.example.com/page")
    assert url.startswith("https://view.example.com/page?p=")
    assert extract_token(url) == serialize(_shop())
    assert load_microsite(url) == _shop()


def test_build_url_replaces_existing_param() -> None:
    url = build_microsite_url(DEFAULT_CONFIG, "https://view.example.com/?lang=en&p=stale")
    assert "lang=en" in url
    assert url.count("p=") == 1
    assert load_microsite(url) == DEFAULT_CONFIG


def test_extract_token_keeps_plus() -> None:
    assert extract_token("https://x.example/?a=1&p=ab+cd%3D") == "ab+cd="
    assert extract_token("https://x.example/") is None
    assert load_microsite("https://x.example/?q=1") is None


# ---------------------------------------------------------------------------
# Id-keyed editing
# ---------------------------------------------------------------------------

def test_add_link_returns_new_config() -> None:
    base = _shop()
    extended = add_link(base, make_link("6", "Blog"))
    assert [link.id for link in extended.links] == ["1", "2", "3", "4", "5", "6"]
    assert len(base.links) == 5
    with pytest.raises(DuplicateLinkError):
        add_link(extended, make_link("6"))


def test_update_link_keeps_position() -> None:
    base = _shop()
    updated = update_link(base, "3", label="Brochure", icon="file")
    assert [link.id for link in updated.links] == ["1", "2", "3", "4", "5"]
    assert get_link(updated, "3").label == "Brochure"
    assert get_link(updated, "3").icon is Icon.FILE
    assert get_link(base, "3").label == "a.pdf"


def test_update_link_errors() -> None:
    base = _shop()
    with pytest.raises(LinkNotFoundError):
        update_link(base, "missing", label="x")
    with pytest.raises(MicrositeError):
        update_link(base, "1", id="99")
    with pytest.raises(MicrositeError):
        update_link(base, "1", colour="red")
    with pytest.raises(MicrositeError):
        update_link(base, "1", icon="unicorn")
    with pytest.raises(MicrositeError):
        update_link(base, "1", type="carousel")


def test_remove_link_preserves_order() -> None:
    trimmed = remove_link(_shop(), "2")
    assert [link.id for link in trimmed.links] == ["1", "3", "4", "5"]
    with pytest.raises(LinkNotFoundError):
        remove_link(trimmed, "2")
    with pytest.raises(LinkNotFoundError):
        get_link(trimmed, "2")


def test_duplicate_ids_rejected() -> None:
    with pytest.raises(DuplicateLinkError):
        MicrositeConfig(links=(make_link("1"), make_link("1")))


def test_new_link_ids_strictly_increase() -> None:
    ids = [int(new_link_id()) for _ in range(50)]
    assert ids == sorted(set(ids))


def test_new_link_id_skips_existing() -> None:
    first = int(new_link_id())
    taken = MicrositeConfig(links=(make_link(str(first + 1)),))
    nxt = new_link_id(taken)
    assert nxt != str(first + 1)
    assert int(nxt) > first
