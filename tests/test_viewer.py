import base64
import json
from urllib.parse import quote

import pytest

from qrpro.microsite import (
    DEFAULT_CONFIG,
    ButtonStyle,
    Icon,
    LinkType,
    MicrositeConfig,
    MicrositeLink,
    make_link,
    make_media,
    make_product,
    serialize,
)
from qrpro.viewer import create_viewer_app, safe_href, safe_src, theme_color


@pytest.fixture()
def client():
    app = create_viewer_app()
    app.config["TESTING"] = True
    return app.test_client()


def _page() -> MicrositeConfig:
    return MicrositeConfig(
        title="Ada's <script>Shop</script>",
        description="Handmade things",
        theme_color="#112233",
        button_style=ButtonStyle.PILL,
        links=(
            make_link("1", "GitHub", "https://github.com/ada", Icon.GITHUB),
            make_product("2", label="Mug", price="12.50", currency="€", url="https://shop.example/mug"),
            make_media("3", LinkType.IMAGE, "https://cdn.example/pic.jpg"),
            MicrositeLink(id="4", type="link", label="Sneaky", url="javascript:alert(1)"),
        ),
    )


def test_renders_page(client) -> None:
    resp = client.get("/", query_string={"p": serialize(_page())})
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "Handmade things" in html
    assert "https://github.com/ada" in html
    assert "€12.50" in html
    assert "View Deal" in html
    assert "https://cdn.example/pic.jpg" in html
    assert "9999px" in html
    assert "#112233" in html


def test_page_content_is_escaped(client) -> None:
    html = client.get("/", query_string={"p": serialize(_page())}).get_data(as_text=True)
    assert "<script>Shop" not in html
    assert "&lt;script&gt;Shop" in html
    assert "javascript:" not in html


def test_missing_or_invalid_token(client) -> None:
    for resp in (client.get("/"), client.get("/?p=not-valid-base64!!")):
        assert resp.status_code == 400
        assert b"Invalid Page Data" in resp.data


def test_standard_alphabet_token_in_raw_query(client) -> None:
    escaped = quote(json.dumps(DEFAULT_CONFIG.to_dict(), separators=(",", ":")), safe="-_.!~*'()")
    token = base64.b64encode(escaped.encode("ascii")).decode("ascii")
    resp = client.get("/api/decode?p=" + token)
    assert resp.status_code == 200
    assert resp.get_json() == DEFAULT_CONFIG.to_dict()


def test_api_decode(client) -> None:
    resp = client.get("/api/decode", query_string={"p": serialize(_page())})
    assert resp.get_json() == _page().to_dict()

    bad = client.get("/api/decode", query_string={"p": "%%%"})
    assert bad.status_code == 400
    assert bad.get_json() == {"error": "invalid page data"}


def test_link_filters() -> None:
    assert safe_href("https://example.com") == "https://example.com"
    assert safe_href("mailto:a@b.com") == "mailto:a@b.com"
    assert safe_href("/relative") == "/relative"
    assert safe_href("javascript:alert(1)") == "#"
    assert safe_href("data:text/html,hi") == "#"
    assert safe_src("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"


def test_theme_color_fallback() -> None:
    assert theme_color(MicrositeConfig(theme_color="#abc")) == "#abc"
    assert theme_color(MicrositeConfig(theme_color="red;}body{")) == "#4f46e5"


def test_deeply_nested_token_is_invalid(client) -> None:
    token = base64.urlsafe_b64encode(b"[" * 100000).decode("ascii").rstrip("=")
    page = client.get("/", query_string={"p": token})
    assert page.status_code == 400
    assert b"Invalid Page Data" in page.data
    assert client.get("/api/decode", query_string={"p": token}).status_code == 400
