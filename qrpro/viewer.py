"""Microsite viewer: renders the page carried in the ``p`` query parameter."""

import re
from urllib.parse import urlsplit

from qrpro.logging import audit, get_logger, trace
from qrpro.microsite import MICROSITE_PARAM, ButtonStyle, MicrositeConfig, deserialize

log = get_logger("viewer")

INVALID_PAGE_TEXT = "Invalid Page Data"

BUTTON_RADIUS = {
    ButtonStyle.PILL: "9999px",
    ButtonStyle.ROUNDED: "0.5rem",
    ButtonStyle.SQUARE: "0",
}

ICON_GLYPHS = {
    "link": "🔗", "instagram": "📷", "twitter": "🐦", "facebook": "📘",
    "youtube": "▶️", "github": "🐙", "linkedin": "💼", "mail": "✉️",
    "phone": "📞", "file": "📄", "download": "⬇️", "image": "🖼️",
    "video": "🎬", "shopping-bag": "🛍️",
}

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_LINK_SCHEMES = {"http", "https", "mailto", "tel", "sms"}
_FALLBACK_THEME = "#4f46e5"

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ page.title }}</title>
<style>
body { margin: 0; min-height: 100vh; font-family: system-ui, sans-serif;
       background: {{ theme }}; display: flex; justify-content: center; padding: 3rem 1rem; }
.card { width: 100%; max-width: 28rem; background: rgba(255,255,255,.95); border-radius: 1.5rem;
        padding: 2rem; box-shadow: 0 25px 50px rgba(0,0,0,.25); }
.header { text-align: center; }
.avatar { width: 6rem; height: 6rem; border-radius: 50%; object-fit: cover; }
.avatar-placeholder { width: 6rem; height: 6rem; border-radius: 50%; background: #e2e8f0;
                      display: inline-flex; align-items: center; justify-content: center; font-size: 2rem; }
.description { white-space: pre-line; color: #475569; }
.item { display: block; margin-top: 1rem; }
.button { display: flex; gap: .75rem; padding: 1rem; border: 1px solid #e2e8f0; text-decoration: none;
          color: #0f172a; border-radius: {{ radius }}; }
.embed { width: 100%; border-radius: .75rem; }
.product { display: flex; border: 1px solid #e2e8f0; border-radius: .75rem; overflow: hidden; }
.product img { width: 33%; object-fit: cover; }
.product .details { padding: 1rem; flex: 1; }
.price { font-weight: bold; font-size: 1.125rem; }
.deal { background: {{ theme }}; color: #fff; padding: .375rem .75rem; border-radius: 9999px;
        text-decoration: none; font-size: .75rem; }
</style>
</head>
<body>
<main class="card">
  <div class="header">
    {% if page.image_url %}
    <img class="avatar" src="{{ page.image_url | safe_src }}" alt="{{ page.title }}">
    {% else %}
    <div class="avatar-placeholder">👤</div>
    {% endif %}
    <h1>{{ page.title }}</h1>
    <p class="description">{{ page.description }}</p>
  </div>
  {% for item in page.links %}
  <div class="item" id="item-{{ item.id }}">
    {% if item.type.value == "image" %}
    <img class="embed" src="{{ item.url | safe_src }}" alt="Embed" loading="lazy">
    {% elif item.type.value == "video" %}
    <video class="embed" src="{{ item.url | safe_href }}" controls></video>
    {% elif item.type.value == "product" %}
    <div class="product">
      {% if item.image_url %}<img src="{{ item.image_url | safe_src }}" alt="{{ item.label }}">{% endif %}
      <div class="details">
        <h3>{{ item.label }}</h3>
        {% if item.sub_label %}<p>{{ item.sub_label }}</p>{% endif %}
        <span class="price">{{ item.currency or "" }}{{ item.price or "" }}</span>
        <a class="deal" href="{{ item.url | safe_href }}" target="_blank" rel="noopener noreferrer">View Deal</a>
      </div>
    </div>
    {% else %}
    <a class="button" href="{{ item.url | safe_href }}" target="_blank" rel="noopener noreferrer">
      <span>{{ icons.get(item.icon.value, icons["link"]) }}</span>
      <span>{{ item.label }}{% if item.sub_label %}<small> {{ item.sub_label }}</small>{% endif %}</span>
    </a>
    {% endif %}
  </div>
  {% endfor %}
</main>
</body>
</html>
"""

INVALID_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{{ text }}</title></head>
<body style="min-height:100vh;display:flex;align-items:center;justify-content:center;color:#64748b;font-family:system-ui,sans-serif">
<p>{{ text }}</p>
</body>
</html>
"""


def safe_href(url: str) -> str:
    """Pass through web/mail/phone links and relative paths; anything else becomes '#'."""
    scheme = urlsplit(url).scheme.lower()
    if not scheme or scheme in _LINK_SCHEMES:
        return url
    return "#"


def safe_src(url: str) -> str:
    if url.startswith("data:image/"):
        return url
    return safe_href(url)


def theme_color(config: MicrositeConfig) -> str:
    return config.theme_color if _HEX_COLOR.match(config.theme_color) else _FALLBACK_THEME


@trace
def create_viewer_app():
    """Create a Flask app that renders microsite pages from ``?p=<token>``."""
    from flask import Flask, jsonify, render_template_string, request

    app = Flask(__name__)
    app.jinja_env.filters["safe_href"] = safe_href
    app.jinja_env.filters["safe_src"] = safe_src

    def _page_from_request() -> MicrositeConfig | None:
        token = request.args.get(MICROSITE_PARAM)
        if token is None:
            return None
        # Query decoding turns a literal "+" from standard-alphabet tokens into a space
        return deserialize(token.replace(" ", "+"))

    def _invalid():
        return render_template_string(INVALID_TEMPLATE, text=INVALID_PAGE_TEXT), 400

    @app.route("/")
    def show_page():
        config = _page_from_request()
        if config is None:
            audit("viewer.invalid_page", logger=log, has_param=MICROSITE_PARAM in request.args)
            return _invalid()
        audit("viewer.page", logger=log, title=config.title[:80], links=len(config.links))
        return render_template_string(
            PAGE_TEMPLATE,
            page=config,
            theme=theme_color(config),
            radius=BUTTON_RADIUS[config.button_style],
            icons=ICON_GLYPHS,
        )

    @app.route("/api/decode")
    def decode_page():
        config = _page_from_request()
        if config is None:
            return jsonify({"error": "invalid page data"}), 400
        return jsonify(config.to_dict())

    return app
