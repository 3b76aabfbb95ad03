"""Microsite pages packed into the QR payload itself.

A page (title, avatar, theme, ordered links/products) is serialized to a
URL-safe token and carried in one query parameter:

    {base_url}?p=<token>

    token = base64url( encodeURIComponent( JSON(config) ) )

Percent-encoding before base64 keeps the base64 input pure ASCII, so
emoji and accented text survive. Decoding is fail-closed: any bad stage
yields ``None``, never an exception.

Links are edited by id, never by position. Every edit returns a new config.
"""

import base64
import binascii
import json
import re
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Any
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit, urlunsplit

from qrpro.logging import audit, get_logger, trace

log = get_logger("microsite")

MICROSITE_PARAM = "p"

_URI_COMPONENT_SAFE = "-_.!~*'()"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class MicrositeError(ValueError):
    """Invalid microsite structure or edit."""


class LinkNotFoundError(MicrositeError):
    pass


class DuplicateLinkError(MicrositeError):
    pass


class ButtonStyle(str, Enum):
    ROUNDED = "rounded"
    SQUARE = "square"
    PILL = "pill"


class LinkType(str, Enum):
    LINK = "link"
    FILE = "file"
    IMAGE = "image"
    VIDEO = "video"
    PRODUCT = "product"


class Icon(str, Enum):
    LINK = "link"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    YOUTUBE = "youtube"
    GITHUB = "github"
    LINKEDIN = "linkedin"
    MAIL = "mail"
    PHONE = "phone"
    FILE = "file"
    IMAGE = "image"
    VIDEO = "video"
    DOWNLOAD = "download"
    SHOPPING_BAG = "shopping-bag"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

# (attribute, wire key) for the optional link fields, in wire order
_OPTIONAL_LINK_FIELDS = (
    ("sub_label", "subLabel"),
    ("image_url", "imageUrl"),
    ("price", "price"),
    ("currency", "currency"),
)


@dataclass(frozen=True)
class MicrositeLink:
    """One entry on the page.

    ``link`` entries show ``icon``; ``file`` entries may carry a size note in
    ``sub_label``; ``product`` entries use ``sub_label`` as the description
    plus free-text ``price``, a ``currency`` symbol and ``image_url``.
    ``image``/``video`` entries embed ``url`` directly.
    """
    id: str
    type: LinkType
    label: str
    url: str
    icon: Icon = Icon.LINK
    sub_label: str | None = None
    image_url: str | None = None
    price: str | None = None
    currency: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "type", LinkType(self.type))
        object.__setattr__(self, "icon", Icon(self.icon))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "url": self.url,
        }
        for attr, key in _OPTIONAL_LINK_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["icon"] = self.icon.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MicrositeLink":
        if not isinstance(data, dict):
            raise MicrositeError("link must be an object")
        kwargs: dict[str, Any] = {
            name: _require_str(data, name) for name in ("id", "type", "label", "url")
        }
        kwargs["icon"] = _require_str(data, "icon") if "icon" in data else Icon.LINK.value
        for attr, key in _OPTIONAL_LINK_FIELDS:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise MicrositeError(f"link field {key!r} must be a string")
            kwargs[attr] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class MicrositeConfig:
    title: str = ""
    description: str = ""
    image_url: str = ""
    theme_color: str = "#4f46e5"
    button_style: ButtonStyle = ButtonStyle.ROUNDED
    links: tuple[MicrositeLink, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "button_style", ButtonStyle(self.button_style))
        object.__setattr__(self, "links", tuple(self.links))
        seen: set[str] = set()
        for link in self.links:
            if link.id in seen:
                raise DuplicateLinkError(f"duplicate link id {link.id!r}")
            seen.add(link.id)

    @cached_property
    def index(self) -> dict[str, int]:
        """Link id -> position."""
        return {link.id: i for i, link in enumerate(self.links)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "imageUrl": self.image_url,
            "themeColor": self.theme_color,
            "buttonStyle": self.button_style.value,
            "links": [link.to_dict() for link in self.links],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MicrositeConfig":
        if not isinstance(data, dict):
            raise MicrositeError("microsite config must be an object")
        links = data.get("links")
        if not isinstance(links, list):
            raise MicrositeError("'links' must be a list")
        return cls(
            title=_require_str(data, "title"),
            description=_require_str(data, "description"),
            image_url=_require_str(data, "imageUrl"),
            theme_color=_require_str(data, "themeColor"),
            button_style=_require_str(data, "buttonStyle"),
            links=tuple(MicrositeLink.from_dict(item) for item in links),
        )


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MicrositeError(f"field {key!r} must be a string")
    return value


DEFAULT_CONFIG = MicrositeConfig(
    title="My Microshop",
    description="Check out my favorite products!",
    image_url="",
    theme_color="#4f46e5",
    button_style=ButtonStyle.ROUNDED,
)


# ---------------------------------------------------------------------------
# Link ids and factories
# ---------------------------------------------------------------------------

_id_lock = threading.Lock()
_last_id = 0


def new_link_id(existing: MicrositeConfig | None = None) -> str:
    """Millisecond-timestamp id, strictly increasing within the process.

    Ids issued here are never handed out twice, so an id freed by
    ``remove_link`` is not reused. Ids already present in ``existing``
    (e.g. from a decoded page) are skipped as well.
    """
    global _last_id
    taken = existing.index if existing is not None else {}
    with _id_lock:
        candidate = max(int(time.time() * 1000), _last_id + 1)
        while str(candidate) in taken:
            candidate += 1
        _last_id = candidate
    return str(candidate)


def make_link(link_id: str, label: str = "New Link", url: str = "",
              icon: Icon | str = Icon.LINK) -> MicrositeLink:
    return MicrositeLink(id=link_id, type=LinkType.LINK, label=label, url=url, icon=icon)


def make_product(
    link_id: str,
    label: str = "Product Name",
    description: str = "Description...",
    url: str = "",
    price: str = "9.99",
    currency: str = "$",
    image_url: str | None = None,
) -> MicrositeLink:
    return MicrositeLink(
        id=link_id,
        type=LinkType.PRODUCT,
        label=label,
        sub_label=description,
        url=url,
        image_url=image_url,
        price=price,
        currency=currency,
        icon=Icon.SHOPPING_BAG,
    )


def make_media(link_id: str, link_type: LinkType | str, url: str,
               filename: str | None = None, size_bytes: int | None = None) -> MicrositeLink:
    """Entry for an already-hosted file, image or video URL."""
    link_type = LinkType(link_type)
    if link_type is LinkType.FILE:
        sub_label = f"Size: {size_bytes / (1024 * 1024):.2f}MB" if size_bytes is not None else None
        return MicrositeLink(id=link_id, type=link_type, label=filename or "File",
                             url=url, sub_label=sub_label, icon=Icon.DOWNLOAD)
    if link_type is LinkType.IMAGE:
        return MicrositeLink(id=link_id, type=link_type, label="Image", url=url, icon=Icon.IMAGE)
    if link_type is LinkType.VIDEO:
        return MicrositeLink(id=link_id, type=link_type, label="Video", url=url, icon=Icon.VIDEO)
    raise MicrositeError(f"{link_type.value!r} is not a media type")


# ---------------------------------------------------------------------------
# Id-keyed editing
# ---------------------------------------------------------------------------

def get_link(config: MicrositeConfig, link_id: str) -> MicrositeLink:
    try:
        return config.links[config.index[link_id]]
    except KeyError:
        raise LinkNotFoundError(f"no link with id {link_id!r}") from None


def add_link(config: MicrositeConfig, link: MicrositeLink) -> MicrositeConfig:
    """Append ``link`` at the end of the page."""
    if link.id in config.index:
        raise DuplicateLinkError(f"duplicate link id {link.id!r}")
    return replace(config, links=config.links + (link,))


def update_link(config: MicrositeConfig, link_id: str, **changes: Any) -> MicrositeConfig:
    """Rewrite the link matching ``link_id``; its position is unchanged."""
    if "id" in changes and changes["id"] != link_id:
        raise MicrositeError("link ids are immutable")
    pos = config.index.get(link_id)
    if pos is None:
        raise LinkNotFoundError(f"no link with id {link_id!r}")
    try:
        updated = replace(config.links[pos], **changes)
    except (TypeError, ValueError) as exc:
        raise MicrositeError(str(exc)) from exc
    links = config.links[:pos] + (updated,) + config.links[pos + 1:]
    return replace(config, links=links)


def remove_link(config: MicrositeConfig, link_id: str) -> MicrositeConfig:
    pos = config.index.get(link_id)
    if pos is None:
        raise LinkNotFoundError(f"no link with id {link_id!r}")
    return replace(config, links=config.links[:pos] + config.links[pos + 1:])


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def _percent_decode(text: str) -> str:
    """decodeURIComponent: reject stray '%' and invalid UTF-8."""
    if _BAD_ESCAPE.search(text):
        raise ValueError("malformed percent-escape")
    return unquote(text, errors="strict")


def _b64_decode(token: str) -> bytes:
    # Accept the URL-safe alphabet and the standard one, padded or not
    normalized = token.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


@trace
def serialize(config: MicrositeConfig) -> str:
    """Pack ``config`` into a URL-safe token (base64url, unpadded)."""
    raw = json.dumps(config.to_dict(), separators=(",", ":"), ensure_ascii=False)
    escaped = quote(raw, safe=_URI_COMPONENT_SAFE)
    return base64.urlsafe_b64encode(escaped.encode("ascii")).decode("ascii").rstrip("=")


@trace
def deserialize(token: str) -> MicrositeConfig | None:
    """Unpack a token from ``serialize``; ``None`` if any stage fails."""
    try:
        escaped = _b64_decode(token).decode("ascii")
        data = json.loads(_percent_decode(escaped))
        return MicrositeConfig.from_dict(data)
    except (binascii.Error, ValueError, TypeError, AttributeError, RecursionError) as exc:
        audit("microsite.decode_failed", logger=log,
              reason=type(exc).__name__, token=str(token)[:40])
        return None


def token_size(config: MicrositeConfig) -> int:
    return len(serialize(config))


# ---------------------------------------------------------------------------
# URL contract
# ---------------------------------------------------------------------------

def build_microsite_url(config: MicrositeConfig, base_url: str) -> str:
    """``base_url`` with the ``p`` parameter set to the page token.

    Other query parameters on ``base_url`` are preserved; an existing ``p``
    is replaced.
    """
    token = serialize(config)
    parts = urlsplit(base_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k != MICROSITE_PARAM]
    query.append((MICROSITE_PARAM, token))
    url = urlunsplit(parts._replace(query=urlencode(query)))
    audit("microsite.url_built", logger=log, base=base_url[:80], token_len=len(token), url_len=len(url))
    return url


def extract_token(url: str) -> str | None:
    """Value of the ``p`` parameter, or None.

    '+' is kept literal: tokens from standard-alphabet encoders carry it
    unescaped.
    """
    query = urlsplit(url).query
    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        if key == MICROSITE_PARAM:
            return unquote(value)
    return None


def load_microsite(url: str) -> MicrositeConfig | None:
    """Decode the page carried by ``url``; None if missing or invalid."""
    token = extract_token(url)
    if token is None:
        audit("microsite.param_missing", logger=log, url=url[:80])
        return None
    return deserialize(token)
