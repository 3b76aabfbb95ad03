"""Content Encoder: typed content -> the exact payload string a QR scanner expects.

Each kind maps to one fixed format (mailto:, tel:, SMSTO:, WIFI:, geo:,
vCard 3.0, VEVENT, coin URIs, wa.me, paypal.me, social profile URLs).
Encoding is total: it never raises, and missing fields become empty
segments. Values are inserted verbatim unless a format says otherwise.
Delimiter escaping for WIFI/vCard/VEVENT is opt-in through ``escape=True``.
"""

import re
from typing import Callable, Mapping
from urllib.parse import quote

from qrpro.fields import (
    KIND_OF,
    ContentFields,
    ContentKind,
    CryptoFields,
    EmailFields,
    EventFields,
    FacebookFields,
    FileFields,
    ImageFields,
    InstagramFields,
    LocationFields,
    PayPalFields,
    PhoneFields,
    SmsFields,
    TextFields,
    TwitterFields,
    UrlFields,
    VCardFields,
    WhatsAppFields,
    WifiFields,
    YouTubeFields,
    fields_for,
)
from qrpro.logging import get_logger, trace

log = get_logger("encoder")

YOUTUBE_FALLBACK = "https://youtube.com"

# encodeURIComponent leaves these unescaped besides ASCII letters and digits
_URI_COMPONENT_SAFE = "-_.!~*'()"

_NON_DIGITS = re.compile(r"\D")
_TIMESTAMP_SEPARATORS = re.compile(r"[-:]")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def uri_component(value: str) -> str:
    """Percent-encode UTF-8 text the way ``encodeURIComponent`` does."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def compact_timestamp(value: str) -> str:
    """2025-06-01T18:30 -> 20250601T1830"""
    return _TIMESTAMP_SEPARATORS.sub("", value)


def escape_wifi(value: str) -> str:
    """Backslash-escape the WIFI: delimiters (\\ ; , : ")."""
    return re.sub(r'([\\;,:"])', r"\\\1", value)


def escape_text(value: str) -> str:
    """RFC 6350 / RFC 5545 TEXT escaping."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _handle(value: str) -> str:
    return value.removeprefix("@")


# ---------------------------------------------------------------------------
# Per-kind formatters
# ---------------------------------------------------------------------------

def _verbatim(content, escape: bool) -> str:
    return content.url


def _text(content: TextFields, escape: bool) -> str:
    return content.text


def _youtube(content: YouTubeFields, escape: bool) -> str:
    return content.url or YOUTUBE_FALLBACK


def _email(content: EmailFields, escape: bool) -> str:
    return (
        f"mailto:{content.email}"
        f"?subject={uri_component(content.subject)}"
        f"&body={uri_component(content.body)}"
    )


def _phone(content: PhoneFields, escape: bool) -> str:
    return f"tel:{content.phone}"


def _sms(content: SmsFields, escape: bool) -> str:
    return f"SMSTO:{content.phone}:{content.message}"


def _whatsapp(content: WhatsAppFields, escape: bool) -> str:
    payload = f"https://wa.me/{digits_only(content.phone)}"
    if content.message:
        payload += f"?text={uri_component(content.message)}"
    return payload


def _wifi(content: WifiFields, escape: bool) -> str:
    esc = escape_wifi if escape else str
    return f"WIFI:T:{content.encryption};S:{esc(content.ssid)};P:{esc(content.password)};;"


def _location(content: LocationFields, escape: bool) -> str:
    return f"geo:{content.lat},{content.lng}"


def _crypto(content: CryptoFields, escape: bool) -> str:
    return f"{content.coin}:{content.address}?amount={content.amount}"


def _paypal(content: PayPalFields, escape: bool) -> str:
    payload = f"https://paypal.me/{content.username}"
    if content.amount:
        payload += f"/{content.amount}"
    return payload


def _instagram(content: InstagramFields, escape: bool) -> str:
    return f"https://instagram.com/{_handle(content.username)}"


def _twitter(content: TwitterFields, escape: bool) -> str:
    return f"https://x.com/{_handle(content.username)}"


def _facebook(content: FacebookFields, escape: bool) -> str:
    return f"https://facebook.com/{content.username}"


def _vcard(content: VCardFields, escape: bool) -> str:
    esc = escape_text if escape else str
    first, last = esc(content.first_name), esc(content.last_name)
    return "\n".join([
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"N:{last};{first}",
        f"FN:{first} {last}",
        f"ORG:{esc(content.org)}",
        f"TEL:{content.phone}",
        f"EMAIL:{content.email}",
        f"URL:{content.url}",
        "END:VCARD",
    ])


def _event(content: EventFields, escape: bool) -> str:
    esc = escape_text if escape else str
    return "\n".join([
        "BEGIN:VEVENT",
        f"SUMMARY:{esc(content.title)}",
        f"LOCATION:{esc(content.location)}",
        f"DTSTART:{compact_timestamp(content.start)}",
        f"DTEND:{compact_timestamp(content.end)}",
        "END:VEVENT",
    ])


FORMATTERS: dict[type, Callable[..., str]] = {
    UrlFields: _verbatim,
    TextFields: _text,
    ImageFields: _verbatim,
    FileFields: _verbatim,
    YouTubeFields: _youtube,
    EmailFields: _email,
    PhoneFields: _phone,
    SmsFields: _sms,
    WhatsAppFields: _whatsapp,
    WifiFields: _wifi,
    LocationFields: _location,
    CryptoFields: _crypto,
    PayPalFields: _paypal,
    InstagramFields: _instagram,
    TwitterFields: _twitter,
    FacebookFields: _facebook,
    VCardFields: _vcard,
    EventFields: _event,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def encode_content(content: ContentFields, *, escape: bool = False) -> str:
    """Encode a typed field set into its payload string.

    Returns an empty string for anything that is not a known field set.
    """
    formatter = FORMATTERS.get(type(content))
    if formatter is None:
        log.debug("no formatter for %s", type(content).__name__)
        return ""
    try:
        return formatter(content, escape)
    except (AttributeError, TypeError, ValueError):
        # Field values set to non-strings by hand; scanners reject bad payloads anyway
        log.warning("encode failed for kind=%s", KIND_OF[type(content)].value, exc_info=True)
        return ""


@trace(redact=True)
def encode(
    kind: ContentKind | str,
    fields: Mapping[str, object] | None = None,
    *,
    escape: bool = False,
) -> str:
    """Encode a flat field snapshot for ``kind`` into its payload string.

    Args:
        kind: A ContentKind or its string value ("wifi", "vcard", ...).
        fields: Field values. Keys not owned by ``kind`` are ignored.
        escape: Escape delimiter characters in WIFI/vCard/VEVENT values.
            Off by default so the output matches what common readers expect.

    Returns:
        The payload, or "" for unknown kinds and for ``microsite`` (whose
        payload comes from the microsite codec).
    """
    try:
        kind = ContentKind(kind)
    except ValueError:
        log.debug("unknown content kind %r", kind)
        return ""
    if kind is ContentKind.MICROSITE:
        return ""
    try:
        content = fields_for(kind, fields)
    except (AttributeError, TypeError, ValueError):
        log.warning("unreadable field snapshot for kind=%s", kind.value, exc_info=True)
        return ""
    return encode_content(content, escape=escape)


if __name__ == "__main__":
    samples = [
        ("wifi", {"encryption": "WPA", "ssid": "Home", "password": "pass123"}),
        ("email", {"email": "a@b.com", "subject": "Hi there", "body": "Hello & welcome"}),
        ("whatsapp", {"phone": "+1 (555) 123-4567", "message": "Hi!"}),
        ("vcard", {"first_name": "Ada", "last_name": "Lovelace", "org": "Analytical Engines"}),
        ("event", {"title": "Launch", "start": "2025-06-01T18:30", "end": "2025-06-01T20:00"}),
    ]
    for kind, values in samples:
        print(f"{kind:10s} {encode(kind, values)!r}")
