"""Field model: one typed, immutable field set per content kind."""

from dataclasses import dataclass, fields as dataclass_fields
from enum import Enum
from typing import Mapping


class ContentKind(str, Enum):
    URL = "url"
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"
    WIFI = "wifi"
    VCARD = "vcard"
    LOCATION = "location"
    EVENT = "event"
    CRYPTO = "crypto"
    WHATSAPP = "whatsapp"
    PAYPAL = "paypal"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TWITTER = "twitter"
    YOUTUBE = "youtube"
    IMAGE = "image"
    FILE = "file"
    MICROSITE = "microsite"


# ---------------------------------------------------------------------------
# Per-kind field sets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UrlFields:
    url: str = ""


@dataclass(frozen=True)
class TextFields:
    text: str = ""


@dataclass(frozen=True)
class EmailFields:
    email: str = ""
    subject: str = ""
    body: str = ""


@dataclass(frozen=True)
class PhoneFields:
    phone: str = ""


@dataclass(frozen=True)
class SmsFields:
    phone: str = ""
    message: str = ""


@dataclass(frozen=True)
class WifiFields:
    """WiFi join credentials. ``encryption`` is WPA, WEP or nopass."""
    ssid: str = ""
    password: str = ""
    encryption: str = "WPA"


@dataclass(frozen=True)
class VCardFields:
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    org: str = ""
    url: str = ""


@dataclass(frozen=True)
class LocationFields:
    lat: str = ""
    lng: str = ""


@dataclass(frozen=True)
class EventFields:
    """Calendar event. ``start``/``end`` are local datetimes like 2025-06-01T18:30."""
    title: str = ""
    location: str = ""
    start: str = ""
    end: str = ""


@dataclass(frozen=True)
class CryptoFields:
    """Payment request. ``coin`` is the URI scheme: bitcoin, ethereum, litecoin."""
    coin: str = "bitcoin"
    address: str = ""
    amount: str = ""


@dataclass(frozen=True)
class WhatsAppFields:
    phone: str = ""
    message: str = ""


@dataclass(frozen=True)
class PayPalFields:
    username: str = ""
    amount: str = ""


@dataclass(frozen=True)
class InstagramFields:
    username: str = ""


@dataclass(frozen=True)
class FacebookFields:
    username: str = ""


@dataclass(frozen=True)
class TwitterFields:
    username: str = ""


@dataclass(frozen=True)
class YouTubeFields:
    url: str = ""


@dataclass(frozen=True)
class ImageFields:
    url: str = "https://"


@dataclass(frozen=True)
class FileFields:
    url: str = ""


ContentFields = (
    UrlFields | TextFields | EmailFields | PhoneFields | SmsFields | WifiFields
    | VCardFields | LocationFields | EventFields | CryptoFields | WhatsAppFields
    | PayPalFields | InstagramFields | FacebookFields | TwitterFields
    | YouTubeFields | ImageFields | FileFields
)

FIELD_TYPES: dict[ContentKind, type] = {
    ContentKind.URL: UrlFields,
    ContentKind.TEXT: TextFields,
    ContentKind.EMAIL: EmailFields,
    ContentKind.PHONE: PhoneFields,
    ContentKind.SMS: SmsFields,
    ContentKind.WIFI: WifiFields,
    ContentKind.VCARD: VCardFields,
    ContentKind.LOCATION: LocationFields,
    ContentKind.EVENT: EventFields,
    ContentKind.CRYPTO: CryptoFields,
    ContentKind.WHATSAPP: WhatsAppFields,
    ContentKind.PAYPAL: PayPalFields,
    ContentKind.INSTAGRAM: InstagramFields,
    ContentKind.FACEBOOK: FacebookFields,
    ContentKind.TWITTER: TwitterFields,
    ContentKind.YOUTUBE: YouTubeFields,
    ContentKind.IMAGE: ImageFields,
    ContentKind.FILE: FileFields,
}

KIND_OF: dict[type, ContentKind] = {cls: kind for kind, cls in FIELD_TYPES.items()}

# Field keys used by the web form, which kept every kind in one flat record
FORM_ALIASES: dict[ContentKind, dict[str, str]] = {
    ContentKind.SMS: {"smsPhone": "phone", "smsMessage": "message"},
    ContentKind.VCARD: {
        "vFirstName": "first_name", "vLastName": "last_name", "vPhone": "phone",
        "vEmail": "email", "vOrg": "org", "vUrl": "url",
        "firstName": "first_name", "lastName": "last_name",
    },
    ContentKind.EVENT: {
        "eventTitle": "title", "eventLocation": "location",
        "eventStart": "start", "eventEnd": "end",
    },
    ContentKind.CRYPTO: {
        "cryptoType": "coin", "cryptoAddress": "address", "cryptoAmount": "amount",
    },
    ContentKind.WHATSAPP: {"whatsappPhone": "phone", "whatsappMessage": "message"},
    ContentKind.PAYPAL: {"paypalUsername": "username", "paypalAmount": "amount", "user": "username"},
    ContentKind.INSTAGRAM: {"user": "username"},
    ContentKind.FACEBOOK: {"user": "username"},
    ContentKind.TWITTER: {"user": "username"},
}


def field_names(kind: ContentKind) -> list[str]:
    """Names of the fields owned by ``kind`` (empty for microsite)."""
    cls = FIELD_TYPES.get(kind)
    if cls is None:
        return []
    return [f.name for f in dataclass_fields(cls)]


def fields_for(kind: ContentKind, values: Mapping[str, object] | None = None) -> ContentFields:
    """Build the typed field set for ``kind`` from a flat mapping.

    Keys outside the kind's field set are ignored, so a snapshot holding
    every kind's fields can be passed as-is. ``None`` values count as
    missing and fall back to the field default. Other values are coerced
    with ``str``.

    Raises:
        KeyError: ``kind`` has no field set (microsite).
    """
    cls = FIELD_TYPES[kind]
    known = set(field_names(kind))
    aliases = FORM_ALIASES.get(kind, {})
    kwargs: dict[str, str] = {}
    for key, value in (values or {}).items():
        if value is None:
            continue
        name = key if key in known else aliases.get(key)
        # Canonical keys win over aliases
        if name is None or (name in kwargs and key not in known):
            continue
        kwargs[name] = value if isinstance(value, str) else str(value)
    return cls(**kwargs)
