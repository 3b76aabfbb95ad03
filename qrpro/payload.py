"""Resolve what goes into the symbol: kind + field snapshot -> ContentDescriptor.

The descriptor is rebuilt in full from a snapshot on every edit and is
never patched, so it cannot hold a half-built payload.
"""

from dataclasses import dataclass
from typing import Mapping

from qrpro.capacity import CapacityLevel, classify
from qrpro.encoder import encode
from qrpro.fields import ContentKind
from qrpro.logging import get_logger
from qrpro.microsite import DEFAULT_CONFIG, MicrositeConfig, build_microsite_url

log = get_logger("payload")

DEFAULT_VIEWER_URL = "http://localhost:8080/"


@dataclass(frozen=True)
class ContentDescriptor:
    kind: ContentKind
    payload: str

    @property
    def capacity(self) -> CapacityLevel:
        return classify(len(self.payload))


def describe(
    kind: ContentKind | str,
    fields: Mapping[str, object] | None = None,
    *,
    microsite: MicrositeConfig | None = None,
    base_url: str = DEFAULT_VIEWER_URL,
    escape: bool = False,
) -> ContentDescriptor:
    """Build the descriptor for ``kind``.

    Microsites become ``{base_url}?p=<token>``; ``microsite`` defaults to
    the starter page. Everything else goes through the content encoder.

    Raises:
        ValueError: ``kind`` is not a ContentKind.
    """
    kind = ContentKind(kind)
    if kind is ContentKind.MICROSITE:
        payload = build_microsite_url(microsite or DEFAULT_CONFIG, base_url)
    else:
        payload = encode(kind, fields, escape=escape)
    descriptor = ContentDescriptor(kind=kind, payload=payload)
    if descriptor.capacity is not CapacityLevel.OK:
        log.warning("payload length %d is %s for reliable scanning",
                    len(payload), descriptor.capacity.value)
    return descriptor
