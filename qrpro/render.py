"""Render adapter: payload + VisualOptions -> styled QR image and exports.

Raster pipeline:
    1. module matrix (qrcode) at the requested ECC level
    2. data dots drawn into an alpha mask in the chosen dot style
    3. foreground fill: solid color, or a linear/radial two-stop gradient
    4. finder patterns redrawn with corner-square / corner-dot styles
    5. optional centered logo, clearing the dots beneath it if asked
    6. scaled to ``width - 2 * margin`` and padded with the quiet zone

SVG export goes through segno with solid colors only.
"""

import io
import math
from enum import Enum
from pathlib import Path

import numpy as np
import segno
from PIL import Image, ImageColor, ImageDraw, ImageOps

from qrpro.generator import (
    FINDER_SIZE,
    ModuleMatrix,
    PayloadTooLargeError,
    build_matrix,
    finder_origins,
    in_finder,
)
from qrpro.logging import audit, get_logger, trace
from qrpro.options import (
    CornerDotStyle,
    CornerSquareStyle,
    DotStyle,
    Gradient,
    GradientType,
    LogoOptions,
    VisualOptions,
)

log = get_logger("render")

# Internal module size; the final image is resampled to the requested width
MIN_BOX_SIZE = 8
EMPTY_PAYLOAD = " "


class ExportError(ValueError):
    pass


class ExportFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"
    SVG = "svg"

    @classmethod
    def parse(cls, value: "ExportFormat | str") -> "ExportFormat":
        if isinstance(value, cls):
            return value
        name = str(value).lower().lstrip(".")
        if name == "jpg":
            name = "jpeg"
        try:
            return cls(name)
        except ValueError:
            raise ExportError(f"unsupported export format {value!r}") from None


def _rgb(color: str) -> tuple[int, int, int]:
    return ImageColor.getrgb(color)[:3]


# ---------------------------------------------------------------------------
# Dots
# ---------------------------------------------------------------------------

def _draw_module(draw: ImageDraw.ImageDraw, px: int, py: int, box: int, style: DotStyle) -> None:
    """Draw one dark module into the mask (fill 255)."""
    gap = max(1, box // 8)
    if style is DotStyle.DOTS:
        draw.ellipse([px + gap, py + gap, px + box - 1 - gap, py + box - 1 - gap], fill=255)
    elif style is DotStyle.ROUNDED:
        draw.rounded_rectangle([px, py, px + box - 1, py + box - 1], radius=max(1, box // 3), fill=255)
    elif style is DotStyle.CLASSY:
        draw.rectangle([px + gap, py + gap, px + box - 1 - gap, py + box - 1 - gap], fill=255)
    elif style is DotStyle.CLASSY_ROUNDED:
        draw.rounded_rectangle(
            [px + gap, py + gap, px + box - 1 - gap, py + box - 1 - gap],
            radius=max(1, box // 2 - gap), fill=255,
        )
    else:  # square
        draw.rectangle([px, py, px + box - 1, py + box - 1], fill=255)


def _dot_mask(matrix: ModuleMatrix, box: int, style: DotStyle) -> Image.Image:
    side = matrix.size * box
    mask = Image.new("L", (side, side), 0)
    draw = ImageDraw.Draw(mask)
    for r in range(matrix.size):
        for c in range(matrix.size):
            if matrix.is_dark(r, c) and not in_finder(r, c, matrix.size):
                _draw_module(draw, c * box, r * box, box, style)
    return mask


# ---------------------------------------------------------------------------
# Foreground fill
# ---------------------------------------------------------------------------

def gradient_layer(gradient: Gradient, size: tuple[int, int]) -> Image.Image:
    """Two-stop gradient image.

    Linear gradients run along ``rotation`` degrees (0 = left to right,
    clockwise). Radial gradients go from the center out to the corners.
    """
    w, h = size
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
    cx, cy = (w - 1) / 2.0, (h - 1) / 2.0
    if gradient.type is GradientType.RADIAL:
        dist = np.hypot(xs - cx, ys - cy)
        t = dist / max(math.hypot(cx, cy), 1e-9)
    else:
        theta = math.radians(gradient.rotation)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        proj = (xs - cx) * cos_t + (ys - cy) * sin_t
        half = (abs(cos_t) * w + abs(sin_t) * h) / 2.0
        t = (proj + half) / max(2 * half, 1e-9)
    t = np.clip(t, 0.0, 1.0)[..., None]

    c1 = np.array(_rgb(gradient.color1), dtype=np.float64)
    c2 = np.array(_rgb(gradient.color2), dtype=np.float64)
    arr = c1 * (1.0 - t) + c2 * t
    return Image.fromarray(np.round(arr).astype(np.uint8), "RGB")


def _foreground(options: VisualOptions, size: tuple[int, int]) -> Image.Image:
    if options.gradient is not None:
        return gradient_layer(options.gradient, size)
    return Image.new("RGB", size, _rgb(options.color))


# ---------------------------------------------------------------------------
# Corners (finder patterns)
# ---------------------------------------------------------------------------

def _draw_corners(draw: ImageDraw.ImageDraw, matrix: ModuleMatrix, box: int,
                  options: VisualOptions) -> None:
    """Draw the three finders: 7x7 ring in the corner-square style, 3x3 center dot."""
    bg = _rgb(options.background_color)
    ring_color = _rgb(options.corner_square_color)
    dot_color = _rgb(options.corner_dot_color)
    fpx = FINDER_SIZE * box

    for orig_r, orig_c in finder_origins(matrix.size):
        ox, oy = orig_c * box, orig_r * box
        outer = [ox, oy, ox + fpx - 1, oy + fpx - 1]
        inner = [ox + box, oy + box, ox + fpx - 1 - box, oy + fpx - 1 - box]
        center = [ox + 2 * box, oy + 2 * box, ox + fpx - 1 - 2 * box, oy + fpx - 1 - 2 * box]

        style = options.corner_square_style
        if style is CornerSquareStyle.DOT:
            draw.ellipse(outer, fill=ring_color)
            draw.ellipse(inner, fill=bg)
        elif style is CornerSquareStyle.EXTRA_ROUNDED:
            radius = int(box * 2.5)
            draw.rounded_rectangle(outer, radius=radius, fill=ring_color)
            draw.rounded_rectangle(inner, radius=max(1, int(box * 1.5)), fill=bg)
        else:
            draw.rectangle(outer, fill=ring_color)
            draw.rectangle(inner, fill=bg)

        if options.corner_dot_style is CornerDotStyle.DOT:
            draw.ellipse(center, fill=dot_color)
        else:
            draw.rectangle(center, fill=dot_color)


# ---------------------------------------------------------------------------
# Logo
# ---------------------------------------------------------------------------

def _scale_preserving_aspect(original_size: tuple[int, int], target: int) -> tuple[int, int]:
    """Scale (w, h) so the larger dimension equals *target*, preserving aspect."""
    w, h = original_size
    aspect = w / h
    if aspect >= 1:
        return target, max(1, int(target / aspect))
    return max(1, int(target * aspect)), target


def _load_logo(logo: LogoOptions) -> Image.Image | None:
    try:
        with Image.open(logo.image) as img:
            return img.convert("RGBA")
    except OSError as exc:
        audit("render.logo_skipped", logger=log, image=logo.image[:80], error=str(exc))
        return None


def _fit_logo(logo_img: Image.Image, side: int, logo: LogoOptions) -> tuple[Image.Image, int, int]:
    """Resize the logo to ``logo.size`` of the symbol; return it with its centered offset."""
    new_w, new_h = _scale_preserving_aspect(logo_img.size, max(1, int(side * logo.size)))
    resized = logo_img.resize((new_w, new_h), Image.LANCZOS)
    return resized, (side - new_w) // 2, (side - new_h) // 2


def _clear_under_logo(mask: Image.Image, resized: Image.Image, x_off: int, y_off: int,
                      margin_px: int) -> None:
    new_w, new_h = resized.size
    ImageDraw.Draw(mask).rectangle(
        [x_off - margin_px, y_off - margin_px,
         x_off + new_w - 1 + margin_px, y_off + new_h - 1 + margin_px],
        fill=0,
    )


# ---------------------------------------------------------------------------
# Full render
# ---------------------------------------------------------------------------

@trace(redact=True)
def render_image(payload: str, options: VisualOptions) -> Image.Image:
    """Render ``payload`` with ``options`` to an RGB image of ``options.width`` px.

    Raises:
        PayloadTooLargeError: the payload exceeds QR capacity at this ECC level.
    """
    matrix = build_matrix(payload or EMPTY_PAYLOAD, options.error_correction.value)
    symbol_px = options.width - 2 * options.margin
    box = max(MIN_BOX_SIZE, math.ceil(symbol_px / matrix.size))
    side = matrix.size * box

    mask = _dot_mask(matrix, box, options.dot_style)
    logo = options.logo
    logo_img = _load_logo(logo) if logo is not None else None
    if logo_img is not None:
        logo_img, x_off, y_off = _fit_logo(logo_img, side, logo)
        if logo.hide_background_dots:
            # logo.margin is in output pixels
            _clear_under_logo(mask, logo_img, x_off, y_off, round(logo.margin * side / symbol_px))

    background = Image.new("RGB", (side, side), _rgb(options.background_color))
    canvas = Image.composite(_foreground(options, (side, side)), background, mask)
    _draw_corners(ImageDraw.Draw(canvas), matrix, box, options)
    if logo_img is not None:
        canvas.paste(logo_img, (x_off, y_off), logo_img)

    img = canvas.resize((symbol_px, symbol_px), Image.LANCZOS)
    if options.margin:
        img = ImageOps.expand(img, border=options.margin, fill=_rgb(options.background_color))

    audit("render.image", logger=log,
          version=matrix.version, modules=matrix.size, width=img.size[0],
          dot_style=options.dot_style.value, gradient=options.gradient is not None,
          logo=logo_img is not None)
    return img


@trace(redact=True)
def render_svg(payload: str, options: VisualOptions) -> bytes:
    """SVG of ``payload`` via segno: colors, ECC level and quiet zone only.

    Raises:
        PayloadTooLargeError: the payload exceeds QR capacity at this ECC level.
    """
    data = payload or EMPTY_PAYLOAD
    try:
        qr = segno.make_qr(data, error=options.error_correction.value.lower(), boost_error=False)
    except segno.DataOverflowError as exc:
        audit("qr.overflow", logger=log, length=len(data), ecc=options.error_correction.value)
        raise PayloadTooLargeError(
            f"payload of {len(data)} characters does not fit at ECC level {options.error_correction.value}"
        ) from exc
    modules = qr.symbol_size(scale=1, border=0)[0]
    symbol_px = options.width - 2 * options.margin
    scale = symbol_px / modules
    dark = options.gradient.color1 if options.gradient is not None else options.color

    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=scale, border=round(options.margin / scale),
            dark=dark, light=options.background_color)
    return buf.getvalue()


class QRRenderer:
    """Stateful adapter around ``render_image`` with idempotent updates.

    ``update`` with the same payload and options as before changes nothing
    and keeps the cached image. Exports reuse that cache.
    """

    def __init__(self, payload: str = "", options: VisualOptions | None = None):
        self._payload: str | None = None
        self._options = options or VisualOptions()
        self._image: Image.Image | None = None
        self.update(payload, self._options)

    @property
    def payload(self) -> str:
        return self._payload

    @property
    def options(self) -> VisualOptions:
        return self._options

    def update(self, payload: str, options: VisualOptions | None = None) -> bool:
        """Apply new state; returns False when nothing changed."""
        payload = payload or EMPTY_PAYLOAD
        options = options if options is not None else self._options
        if payload == self._payload and options == self._options:
            log.debug("update: unchanged")
            return False
        self._payload = payload
        self._options = options
        self._image = None
        return True

    def render(self) -> Image.Image:
        if self._image is None:
            self._image = render_image(self._payload, self._options)
        return self._image

    def export(self, fmt: ExportFormat | str = ExportFormat.PNG) -> bytes:
        """Encoded image bytes in ``fmt`` (png, jpeg, webp, svg)."""
        fmt = ExportFormat.parse(fmt)
        if fmt is ExportFormat.SVG:
            data = render_svg(self._payload, self._options)
        else:
            buf = io.BytesIO()
            self.render().save(buf, format=fmt.value.upper())
            data = buf.getvalue()
        audit("render.exported", logger=log, format=fmt.value, bytes=len(data))
        return data

    def raw_data(self) -> bytes:
        """PNG bytes, for placing the image on a clipboard."""
        return self.export(ExportFormat.PNG)

    def save(self, path: str | Path, fmt: ExportFormat | str | None = None) -> Path:
        """Write the export to ``path``; the format defaults to the file suffix."""
        path = Path(path)
        fmt = ExportFormat.parse(fmt if fmt is not None else (path.suffix or ".png"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.export(fmt))
        audit("render.saved", logger=log, path=str(path), format=fmt.value)
        return path
