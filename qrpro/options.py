"""Visual options: the full configuration surface handed to the renderer.

The struct is flat and immutable. No field is derived from another and
each validates on its own, with one cross-field rule: ``width`` must leave
at least a version 1 symbol (21px) inside the two ``margin`` bands.
Changing a field means building a new object with ``replace``, so a
renderer can spot a change with one ``==``.

The dict form (``to_dict``/``from_dict``) uses the camelCase wire names of
the render contract:

    color, backgroundColor, gradient, gradientType, gradientColor1,
    gradientColor2, gradientRotation, dotStyle, cornerSquareStyle,
    cornerSquareColor, cornerDotStyle, cornerDotColor, logoUrl, logoSize,
    logoMargin, hideBackgroundDots, errorCorrectionLevel, margin, width
"""

import dataclasses
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from PIL import ImageColor

from qrpro.logging import get_logger

log = get_logger("options")

LOGO_SIZE_MIN = 0.1
LOGO_SIZE_MAX = 0.4
MIN_SYMBOL_PX = 21


class InvalidOptionsError(ValueError):
    pass


class DotStyle(str, Enum):
    SQUARE = "square"
    ROUNDED = "rounded"
    DOTS = "dots"
    CLASSY = "classy"
    CLASSY_ROUNDED = "classy-rounded"


class CornerSquareStyle(str, Enum):
    SQUARE = "square"
    DOT = "dot"
    EXTRA_ROUNDED = "extra-rounded"


class CornerDotStyle(str, Enum):
    SQUARE = "square"
    DOT = "dot"


class GradientType(str, Enum):
    LINEAR = "linear"
    RADIAL = "radial"


class ErrorCorrection(str, Enum):
    L = "L"  # 7%
    M = "M"  # 15%
    Q = "Q"  # 25%
    H = "H"  # 30%


def _check_color(name: str, value: str) -> None:
    try:
        ImageColor.getrgb(value)
    except (ValueError, AttributeError, TypeError):
        raise InvalidOptionsError(f"{name}: not a color: {value!r}") from None


def _coerce_enum(name: str, enum_cls: type[Enum], value: Any) -> Enum:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidOptionsError(f"{name}: {value!r} is not one of {allowed}") from None


@dataclass(frozen=True)
class Gradient:
    """Two-stop gradient for the data dots. ``rotation`` is in degrees."""
    type: GradientType = GradientType.LINEAR
    color1: str = "#000000"
    color2: str = "#4f46e5"
    rotation: float = 0

    def __post_init__(self):
        object.__setattr__(self, "type", _coerce_enum("gradientType", GradientType, self.type))
        _check_color("gradientColor1", self.color1)
        _check_color("gradientColor2", self.color2)
        if not 0 <= self.rotation <= 360:
            raise InvalidOptionsError(f"gradientRotation: {self.rotation} outside 0-360")


@dataclass(frozen=True)
class LogoOptions:
    """Centered logo. ``size`` is a fraction of the symbol width."""
    image: str
    size: float = 0.2
    margin: int = 10
    hide_background_dots: bool = True

    def __post_init__(self):
        if not self.image:
            raise InvalidOptionsError("logoUrl: empty image reference")
        if not LOGO_SIZE_MIN <= self.size <= LOGO_SIZE_MAX:
            raise InvalidOptionsError(
                f"logoSize: {self.size} outside {LOGO_SIZE_MIN}-{LOGO_SIZE_MAX}"
            )
        if self.margin < 0:
            raise InvalidOptionsError(f"logoMargin: {self.margin} is negative")


@dataclass(frozen=True)
class VisualOptions:
    color: str = "#000000"
    background_color: str = "#ffffff"
    gradient: Gradient | None = None
    dot_style: DotStyle = DotStyle.SQUARE
    corner_square_style: CornerSquareStyle = CornerSquareStyle.SQUARE
    corner_square_color: str = "#000000"
    corner_dot_style: CornerDotStyle = CornerDotStyle.SQUARE
    corner_dot_color: str = "#000000"
    logo: LogoOptions | None = None
    error_correction: ErrorCorrection = ErrorCorrection.M
    margin: int = 10
    width: int = 300

    def __post_init__(self):
        for name, cls in (
            ("dot_style", DotStyle),
            ("corner_square_style", CornerSquareStyle),
            ("corner_dot_style", CornerDotStyle),
            ("error_correction", ErrorCorrection),
        ):
            value = getattr(self, name)
            if name == "error_correction" and isinstance(value, str):
                value = value.upper()
            object.__setattr__(self, name, _coerce_enum(name, cls, value))
        for name in ("color", "background_color", "corner_square_color", "corner_dot_color"):
            _check_color(name, getattr(self, name))
        if self.margin < 0:
            raise InvalidOptionsError(f"margin: {self.margin} is negative")
        if self.width < MIN_SYMBOL_PX + 2 * self.margin:
            raise InvalidOptionsError(
                f"width: {self.width}px leaves no room for the symbol with margin {self.margin}px"
            )

    def replace(self, **changes: Any) -> "VisualOptions":
        """New options with ``changes`` applied; ``self`` is untouched."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        gradient = self.gradient or Gradient()
        data: dict[str, Any] = {
            "color": self.color,
            "backgroundColor": self.background_color,
            "gradient": self.gradient is not None,
            "gradientType": gradient.type.value,
            "gradientColor1": gradient.color1,
            "gradientColor2": gradient.color2,
            "gradientRotation": gradient.rotation,
            "dotStyle": self.dot_style.value,
            "cornerSquareStyle": self.corner_square_style.value,
            "cornerSquareColor": self.corner_square_color,
            "cornerDotStyle": self.corner_dot_style.value,
            "cornerDotColor": self.corner_dot_color,
            "errorCorrectionLevel": self.error_correction.value,
            "margin": self.margin,
            "width": self.width,
        }
        logo = self.logo
        if logo is not None:
            data["logoUrl"] = logo.image
        data["logoSize"] = logo.size if logo else LogoOptions.size
        data["logoMargin"] = logo.margin if logo else LogoOptions.margin
        data["hideBackgroundDots"] = logo.hide_background_dots if logo else LogoOptions.hide_background_dots
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VisualOptions":
        """Build options from the camelCase wire form; missing keys take defaults."""
        if not isinstance(data, dict):
            raise InvalidOptionsError("options must be an object")
        defaults = cls()
        try:
            gradient = None
            if data.get("gradient"):
                base = Gradient()
                gradient = Gradient(
                    type=data.get("gradientType", base.type),
                    color1=data.get("gradientColor1", base.color1),
                    color2=data.get("gradientColor2", base.color2),
                    rotation=float(data.get("gradientRotation", base.rotation)),
                )
            logo = None
            if data.get("logoUrl"):
                logo = LogoOptions(
                    image=data["logoUrl"],
                    size=float(data.get("logoSize", LogoOptions.size)),
                    margin=int(data.get("logoMargin", LogoOptions.margin)),
                    hide_background_dots=bool(
                        data.get("hideBackgroundDots", LogoOptions.hide_background_dots)
                    ),
                )
            return cls(
                color=data.get("color", defaults.color),
                background_color=data.get("backgroundColor", defaults.background_color),
                gradient=gradient,
                dot_style=data.get("dotStyle", defaults.dot_style),
                corner_square_style=data.get("cornerSquareStyle", defaults.corner_square_style),
                corner_square_color=data.get("cornerSquareColor", defaults.corner_square_color),
                corner_dot_style=data.get("cornerDotStyle", defaults.corner_dot_style),
                corner_dot_color=data.get("cornerDotColor", defaults.corner_dot_color),
                logo=logo,
                error_correction=data.get("errorCorrectionLevel", defaults.error_correction),
                margin=int(data.get("margin", defaults.margin)),
                width=int(data.get("width", defaults.width)),
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, InvalidOptionsError):
                raise
            raise InvalidOptionsError(str(exc)) from exc


def load_options(path: str | Path) -> VisualOptions:
    """Read options from a JSON file in the camelCase wire form."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    options = VisualOptions.from_dict(data)
    log.info("Loaded options from %s", path)
    return options


def save_options(options: VisualOptions, path: str | Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(options.to_dict(), f, indent=2)
