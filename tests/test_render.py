import io

import pytest
from PIL import Image

from qrpro.generator import PayloadTooLargeError, build_matrix, finder_origins, in_finder
from qrpro.options import DotStyle, Gradient, LogoOptions, VisualOptions
from qrpro.render import (
    ExportError,
    ExportFormat,
    QRRenderer,
    gradient_layer,
    render_image,
)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _dark(pixel: tuple[int, ...]) -> bool:
    return sum(pixel[:3]) < 150


def test_matrix_geometry() -> None:
    matrix = build_matrix("hi", "M")
    assert matrix.version == 1
    assert matrix.size == 21
    assert finder_origins(21) == [(0, 0), (0, 14), (14, 0)]
    assert in_finder(0, 0, 21) and in_finder(20, 6, 21)
    assert not in_finder(10, 10, 21)
    assert matrix.is_dark(0, 0)


def test_oversized_payload_raises() -> None:
    with pytest.raises(PayloadTooLargeError):
        build_matrix("x" * 5000, "H")


def test_image_width_and_quiet_zone() -> None:
    img = render_image("https://example.com", VisualOptions())
    assert img.size == (300, 300)
    assert img.mode == "RGB"
    assert img.getpixel((2, 2)) == (255, 255, 255)


def test_finder_is_dark_without_margin() -> None:
    img = render_image("https://example.com", VisualOptions(margin=0, width=210))
    assert img.size == (210, 210)
    assert _dark(img.getpixel((3, 3)))


@pytest.mark.parametrize("style", list(DotStyle))
def test_every_dot_style_renders(style: DotStyle) -> None:
    img = render_image("dot styles", VisualOptions(dot_style=style, width=160, margin=8))
    assert img.size == (160, 160)


@pytest.mark.parametrize("corners", [("dot", "dot"), ("extra-rounded", "square"), ("square", "dot")])
def test_corner_styles_use_corner_colors(corners: tuple[str, str]) -> None:
    square_style, dot_style = corners
    options = VisualOptions(
        margin=0, width=210,
        corner_square_style=square_style, corner_dot_style=dot_style,
        corner_square_color="#ff0000", corner_dot_color="#0000ff",
    )
    img = render_image("corners", options)
    # Center of the top-left finder's 3x3 dot
    r, g, b = img.getpixel((35, 35))
    assert b > 200 and r < 60


def test_gradient_layer_directions() -> None:
    linear = gradient_layer(Gradient(color1="#ff0000", color2="#0000ff"), (10, 10))
    left, right = linear.getpixel((0, 5)), linear.getpixel((9, 5))
    assert left[0] > left[2]
    assert right[2] > right[0]

    vertical = gradient_layer(Gradient(color1="#ff0000", color2="#0000ff", rotation=90), (10, 10))
    top, bottom = vertical.getpixel((5, 0)), vertical.getpixel((5, 9))
    assert top[0] > top[2]
    assert bottom[2] > bottom[0]

    radial = gradient_layer(Gradient(type="radial", color1="#ff0000", color2="#0000ff"), (11, 11))
    assert radial.getpixel((5, 5)) == (255, 0, 0)
    corner = radial.getpixel((0, 0))
    assert corner[2] > corner[0]


def test_logo_is_centered(tmp_path) -> None:
    logo_path = tmp_path / "logo.png"
    Image.new("RGBA", (40, 40), (255, 0, 0, 255)).save(logo_path)
    options = VisualOptions(logo=LogoOptions(image=str(logo_path), size=0.3), error_correction="H")
    img = render_image("https://example.com/with-logo", options)
    r, g, b = img.getpixel((150, 150))
    assert r > 200 and g < 60 and b < 60


def test_missing_logo_is_skipped(tmp_path) -> None:
    options = VisualOptions(logo=LogoOptions(image=str(tmp_path / "nope.png")))
    assert render_image("still renders", options).size == (300, 300)


def test_export_formats() -> None:
    renderer = QRRenderer("https://example.com", VisualOptions(width=200))
    assert renderer.export("png").startswith(PNG_MAGIC)
    assert renderer.export(ExportFormat.JPEG).startswith(b"\xff\xd8\xff")
    webp = renderer.export("webp")
    assert webp[:4] == b"RIFF" and webp[8:12] == b"WEBP"
    assert b"<svg" in renderer.export("svg")
    assert renderer.raw_data().startswith(PNG_MAGIC)

    png = Image.open(io.BytesIO(renderer.export("png")))
    assert png.size == (200, 200)


def test_export_format_parsing() -> None:
    assert ExportFormat.parse("jpg") is ExportFormat.JPEG
    assert ExportFormat.parse(".PNG") is ExportFormat.PNG
    with pytest.raises(ExportError):
        ExportFormat.parse("gif")


def test_update_is_idempotent() -> None:
    options = VisualOptions()
    renderer = QRRenderer("same", options)
    first = renderer.render()
    assert renderer.update("same", options) is False
    assert renderer.update("same", VisualOptions()) is False
    assert renderer.render() is first

    assert renderer.update("different") is True
    assert renderer.render() is not first
    assert renderer.update("different", options.replace(color="#ff0000")) is True
    assert renderer.options.color == "#ff0000"


def test_empty_payload_renders() -> None:
    renderer = QRRenderer("")
    assert renderer.payload == " "
    assert renderer.render().size == (300, 300)


def test_save_infers_format(tmp_path) -> None:
    renderer = QRRenderer("saved", VisualOptions(width=120, margin=4))
    path = renderer.save(tmp_path / "out" / "qr.jpg")
    assert path.read_bytes().startswith(b"\xff\xd8\xff")
    svg = renderer.save(tmp_path / "qr.png", fmt="svg")
    assert b"<svg" in svg.read_bytes()


def test_oversized_svg_raises_same_error() -> None:
    renderer = QRRenderer("x" * 5000, VisualOptions(error_correction="H"))
    with pytest.raises(PayloadTooLargeError):
        renderer.export("svg")
    with pytest.raises(PayloadTooLargeError):
        renderer.export("png")
