"""QR Pro CLI: encode payloads, render styled QR codes, build and read microsites."""

import argparse
import json
import sys
from pathlib import Path

from qrpro.capacity import classify_payload
from qrpro.fields import ContentKind
from qrpro.logging import audit, get_logger, setup_logging

log = get_logger("cli")

KINDS = [k.value for k in ContentKind]


def _parse_fields(pairs: list[str] | None) -> dict[str, str]:
    """['ssid=Home', 'password=a=b'] -> {'ssid': 'Home', 'password': 'a=b'}"""
    fields = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"field must look like key=value: {pair!r}")
        fields[key] = value
    return fields


def _load_microsite_file(path: str):
    from qrpro.microsite import MicrositeConfig

    with open(path, encoding="utf-8") as f:
        return MicrositeConfig.from_dict(json.load(f))


def _report_capacity(payload: str) -> None:
    level = classify_payload(payload)
    print(f"capacity: {level.value} ({len(payload)} chars)", file=sys.stderr)


def _build_options(args):
    from qrpro.options import Gradient, LogoOptions, VisualOptions, load_options

    options = load_options(args.options) if args.options else VisualOptions()
    changes = {}
    if args.color:
        changes["color"] = args.color
        if not args.options:
            # Corners follow the dot color unless a file or corner flag sets them
            changes["corner_square_color"] = args.color
            changes["corner_dot_color"] = args.color
    if args.background:
        changes["background_color"] = args.background
    if args.dot_style:
        changes["dot_style"] = args.dot_style
    if args.corner_square_style:
        changes["corner_square_style"] = args.corner_square_style
    if args.corner_square_color:
        changes["corner_square_color"] = args.corner_square_color
    if args.corner_dot_style:
        changes["corner_dot_style"] = args.corner_dot_style
    if args.corner_dot_color:
        changes["corner_dot_color"] = args.corner_dot_color
    if args.ecc:
        changes["error_correction"] = args.ecc
    if args.width is not None:
        changes["width"] = args.width
    if args.margin is not None:
        changes["margin"] = args.margin
    if args.gradient:
        color1, _, color2 = args.gradient.partition(",")
        if not color2:
            raise ValueError("--gradient takes two colors: COLOR1,COLOR2")
        changes["gradient"] = Gradient(type=args.gradient_type, color1=color1, color2=color2,
                                       rotation=args.gradient_rotation)
    if args.logo:
        changes["logo"] = LogoOptions(image=args.logo, size=args.logo_size, margin=args.logo_margin,
                                      hide_background_dots=not args.keep_logo_dots)
    return options.replace(**changes) if changes else options


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_encode(args) -> int:
    """Print the payload for a content kind."""
    from qrpro.payload import describe

    microsite = _load_microsite_file(args.microsite) if args.microsite else None
    descriptor = describe(args.kind, _parse_fields(args.field), microsite=microsite,
                          base_url=args.base_url, escape=args.escape)
    print(descriptor.payload)
    _report_capacity(descriptor.payload)
    return 0


def cmd_generate(args) -> int:
    """Render a styled QR code to a file."""
    from qrpro.payload import describe
    from qrpro.render import QRRenderer

    microsite = _load_microsite_file(args.microsite) if args.microsite else None
    descriptor = describe(args.kind, _parse_fields(args.field), microsite=microsite,
                          base_url=args.base_url, escape=args.escape)
    options = _build_options(args)

    renderer = QRRenderer(descriptor.payload, options)
    path = renderer.save(args.output, fmt=args.format)
    print(f"Generated: {path} ({options.width}x{options.width}, ECC {options.error_correction.value})")
    _report_capacity(descriptor.payload)
    return 0


def cmd_microsite_init(args) -> int:
    """Write the starter microsite config as JSON."""
    from qrpro.microsite import DEFAULT_CONFIG

    text = json.dumps(DEFAULT_CONFIG.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote: {args.output}")
    else:
        print(text)
    return 0


def cmd_microsite_build(args) -> int:
    """Print the viewer URL carrying a microsite config."""
    from qrpro.microsite import build_microsite_url, token_size

    config = _load_microsite_file(args.config)
    url = build_microsite_url(config, args.base_url)
    print(url)
    print(f"token: {token_size(config)} chars, links: {len(config.links)}", file=sys.stderr)
    _report_capacity(url)
    return 0


def cmd_microsite_decode(args) -> int:
    """Print the config carried by a token or viewer URL."""
    from qrpro.microsite import deserialize, load_microsite

    value = args.token
    config = load_microsite(value) if "?" in value or "://" in value else deserialize(value)
    if config is None:
        print("Invalid page data", file=sys.stderr)
        return 1
    print(json.dumps(config.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_serve(args) -> int:
    """Start the microsite viewer."""
    from qrpro.viewer import create_viewer_app

    app = create_viewer_app()
    print(f"Starting microsite viewer on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _add_content_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("kind", choices=KINDS, help="Content kind")
    p.add_argument("-f", "--field", action="append", metavar="KEY=VALUE",
                   help="Field value, repeatable (e.g. -f ssid=Home -f password=secret)")
    p.add_argument("--escape", action="store_true",
                   help="Escape delimiters in WIFI/vCard/VEVENT values")
    p.add_argument("--microsite", default=None, help="Microsite config JSON (kind=microsite)")
    p.add_argument("--base-url", default="http://localhost:8080/", help="Microsite viewer URL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qrpro", description="QR Pro: typed QR payloads and styled rendering")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")
    parser.add_argument("--json-logs", action="store_true", help="JSON log lines on the console")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- encode ---
    p_enc = subparsers.add_parser("encode", help="Print the payload for some content")
    _add_content_args(p_enc)

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Render a styled QR code")
    _add_content_args(p_gen)
    p_gen.add_argument("-o", "--output", default="output/qr.png", help="Output file path")
    p_gen.add_argument("--format", default=None, choices=["png", "jpeg", "webp", "svg"],
                       help="Export format (default: from the output suffix)")
    p_gen.add_argument("--options", default=None, help="Visual options JSON (camelCase keys)")
    p_gen.add_argument("--color", default=None, help="Dot color")
    p_gen.add_argument("--background", default=None, help="Background color")
    p_gen.add_argument("--dot-style", default=None,
                       choices=["square", "rounded", "dots", "classy", "classy-rounded"])
    p_gen.add_argument("--corner-square-style", default=None, choices=["square", "dot", "extra-rounded"])
    p_gen.add_argument("--corner-square-color", default=None)
    p_gen.add_argument("--corner-dot-style", default=None, choices=["square", "dot"])
    p_gen.add_argument("--corner-dot-color", default=None)
    p_gen.add_argument("-e", "--ecc", default=None, choices=["L", "M", "Q", "H"], help="Error correction level")
    p_gen.add_argument("--width", type=int, default=None, help="Output width in pixels")
    p_gen.add_argument("--margin", type=int, default=None, help="Quiet zone in pixels")
    p_gen.add_argument("--gradient", default=None, metavar="COLOR1,COLOR2", help="Two-stop dot gradient")
    p_gen.add_argument("--gradient-type", default="linear", choices=["linear", "radial"])
    p_gen.add_argument("--gradient-rotation", type=float, default=0.0, help="Degrees, 0-360")
    p_gen.add_argument("--logo", default=None, help="Logo image path")
    p_gen.add_argument("--logo-size", type=float, default=0.2, help="Logo width as a fraction of the symbol (0.1-0.4)")
    p_gen.add_argument("--logo-margin", type=int, default=10, help="Clear margin around the logo in pixels")
    p_gen.add_argument("--keep-logo-dots", action="store_true", help="Draw dots underneath the logo")

    # --- microsite ---
    p_site = subparsers.add_parser("microsite", help="Build or read microsite pages")
    p_site.set_defaults(site_parser=p_site)
    site_sub = p_site.add_subparsers(dest="microsite_command")

    p_init = site_sub.add_parser("init", help="Print or write the starter config")
    p_init.add_argument("-o", "--output", default=None, help="Write to this JSON file")

    p_build = site_sub.add_parser("build", help="Encode a config JSON into a viewer URL")
    p_build.add_argument("config", help="Microsite config JSON file")
    p_build.add_argument("--base-url", default="http://localhost:8080/", help="Microsite viewer URL")

    p_decode = site_sub.add_parser("decode", help="Decode a token or viewer URL")
    p_decode.add_argument("token", help="Token, or a URL carrying ?p=<token>")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Start the microsite viewer")
    p_serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    p_serve.add_argument("--port", type=int, default=8080, help="Port to listen on")
    p_serve.add_argument("--debug", action="store_true", help="Enable debug mode")

    return parser


COMMANDS = {
    "encode": cmd_encode,
    "generate": cmd_generate,
    "serve": cmd_serve,
}

MICROSITE_COMMANDS = {
    "init": cmd_microsite_init,
    "build": cmd_microsite_build,
    "decode": cmd_microsite_decode,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging before any command runs
    level = "DEBUG" if args.verbose else "WARNING"
    setup_logging(level=level, log_file=args.log_file, json_format=args.json_logs)

    if args.command is None:
        parser.print_help()
        return 2

    if args.command == "microsite":
        handler = MICROSITE_COMMANDS.get(args.microsite_command)
        if handler is None:
            args.site_parser.print_help()
            return 2
    else:
        handler = COMMANDS[args.command]

    audit("cli.start", logger=log, command=args.command)
    try:
        code = handler(args)
    except (ValueError, OSError) as exc:
        log.debug("command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    audit("cli.done", logger=log, command=args.command, code=code)
    return code


if __name__ == "__main__":
    sys.exit(main())
