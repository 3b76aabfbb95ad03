"""QR symbol matrix via the qrcode library, plus finder-pattern geometry."""

from dataclasses import dataclass
from enum import Enum

import qrcode
import qrcode.constants
from qrcode.exceptions import DataOverflowError

from qrpro.logging import audit, get_logger, trace

log = get_logger("generator")

FINDER_SIZE = 7


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}


class PayloadTooLargeError(ValueError):
    """The payload does not fit in a version 40 symbol at the chosen ECC level."""


@dataclass(frozen=True)
class ModuleMatrix:
    version: int
    size: int
    modules: tuple[tuple[bool, ...], ...]

    def is_dark(self, row: int, col: int) -> bool:
        return self.modules[row][col]


def finder_origins(size: int) -> list[tuple[int, int]]:
    """Top-left corners of the three finder patterns: TL, TR, BL."""
    return [(0, 0), (0, size - FINDER_SIZE), (size - FINDER_SIZE, 0)]


def in_finder(row: int, col: int, size: int) -> bool:
    for orig_r, orig_c in finder_origins(size):
        if orig_r <= row < orig_r + FINDER_SIZE and orig_c <= col < orig_c + FINDER_SIZE:
            return True
    return False


@trace(redact=True)
def build_matrix(data: str, ecc: str = "M") -> ModuleMatrix:
    """Encode ``data`` (UTF-8, byte mode) at the smallest fitting version.

    Raises:
        PayloadTooLargeError: ``data`` exceeds version 40 capacity.
    """
    ecc_level = ECC_NAMES[ecc.upper()]
    qr = qrcode.QRCode(
        version=None,
        error_correction=ecc_level.value,
        box_size=1,
        border=0,
    )
    qr.add_data(data)
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as exc:
        audit("qr.overflow", logger=log, length=len(data), ecc=ecc.upper())
        raise PayloadTooLargeError(
            f"payload of {len(data)} characters does not fit at ECC level {ecc.upper()}"
        ) from exc

    size = qr.version * 4 + 17
    modules = tuple(tuple(bool(m) for m in row) for row in qr.modules)
    audit("qr.matrix_built", logger=log,
          version=qr.version, size=f"{size}x{size}", ecc=ecc.upper(), length=len(data))
    return ModuleMatrix(version=qr.version, size=size, modules=modules)
