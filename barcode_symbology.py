#!/usr/bin/env python3
"""
Barcode symbology selection and encoding
Turns a scanned item code into an EAN-13 or Code 128 module matrix

Selection rule:
- exactly 13 decimal digits -> EAN-13
- anything else            -> Code 128 (subset C for even-length digit
  strings, subset B otherwise)

EAN-13 modules come from python-barcode. Code 128 is built here, the
library switches subsets on its own and the subset must stay fixed.
"""

import enum
import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

from barcode import EAN13
from barcode.errors import BarcodeError

logger = logging.getLogger(__name__)


class Symbology(enum.Enum):
    EAN13 = "EAN13"
    CODE128 = "Code128"


class EncodingError(ValueError):
    """Code cannot be expressed in the chosen symbology"""

    def __init__(self, message, character=None, position=None):
        super().__init__(message)
        self.character = character
        self.position = position


@dataclass(frozen=True)
class ModuleMatrix:
    """Encoded barcode as rows of modules (True = bar, False = space)"""

    rows: Tuple[Tuple[bool, ...], ...]

    @property
    def module_count_x(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def module_count_y(self) -> int:
        return len(self.rows)

    @classmethod
    def from_bits(cls, bits: str) -> "ModuleMatrix":
        return cls(rows=(tuple(b == "1" for b in bits),))

    def to_bits(self, row=0) -> str:
        return "".join("1" if m else "0" for m in self.rows[row])


class CodeValidation(NamedTuple):
    symbology: Symbology
    checksum_ok: bool
    expected_check_digit: Optional[str] = None


# ──────────────────────────────────────────────────────────────
# EAN-13 guard layout (95 modules: 3 + 42 + 5 + 42 + 3)
EAN13_MODULES = 95


# ──────────────────────────────────────────────────────────────
# Code 128 bar/space widths, indexed by symbol value (ISO/IEC 15417)
CODE128_WIDTHS = (
    "212222", "222122", "222221", "121223", "121322", "131222", "122213", "122312", "132212", "221213",
    "221312", "231212", "112232", "122132", "122231", "113222", "123122", "123221", "223211", "221132",
    "221231", "213212", "223112", "312131", "311222", "321122", "321221", "312212", "322112", "322211",
    "212123", "212321", "232121", "111323", "131123", "131321", "112313", "132113", "132311", "211313",
    "231113", "231311", "112133", "112331", "132131", "113123", "113321", "133121", "313121", "211331",
    "231131", "213113", "213311", "213131", "311123", "311321", "331121", "312113", "312311", "332111",
    "314111", "221411", "431111", "111224", "111422", "121124", "121421", "141122", "141221", "112214",
    "112412", "122114", "122411", "142112", "142211", "241211", "221114", "413111", "241112", "134111",
    "111242", "121142", "121241", "114212", "124112", "124211", "411212", "421112", "421211", "212141",
    "214121", "412121", "111143", "111341", "131141", "114113", "114311", "411113", "411311", "113141",
    "114131", "311141", "411131", "211412", "211214", "211232",
)
CODE128_STOP = "2331112"
CODE128_START_B = 104
CODE128_START_C = 105


def widths_to_bits(widths: str) -> str:
    """Expand alternating bar/space widths (bar first) into module bits"""
    out = []
    for i, w in enumerate(widths):
        out.append(("1" if i % 2 == 0 else "0") * int(w))
    return "".join(out)


# ──────────────────────────────────────────────────────────────
def select_symbology(code: str) -> Symbology:
    if len(code) == 13 and all(c in "0123456789" for c in code):
        return Symbology.EAN13
    return Symbology.CODE128


def ean13_check_digit(first12: str) -> str:
    """Mod-10 check digit with weights 1,3,1,3... from the left"""
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(first12))
    return str((10 - total % 10) % 10)


def validate(code: str) -> CodeValidation:
    """Quality signal for the caller; never blocks encoding"""
    symbology = select_symbology(code)
    if symbology is Symbology.EAN13:
        expected = ean13_check_digit(code[:12])
        return CodeValidation(symbology, code[12] == expected, expected)
    return CodeValidation(symbology, True)


def encode_ean13(code: str) -> ModuleMatrix:
    """Encode all 13 digits as given, check digit included"""
    if select_symbology(code) is not Symbology.EAN13:
        raise EncodingError(f"EAN-13 needs exactly 13 digits, got {code!r}")

    try:
        # no_checksum keeps the 13th digit instead of recomputing it
        bits = EAN13(code, no_checksum=True).build()[0]
    except BarcodeError as e:
        raise EncodingError(f"Cannot encode {code!r} as EAN-13: {e}") from e

    if len(bits) != EAN13_MODULES:
        raise EncodingError(f"EAN-13 for {code!r} has {len(bits)} modules, expected {EAN13_MODULES}")
    return ModuleMatrix.from_bits(bits)


def code128_values(code: str) -> list:
    """Symbol values including start and check symbol, excluding stop"""
    for pos, ch in enumerate(code):
        if not 32 <= ord(ch) <= 126:
            raise EncodingError(
                f"Character {ch!r} at position {pos} is not supported by Code 128",
                character=ch,
                position=pos,
            )

    if code.isdigit() and len(code) % 2 == 0:
        values = [CODE128_START_C]
        values.extend(int(code[i:i + 2]) for i in range(0, len(code), 2))
    else:
        values = [CODE128_START_B]
        values.extend(ord(ch) - 32 for ch in code)

    checksum = values[0] + sum(v * i for i, v in enumerate(values[1:], start=1))
    values.append(checksum % 103)
    return values


def encode_code128(code: str) -> ModuleMatrix:
    values = code128_values(code)
    bits = "".join(widths_to_bits(CODE128_WIDTHS[v]) for v in values)
    return ModuleMatrix.from_bits(bits + widths_to_bits(CODE128_STOP))


def encode(code: str):
    """Return (Symbology, ModuleMatrix) for ``code``"""
    if not code:
        raise EncodingError("Cannot encode an empty code")

    symbology = select_symbology(code)
    if symbology is Symbology.EAN13:
        matrix = encode_ean13(code)
    else:
        matrix = encode_code128(code)

    logger.debug(
        "Encoded %r as %s (%d modules)", code, symbology.value, matrix.module_count_x
    )
    return symbology, matrix
