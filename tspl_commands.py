#!/usr/bin/env python3
"""
TSPL command stream builder
Formats a LayoutPlan into the line-oriented command language of TSC-style
thermal label printers (SIZE / GAP / CLS / BARCODE / TEXT / PRINT)

All positions and sizes are read from the plan; nothing here lays out.
"""

import logging
import re

from barcode_symbology import EncodingError, Symbology, code128_values

logger = logging.getLogger(__name__)

LINE_END = "\r\n"

# "128M" takes the start subset from the payload (!104 = B, !105 = C) and
# keeps it, matching code128_values()
BARCODE_TYPES = {
    Symbology.EAN13: "EAN13",
    Symbology.CODE128: "128M",
}

# in 128M payloads "!" plus three digits is a control symbol
CODE128M_CONTROL = re.compile(r"!\d{3}")

# Python codec -> CODEPAGE argument
CODEPAGES = {
    "utf-8": "UTF-8",
    "cp1251": "1251",
    "cp1252": "1252",
    "cp866": "866",
}


def quote(text: str) -> str:
    """Quote a payload, TSPL escapes a double quote as \\["]"""
    return '"' + text.replace('"', '\\["]') + '"'


def _mm(value) -> str:
    return f"{value:g} mm"


def barcode_payload(symbology, code: str) -> str:
    """Barcode data as the printer should receive it"""
    if symbology is not Symbology.CODE128:
        return code

    start = code128_values(code)[0]
    control = CODE128M_CONTROL.search(code)
    if control:
        raise EncodingError(
            f"{control.group()!r} at position {control.start()} would be read as a Code 128 control",
            character="!",
            position=control.start(),
        )
    return f"!{start:03d}{code}"


def command_lines(plan, symbology, content, media, encoding="utf-8", copies=1):
    """Return the command sequence as a list of str, without line endings"""
    if encoding not in CODEPAGES:
        raise ValueError(
            f"Unsupported text encoding {encoding!r}, choose one of {sorted(CODEPAGES)}"
        )

    x, y = plan.barcode_origin
    narrow = plan.to_dots(plan.module_width)

    lines = [
        f"SIZE {_mm(media.width_mm)}, {_mm(media.height_mm)}",
        f"GAP {_mm(media.gap_mm)}, 0 mm",
        "CLS",
        f"DIRECTION {media.direction}",
        f"CODEPAGE {CODEPAGES[encoding]}",
        "BARCODE {},{},{},{},0,0,{},{},{}".format(
            plan.to_dots(x),
            plan.to_dots(y),
            quote(BARCODE_TYPES[symbology]),
            plan.to_dots(plan.barcode_size.height),
            narrow,
            narrow,
            quote(barcode_payload(symbology, content.code)),
        ),
    ]
    for line in (plan.human_text, plan.article_text):
        lines.append(
            "TEXT {},{},{},0,1,1,{}".format(
                plan.to_dots(line.x),
                plan.to_dots(line.top_y),
                quote(line.font.selector),
                quote(line.text),
            )
        )
    lines.append(f"PRINT 1,{copies}")
    return lines


def build_command_stream(plan, symbology, content, media, encoding="utf-8", copies=1) -> bytes:
    """Serialize the label into one CRLF-terminated byte buffer

    Command tokens are 7-bit ASCII; text payloads use ``encoding``.
    """
    lines = command_lines(plan, symbology, content, media, encoding, copies)

    out = []
    for line in lines:
        try:
            out.append((line + LINE_END).encode(encoding))
        except UnicodeEncodeError as e:
            bad = e.object[e.start]
            raise EncodingError(
                f"Character {bad!r} cannot be printed with encoding {encoding}",
                character=bad,
            ) from e

    data = b"".join(out)
    logger.debug("Built %d TSPL commands (%d bytes)", len(lines), len(data))
    return data
