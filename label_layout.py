#!/usr/bin/env python3
"""
Label layout engine
Computes the one geometry plan that both the PDF preview and the TSPL
command stream are formatted from

Coordinates are top-left based, in the plan's unit:
- "dot":   printer dots (MediaSpec.dot_density dots per mm), whole numbers
- "point": PDF points (72 per inch), fractional
"""

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
POINTS_PER_INCH = 72
POINTS_PER_MM = POINTS_PER_INCH / MM_PER_INCH

UNITS = ("dot", "point")

# Layout policy, in millimetres
MARGIN_MM = 2.0
BAND_GAP_MM = 1.0
MIN_MODULE_MM = 0.125  # one dot at 203 dpi
MIN_BARCODE_HEIGHT_MM = 3.0


@dataclass(frozen=True)
class LabelContent:
    code: str
    article: str


@dataclass(frozen=True)
class MediaSpec:
    """Physical label stock for one printer model"""

    width_mm: float
    height_mm: float
    gap_mm: float
    dot_density: int = 8  # dots per mm, 8 ~ 203 dpi
    direction: int = 1


DEFAULT_MEDIA = MediaSpec(width_mm=55, height_mm=40, gap_mm=2, dot_density=8)


class FontSpec(NamedTuple):
    """Built-in monospaced printer font, cell size in printer dots"""

    selector: str
    cell_width: int
    cell_height: int


# TSPL resident fonts
FONT_2 = FontSpec("2", 12, 20)
FONT_3 = FontSpec("3", 16, 24)

CODE_FONT = FONT_3
ARTICLE_FONT = FONT_2


class Point(NamedTuple):
    x: float
    y: float


class Size(NamedTuple):
    width: float
    height: float


class TextLine(NamedTuple):
    text: str
    x: float
    top_y: float
    baseline_y: float
    font: FontSpec
    cell: Size
    estimated_width: float


@dataclass(frozen=True)
class LayoutPlan:
    unit: str
    units_per_mm: float
    dot_density: int
    label_size: Size
    barcode_origin: Point
    barcode_size: Size
    module_width: float
    truncated: bool
    human_text: TextLine
    article_text: TextLine

    @property
    def human_text_baseline_y(self):
        return self.human_text.baseline_y

    @property
    def article_baseline_y(self):
        return self.article_text.baseline_y

    @property
    def human_text_x(self):
        return self.human_text.x

    @property
    def article_x(self):
        return self.article_text.x

    def to_dots(self, value) -> int:
        if self.unit == "dot":
            return int(value)
        return int(round(value / self.units_per_mm * self.dot_density))

    def to_points(self, value) -> float:
        return value / self.units_per_mm * POINTS_PER_MM


# ──────────────────────────────────────────────────────────────
# Unit helpers
def units_per_mm(media: MediaSpec, unit: str) -> float:
    if unit == "dot":
        return float(media.dot_density)
    if unit == "point":
        return POINTS_PER_MM
    raise ValueError(f"Unknown device unit: {unit!r} (expected one of {UNITS})")


def _snap(value, unit):
    if unit == "dot":
        return int(round(value))
    return round(value, 3)


def _center(span, size, unit):
    if unit == "dot":
        return (span - size) // 2
    return math.floor((span - size) / 2 * 1000) / 1000


def font_cell(font: FontSpec, media: MediaSpec, unit: str) -> Size:
    """Font cell in the requested unit (fonts are defined in dots)"""
    if unit == "dot":
        return Size(font.cell_width, font.cell_height)
    scale = units_per_mm(media, unit) / media.dot_density
    return Size(round(font.cell_width * scale, 3), round(font.cell_height * scale, 3))


def average_glyph_width(font: FontSpec, media: MediaSpec, unit: str):
    # Resident fonts are monospaced, so the cell width is the advance.
    # Proportional or wide scripts are only approximated by this.
    return font_cell(font, media, unit).width


def estimate_text_width(text: str, font: FontSpec, media: MediaSpec, unit: str):
    return _snap(len(text) * average_glyph_width(font, media, unit), unit)


def _text_line(text, font, top_y, label_w, margin, media, unit):
    width = estimate_text_width(text, font, media, unit)
    cell = font_cell(font, media, unit)
    x = max(margin, _center(label_w, width, unit))
    top_y = max(0, top_y)
    return TextLine(text, x, top_y, _snap(top_y + cell.height, unit), font, cell, width)


# ──────────────────────────────────────────────────────────────
def compute_layout(
    matrix,
    content: LabelContent,
    media: MediaSpec,
    unit="dot",
    code_font=CODE_FONT,
    article_font=ARTICLE_FONT,
    article_prefix="",
    spaced_code=False,
) -> LayoutPlan:
    """Lay out barcode, code line and article line on one label

    Vertical order is barcode, code text, article text. The barcode is as
    wide as the margins allow, but never narrower per module than the
    legibility minimum; if that minimum overflows the label the barcode is
    clipped to the label width and ``truncated`` is set.

    With ``spaced_code`` the code line is printed one character at a time,
    separated by spaces.
    """
    scale = units_per_mm(media, unit)
    label_w = _snap(media.width_mm * scale, unit)
    label_h = _snap(media.height_mm * scale, unit)
    margin = _snap(MARGIN_MM * scale, unit)
    gap = _snap(BAND_GAP_MM * scale, unit)

    # horizontal: module width
    modules = max(1, matrix.module_count_x)
    ideal = (label_w - 2 * margin) / modules
    if unit == "dot":
        min_module = max(1, int(MIN_MODULE_MM * scale))
        module_width = max(min_module, int(ideal))
    else:
        min_module = _snap(MIN_MODULE_MM * scale, unit)
        # truncate, rounding up could push the barcode into the margin
        module_width = max(min_module, math.floor(ideal * 1000) / 1000)

    barcode_w = _snap(module_width * modules, unit)
    truncated = barcode_w > label_w
    if truncated:
        logger.debug(
            "Barcode of %d modules does not fit %s %s at minimum module width",
            modules, label_w, unit,
        )
        barcode_w = label_w
    barcode_x = _center(label_w, barcode_w, unit)

    # vertical: bands from the bottom up
    code_cell = font_cell(code_font, media, unit)
    article_cell = font_cell(article_font, media, unit)
    article_top = _snap(label_h - margin - article_cell.height, unit)
    code_top = _snap(article_top - gap - code_cell.height, unit)

    barcode_y = margin
    barcode_h = _snap(code_top - gap - barcode_y, unit)
    min_h = _snap(MIN_BARCODE_HEIGHT_MM * scale, unit)
    if barcode_h < min_h:
        barcode_h = min(min_h, label_h)
        barcode_y = min(barcode_y, label_h - barcode_h)

    code_text = " ".join(content.code) if spaced_code else content.code
    human = _text_line(code_text, code_font, code_top, label_w, margin, media, unit)
    article = _text_line(
        article_prefix + content.article, article_font, article_top,
        label_w, margin, media, unit,
    )

    plan = LayoutPlan(
        unit=unit,
        units_per_mm=scale,
        dot_density=media.dot_density,
        label_size=Size(label_w, label_h),
        barcode_origin=Point(barcode_x, barcode_y),
        barcode_size=Size(barcode_w, barcode_h),
        module_width=module_width,
        truncated=truncated,
        human_text=human,
        article_text=article,
    )
    logger.debug("Layout for %r: %s", content.code, plan)
    return plan
