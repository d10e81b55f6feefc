#!/usr/bin/env python3
"""
Label preview renderer
Draws a LayoutPlan as a one-page PDF (reportlab) or a bitmap (Pillow) so
the operator can confirm the label before it is printed
"""

import io
import logging
import math
import os
import platform
from typing import NamedTuple

from PIL import Image, ImageDraw, ImageFont
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

MONO_FONT_NAME = "DejaVuSansMono"
MONO_FONT_PATH = (
    "/Library/Fonts/DejaVuSansMono.ttf"
    if platform.system() == "Darwin"
    else "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf"
)
FALLBACK_PDF_FONT = "Courier"


class PreviewBar(NamedTuple):
    x: float
    y: float
    width: float
    height: float


class PreviewText(NamedTuple):
    text: str
    x: float
    top: float
    baseline: float
    cell_width: float
    cell_height: float


# ──────────────────────────────────────────────────────────────
# Display list, in points with a top-left origin
def page_size(plan):
    return plan.to_points(plan.label_size.width), plan.to_points(plan.label_size.height)


def bar_runs(row):
    """Yield (start, end) module indices of consecutive bars"""
    start = None
    for i, module in enumerate(row):
        if module and start is None:
            start = i
        elif not module and start is not None:
            yield start, i
            start = None
    if start is not None:
        yield start, len(row)


def preview_elements(plan, matrix, content, media):
    """Bars and text items shared by the PDF and bitmap previews"""
    x0, y0 = plan.barcode_origin
    right = x0 + plan.barcode_size.width
    row_height = plan.barcode_size.height / max(1, matrix.module_count_y)

    elements = []
    for r, row in enumerate(matrix.rows):
        top = y0 + r * row_height
        for start, end in bar_runs(row):
            left = x0 + start * plan.module_width
            if left >= right:
                break
            width = min(right, x0 + end * plan.module_width) - left
            elements.append(PreviewBar(
                plan.to_points(left),
                plan.to_points(top),
                plan.to_points(width),
                plan.to_points(row_height),
            ))

    for line in (plan.human_text, plan.article_text):
        elements.append(PreviewText(
            line.text,
            plan.to_points(line.x),
            plan.to_points(line.top_y),
            plan.to_points(line.baseline_y),
            plan.to_points(line.cell.width),
            plan.to_points(line.cell.height),
        ))
    return elements


# ──────────────────────────────────────────────────────────────
# PDF
def pdf_font():
    if MONO_FONT_NAME in pdfmetrics.getRegisteredFontNames():
        return MONO_FONT_NAME
    if os.path.exists(MONO_FONT_PATH):
        pdfmetrics.registerFont(TTFont(MONO_FONT_NAME, MONO_FONT_PATH))
        return MONO_FONT_NAME
    logger.warning(
        "%s not found, PDF preview falls back to %s (Latin only)", MONO_FONT_PATH, FALLBACK_PDF_FONT
    )
    return FALLBACK_PDF_FONT


def render_preview(plan, matrix, content, media) -> bytes:
    """Render the label as a single-page PDF sized to the label stock"""
    page_w, page_h = page_size(plan)
    font = pdf_font()
    # font size at which one glyph advance equals the printer font cell
    advance = pdfmetrics.stringWidth("M", font, 1)

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(page_w, page_h), invariant=1)
    pdf.setTitle(content.code)
    pdf.setSubject(content.article)
    pdf.setFillColorRGB(0, 0, 0)

    for el in preview_elements(plan, matrix, content, media):
        if isinstance(el, PreviewBar):
            pdf.rect(el.x, page_h - el.y - el.height, el.width, el.height, stroke=0, fill=1)
        else:
            pdf.setFont(font, el.cell_width / advance)
            pdf.drawString(el.x, page_h - el.baseline, el.text)

    pdf.showPage()
    pdf.save()
    return buf.getvalue()


# ──────────────────────────────────────────────────────────────
# Bitmap
def _mono_font(size):
    return ImageFont.truetype(MONO_FONT_PATH, size)


def _default_font(size):
    return ImageFont.load_default(size=size)


def image_font(cell_width_px):
    """Font sized so one glyph advance equals ``cell_width_px``"""
    load = _mono_font
    if not os.path.exists(MONO_FONT_PATH):
        logger.warning(
            "%s not found, bitmap preview falls back to Pillow's default font", MONO_FONT_PATH
        )
        load = _default_font
    size = max(1, round(cell_width_px * 100 / load(100).getlength("M")))
    return load(size)


def render_preview_image(plan, matrix, content, media, scale=4):
    """Rasterize the preview at ``scale`` pixels per point for display"""
    page_w, page_h = page_size(plan)
    img = Image.new("L", (math.ceil(page_w * scale), math.ceil(page_h * scale)), 255)
    draw = ImageDraw.Draw(img)

    for el in preview_elements(plan, matrix, content, media):
        if isinstance(el, PreviewBar):
            left, top = round(el.x * scale), round(el.y * scale)
            right = max(left, round((el.x + el.width) * scale) - 1)
            bottom = max(top, round((el.y + el.height) * scale) - 1)
            draw.rectangle([left, top, right, bottom], fill=0)
        else:
            font = image_font(el.cell_width * scale)
            draw.text((round(el.x * scale), round(el.top * scale)), el.text, font=font, fill=0)
    return img
