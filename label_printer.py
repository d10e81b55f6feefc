#!/usr/bin/env python3
"""
Item label printer
Prints a barcode + article label on a TSPL thermal printer over a raw
network socket, after showing a preview for confirmation

Printer address options:
- Manual address: --printer 192.168.1.100 or --printer 192.168.1.100:9100
- Passive listening: --listen (waits for mDNS printer announcements)
- Environment variables: LABEL_PRINTER_IP, LABEL_PRINTER_PORT
"""

import argparse
import asyncio
import logging
import os
import re
import sys
from dataclasses import dataclass

from barcode_symbology import CodeValidation, EncodingError, ModuleMatrix, Symbology, encode, validate
from label_layout import DEFAULT_MEDIA, LabelContent, LayoutPlan, MediaSpec, compute_layout
from label_preview import render_preview, render_preview_image
from printer_transport import (
    DEFAULT_PORT,
    PrinterAddress,
    TransportError,
    discover_printers,
    parse_address,
    send_async,
)
from tspl_commands import CODEPAGES, build_command_stream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrintJob:
    content: LabelContent
    media: MediaSpec
    address: PrinterAddress


@dataclass(frozen=True)
class PreparedLabel:
    """One preview/print cycle; every output reads this single plan"""

    job: PrintJob
    symbology: Symbology
    matrix: ModuleMatrix
    plan: LayoutPlan
    validation: CodeValidation


def prepare_label(job: PrintJob, article_prefix="", spaced_code=False) -> PreparedLabel:
    symbology, matrix = encode(job.content.code)
    validation = validate(job.content.code)
    if not validation.checksum_ok:
        logger.warning(
            "EAN-13 %s has check digit %s, expected %s",
            job.content.code, job.content.code[-1], validation.expected_check_digit,
        )
    plan = compute_layout(
        matrix, job.content, job.media, unit="dot",
        article_prefix=article_prefix, spaced_code=spaced_code,
    )
    return PreparedLabel(job, symbology, matrix, plan, validation)


def preview_pdf(label: PreparedLabel) -> bytes:
    return render_preview(label.plan, label.matrix, label.job.content, label.job.media)


def preview_image(label: PreparedLabel, scale=4):
    return render_preview_image(label.plan, label.matrix, label.job.content, label.job.media, scale)


def command_stream(label: PreparedLabel, encoding="utf-8", copies=1) -> bytes:
    return build_command_stream(
        label.plan, label.symbology, label.job.content, label.job.media, encoding, copies
    )


async def print_label(label: PreparedLabel, encoding="utf-8", copies=1) -> int:
    # built whole before the connection is opened
    data = command_stream(label, encoding, copies)
    return await send_async(data, label.job.address)


# ──────────────────────────────────────────────────────────────
# Configuration
def sanitize_filename(text):
    """Remove dangerous characters from filename to prevent path traversal"""
    safe_text = re.sub(r"[^a-zA-Z0-9\s\-_]", "", text)
    return safe_text.replace(" ", "_")[:50]


def address_from_env(environ=os.environ):
    value = environ.get("LABEL_PRINTER_IP")
    if not value:
        return None
    port = environ.get("LABEL_PRINTER_PORT")
    try:
        default_port = int(port) if port else DEFAULT_PORT
    except ValueError as e:
        raise TransportError(f"LABEL_PRINTER_PORT is not a number: {port!r}", cause=e) from e
    return parse_address(value, default_port)


def build_parser():
    ap = argparse.ArgumentParser(description="Barcode item label printer (TSPL, raw socket)")
    ap.add_argument("code", help="scanned or typed item code")
    ap.add_argument("article", help="article description, quotes for spaces")
    ap.add_argument(
        "-p",
        "--printer",
        default=None,
        help="printer address host[:port] (or LABEL_PRINTER_IP env var)",
    )
    ap.add_argument("--port", type=int, default=None, help=f"printer port (default {DEFAULT_PORT})")
    ap.add_argument("--width", type=float, default=DEFAULT_MEDIA.width_mm, help="label width mm")
    ap.add_argument("--height", type=float, default=DEFAULT_MEDIA.height_mm, help="label height mm")
    ap.add_argument("--gap", type=float, default=DEFAULT_MEDIA.gap_mm, help="gap between labels mm")
    ap.add_argument(
        "--density", type=int, default=DEFAULT_MEDIA.dot_density, help="printer dots per mm (8 = 203 dpi)"
    )
    ap.add_argument("--encoding", default="utf-8", choices=sorted(CODEPAGES), help="text encoding")
    ap.add_argument("--article-prefix", default="", help="text printed before the article")
    ap.add_argument(
        "--spaced-code", action="store_true", help="print the code line with a space between characters"
    )
    ap.add_argument("-c", "--copies", type=int, default=1)
    ap.add_argument("--preview", default=None, help="PDF preview file (default <code>.pdf)")
    ap.add_argument("--png", default=None, help="also save a PNG preview")
    ap.add_argument(
        "--dry-run", action="store_true", help="write the command stream to <code>.tspl instead of printing"
    )
    ap.add_argument("-y", "--yes", action="store_true", help="print without asking for confirmation")
    ap.add_argument("--listen", action="store_true", help="discover the printer via mDNS announcements")
    ap.add_argument("--listen-timeout", type=int, default=30, help="discovery timeout in seconds")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap


def resolve_address(args):
    if args.printer:
        return parse_address(args.printer, args.port or DEFAULT_PORT)

    if args.listen:
        print(f"Passive listening for printer announcements ({args.listen_timeout}s)...")
        printers = discover_printers(timeout=args.listen_timeout)
        if printers:
            print(f"✓ Using printer: {printers[0]['name']} at {printers[0]['ip']}:{printers[0]['port']}")
            if len(printers) > 1:
                print(f"Note: Found {len(printers)} printers, using first one")
            return PrinterAddress(printers[0]["ip"], args.port or printers[0]["port"])
        print("❌ No printers found during passive listening")

    address = address_from_env()
    if address and args.port:
        address = address._replace(port=args.port)
    return address


# ──────────────────────────────────────────────────────────────
def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.copies <= 0 or args.copies > 100:
        print("Error: Copies must be between 1 and 100")
        return 1
    if args.width <= 0 or args.height <= 0 or args.gap < 0 or args.density <= 0:
        print("Error: Label geometry must be positive")
        return 1

    try:
        address = resolve_address(args)
    except TransportError as e:
        print(f"✗ {e}")
        return 1
    if address is None and not args.dry_run:
        print("❌ No printer address specified")
        print("Options:")
        print("  1. Specify address directly: --printer 192.168.1.100[:9100]")
        print("  2. Use passive discovery: --listen")
        print("  3. Set environment variable: export LABEL_PRINTER_IP=192.168.1.100")
        return 1

    media = MediaSpec(args.width, args.height, args.gap, args.density)
    job = PrintJob(LabelContent(args.code, args.article), media, address)

    try:
        label = prepare_label(job, article_prefix=args.article_prefix, spaced_code=args.spaced_code)
        data = command_stream(label, args.encoding, args.copies)
    except EncodingError as e:
        print(f"✗ {e}")
        return 1

    print(f"Code: '{args.code}' | Symbology: {label.symbology.value} | Article: '{args.article}'")
    if not label.validation.checksum_ok:
        print(f"⚠ EAN-13 check digit mismatch, expected {label.validation.expected_check_digit}")
    if label.plan.truncated:
        print("⚠ Barcode is wider than the label and will be clipped")

    stem = sanitize_filename(args.code) or "label"
    pdf_filename = args.preview or f"{stem}.pdf"
    with open(pdf_filename, "wb") as f:
        f.write(preview_pdf(label))
    print(f"✓ Saved preview: {pdf_filename}")
    if args.png:
        preview_image(label).save(args.png)
        print(f"✓ Saved PNG: {args.png}")

    if args.dry_run:
        bin_filename = f"{stem}.tspl"
        with open(bin_filename, "wb") as f:
            f.write(data)
        print(f"✓ Saved command stream: {bin_filename}")
        return 0

    if not args.yes:
        answer = input(f"Print on {address}? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled, nothing sent")
            return 0

    try:
        sent = asyncio.run(send_async(data, address))
    except TransportError as e:
        print(f"✗ {e}")
        return 1
    print(f"✓ Sent {sent} bytes to {address} (the printer does not confirm jobs)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
