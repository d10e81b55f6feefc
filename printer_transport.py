#!/usr/bin/env python3
"""
Raw-socket printer transport
Sends a finished command stream to a label printer's raw port (9100)

The printer never answers on this channel: a completed write is the only
success signal, it does not prove a label came out.

Printer discovery options:
- Manual address: host or host:port
- Passive listening: mDNS _pdl-datastream._tcp announcements (zeroconf)
"""

import asyncio
import logging
import socket
import time
from typing import NamedTuple

from zeroconf import IPVersion, ServiceBrowser, ServiceListener, Zeroconf

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9100
RAW_SERVICE_TYPE = "_pdl-datastream._tcp.local."


class TransportError(Exception):
    """Printer could not be reached or the write failed"""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class PrinterAddress(NamedTuple):
    host: str
    port: int = DEFAULT_PORT

    def __str__(self):
        return f"{self.host}:{self.port}"


def parse_address(value, default_port=DEFAULT_PORT) -> PrinterAddress:
    """Parse ``host`` or ``host:port`` (``[v6]:port`` for IPv6)"""
    text = (value or "").strip()
    if not text:
        raise TransportError("No printer address specified")

    host, port = text, default_port
    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise TransportError(f"Malformed printer address: {value!r}")
        if rest:
            port = rest[1:]
    elif text.count(":") == 1:
        host, port = text.split(":")

    try:
        port = int(port)
    except ValueError as e:
        raise TransportError(f"Malformed printer port in {value!r}", cause=e) from e
    if not host or not 0 < port < 65536:
        raise TransportError(f"Malformed printer address: {value!r}")
    return PrinterAddress(host, port)


# ──────────────────────────────────────────────────────────────
# Sending
async def send_async(data: bytes, address: PrinterAddress) -> int:
    """Connect once, write the whole buffer, close; no retry, no reply read"""
    try:
        _, writer = await asyncio.open_connection(address.host, address.port)
    except (OSError, OverflowError, ValueError, TypeError) as e:
        raise TransportError(f"Cannot connect to printer at {address}: {e}", cause=e) from e

    logger.info("Connected to %s, sending %d bytes", address, len(data))
    try:
        writer.write(data)
        await writer.drain()
        writer.close()
        await writer.wait_closed()
    except OSError as e:
        writer.close()
        raise TransportError(f"Write to printer at {address} failed: {e}", cause=e) from e

    logger.info("Sent %d bytes to %s", len(data), address)
    return len(data)


def send(data: bytes, address: PrinterAddress) -> int:
    """Blocking variant; call from a worker thread, never a UI thread"""
    return asyncio.run(send_async(data, address))


# ──────────────────────────────────────────────────────────────
# Discovery
class PassivePrinterListener(ServiceListener):
    """Collects raw-socket printers from unsolicited mDNS announcements"""

    def __init__(self):
        self.printers = []

    def add_service(self, zc, type_, name):
        info = zc.get_service_info(type_, name, timeout=3000)
        if not info or not info.addresses:
            return

        ip = socket.inet_ntoa(info.addresses[0])
        if any(p["ip"] == ip and p["port"] == info.port for p in self.printers):
            return

        printer = {
            "name": name.replace("." + RAW_SERVICE_TYPE, ""),
            "ip": ip,
            "port": info.port or DEFAULT_PORT,
        }
        self.printers.append(printer)
        logger.info("Found printer %s at %s:%s", printer["name"], ip, printer["port"])

    def remove_service(self, zc, type_, name):
        logger.debug("Printer removed: %s", name)

    def update_service(self, zc, type_, name):
        self.add_service(zc, type_, name)


def discover_printers(timeout=30):
    """Listen for raw-socket printer announcements for ``timeout`` seconds"""
    zc = Zeroconf(ip_version=IPVersion.V4Only)
    listener = PassivePrinterListener()
    browser = ServiceBrowser(zc, RAW_SERVICE_TYPE, listener)
    try:
        time.sleep(timeout)
    finally:
        browser.cancel()
        zc.close()
    return listener.printers
