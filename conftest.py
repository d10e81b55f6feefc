import socket
import struct
import threading

import pytest


class RawPrinter:
    """Loopback stand-in for a printer's raw port: accepts one job, records it"""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.jobs = []
        self.thread = threading.Thread(target=self._accept, daemon=True)
        self.thread.start()

    def _accept(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        with conn:
            chunks = []
            while True:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        self.jobs.append(b"".join(chunks))

    def wait(self, timeout=5):
        self.thread.join(timeout)
        return self.jobs

    def close(self):
        self.sock.close()


@pytest.fixture
def raw_printer():
    printer = RawPrinter()
    yield printer
    printer.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class ResettingPrinter:
    """Accepts one connection, reads a little, then resets it"""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._accept, daemon=True)
        self.thread.start()

    def _accept(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        conn.recv(4096)
        # zero linger turns close() into a RST
        conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        conn.close()

    def close(self):
        self.sock.close()
        self.thread.join(5)


@pytest.fixture
def resetting_printer():
    printer = ResettingPrinter()
    yield printer
    printer.close()
