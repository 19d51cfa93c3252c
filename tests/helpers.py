import queue
import socket
import threading
import time

from udprole.core.errors import TransportClosed
from udprole.core.models import Endpoint

LOCALHOST = "127.0.0.1"
BUFFER_SIZE = 4096


class Inbox:
    """
    Thread-safe collector for on_message callbacks.
    """

    def __init__(self):
        self.items = []
        self._cond = threading.Condition()

    def __call__(self, sender, message):
        with self._cond:
            self.items.append((sender, message))
            self._cond.notify_all()

    def texts(self):
        with self._cond:
            return [message for _, message in self.items]

    def wait_for(self, text, timeout=2.0):
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                for sender, message in self.items:
                    if message == text:
                        return sender
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)


class ScriptedTransport:
    """
    Stand-in transport whose receive results come from a queue.

    Items are (Endpoint, text) tuples or exception instances to raise.
    """

    def __init__(self, blocking=True):
        self.blocking = blocking
        self.local_endpoint = Endpoint(LOCALHOST, 40000)
        self.sent = []
        self.close_calls = 0
        self._inbound = queue.Queue()

    def feed(self, item):
        self._inbound.put(item)

    def receive_blocking(self):
        item = self._inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def receive_nonblocking(self):
        try:
            item = self._inbound.get_nowait()
        except queue.Empty:
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def send(self, endpoint, text):
        self.sent.append((endpoint, text))

    def close(self):
        self.close_calls += 1
        self._inbound.put(TransportClosed())


def udp_request(sock, addr, text, timeout=1.0):
    sock.settimeout(timeout)
    sock.sendto(text.encode("utf-8"), addr)
    try:
        data, raddr = sock.recvfrom(BUFFER_SIZE)
        return data.decode("utf-8"), raddr
    except (socket.timeout, TimeoutError, ConnectionResetError):
        return None, None


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
