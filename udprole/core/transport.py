# udprole/core/transport.py

import errno
import logging
import selectors
import socket
import threading
from typing import Optional, Tuple

from udprole.core.errors import AddressInUse, TransportClosed, TransportNotOpen
from udprole.core.models import Endpoint

logger = logging.getLogger(__name__)

# Largest UDP payload over IPv4
MAX_DATAGRAM = 65507

# Upper bound on one select() wait; a parked receive re-checks close() this often
WAKE_CHECK_INTERVAL = 0.25

_ADDR_IN_USE = {errno.EADDRINUSE}
if hasattr(errno, "WSAEADDRINUSE"):
    _ADDR_IN_USE.add(errno.WSAEADDRINUSE)


class Transport:
    """
    Minimal UDP transport layer.

    Responsibilities:
    - Own one UDP socket (well-known port or OS-assigned)
    - Send UTF-8 messages
    - Receive UTF-8 messages, blocking or non-blocking
    - Unblock a pending receive when closed

    Non-responsibilities:
    - No role policy
    - No protocol parsing
    - No threading
    """

    def __init__(
        self,
        sock: socket.socket,
        blocking: bool = True,
        buffer_size: int = MAX_DATAGRAM,
    ):
        self.sock = sock
        self.blocking = blocking
        self.buffer_size = buffer_size

        # The socket never blocks; blocking receive waits on the selector.
        self.sock.setblocking(False)

        # close() writes here to wake a receive parked in select()
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)

        self._selector = selectors.DefaultSelector()
        self._selector.register(self.sock, selectors.EVENT_READ)
        self._selector.register(self._wake_r, selectors.EVENT_READ)

        self._lock = threading.Lock()
        self._closed = False
        self._released = False
        self._waiters = 0

        self.local_endpoint = Endpoint(*self.sock.getsockname()[:2])

    # ---------------- construction ----------------

    @classmethod
    def bind(
        cls,
        port: int,
        interface: str = "0.0.0.0",
        blocking: bool = True,
        buffer_size: int = MAX_DATAGRAM,
    ) -> "Transport":
        """
        Bind the well-known port exclusively. Fails fast, never retries.

        Raises AddressInUse if another process holds the port, OSError for
        anything else.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

        # No SO_REUSEADDR: a second process must fail to bind.
        if hasattr(socket, "SO_EXCLUSIVEADDRUSE"):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)

        try:
            sock.bind((interface, port))
        except OSError as exc:
            sock.close()
            if exc.errno in _ADDR_IN_USE:
                raise AddressInUse(Endpoint(interface, port), exc) from exc
            raise

        logger.debug("Bound %s:%d", interface, port)
        return cls(sock, blocking=blocking, buffer_size=buffer_size)

    @classmethod
    def open_ephemeral(
        cls,
        interface: str = "0.0.0.0",
        blocking: bool = True,
        buffer_size: int = MAX_DATAGRAM,
    ) -> "Transport":
        """
        Open a socket on an OS-assigned port for outbound traffic.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((interface, 0))
        except OSError:
            sock.close()
            raise
        return cls(sock, blocking=blocking, buffer_size=buffer_size)

    # ---------------- I/O ----------------

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, endpoint: Endpoint, message: str):
        """
        Send one datagram to endpoint.
        """
        if self._closed:
            raise TransportNotOpen(f"Transport {self.local_endpoint} is closed")

        data = message.encode("utf-8")
        try:
            self.sock.sendto(data, endpoint.as_tuple())
        except OSError:
            if self._closed:
                raise TransportNotOpen(
                    f"Transport {self.local_endpoint} is closed"
                ) from None
            raise

    def receive_blocking(self) -> Tuple[Endpoint, str]:
        """
        Wait for the next datagram.

        Returns:
            (sender endpoint, message)

        Raises TransportClosed once close() has been called, including
        when close() happens while this call is waiting.
        """
        with self._lock:
            if self._closed:
                raise TransportClosed()
            self._waiters += 1

        try:
            while True:
                if self._closed:
                    raise TransportClosed()
                try:
                    events = self._selector.select(WAKE_CHECK_INTERVAL)
                except (OSError, ValueError):
                    if self._closed:
                        raise TransportClosed() from None
                    raise

                if not events:
                    continue
                received = self.receive_nonblocking()
                if received is not None:
                    return received
        finally:
            with self._lock:
                self._waiters -= 1
                last_out = self._closed and self._waiters == 0
            if last_out:
                self._release()

    def receive_nonblocking(self) -> Optional[Tuple[Endpoint, str]]:
        """
        Return the next datagram if one is queued, otherwise None.
        """
        if self._closed:
            raise TransportClosed()
        try:
            data, (ip, port) = self.sock.recvfrom(self.buffer_size)
        except (BlockingIOError, InterruptedError):
            return None
        except (OSError, ValueError):
            if self._closed:
                raise TransportClosed() from None
            raise

        message = data.decode("utf-8", errors="ignore")
        return Endpoint(ip, port), message

    def close(self):
        """
        Close the UDP socket. Safe to call more than once and from any thread.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            waiting = self._waiters > 0

        # The UDP port is freed now; the wake-up pair and selector stay open
        # until every parked receive has seen the wake byte.
        self.sock.close()
        try:
            self._wake_w.send(b"\x00")
        except OSError:
            pass

        if not waiting:
            self._release()
        logger.debug("Closed transport %s", self.local_endpoint)

    def _release(self):
        with self._lock:
            if self._released:
                return
            self._released = True

        self._selector.close()
        self._wake_w.close()
        self._wake_r.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        mode = "blocking" if self.blocking else "polling"
        return f"<Transport {self.local_endpoint} {mode} {state}>"
