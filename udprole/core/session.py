# udprole/core/session.py

import logging
import threading
import time
from typing import Callable, Dict, Optional

from udprole.core.errors import TransportClosed, TransportNotOpen, UsageError
from udprole.core.models import CONNECT, Endpoint, Role, SessionState, ack_for

logger = logging.getLogger(__name__)

OnMessage = Callable[[Endpoint, str], None]


class RoleSession:
    """
    Runtime of an elected role.

    Owns the transport and one background receive thread.

    States:
      STARTING -> RUNNING -> STOPPING -> STOPPED (terminal)

    Non-responsibilities:
    - No election
    - No restart: a stopped session is replaced, never reused
    """

    role: Role

    def __init__(
        self,
        transport,
        remote: Optional[Endpoint] = None,
        on_message: Optional[OnMessage] = None,
        poll_interval: float = 0.01,
    ):
        self.transport = transport
        self.remote = remote
        self.on_message = on_message
        self.poll_interval = poll_interval

        self.state = SessionState.STARTING
        self._state_lock = threading.Lock()
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ---------------- lifecycle ----------------

    def start(self):
        with self._state_lock:
            if self.state is not SessionState.STARTING:
                raise UsageError(f"Session already {self.state.value}; create a new one")

            self._running.set()
            self._thread = threading.Thread(
                target=self._receive_loop,
                name=f"udprole-{self.role.value}-recv",
                daemon=True,
            )
            self._thread.start()
            self.state = SessionState.RUNNING

        logger.info("%s session running on %s", self.role.value, self.transport.local_endpoint)
        return self

    def stop(self, join_timeout: float = 2.0) -> bool:
        """
        Close the transport and wait for the receive loop to exit.

        Returns True once every worker thread has stopped. If one does not
        exit within join_timeout it is abandoned (it is a daemon thread) and
        False is returned. Safe to call more than once.

        Called from the receive thread itself (e.g. inside on_message), the
        session stays STOPPING and returns False; the loop marks it STOPPED
        as it exits.
        """
        with self._state_lock:
            if self.state in (SessionState.STOPPING, SessionState.STOPPED):
                already = True
            else:
                already = False
                self.state = SessionState.STOPPING

        if already:
            return self._join(join_timeout)

        self._running.clear()
        self.transport.close()
        self._on_stop()

        stopped = self._join(join_timeout)
        if not stopped and threading.current_thread() not in self._workers():
            logger.warning(
                "Session threads did not exit within %.1fs; abandoning them",
                join_timeout,
            )
        return stopped

    def _workers(self):
        """Threads owned by this session that stop() must join."""
        return [self._thread] if self._thread is not None else []

    def _join(self, join_timeout: float) -> bool:
        current = threading.current_thread()
        deadline = time.monotonic() + join_timeout
        workers = self._workers()

        for thread in workers:
            if thread is current:
                continue
            thread.join(max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                return False

        if current in workers:
            return False
        self._mark_stopped()
        return True

    def _mark_stopped(self):
        with self._state_lock:
            if self.state is SessionState.STOPPING:
                self.state = SessionState.STOPPED

    def is_alive(self) -> bool:
        return self.state is SessionState.RUNNING

    def _on_stop(self):
        """Hook for role-specific teardown."""

    # ---------------- send API ----------------

    def send_to(self, endpoint: Endpoint, text: str):
        raise UsageError(f"send_to is host-only; this session is {self.role.value}")

    def broadcast(self, text: str) -> int:
        raise UsageError(f"broadcast is host-only; this session is {self.role.value}")

    def send_to_host(self, text: str):
        raise UsageError(f"send_to_host is client-only; this session is {self.role.value}")

    # ---------------- receive loop ----------------

    def _receive_loop(self):
        blocking = self.transport.blocking

        while self._running.is_set():
            try:
                if blocking:
                    received = self.transport.receive_blocking()
                else:
                    received = self.transport.receive_nonblocking()
                    if received is None:
                        time.sleep(self.poll_interval)
                        continue
            except TransportClosed:
                break
            except OSError as exc:
                if not self._running.is_set():
                    break
                logger.warning("[%s] receive error: %s", self.role.value, exc)
                time.sleep(self.poll_interval)
                continue

            sender, message = received
            try:
                self._handle(sender, message)
            except (TransportClosed, TransportNotOpen):
                break
            except OSError as exc:
                logger.warning("[%s] send error to %s: %s", self.role.value, sender, exc)

        # stop() from inside a handler cannot join this thread; finish here.
        if not self._running.is_set() and not self._other_workers_alive():
            self._mark_stopped()
        logger.debug("[%s] receive loop exited", self.role.value)

    def _other_workers_alive(self) -> bool:
        current = threading.current_thread()
        return any(t.is_alive() for t in self._workers() if t is not current)

    def _handle(self, sender: Endpoint, message: str):
        raise NotImplementedError

    def _deliver(self, sender: Endpoint, message: str):
        if not self.on_message:
            return
        try:
            self.on_message(sender, message)
        except Exception:
            logger.exception("[%s] on_message handler failed", self.role.value)

    def describe(self) -> Dict:
        return {
            "role": self.role.value,
            "state": self.state.value,
            "local": str(self.transport.local_endpoint),
            "remote": str(self.remote) if self.remote else None,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.state.value} {self.transport.local_endpoint}>"


class HostSession(RoleSession):
    """
    Authoritative relay.

    Every datagram is answered with "ACK:<text>" to its sender, so any number
    of clients can be served. Recent senders are kept in a peer table:
      Endpoint -> last_seen
    """

    role = Role.HOST

    def __init__(self, transport, on_message=None, poll_interval=0.01, peer_timeout=30.0):
        super().__init__(transport, None, on_message, poll_interval)
        self.peer_timeout = peer_timeout
        self._peers: Dict[Endpoint, float] = {}
        self._peers_lock = threading.Lock()

    def peers(self) -> Dict[Endpoint, float]:
        self._cleanup()
        with self._peers_lock:
            return dict(self._peers)

    def send_to(self, endpoint: Endpoint, text: str):
        self.transport.send(endpoint, text)

    def broadcast(self, text: str) -> int:
        """
        Send text to every live peer. Returns the number of peers reached.
        """
        count = 0
        for endpoint in self.peers():
            try:
                self.transport.send(endpoint, text)
            except OSError as exc:
                logger.warning("[host] broadcast to %s failed: %s", endpoint, exc)
                continue
            count += 1
        return count

    def _handle(self, sender: Endpoint, message: str):
        logger.debug("[host] from %s: %s", sender, message)
        with self._peers_lock:
            self._peers[sender] = time.time()
        self._cleanup()

        self._deliver(sender, message)
        self.transport.send(sender, ack_for(message))

    def _cleanup(self):
        now = time.time()
        with self._peers_lock:
            expired = [
                endpoint
                for endpoint, last_seen in self._peers.items()
                if now - last_seen > self.peer_timeout
            ]
            for endpoint in expired:
                del self._peers[endpoint]

    def describe(self) -> Dict:
        info = super().describe()
        info["peers"] = [
            {"endpoint": str(endpoint), "last_seen": last_seen}
            for endpoint, last_seen in self.peers().items()
        ]
        return info


class ClientSession(RoleSession):
    """
    Peer of a known host. Receive-only in steady state; inbound text goes to
    on_message with no protocol reaction.
    """

    role = Role.CLIENT

    def __init__(
        self,
        transport,
        remote: Endpoint,
        on_message=None,
        poll_interval=0.01,
        keepalive_interval: float = 0.0,
    ):
        super().__init__(transport, remote, on_message, poll_interval)
        self.keepalive_interval = keepalive_interval
        self.last_heard: Optional[float] = None
        self._keepalive_thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()

    def start(self):
        super().start()
        if self.keepalive_interval > 0:
            self._keepalive_thread = threading.Thread(
                target=self._keepalive_loop,
                name="udprole-client-keepalive",
                daemon=True,
            )
            self._keepalive_thread.start()
        return self

    def send_to_host(self, text: str):
        self.transport.send(self.remote, text)

    def _handle(self, sender: Endpoint, message: str):
        logger.debug("[client] from %s: %s", sender, message)
        self.last_heard = time.time()
        self._deliver(sender, message)

    def _keepalive_loop(self):
        while not self._stopped.wait(self.keepalive_interval):
            try:
                self.transport.send(self.remote, CONNECT)
            except OSError as exc:
                logger.warning("[client] keep-alive to %s failed: %s", self.remote, exc)
            except TransportNotOpen:
                break

    def _on_stop(self):
        self._stopped.set()

    def _workers(self):
        workers = super()._workers()
        if self._keepalive_thread is not None:
            workers.append(self._keepalive_thread)
        return workers

    def describe(self) -> Dict:
        info = super().describe()
        info["last_heard"] = self.last_heard
        return info
