# udprole/core/negotiator.py

import logging
import threading
from typing import Optional

from udprole.core.election import ElectionStrategy, strategy_for
from udprole.core.errors import ElectionFailed, UsageError
from udprole.core.models import Role
from udprole.core.session import ClientSession, HostSession, OnMessage, RoleSession

logger = logging.getLogger(__name__)


class Negotiator:
    """
    Runs one election, then builds and starts the matching role session.

    The negotiator does not care which strategy it runs; the role comes back
    as a value and is never stored globally.

    Usage:
        with Negotiator(settings, on_message=handler) as session:
            session.send_to_host("hello")
    """

    def __init__(
        self,
        settings,
        strategy: Optional[ElectionStrategy] = None,
        on_message: Optional[OnMessage] = None,
    ):
        self.settings = settings
        self.strategy = strategy or strategy_for(settings)
        self.on_message = on_message

        self._session: Optional[RoleSession] = None
        self._started = False
        self._lock = threading.Lock()

    @property
    def session(self) -> Optional[RoleSession]:
        return self._session

    @property
    def role(self) -> Optional[Role]:
        return self._session.role if self._session else None

    def start(self) -> RoleSession:
        """
        Elect a role and start its receive loop.

        Raises ElectionFailed when no role could be established.
        """
        with self._lock:
            if self._started:
                raise UsageError("Negotiator already ran its election")
            self._started = True

        logger.info("Starting election with %r", self.strategy)
        election = self.strategy.elect(self.settings)

        if election.role is Role.HOST:
            session = HostSession(
                election.transport,
                on_message=self.on_message,
                poll_interval=self.settings.poll_interval,
                peer_timeout=self.settings.peer_timeout,
            )
        elif election.role is Role.CLIENT:
            session = ClientSession(
                election.transport,
                election.remote,
                on_message=self.on_message,
                poll_interval=self.settings.poll_interval,
                keepalive_interval=self.settings.keepalive_interval,
            )
        else:
            election.transport.close()
            raise ElectionFailed(f"Election produced no usable role: {election.role!r}")

        try:
            session.start()
        except Exception:
            election.transport.close()
            raise

        self._session = session
        return session

    def shutdown(self, session: Optional[RoleSession] = None) -> bool:
        """
        Stop the session: close its transport, then join the receive loop
        for at most settings.join_timeout seconds.

        Idempotent. Returns False if the loop had to be abandoned.
        """
        session = session or self._session
        if session is None:
            return True
        return session.stop(self.settings.join_timeout)

    def __enter__(self) -> RoleSession:
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
