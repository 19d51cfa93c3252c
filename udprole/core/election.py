# udprole/core/election.py

import logging
import time
from abc import ABC, abstractmethod

from udprole.core.errors import (
    AddressInUse,
    ConfigError,
    ElectionFailed,
    TransportClosed,
)
from udprole.core.models import CONNECT, PING, Election, Endpoint, Role
from udprole.core.transport import Transport

logger = logging.getLogger(__name__)


class ElectionStrategy(ABC):
    """
    Decides, once at startup, whether this process is Host or Client.

    Every strategy returns an Election holding exactly one role and the
    transport that role will own, or raises ElectionFailed.
    """

    name = ""

    @abstractmethod
    def elect(self, settings) -> Election:
        ...

    # ---------------- shared steps ----------------

    def _remote(self, settings) -> Endpoint:
        return Endpoint(settings.remote_host, settings.port)

    def _bind_host(self, settings, blocking: bool) -> Transport:
        return Transport.bind(
            settings.port,
            settings.interface_ip,
            blocking=blocking,
        )

    def _connect_client(self, settings) -> Election:
        """
        Open an outbound transport and announce ourselves to the host.
        """
        remote = self._remote(settings)
        try:
            transport = Transport.open_ephemeral()
        except OSError as exc:
            raise ElectionFailed(f"Could not open client transport: {exc}") from exc

        try:
            transport.send(remote, CONNECT)
        except OSError as exc:
            # Best-effort: a host started later still gets our later traffic.
            logger.warning("CONNECT to %s failed: %s", remote, exc)

        logger.info("Client started on %s, target host %s", transport.local_endpoint, remote)
        return Election(Role.CLIENT, transport, remote)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class BindRace(ElectionStrategy):
    """
    Whoever binds the port first is Host; losers become Clients.
    """

    name = "bind_race"

    def elect(self, settings) -> Election:
        try:
            transport = self._bind_host(settings, blocking=False)
        except AddressInUse:
            logger.info("Port %d already in use, becoming client", settings.port)
            return self._connect_client(settings)
        except OSError as exc:
            raise ElectionFailed(f"Failed to bind port {settings.port}: {exc}") from exc

        logger.info("Became host (bound %s)", transport.local_endpoint)
        return Election(Role.HOST, transport)


class FixedRole(ElectionStrategy):
    """
    Operator-assigned role. A Host that cannot bind never falls back to Client.
    """

    name = "fixed"

    def __init__(self, role: Role | None = None):
        self.role = role

    def elect(self, settings) -> Election:
        role = self.role or settings.role
        if role is None:
            raise ElectionFailed("Fixed-role election needs a configured role")

        if role is Role.CLIENT:
            return self._connect_client(settings)

        try:
            transport = self._bind_host(settings, blocking=True)
        except (AddressInUse, OSError) as exc:
            raise ElectionFailed(
                f"Configured as host but port {settings.port} is unavailable: {exc}"
            ) from exc

        logger.info("Host started on %s", transport.local_endpoint)
        return Election(Role.HOST, transport)

    def __repr__(self) -> str:
        role = self.role.value if self.role else None
        return f"<FixedRole role={role}>"


class ProbeThenBind(ElectionStrategy):
    """
    Look for a live Host first (PING + bounded wait), bind only if none answers.

    The probe reply doubles as a liveness check and is never handed to the
    application.
    """

    name = "probe"

    def elect(self, settings) -> Election:
        remote = self._remote(settings)

        reply = None
        probe = None
        try:
            probe = Transport.open_ephemeral()
            probe.send(remote, PING)
            reply = self._await_reply(probe, settings.probe_timeout, settings.poll_interval)
        except (OSError, TransportClosed) as exc:
            logger.info("Probe to %s failed: %s", remote, exc)

        if reply is not None:
            sender, text = reply
            logger.debug("Probe reply from %s discarded: %r", sender, text)
            logger.info("Host answered at %s, becoming client", remote)
            return Election(Role.CLIENT, probe, remote)

        if probe is not None:
            probe.close()

        logger.info("No host answered within %.2fs, trying to bind", settings.probe_timeout)
        try:
            transport = self._bind_host(settings, blocking=True)
        except (AddressInUse, OSError) as exc:
            # Includes AddressInUse: someone bound between probe and bind.
            raise ElectionFailed(
                f"No host reachable at {remote} and port {settings.port} unavailable: {exc}"
            ) from exc

        logger.info("Became host (bound %s)", transport.local_endpoint)
        return Election(Role.HOST, transport)

    @staticmethod
    def _await_reply(probe: Transport, timeout: float, poll_interval: float):
        deadline = time.monotonic() + timeout
        while True:
            received = probe.receive_nonblocking()
            if received is not None:
                return received
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(poll_interval, remaining))


STRATEGIES = {
    BindRace.name: BindRace,
    FixedRole.name: FixedRole,
    ProbeThenBind.name: ProbeThenBind,
}


def strategy_for(settings) -> ElectionStrategy:
    """
    Build the election strategy selected by settings.strategy.
    """
    cls = STRATEGIES.get(settings.strategy)
    if cls is None:
        raise ConfigError(f"Unknown election strategy: {settings.strategy!r}")

    if cls is FixedRole:
        if settings.role is None:
            raise ConfigError("Strategy 'fixed' needs a role (host or client)")
        return FixedRole(settings.role)

    return cls()
