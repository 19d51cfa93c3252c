# udprole/core/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from udprole.core.transport import Transport

# Reserved protocol literals
CONNECT = "CONNECT"
PING = "PING"
ACK_PREFIX = "ACK:"


def ack_for(text: str) -> str:
    return f"{ACK_PREFIX}{text}"


class Role(Enum):
    HOST = "host"
    CLIENT = "client"


class SessionState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Endpoint:
    """
    (address, port) of a local binding or a remote peer.
    """

    host: str
    port: int

    @classmethod
    def parse(cls, value: str) -> Endpoint:
        host, sep, port = value.strip().rpartition(":")
        if not sep or not host:
            raise ValueError(f"Expected <ip>:<port>, got {value!r}")
        try:
            port_num = int(port)
        except ValueError:
            raise ValueError(f"Invalid port in {value!r}") from None
        if not 0 < port_num < 65536:
            raise ValueError(f"Port out of range in {value!r}")
        return cls(host, port_num)

    def as_tuple(self):
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class Election:
    """
    Outcome of one election: the role and the transport it leaves open.
    """

    role: Role
    transport: Transport
    remote: Optional[Endpoint] = None
