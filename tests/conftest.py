import socket

import pytest

from udprole.config.settings import Settings

from helpers import LOCALHOST, Inbox


@pytest.fixture
def free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind((LOCALHOST, 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def make_settings(free_port):
    def factory(**overrides):
        values = {
            "interface_ip": LOCALHOST,
            "remote_host": LOCALHOST,
            "port": free_port,
            "poll_interval": 0.01,
            "probe_timeout": 0.3,
            "join_timeout": 1.0,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def raw_socket():
    socks = []

    def factory(bind_port=None):
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if bind_port is not None:
            s.bind((LOCALHOST, bind_port))
        socks.append(s)
        return s

    yield factory
    for s in socks:
        s.close()


@pytest.fixture
def inbox():
    return Inbox()
