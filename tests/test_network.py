import socket
from collections import namedtuple

import pytest

from udprole.core import network
from udprole.core.models import Endpoint, ack_for

Addr = namedtuple("Addr", "family address")
Stats = namedtuple("Stats", "isup")


@pytest.fixture
def fake_interfaces(monkeypatch):
    addrs = {
        "lo": [Addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [Addr(socket.AF_INET6, "fe80::1"), Addr(socket.AF_INET, "192.168.1.20")],
        "wlan0": [Addr(socket.AF_INET, "10.0.0.7")],
    }
    stats = {"lo": Stats(True), "eth0": Stats(False), "wlan0": Stats(True)}
    monkeypatch.setattr(network.psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(network.psutil, "net_if_stats", lambda: stats)


def test_list_ipv4_interfaces_skips_other_families(fake_interfaces):
    assert network.list_ipv4_interfaces() == [
        ("lo", "127.0.0.1"),
        ("eth0", "192.168.1.20"),
        ("wlan0", "10.0.0.7"),
    ]


def test_default_interface_skips_loopback_and_down_links(fake_interfaces):
    assert network.default_interface_ip() == "10.0.0.7"


@pytest.mark.parametrize(
    "value, expected",
    [("auto", "10.0.0.7"), ("", "10.0.0.7"), ("eth0", "192.168.1.20"), ("0.0.0.0", "0.0.0.0")],
)
def test_resolve_interface(fake_interfaces, value, expected):
    assert network.resolve_interface(value) == expected


def test_resolve_interface_rejects_unknown_names(fake_interfaces):
    with pytest.raises(ValueError):
        network.resolve_interface("eth9")


def test_endpoint_parse_and_render():
    endpoint = Endpoint.parse("192.168.1.20:7777")

    assert endpoint == Endpoint("192.168.1.20", 7777)
    assert str(endpoint) == "192.168.1.20:7777"
    assert endpoint.as_tuple() == ("192.168.1.20", 7777)


@pytest.mark.parametrize("value", ["7777", ":7777", "host:", "host:port", "host:99999"])
def test_endpoint_parse_rejects_garbage(value):
    with pytest.raises(ValueError):
        Endpoint.parse(value)


def test_ack_prefixes_original_text():
    assert ack_for("CONNECT") == "ACK:CONNECT"
    assert ack_for("") == "ACK:"
