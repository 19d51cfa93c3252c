# udprole/core/network.py

import socket

import psutil

LOOPBACK_IP = "127.0.0.1"


def list_ipv4_interfaces():
    """
    Returns a list of (interface_name, ipv4_address)
    """
    interfaces = []

    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family == socket.AF_INET:
                interfaces.append((name, addr.address))

    return interfaces


def default_interface_ip() -> str:
    """
    First non-loopback IPv4 address that is up, else loopback.
    """
    stats = psutil.net_if_stats()

    for name, ip in list_ipv4_interfaces():
        if ip.startswith("127."):
            continue
        if name in stats and not stats[name].isup:
            continue
        return ip

    return LOOPBACK_IP


def resolve_interface(value: str) -> str:
    """
    Turn a configured interface into a bindable IPv4 address.

    Accepts "auto", an interface name (e.g. "eth0") or a literal address.
    """
    value = (value or "").strip()
    if not value or value == "auto":
        return default_interface_ip()

    for name, ip in list_ipv4_interfaces():
        if name == value:
            return ip

    try:
        socket.inet_aton(value)
    except OSError:
        raise ValueError(f"Unknown interface: {value}") from None
    return value
