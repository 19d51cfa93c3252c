# udprole/cli/commands.py

from udprole.core.errors import TransportNotOpen, UsageError
from udprole.core.models import Endpoint, Role


def print_menu(session, ui_url=None):
    info = session.describe()
    print("\n=== udprole ===")
    print(f"Role: {info['role']}")
    print(f"Local: {info['local']}")
    if info["remote"]:
        print(f"Host: {info['remote']}")
    if ui_url:
        print(f"UI: {ui_url}")
    print("Commands: /status /send /sendto /peers /logs /help /quit\n")


def print_help():
    print(
        "\nCommands:\n"
        "  /status                  Show role and session state\n"
        "  /send <message>          Client: send to host. Host: send to all peers\n"
        "  /sendto <ip:port> <msg>  Host only: send to one peer\n"
        "  /peers                   Host only: list recent peers\n"
        "  /logs                    Show recent logs\n"
        "  /help                    Show this help\n"
        "  /quit                    Exit\n"
    )


def handle_command(line, session, logs=None):
    """
    Handle a single CLI command.
    Returns False if the app should exit.
    """
    if line in ("/quit", "/exit"):
        return False

    if line == "/help":
        print_help()
        return True

    if line == "/status":
        info = session.describe()
        print(f"Role: {info['role']}  State: {info['state']}  Local: {info['local']}")
        if info["remote"]:
            print(f"Host: {info['remote']}")
        return True

    if line == "/logs":
        if not logs:
            print("No logs yet.")
            return True
        print("\nRecent logs:")
        for entry in logs:
            print(f"  {entry}")
        print()
        return True

    try:
        return _handle_send_command(line, session)
    except UsageError as exc:
        print(f"Not available: {exc}")
    except TransportNotOpen:
        print("Session is closed.")
    except OSError as exc:
        print(f"Send failed: {exc}")
    return True


def _handle_send_command(line, session):
    if line == "/peers":
        if session.role is not Role.HOST:
            raise UsageError("peer list is host-only")
        peers = session.peers()
        if not peers:
            print("No peers yet.")
        else:
            print("\nPeers:")
            for endpoint in peers:
                print(f"  {endpoint}")
            print()
        return True

    if line.startswith("/sendto "):
        parts = line.split(maxsplit=2)
        if len(parts) < 3:
            print("Usage: /sendto <ip:port> <message>")
            return True

        _, target, msg = parts
        try:
            endpoint = Endpoint.parse(target)
        except ValueError as exc:
            print(str(exc))
            return True
        session.send_to(endpoint, msg)
        print(f"Sent to {endpoint}.")
        return True

    if line.startswith("/send "):
        msg = line[len("/send "):]
        if session.role is Role.CLIENT:
            session.send_to_host(msg)
            print("Sent to host.")
        else:
            sent = session.broadcast(msg)
            print(f"Sent to {sent} peer(s).")
        return True

    print("Unknown command. Type /help.")
    return True
