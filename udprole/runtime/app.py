from collections import deque
import logging
import sys

from udprole.cli.commands import handle_command, print_menu
from udprole.config.settings import Settings
from udprole.core.errors import ConfigError, ElectionFailed
from udprole.core.negotiator import Negotiator
from udprole.core.network import resolve_interface
from udprole.ui.message_store import MessageStore
from udprole.ui.server import UIServer

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class BufferHandler(logging.Handler):
    """
    Keeps the last formatted records for the /logs command.
    """

    def __init__(self, buffer):
        super().__init__()
        self.buffer = buffer
        self.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%H:%M:%S"))

    def emit(self, record):
        try:
            self.buffer.append(self.format(record))
        except Exception:
            self.handleError(record)


def configure_logging(level: str, log_buffer=None):
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("werkzeug").setLevel(logging.ERROR)
    if log_buffer is not None:
        logging.getLogger().addHandler(BufferHandler(log_buffer))


def main():
    try:
        settings = Settings.from_env().validate()
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    log_buffer = deque(maxlen=200)
    configure_logging(settings.log_level, log_buffer)
    logger = logging.getLogger("udprole")

    # --- Interface selection (auto or configured) ---
    try:
        settings.interface_ip = resolve_interface(settings.interface_ip)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    logger.info("Using interface IP: %s", settings.interface_ip)

    def on_message(sender, message: str):
        print(f"\n[{sender}] {message}")
        print("> ", end="", flush=True)

    messages = MessageStore()
    ui = UIServer(upstream_on_message=on_message, messages=messages)

    negotiator = Negotiator(settings, on_message=ui.on_message)
    try:
        session = negotiator.start()
    except ElectionFailed as exc:
        logger.error("Election failed: %s", exc)
        return 1

    ui.attach(session)
    ui_url = None
    if settings.ui_enabled:
        ui.run(host=settings.ui_host, port=settings.ui_port)
        ui_url = f"http://{settings.ui_host}:{settings.ui_port}"
        logger.info("UI running at %s", ui_url)

    # --- CLI ---
    print_menu(session, ui_url)

    try:
        while True:
            line = input("> ").strip()
            if not line:
                continue

            should_continue = handle_command(
                line=line,
                session=session,
                logs=log_buffer,
            )

            if not should_continue:
                break

    except (KeyboardInterrupt, EOFError):
        pass
    finally:
        print("\nExiting...")
        negotiator.shutdown()

    return 0


if __name__ == "__main__":
    sys.exit(main())
