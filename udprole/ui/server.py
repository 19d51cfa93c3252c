from __future__ import annotations

import threading
from typing import Callable, Optional

from flask import Flask

from udprole.ui.message_store import MessageStore
from udprole.ui.routes import configure_routes


class UIServer:
    """
    Thin Flask status/messaging layer.
    - No transport
    - No election
    - No session ownership (shutdown stays with the negotiator)
    """

    def __init__(
        self,
        session=None,
        upstream_on_message: Optional[Callable] = None,
        messages: Optional[MessageStore] = None,
    ):
        self.session = session
        self.upstream_on_message = upstream_on_message

        self._lock = threading.Lock()
        self.messages = messages or MessageStore(self._lock)

        self.app = Flask(__name__)
        configure_routes(self.app, self)

    # ---------------- lifecycle ----------------

    def run(self, host: str = "127.0.0.1", port: int = 5000):
        thread = threading.Thread(
            target=self.app.run,
            kwargs={
                "host": host,
                "port": port,
                "debug": False,
                "use_reloader": False,
                "threaded": True,
            },
            daemon=True,
        )
        thread.start()
        return thread

    def attach(self, session):
        """
        Point the UI at the session produced by the election.
        """
        self.session = session
        return self

    # ---------------- inbound hook ----------------

    def on_message(self, sender, message: str):
        """
        Hook passed to the negotiator as on_message.
        Receives every inbound datagram of the session.
        """
        self.messages.store("in", str(sender), message)

        if self.upstream_on_message:
            self.upstream_on_message(sender, message)


def run_ui_server(
    session=None,
    upstream_on_message: Optional[Callable] = None,
    host: str = "127.0.0.1",
    port: int = 5000,
) -> UIServer:
    """
    Convenience helper.
    """
    ui = UIServer(
        session=session,
        upstream_on_message=upstream_on_message,
    )
    ui.run(host=host, port=port)
    return ui
