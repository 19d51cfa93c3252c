from flask import jsonify, request

from udprole.core.errors import TransportNotOpen, UsageError
from udprole.core.models import Endpoint, Role
from udprole.core.network import list_ipv4_interfaces


def configure_routes(app, ui):
    @app.errorhandler(UsageError)
    def handle_usage_error(err):
        return jsonify({"error": str(err)}), 409

    @app.errorhandler(TransportNotOpen)
    def handle_closed(err):
        return jsonify({"error": str(err)}), 503

    @app.get("/api/state")
    def api_state():
        try:
            after_id = int(request.args.get("after", "0"))
        except ValueError:
            after_id = 0

        messages = ui.messages.serialize_messages(
            ui.messages.messages_since(after_id)
        )

        session = ui.session
        return jsonify(
            {
                "session": session.describe() if session else None,
                "messages": messages,
            }
        )

    @app.post("/api/send")
    def api_send():
        session = ui.session
        if not session:
            return jsonify({"error": "Session not ready"}), 503

        payload = request.get_json(silent=True) or {}
        text = payload.get("text") or ""
        target = (payload.get("target") or "").strip()

        if not text.strip():
            return jsonify({"error": "Message is empty"}), 400

        if target:
            try:
                endpoint = Endpoint.parse(target)
            except ValueError as exc:
                return jsonify({"error": str(exc)}), 400
            session.send_to(endpoint, text)
            ui.messages.store("out", str(endpoint), text)
            return jsonify({"ok": True, "sent": 1})

        if session.role is Role.CLIENT:
            session.send_to_host(text)
            ui.messages.store("out", str(session.remote), text)
            return jsonify({"ok": True, "sent": 1})

        sent = session.broadcast(text)
        ui.messages.store("out", "all", text)
        return jsonify({"ok": True, "sent": sent})

    @app.get("/api/interfaces")
    def api_interfaces():
        return jsonify(
            {
                "interfaces": [
                    {"name": name, "ip": ip}
                    for name, ip in list_ipv4_interfaces()
                ]
            }
        )
