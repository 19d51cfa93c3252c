import pytest

from udprole.core.models import Endpoint
from udprole.core.session import ClientSession, HostSession
from udprole.ui.server import UIServer

from helpers import LOCALHOST, ScriptedTransport


@pytest.fixture
def host_ui():
    transport = ScriptedTransport()
    session = HostSession(transport)
    ui = UIServer(session=session)
    return ui, transport


@pytest.fixture
def client_ui():
    transport = ScriptedTransport()
    session = ClientSession(transport, Endpoint(LOCALHOST, 7777))
    ui = UIServer(session=session)
    return ui, transport


def test_state_reports_session_and_messages(client_ui):
    ui, _ = client_ui
    ui.on_message(Endpoint(LOCALHOST, 7777), "ACK:CONNECT")

    body = ui.app.test_client().get("/api/state").get_json()

    assert body["session"]["role"] == "client"
    assert body["session"]["remote"] == "127.0.0.1:7777"
    assert [m["text"] for m in body["messages"]] == ["ACK:CONNECT"]
    assert body["messages"][0]["direction"] == "in"


def test_state_after_filters_messages(client_ui):
    ui, _ = client_ui
    first = ui.messages.store("in", "127.0.0.1:7777", "one")
    ui.messages.store("in", "127.0.0.1:7777", "two")

    body = ui.app.test_client().get(f"/api/state?after={first.id}").get_json()

    assert [m["text"] for m in body["messages"]] == ["two"]


def test_client_send_goes_to_host(client_ui):
    ui, transport = client_ui

    resp = ui.app.test_client().post("/api/send", json={"text": "hello"})

    assert resp.status_code == 200
    assert transport.sent == [(Endpoint(LOCALHOST, 7777), "hello")]


def test_client_send_with_target_is_conflict(client_ui):
    ui, transport = client_ui

    resp = ui.app.test_client().post(
        "/api/send", json={"text": "hello", "target": "127.0.0.1:9000"}
    )

    assert resp.status_code == 409
    assert transport.sent == []


def test_host_send_to_target(host_ui):
    ui, transport = host_ui

    resp = ui.app.test_client().post(
        "/api/send", json={"text": "hi", "target": "127.0.0.1:9000"}
    )

    assert resp.status_code == 200
    assert transport.sent == [(Endpoint(LOCALHOST, 9000), "hi")]


def test_host_send_without_target_broadcasts(host_ui):
    ui, _ = host_ui

    resp = ui.app.test_client().post("/api/send", json={"text": "hi"})

    assert resp.status_code == 200
    assert resp.get_json()["sent"] == 0


@pytest.mark.parametrize(
    "payload",
    [{"text": "   "}, {"text": "hi", "target": "not-an-endpoint"}],
)
def test_send_rejects_bad_input(host_ui, payload):
    ui, _ = host_ui

    resp = ui.app.test_client().post("/api/send", json=payload)

    assert resp.status_code == 400


def test_send_without_session_is_unavailable():
    resp = UIServer().app.test_client().post("/api/send", json={"text": "hi"})
    assert resp.status_code == 503


def test_upstream_hook_is_called():
    seen = []
    ui = UIServer(upstream_on_message=lambda sender, text: seen.append(text))

    ui.on_message(Endpoint(LOCALHOST, 1), "ping")

    assert seen == ["ping"]
    assert len(ui.messages) == 1
