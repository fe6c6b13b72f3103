import pytest
from fastapi.testclient import TestClient

from app.main import ACKNOWLEDGMENT, app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def process_turn(mocker):
    return mocker.patch("app.main.process_turn")


def test_index_banner(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == "Chatfuel ↔ Dify Render bridge is running."


def test_health_reports_readiness(client, mocker, settings):
    mocker.patch("app.main.get_settings", return_value=settings)
    resp = client.get("/health")
    assert resp.json() == {"status": "ok", "upstream_ready": True, "delivery_ready": True}


def test_turn_is_acknowledged_and_handed_off(client, process_turn):
    resp = client.post(
        "/chatfuel",
        json={
            "user_text": "  What are the hours?  ",
            "chatfuel_user_id": 12345,
            "dify_conversation_id": "conv-1",
            "inputs": {"lang": "en"},
            "route": "faq",
        },
    )

    assert resp.status_code == 200
    assert resp.json() == ACKNOWLEDGMENT
    process_turn.assert_called_once()
    turn = process_turn.call_args.args[0]
    assert turn.user_text == "What are the hours?"
    assert turn.user_id == "12345"
    assert turn.conversation_id == "conv-1"
    assert turn.inputs == {"lang": "en"}
    assert turn.route == "faq"


def test_alternate_keys_and_null_handle(client, process_turn):
    resp = client.post(
        "/chatfuel",
        json={
            "chatfuel user input": "hello",
            "messenger_user_id": "m-1",
            "dify_conversation_id": "NULL",
        },
    )

    assert resp.json() == ACKNOWLEDGMENT
    turn = process_turn.call_args.args[0]
    assert turn.user_text == "hello"
    assert turn.user_id == "m-1"
    assert turn.conversation_id is None
    assert turn.inputs == {}


def test_missing_user_id_is_acknowledged_but_not_processed(client, process_turn, caplog):
    resp = client.post("/chatfuel", json={"user_text": "hi"})

    assert resp.json() == ACKNOWLEDGMENT
    process_turn.assert_not_called()
    assert "Missing userId" in caplog.text


def test_background_failure_does_not_reach_caller(client, mocker, settings):
    mocker.patch("relay.pipeline.get_settings", return_value=settings)
    mocker.patch("relay.clients.dify.DifyClient.ask", side_effect=RuntimeError("boom"))

    resp = client.post("/chatfuel", json={"user_text": "hi", "chatfuel_user_id": "u"})

    assert resp.status_code == 200
    assert resp.json() == ACKNOWLEDGMENT


def test_lifespan_warns_about_missing_config(mocker, settings, caplog):
    settings.dify_api_key = None
    mocker.patch("app.main.get_settings", return_value=settings)

    with TestClient(app):
        pass

    assert "Dify is not configured, missing: DIFY_API_KEY" in caplog.text
    assert "Chatfuel broadcast" not in caplog.text


def test_string_inputs_and_numeric_route_are_coerced(client, process_turn):
    resp = client.post(
        "/chatfuel",
        json={"user_text": "hi", "chatfuel_user_id": "u", "inputs": '{"lang": "en"}', "route": 5},
    )

    assert resp.status_code == 200
    assert resp.json() == ACKNOWLEDGMENT
    turn = process_turn.call_args.args[0]
    assert turn.inputs == {"lang": "en"}
    assert turn.route == "5"


def test_unusable_inputs_become_empty(client, process_turn):
    for inputs in ("not json", "[1, 2]", 7):
        resp = client.post("/chatfuel", json={"user_text": "hi", "chatfuel_user_id": "u", "inputs": inputs, "route": ""})

        assert resp.status_code == 200
        assert resp.json() == ACKNOWLEDGMENT
        turn = process_turn.call_args.args[0]
        assert turn.inputs == {}
        assert turn.route is None
