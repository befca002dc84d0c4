"""Tests for the bookmarking HTTP and WebSocket API.

Each test builds a fresh app through create_app() so that store mode,
policy and exclusions can vary per test without touching the environment.
"""

from contextlib import ExitStack

import pytest
from fastapi.testclient import TestClient

from backend.app_factory import create_app

PENDULUM = {"omega": 1, "delta": 1, "damping": 1, "length": 1000}
PENDULUM_BOOKMARK = "?_inputs_&damping=1&delta=1&length=100&omega=1"


@pytest.fixture
def make_client(tmp_path):
    """Factory for test clients with per-test configuration."""
    with ExitStack() as stack:

        def _make(**overrides):
            settings = {
                "store_mode": "url",
                "policy": "explicit",
                "bookmark_dir": tmp_path / "bookmarks",
                "exclude": [],
                "input_defaults": PENDULUM,
                "production_mode": False,
            }
            settings.update(overrides)
            return stack.enter_context(TestClient(create_app(**settings)))

        yield _make


def open_session(client, query=""):
    response = client.post("/api/sessions" + query)
    assert response.status_code == 201
    return response.json()


class TestOpenSession:
    """Tests for POST /api/sessions."""

    def test_plain_page_load_uses_declared_defaults(self, make_client):
        session = open_session(make_client())

        assert session["inputs"] == PENDULUM
        assert session["restored"] is False
        assert session["location"] == ""
        assert session["warnings"] == []
        assert session["policy"] == "explicit"

    def test_bookmarked_url_restores_inputs(self, make_client):
        session = open_session(make_client(), PENDULUM_BOOKMARK)

        assert session["restored"] is True
        assert session["inputs"]["length"] == 100
        assert session["location"] == PENDULUM_BOOKMARK

    def test_unrelated_query_parameters_are_not_a_bookmark(self, make_client):
        session = open_session(make_client(), "?utm_source=newsletter")
        assert session["restored"] is False
        assert session["warnings"] == []

    def test_unknown_ids_are_reported_not_applied(self, make_client):
        session = open_session(make_client(), "?_inputs_&omega=3&gravity=9.81")

        assert session["inputs"]["omega"] == 3
        assert session["ignored"] == ["gravity"]
        assert "gravity" not in session["inputs"]

    @pytest.mark.parametrize(
        "query",
        [
            "?_inputs_&omega=%7Bbroken",
            "?_state_id_=zzzz",
            "?_state_id_=0123456789abcdef",
            "?_inputs_&omega=1e999",
            "?_inputs_&omega=" + "1" * 5000,
        ],
    )
    def test_broken_bookmark_falls_back_to_defaults(self, make_client, query):
        client = make_client(store_mode="server")

        session = open_session(client, query)

        assert session["restored"] is False
        assert session["inputs"] == PENDULUM
        assert len(session["warnings"]) == 1

    def test_get_session_returns_current_state(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        response = client.get(f"/api/sessions/{session_id}")

        assert response.status_code == 200
        assert response.json()["session_id"] == session_id
        assert response.json()["created_at"] > 0

    def test_unknown_session_is_404(self, make_client):
        client = make_client()
        assert client.get("/api/sessions/nope").status_code == 404
        assert client.put("/api/sessions/nope/inputs", json={"inputs": {}}).status_code == 404
        assert client.post("/api/sessions/nope/bookmark").status_code == 404
        assert client.delete("/api/sessions/nope").status_code == 404

    def test_close_session(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        assert client.delete(f"/api/sessions/{session_id}").status_code == 200
        assert client.get(f"/api/sessions/{session_id}").status_code == 404


class TestExplicitPolicy:
    def test_input_changes_do_not_touch_location(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        response = client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"length": 100}})

        body = response.json()
        assert response.status_code == 200
        assert body["changed"] == ["length"]
        assert body["bookmark"] is None
        assert body["location"] == ""

    def test_bookmark_button_returns_full_url(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]
        client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"length": 100}})

        response = client.post(f"/api/sessions/{session_id}/bookmark")

        body = response.json()
        assert response.status_code == 200
        assert body["mode"] == "url"
        assert body["query"] == PENDULUM_BOOKMARK
        assert body["url"] == "http://testserver/" + PENDULUM_BOOKMARK
        assert body["state_id"] is None

    def test_bookmarked_url_opens_same_state_in_new_session(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]
        client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"omega": 2.5, "delta": 0}})
        query = client.post(f"/api/sessions/{session_id}/bookmark").json()["query"]

        restored = open_session(client, query)

        assert restored["inputs"] == {"omega": 2.5, "delta": 0, "damping": 1, "length": 1000}

    def test_unknown_input_is_rejected(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        response = client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"gravity": 1}})

        assert response.status_code == 400
        assert "gravity" in response.json()["error"]

    def test_reserved_characters_survive_url_round_trip(self, make_client):
        client = make_client(input_defaults={"title": "plot", "upload": None})
        session_id = open_session(client)["session_id"]
        client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"title": "a&b=c"}})

        body = client.post(f"/api/sessions/{session_id}/bookmark").json()

        restored = open_session(client, body["query"])
        assert restored["inputs"]["title"] == "a&b=c"


class TestAutomaticPolicy:
    def test_each_update_pushes_new_location(self, make_client):
        client = make_client(policy="automatic")
        session_id = open_session(client)["session_id"]

        response = client.put(
            f"/api/sessions/{session_id}/inputs", json={"inputs": {"length": 100, "omega": 1}}
        )

        body = response.json()
        assert body["changed"] == ["length"]
        assert body["bookmark"] == PENDULUM_BOOKMARK
        assert body["location"] == PENDULUM_BOOKMARK

    def test_excluded_input_change_does_not_bookmark(self, make_client):
        client = make_client(policy="automatic", exclude=["damping"])
        session_id = open_session(client)["session_id"]

        body = client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"damping": 0.1}}).json()

        assert body["changed"] == ["damping"]
        assert body["bookmark"] is None
        assert body["location"] == ""

    def test_excluded_input_never_appears_in_location(self, make_client):
        client = make_client(policy="automatic", exclude=["damping"])
        session_id = open_session(client)["session_id"]

        body = client.put(
            f"/api/sessions/{session_id}/inputs", json={"inputs": {"damping": 0.1, "omega": 4}}
        ).json()

        assert body["bookmark"] == "?_inputs_&delta=1&length=1000&omega=4"


class TestServerStore:
    def test_reference_bookmark_round_trip(self, make_client, tmp_path):
        client = make_client(store_mode="server")
        session_id = open_session(client)["session_id"]
        client.put(f"/api/sessions/{session_id}/inputs", json={"inputs": {"length": 100}})

        bookmark = client.post(f"/api/sessions/{session_id}/bookmark").json()

        assert bookmark["mode"] == "server"
        assert bookmark["query"] == f"?_state_id_={bookmark['state_id']}"
        assert (tmp_path / "bookmarks" / bookmark["state_id"] / "input.json").is_file()

        restored = open_session(client, bookmark["query"])
        assert restored["restored"] is True
        assert restored["inputs"]["length"] == 100

    def test_list_and_delete_stored_bookmarks(self, make_client):
        client = make_client(store_mode="server")
        session_id = open_session(client)["session_id"]
        state_id = client.post(f"/api/sessions/{session_id}/bookmark").json()["state_id"]

        listing = client.get("/api/bookmarks").json()
        assert listing == {"state_ids": [state_id], "count": 1}

        assert client.delete(f"/api/bookmarks/{state_id}").status_code == 200
        assert client.delete(f"/api/bookmarks/{state_id}").status_code == 404
        assert client.get("/api/bookmarks").json()["count"] == 0

        restored = open_session(client, f"?_state_id_={state_id}")
        assert restored["restored"] is False
        assert restored["inputs"] == PENDULUM

    def test_malformed_state_id_on_delete_is_400(self, make_client):
        client = make_client(store_mode="server")
        assert client.delete("/api/bookmarks/not-an-id").status_code == 400

    def test_admin_endpoints_need_server_store(self, make_client):
        client = make_client(store_mode="url")
        assert client.get("/api/bookmarks").status_code == 400

    def test_unreachable_store_fails_bookmark_action(self, make_client, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        client = make_client(store_mode="server", bookmark_dir=blocker)
        session_id = open_session(client)["session_id"]

        response = client.post(f"/api/sessions/{session_id}/bookmark")

        assert response.status_code == 503
        assert "unavailable" in response.json()["error"]

    def test_failed_automatic_capture_keeps_inputs_and_retries(self, make_client, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        client = make_client(store_mode="server", policy="automatic", bookmark_dir=blocker)
        session_id = open_session(client)["session_id"]
        inputs_url = f"/api/sessions/{session_id}/inputs"

        failed = client.put(inputs_url, json={"inputs": {"length": 100}})
        session = client.get(f"/api/sessions/{session_id}").json()

        assert failed.status_code == 503
        assert session["inputs"]["length"] == 100
        assert session["location"] == ""

        blocker.unlink()
        retried = client.put(inputs_url, json={"inputs": {}}).json()

        assert retried["changed"] == []
        assert retried["bookmark"].startswith("?_state_id_=")
        assert retried["location"] == retried["bookmark"]


class TestDisabledBookmarking:
    def test_bookmark_action_is_refused(self, make_client):
        client = make_client(store_mode="disable")
        session = open_session(client)

        response = client.post(f"/api/sessions/{session['session_id']}/bookmark")

        assert session["policy"] == "none"
        assert response.status_code == 400

    def test_incoming_bookmark_is_ignored_with_warning(self, make_client):
        client = make_client(store_mode="disable")

        session = open_session(client, PENDULUM_BOOKMARK)

        assert session["inputs"] == PENDULUM
        assert session["restored"] is False
        assert len(session["warnings"]) == 1


class TestWebSocket:
    def test_initial_message_describes_session(self, make_client):
        client = make_client()
        session_id = open_session(client, PENDULUM_BOOKMARK)["session_id"]

        with client.websocket_connect(f"/ws/{session_id}") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "session"
        assert message["inputs"]["length"] == 100
        assert message["location"] == PENDULUM_BOOKMARK

    def test_automatic_capture_broadcasts_location(self, make_client):
        client = make_client(policy="automatic")
        session_id = open_session(client)["session_id"]

        with client.websocket_connect(f"/ws/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_json({"command": "set_inputs", "data": {"length": 100}})

            location = websocket.receive_json()
            response = websocket.receive_json()

        assert location == {"type": "location", "query": PENDULUM_BOOKMARK}
        assert response["success"] is True
        assert response["changed"] == ["length"]

    def test_bookmark_command(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        with client.websocket_connect(f"/ws/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_json({"command": "bookmark"})
            response = websocket.receive_json()

        assert response["success"] is True
        assert response["query"] == "?_inputs_&damping=1&delta=1&length=1000&omega=1"

    def test_bad_commands_report_errors(self, make_client):
        client = make_client()
        session_id = open_session(client)["session_id"]

        with client.websocket_connect(f"/ws/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_text("{not json")
            assert websocket.receive_json()["success"] is False
            websocket.send_json({"command": "set_inputs", "data": {"gravity": 1}})
            assert websocket.receive_json()["success"] is False
            websocket.send_json({"command": "explode"})
            assert "Unknown command" in websocket.receive_json()["error"]

    def test_unknown_session_is_refused(self, make_client):
        client = make_client()
        with client.websocket_connect("/ws/missing") as websocket:
            message = websocket.receive_json()
        assert message["success"] is False


class TestAppFactory:
    def test_unknown_store_mode_is_rejected(self):
        with pytest.raises(ValueError):
            create_app(store_mode="bogus", input_defaults=PENDULUM)

    def test_unknown_policy_is_rejected(self):
        with pytest.raises(ValueError):
            create_app(policy="whenever", input_defaults=PENDULUM)

    def test_health_reports_configuration(self, make_client):
        client = make_client(policy="automatic", exclude=["damping"])

        info = client.get("/health").json()

        assert info["status"] == "online"
        assert info["policy"] == "automatic"
        assert info["exclude"] == ["damping"]
        assert info["inputs"] == list(PENDULUM)
