"""Tests for the REST client: error mapping, envelope unwrapping and the
401 -> refresh -> retry path.  The requests session is a MagicMock.
"""

import unittest
from unittest.mock import MagicMock

import requests

from wt.net.api import ApiClient, ApiError


class FakeResponse:

    def __init__(self, status_code=200, body=None, raw=None):
        self.status_code = status_code
        self._body = body
        if raw is not None:
            self.content = raw
        else:
            self.content = b"" if body is None else b"{...}"

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON")
        return self._body


def make_client(*responses, token="tok"):
    session = MagicMock()
    session.request.side_effect = list(responses)
    client = ApiClient("https://api.example.com/api/v1/", lambda: token, timeout=5, session=session)
    return client, session


class TestRequest(unittest.TestCase):

    def test_builds_url_and_bearer_header(self):
        client, session = make_client(FakeResponse(200, {"ok": True}))
        self.assertEqual(client.get("/projects"), {"ok": True})
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("GET", "https://api.example.com/api/v1/projects"))
        self.assertEqual(kwargs["headers"], {"Authorization": "Bearer tok"})
        self.assertEqual(kwargs["timeout"], 5)

    def test_unauthenticated_call_sends_no_header(self):
        client, session = make_client(FakeResponse(200, {}))
        client.post("/auth/login", json={"email": "a"}, auth=False)
        self.assertEqual(session.request.call_args.kwargs["headers"], {})

    def test_no_token_sends_no_header(self):
        client, session = make_client(FakeResponse(200, {}), token=None)
        client.get("/projects")
        self.assertEqual(session.request.call_args.kwargs["headers"], {})

    def test_empty_body_returns_empty_dict(self):
        client, _ = make_client(FakeResponse(204))
        self.assertEqual(client.post("/attendance/biometric"), {})

    def test_server_message_becomes_error(self):
        client, _ = make_client(FakeResponse(400, {"message": "Project is archived"}))
        with self.assertRaises(ApiError) as ctx:
            client.post("/time-entries/start")
        self.assertEqual(str(ctx.exception), "Project is archived")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_error_without_message(self):
        client, _ = make_client(FakeResponse(500, None, raw=b"<html>"))
        with self.assertRaises(ApiError) as ctx:
            client.get("/projects")
        self.assertEqual(str(ctx.exception), "Request failed with status 500")

    def test_network_error(self):
        client, session = make_client()
        session.request.side_effect = requests.ConnectionError("boom")
        with self.assertRaises(ApiError) as ctx:
            client.get("/projects")
        self.assertIn("Network error", str(ctx.exception))
        self.assertIsNone(ctx.exception.status_code)

    def test_non_json_success_body(self):
        client, _ = make_client(FakeResponse(200, None, raw=b"oops"))
        with self.assertRaises(ApiError):
            client.get("/projects")


# ──────────────────────────────────────────────────────────────────────────
# 401 handling
# ──────────────────────────────────────────────────────────────────────────

class TestUnauthorized(unittest.TestCase):

    def test_refresh_then_retry_once(self):
        client, session = make_client(FakeResponse(401, {}), FakeResponse(200, {"value": 1}))
        client.refresher = MagicMock(return_value=True)
        client.on_auth_failure = MagicMock()

        self.assertEqual(client.get("/time-entries/open"), {"value": 1})
        client.refresher.assert_called_once_with()
        client.on_auth_failure.assert_not_called()
        self.assertEqual(session.request.call_count, 2)

    def test_failed_refresh_forces_logout(self):
        client, session = make_client(FakeResponse(401, {}))
        client.refresher = MagicMock(return_value=False)
        client.on_auth_failure = MagicMock()

        with self.assertRaises(ApiError) as ctx:
            client.get("/projects")
        self.assertEqual(ctx.exception.status_code, 401)
        client.on_auth_failure.assert_called_once_with()
        self.assertEqual(session.request.call_count, 1)

    def test_second_401_is_not_retried_again(self):
        client, session = make_client(FakeResponse(401, {}), FakeResponse(401, {}))
        client.refresher = MagicMock(return_value=True)
        client.on_auth_failure = MagicMock()

        with self.assertRaises(ApiError):
            client.get("/projects")
        client.refresher.assert_called_once_with()
        client.on_auth_failure.assert_called_once_with()
        self.assertEqual(session.request.call_count, 2)

    def test_unauthenticated_401_is_plain_error(self):
        client, _ = make_client(FakeResponse(401, {"message": "Invalid credentials"}))
        client.refresher = MagicMock()
        client.on_auth_failure = MagicMock()
        with self.assertRaises(ApiError) as ctx:
            client.post("/auth/login", auth=False)
        self.assertEqual(str(ctx.exception), "Invalid credentials")
        client.refresher.assert_not_called()
        client.on_auth_failure.assert_not_called()

    def test_auth_failure_hook_can_be_suppressed(self):
        client, _ = make_client(FakeResponse(401, {}))
        client.refresher = MagicMock()
        client.on_auth_failure = MagicMock()
        with self.assertRaises(ApiError) as ctx:
            client.post("/auth/logout", retry_on_401=False, notify_auth_failure=False)
        self.assertEqual(ctx.exception.status_code, 401)
        client.refresher.assert_not_called()
        client.on_auth_failure.assert_not_called()


# ──────────────────────────────────────────────────────────────────────────
# Endpoint wrappers
# ──────────────────────────────────────────────────────────────────────────

class TestEndpoints(unittest.TestCase):

    def test_open_entry_unwrapped(self):
        entry = {"_id": "e1", "project": "p1", "startedAt": "2026-03-02T09:00:00Z"}
        client, _ = make_client(FakeResponse(200, {"success": True, "entry": entry}))
        self.assertEqual(client.get_open_entry(), entry)

    def test_no_open_entry(self):
        client, _ = make_client(FakeResponse(200, {"success": True, "entry": None}))
        self.assertIsNone(client.get_open_entry())

    def test_today_entries_accepts_bare_list(self):
        client, _ = make_client(FakeResponse(200, [{"_id": "e1"}, "junk"]))
        self.assertEqual(client.get_today_entries(), [{"_id": "e1"}])

    def test_projects_require_success_envelope(self):
        client, _ = make_client(FakeResponse(200, {"success": True, "projects": [{"_id": "p1"}]}),
                                FakeResponse(200, {"projects": [{"_id": "p1"}]}))
        self.assertEqual(client.get_projects(), [{"_id": "p1"}])
        self.assertEqual(client.get_projects(), [])

    def test_projects_query_parameters(self):
        client, session = make_client(FakeResponse(200, {"success": True, "projects": []}))
        client.get_projects(district="North", sort_by="name")
        self.assertEqual(session.request.call_args.kwargs["params"], {"district": "North", "sortBy": "name"})

    def test_start_time_posts_project(self):
        client, session = make_client(FakeResponse(200, {"success": True}), FakeResponse(200, {"success": False}))
        self.assertTrue(client.start_time("p1"))
        self.assertEqual(session.request.call_args.kwargs["json"], {"project": "p1", "source": "desktop"})
        self.assertFalse(client.start_time("p1"))

    def test_create_task_sends_entry_ids(self):
        client, session = make_client(FakeResponse(200, {"success": True, "task": {"_id": "t1"}}))
        self.assertEqual(client.create_task("p1", "2026-03-01", "Survey", entry_ids=["e1", "e2"]), {"_id": "t1"})
        payload = session.request.call_args.kwargs["json"]
        self.assertEqual(payload["entryIds"], ["e1", "e2"])
        self.assertEqual(payload["date"], "2026-03-01")

    def test_attendance_without_day_is_none(self):
        client, _ = make_client(FakeResponse(200, {"success": True, "attendance": {"intervals": []}}))
        self.assertIsNone(client.get_my_attendance())


if __name__ == "__main__":
    unittest.main()
