import os
import unittest
from unittest.mock import patch

import requests

from triplotto.providers.api import BeaconClient
from triplotto.providers.utils import open_session


class DummyResponse:
    def __init__(self, json_data=None, content: bytes = b"", status_code: int = 200):
        self._json = json_data
        if json_data is not None and not content:
            import json as _json

            content = _json.dumps(json_data).encode()
        self.content = content
        self.status_code = status_code

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, params=None, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "params": params,
                "json": json,
                "timeout": timeout,
            }
        )
        return self.response


class TestBeaconClient(unittest.TestCase):
    @patch("triplotto.providers.api.open_session")
    @patch("triplotto.providers.api.load_dotenv")
    def test_requires_fqdn(self, mock_load_dotenv, mock_open_session):
        # Ensure environment variable is not set and no network call is made
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                BeaconClient()
        mock_open_session.assert_not_called()

    @patch("triplotto.providers.api.open_session")
    def test_init_sets_base_url(self, mock_open_session):
        session = DummySession(DummyResponse(json_data={}))
        mock_open_session.return_value = session
        client = BeaconClient(base_fqdn="beacon.example.com", callback_url="https://game/cb")
        self.assertEqual(client.base_url, "https://beacon.example.com")
        self.assertIs(client.session, session)
        self.assertEqual(client.callback_url, "https://game/cb")

    @patch("triplotto.providers.api.open_session")
    def test_request_returns_json_or_none(self, mock_open_session):
        session = DummySession(DummyResponse(json_data={"a": 1}))
        mock_open_session.return_value = session
        client = BeaconClient(base_fqdn="host", timeout=5)

        self.assertEqual(client._request("GET", "/path"), {"a": 1})
        self.assertEqual(session.calls[0]["url"], "https://host/path")
        self.assertEqual(session.calls[0]["timeout"], 5)

        session.response = DummyResponse(content=b"")
        self.assertIsNone(client._request("DELETE", "/empty"))

    @patch("triplotto.providers.api.open_session")
    def test_request_seed_posts_budget(self, mock_open_session):
        session = DummySession(DummyResponse(json_data={"request_id": "req-42"}))
        mock_open_session.return_value = session
        client = BeaconClient(base_fqdn="host", callback_url="https://game/cb")

        self.assertEqual(client.request_seed(200000), "req-42")
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://host/api/v1/requests")
        self.assertEqual(
            call["json"], {"callback_budget": 200000, "callback_url": "https://game/cb"}
        )

        session.response = DummyResponse(json_data={"status": "queued"})
        with self.assertRaises(RuntimeError):
            client.request_seed(1)

    @patch("triplotto.providers.api.open_session")
    def test_fetch_seed_waits_for_fulfilment(self, mock_open_session):
        session = DummySession(DummyResponse(json_data={"status": "pending"}))
        mock_open_session.return_value = session
        client = BeaconClient(base_fqdn="host")

        self.assertIsNone(client.fetch_seed("req-1"))
        self.assertEqual(session.calls[0]["url"], "https://host/api/v1/requests/req-1")

        session.response = DummyResponse(json_data={"status": "fulfilled", "seed": "0xabc"})
        self.assertEqual(client.fetch_seed("req-1"), "0xabc")

        session.response = DummyResponse(json_data={"status": "fulfilled"})
        with self.assertRaises(RuntimeError):
            client.fetch_seed("req-1")

    @patch("triplotto.providers.api.open_session")
    def test_http_errors_propagate(self, mock_open_session):
        session = DummySession(DummyResponse(json_data={"error": "boom"}, status_code=503))
        mock_open_session.return_value = session
        client = BeaconClient(base_fqdn="host")
        with self.assertRaises(requests.HTTPError):
            client.fetch_seed("req-1")

    @patch("triplotto.providers.api.open_session")
    def test_init_reports_session_error(self, mock_open_session):
        mock_open_session.side_effect = RuntimeError("network unreachable")
        with self.assertRaises(RuntimeError) as ctx:
            BeaconClient(base_fqdn="beacon.example.com")
        self.assertIn("network unreachable", str(ctx.exception))


class TestOpenSession(unittest.TestCase):
    def test_missing_fqdn_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RuntimeError):
                open_session()

    @patch("triplotto.providers.utils.requests.Session.get")
    def test_sets_headers_and_checks_health(self, mock_get):
        mock_get.return_value = DummyResponse(json_data={"ok": True})
        with patch.dict(os.environ, {"RANDOMNESS_BASE_FQDN": "beacon.local"}, clear=True):
            session = open_session(api_key="secret")
        mock_get.assert_called_once_with("https://beacon.local/api/v1/health")
        self.assertEqual(session.headers["Authorization"], "Bearer secret")
        self.assertEqual(session.headers["Accept"], "application/json")

    @patch("triplotto.providers.utils.requests.Session.get")
    def test_health_failure_becomes_runtime_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("refused")
        with patch.dict(os.environ, {"RANDOMNESS_BASE_FQDN": "beacon.local"}, clear=True):
            with self.assertRaises(RuntimeError) as ctx:
                open_session()
        self.assertIn("refused", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
