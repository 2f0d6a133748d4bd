import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from incidentdesk.x_search import (
    XApiError,
    XSearchClient,
    clamp_max_results,
    load_bearer_token,
    parse_search_response,
    search_posts,
)

RESPONSE = {
    "data": [
        {
            "id": "100",
            "text": "Shooting reported at Westfield Valley Fair",
            "author_id": "u1",
            "created_at": "2025-12-02T20:00:00.000Z",
            "public_metrics": {"like_count": 12, "retweet_count": 3, "reply_count": 1, "quote_count": 0, "impression_count": 900},
            "attachments": {"media_keys": ["m1"]},
            "entities": {"media": [{"media_key": "m2"}, {"media_key": "m1"}]},
        },
        {
            "id": "101",
            "text": "Lovely sunset tonight",
            "author_id": "u2",
            "created_at": "2025-12-02T20:05:00.000Z",
            "public_metrics": {"like_count": 2, "retweet_count": 0},
        },
        {
            "id": "102",
            "text": "Lovely sunset, but verified",
            "author_id": "u3",
            "created_at": "2025-12-02T20:06:00.000Z",
            "public_metrics": {"like_count": 0},
        },
        {"id": "103", "text": ""},
    ],
    "includes": {
        "users": [
            {"id": "u1", "username": "nbcbayarea", "name": "NBC Bay Area", "verified": False},
            {"id": "u2", "username": "someone", "name": "Someone"},
            {"id": "u3", "username": "official", "name": "Official", "verified": True},
        ],
        "media": [
            {"media_key": "m1", "type": "animated_gif", "url": "https://img/1.gif"},
            {"media_key": "m2", "type": "video", "preview_image_url": "https://img/2.jpg"},
        ],
    },
}


def _resp(status: int, body=None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


class TestParseSearchResponse(unittest.TestCase):
    def test_maps_posts_and_filters_irrelevant(self) -> None:
        posts = parse_search_response(RESPONSE)
        self.assertEqual([p.id for p in posts], ["100", "102"])
        p = posts[0]
        self.assertEqual(p.author.username, "nbcbayarea")
        self.assertEqual(p.url, "https://twitter.com/nbcbayarea/status/100")
        self.assertEqual(p.engagement.likes, 12)
        self.assertEqual(p.engagement.views, 900)
        self.assertEqual([m.kind for m in p.media], ["gif", "video"])
        self.assertEqual(p.media[1].url, "https://img/2.jpg")
        self.assertTrue(posts[1].author.verified)

    def test_missing_author_defaults(self) -> None:
        posts = parse_search_response({"data": [{"id": "1", "text": "police incident downtown"}]})
        self.assertEqual(posts[0].author.username, "unknown")
        self.assertEqual(posts[0].media, ())

    def test_non_dict(self) -> None:
        self.assertEqual(parse_search_response(None), [])
        self.assertEqual(parse_search_response({"data": "nope"}), [])


class TestXSearchClient(unittest.TestCase):
    def test_success_sends_auth_and_clamps(self) -> None:
        session = MagicMock()
        session.get.return_value = _resp(200, RESPONSE)
        client = XSearchClient(bearer_token="tok", endpoint="https://example.test/search", session=session)
        posts = client.search("valley fair", max_results=500)
        self.assertEqual(len(posts), 2)
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["params"]["max_results"], 100)
        self.assertEqual(kwargs["params"]["query"], "valley fair")
        self.assertEqual(session.get.call_args[0][0], "https://example.test/search")

    def test_auth_failure(self) -> None:
        session = MagicMock()
        session.get.return_value = _resp(401, {"title": "Unauthorized"})
        with self.assertRaises(XApiError) as cm:
            XSearchClient(bearer_token="bad", session=session).search("q")
        self.assertEqual(cm.exception.status_code, 401)
        self.assertIn("authentication failed", str(cm.exception))

    def test_rate_limit_message(self) -> None:
        session = MagicMock()
        session.get.return_value = _resp(429, {"errors": [{"message": "Too Many Requests"}]})
        with self.assertRaises(XApiError) as cm:
            XSearchClient(session=session).search("q")
        self.assertIn("Too Many Requests", str(cm.exception))
        self.assertIn("(429)", str(cm.exception))

    def test_errors_array_on_200_raises(self) -> None:
        session = MagicMock()
        session.get.return_value = _resp(200, {"errors": [{"message": "Invalid query"}]})
        with self.assertRaises(XApiError) as cm:
            XSearchClient(session=session).search("q")
        self.assertIn("Invalid query", str(cm.exception))

    def test_network_error_wrapped(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("boom")
        with self.assertRaises(XApiError):
            XSearchClient(session=session).search("q")

    def test_invalid_json(self) -> None:
        session = MagicMock()
        session.get.return_value = _resp(200, ValueError("bad json"))
        with self.assertRaises(XApiError):
            XSearchClient(session=session).search("q")

    def test_empty_query(self) -> None:
        with self.assertRaises(ValueError):
            XSearchClient(session=MagicMock()).search("   ")

    @patch("incidentdesk.x_search.requests.Session")
    def test_search_posts_closes_session(self, mock_session_cls: MagicMock) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(200, {"data": []})
        self.assertEqual(search_posts("q", bearer_token="t"), [])
        session.close.assert_called_once()


class TestCredentials(unittest.TestCase):
    def test_env_wins(self) -> None:
        with patch.dict(os.environ, {"X_BEARER_TOKEN": " abc "}):
            self.assertEqual(load_bearer_token(home=Path("/nonexistent")), "abc")

    def test_local_file_preferred(self) -> None:
        with tempfile.TemporaryDirectory() as td, patch.dict(os.environ, {}, clear=False):
            os.environ.pop("X_BEARER_TOKEN", None)
            home = Path(td)
            (home / "secrets").mkdir()
            (home / "secrets" / "x_bearer_token.txt").write_text("shared\n", encoding="utf-8")
            (home / "secrets" / "x_bearer_token.local.txt").write_text("local\n", encoding="utf-8")
            self.assertEqual(load_bearer_token(home=home), "local")

    def test_missing_token_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td, patch.dict(os.environ, {}, clear=False):
            os.environ.pop("X_BEARER_TOKEN", None)
            with self.assertRaises(RuntimeError):
                load_bearer_token(home=Path(td))


def test_clamp_max_results() -> None:
    assert clamp_max_results(1) == 10
    assert clamp_max_results(50) == 50
    assert clamp_max_results(1000) == 100
