from __future__ import annotations

import os
import unittest
from unittest.mock import MagicMock, patch

import requests

from abouttime.client import ConflictServiceClient, ConflictServiceError
from abouttime.model import ConflictMember


def _response(status: int = 200, body=None, content: bytes = b"x"):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.json.return_value = body
    return resp


class TestConflictServiceClientContract(unittest.TestCase):
    def test_conflict_groups_parses_and_orders_members(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(
            body={
                "groups": [
                    [
                        {"id": "a", "start": 0, "end": 100, "priority": 1, "templateHash": "t1"},
                        {"id": "b", "start": 50, "end": 150, "priority": 2},
                    ],
                    [{"id": "lonely", "start": 0, "end": 1}],
                ]
            }
        )
        client = ConflictServiceClient("http://svc:9000/", timeout=3, session=session)
        groups = client.conflict_groups(0, 1000)

        self.assertEqual(len(groups), 1)
        self.assertEqual([m.id for m in groups[0].members], ["b", "a"])
        self.assertEqual(groups[0].members[1].template_hash, "t1")

        args, kwargs = session.request.call_args
        self.assertEqual(args, ("GET", "http://svc:9000/api/calendar/conflicts"))
        self.assertEqual(kwargs["params"], {"start": 0, "end": 1000})
        self.assertEqual(kwargs["timeout"], 3.0)

    def test_upsert_posts_member_json(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(body={"ok": True})
        client = ConflictServiceClient("http://svc", session=session)
        out = client.upsert_item(ConflictMember("a", 10, 20, priority=4, template_hash="h"))

        self.assertEqual(out, {"ok": True})
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("POST", "http://svc/api/calendar/items"))
        self.assertEqual(
            kwargs["json"],
            {"id": "a", "start": 10, "end": 20, "priority": 4, "templateHash": "h"},
        )

    def test_http_error_status_raises(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(status=503)
        client = ConflictServiceClient("http://svc", session=session)
        with self.assertRaises(ConflictServiceError) as ctx:
            client.conflict_groups(0, 10)
        self.assertEqual(ctx.exception.status, 503)
        self.assertEqual(session.request.call_count, 1)

    def test_transport_error_raises(self) -> None:
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        client = ConflictServiceClient("http://svc", session=session)
        with self.assertRaises(ConflictServiceError):
            client.upsert_item(ConflictMember("a", 0, 1))

    def test_malformed_body_raises(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(body={"nope": []})
        client = ConflictServiceClient("http://svc", session=session)
        with self.assertRaises(ConflictServiceError):
            client.conflict_groups(0, 10)

        session.request.return_value = _response(body={"groups": [[{"id": "a", "start": 5, "end": 1}]]})
        with self.assertRaises(ConflictServiceError):
            client.conflict_groups(0, 10)

    def test_defaults_come_from_env(self) -> None:
        env = {"ABOUTTIME_SERVICE_URL": "http://from-env:1234/", "ABOUTTIME_HTTP_TIMEOUT_S": "2.5"}
        with patch.dict(os.environ, env):
            client = ConflictServiceClient(session=MagicMock())
        self.assertEqual(client.base_url, "http://from-env:1234")
        self.assertEqual(client.timeout, 2.5)

    def test_usable_as_commit_writer(self) -> None:
        from abouttime.conflicts import commit

        session = MagicMock()
        session.request.side_effect = [_response(body={}), _response(status=500)]
        client = ConflictServiceClient("http://svc", session=session)
        outcome = commit(client.upsert_item, [ConflictMember("a", 0, 1), ConflictMember("b", 0, 1)])
        self.assertEqual(outcome.written, ("a",))
        self.assertIn("b", outcome.failed)


if __name__ == "__main__":
    unittest.main(verbosity=2)
