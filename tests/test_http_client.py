import unittest
from unittest.mock import Mock

import requests

from models.connection import ConnectionInfo
from utils.errors import (
    DEFAULT_SERVER_ERROR,
    MalformedRequestError,
    ParseError,
    ServerReportedError,
    TransportError,
)
from utils.http_client import BatchResponse, RavenTransport

CONNECTION = ConnectionInfo(host="db.local", port=8080, database="Northwind")


def _response(status_code=200, body=None, headers=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


class TestRavenTransport(unittest.TestCase):
    def setUp(self):
        self.session = Mock()
        self.transport = RavenTransport(CONNECTION, session=self.session)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def test_urls(self):
        self.assertEqual(self.transport.database_url, "http://db.local:8080/databases/Northwind")
        self.assertEqual(
            self.transport.document_url("users/1"),
            "http://db.local:8080/databases/Northwind/docs/users/1",
        )
        self.assertEqual(self.transport.queries_url(), "http://db.local:8080/databases/Northwind/queries/")

    def test_user_agent_header(self):
        session = Mock()
        RavenTransport(CONNECTION, user_agent="tests/1.0", session=session)
        session.headers.update.assert_called_once_with({"User-Agent": "tests/1.0"})

    def test_context_manager_closes_session(self):
        with self.transport as transport:
            self.assertIs(transport, self.transport)
        self.session.close.assert_called_once()

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def test_get_builds_metadata_from_headers(self):
        self.session.request.return_value = _response(
            body={"Name": "Ada"},
            headers={
                "raven-entity-name": "Users",
                "raven-clr-type": "Shop.User, Shop",
                "last-modified": "Wed, 21 Oct 2015 07:28:00 GMT",
                "etag": "01000000-0000-0001-0000-000000000002",
            },
        )

        document = self.transport.get("users/1")

        self.session.request.assert_called_once_with(
            "GET", "http://db.local:8080/databases/Northwind/docs/users/1"
        )
        self.assertEqual(document["Name"], "Ada")
        self.assertEqual(
            document["@metadata"],
            {
                "Raven-Entity-Name": "Users",
                "Raven-Clr-Type": "Shop.User, Shop",
                "@id": "users/1",
                "Last-Modified": "2015-10-21T07:28:00+00:00",
                "@etag": "01000000-0000-0001-0000-000000000002",
            },
        )

    def test_get_with_bad_last_modified(self):
        self.session.request.return_value = _response(
            body={"Name": "Ada"}, headers={"last-modified": "not a date"}
        )

        with self.assertLogs("utils.http_client", level="WARNING"):
            document = self.transport.get("users/1")

        self.assertIsNone(document["@metadata"]["Last-Modified"])

    def test_get_missing_document_returns_none(self):
        self.session.request.return_value = _response(status_code=404, json_error=ValueError("empty"))

        self.assertIsNone(self.transport.get("users/404"))

    def test_get_400_is_malformed_request(self):
        self.session.request.return_value = _response(status_code=400)

        with self.assertRaises(MalformedRequestError) as cm:
            self.transport.get("users/<bad>")

        self.assertEqual(cm.exception.status_code, 400)
        self.assertIn("illegal characters", str(cm.exception))

    def test_server_error_message_is_extracted(self):
        self.session.request.return_value = _response(
            status_code=500,
            body={"Error": "System.InvalidOperationException: Index is corrupted\r\n   at Raven.Database..."},
        )

        with self.assertRaises(ServerReportedError) as cm:
            self.transport.get("users/1")

        self.assertEqual(cm.exception.message, "Index is corrupted")
        self.assertEqual(cm.exception.status_code, 500)

    def test_server_error_without_message_uses_default(self):
        self.session.request.return_value = _response(status_code=500, body={"Error": "boom"})

        with self.assertRaises(ServerReportedError) as cm:
            self.transport.get("users/1")

        self.assertEqual(cm.exception.message, DEFAULT_SERVER_ERROR)

    def test_invalid_json_is_parse_error(self):
        self.session.request.return_value = _response(json_error=ValueError("Expecting value"))

        with self.assertRaises(ParseError) as cm:
            self.transport.get("users/1")

        self.assertEqual(str(cm.exception), "Parse Error: Expecting value")

    def test_non_object_body_is_parse_error(self):
        self.session.request.return_value = _response(body=["not", "a", "document"])

        with self.assertRaises(ParseError):
            self.transport.get("users/1")

    def test_connection_failure_is_transport_error(self):
        failure = requests.exceptions.ConnectionError("connection refused")
        self.session.request.side_effect = failure

        with self.assertRaises(TransportError) as cm:
            self.transport.get("users/1")

        self.assertIs(cm.exception.original, failure)
        self.assertIs(cm.exception.__cause__, failure)

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    def test_post_sends_ids_and_includes(self):
        self.session.request.return_value = _response(
            body={"Results": [{"Name": "a"}, None], "Includes": [{"Name": "b"}]}
        )

        response = self.transport.post(["users/1", "users/2"], ["ManagerId", "TeamId"])

        self.session.request.assert_called_once_with(
            "POST",
            "http://db.local:8080/databases/Northwind/queries/",
            json=["users/1", "users/2"],
            params={"include": ["ManagerId", "TeamId"]},
        )
        self.assertIsInstance(response, BatchResponse)
        self.assertEqual(response.results, [{"Name": "a"}, None])
        self.assertEqual(response.includes, [{"Name": "b"}])

    def test_post_without_includes(self):
        self.session.request.return_value = _response(body={"Results": [], "Includes": None})

        response = self.transport.post(("users/1",))

        _, kwargs = self.session.request.call_args
        self.assertIsNone(kwargs["params"])
        self.assertEqual(kwargs["json"], ["users/1"])
        self.assertEqual(response.results, [])
        self.assertEqual(response.includes, [])

    def test_post_classifies_errors(self):
        self.session.request.return_value = _response(status_code=400)
        with self.assertRaises(MalformedRequestError):
            self.transport.post(["bad id"])

        self.session.request.return_value = _response(
            status_code=500, body={"Error": "System.Exception: Database is offline\r\n"}
        )
        with self.assertRaises(ServerReportedError) as cm:
            self.transport.post(["users/1"])
        self.assertEqual(cm.exception.message, "Database is offline")


if __name__ == "__main__":
    unittest.main()
