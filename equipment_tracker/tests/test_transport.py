import http.client
import json
import os
import unittest
import urllib.error
from unittest import mock

from tracker_test_support import FakeHttpResponse

from client.transport import HttpTrackerTransport
from services.tracker_errors import NetworkFailure


class HttpTransportTests(unittest.TestCase):
    def setUp(self):
        self.transport = HttpTrackerTransport("http://tracker.local/")

    def test_write_posts_json_as_plain_text(self):
        with mock.patch("urllib.request.urlopen", return_value=FakeHttpResponse(b'{"status": "success"}')) as urlopen:
            result = self.transport.write({"action": "updateInventory", "device": "Commode", "newTotal": 2})
        self.assertEqual(result, {"status": "success"})
        request = urlopen.call_args.args[0]
        self.assertEqual(request.full_url, "http://tracker.local/api/tracker")
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(json.loads(request.data.decode("utf-8"))["device"], "Commode")
        self.assertTrue(request.get_header("Content-type").startswith("text/plain"))

    def test_connection_error_is_network_failure(self):
        with mock.patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            with self.assertRaises(NetworkFailure):
                self.transport.read()

    def test_invalid_json_is_network_failure(self):
        with mock.patch("urllib.request.urlopen", return_value=FakeHttpResponse(b"<html>")):
            with self.assertRaises(NetworkFailure):
                self.transport.read()

    def test_non_object_payload_is_network_failure(self):
        with mock.patch("urllib.request.urlopen", return_value=FakeHttpResponse(b"[]")):
            with self.assertRaises(NetworkFailure):
                self.transport.read()

    def test_undecodable_body_is_network_failure(self):
        with mock.patch("urllib.request.urlopen", return_value=FakeHttpResponse(b"\xff\xfe{}")):
            with self.assertRaises(NetworkFailure):
                self.transport.write({"action": "addTransaction", "device": "O2 Generator"})

    def test_truncated_body_is_network_failure(self):
        truncated = FakeHttpResponse(http.client.IncompleteRead(b"{\"status\": \"succ", 20))
        with mock.patch("urllib.request.urlopen", return_value=truncated):
            with self.assertRaises(NetworkFailure):
                self.transport.read()

    def test_from_env_requires_url(self):
        with mock.patch.dict(os.environ, {"EQUIPMENT_TRACKER_URL": ""}):
            with self.assertRaises(NetworkFailure):
                HttpTrackerTransport.from_env()
        with mock.patch.dict(os.environ, {"EQUIPMENT_TRACKER_URL": "http://example.test"}):
            self.assertEqual(HttpTrackerTransport.from_env().endpoint, "http://example.test/api/tracker")


if __name__ == "__main__":
    unittest.main()
