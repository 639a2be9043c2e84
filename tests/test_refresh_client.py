import unittest

import httpx

from refreshguard.collectors import RefreshClient, RefreshError
from refreshguard.config import RefreshEndpointConfig


def make_client(handler, path="/api/v1/entries/current.json"):
    config = RefreshEndpointConfig(base_url="https://glucose.example.org/", path=path)
    return RefreshClient(config, transport=httpx.MockTransport(handler))


class RefreshClientTests(unittest.TestCase):
    def test_fetch_decodes_json(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=[{"sgv": 112, "direction": "Flat"}])

        with make_client(handler) as client:
            result = client.fetch()

        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.payload, [{"sgv": 112, "direction": "Flat"}])
        self.assertEqual(
            str(seen[0]), "https://glucose.example.org/api/v1/entries/current.json"
        )
        self.assertIsNotNone(result.fetched_at.tzinfo)

    def test_fetch_keeps_text_payload(self):
        with make_client(lambda request: httpx.Response(200, text="112\tFlat")) as client:
            result = client.fetch()
        self.assertEqual(result.payload, "112\tFlat")

    def test_http_status_error_is_wrapped(self):
        with make_client(lambda request: httpx.Response(503)) as client:
            with self.assertRaises(RefreshError) as ctx:
                client.fetch()
        self.assertIn("503", str(ctx.exception))

    def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with self.assertRaises(RefreshError) as ctx:
                client.fetch()
        self.assertIn("connection refused", str(ctx.exception))

    def test_invalid_json_is_wrapped(self):
        def handler(request):
            return httpx.Response(
                200, content=b"{not json", headers={"content-type": "application/json"}
            )

        with make_client(handler) as client:
            with self.assertRaises(RefreshError):
                client.fetch()


if __name__ == "__main__":
    unittest.main()
