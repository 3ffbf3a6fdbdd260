"""
Tests for the PeeringDB registry client
"""

import unittest
from unittest.mock import MagicMock

import requests

from bcg.registry import PeeringDBClient, RegistryRecord
from bcg.utils.config import RegistryConfig
from bcg.utils.error_handling import RegistryError, RegistryNotFoundError


def response(status_code=200, body=None, json_error=None):
    mock = MagicMock()
    mock.status_code = status_code
    mock.text = str(body)
    if json_error:
        mock.json.side_effect = json_error
    else:
        mock.json.return_value = body
    return mock


class TestPeeringDBClient(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.session.headers = {}
        self.client = PeeringDBClient(url="https://peeringdb.example/api/net", timeout=3,
                                      session=self.session)

    def test_lookup(self):
        self.session.get.return_value = response(body={"data": [{
            "asn": 13335, "name": "Cloudflare", "irr_as_set": "AS-CLOUDFLARE",
            "info_prefixes4": 500, "info_prefixes6": 100,
        }]})

        record = self.client.lookup(13335)

        self.assertEqual(record, RegistryRecord(13335, "Cloudflare", "AS-CLOUDFLARE", 500, 100))
        self.session.get.assert_called_once_with("https://peeringdb.example/api/net",
                                                 params={"asn": 13335}, timeout=3)

    def test_missing_fields_default_to_empty(self):
        self.session.get.return_value = response(body={"data": [{"name": "Quiet"}]})
        record = self.client.lookup(64)
        self.assertEqual(record.as_set, "")
        self.assertEqual(record.max_prefix4, 0)

    def test_empty_data_is_not_found(self):
        self.session.get.return_value = response(body={"data": []})
        with self.assertRaises(RegistryNotFoundError) as ctx:
            self.client.lookup(13335)
        self.assertIn("AS13335 doesn't have a valid PeeringDB entry", str(ctx.exception))

    def test_404_is_not_found(self):
        self.session.get.return_value = response(status_code=404, body={})
        with self.assertRaises(RegistryNotFoundError):
            self.client.lookup(13335)

    def test_server_error(self):
        self.session.get.return_value = response(status_code=502, body="bad gateway")
        with self.assertRaises(RegistryError) as ctx:
            self.client.lookup(13335)
        self.assertNotIsInstance(ctx.exception, RegistryNotFoundError)

    def test_malformed_json(self):
        self.session.get.return_value = response(json_error=ValueError("Expecting value"))
        with self.assertRaises(RegistryError):
            self.client.lookup(13335)

    def test_invalid_prefix_count(self):
        self.session.get.return_value = response(body={"data": [{"info_prefixes4": "many"}]})
        with self.assertRaises(RegistryError):
            self.client.lookup(13335)

    def test_timeout(self):
        self.session.get.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(RegistryError) as ctx:
            self.client.lookup(13335)
        self.assertIn("timed out", str(ctx.exception))

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(RegistryError):
            self.client.lookup(13335)

    def test_api_key_header(self):
        session = MagicMock()
        session.headers = {}
        PeeringDBClient(api_key="secret", session=session)
        self.assertEqual(session.headers["Authorization"], "Api-Key secret")

    def test_from_settings(self):
        client = PeeringDBClient.from_settings(RegistryConfig(url="https://pdb.example/api/net"))
        self.assertEqual(client.url, "https://pdb.example/api/net")
        self.assertNotIn("Authorization", client.session.headers)


if __name__ == '__main__':
    unittest.main()
