"""
Tests for RPKI origin validation
"""

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from bcg.utils.error_handling import ConfigurationError
from bcg.validators import RPKIState, RPKIValidator, VRPEntry

RPKI_CLIENT_EXPORT = {
    "metadata": {"buildtime": "2024-05-01T12:00:00Z"},
    "roas": [
        {"asn": "AS13335", "prefix": "1.1.1.0/24", "maxLength": 24, "ta": "apnic"},
        {"asn": 13335, "prefix": "2606:4700::/32", "maxLength": 48, "ta": "arin"},
        {"asn": 15169, "prefix": "8.8.8.0/24", "maxLength": 24, "ta": "arin"},
        {"asn": "bogus", "prefix": "9.9.9.0/24", "maxLength": 24},
    ],
}

ROUTINATOR_EXPORT = {
    "metadata": {"generated": 1714564800},
    "validated-roa-payloads": [
        {"asn": "AS13335", "prefix": "1.1.1.0/24", "max-length": 24, "ta": "apnic"},
    ],
}


class TestVRPEntry(unittest.TestCase):

    def test_invalid_max_length(self):
        with self.assertRaises(ValueError):
            VRPEntry(asn=13335, prefix="1.1.1.0/24", max_length=20)

    def test_host_bits_rejected(self):
        with self.assertRaises(ValueError):
            VRPEntry(asn=13335, prefix="1.1.1.1/24", max_length=24)


class TestLoading(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)

    def write(self, data, name="vrps.json"):
        path = Path(self.temp_dir.name) / name
        path.write_text(json.dumps(data) if not isinstance(data, str) else data)
        return path

    def test_rpki_client_format(self):
        validator = RPKIValidator(vrp_path=self.write(RPKI_CLIENT_EXPORT), max_vrp_age_hours=10 ** 6)
        stats = validator.get_validation_stats()
        self.assertEqual(stats['source_format'], "rpki-client")
        self.assertEqual(stats['vrp_count4'], 2)
        self.assertEqual(stats['vrp_count6'], 1)

    def test_routinator_format(self):
        validator = RPKIValidator(vrp_path=self.write(ROUTINATOR_EXPORT), max_vrp_age_hours=10 ** 6)
        self.assertEqual(validator.get_validation_stats()['source_format'], "routinator")
        self.assertEqual(validator.validate("1.1.1.0/24", 13335), RPKIState.VALID)

    def test_stale_data_warns(self):
        old = (datetime.now(timezone.utc) - timedelta(days=3)).isoformat()
        data = dict(RPKI_CLIENT_EXPORT, metadata={"buildtime": old})
        with self.assertLogs("bcg.validators.rpki", level="WARNING") as logs:
            RPKIValidator(vrp_path=self.write(data), max_vrp_age_hours=24)
        self.assertTrue(any("older than 24 hours" in line for line in logs.output))

    def test_unknown_format(self):
        with self.assertRaises(ConfigurationError):
            RPKIValidator(vrp_path=self.write({"something": []}))

    def test_unreadable_file(self):
        with self.assertRaises(ConfigurationError):
            RPKIValidator(vrp_path=self.write("{not json"))
        with self.assertRaises(ConfigurationError):
            RPKIValidator(vrp_path=Path(self.temp_dir.name) / "missing.json")


class TestValidation(unittest.TestCase):
    """Family-matched origin validation"""

    def setUp(self):
        self.validator = RPKIValidator(entries=[
            VRPEntry(13335, "1.1.1.0/24", 24),
            VRPEntry(13335, "2606:4700::/32", 48),
            VRPEntry(15169, "8.8.8.0/24", 24),
        ])

    def test_valid(self):
        self.assertEqual(self.validator.validate("1.1.1.0/24", 13335), RPKIState.VALID)
        self.assertEqual(self.validator.validate("2606:4700:10::/44", 13335), RPKIState.VALID)

    def test_wrong_origin_invalid(self):
        result = self.validator.validate_prefix_origin("8.8.8.0/24", 13335)
        self.assertEqual(result.state, RPKIState.INVALID)
        self.assertEqual(result.covering_vrp.asn, 15169)

    def test_too_specific_invalid(self):
        self.assertEqual(self.validator.validate("1.1.1.0/25", 13335), RPKIState.INVALID)

    def test_uncovered_notfound(self):
        self.assertEqual(self.validator.validate("9.9.9.0/24", 19281), RPKIState.NOTFOUND)

    def test_family_matched(self):
        # An IPv4-mapped IPv6 route is not covered by IPv4 VRPs
        self.assertEqual(self.validator.validate("::ffff:101:100/120", 64500), RPKIState.NOTFOUND)

    def test_no_origin_notfound(self):
        self.assertEqual(self.validator.validate("1.1.1.0/24", None), RPKIState.NOTFOUND)

    def test_nothing_loaded(self):
        validator = RPKIValidator()
        self.assertFalse(validator.loaded)
        with self.assertLogs("bcg.validators.rpki", level="WARNING"):
            self.assertEqual(validator.validate("1.1.1.0/24", 1), RPKIState.NOTFOUND)


if __name__ == '__main__':
    unittest.main()
