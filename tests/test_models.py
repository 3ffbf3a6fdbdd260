"""
Tests for the configuration data model
"""

import unittest

from bcg.models import (
    NO_OPERATIONS,
    POLICY_ANY,
    POLICY_CONE,
    POLICY_NONE,
    GlobalConfig,
    PeerConfig,
    VRRPInstance,
    address_family,
    normalize_name,
    partition_origins,
)


class TestNormalizeName(unittest.TestCase):
    """Peer key normalization"""

    def test_upper_cases_and_replaces_punctuation(self):
        self.assertEqual(normalize_name("hurricane-electric"), "HURRICANE_ELECTRIC")
        self.assertEqual(normalize_name("de-cix.fra"), "DE_CIX_FRA")

    def test_leading_digit_gets_prefix(self):
        self.assertEqual(normalize_name("6939"), "PEER_6939")
        self.assertEqual(normalize_name("1and1"), "PEER_1AND1")

    def test_distinct_keys_can_collide(self):
        self.assertEqual(normalize_name("foo-bar"), normalize_name("foo.bar"))


class TestAddressFamily(unittest.TestCase):

    def test_colon_means_ipv6(self):
        self.assertEqual(address_family("2001:7f8::1"), 6)
        self.assertEqual(address_family("192.0.2.1"), 4)

    def test_partition_keeps_order(self):
        set4, set6 = partition_origins(["10.0.0.0/8", "2001:db8::/32", "192.0.2.0/24"])
        self.assertEqual(set4, ("10.0.0.0/8", "192.0.2.0/24"))
        self.assertEqual(set6, ("2001:db8::/32",))


class TestPeerConfig(unittest.TestCase):

    def test_name_defaults_to_normalized_key(self):
        peer = PeerConfig(key="he.net", asn=6939, type="upstream")
        self.assertEqual(peer.name, "HE_NET")
        self.assertEqual(peer.query_time, NO_OPERATIONS)

    def test_unset_limits_are_none(self):
        peer = PeerConfig(key="x", asn=13335, type="peer")
        self.assertIsNone(peer.import_limit4)
        self.assertIsNone(peer.import_limit6)
        self.assertIsNone(peer.prefix_set4)

    def test_policy_class_follows_type(self):
        self.assertEqual(PeerConfig(key="a", asn=1, type="peer").policy_class, POLICY_CONE)
        self.assertEqual(PeerConfig(key="b", asn=1, type="downstream").policy_class, POLICY_CONE)
        self.assertEqual(PeerConfig(key="c", asn=1, type="upstream").policy_class, POLICY_ANY)
        self.assertEqual(PeerConfig(key="d", asn=1, type="import-valid").policy_class, POLICY_ANY)
        self.assertIsNone(PeerConfig(key="e", asn=1, type="bogus").policy_class)

    def test_policy_none_overrides_type(self):
        peer = PeerConfig(key="a", asn=1, type="peer", import_policy="none")
        self.assertEqual(peer.policy_class, POLICY_NONE)

    def test_neighbors_split_by_family(self):
        peer = PeerConfig(key="a", asn=1, type="peer",
                          neighbors=["80.81.192.10", "2001:7f8::1", "80.81.193.10"])
        self.assertEqual(peer.neighbors4, ["80.81.192.10", "80.81.193.10"])
        self.assertEqual(peer.neighbors6, ["2001:7f8::1"])

    def test_fully_specified_and_resolved(self):
        peer = PeerConfig(key="a", asn=13335, type="peer", as_set="AS-X",
                          import_limit4=10, import_limit6=10)
        self.assertTrue(peer.is_fully_specified())
        self.assertFalse(peer.is_resolved())

        peer.prefix_set4 = []
        peer.prefix_set6 = ["2606:4700::/32"]
        self.assertTrue(peer.is_resolved())

    def test_upstream_resolved_without_as_set(self):
        peer = PeerConfig(key="a", asn=6939, type="upstream", import_limit4=1, import_limit6=1)
        self.assertTrue(peer.is_resolved())

    def test_to_dict_reports_effective_policy(self):
        peer = PeerConfig(key="a", asn=6939, type="upstream", import_policy="none")
        data = peer.to_dict()
        self.assertEqual(data['import_policy'], POLICY_NONE)
        self.assertEqual(data['name'], "A")


class TestGlobalConfig(unittest.TestCase):

    def test_origin_sets_derived_once(self):
        config = GlobalConfig(asn=207036, router_id="185.42.0.1",
                              origin_prefixes=["185.42.0.0/22", "2a0e:1c80::/32"])
        self.assertEqual(config.origin_set(4), ("185.42.0.0/22",))
        self.assertEqual(config.origin_set(6), ("2a0e:1c80::/32",))

    def test_origin_sets_not_constructor_arguments(self):
        with self.assertRaises(TypeError):
            GlobalConfig(asn=1, router_id="192.0.2.1", origin_set4=("10.0.0.0/8",))

    def test_vrrp_vips_by_family(self):
        instance = VRRPInstance(state="MASTER", interface="eth0", vrid=1, priority=100,
                                vips=["192.0.2.1/24", "2001:db8::1/64"])
        data = instance.to_dict()
        self.assertEqual(data['vips4'], ["192.0.2.1/24"])
        self.assertEqual(data['vips6'], ["2001:db8::1/64"])


if __name__ == '__main__':
    unittest.main()
