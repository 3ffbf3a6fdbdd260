"""
Shared builders for bcg tests
"""

from unittest.mock import Mock

from bcg.models import GlobalConfig, PeerConfig
from bcg.registry.peeringdb import RegistryRecord

LOCAL_ASN = 207036
ROUTER_ID = "185.42.0.1"
ORIGIN_PREFIXES = ["185.42.0.0/22", "2a0e:1c80::/32"]

PEER_V4 = "80.81.192.10"
PEER_V6 = "2001:7f8::3417:0:1"


def make_peer(key="cloudflare", **kwargs) -> PeerConfig:
    """A fully resolved peer-type peer unless overridden"""
    values = dict(
        asn=13335,
        type="peer",
        as_set="AS-CLOUDFLARE",
        import_limit4=1000,
        import_limit6=200,
        neighbors=[PEER_V4, PEER_V6],
        prefix_set4=["1.1.1.0/24", "104.16.0.0/13+"],
        prefix_set6=["2606:4700::/32{32,48}"],
    )
    values.update(kwargs)
    return PeerConfig(key=key, **values)


def make_upstream(key="hurricane", **kwargs) -> PeerConfig:
    values = dict(
        asn=6939,
        type="upstream",
        import_limit4=1000000,
        import_limit6=150000,
        neighbors=["80.81.192.20", "2001:7f8::1b1b:0:1"],
    )
    values.update(kwargs)
    return PeerConfig(key=key, **values)


def make_downstream(key="customer", **kwargs) -> PeerConfig:
    values = dict(
        asn=112,
        type="downstream",
        as_set="AS112",
        import_limit4=10,
        import_limit6=10,
        neighbors=["80.81.192.30"],
        prefix_set4=["192.175.48.0/24"],
        prefix_set6=["2620:4f:8000::/48"],
    )
    values.update(kwargs)
    return PeerConfig(key=key, **values)


def make_config(*peers, **kwargs) -> GlobalConfig:
    values = dict(
        asn=LOCAL_ASN,
        router_id=ROUTER_ID,
        origin_prefixes=list(ORIGIN_PREFIXES),
    )
    values.update(kwargs)
    return GlobalConfig(peers={peer.key: peer for peer in peers}, **values)


def make_registry(as_set="AS-CLOUDFLARE", max_prefix4=500, max_prefix6=100, name="Cloudflare"):
    """Mock registry answering every lookup with the same record"""
    registry = Mock()
    registry.lookup.side_effect = lambda asn: RegistryRecord(
        asn=asn, name=name, as_set=as_set, max_prefix4=max_prefix4, max_prefix6=max_prefix6,
    )
    return registry


def make_generator(prefixes4=("1.1.1.0/24",), prefixes6=("2606:4700::/32",)):
    """Mock prefix-set generator returning fixed sets per family"""
    generator = Mock()
    generator.get_prefix_set.side_effect = lambda as_set, family, irrdb: list(
        prefixes4 if family == 4 else prefixes6
    )
    return generator
