"""
Static reference tables

Immutable data shared by every peer compilation: bogon ASNs and prefixes,
well-known transit networks, prefix length bounds and the community
namespaces bcg uses for internal signaling.
"""

from typing import Dict, FrozenSet, Tuple

from bcg.policy.program import PrefixMatch

# Reserved, private and documentation ASNs as inclusive ranges
BOGON_ASNS: Tuple[Tuple[int, int], ...] = (
    (0, 0),                       # RFC 7607
    (23456, 23456),               # AS_TRANS (RFC 6793)
    (64496, 64511),               # Documentation (RFC 5398)
    (64512, 65534),               # Private use (RFC 6996)
    (65535, 65535),               # Last 16-bit ASN (RFC 7300)
    (65536, 65551),               # Documentation (RFC 5398)
    (65552, 131071),              # IANA reserved
    (4200000000, 4294967294),     # Private use (RFC 6996)
    (4294967295, 4294967295),     # Last 32-bit ASN (RFC 7300)
)

BOGON_PREFIXES4: Tuple[str, ...] = (
    "0.0.0.0/8",        # This network (RFC 1122)
    "10.0.0.0/8",       # Private use (RFC 1918)
    "100.64.0.0/10",    # Carrier-grade NAT (RFC 6598)
    "127.0.0.0/8",      # Loopback (RFC 1122)
    "169.254.0.0/16",   # Link local (RFC 3927)
    "172.16.0.0/12",    # Private use (RFC 1918)
    "192.0.2.0/24",     # Documentation (RFC 5737)
    "192.88.99.0/24",   # 6to4 relay anycast (RFC 7526)
    "192.168.0.0/16",   # Private use (RFC 1918)
    "198.18.0.0/15",    # Benchmark testing (RFC 2544)
    "198.51.100.0/24",  # Documentation (RFC 5737)
    "203.0.113.0/24",   # Documentation (RFC 5737)
    "224.0.0.0/4",      # Multicast (RFC 5771)
    "240.0.0.0/4",      # Reserved (RFC 1112)
)

BOGON_PREFIXES6: Tuple[str, ...] = (
    "::/8",             # Loopback, unspecified, IPv4-mapped
    "100::/64",         # Discard only (RFC 6666)
    "2001:2::/48",      # Benchmarking (RFC 5180)
    "2001:10::/28",     # ORCHID (RFC 4843)
    "2001:db8::/32",    # Documentation (RFC 3849)
    "2002::/16",        # 6to4 (RFC 7526)
    "3ffe::/16",        # Old 6bone
    "fc00::/7",         # Unique local (RFC 4193)
    "fe80::/10",        # Link local (RFC 4291)
    "fec0::/10",        # Site local (RFC 3879)
    "ff00::/8",         # Multicast (RFC 4291)
)

# Large transit networks that never appear behind a peer or customer
TRANSIT_ASNS: FrozenSet[int] = frozenset({
    174,    # Cogent
    209,    # Lumen (Qwest)
    701,    # Verizon
    702,    # Verizon
    1239,   # Sprint
    1299,   # Arelion
    2914,   # NTT
    3257,   # GTT
    3320,   # Deutsche Telekom
    3356,   # Lumen
    3491,   # PCCW
    3549,   # Lumen (Global Crossing)
    3561,   # Lumen (Savvis)
    4134,   # Chinanet
    5511,   # Orange
    6453,   # Tata
    6461,   # Zayo
    6762,   # Telecom Italia Sparkle
    6830,   # Liberty Global
    7018,   # AT&T
    12956,  # Telefonica
})

MAX_PATH_LENGTH = 100

# Accepted prefix lengths per family, inclusive
PREFIX_LENGTH_BOUNDS: Dict[int, Tuple[int, int]] = {4: (8, 24), 6: (12, 48)}
HOST_PREFIX_LENGTH: Dict[int, int] = {4: 32, 6: 128}
DEFAULT_ROUTES: Dict[int, str] = {4: "0.0.0.0/0", 6: "::/0"}

# Discard next hops for blackholed host routes
BLACKHOLE_NEXT_HOPS: Dict[int, str] = {4: "192.0.2.1", 6: "100::1"}

# Large community namespaces, (local ASN, namespace, value)
NAMESPACE_BLACKHOLE = 0
NAMESPACE_INFO = 1
NAMESPACE_ACTION = 2

INFO_ORIGINATED = 1
INFO_LEARNED_FROM: Dict[str, int] = {
    "upstream": 2,
    "peer": 3,
    "downstream": 4,
    "import-valid": 5,
}
BLACKHOLE_VALUE = 666
MAX_ACTION_PREPENDS = 3

# Well-known standard communities
BLACKHOLE_COMMUNITY = (65535, 666)          # RFC 7999
GRACEFUL_SHUTDOWN_COMMUNITY = (65535, 0)    # RFC 8326
GRACEFUL_SHUTDOWN_LOCAL_PREF = 0


def _ranges_contain(ranges: Tuple[Tuple[int, int], ...], asn: int) -> bool:
    return any(low <= asn <= high for low, high in ranges)


def is_bogon_asn(asn: int) -> bool:
    return _ranges_contain(BOGON_ASNS, asn)


def transit_asn_ranges() -> Tuple[Tuple[int, int], ...]:
    return tuple((asn, asn) for asn in sorted(TRANSIT_ASNS))


def bogon_prefix_matches(family: int, filter_default: bool = False) -> Tuple[PrefixMatch, ...]:
    """Bogon table for a family as orlonger matches, plus the exact default route if requested"""
    table = BOGON_PREFIXES4 if family == 4 else BOGON_PREFIXES6
    matches = tuple(PrefixMatch.orlonger(prefix) for prefix in table)
    if filter_default:
        matches += (PrefixMatch.parse(DEFAULT_ROUTES[family]),)
    return matches


def info_community(local_asn: int, value: int) -> Tuple[int, int, int]:
    return (local_asn, NAMESPACE_INFO, value)


def action_community(local_asn: int, prepends: int) -> Tuple[int, int, int]:
    return (local_asn, NAMESPACE_ACTION, prepends)


def blackhole_community(local_asn: int) -> Tuple[int, int, int]:
    return (local_asn, NAMESPACE_BLACKHOLE, BLACKHOLE_VALUE)
