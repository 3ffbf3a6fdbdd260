"""
Filter-decision program types

A program is an ordered tuple of typed steps. Renderers walk the steps to
produce daemon syntax; PolicyEvaluator walks them to decide a route. Policy
is never represented as free-form text.
"""

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from bcg.models import GlobalConfig, PeerConfig


class RejectReason(Enum):
    """Reason codes attached to every rejecting step"""
    OWN_PREFIX = "own-prefix"
    BOGON_ASN = "bogon-asn"
    PATH_TOO_LONG = "path-too-long"
    OUT_OF_BOUNDS_LENGTH = "out-of-bounds-length"
    BOGON_PREFIX = "bogon-prefix"
    RPKI_INVALID = "rpki-invalid"
    FIRST_AS_MISMATCH = "first-as-mismatch"
    NEXTHOP_MISMATCH = "nexthop-mismatch"
    TRANSIT_PATH = "transit-path"
    AS_SET_MISMATCH = "as-set-mismatch"
    POLICY_NONE = "policy-none"
    NOT_EXPORTABLE = "not-exportable"
    DEFAULT_ROUTE = "default-route"
    NO_SPECIFICS = "no-specifics"


class ConditionKind(Enum):
    PREFIX_IN_SET = "prefix-in-set"
    PREFIX_NOT_IN_SET = "prefix-not-in-set"
    PATH_CONTAINS_ASN = "path-contains-asn"
    PATH_LONGER_THAN = "path-longer-than"
    PREFIX_LENGTH_OUTSIDE = "prefix-length-outside"
    RPKI_INVALID = "rpki-invalid"
    FIRST_ASN_MISMATCH = "first-asn-mismatch"
    NEXTHOP_MISMATCH = "nexthop-mismatch"
    MISSING_COMMUNITIES = "missing-communities"
    IS_DEFAULT_ROUTE = "is-default-route"
    NOT_DEFAULT_ROUTE = "not-default-route"
    ALWAYS = "always"


class CommunityEffect(Enum):
    STRIP_INFO_COMMUNITIES = "strip-info-communities"
    STRIP_INTERNAL_COMMUNITIES = "strip-internal-communities"
    TAG_LEARNED_FROM = "tag-learned-from"
    TAG_OWN_ROUTE = "tag-own-route"
    GRACEFUL_SHUTDOWN = "graceful-shutdown"
    DOWNSTREAM_PREPEND = "downstream-prepend"
    BLACKHOLE = "blackhole"


@dataclass(frozen=True)
class PrefixMatch:
    """
    A prefix pattern with a length range, as in BIRD prefix sets.

    ``192.0.2.0/24`` matches exactly, ``192.0.2.0/24+`` matches the prefix
    and anything more specific, ``192.0.2.0/24{24,28}`` matches lengths 24
    to 28 under 192.0.2.0/24.
    """
    network: str
    min_len: int
    max_len: int

    @classmethod
    def parse(cls, entry: str) -> 'PrefixMatch':
        entry = entry.strip()
        suffix = ""
        if entry.endswith(("+", "-")):
            entry, suffix = entry[:-1], entry[-1]
        elif entry.endswith("}") and "{" in entry:
            entry, bounds = entry[:-1].split("{", 1)
            low, high = (int(part) for part in bounds.split(","))
            network = ipaddress.ip_network(entry, strict=False)
            if not 0 <= low <= high <= network.max_prefixlen:
                raise ValueError(f"Invalid length range {{{low},{high}}} for {entry}")
            return cls(str(network), low, high)

        network = ipaddress.ip_network(entry, strict=False)
        if suffix == "+":
            return cls(str(network), network.prefixlen, network.max_prefixlen)
        if suffix == "-":
            return cls(str(network), 0, network.prefixlen)
        return cls(str(network), network.prefixlen, network.prefixlen)

    @classmethod
    def orlonger(cls, prefix: str) -> 'PrefixMatch':
        network = ipaddress.ip_network(prefix, strict=False)
        return cls(str(network), network.prefixlen, network.max_prefixlen)

    @property
    def ip_network(self):
        return ipaddress.ip_network(self.network)

    @property
    def family(self) -> int:
        return self.ip_network.version

    def matches(self, prefix) -> bool:
        """True if the route prefix falls within this pattern"""
        pattern = self.ip_network
        route = prefix if not isinstance(prefix, str) else ipaddress.ip_network(prefix, strict=False)
        if route.version != pattern.version:
            return False
        if not self.min_len <= route.prefixlen <= self.max_len:
            return False
        common = min(pattern.prefixlen, route.prefixlen)
        return route.supernet(new_prefix=common) == pattern.supernet(new_prefix=common)

    def covers(self, prefix) -> bool:
        """True if the route prefix is inside this pattern's network, any length"""
        pattern = self.ip_network
        route = prefix if not isinstance(prefix, str) else ipaddress.ip_network(prefix, strict=False)
        return route.version == pattern.version and route.subnet_of(pattern)

    def __str__(self):
        length = self.ip_network.prefixlen
        if self.min_len == self.max_len == length:
            return self.network
        if self.min_len == length and self.max_len == self.ip_network.max_prefixlen:
            return f"{self.network}+"
        return f"{self.network}{{{self.min_len},{self.max_len}}}"


AsnRange = Tuple[int, int]
LargeCommunity = Tuple[int, int, int]


@dataclass(frozen=True)
class Condition:
    """
    Typed condition of a RejectIf step. Which parameters are used depends
    on the kind:

    - PREFIX_IN_SET / PREFIX_NOT_IN_SET: prefixes
    - PATH_CONTAINS_ASN: asn_ranges
    - PATH_LONGER_THAN: value (maximum accepted length)
    - PREFIX_LENGTH_OUTSIDE: min_len, max_len
    - FIRST_ASN_MISMATCH: value (expected first ASN)
    - NEXTHOP_MISMATCH: addresses (the session neighbors)
    - MISSING_COMMUNITIES: large_communities (route must carry one of them)

    ``exempt_blackholes`` lets blackhole-tagged host routes through the
    length, RPKI and prefix-set checks.
    """
    kind: ConditionKind
    prefixes: Tuple[PrefixMatch, ...] = ()
    asn_ranges: Tuple[AsnRange, ...] = ()
    value: Optional[int] = None
    min_len: Optional[int] = None
    max_len: Optional[int] = None
    addresses: Tuple[str, ...] = ()
    large_communities: Tuple[LargeCommunity, ...] = ()
    exempt_blackholes: bool = False

    def to_dict(self) -> dict:
        data = {'kind': self.kind.value}
        if self.prefixes:
            data['prefixes'] = [str(p) for p in self.prefixes]
        if self.asn_ranges:
            data['asn_ranges'] = [list(r) for r in self.asn_ranges]
        if self.value is not None:
            data['value'] = self.value
        if self.min_len is not None:
            data['min_len'] = self.min_len
            data['max_len'] = self.max_len
        if self.addresses:
            data['addresses'] = list(self.addresses)
        if self.large_communities:
            data['large_communities'] = [":".join(map(str, c)) for c in self.large_communities]
        if self.exempt_blackholes:
            data['exempt_blackholes'] = True
        return data


@dataclass(frozen=True)
class RejectIf:
    condition: Condition
    reason: RejectReason

    def to_dict(self) -> dict:
        return {'step': 'reject-if', 'condition': self.condition.to_dict(),
                'reason': self.reason.value}


@dataclass(frozen=True)
class SetLocalPref:
    value: int

    def to_dict(self) -> dict:
        return {'step': 'set-local-pref', 'value': self.value}


@dataclass(frozen=True)
class ApplyCommunityEffect:
    """A community-driven transform; value is the info code for TAG_LEARNED_FROM"""
    effect: CommunityEffect
    value: Optional[int] = None

    def to_dict(self) -> dict:
        data = {'step': 'community-effect', 'effect': self.effect.value}
        if self.value is not None:
            data['value'] = self.value
        return data


@dataclass(frozen=True)
class Prepend:
    asn: int
    count: int

    def to_dict(self) -> dict:
        return {'step': 'prepend', 'asn': self.asn, 'count': self.count}


@dataclass(frozen=True)
class AddCommunities:
    communities: Tuple[Tuple[int, int], ...] = ()
    large_communities: Tuple[LargeCommunity, ...] = ()

    def to_dict(self) -> dict:
        return {
            'step': 'add-communities',
            'communities': [f"{a}:{b}" for a, b in self.communities],
            'large_communities': [":".join(map(str, c)) for c in self.large_communities],
        }


@dataclass(frozen=True)
class Accept:
    def to_dict(self) -> dict:
        return {'step': 'accept'}


Step = Union[RejectIf, SetLocalPref, ApplyCommunityEffect, Prepend, AddCommunities, Accept]


@dataclass(frozen=True)
class FilterProgram:
    """Ordered decision steps for one direction and address family"""
    name: str
    family: int
    direction: str                         # import, export or origin
    steps: Tuple[Step, ...]

    def reject_reasons(self) -> List[RejectReason]:
        return [step.reason for step in self.steps if isinstance(step, RejectIf)]

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'family': self.family,
            'direction': self.direction,
            'steps': [step.to_dict() for step in self.steps],
        }


@dataclass(frozen=True)
class SessionDescriptor:
    """One protocol instance, derived from one neighbor address"""
    name: str
    family: int
    index: int
    neighbor: str
    local_asn: int
    remote_asn: int
    disabled: bool
    passive: bool
    multihop: bool
    import_limit: int

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'family': self.family,
            'index': self.index,
            'neighbor': self.neighbor,
            'local_asn': self.local_asn,
            'remote_asn': self.remote_asn,
            'disabled': self.disabled,
            'passive': self.passive,
            'multihop': self.multihop,
            'import_limit': self.import_limit,
        }


@dataclass
class CompiledPeer:
    """Everything a renderer needs for one peer"""
    peer: PeerConfig
    policy_class: str
    sessions: List[SessionDescriptor]
    import_programs: Dict[int, FilterProgram]
    export_programs: Dict[int, FilterProgram]
    prefix_filtering: Dict[int, bool]
    warnings: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.peer.name

    def to_dict(self) -> dict:
        return {
            'peer': self.peer.to_dict(),
            'policy_class': self.policy_class,
            'sessions': [s.to_dict() for s in self.sessions],
            'import': {str(f): p.to_dict() for f, p in sorted(self.import_programs.items())},
            'export': {str(f): p.to_dict() for f, p in sorted(self.export_programs.items())},
            'prefix_filtering': {str(f): v for f, v in sorted(self.prefix_filtering.items())},
            'warnings': list(self.warnings),
        }


@dataclass
class CompiledModel:
    """Compiled output of one run: global settings, origin programs and peers"""
    global_config: GlobalConfig
    origin_programs: Dict[int, FilterProgram]
    peers: Dict[str, CompiledPeer] = field(default_factory=dict)
