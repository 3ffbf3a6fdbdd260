"""
bcg Data Models

This module contains the in-memory configuration model: the process-wide
GlobalConfig, one PeerConfig per operator-declared peer and the VRRP
instances that are passed through to the renderer.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple


PEER_TYPES = ("upstream", "peer", "downstream", "import-valid")

# Import policy classes
POLICY_CONE = "cone"
POLICY_ANY = "any"
POLICY_NONE = "none"

TYPE_POLICY_CLASS = {
    "peer": POLICY_CONE,
    "downstream": POLICY_CONE,
    "upstream": POLICY_ANY,
    "import-valid": POLICY_ANY,
}

# Peer types whose AS-SET, limits and prefix sets come from external registries
REGISTRY_TYPES = ("peer", "downstream")

# Table-size defaults for peers that skip the registry
DEFAULT_IMPORT_LIMIT4 = 1000000
DEFAULT_IMPORT_LIMIT6 = 150000

NO_OPERATIONS = "[No operations performed]"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize_name(key: str) -> str:
    """
    Turn an operator-chosen peer key into an identifier safe for any
    downstream syntax (protocol names, file names).

    >>> normalize_name("hurricane-electric")
    'HURRICANE_ELECTRIC'
    >>> normalize_name("6939 he.net")
    'PEER_6939_HE_NET'
    """
    name = _NON_ALNUM.sub("_", key.upper())
    if name[:1].isdigit():
        name = "PEER_" + name
    return name


def address_family(address: str) -> int:
    """Purely syntactic family test: anything containing ':' is IPv6"""
    return 6 if ":" in address else 4


def partition_origins(prefixes: Sequence[str]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Split origin prefixes into (IPv4, IPv6) keeping input order"""
    set4 = tuple(p for p in prefixes if address_family(p) == 4)
    set6 = tuple(p for p in prefixes if address_family(p) == 6)
    return set4, set6


@dataclass
class VRRPInstance:
    """A keepalived VRRP instance, validated and passed through untouched"""
    state: str
    interface: str
    vrid: int
    priority: int
    vips: List[str] = field(default_factory=list)

    @property
    def vips4(self) -> List[str]:
        return [vip for vip in self.vips if address_family(vip) == 4]

    @property
    def vips6(self) -> List[str]:
        return [vip for vip in self.vips if address_family(vip) == 6]

    def to_dict(self) -> dict:
        return {
            'state': self.state,
            'interface': self.interface,
            'vrid': self.vrid,
            'priority': self.priority,
            'vips4': self.vips4,
            'vips6': self.vips6,
        }


@dataclass
class PeerConfig:
    """
    Configuration and resolution state for one BGP peer.

    The same object is carried from load through enrichment into
    compilation. Fields the operator may leave out use None for "derive
    it", never 0:
    - import_limit4 / import_limit6: None until resolved
    - prefix_set4 / prefix_set6: None until resolved, [] when the
      generator returned nothing for that family
    """
    key: str                               # Map key as written by the operator
    asn: int
    type: str
    name: str = ""                         # Normalized from key when empty
    description: str = ""
    as_set: str = ""
    import_limit4: Optional[int] = None
    import_limit6: Optional[int] = None
    local_pref: int = 100
    import_policy: Optional[str] = None
    neighbors: List[str] = field(default_factory=list)

    disabled: bool = False
    passive: bool = False
    multihop: bool = False
    enforce_first_as: bool = True
    enforce_peer_nexthop: bool = True
    export_default: bool = False
    no_specifics: bool = False
    allow_blackholes: bool = False

    communities: List[str] = field(default_factory=list)
    large_communities: List[str] = field(default_factory=list)
    prepends: int = 0

    prefix_set4: Optional[List[str]] = None
    prefix_set6: Optional[List[str]] = None
    query_time: str = NO_OPERATIONS
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            self.name = normalize_name(self.key)

    @property
    def policy_class(self) -> Optional[str]:
        """Import policy class; None when the type is unknown"""
        if self.import_policy == POLICY_NONE:
            return POLICY_NONE
        return TYPE_POLICY_CLASS.get(self.type)

    @property
    def uses_registry(self) -> bool:
        return self.type in REGISTRY_TYPES

    @property
    def neighbors4(self) -> List[str]:
        return [n for n in self.neighbors if address_family(n) == 4]

    @property
    def neighbors6(self) -> List[str]:
        return [n for n in self.neighbors if address_family(n) == 6]

    def prefix_set(self, family: int) -> Optional[List[str]]:
        return self.prefix_set4 if family == 4 else self.prefix_set6

    def import_limit(self, family: int) -> Optional[int]:
        return self.import_limit4 if family == 4 else self.import_limit6

    def is_fully_specified(self) -> bool:
        """True when no registry lookup is needed for limits or AS-SET"""
        return (self.import_limit4 is not None
                and self.import_limit6 is not None
                and bool(self.as_set))

    def is_resolved(self) -> bool:
        """True when enrichment has nothing left to do for this peer"""
        if self.import_limit4 is None or self.import_limit6 is None:
            return False
        if not self.uses_registry:
            return True
        return (bool(self.as_set)
                and self.prefix_set4 is not None
                and self.prefix_set6 is not None)

    def warn(self, message: str) -> None:
        """Record a non-fatal enrichment warning on this peer"""
        self.warnings.append(message)

    def to_dict(self) -> dict:
        """Convert PeerConfig to dictionary for JSON serialization."""
        return {
            'key': self.key,
            'name': self.name,
            'asn': self.asn,
            'type': self.type,
            'description': self.description,
            'as_set': self.as_set,
            'import_limit4': self.import_limit4,
            'import_limit6': self.import_limit6,
            'local_pref': self.local_pref,
            'import_policy': self.policy_class,
            'neighbors': list(self.neighbors),
            'disabled': self.disabled,
            'passive': self.passive,
            'multihop': self.multihop,
            'enforce_first_as': self.enforce_first_as,
            'enforce_peer_nexthop': self.enforce_peer_nexthop,
            'export_default': self.export_default,
            'no_specifics': self.no_specifics,
            'allow_blackholes': self.allow_blackholes,
            'communities': list(self.communities),
            'large_communities': list(self.large_communities),
            'prepends': self.prepends,
            'prefix_set4': self.prefix_set4,
            'prefix_set6': self.prefix_set6,
            'query_time': self.query_time,
            'warnings': list(self.warnings),
        }


@dataclass
class GlobalConfig:
    """
    Process-wide configuration, loaded once per run.

    origin_set4 / origin_set6 are derived from origin_prefixes exactly once
    at construction and cannot be passed to the constructor.
    """
    asn: int
    router_id: str
    origin_prefixes: List[str] = field(default_factory=list)
    irrdb: str = "rr.ntt.net"
    rtr_server: str = ""
    filter_default: bool = False
    pref_src4: str = ""
    pref_src6: str = ""
    merge_paths: bool = False
    default_enabled: bool = False
    keep_filtered: bool = False
    vrrp_instances: List[VRRPInstance] = field(default_factory=list)
    peers: Dict[str, PeerConfig] = field(default_factory=dict)

    origin_set4: Tuple[str, ...] = field(init=False, default=())
    origin_set6: Tuple[str, ...] = field(init=False, default=())

    def __post_init__(self):
        self.origin_set4, self.origin_set6 = partition_origins(self.origin_prefixes)

    def origin_set(self, family: int) -> Tuple[str, ...]:
        return self.origin_set4 if family == 4 else self.origin_set6

    def to_dict(self) -> dict:
        """Global settings without the peers, for the renderer"""
        return {
            'asn': self.asn,
            'router_id': self.router_id,
            'origin_set4': list(self.origin_set4),
            'origin_set6': list(self.origin_set6),
            'irrdb': self.irrdb,
            'rtr_server': self.rtr_server,
            'filter_default': self.filter_default,
            'pref_src4': self.pref_src4,
            'pref_src6': self.pref_src6,
            'merge_paths': self.merge_paths,
            'default_enabled': self.default_enabled,
            'keep_filtered': self.keep_filtered,
            'vrrp_instances': [v.to_dict() for v in self.vrrp_instances],
        }
