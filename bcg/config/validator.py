"""
Configuration validation

Two passes over the loaded model:
- validate() runs right after loading, before any external call
- validate_resolved() runs after enrichment, before compilation

Both raise ConfigurationError on the first violation.
"""

import ipaddress
import logging
from typing import Dict

from bcg.models import (
    PEER_TYPES,
    POLICY_ANY,
    POLICY_CONE,
    POLICY_NONE,
    REGISTRY_TYPES,
    GlobalConfig,
    PeerConfig,
    normalize_name,
)
from bcg.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)

MAX_PREPENDS = 3
VRRP_STATES = ("MASTER", "BACKUP")


def is_valid_address(address: str) -> bool:
    try:
        ipaddress.ip_address(address)
        return True
    except ValueError:
        return False


def is_valid_prefix(prefix: str) -> bool:
    if "/" not in prefix:
        return False
    try:
        ipaddress.ip_network(prefix, strict=True)
        return True
    except ValueError:
        return False


def _valid_parts(value: str, count: int, maximum: int) -> bool:
    parts = value.split(":")
    if len(parts) != count:
        return False
    for part in parts:
        if not part.isdigit() or int(part) > maximum:
            return False
    return True


def is_valid_community(community: str) -> bool:
    """Standard community, ASN:value with 16-bit halves"""
    return _valid_parts(community, 2, 65535)


def is_valid_large_community(community: str) -> bool:
    """Large community, three 32-bit fields"""
    return _valid_parts(community, 3, 4294967295)


def validate(config: GlobalConfig) -> None:
    """
    Validate a freshly loaded configuration.

    Checks the global section, the VRRP instances and every peer, then
    peer name uniqueness after normalization.

    Raises:
        ConfigurationError: on the first violation found
    """
    if not is_valid_address(config.router_id) or ":" in config.router_id:
        raise ConfigurationError(
            f"router-id {config.router_id!r} is not an IPv4 address"
        )

    for prefix in config.origin_prefixes:
        if not is_valid_prefix(prefix):
            raise ConfigurationError(
                f"Origin prefix {prefix!r} is not a valid CIDR prefix",
                guidance="Use network/length notation with no host bits set",
            )

    if not config.origin_prefixes:
        logger.info("There are no origin prefixes defined")

    for index, instance in enumerate(config.vrrp_instances):
        _validate_vrrp(index, instance)

    for peer in config.peers.values():
        _validate_peer(peer)

    _check_unique_names(config.peers)


def _validate_vrrp(index, instance) -> None:
    label = f"vrrp instance {index} ({instance.interface})"
    if instance.state not in VRRP_STATES:
        raise ConfigurationError(f"{label} state must be MASTER or BACKUP, got {instance.state!r}")
    if not 1 <= instance.vrid <= 255:
        raise ConfigurationError(f"{label} vrid must be between 1 and 255, got {instance.vrid}")
    if not 1 <= instance.priority <= 255:
        raise ConfigurationError(f"{label} priority must be between 1 and 255, got {instance.priority}")
    if not instance.vips:
        raise ConfigurationError(f"{label} has no VIPs")
    for vip in instance.vips:
        try:
            ipaddress.ip_interface(vip)
        except ValueError:
            raise ConfigurationError(f"{label} VIP {vip!r} is not a valid address")


def _validate_peer(peer: PeerConfig) -> None:
    if peer.type not in PEER_TYPES:
        raise ConfigurationError(
            "type attribute is invalid. Must be upstream, peer, downstream, or import-valid",
            peer=peer.key,
        )

    if peer.import_policy is not None:
        if peer.import_policy not in (POLICY_CONE, POLICY_ANY, POLICY_NONE):
            raise ConfigurationError(
                f"import-policy {peer.import_policy!r} is not one of cone, any, none",
                peer=peer.key,
            )
        derived = POLICY_CONE if peer.type in REGISTRY_TYPES else POLICY_ANY
        if peer.import_policy not in (derived, POLICY_NONE):
            raise ConfigurationError(
                f"import-policy {peer.import_policy!r} conflicts with type {peer.type} "
                f"(derived class {derived})",
                guidance="The only accepted override is 'none'",
                peer=peer.key,
            )

    if not peer.neighbors:
        logger.warning(f"[{peer.key}] has no neighbors; no sessions will be generated")

    for neighbor in peer.neighbors:
        if not is_valid_address(neighbor):
            raise ConfigurationError(f"neighbor {neighbor!r} is not a valid IP address", peer=peer.key)

    if len(set(peer.neighbors)) != len(peer.neighbors):
        raise ConfigurationError("neighbors list contains duplicates", peer=peer.key)

    for community in peer.communities:
        if not is_valid_community(community):
            raise ConfigurationError(f"community {community!r} is not ASN:value", peer=peer.key)

    for community in peer.large_communities:
        if not is_valid_large_community(community):
            raise ConfigurationError(
                f"large community {community!r} is not ASN:value:value", peer=peer.key
            )

    if not 0 <= peer.prepends <= MAX_PREPENDS:
        raise ConfigurationError(
            f"prepends must be between 0 and {MAX_PREPENDS}, got {peer.prepends}",
            peer=peer.key,
        )

    if peer.no_specifics and not peer.export_default:
        raise ConfigurationError(
            "no-specifics without export-default would export nothing",
            guidance="Set export-default: true or drop no-specifics",
            peer=peer.key,
        )

    for limit in (peer.import_limit4, peer.import_limit6):
        if limit is not None and limit < 0:
            raise ConfigurationError(f"import limit {limit} is negative", peer=peer.key)


def _check_unique_names(peers: Dict[str, PeerConfig]) -> None:
    seen: Dict[str, str] = {}
    for key, peer in peers.items():
        name = normalize_name(key)
        if not name.strip("_"):
            raise ConfigurationError(
                f"Peer name {key!r} has no letters or digits",
                guidance="Peer names become session and file names; use e.g. the network name",
            )
        if name in seen:
            raise ConfigurationError(
                f"Peer names {seen[name]!r} and {key!r} both normalize to {name}",
                guidance="Rename one of the peers",
            )
        seen[name] = key


def validate_resolved(config: GlobalConfig) -> None:
    """
    Validate the model after enrichment.

    Every peer must have both import limits set, and peers filtered by
    AS-SET must have one.
    """
    for peer in config.peers.values():
        if peer.uses_registry and not peer.as_set:
            raise ConfigurationError(
                "has no AS-SET defined and filtering profile requires it",
                peer=peer.key,
            )
        if peer.import_limit4 is None or peer.import_limit6 is None:
            raise ConfigurationError("import limits were not resolved", peer=peer.key)
