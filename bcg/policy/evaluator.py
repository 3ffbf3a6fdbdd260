"""
Reference evaluator

Executes a FilterProgram against a single route. This is the executable
definition of what each step means; renderers must produce daemon
configuration with the same behavior.
"""

import ipaddress
import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional, Tuple

from bcg.policy import tables
from bcg.policy.program import (
    Accept,
    AddCommunities,
    ApplyCommunityEffect,
    CommunityEffect,
    Condition,
    ConditionKind,
    FilterProgram,
    Prepend,
    RejectIf,
    RejectReason,
    SetLocalPref,
)
from bcg.validators.rpki import RPKIState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """A route as seen by a filter"""
    prefix: str
    as_path: Tuple[int, ...] = ()
    communities: FrozenSet[Tuple[int, int]] = field(default_factory=frozenset)
    large_communities: FrozenSet[Tuple[int, int, int]] = field(default_factory=frozenset)
    next_hop: Optional[str] = None
    local_pref: int = 100
    neighbor: Optional[str] = None        # Session the route was received on

    @property
    def network(self):
        return ipaddress.ip_network(self.prefix, strict=False)

    @property
    def origin_asn(self) -> Optional[int]:
        return self.as_path[-1] if self.as_path else None

    @property
    def is_host_route(self) -> bool:
        network = self.network
        return network.prefixlen == network.max_prefixlen

    @property
    def is_default_route(self) -> bool:
        return self.network.prefixlen == 0


@dataclass(frozen=True)
class RouteDecision:
    """
    Outcome of evaluating a program.

    ``step`` is the index of the step that decided (the RejectIf that fired
    or the final Accept); ``route`` is the route with every transform
    applied up to that point.
    """
    accepted: bool
    reason: Optional[RejectReason]
    step: Optional[int]
    route: Route


class PolicyEvaluator:
    """Evaluates filter programs for one local ASN"""

    def __init__(self, local_asn: int, rpki=None):
        """
        Args:
            local_asn: ASN that scopes the internal large communities
            rpki: object with validate(prefix, origin_asn) -> RPKIState;
                without one no route is RPKI invalid
        """
        self.local_asn = local_asn
        self.rpki = rpki

    def evaluate(self, program: FilterProgram, route: Route) -> RouteDecision:
        for index, step in enumerate(program.steps):
            if isinstance(step, RejectIf):
                if self.condition_holds(step.condition, route):
                    logger.debug(f"{program.name}: {route.prefix} rejected ({step.reason.value})")
                    return RouteDecision(False, step.reason, index, route)
            elif isinstance(step, SetLocalPref):
                route = replace(route, local_pref=step.value)
            elif isinstance(step, ApplyCommunityEffect):
                route = self._apply_effect(step, route, program.family)
            elif isinstance(step, Prepend):
                route = replace(route, as_path=(step.asn,) * step.count + route.as_path)
            elif isinstance(step, AddCommunities):
                route = replace(
                    route,
                    communities=route.communities | frozenset(step.communities),
                    large_communities=route.large_communities | frozenset(step.large_communities),
                )
            elif isinstance(step, Accept):
                return RouteDecision(True, None, index, route)
            else:
                raise TypeError(f"Unknown program step {step!r}")

        # A program without a final Accept rejects everything
        return RouteDecision(False, None, None, route)

    def is_blackhole(self, route: Route) -> bool:
        return (tables.BLACKHOLE_COMMUNITY in route.communities
                or tables.blackhole_community(self.local_asn) in route.large_communities)

    def _blackhole_host(self, route: Route) -> bool:
        return route.is_host_route and self.is_blackhole(route)

    def condition_holds(self, condition: Condition, route: Route) -> bool:
        kind = condition.kind
        network = route.network

        if kind == ConditionKind.ALWAYS:
            return True

        if kind == ConditionKind.PREFIX_IN_SET:
            return any(match.matches(network) for match in condition.prefixes)

        if kind == ConditionKind.PREFIX_NOT_IN_SET:
            if any(match.matches(network) for match in condition.prefixes):
                return False
            if condition.exempt_blackholes and self._blackhole_host(route):
                return not any(match.covers(network) for match in condition.prefixes)
            return True

        if kind == ConditionKind.PATH_CONTAINS_ASN:
            return any(low <= asn <= high
                       for asn in route.as_path
                       for low, high in condition.asn_ranges)

        if kind == ConditionKind.PATH_LONGER_THAN:
            return len(route.as_path) > condition.value

        if kind == ConditionKind.PREFIX_LENGTH_OUTSIDE:
            if condition.exempt_blackholes and self._blackhole_host(route):
                return False
            return not condition.min_len <= network.prefixlen <= condition.max_len

        if kind == ConditionKind.RPKI_INVALID:
            if self.rpki is None:
                return False
            if condition.exempt_blackholes and self._blackhole_host(route):
                return False
            return self.rpki.validate(route.prefix, route.origin_asn) == RPKIState.INVALID

        if kind == ConditionKind.FIRST_ASN_MISMATCH:
            return not route.as_path or route.as_path[0] != condition.value

        if kind == ConditionKind.NEXTHOP_MISMATCH:
            if route.next_hop is None:
                return False
            expected = (route.neighbor,) if route.neighbor else condition.addresses
            next_hop = ipaddress.ip_address(route.next_hop)
            return all(next_hop != ipaddress.ip_address(a) for a in expected)

        if kind == ConditionKind.MISSING_COMMUNITIES:
            return not any(c in route.large_communities for c in condition.large_communities)

        if kind == ConditionKind.IS_DEFAULT_ROUTE:
            return route.is_default_route

        if kind == ConditionKind.NOT_DEFAULT_ROUTE:
            return not route.is_default_route

        raise ValueError(f"Unknown condition kind {kind}")

    def _apply_effect(self, step: ApplyCommunityEffect, route: Route, family: int) -> Route:
        effect = step.effect
        local_asn = self.local_asn

        if effect == CommunityEffect.STRIP_INFO_COMMUNITIES:
            return replace(route, large_communities=frozenset(
                c for c in route.large_communities
                if not (c[0] == local_asn and c[1] == tables.NAMESPACE_INFO)
            ))

        if effect == CommunityEffect.STRIP_INTERNAL_COMMUNITIES:
            internal = (tables.NAMESPACE_INFO, tables.NAMESPACE_ACTION)
            return replace(route, large_communities=frozenset(
                c for c in route.large_communities
                if not (c[0] == local_asn and c[1] in internal)
            ))

        if effect == CommunityEffect.TAG_LEARNED_FROM:
            tag = tables.info_community(local_asn, step.value)
            return replace(route, large_communities=route.large_communities | {tag})

        if effect == CommunityEffect.TAG_OWN_ROUTE:
            tag = tables.info_community(local_asn, tables.INFO_ORIGINATED)
            return replace(route, large_communities=route.large_communities | {tag})

        if effect == CommunityEffect.GRACEFUL_SHUTDOWN:
            if tables.GRACEFUL_SHUTDOWN_COMMUNITY in route.communities:
                return replace(route, local_pref=tables.GRACEFUL_SHUTDOWN_LOCAL_PREF)
            return route

        if effect == CommunityEffect.DOWNSTREAM_PREPEND:
            downstream = tables.info_community(local_asn, tables.INFO_LEARNED_FROM["downstream"])
            if downstream not in route.large_communities:
                return route
            counts = [c[2] for c in route.large_communities
                      if c[0] == local_asn and c[1] == tables.NAMESPACE_ACTION
                      and 1 <= c[2] <= tables.MAX_ACTION_PREPENDS]
            if not counts:
                return route
            return replace(route, as_path=(local_asn,) * max(counts) + route.as_path)

        if effect == CommunityEffect.BLACKHOLE:
            if self._blackhole_host(route):
                return replace(route, next_hop=tables.BLACKHOLE_NEXT_HOPS[family])
            return route

        raise ValueError(f"Unknown community effect {effect}")
