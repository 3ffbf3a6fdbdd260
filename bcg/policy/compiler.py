"""
Policy compiler

Turns resolved peers into per-family filter programs and per-neighbor
session descriptors. Compilation is deterministic and makes no external
calls; the same resolved model always compiles to the same output.

Import program order (each RejectIf short-circuits):
    own prefix, bogon ASN, path length, prefix length, bogon prefix, RPKI,
    first AS, next hop, local-pref, class check, community effects, accept
"""

import logging
from typing import List

from bcg.models import (
    POLICY_ANY,
    POLICY_CONE,
    POLICY_NONE,
    GlobalConfig,
    PeerConfig,
    address_family,
)
from bcg.policy import tables
from bcg.policy.program import (
    Accept,
    AddCommunities,
    ApplyCommunityEffect,
    CommunityEffect,
    CompiledModel,
    CompiledPeer,
    Condition,
    ConditionKind,
    FilterProgram,
    Prepend,
    PrefixMatch,
    RejectIf,
    RejectReason,
    SessionDescriptor,
    SetLocalPref,
)
from bcg.utils.error_handling import CompilationError

logger = logging.getLogger(__name__)

FAMILIES = (4, 6)


def _parse_community(value: str):
    return tuple(int(part) for part in value.split(":"))


class PolicyCompiler:
    """Compiles the peers of one GlobalConfig"""

    def __init__(self, config: GlobalConfig):
        self.config = config

    def compile(self) -> CompiledModel:
        """
        Compile every peer.

        Raises:
            CompilationError: for the first peer violating a compile-time
                invariant; nothing is returned for the other peers
        """
        model = CompiledModel(
            global_config=self.config,
            origin_programs={family: self.build_origin_program(family) for family in FAMILIES},
        )
        for peer in self.config.peers.values():
            model.peers[peer.name] = self.compile_peer(peer)
        logger.info(f"Compiled {len(model.peers)} peers")
        return model

    def compile_peer(self, peer: PeerConfig) -> CompiledPeer:
        policy_class = self._check_invariants(peer)

        compiled = CompiledPeer(
            peer=peer,
            policy_class=policy_class,
            sessions=self.build_sessions(peer),
            import_programs={f: self.build_import_program(peer, f) for f in FAMILIES},
            export_programs={f: self.build_export_program(peer, f) for f in FAMILIES},
            prefix_filtering={
                f: policy_class == POLICY_CONE and bool(peer.prefix_set(f)) for f in FAMILIES
            },
            warnings=list(peer.warnings),
        )
        logger.debug(f"[{peer.key}] compiled as {policy_class}, "
                     f"{len(compiled.sessions)} sessions")
        return compiled

    def _check_invariants(self, peer: PeerConfig) -> str:
        policy_class = peer.policy_class
        if policy_class is None:
            raise CompilationError(f"unknown peer type {peer.type!r}", peer=peer.key)

        for family in FAMILIES:
            if peer.import_limit(family) is None:
                raise CompilationError(f"IPv{family} import limit is unset", peer=peer.key)

        if policy_class == POLICY_CONE:
            if peer.prefix_set4 is None or peer.prefix_set6 is None:
                raise CompilationError("prefix sets were never resolved", peer=peer.key)
            if not peer.prefix_set4 and not peer.prefix_set6:
                raise CompilationError(
                    f"as-set {peer.as_set} has no prefixes for either family",
                    guidance="A cone peer with nothing to match would accept everything",
                    peer=peer.key,
                )
        return policy_class

    def build_sessions(self, peer: PeerConfig) -> List[SessionDescriptor]:
        """One descriptor per neighbor address, indexed by list position"""
        sessions = []
        for index, neighbor in enumerate(peer.neighbors):
            family = address_family(neighbor)
            sessions.append(SessionDescriptor(
                name=f"{peer.name}v{family}_{index}",
                family=family,
                index=index,
                neighbor=neighbor,
                local_asn=self.config.asn,
                remote_asn=peer.asn,
                disabled=peer.disabled,
                passive=peer.passive,
                multihop=peer.multihop,
                import_limit=peer.import_limit(family),
            ))
        return sessions

    def build_import_program(self, peer: PeerConfig, family: int) -> FilterProgram:
        steps = []

        origin = self.config.origin_set(family)
        if origin:
            steps.append(RejectIf(
                Condition(ConditionKind.PREFIX_IN_SET,
                          prefixes=tuple(PrefixMatch.orlonger(p) for p in origin)),
                RejectReason.OWN_PREFIX,
            ))

        steps.append(RejectIf(
            Condition(ConditionKind.PATH_CONTAINS_ASN, asn_ranges=tables.BOGON_ASNS),
            RejectReason.BOGON_ASN,
        ))
        steps.append(RejectIf(
            Condition(ConditionKind.PATH_LONGER_THAN, value=tables.MAX_PATH_LENGTH),
            RejectReason.PATH_TOO_LONG,
        ))

        min_len, max_len = tables.PREFIX_LENGTH_BOUNDS[family]
        steps.append(RejectIf(
            Condition(ConditionKind.PREFIX_LENGTH_OUTSIDE, min_len=min_len, max_len=max_len,
                      exempt_blackholes=peer.allow_blackholes),
            RejectReason.OUT_OF_BOUNDS_LENGTH,
        ))
        steps.append(RejectIf(
            Condition(ConditionKind.PREFIX_IN_SET,
                      prefixes=tables.bogon_prefix_matches(family, self.config.filter_default)),
            RejectReason.BOGON_PREFIX,
        ))
        steps.append(RejectIf(
            Condition(ConditionKind.RPKI_INVALID, exempt_blackholes=peer.allow_blackholes),
            RejectReason.RPKI_INVALID,
        ))

        if peer.enforce_first_as:
            steps.append(RejectIf(
                Condition(ConditionKind.FIRST_ASN_MISMATCH, value=peer.asn),
                RejectReason.FIRST_AS_MISMATCH,
            ))
        if peer.enforce_peer_nexthop:
            neighbors = peer.neighbors4 if family == 4 else peer.neighbors6
            steps.append(RejectIf(
                Condition(ConditionKind.NEXTHOP_MISMATCH, addresses=tuple(neighbors)),
                RejectReason.NEXTHOP_MISMATCH,
            ))

        steps.append(SetLocalPref(peer.local_pref))
        steps.extend(self._class_check(peer, family))

        steps.append(ApplyCommunityEffect(CommunityEffect.STRIP_INFO_COMMUNITIES))
        steps.append(ApplyCommunityEffect(CommunityEffect.TAG_LEARNED_FROM,
                                          tables.INFO_LEARNED_FROM[peer.type]))
        steps.append(ApplyCommunityEffect(CommunityEffect.GRACEFUL_SHUTDOWN))
        steps.append(ApplyCommunityEffect(CommunityEffect.DOWNSTREAM_PREPEND))
        if peer.allow_blackholes:
            steps.append(ApplyCommunityEffect(CommunityEffect.BLACKHOLE))
        steps.append(Accept())

        return FilterProgram(f"{peer.name}v{family}_import", family, "import", tuple(steps))

    def _class_check(self, peer: PeerConfig, family: int) -> list:
        policy_class = peer.policy_class
        if policy_class == POLICY_NONE:
            return [RejectIf(Condition(ConditionKind.ALWAYS), RejectReason.POLICY_NONE)]
        if policy_class == POLICY_ANY:
            return []

        steps = [RejectIf(
            Condition(ConditionKind.PATH_CONTAINS_ASN, asn_ranges=tables.transit_asn_ranges()),
            RejectReason.TRANSIT_PATH,
        )]
        prefix_set = peer.prefix_set(family)
        if prefix_set:
            steps.append(RejectIf(
                Condition(ConditionKind.PREFIX_NOT_IN_SET,
                          prefixes=tuple(PrefixMatch.parse(p) for p in prefix_set),
                          exempt_blackholes=peer.allow_blackholes),
                RejectReason.AS_SET_MISMATCH,
            ))
        return steps

    def build_export_program(self, peer: PeerConfig, family: int) -> FilterProgram:
        local_asn = self.config.asn
        steps = []

        if not peer.export_default:
            steps.append(RejectIf(Condition(ConditionKind.IS_DEFAULT_ROUTE),
                                  RejectReason.DEFAULT_ROUTE))
        if peer.no_specifics:
            steps.append(RejectIf(Condition(ConditionKind.NOT_DEFAULT_ROUTE),
                                  RejectReason.NO_SPECIFICS))

        if peer.type != "downstream":
            exportable = (
                tables.info_community(local_asn, tables.INFO_ORIGINATED),
                tables.info_community(local_asn, tables.INFO_LEARNED_FROM["downstream"]),
            )
            steps.append(RejectIf(
                Condition(ConditionKind.MISSING_COMMUNITIES, large_communities=exportable),
                RejectReason.NOT_EXPORTABLE,
            ))

        steps.append(ApplyCommunityEffect(CommunityEffect.STRIP_INTERNAL_COMMUNITIES))
        if peer.prepends:
            steps.append(Prepend(local_asn, peer.prepends))
        if peer.communities or peer.large_communities:
            steps.append(AddCommunities(
                communities=tuple(_parse_community(c) for c in peer.communities),
                large_communities=tuple(_parse_community(c) for c in peer.large_communities),
            ))
        steps.append(Accept())

        return FilterProgram(f"{peer.name}v{family}_export", family, "export", tuple(steps))

    def build_origin_program(self, family: int) -> FilterProgram:
        """Applied to the static protocol that originates the origin sets"""
        steps = (ApplyCommunityEffect(CommunityEffect.TAG_OWN_ROUTE), Accept())
        return FilterProgram(f"ORIGINv{family}", family, "origin", steps)


def compile_model(config: GlobalConfig) -> CompiledModel:
    """Compile every peer of a resolved configuration"""
    return PolicyCompiler(config).compile()
