"""
Peer enrichment

Completes every PeerConfig field the operator left unset:
- peer/downstream: import limits and AS-SET from PeeringDB, prefix sets
  from bgpq4, completion timestamp
- upstream/import-valid: table-size import limit defaults, no external calls

Any collaborator failure is fatal and aborts the run. An empty prefix set
for one family is only a warning.
"""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from bcg.models import (
    DEFAULT_IMPORT_LIMIT4,
    DEFAULT_IMPORT_LIMIT6,
    GlobalConfig,
    PeerConfig,
)
from bcg.utils.error_handling import BCGError, EnrichmentError

logger = logging.getLogger(__name__)

RFC1123_FORMAT = "%a, %d %b %Y %H:%M:%S %Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def derive_as_set(registry_as_set: str) -> Tuple[str, List[str]]:
    """
    Reduce a registry irr_as_set field to a single AS-SET name

    "RIPE::AS-FOO AS-BAR" becomes "AS-FOO" with two warnings.

    Returns:
        (as_set, warnings); as_set is empty when nothing usable remains
    """
    warnings = []
    tokens = registry_as_set.split()
    if not tokens:
        return "", warnings

    as_set = tokens[0]
    if len(tokens) > 1:
        warnings.append(
            f"PeeringDB as-set field has multiple entries. Selecting first element {as_set}"
        )

    if "::" in as_set:
        as_set = as_set.split("::", 1)[1]
        warnings.append(f"PeeringDB as-set field has an IRRDB prefix. Using {as_set}")

    return as_set.strip(), warnings


class EnrichmentResolver:
    """Resolves peers against the registry and the prefix-set generator"""

    def __init__(self, registry, prefix_generator, irrdb: str = "rr.ntt.net",
                 max_workers: int = 1, clock: Callable[[], datetime] = utc_now):
        """
        Args:
            registry: object with lookup(asn) -> RegistryRecord
            prefix_generator: object with get_prefix_set(as_set, family, irrdb) -> List[str]
            irrdb: IRR host handed to the prefix-set generator
            max_workers: resolve peers in a thread pool when greater than 1
            clock: returns the timestamp recorded as query_time
        """
        self.registry = registry
        self.prefix_generator = prefix_generator
        self.irrdb = irrdb
        self.max_workers = max(1, max_workers)
        self.clock = clock

    def resolve_all(self, config: GlobalConfig) -> GlobalConfig:
        """
        Resolve every peer of the configuration in place.

        Raises:
            EnrichmentError: for the first peer that fails; pending peers
                are not resolved
        """
        peers = list(config.peers.values())
        if self.max_workers == 1 or len(peers) < 2:
            for peer in peers:
                self.resolve_peer(peer)
            return config

        logger.info(f"Resolving {len(peers)} peers with {self.max_workers} workers")
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="bcg-enrich")
        try:
            futures = [executor.submit(self.resolve_peer, peer) for peer in peers]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            # Report the failure of the earliest peer in document order
            for future in futures:
                if not future.cancelled() and future.exception() is not None:
                    raise future.exception()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return config

    def resolve_peer(self, peer: PeerConfig) -> PeerConfig:
        """Resolve a single peer in place"""
        logger.info(f"[{peer.key}] type: {peer.type}")

        try:
            if peer.uses_registry:
                self._resolve_registry_peer(peer)
            else:
                self._apply_table_defaults(peer)
        except BCGError as e:
            if e.peer is None:
                e.peer = peer.key
            raise

        self.log_peer_summary(peer)
        return peer

    def _apply_table_defaults(self, peer: PeerConfig) -> None:
        if peer.import_limit4 is None:
            peer.import_limit4 = DEFAULT_IMPORT_LIMIT4
            logger.info(f"[{peer.key}] has no IPv4 import limit configured. Setting to {DEFAULT_IMPORT_LIMIT4}")
        if peer.import_limit6 is None:
            peer.import_limit6 = DEFAULT_IMPORT_LIMIT6
            logger.info(f"[{peer.key}] has no IPv6 import limit configured. Setting to {DEFAULT_IMPORT_LIMIT6}")

    def _resolve_registry_peer(self, peer: PeerConfig) -> None:
        if peer.is_resolved():
            logger.debug(f"[{peer.key}] already resolved, skipping registry and IRR queries")
            return

        if not peer.is_fully_specified():
            record = self.registry.lookup(peer.asn)

            if peer.import_limit4 is None:
                if record.max_prefix4 == 0:
                    raise EnrichmentError(
                        "has no IPv4 import limit configured and PeeringDB reports 0 prefixes",
                        guidance="Set import-limit4 explicitly",
                    )
                peer.import_limit4 = record.max_prefix4
                logger.info(f"[{peer.key}] has no IPv4 import limit configured. "
                            f"Setting to {record.max_prefix4} from PeeringDB")

            if peer.import_limit6 is None:
                if record.max_prefix6 == 0:
                    raise EnrichmentError(
                        "has no IPv6 import limit configured and PeeringDB reports 0 prefixes",
                        guidance="Set import-limit6 explicitly",
                    )
                peer.import_limit6 = record.max_prefix6
                logger.info(f"[{peer.key}] has no IPv6 import limit configured. "
                            f"Setting to {record.max_prefix6} from PeeringDB")

            if not peer.as_set:
                as_set, warnings = derive_as_set(record.as_set)
                for warning in warnings:
                    logger.warning(f"[{peer.key}] {warning}")
                    peer.warn(warning)
                if not as_set:
                    raise EnrichmentError(
                        "has no as-set in PeeringDB",
                        guidance="Set as-set manually for this peer",
                    )
                peer.as_set = as_set
                logger.info(f"[{peer.key}] has no manual AS-SET defined. Setting to {as_set} from PeeringDB")
        else:
            logger.info(f"[{peer.key}] has manual AS-SET: {peer.as_set}")

        if peer.prefix_set4 is None:
            peer.prefix_set4 = self._prefix_set(peer, 4)
        if peer.prefix_set6 is None:
            peer.prefix_set6 = self._prefix_set(peer, 6)

        peer.query_time = self.clock().strftime(RFC1123_FORMAT)

    def _prefix_set(self, peer: PeerConfig, family: int) -> List[str]:
        prefixes = list(self.prefix_generator.get_prefix_set(peer.as_set, family, self.irrdb))
        if not prefixes:
            warning = (f"as-set {peer.as_set} has no IPv{family} prefixes. "
                       f"IPv{family} prefix filtering disabled")
            logger.warning(f"[{peer.key}] {warning}")
            peer.warn(warning)
        return prefixes

    @staticmethod
    def log_peer_summary(peer: PeerConfig) -> None:
        logger.info(f"[{peer.key}] local pref: {peer.local_pref}")
        logger.info(f"[{peer.key}] max prefixes: IPv4 {peer.import_limit4}, IPv6 {peer.import_limit6}")
        if peer.as_set:
            logger.info(f"[{peer.key}] as-set: {peer.as_set}")
        for flag in ("export_default", "no_specifics", "allow_blackholes"):
            logger.debug(f"[{peer.key}] {flag.replace('_', '-')}: {getattr(peer, flag)}")
        if peer.prepends:
            logger.info(f"[{peer.key}] prepends: {peer.prepends}")
        if peer.communities:
            logger.info(f"[{peer.key}] communities: {', '.join(peer.communities)}")
        if peer.large_communities:
            logger.info(f"[{peer.key}] large-communities: {', '.join(peer.large_communities)}")
        logger.info(f"[{peer.key}] neighbors: {', '.join(peer.neighbors)}")


def resolve(config: GlobalConfig, registry, prefix_generator,
            max_workers: int = 1, clock: Optional[Callable[[], datetime]] = None) -> GlobalConfig:
    """Resolve every peer of config using its irrdb"""
    resolver = EnrichmentResolver(registry, prefix_generator, irrdb=config.irrdb,
                                  max_workers=max_workers, clock=clock or utc_now)
    return resolver.resolve_all(config)
