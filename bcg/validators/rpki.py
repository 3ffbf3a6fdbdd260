#!/usr/bin/env python3
"""
RPKI Origin Validation for bcg

Validates (prefix, origin ASN) pairs against a locally held table of
Validated ROA Payloads, following RFC 6811:
- VALID: a covering VRP with matching origin and acceptable length
- INVALID: covering VRPs exist but none matches
- NOTFOUND: no covering VRP

Only INVALID rejects a route. Lookups are family-matched: an IPv4 route is
only ever checked against IPv4 VRPs and an IPv6 route against IPv6 VRPs.

VRP files produced by rpki-client (``roas``) and routinator
(``validated-roa-payloads``) JSON exports are supported.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from ipaddress import ip_network
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from bcg.utils.error_handling import ConfigurationError


class RPKIState(Enum):
    """RPKI validation states following RFC 6811"""
    VALID = "valid"
    INVALID = "invalid"
    NOTFOUND = "notfound"


class VRPEntry:
    """
    One Validated ROA Payload

    Uses __slots__ since full VRP tables hold several hundred thousand
    entries.
    """
    __slots__ = ['asn', 'prefix', 'max_length', 'ta', 'network']

    def __init__(self, asn: int, prefix: str, max_length: int, ta: str = "unknown"):
        """Initialize VRP entry with validation"""
        if not isinstance(asn, int) or not 0 <= asn <= 4294967295:
            raise ValueError(f"Invalid AS number: {asn}")

        network = ip_network(prefix, strict=True)
        if not network.prefixlen <= max_length <= network.max_prefixlen:
            raise ValueError(f"Invalid max_length {max_length} for prefix {prefix}")

        self.asn = asn
        self.prefix = str(network)
        self.max_length = max_length
        self.ta = ta
        self.network = network

    @property
    def family(self) -> int:
        return self.network.version

    def covers(self, target) -> bool:
        """True if the VRP prefix covers (or equals) the target network"""
        return target.version == self.network.version and target.subnet_of(self.network)

    def __repr__(self):
        return f"VRPEntry(AS{self.asn}, {self.prefix}, max {self.max_length})"


@dataclass
class RPKIValidationResult:
    """Result of RPKI validation for a prefix-AS pair"""
    prefix: str
    asn: Optional[int]
    state: RPKIState
    reason: str
    covering_vrp: Optional[VRPEntry] = None


@dataclass
class VRPDataset:
    """Complete VRP dataset with metadata"""
    vrp_entries: List[VRPEntry]
    metadata: Dict[str, Any] = field(default_factory=dict)
    generated_time: Optional[datetime] = None
    source_format: str = "unknown"

    def is_stale(self, max_age_hours: int = 24) -> bool:
        """Check if VRP data is stale"""
        if self.generated_time is None:
            return False
        age = datetime.now(timezone.utc) - self.generated_time
        return age > timedelta(hours=max_age_hours)


def _sanitize_asn(asn: Union[int, str]) -> int:
    """Accept 64496 or 'AS64496' and return the integer ASN"""
    if isinstance(asn, str):
        asn = asn.strip()
        if asn.upper().startswith('AS'):
            asn = asn[2:]
        try:
            asn = int(asn)
        except ValueError:
            raise ValueError(f"Invalid AS number format: {asn}")

    if isinstance(asn, bool) or not isinstance(asn, int):
        raise ValueError(f"AS number must be integer, got {type(asn).__name__}")

    if not 0 <= asn <= 4294967295:
        raise ValueError(f"AS number out of valid range (0-4294967295): {asn}")

    return asn


def _parse_generated_time(metadata: Dict[str, Any]) -> Optional[datetime]:
    # rpki-client: metadata.buildtime (ISO 8601); routinator: metadata.generated (epoch)
    value = metadata.get('buildtime') or metadata.get('generated')
    if value is None:
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RPKIValidator:
    """Family-matched RPKI origin validation against a local VRP table"""

    def __init__(self, vrp_path: Optional[Union[str, Path]] = None,
                 max_vrp_age_hours: int = 24,
                 entries: Optional[List[VRPEntry]] = None):
        """
        Args:
            vrp_path: rpki-client or routinator JSON export to load
            max_vrp_age_hours: warn when the table is older than this
            entries: VRPs to use directly instead of loading a file
        """
        self.logger = logging.getLogger(__name__)
        self.max_vrp_age_hours = max_vrp_age_hours
        self._tables: Dict[int, List[VRPEntry]] = {4: [], 6: []}
        self._dataset: Optional[VRPDataset] = None
        self._warned_missing = False

        if entries is not None:
            self._set_dataset(VRPDataset(vrp_entries=list(entries), source_format="memory"))
        elif vrp_path:
            self.load_vrp_data(Path(vrp_path))

    @classmethod
    def from_settings(cls, settings) -> 'RPKIValidator':
        """Build a validator from an RPKIConfig"""
        return cls(vrp_path=settings.vrp_path, max_vrp_age_hours=settings.max_vrp_age_hours)

    @property
    def loaded(self) -> bool:
        return self._dataset is not None

    def load_vrp_data(self, vrp_file_path: Path) -> VRPDataset:
        """
        Load VRPs from a JSON export

        Raises:
            ConfigurationError: the file cannot be read or is not a
                recognized VRP export
        """
        try:
            with open(vrp_file_path, 'r') as f:
                vrp_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load VRP file {vrp_file_path}",
                                     technical_details=str(e))

        if not isinstance(vrp_data, dict):
            raise ConfigurationError(f"VRP file {vrp_file_path} is not a JSON object")

        source_format = self._detect_vrp_format(vrp_data)
        if source_format == "rpki-client":
            dataset = self._parse_vrp_list(vrp_data, 'roas', 'maxLength', source_format)
        elif source_format == "routinator":
            dataset = self._parse_vrp_list(vrp_data, 'validated-roa-payloads', 'max-length',
                                           source_format)
        else:
            raise ConfigurationError(
                f"Unrecognized VRP format in {vrp_file_path}",
                guidance="Use rpki-client or routinator JSON output",
            )

        self._set_dataset(dataset)
        self.logger.info(f"Loaded {len(dataset.vrp_entries)} VRP entries ({source_format}) "
                         f"from {vrp_file_path}")
        if dataset.is_stale(self.max_vrp_age_hours):
            self.logger.warning(f"VRP data in {vrp_file_path} is older than "
                                f"{self.max_vrp_age_hours} hours")
        return dataset

    def _set_dataset(self, dataset: VRPDataset):
        self._dataset = dataset
        self._tables = {4: [], 6: []}
        for vrp in dataset.vrp_entries:
            self._tables[vrp.family].append(vrp)

    def _detect_vrp_format(self, vrp_data: Dict[str, Any]) -> str:
        """Auto-detect VRP data format"""
        if 'roas' in vrp_data:
            return "rpki-client"
        elif 'validated-roa-payloads' in vrp_data:
            return "routinator"
        return "unknown"

    def _parse_vrp_list(self, vrp_data: Dict[str, Any], list_key: str, max_length_key: str,
                        source_format: str) -> VRPDataset:
        vrp_entries = []
        skipped = 0

        for item in vrp_data.get(list_key, []):
            try:
                prefix = item['prefix']
                vrp_entries.append(VRPEntry(
                    asn=_sanitize_asn(item['asn']),
                    prefix=prefix,
                    max_length=int(item.get(max_length_key, prefix.split('/')[1])),
                    ta=item.get('ta', 'unknown'),
                ))
            except (KeyError, TypeError, ValueError, IndexError) as e:
                skipped += 1
                self.logger.debug(f"Skipping invalid VRP entry {item!r}: {e}")

        if skipped:
            self.logger.warning(f"Skipped {skipped} invalid VRP entries")

        metadata = vrp_data.get('metadata', {}) or {}
        return VRPDataset(
            vrp_entries=vrp_entries,
            metadata=metadata,
            generated_time=_parse_generated_time(metadata),
            source_format=source_format,
        )

    def validate_prefix_origin(self, prefix: str, asn: Optional[int]) -> RPKIValidationResult:
        """
        Validate a prefix-origin pair against the table of its own family

        An unknown origin (empty AS path) is NOTFOUND.
        """
        target = ip_network(prefix, strict=False)

        if self._dataset is None:
            if not self._warned_missing:
                self.logger.warning("No VRP data loaded, RPKI validation returns notfound for every route")
                self._warned_missing = True
            return RPKIValidationResult(prefix, asn, RPKIState.NOTFOUND, "No VRP data loaded")

        if asn is None:
            return RPKIValidationResult(prefix, asn, RPKIState.NOTFOUND, "No origin AS")

        covering = [vrp for vrp in self._tables[target.version] if vrp.covers(target)]
        if not covering:
            return RPKIValidationResult(prefix, asn, RPKIState.NOTFOUND, "No covering VRP found")

        for vrp in covering:
            if vrp.asn == asn and target.prefixlen <= vrp.max_length:
                return RPKIValidationResult(
                    prefix, asn, RPKIState.VALID,
                    f"Valid ROA found: {vrp.prefix} max-length {vrp.max_length}",
                    covering_vrp=vrp,
                )

        return RPKIValidationResult(
            prefix, asn, RPKIState.INVALID,
            "Invalid: covered by VRP(s) "
            + ", ".join(f"{vrp.prefix}-{vrp.max_length} AS{vrp.asn}" for vrp in covering),
            covering_vrp=covering[0],
        )

    def validate(self, prefix: str, origin_asn: Optional[int]) -> RPKIState:
        """RPKI state of a route"""
        return self.validate_prefix_origin(prefix, origin_asn).state

    def get_validation_stats(self) -> Dict[str, Any]:
        return {
            'loaded': self.loaded,
            'source_format': self._dataset.source_format if self._dataset else None,
            'vrp_count4': len(self._tables[4]),
            'vrp_count6': len(self._tables[6]),
        }
