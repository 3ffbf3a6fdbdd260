"""
PeeringDB registry client

Looks up a network by ASN and returns its declared name, IRR AS-SET and
advertised prefix counts. One blocking GET per lookup, bounded by
BCG_REGISTRY_TIMEOUT, no retries.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from bcg.utils.error_handling import RegistryError, RegistryNotFoundError
from bcg.utils.timeout_config import TimeoutType, get_timeout

logger = logging.getLogger(__name__)

DEFAULT_PEERINGDB_URL = "https://peeringdb.com/api/net"


@dataclass(frozen=True)
class RegistryRecord:
    """What the registry knows about one network"""
    asn: int
    name: str
    as_set: str
    max_prefix4: int
    max_prefix6: int


def _count(entry: dict, key: str, asn: int) -> int:
    value = entry.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise RegistryError(f"PeeringDB returned an invalid {key} for AS{asn}: {value!r}")
    return value


class PeeringDBClient:
    """Thin client for the PeeringDB net endpoint"""

    def __init__(self, url: str = DEFAULT_PEERINGDB_URL, api_key: Optional[str] = None,
                 timeout: Optional[float] = None, user_agent: str = "bcg",
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        if api_key:
            self.session.headers["Authorization"] = f"Api-Key {api_key}"

    @classmethod
    def from_settings(cls, settings) -> 'PeeringDBClient':
        """Build a client from a RegistryConfig"""
        return cls(url=settings.url, api_key=settings.api_key, user_agent=settings.user_agent)

    def lookup(self, asn: int) -> RegistryRecord:
        """
        Query PeeringDB for an ASN

        Raises:
            RegistryNotFoundError: The ASN has no PeeringDB entry
            RegistryError: Unreachable service, timeout, non-200 status or
                a body that is not the expected JSON document
        """
        timeout = self.timeout or get_timeout(TimeoutType.REGISTRY_QUERY)
        logger.debug(f"PeeringDB GET {self.url}?asn={asn}")

        try:
            response = self.session.get(self.url, params={"asn": asn}, timeout=timeout)
        except requests.Timeout:
            raise RegistryError(f"PeeringDB query for AS{asn} timed out after {timeout}s")
        except requests.RequestException as e:
            raise RegistryError(f"PeeringDB query for AS{asn} failed",
                                technical_details=str(e),
                                guidance="Check network connectivity to peeringdb.com")

        if response.status_code == 404:
            raise self._not_found(asn)
        if response.status_code != 200:
            raise RegistryError(
                f"PeeringDB returned HTTP {response.status_code} for AS{asn}",
                technical_details=response.text[:200],
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RegistryError(f"PeeringDB returned malformed JSON for AS{asn}",
                                technical_details=str(e))

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise RegistryError(f"PeeringDB response for AS{asn} has no data list")
        if not data:
            raise self._not_found(asn)

        entry = data[0]
        if not isinstance(entry, dict):
            raise RegistryError(f"PeeringDB response for AS{asn} has a malformed entry")

        record = RegistryRecord(
            asn=asn,
            name=str(entry.get("name") or ""),
            as_set=str(entry.get("irr_as_set") or ""),
            max_prefix4=_count(entry, "info_prefixes4", asn),
            max_prefix6=_count(entry, "info_prefixes6", asn),
        )
        logger.debug(f"PeeringDB AS{asn}: {record}")
        return record

    @staticmethod
    def _not_found(asn: int) -> RegistryNotFoundError:
        return RegistryNotFoundError(
            f"AS{asn} doesn't have a valid PeeringDB entry",
            guidance="Try type import-valid or ask the network to update their PeeringDB record",
        )
