#!/usr/bin/env python3
"""
Prefix-Set Generator using bgpq4

Wrapper for bgpq4 with support for:
- Native bgpq4 executable (production)
- Docker/Podman containerized bgpq4 (development)
- Automatic detection and fallback
- Parsing of bgpq4's BIRD prefix-list output into CIDR entries
"""

import logging
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from bcg.utils.error_handling import PrefixGeneratorError
from bcg.utils.subprocess_manager import ProcessState, run_with_resource_management
from bcg.utils.timeout_config import TimeoutType, get_timeout, timeout_context


class BGPq4Mode(Enum):
    """BGPq4 execution modes"""
    NATIVE = "native"
    DOCKER = "docker"
    PODMAN = "podman"
    AUTO = "auto"


@dataclass
class PrefixSetResult:
    """Result of prefix-set generation for one AS-SET and family"""
    as_set: str
    family: int
    prefixes: List[str] = field(default_factory=list)
    success: bool = True
    execution_time: Optional[float] = None
    error_message: Optional[str] = None
    bgpq4_mode: Optional[str] = None


_AS_SET_RE = re.compile(r'^[A-Za-z0-9_:.-]+$')
_HOST_RE = re.compile(r'^[A-Za-z0-9.-]+(:\d+)?$')
# An entry of a BIRD prefix list: network/len, optionally followed by
# +, - or a {min,max} length range
_ENTRY_RE = re.compile(r'^[0-9A-Fa-f:.]+/\d{1,3}(\+|-|\{\d{1,3},\d{1,3}\})?$')
_SPLIT_RE = re.compile(r',(?![^{]*\})')


def validate_as_set(as_set: str) -> str:
    """
    Validate an AS-SET or ASN identifier for safe command construction

    Args:
        as_set: Identifier such as AS-EXAMPLE, AS65000:AS-CUSTOMERS or AS65000

    Returns:
        Validated identifier

    Raises:
        ValueError: If the identifier is empty, too long or has unsafe characters
    """
    if not isinstance(as_set, str):
        raise ValueError(f"AS-SET must be string, got {type(as_set).__name__}")

    if not as_set:
        raise ValueError("AS-SET cannot be empty")

    if as_set.startswith("-"):
        raise ValueError(f"AS-SET cannot start with '-': {as_set}")

    if not _AS_SET_RE.match(as_set):
        raise ValueError(f"AS-SET contains invalid characters: {as_set}")

    if len(as_set) > 128:
        raise ValueError(f"AS-SET too long (max 128 characters): {len(as_set)}")

    return as_set


def validate_irr_host(host: str) -> str:
    if not host or host.startswith("-") or not _HOST_RE.match(host):
        raise ValueError(f"Invalid IRR host: {host!r}")
    return host


def parse_bird_prefix_list(output: str) -> List[str]:
    """
    Parse bgpq4 BIRD output (-b) into a list of prefix entries

    bgpq4 prints::

        NN = [
            192.0.2.0/24,
            198.51.100.0/22{22,24}
        ];

    or ``NN = [];`` when the AS-SET has no routes for the family.

    Raises:
        ValueError: If the output is not a BIRD prefix list
    """
    text = output.strip()
    start = text.find("[")
    end = text.rfind("];")
    if start == -1 or end == -1 or end < start:
        raise ValueError("bgpq4 output is not a BIRD prefix list")

    body = text[start + 1:end]
    prefixes = []
    for token in _SPLIT_RE.split(body):
        entry = token.strip()
        if not entry:
            continue
        if not _ENTRY_RE.match(entry):
            raise ValueError(f"Unexpected prefix list entry: {entry!r}")
        prefixes.append(entry)
    return prefixes


class BGPq4Wrapper:
    """Wrapper for the bgpq4 prefix-set generator"""

    # Default bgpq4 executable paths to check
    NATIVE_BGPQ4_PATHS = [
        '/usr/bin/bgpq4',           # Standard Linux
        '/usr/local/bin/bgpq4',     # Local installation
        '/opt/homebrew/bin/bgpq4',  # Homebrew on macOS
        'bgpq4'                     # System PATH
    ]

    DEFAULT_DOCKER_IMAGE = 'ghcr.io/bgp/bgpq4:latest'

    def __init__(self,
                 mode: BGPq4Mode = BGPq4Mode.AUTO,
                 docker_image: str = None,
                 command_timeout: float = None,
                 native_bgpq4_path: str = None,
                 aggregate_prefixes: bool = True):
        """
        Initialize bgpq4 wrapper

        Detection of the executable is deferred to the first query, so a
        run without registry-filtered peers never needs bgpq4 installed.

        Args:
            mode: Execution mode (native, docker, podman, auto)
            docker_image: Container image for docker/podman modes
            command_timeout: Per-invocation timeout; defaults to BCG_PREFIX_GENERATOR_TIMEOUT
            native_bgpq4_path: Custom path to native bgpq4 executable
            aggregate_prefixes: Pass -A so bgpq4 aggregates adjacent prefixes
        """
        self.logger = logging.getLogger(__name__)
        self.mode = mode
        self.docker_image = docker_image or self.DEFAULT_DOCKER_IMAGE
        self.command_timeout = command_timeout
        self.native_bgpq4_path = native_bgpq4_path
        self.aggregate_prefixes = aggregate_prefixes

        self.detected_mode: Optional[BGPq4Mode] = None
        self.bgpq4_command: Optional[List[str]] = None

    @classmethod
    def from_settings(cls, settings) -> 'BGPq4Wrapper':
        """Build a wrapper from a PrefixGeneratorConfig"""
        try:
            mode = BGPq4Mode(settings.mode)
        except ValueError:
            raise PrefixGeneratorError(f"Invalid bgpq4 mode: {settings.mode}",
                                       guidance="Use auto, native, docker or podman")
        return cls(mode=mode,
                   docker_image=settings.docker_image,
                   native_bgpq4_path=settings.native_path,
                   aggregate_prefixes=settings.aggregate_prefixes)

    def _detect_bgpq4_availability(self):
        """Detect available bgpq4 execution methods"""

        if self.mode == BGPq4Mode.NATIVE or self.mode == BGPq4Mode.AUTO:
            if self.native_bgpq4_path and shutil.which(self.native_bgpq4_path):
                self.detected_mode = BGPq4Mode.NATIVE
                self.bgpq4_command = [self.native_bgpq4_path]
                self.logger.info(f"Using custom native bgpq4: {self.native_bgpq4_path}")
                return

            for path in self.NATIVE_BGPQ4_PATHS:
                if shutil.which(path):
                    self.detected_mode = BGPq4Mode.NATIVE
                    self.bgpq4_command = [path]
                    self.logger.info(f"Found native bgpq4: {path}")
                    return

        if self.mode == BGPq4Mode.PODMAN or (self.mode == BGPq4Mode.AUTO and self.detected_mode is None):
            if shutil.which('podman'):
                self.detected_mode = BGPq4Mode.PODMAN
                self.bgpq4_command = ['podman', 'run', '--rm', '-i', self.docker_image]
                self.logger.info(f"Using podman with image: {self.docker_image}")
                return

        if self.mode == BGPq4Mode.DOCKER or (self.mode == BGPq4Mode.AUTO and self.detected_mode is None):
            if shutil.which('docker'):
                self.detected_mode = BGPq4Mode.DOCKER
                self.bgpq4_command = ['docker', 'run', '--rm', '-i', self.docker_image]
                self.logger.info(f"Using docker with image: {self.docker_image}")
                return

        raise PrefixGeneratorError(
            "No bgpq4 available",
            guidance="Install bgpq4 natively or ensure Docker/Podman is running",
        )

    def _ensure_command(self) -> List[str]:
        if self.bgpq4_command is None:
            self._detect_bgpq4_availability()
        return self.bgpq4_command

    def _build_bgpq4_command(self, as_set: str, family: int, irrdb: str) -> List[str]:
        """
        Build bgpq4 command for an AS-SET with security validation

        Returns:
            Complete command list for subprocess

        Raises:
            ValueError: If any argument is invalid
        """
        validated_set = validate_as_set(as_set)
        validated_host = validate_irr_host(irrdb)
        if family not in (4, 6):
            raise ValueError(f"Address family must be 4 or 6, got {family}")

        flags = f"-{'A' if self.aggregate_prefixes else ''}b{family}"

        command = self._ensure_command().copy()
        command.extend(['-h', validated_host, flags, validated_set])

        self.logger.debug(f"Built bgpq4 command for {validated_set}: {' '.join(command)}")
        return command

    def generate_prefix_set(self, as_set: str, family: int, irrdb: str,
                            timeout: float = None) -> PrefixSetResult:
        """
        Generate the prefix set of an AS-SET for one address family

        Failures are reported in the result rather than raised.
        """
        try:
            command = self._build_bgpq4_command(as_set, family, irrdb)
        except ValueError as e:
            self.logger.error(f"Invalid input for prefix-set generation: {e}")
            return PrefixSetResult(
                as_set=as_set,
                family=family,
                success=False,
                error_message=f"Input validation failed: {e}",
                bgpq4_mode=self.detected_mode.value if self.detected_mode else "unknown",
            )

        effective_timeout = timeout or self.command_timeout or get_timeout(TimeoutType.PREFIX_GENERATION)
        self.logger.info(f"Running {' '.join(command)}")

        with timeout_context(TimeoutType.PREFIX_GENERATION, f"bgpq4 {as_set} IPv{family}",
                             effective_timeout):
            result = run_with_resource_management(command=command, timeout=effective_timeout)

        if result.state == ProcessState.TIMEOUT:
            self.logger.warning(f"Timeout generating prefix set for {as_set}: {result.error_message}")
            return PrefixSetResult(
                as_set=as_set,
                family=family,
                success=False,
                execution_time=result.execution_time,
                error_message=result.error_message,
                bgpq4_mode=self.detected_mode.value,
            )

        if result.state == ProcessState.FAILED:
            error_msg = result.error_message or f"bgpq4 error (code {result.returncode}): {result.stderr.strip()}"
            self.logger.warning(f"Failed to generate prefix set for {as_set}: {error_msg}")
            return PrefixSetResult(
                as_set=as_set,
                family=family,
                success=False,
                execution_time=result.execution_time,
                error_message=error_msg,
                bgpq4_mode=self.detected_mode.value,
            )

        try:
            prefixes = parse_bird_prefix_list(result.stdout)
        except ValueError as e:
            return PrefixSetResult(
                as_set=as_set,
                family=family,
                success=False,
                execution_time=result.execution_time,
                error_message=f"Malformed bgpq4 output: {e}",
                bgpq4_mode=self.detected_mode.value,
            )

        self.logger.debug(
            f"Generated {len(prefixes)} IPv{family} prefixes for {as_set} "
            f"in {result.execution_time:.2f}s"
        )
        return PrefixSetResult(
            as_set=as_set,
            family=family,
            prefixes=prefixes,
            success=True,
            execution_time=result.execution_time,
            bgpq4_mode=self.detected_mode.value,
        )

    def get_prefix_set(self, as_set: str, family: int, irrdb: str) -> List[str]:
        """
        Prefix set of an AS-SET for one family, possibly empty

        Raises:
            PrefixGeneratorError: If bgpq4 is unavailable, fails, times out
                or prints something that is not a prefix list
        """
        result = self.generate_prefix_set(as_set, family, irrdb)
        if not result.success:
            raise PrefixGeneratorError(
                f"bgpq4 failed for {as_set} IPv{family}",
                technical_details=result.error_message,
                guidance="Check that the AS-SET exists in the IRR and that the IRR host is reachable",
            )
        return result.prefixes

    def get_status_info(self) -> Dict[str, str]:
        """Describe the detected bgpq4 setup, detecting it if needed"""
        self._ensure_command()
        return {
            'mode': self.detected_mode.value,
            'command': ' '.join(self.bgpq4_command),
            'aggregate': str(self.aggregate_prefixes),
            'timeout': str(self.command_timeout or get_timeout(TimeoutType.PREFIX_GENERATION)),
        }
