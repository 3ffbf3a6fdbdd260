#!/usr/bin/env python3
"""
Application Settings for bcg

Runtime settings (where to find the registry, bgpq4, VRP data, where to
write artifacts) are kept apart from the peer document. They come from:
- Built-in defaults
- An optional JSON settings file
- BCG_* environment variables (highest precedence)
"""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional

from bcg.utils.error_handling import ConfigurationError


def _env_bool(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")


@dataclass
class RegistryConfig:
    """PeeringDB registry configuration"""

    url: str = "https://peeringdb.com/api/net"
    api_key: Optional[str] = None
    user_agent: str = "bcg"

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("BCG_PEERINGDB_URL"):
            self.url = os.getenv("BCG_PEERINGDB_URL")
        if os.getenv("BCG_PEERINGDB_API_KEY"):
            self.api_key = os.getenv("BCG_PEERINGDB_API_KEY")


@dataclass
class PrefixGeneratorConfig:
    """bgpq4 prefix-set generator configuration"""

    mode: str = "auto"
    native_path: Optional[str] = None
    docker_image: str = "ghcr.io/bgp/bgpq4:latest"
    aggregate_prefixes: bool = True

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("BCG_BGPQ4_MODE"):
            self.mode = os.getenv("BCG_BGPQ4_MODE")
        if os.getenv("BCG_BGPQ4_PATH"):
            self.native_path = os.getenv("BCG_BGPQ4_PATH")
        if os.getenv("BCG_BGPQ4_DOCKER_IMAGE"):
            self.docker_image = os.getenv("BCG_BGPQ4_DOCKER_IMAGE")
        aggregate = _env_bool("BCG_BGPQ4_AGGREGATE")
        if aggregate is not None:
            self.aggregate_prefixes = aggregate


@dataclass
class RPKIConfig:
    """Local VRP table used by the RPKI validation collaborator"""

    vrp_path: Optional[str] = None
    max_vrp_age_hours: int = 24

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("BCG_RPKI_VRP_FILE"):
            self.vrp_path = os.getenv("BCG_RPKI_VRP_FILE")
        if os.getenv("BCG_RPKI_MAX_VRP_AGE"):
            try:
                self.max_vrp_age_hours = int(os.getenv("BCG_RPKI_MAX_VRP_AGE"))
            except ValueError:
                pass


@dataclass
class OutputConfig:
    """Artifact output and daemon control configuration"""

    output_dir: str = "/etc/bird/"
    control_socket: str = "/run/bird/bird.ctl"
    workers: int = 1

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("BCG_OUTPUT_DIR"):
            self.output_dir = os.getenv("BCG_OUTPUT_DIR")
        if os.getenv("BCG_CONTROL_SOCKET"):
            self.control_socket = os.getenv("BCG_CONTROL_SOCKET")
        if os.getenv("BCG_WORKERS"):
            try:
                self.workers = int(os.getenv("BCG_WORKERS"))
            except ValueError:
                pass


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: str = "INFO"
    log_to_file: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("BCG_LOG_LEVEL"):
            self.level = os.getenv("BCG_LOG_LEVEL").upper()
        if os.getenv("BCG_LOG_FILE"):
            self.log_file = os.getenv("BCG_LOG_FILE")
            self.log_to_file = True


@dataclass
class BCGSettings:
    """Main settings container"""

    registry: RegistryConfig = None
    bgpq4: PrefixGeneratorConfig = None
    rpki: RPKIConfig = None
    output: OutputConfig = None
    logging: LoggingConfig = None

    def __post_init__(self):
        """Initialize subconfigs if not provided"""
        if self.registry is None:
            self.registry = RegistryConfig()
        if self.bgpq4 is None:
            self.bgpq4 = PrefixGeneratorConfig()
        if self.rpki is None:
            self.rpki = RPKIConfig()
        if self.output is None:
            self.output = OutputConfig()
        if self.logging is None:
            self.logging = LoggingConfig()


class ConfigManager:
    """Settings management for bcg"""

    DEFAULT_CONFIG_PATHS = [
        Path.home() / ".config/bcg/config.json",
        Path("/etc/bcg/settings.json"),
        Path("./settings.json"),
    ]

    SECTIONS = {
        "registry": RegistryConfig,
        "bgpq4": PrefixGeneratorConfig,
        "rpki": RPKIConfig,
        "output": OutputConfig,
        "logging": LoggingConfig,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings manager

        Args:
            config_path: Optional path to a JSON settings file
        """
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path) if config_path else None
        self.config = BCGSettings()
        self._load_config()

    def _load_config(self):
        """Load settings from file; environment overrides apply in __post_init__"""
        config_file = self._find_config_file()
        if config_file:
            self._load_from_file(config_file)
            self.logger.info(f"Loaded settings from {config_file}")

    def _find_config_file(self) -> Optional[Path]:
        """Find settings file in default locations"""
        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(
                    f"Settings file does not exist: {self.config_path}",
                    guidance="Check the --settings path",
                )
            return self.config_path

        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path

        return None

    def _load_from_file(self, config_path: Path):
        """Load settings from JSON file"""
        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read settings file {config_path}",
                technical_details=str(e),
            )
        self._load_from_dict(data)

    def _load_from_dict(self, data: dict):
        """Replace settings sections present in data"""
        for section, section_cls in self.SECTIONS.items():
            if section in data:
                try:
                    setattr(self.config, section, section_cls(**data[section]))
                except TypeError as e:
                    raise ConfigurationError(
                        f"Invalid '{section}' section in settings",
                        technical_details=str(e),
                    )

    def get_config(self) -> BCGSettings:
        """Get current settings"""
        return self.config

    def validate_config(self) -> List[str]:
        """
        Validate settings and return list of issues

        Returns:
            List of validation error messages
        """
        issues = []

        if not self.config.registry.url.startswith(("http://", "https://")):
            issues.append(f"Registry URL must be http(s): {self.config.registry.url}")

        if self.config.bgpq4.mode not in ("auto", "native", "docker", "podman"):
            issues.append(f"Invalid bgpq4 mode: {self.config.bgpq4.mode}")

        if self.config.output.workers < 1:
            issues.append(f"Worker count must be at least 1, got {self.config.output.workers}")

        if self.config.rpki.vrp_path and not Path(self.config.rpki.vrp_path).exists():
            issues.append(f"VRP file not found: {self.config.rpki.vrp_path}")

        if self.config.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            issues.append(f"Invalid log level: {self.config.logging.level}")

        return issues

    def to_dict(self) -> dict:
        """Settings as a plain dictionary, with the API key masked"""
        data = {section: asdict(getattr(self.config, section)) for section in self.SECTIONS}
        if data["registry"]["api_key"]:
            data["registry"]["api_key"] = "********"
        return data


_config_manager: Optional[ConfigManager] = None
_config_manager_lock = threading.RLock()


def get_config_manager(config_path: Optional[Path] = None) -> ConfigManager:
    """Get global settings manager instance"""
    global _config_manager

    if _config_manager is not None:
        return _config_manager

    with _config_manager_lock:
        if _config_manager is None:
            _config_manager = ConfigManager(config_path)
        return _config_manager


def get_config() -> BCGSettings:
    """Get current settings"""
    return get_config_manager().get_config()


def reset_config_manager():
    """Drop the cached settings manager (tests and repeated CLI invocations)"""
    global _config_manager
    with _config_manager_lock:
        _config_manager = None
