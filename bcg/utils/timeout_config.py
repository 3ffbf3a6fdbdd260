"""
Centralized timeout configuration for bcg

Every external call made during a run (registry query, prefix-set
generation, daemon control) is blocking and bounded by one of these
timeouts. There is no retry: an expired timeout is fatal to the run.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict


class TimeoutType(Enum):
    """Types of operations that can timeout"""

    REGISTRY_QUERY = "registry_query"
    PREFIX_GENERATION = "prefix_generation"
    DAEMON_CONTROL = "daemon_control"


@dataclass
class TimeoutConfig:
    """Configuration for a specific timeout type"""

    default: float
    min_value: float
    max_value: float
    env_var: str
    description: str

    def get_value(self) -> float:
        """Get the configured timeout value from environment or default"""
        try:
            value = float(os.environ.get(self.env_var, self.default))
            if value < self.min_value:
                logging.warning(
                    f"Timeout {self.env_var}={value} below minimum "
                    f"{self.min_value}, using minimum"
                )
                return self.min_value
            if value > self.max_value:
                logging.warning(
                    f"Timeout {self.env_var}={value} above maximum "
                    f"{self.max_value}, using maximum"
                )
                return self.max_value
            return value
        except (ValueError, TypeError):
            logging.warning(
                f"Invalid timeout value for {self.env_var}, using "
                f"default {self.default}"
            )
            return self.default


class TimeoutManager:
    """Centralized timeout management for bcg"""

    _TIMEOUT_CONFIGS = {
        TimeoutType.REGISTRY_QUERY: TimeoutConfig(
            default=5.0,
            min_value=1.0,
            max_value=60.0,
            env_var="BCG_REGISTRY_TIMEOUT",
            description="Timeout for a single PeeringDB query",
        ),
        TimeoutType.PREFIX_GENERATION: TimeoutConfig(
            default=30.0,
            min_value=5.0,
            max_value=300.0,
            env_var="BCG_PREFIX_GENERATOR_TIMEOUT",
            description="Timeout for one bgpq4 invocation",
        ),
        TimeoutType.DAEMON_CONTROL: TimeoutConfig(
            default=10.0,
            min_value=1.0,
            max_value=120.0,
            env_var="BCG_DAEMON_CONTROL_TIMEOUT",
            description="Timeout for the daemon control socket",
        ),
    }

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._cached_values: Dict[TimeoutType, float] = {}

    def get_timeout(self, timeout_type: TimeoutType) -> float:
        """
        Get timeout value for specified operation type

        Args:
            timeout_type: Type of operation needing timeout

        Returns:
            Timeout value in seconds
        """
        if timeout_type not in self._cached_values:
            config = self._TIMEOUT_CONFIGS[timeout_type]
            self._cached_values[timeout_type] = config.get_value()
            self.logger.debug(
                f"Loaded timeout {timeout_type.value}: {self._cached_values[timeout_type]}s"
            )

        return self._cached_values[timeout_type]

    def get_all_timeouts(self) -> Dict[str, float]:
        """Get all configured timeout values for monitoring/debugging"""
        return {
            timeout_type.value: self.get_timeout(timeout_type)
            for timeout_type in TimeoutType
        }

    def reset(self):
        """Forget cached values so environment changes are picked up"""
        self._cached_values.clear()


class TimeoutContext:
    """Context manager that logs how much of a timeout budget an operation used"""

    def __init__(self, timeout_type: TimeoutType, operation_name: str = None,
                 custom_timeout: float = None):
        self.timeout_type = timeout_type
        self.operation_name = operation_name or timeout_type.value
        self.custom_timeout = custom_timeout
        self.logger = logging.getLogger(__name__)
        self.start_time = None
        self.timeout_value = None

    def __enter__(self):
        self.start_time = time.time()
        self.timeout_value = self.custom_timeout or timeout_manager.get_timeout(self.timeout_type)
        self.logger.debug(f"Starting {self.operation_name} with {self.timeout_value}s timeout")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        # Warn if using >80% of timeout
        if elapsed > self.timeout_value * 0.8:
            self.logger.warning(
                f"{self.operation_name} took {elapsed:.2f}s (timeout: {self.timeout_value}s)"
            )
        else:
            self.logger.debug(f"{self.operation_name} completed in {elapsed:.2f}s")
        return False

    @property
    def timeout(self) -> float:
        return self.timeout_value or timeout_manager.get_timeout(self.timeout_type)


# Global timeout manager instance
timeout_manager = TimeoutManager()


def get_timeout(timeout_type: TimeoutType) -> float:
    """Get timeout value for operation type"""
    return timeout_manager.get_timeout(timeout_type)


def timeout_context(timeout_type: TimeoutType, operation_name: str = None,
                    custom_timeout: float = None) -> TimeoutContext:
    """Create timeout context for operation"""
    return TimeoutContext(timeout_type, operation_name, custom_timeout)
