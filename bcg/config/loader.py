"""
Peer document loader

Reads the declarative document from YAML, TOML or JSON, checks its shape
against bcg.config.schema and returns the dataclass model. The format is
chosen by file extension.
"""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from bcg.config.schema import GlobalSchema
from bcg.models import GlobalConfig
from bcg.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yml", ".yaml")
TOML_SUFFIXES = (".toml",)
JSON_SUFFIXES = (".json",)


def _parse(path: Path, text: str) -> Any:
    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        return yaml.safe_load(text)
    if suffix in TOML_SUFFIXES:
        return tomllib.loads(text)
    if suffix in JSON_SUFFIXES:
        return json.loads(text)
    raise ConfigurationError(
        f"Unknown configuration file type {suffix or '(none)'}: {path}",
        guidance="Use a .yml, .yaml, .toml or .json file",
    )


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        lines.append(f"{location}: {item['msg']}")
    return "; ".join(lines)


def load_document(data: Dict[str, Any]) -> GlobalConfig:
    """Build the model from an already parsed document"""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration document must be a mapping at the top level")
    try:
        schema = GlobalSchema.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration document does not match the expected schema",
            technical_details=_format_validation_error(e),
            guidance="Run 'bcg check' with --verbose to see every offending key",
        )
    return schema.to_model()


def load_config(path: Union[str, Path]) -> GlobalConfig:
    """
    Load the peer document from disk.

    Args:
        path: YAML, TOML or JSON file

    Returns:
        GlobalConfig with peers in document order

    Raises:
        ConfigurationError: missing file, parse failure or schema mismatch
    """
    path = Path(path)
    logger.debug(f"Loading config from {path}")

    try:
        text = path.read_text()
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}",
                                 guidance="Pass the document with -c/--config")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}",
                                 technical_details=str(e))

    try:
        data = _parse(path, text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot parse configuration file {path}",
                                 technical_details=str(e))

    config = load_document(data)
    logger.info(f"Loaded {len(config.peers)} peers from {path}")
    return config
