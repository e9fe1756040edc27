"""
bilanz_config -- section configuration for statement generation.

Responsibility:
    Provides the section configuration (SKR03 code ranges -> HGB statement
    sections) through ``load_section_configuration()`` and the shipped
    default through ``get_default_configuration()``.

Architecture position:
    Configuration.  Sits above ``bilanz_kernel`` and below
    ``bilanz_reporting``.  The kernel never imports from here.

Invariants enforced:
    - Fail fast: a configuration is parsed AND validated before it is
      returned.  Malformed configuration raises
      ``InvalidConfigurationError`` at load time, never at request time.
    - The returned ``SectionConfiguration`` is frozen; it is built once and
      shared read-only.

Audit relevance:
    Every successful load emits a ``section_configuration_loaded`` log entry
    with the configuration name, version and checksum, tying each
    statement back to the exact mapping that classified it.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from bilanz_config.loader import load_yaml_file, parse_configuration
from bilanz_config.schema import (
    CodeRange,
    PresentationRuleDef,
    SectionConfiguration,
    SectionDef,
    StatementSide,
)
from bilanz_config.validator import ConfigValidationResult, validate_configuration
from bilanz_kernel.exceptions import InvalidConfigurationError
from bilanz_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIGURATION = "skr03_hgb"

__all__ = [
    "CodeRange",
    "ConfigValidationResult",
    "PresentationRuleDef",
    "SectionConfiguration",
    "SectionDef",
    "StatementSide",
    "build_configuration",
    "get_default_configuration",
    "load_section_configuration",
    "validate_configuration",
]


def build_configuration(data: dict, source: str = "<dict>") -> SectionConfiguration:
    """
    Parse and validate a configuration given as a plain dict.

    Raises:
        InvalidConfigurationError: On missing keys, unknown side tags or any
            validation error.  All validation errors are reported together.
    """
    try:
        config = parse_configuration(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidConfigurationError(source, [f"Cannot parse configuration: {exc}"]) from exc

    validation = validate_configuration(config)
    for warning in validation.warnings:
        logger.debug(
            "section_configuration_warning",
            extra={"source": source, "warning": warning},
        )
    if not validation.is_valid:
        logger.error(
            "section_configuration_invalid",
            extra={"source": source, "errors": validation.errors},
        )
        raise InvalidConfigurationError(source, validation.errors)

    logger.info(
        "section_configuration_loaded",
        extra={
            "source": source,
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "section_count": len(config.sections),
        },
    )
    return config


def load_section_configuration(path: Path | str) -> SectionConfiguration:
    """
    Load, parse and validate a YAML section configuration.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        InvalidConfigurationError: If the content is malformed.
    """
    path = Path(path)
    return build_configuration(load_yaml_file(path), source=str(path))


@lru_cache(maxsize=None)
def get_default_configuration() -> SectionConfiguration:
    """The shipped SKR03 / HGB configuration, loaded once per process."""
    return load_section_configuration(_DEFAULT_CONFIG_DIR / f"{DEFAULT_CONFIGURATION}.yaml")
