"""
Section configuration loader (``bilanz_config.loader``).

Responsibility
--------------
Loads a YAML section configuration file and parses it into typed
``bilanz_config.schema`` dataclasses.  Validation is a separate step
(``bilanz_config.validator``); ``bilanz_config.load_section_configuration``
runs both.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown side tag  -> ``ValueError``.

YAML layout
-----------
Sections and presentation rules are YAML *lists*, not mappings, so the
declaration order is explicit and a duplicated key survives parsing and
is reported by the validator instead of being silently overwritten::

    name: skr03_hgb
    version: 1
    net_income_section: eigenkapital
    sections:
      - key: sachanlagen
        label: "II. Sachanlagen"
        side: aktiva
        parent: anlagevermoegen
        ranges: ["0100-0499"]
    presentation_rules:
      - rule: bank_bidirectional
        asset_section: kassenbestand
        liability_section: verbindlichkeiten_kreditinstitute
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from bilanz_config.schema import (
    CodeRange,
    PresentationRuleDef,
    SectionConfiguration,
    SectionDef,
    StatementSide,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_code(value: Any) -> str:
    """
    Normalize a code from YAML.

    Unquoted YAML integers lose their leading zeros, so codes must be
    quoted; integers are accepted but only round-trip for codes without a
    leading zero.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid account code: {value!r}")
    return str(value).strip()


def parse_code_range(value: Any) -> CodeRange:
    """
    Parse ``"0100-0499"``, ``"0800"`` or ``{start: .., end: ..}``.

    Shape problems (non-digit bounds, width mismatch, start > end) are left
    to the validator so every error of a file is reported at once.
    """
    if isinstance(value, dict):
        return CodeRange(start=parse_code(value["start"]), end=parse_code(value["end"]))
    text = parse_code(value)
    if "-" in text:
        start, _, end = text.partition("-")
        return CodeRange(start=start.strip(), end=end.strip())
    return CodeRange(start=text, end=text)


def parse_side(value: Any) -> StatementSide:
    try:
        return StatementSide(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(side.value for side in StatementSide)
        raise ValueError(f"Unknown statement side {value!r} (expected one of: {valid})")


def parse_section(data: dict[str, Any]) -> SectionDef:
    """Parse a ``SectionDef`` from a dict."""
    return SectionDef(
        key=str(data["key"]),
        label=str(data.get("label", data["key"])),
        side=parse_side(data["side"]),
        ranges=tuple(parse_code_range(r) for r in data.get("ranges") or ()),
        overrides=tuple(parse_code(c) for c in data.get("overrides") or ()),
        parent=str(data["parent"]) if data.get("parent") else None,
    )


def parse_presentation_rule(data: dict[str, Any]) -> PresentationRuleDef:
    """Parse a ``PresentationRuleDef`` from a dict."""
    return PresentationRuleDef(
        rule=str(data["rule"]),
        asset_section=str(data["asset_section"]),
        liability_section=str(data["liability_section"]),
        description=str(data.get("description", "")),
    )


def parse_configuration(data: dict[str, Any]) -> SectionConfiguration:
    """
    Parse a complete ``SectionConfiguration``.

    Raises:
        KeyError: if ``name`` or ``sections`` is missing.
        ValueError: if a side tag is unknown.
    """
    return SectionConfiguration(
        name=str(data["name"]),
        version=int(data.get("version", 1)),
        sections=tuple(parse_section(s) for s in data["sections"]),
        presentation_rules=tuple(
            parse_presentation_rule(r) for r in data.get("presentation_rules") or ()
        ),
        net_income_section=str(data.get("net_income_section", "eigenkapital")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 checksum of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
