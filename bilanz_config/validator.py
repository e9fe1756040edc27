"""
Section configuration validator (``bilanz_config.validator``).

Responsibility
--------------
Validates a ``SectionConfiguration`` at load time so malformed
configuration fails at process start, never halfway through a statement
request.

Invariants enforced
-------------------
* Section keys are unique.
* Parents exist, the parent chain is acyclic and a child stays on its
  parent's statement side.
* Ranges have digit-only bounds of equal width with start <= end.
* No two configured ranges overlap (range matching would otherwise depend
  on declaration order alone).
* An override code is declared at most once.
* Every bidirectional presentation rule is defined exactly once, with an
  asset section on the Aktiva side and a liability section on the Passiva
  side.
* The net income section exists on the Passiva side.

Failure modes
-------------
* Errors  -> the configuration MUST NOT be used.
* Warnings (e.g. sections without ranges or overrides)  -> usable, review.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bilanz_config.schema import SectionConfiguration, StatementSide
from bilanz_kernel.models.account import BIDIRECTIONAL_RULES, PresentationRule


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: SectionConfiguration) -> ConfigValidationResult:
    """
    Validate a section configuration.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
    """
    result = ConfigValidationResult()

    _validate_section_uniqueness(config, result)
    _validate_parents(config, result)
    _validate_ranges(config, result)
    _validate_range_overlaps(config, result)
    _validate_overrides(config, result)
    _validate_presentation_rules(config, result)
    _validate_net_income_section(config, result)

    return result


def _validate_section_uniqueness(
    config: SectionConfiguration, result: ConfigValidationResult
) -> None:
    seen: set[str] = set()
    for section in config.sections:
        if section.key in seen:
            result.add_error(f"Duplicate section key: {section.key}")
        seen.add(section.key)


def _validate_parents(config: SectionConfiguration, result: ConfigValidationResult) -> None:
    """Parents must exist, share the child's side and never loop."""
    by_key = {section.key: section for section in config.sections}

    for section in config.sections:
        if section.parent is None:
            continue
        parent = by_key.get(section.parent)
        if parent is None:
            result.add_error(
                f"Section '{section.key}' references unknown parent '{section.parent}'"
            )
        elif parent.side != section.side:
            result.add_error(
                f"Section '{section.key}' ({section.side.value}) cannot nest under "
                f"'{parent.key}' ({parent.side.value})"
            )

    reported: set[str] = set()
    for section in config.sections:
        chain = [section.key]
        current = section.parent
        while current is not None and current in by_key:
            if current in chain:
                cycle = chain[chain.index(current):] + [current]
                if not reported.intersection(cycle):
                    result.add_error(f"Cyclic section parents: {' -> '.join(cycle)}")
                    reported.update(cycle)
                break
            chain.append(current)
            current = by_key[current].parent


def _validate_ranges(config: SectionConfiguration, result: ConfigValidationResult) -> None:
    parents = {section.parent for section in config.sections if section.parent}
    for section in config.sections:
        if not section.ranges and not section.overrides and section.key not in parents:
            result.add_warning(f"Section '{section.key}' has no ranges or overrides")
        for code_range in section.ranges:
            if not (code_range.start.isdigit() and code_range.end.isdigit()):
                result.add_error(
                    f"Section '{section.key}' range {code_range} must use digit-only codes"
                )
            elif len(code_range.start) != len(code_range.end):
                result.add_error(
                    f"Section '{section.key}' range {code_range} mixes code widths"
                )
            elif int(code_range.start) > int(code_range.end):
                result.add_error(
                    f"Section '{section.key}' range {code_range} starts after it ends"
                )


def _validate_range_overlaps(
    config: SectionConfiguration, result: ConfigValidationResult
) -> None:
    declared = [
        (section.key, code_range)
        for section in config.sections
        for code_range in section.ranges
        if code_range.start.isdigit()
        and code_range.end.isdigit()
        and len(code_range.start) == len(code_range.end)
    ]
    for i, (key_a, range_a) in enumerate(declared):
        for key_b, range_b in declared[i + 1:]:
            if range_a.overlaps(range_b):
                result.add_error(
                    f"Range {range_a} of '{key_a}' overlaps range {range_b} of '{key_b}'"
                )


def _validate_overrides(config: SectionConfiguration, result: ConfigValidationResult) -> None:
    owner: dict[str, str] = {}
    for section in config.sections:
        for code in section.overrides:
            if not code.isdigit():
                result.add_error(
                    f"Section '{section.key}' override {code!r} must be a digit-only code"
                )
            if code in owner:
                result.add_error(
                    f"Override code {code} declared by both '{owner[code]}' and '{section.key}'"
                )
            else:
                owner[code] = section.key


def _validate_presentation_rules(
    config: SectionConfiguration, result: ConfigValidationResult
) -> None:
    by_key = {section.key: section for section in config.sections}
    defined: set[str] = set()

    for rule_def in config.presentation_rules:
        try:
            rule = PresentationRule(rule_def.rule)
        except ValueError:
            result.add_error(f"Unknown presentation rule: {rule_def.rule}")
            continue
        if rule not in BIDIRECTIONAL_RULES:
            result.add_error(
                f"Presentation rule '{rule.value}' is not bidirectional and takes no sections"
            )
            continue
        if rule.value in defined:
            result.add_error(f"Presentation rule '{rule.value}' defined more than once")
        defined.add(rule.value)

        for attr, side in (
            ("asset_section", StatementSide.AKTIVA),
            ("liability_section", StatementSide.PASSIVA),
        ):
            key = getattr(rule_def, attr)
            section = by_key.get(key)
            if section is None:
                result.add_error(
                    f"Presentation rule '{rule.value}' {attr} references unknown section '{key}'"
                )
            elif section.side != side:
                result.add_error(
                    f"Presentation rule '{rule.value}' {attr} '{key}' must be on the "
                    f"{side.value} side"
                )

    for rule in sorted(BIDIRECTIONAL_RULES, key=lambda r: r.value):
        if rule.value not in defined:
            result.add_error(f"Bidirectional presentation rule '{rule.value}' is not defined")


def _validate_net_income_section(
    config: SectionConfiguration, result: ConfigValidationResult
) -> None:
    section = config.get_section(config.net_income_section)
    if section is None:
        result.add_error(f"Net income section '{config.net_income_section}' is not defined")
    elif section.side != StatementSide.PASSIVA:
        result.add_error(
            f"Net income section '{config.net_income_section}' must be on the passiva side"
        )
