"""
SectionConfiguration schema.

The human-authored, reviewable mapping from SKR03 account codes to the
sections of the HGB balance sheet (§ 266 HGB) and profit and loss
statement (§ 275 HGB).  YAML files are parsed into these frozen types by
the loader and checked by the validator before anything uses them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class StatementSide(str, Enum):
    """Statement side a section belongs to."""

    AKTIVA = "aktiva"
    PASSIVA = "passiva"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_profit_and_loss(self) -> bool:
        return self in (StatementSide.REVENUE, StatementSide.EXPENSE)


# ---------------------------------------------------------------------------
# Code ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeRange:
    """
    Inclusive interval of account codes, e.g. ``0100-0499``.

    Codes are compared as integers of the range's width: ``0800`` falls in
    ``0000-0999`` but ``800`` and ``08000`` do not.  Expansion emits every
    code zero-padded to that width.
    """

    start: str
    end: str

    @property
    def width(self) -> int:
        return len(self.start)

    def contains(self, code: str) -> bool:
        if not code.isdigit() or len(code) != self.width:
            return False
        return int(self.start) <= int(code) <= int(self.end)

    def codes(self) -> Iterator[str]:
        for value in range(int(self.start), int(self.end) + 1):
            yield str(value).zfill(self.width)

    def overlaps(self, other: CodeRange) -> bool:
        if self.width != other.width:
            return False
        return max(int(self.start), int(other.start)) <= min(int(self.end), int(other.end))

    def __str__(self) -> str:
        if self.start == self.end:
            return self.start
        return f"{self.start}-{self.end}"


# ---------------------------------------------------------------------------
# Sections and presentation rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionDef:
    """A statement section (Bilanzposten / GuV-Posten)."""

    key: str
    label: str
    side: StatementSide
    ranges: tuple[CodeRange, ...] = ()
    overrides: tuple[str, ...] = ()  # single codes, checked before any range
    parent: str | None = None


@dataclass(frozen=True)
class PresentationRuleDef:
    """Asset-side and liability-side targets of a bidirectional rule."""

    rule: str
    asset_section: str
    liability_section: str
    description: str = ""


@dataclass(frozen=True)
class SectionConfiguration:
    """
    Root artifact: every section in declaration order.

    Declaration order is the tie-break order for range matching and the
    display order of the statement.
    """

    name: str
    version: int
    sections: tuple[SectionDef, ...]
    presentation_rules: tuple[PresentationRuleDef, ...] = ()
    net_income_section: str = "eigenkapital"
    checksum: str = ""

    def section_keys(self) -> tuple[str, ...]:
        return tuple(section.key for section in self.sections)

    def get_section(self, key: str) -> SectionDef | None:
        for section in self.sections:
            if section.key == key:
                return section
        return None

    def get_rule(self, rule: str) -> PresentationRuleDef | None:
        for rule_def in self.presentation_rules:
            if rule_def.rule == rule:
                return rule_def
        return None
