"""
Range index over a section configuration.

Answers the two questions every statement computation asks of the
configuration:

* ``section_for(code)`` -- which section does an account code belong to?
  Override codes are checked first, then ranges in section declaration
  order; the first match wins.
* ``expand(key)`` -- which codes make up a section?

The index is built once from a validated ``SectionConfiguration`` and never
mutated afterwards, so one instance is shared by every request.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, TypeVar

from bilanz_config.schema import CodeRange, SectionConfiguration, SectionDef, StatementSide
from bilanz_kernel.exceptions import UnknownSectionError

_HasCode = TypeVar("_HasCode")


class RangeIndex:
    """
    Read-only code -> section lookup.

    Contract:
        Unknown section keys raise ``UnknownSectionError``.  A known section
        without ranges expands to an empty tuple.

    Guarantees:
        For every section ``s``, ``expand(s)`` is exactly the set of
        expanded codes ``c`` with ``section_for(c) == s``.
    """

    def __init__(self, configuration: SectionConfiguration):
        self.configuration = configuration

        self._sections: MappingProxyType[str, SectionDef] = MappingProxyType(
            {section.key: section for section in configuration.sections}
        )
        self._overrides: MappingProxyType[str, str] = MappingProxyType({
            code: section.key
            for section in configuration.sections
            for code in section.overrides
        })
        self._ranges: tuple[tuple[CodeRange, str], ...] = tuple(
            (code_range, section.key)
            for section in configuration.sections
            for code_range in section.ranges
        )
        self._children: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
            key: tuple(s.key for s in configuration.sections if s.parent == key)
            for key in self._sections
        })
        self._expansions: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
            {key: self._expand(section) for key, section in self._sections.items()}
        )

    # ------------------------------------------------------------------
    # Section metadata
    # ------------------------------------------------------------------

    def section_keys(self) -> tuple[str, ...]:
        return tuple(self._sections)

    def section(self, key: str) -> SectionDef:
        try:
            return self._sections[key]
        except KeyError:
            raise UnknownSectionError(key) from None

    def label(self, key: str) -> str:
        return self.section(key).label

    def side(self, key: str) -> StatementSide:
        return self.section(key).side

    def children(self, key: str) -> tuple[str, ...]:
        self.section(key)
        return self._children[key]

    def roots(self, side: StatementSide) -> tuple[str, ...]:
        """Top-level sections of a side, in declaration order."""
        return tuple(
            s.key for s in self._sections.values() if s.side == side and s.parent is None
        )

    def keys_for_side(self, side: StatementSide) -> tuple[str, ...]:
        return tuple(s.key for s in self._sections.values() if s.side == side)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def section_for(self, code: str) -> str | None:
        """Section key for ``code``, or None when nothing matches."""
        override = self._overrides.get(code)
        if override is not None:
            return override
        for code_range, key in self._ranges:
            if code_range.contains(code):
                return key
        return None

    def expand(self, key: str) -> tuple[str, ...]:
        """Every code configured for the section, sorted."""
        self.section(key)
        return self._expansions[key]

    def classify_balances(self, balances: Iterable[_HasCode], key: str) -> list[_HasCode]:
        """The items of ``balances`` whose ``code`` classifies to ``key``."""
        self.section(key)
        return [item for item in balances if self.section_for(item.code) == key]

    def _expand(self, section: SectionDef) -> tuple[str, ...]:
        codes = {
            code
            for code_range in section.ranges
            for code in code_range.codes()
            if self.section_for(code) == section.key
        }
        codes.update(section.overrides)
        return tuple(sorted(codes))
