"""
Presentation rule resolution.

Some SKR03 accounts cannot be placed on one statement side statically: a
bank account with a credit saldo is an overdraft, a customer account with
a credit saldo is a liability (§ 246 (2) HGB forbids netting them).  Their
presentation rule names an asset-side and a liability-side section; the
direction of the saldo at computation time decides which one applies and
the magnitude is carried over.

Static rules and untagged accounts take the section of their code range.
``needs_review`` accounts, and accounts no range covers, are routed to
the unclassified bucket instead of being dropped or defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from bilanz_config.schema import StatementSide
from bilanz_kernel.logging_config import get_logger
from bilanz_kernel.models.account import BIDIRECTIONAL_RULES, PresentationRule
from bilanz_reporting.models import AccountBalance
from bilanz_reporting.range_index import RangeIndex

logger = get_logger("reporting.presentation")

REASON_NEEDS_REVIEW = "needs_review"
REASON_NO_MATCHING_SECTION = "no_matching_section"

_STATIC_SIDES: dict[PresentationRule, tuple[StatementSide, ...]] = {
    PresentationRule.ASSET_ONLY: (StatementSide.AKTIVA,),
    PresentationRule.LIABILITY_ONLY: (StatementSide.PASSIVA,),
    PresentationRule.EQUITY_ONLY: (StatementSide.PASSIVA,),
    PresentationRule.PNL_ONLY: (StatementSide.REVENUE, StatementSide.EXPENSE),
}


@dataclass(frozen=True)
class Placement:
    """Where an account balance goes, and with which amount."""

    section_key: str | None
    balance: Decimal
    reason: str | None = None

    @property
    def is_classified(self) -> bool:
        return self.section_key is not None


def parse_rule(value: str | PresentationRule | None) -> PresentationRule | None:
    """
    Read a stored tag.  Unrecognized tags are treated as ``needs_review`` so
    they surface in the unclassified bucket.
    """
    if value is None or isinstance(value, PresentationRule):
        return value
    try:
        return PresentationRule(value)
    except ValueError:
        logger.warning("unknown_presentation_rule", extra={"presentation_rule": value})
        return PresentationRule.NEEDS_REVIEW


class PresentationRuleResolver:
    """
    Decides the section of one account balance.

    Built once per configuration, stateless afterwards.
    """

    def __init__(self, index: RangeIndex):
        self.index = index
        self._rules = {
            rule_def.rule: rule_def for rule_def in index.configuration.presentation_rules
        }

    def resolve(self, balance: AccountBalance) -> Placement:
        rule = parse_rule(balance.presentation_rule)

        if rule == PresentationRule.NEEDS_REVIEW:
            return Placement(None, balance.balance, REASON_NEEDS_REVIEW)

        if rule in BIDIRECTIONAL_RULES:
            return self._resolve_bidirectional(rule, balance)

        section_key = self.index.section_for(balance.code)
        if section_key is None:
            return Placement(None, balance.balance, REASON_NO_MATCHING_SECTION)

        if rule in _STATIC_SIDES and self.index.side(section_key) not in _STATIC_SIDES[rule]:
            logger.warning(
                "presentation_rule_side_mismatch",
                extra={
                    "account_code": balance.code,
                    "presentation_rule": rule.value,
                    "section_key": section_key,
                },
            )
        return Placement(section_key, balance.balance)

    def _resolve_bidirectional(
        self, rule: PresentationRule, balance: AccountBalance
    ) -> Placement:
        rule_def = self._rules.get(rule.value)
        if rule_def is None:
            # Validated configurations define every bidirectional rule
            return Placement(None, balance.balance, REASON_NEEDS_REVIEW)
        if balance.saldo >= 0:
            section_key = rule_def.asset_section
        else:
            section_key = rule_def.liability_section
        return Placement(section_key, abs(balance.balance))
