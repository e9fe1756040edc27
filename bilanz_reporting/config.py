"""
Reporting configuration.

Runtime knobs of statement generation.  The section mapping itself lives
in ``bilanz_config``; this module only holds thresholds, labels and
formatting.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from bilanz_kernel.logging_config import get_logger

logger = get_logger("reporting.config")


@dataclass(frozen=True)
class ReportingConfig:
    """
    Configuration schema for statement generation.

    Thresholds are Decimal and compared against full-precision balances.
    """

    # Accounts below this absolute balance are not reported
    materiality_threshold: Decimal = Decimal("0.01")

    # SKR03 class 9: opening/closing carry accounts, never reported
    closing_account_prefix: str = "9"

    # |aktiva - passiva| must stay below this to count as balanced
    balance_tolerance: Decimal = Decimal("0.01")

    profit_label: str = "Jahresüberschuss"
    loss_label: str = "Jahresfehlbetrag"

    # Code of the synthetic net income line injected into equity
    net_income_code: str = "net_income"

    # Rounding precision at output time
    display_precision: int = 2

    # Schlussbilanzkonto used by the fiscal-year closing entry
    closing_account_code: str = "9000"
    closing_account_name: str = "Saldenvorträge, Sachkonten"

    # Equity accounts receiving the prior year's result in the opening entry
    profit_carryforward_code: str = "0860"
    profit_carryforward_name: str = "Gewinnvortrag vor Verwendung"
    loss_carryforward_code: str = "0868"
    loss_carryforward_name: str = "Verlustvortrag vor Verwendung"

    def __post_init__(self):
        if self.display_precision < 0:
            raise ValueError("display_precision cannot be negative")
        if self.materiality_threshold < 0:
            raise ValueError("materiality_threshold cannot be negative")
        if self.balance_tolerance <= 0:
            raise ValueError("balance_tolerance must be positive")
        if not self.closing_account_prefix:
            raise ValueError("closing_account_prefix cannot be empty")
        if not self.closing_account_code.startswith(self.closing_account_prefix):
            raise ValueError("closing_account_code must use the closing_account_prefix")
        for code in (self.profit_carryforward_code, self.loss_carryforward_code):
            if code.startswith(self.closing_account_prefix):
                raise ValueError(f"Carryforward account {code} would never be reported")

    @property
    def display_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.display_precision)

    def net_income_label(self, net_income: Decimal) -> str:
        return self.profit_label if net_income >= 0 else self.loss_label

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a parsed YAML block)."""
        values = dict(data)
        for key in ("materiality_threshold", "balance_tolerance"):
            if key in values:
                values[key] = Decimal(str(values[key]))
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(values.keys())},
        )
        return cls(**values)
