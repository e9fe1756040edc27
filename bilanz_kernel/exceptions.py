"""
Typed exception hierarchy for bilanz.

Every error has a typed class (catch by type, not message), a ``code``
attribute (machine-readable) and structured data on the instance.

    BilanzError (base)
    |
    +-- ConfigurationError
    |   +-- UnknownSectionError
    |   +-- InvalidConfigurationError
    |
    +-- LedgerDataError
    |   +-- UnknownAccountError
    |
    +-- FiscalYearError
    |   +-- FiscalYearNotFoundError
    |   +-- FiscalYearClosedError
    |   +-- UnbalancedStatementError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

Configuration errors are raised and must never be read as an empty
section.  Request-time errors are turned into failure results by
``bilanz_reporting.service.StatementService``.
"""


class BilanzError(Exception):
    """
    Base exception for all bilanz errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "BILANZ_ERROR"


# Configuration-related exceptions


class ConfigurationError(BilanzError):
    """Base exception for section configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class UnknownSectionError(ConfigurationError):
    """A section key was requested that the configuration does not define."""

    code: str = "UNKNOWN_SECTION"

    def __init__(self, section_key: str):
        self.section_key = section_key
        super().__init__(f"Unknown statement section: {section_key}")


class InvalidConfigurationError(ConfigurationError):
    """A section configuration failed load-time validation."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, source: str, errors: list[str]):
        self.source = source
        self.errors = list(errors)
        super().__init__(
            f"Invalid section configuration {source}: " + "; ".join(self.errors)
        )


# Ledger data exceptions


class LedgerDataError(BilanzError):
    """Base exception for inconsistent ledger input."""

    code: str = "LEDGER_DATA_ERROR"


class UnknownAccountError(LedgerDataError):
    """Posted activity references an account outside the chart of accounts."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Posted activity for unknown account: {account_code}")


# Fiscal year exceptions


class FiscalYearError(BilanzError):
    """Base exception for fiscal-year lifecycle errors."""

    code: str = "FISCAL_YEAR_ERROR"


class FiscalYearNotFoundError(FiscalYearError):
    """Fiscal year with given ID was not found."""

    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_id: str):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year not found: {fiscal_year_id}")


class FiscalYearClosedError(FiscalYearError):
    """Fiscal year is already closed."""

    code: str = "FISCAL_YEAR_CLOSED"

    def __init__(self, fiscal_year_id: str, year: int):
        self.fiscal_year_id = fiscal_year_id
        self.year = year
        super().__init__(f"Fiscal year {year} is already closed")


class UnbalancedStatementError(FiscalYearError):
    """Aktiva and Passiva totals differ beyond the balance tolerance."""

    code: str = "UNBALANCED_STATEMENT"

    def __init__(self, aktiva_total: str, passiva_total: str):
        self.aktiva_total = aktiva_total
        self.passiva_total = passiva_total
        super().__init__(
            f"Balance sheet is not balanced (Aktiva {aktiva_total}, "
            f"Passiva {passiva_total})"
        )


# Immutability-related exceptions


class ImmutabilityError(BilanzError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Posted journal entries, their line items, posted statement snapshots
    and closed fiscal years are immutable.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
