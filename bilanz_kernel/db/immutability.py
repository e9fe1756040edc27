"""
ORM-level immutability enforcement for posted ledger data.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below raise ImmutabilityViolationError and the
flush is aborted:

    session.flush()
         |
         v
    [before_update / before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity              | When immutable                       | Exempt fields
--------------------|--------------------------------------|-------------------
JournalEntry        | once posted_at is set                | updated_at
LineItem            | once the parent entry is posted      | -
StatementSnapshot   | once posted_at is set                | updated_at
FiscalYear          | once closed                          | updated_at
Account             | code / account_type / company_id     | everything else,
                    | once referenced by a posted line     | incl. presentation_rule

The posting transition itself (posted_at None -> timestamp, closed False ->
True) is allowed; every later change is blocked.

A closed fiscal year also takes no new bookings: inserting a journal entry
into it, moving a draft into it or posting a draft of it raises
FiscalYearClosedError.  The CLOSING entry written by the close itself is
exempt.
"""

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm.attributes import get_history

from bilanz_kernel.exceptions import FiscalYearClosedError, ImmutabilityViolationError
from bilanz_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

ACCOUNT_STRUCTURAL_FIELDS = frozenset({"code", "account_type", "company_id"})

_AUDIT_FIELDS = frozenset({"updated_at"})


def _was_set_before(target, attr_name: str) -> bool:
    """Whether ``attr_name`` held a truthy value before the current flush."""
    history = get_history(target, attr_name)
    if history.deleted:
        return bool(history.deleted[0])
    if history.added:
        return False
    return bool(getattr(target, attr_name))


def _changed_fields(target) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Journal entries and line items
# ---------------------------------------------------------------------------


def _reject_booking_into_closed_year(connection, target, operation: str) -> None:
    from bilanz_kernel.models.fiscal_year import FiscalYear
    from bilanz_kernel.models.journal import EntryType

    if target.entry_type == EntryType.CLOSING.value:
        return
    row = connection.execute(
        select(FiscalYear.closed, FiscalYear.year).where(FiscalYear.id == target.fiscal_year_id)
    ).first()
    if row is None or not row.closed:
        return

    logger.error(
        "closed_fiscal_year_booking_blocked",
        extra={
            "fiscal_year": row.year,
            "operation": operation,
        },
    )
    raise FiscalYearClosedError(str(target.fiscal_year_id), row.year)


def _check_journal_entry_insert(mapper, connection, target):
    _reject_booking_into_closed_year(connection, target, "INSERT")


def _check_journal_entry_immutability(mapper, connection, target):
    if not _was_set_before(target, "posted_at"):
        if (
            get_history(target, "fiscal_year_id").has_changes()
            or get_history(target, "posted_at").has_changes()
        ):
            _reject_booking_into_closed_year(connection, target, "UPDATE")
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "JournalEntry",
            target,
            "UPDATE",
            f"Posted journal entries cannot be modified (fields: {changed})",
        )


def _check_journal_entry_delete(mapper, connection, target):
    if target.posted_at is not None:
        _block("JournalEntry", target, "DELETE", "Posted journal entries cannot be deleted")


def _entry_is_posted(line) -> bool:
    entry = line.entry
    return entry is not None and _was_set_before(entry, "posted_at")


def _check_line_item_insert(mapper, connection, target):
    if _entry_is_posted(target):
        _block(
            "LineItem",
            target,
            "INSERT",
            "Line items cannot be added to a posted journal entry",
        )


def _check_line_item_immutability(mapper, connection, target):
    if _entry_is_posted(target):
        _block(
            "LineItem",
            target,
            "UPDATE",
            "Line items cannot be modified after the parent entry is posted",
        )


def _check_line_item_delete(mapper, connection, target):
    if _entry_is_posted(target):
        _block(
            "LineItem",
            target,
            "DELETE",
            "Line items cannot be deleted after the parent entry is posted",
        )


# ---------------------------------------------------------------------------
# Snapshots and fiscal years
# ---------------------------------------------------------------------------


def _check_snapshot_immutability(mapper, connection, target):
    if not _was_set_before(target, "posted_at"):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "StatementSnapshot",
            target,
            "UPDATE",
            f"Posted statement snapshots cannot be modified (fields: {changed})",
        )


def _check_snapshot_delete(mapper, connection, target):
    if target.posted_at is not None:
        _block(
            "StatementSnapshot", target, "DELETE", "Posted statement snapshots cannot be deleted"
        )


def _check_fiscal_year_immutability(mapper, connection, target):
    if not _was_set_before(target, "closed"):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "FiscalYear",
            target,
            "UPDATE",
            f"Closed fiscal years cannot be modified (fields: {changed})",
        )


def _check_fiscal_year_delete(mapper, connection, target):
    if target.closed:
        _block("FiscalYear", target, "DELETE", "Closed fiscal years cannot be deleted")


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def _account_has_posted_references(connection, account_id) -> bool:
    from bilanz_kernel.models.journal import JournalEntry, LineItem

    stmt = select(
        exists()
        .where(LineItem.account_id == account_id)
        .where(LineItem.journal_entry_id == JournalEntry.id)
        .where(JournalEntry.posted_at.is_not(None))
    )
    return bool(connection.execute(stmt).scalar())


def _check_account_structural_immutability(mapper, connection, target):
    changed = [
        field
        for field in sorted(ACCOUNT_STRUCTURAL_FIELDS)
        if get_history(target, field).has_changes()
    ]
    if not changed:
        return
    if _account_has_posted_references(connection, target.id):
        _block(
            "Account",
            target,
            "UPDATE",
            f"Cannot modify structural field(s) {changed} on account "
            "referenced by posted journal entries",
        )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listeners():
    from bilanz_kernel.models.account import Account
    from bilanz_kernel.models.fiscal_year import FiscalYear
    from bilanz_kernel.models.journal import JournalEntry, LineItem
    from bilanz_kernel.models.statement_snapshot import StatementSnapshot

    return (
        (JournalEntry, "before_insert", _check_journal_entry_insert),
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (LineItem, "before_insert", _check_line_item_insert),
        (LineItem, "before_update", _check_line_item_immutability),
        (LineItem, "before_delete", _check_line_item_delete),
        (StatementSnapshot, "before_update", _check_snapshot_immutability),
        (StatementSnapshot, "before_delete", _check_snapshot_delete),
        (FiscalYear, "before_update", _check_fiscal_year_immutability),
        (FiscalYear, "before_delete", _check_fiscal_year_delete),
        (Account, "before_update", _check_account_structural_immutability),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call after the models are imported and before any database work.
    Registering twice is harmless.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
