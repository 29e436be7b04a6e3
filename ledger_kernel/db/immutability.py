"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted vouchers must be tamper-proof: they are corrected by cancellation or
by a reversal voucher, never by editing.  Cancelled vouchers are retained
for audit and must stay exactly as they were voided.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
Listeners registered here intercept these events and raise
ImmutabilityViolationError; the flush aborts and the database is never
modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | When Immutable                     | Allowed change
--------------|------------------------------------|---------------------------
Voucher       | status = POSTED                    | POSTED -> CANCELLED with
              |                                    | cancelled_at/cancel_reason
Voucher       | status = CANCELLED                 | none
Voucher       | DELETE unless DRAFT                | none
Posting       | parent voucher POSTED or CANCELLED | none
Account       | DELETE always                      | updates allowed
AccountGroup  | DELETE always                      | updates allowed

===============================================================================
USAGE
===============================================================================

Called once at application startup:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at"})
_CANCELLATION_FIELDS = frozenset({"status", "cancelled_at", "cancel_reason"})


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_voucher_immutability(mapper, connection, target):
    """
    Prevent updates to posted or cancelled vouchers.

    The status history tells whether the voucher was already frozen
    before this flush:
        1. Status changing FROM posted/cancelled: frozen before, check it.
        2. Status unchanged and posted/cancelled: frozen, block any change.
        3. Status changing from DRAFT: this IS the post/cancel, allow.
    """
    from ledger_kernel.models.voucher import VoucherStatus

    status_history = get_history(target, "status")
    if status_history.deleted:
        previous = status_history.deleted[0]
    elif not status_history.added:
        previous = target.status
    else:
        previous = VoucherStatus.DRAFT

    if previous == VoucherStatus.DRAFT:
        return

    changed = [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
        and attr.key != "postings"
    ]
    if not changed:
        return

    if (
        previous == VoucherStatus.POSTED
        and target.status == VoucherStatus.CANCELLED
        and set(changed) <= _CANCELLATION_FIELDS
    ):
        return

    _block(
        "Voucher",
        target.id,
        "UPDATE",
        f"Cannot modify field '{changed[0]}' on {VoucherStatus(previous).value} voucher",
        field=changed[0],
    )


def _check_voucher_delete(mapper, connection, target):
    """Only DRAFT vouchers may be deleted."""
    from ledger_kernel.models.voucher import VoucherStatus

    if target.status != VoucherStatus.DRAFT:
        _block(
            "Voucher",
            target.id,
            "DELETE",
            f"{VoucherStatus(target.status).value} vouchers cannot be deleted",
        )


def _check_posting_immutability(mapper, connection, target):
    """Postings freeze with their parent voucher."""
    from ledger_kernel.models.voucher import VoucherStatus

    voucher = target.voucher
    if voucher is not None and voucher.status != VoucherStatus.DRAFT:
        _block(
            "Posting",
            target.id,
            "UPDATE",
            "Postings cannot be modified after the voucher leaves DRAFT",
        )


def _check_posting_delete(mapper, connection, target):
    from ledger_kernel.models.voucher import VoucherStatus

    voucher = target.voucher
    if voucher is not None and voucher.status != VoucherStatus.DRAFT:
        _block(
            "Posting",
            target.id,
            "DELETE",
            "Postings cannot be deleted after the voucher leaves DRAFT",
        )


def _check_account_delete(mapper, connection, target):
    _block("Account", target.id, "DELETE", "Ledger accounts are never deleted")


def _check_group_delete(mapper, connection, target):
    _block("AccountGroup", target.id, "DELETE", "Account groups are never deleted")


def _listeners():
    from ledger_kernel.models.account import Account, AccountGroup
    from ledger_kernel.models.voucher import Posting, Voucher

    return (
        (Voucher, "before_update", _check_voucher_immutability),
        (Voucher, "before_delete", _check_voucher_delete),
        (Posting, "before_update", _check_posting_immutability),
        (Posting, "before_delete", _check_posting_delete),
        (Account, "before_delete", _check_account_delete),
        (AccountGroup, "before_delete", _check_group_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; a listener already present is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
