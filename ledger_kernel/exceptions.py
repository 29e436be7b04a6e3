"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to ledger errors without parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        kernel.lifecycle.post(voucher_id, business_id)
    except UnbalancedVoucherError as e:
        api_response(
            code=e.code,
            debit_total=e.debit_total,
            credit_total=e.credit_total,
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError                      malformed input
    |
    +-- BusinessRuleViolation                well-formed input, rule broken
    |   +-- UnbalancedVoucherError
    |   +-- AccountOwnershipError
    |   +-- UnknownGroupError
    |   +-- VoucherNotEditableError
    |   +-- InvalidTransitionError
    |   +-- InvalidReversalDateError
    |   +-- BooksNotOpenedError
    |   +-- OpeningPositionImbalanceError
    |
    +-- NotFoundError
    |   +-- BusinessNotFoundError
    |   +-- VoucherNotFoundError
    |   +-- AccountNotFoundError
    |   +-- GroupNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateAccountCodeError        (also a BusinessRuleViolation)
    |   +-- DuplicateGroupCodeError          (also a BusinessRuleViolation)
    |   +-- DuplicateVoucherNumberError
    |   +-- AlreadyInitializedError
    |
    +-- ImmutabilityViolationError
    |
    +-- PersistenceError                     opaque storage failure

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Validation      | VALIDATION_ERROR              | Missing/malformed field
----------------|-------------------------------|---------------------------------------
Business rule   | BUSINESS_RULE_VIOLATION       | Generic rule violation
                | UNBALANCED_VOUCHER            | Debits != Credits (2 decimals)
                | ACCOUNT_NOT_IN_BUSINESS       | Posting to another business's account
                | UNKNOWN_ACCOUNT_GROUP         | Account created under unknown group
                | VOUCHER_NOT_EDITABLE          | Editing a non-draft voucher
                | INVALID_VOUCHER_TRANSITION    | e.g. posting a cancelled voucher
                | INVALID_REVERSAL_DATE         | Reversal dated before the original
                | BOOKS_NOT_OPENED              | Mutation before opening position
                | OPENING_POSITION_IMBALANCED   | Opening DR != CR beyond tolerance
----------------|-------------------------------|---------------------------------------
Not found       | NOT_FOUND                     | Unknown id / not in this business
----------------|-------------------------------|---------------------------------------
Conflict        | CONFLICT                      | Unique constraint clash
                | DUPLICATE_ACCOUNT_CODE        | Account code reused in business
                | DUPLICATE_GROUP_CODE          | Group code reused in business
                | DUPLICATE_VOUCHER_NUMBER      | Voucher number reused in business
                | ALREADY_INITIALIZED           | Second opening position
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Modifying a posted/cancelled record
----------------|-------------------------------|---------------------------------------
System          | SYSTEM_ERROR                  | Unexpected persistence failure

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerKernelError):
    """Input is missing a field or a field is malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# =============================================================================
# Business rules
# =============================================================================


class BusinessRuleViolation(LedgerKernelError):
    """Base exception for well-formed input that breaks a ledger rule."""

    code: str = "BUSINESS_RULE_VIOLATION"


class UnbalancedVoucherError(BusinessRuleViolation):
    """Voucher debits and credits differ at two-decimal precision."""

    code: str = "UNBALANCED_VOUCHER"

    def __init__(self, debit_total: Decimal, credit_total: Decimal):
        self.debit_total = debit_total
        self.credit_total = credit_total
        self.difference = abs(debit_total - credit_total)
        super().__init__(
            f"Debit and Credit totals must match "
            f"(debit {debit_total}, credit {credit_total})"
        )


class AccountOwnershipError(BusinessRuleViolation):
    """One or more posting accounts do not belong to the voucher's business."""

    code: str = "ACCOUNT_NOT_IN_BUSINESS"

    def __init__(self, business_id: str, account_ids: list[str]):
        self.business_id = business_id
        self.account_ids = account_ids
        super().__init__(
            f"One or more ledgers do not belong to business {business_id}: "
            f"{', '.join(account_ids)}"
        )


class UnknownGroupError(BusinessRuleViolation):
    """Account group does not exist in the business."""

    code: str = "UNKNOWN_ACCOUNT_GROUP"

    def __init__(self, group_ref: str):
        self.group_ref = group_ref
        super().__init__(f"Unknown account group: {group_ref}")


class VoucherNotEditableError(BusinessRuleViolation):
    """Only DRAFT vouchers may be edited or deleted."""

    code: str = "VOUCHER_NOT_EDITABLE"

    def __init__(self, voucher_id: str, status: str):
        self.voucher_id = voucher_id
        self.status = status
        super().__init__(
            f"Voucher {voucher_id} is {status}; only DRAFT vouchers can be changed"
        )


class InvalidTransitionError(BusinessRuleViolation):
    """Requested lifecycle action is not allowed from the current status."""

    code: str = "INVALID_VOUCHER_TRANSITION"

    def __init__(self, voucher_id: str, from_status: str, action: str):
        self.voucher_id = voucher_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} voucher {voucher_id} in status {from_status}"
        )


class InvalidReversalDateError(BusinessRuleViolation):
    """Reversal date precedes the original voucher's date."""

    code: str = "INVALID_REVERSAL_DATE"

    def __init__(self, voucher_id: str, original_date: str, reversal_date: str):
        self.voucher_id = voucher_id
        self.original_date = original_date
        self.reversal_date = reversal_date
        super().__init__(
            f"Reversal date {reversal_date} is before original voucher date "
            f"{original_date}"
        )


class BooksNotOpenedError(BusinessRuleViolation):
    """Ordinary vouchers are rejected until the opening position is submitted."""

    code: str = "BOOKS_NOT_OPENED"

    def __init__(self, business_id: str):
        self.business_id = business_id
        super().__init__("Books not opened yet. Complete Opening Position first.")


class OpeningPositionImbalanceError(BusinessRuleViolation):
    """Opening position debits (including stock) do not equal credits."""

    code: str = "OPENING_POSITION_IMBALANCED"

    def __init__(self, debit_total: Decimal, credit_total: Decimal):
        self.debit_total = debit_total
        self.credit_total = credit_total
        self.variance = abs(debit_total - credit_total)
        super().__init__(
            f"Opening position is not balanced: debit {debit_total}, "
            f"credit {credit_total}, variance {self.variance}"
        )


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(LedgerKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class BusinessNotFoundError(NotFoundError):
    """Business with given ID was not found."""

    def __init__(self, business_id: str):
        self.business_id = business_id
        super().__init__(f"Business not found: {business_id}")


class VoucherNotFoundError(NotFoundError):
    """Voucher with given ID was not found in the business."""

    def __init__(self, voucher_id: str):
        self.voucher_id = voucher_id
        super().__init__(f"Voucher not found: {voucher_id}")


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found in the business."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Ledger not found: {account_id}")


class GroupNotFoundError(NotFoundError):
    """Account group with given ID was not found in the business."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Account group not found: {group_id}")


# =============================================================================
# Conflicts
# =============================================================================


class ConflictError(LedgerKernelError):
    """Base exception for unique-key conflicts."""

    code: str = "CONFLICT"


class DuplicateAccountCodeError(ConflictError, BusinessRuleViolation):
    """Account code already used within the business."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, business_id: str, account_code: str):
        self.business_id = business_id
        self.account_code = account_code
        super().__init__(f"Ledger code already exists: {account_code}")


class DuplicateGroupCodeError(ConflictError, BusinessRuleViolation):
    """Group code already used within the business."""

    code: str = "DUPLICATE_GROUP_CODE"

    def __init__(self, business_id: str, group_code: str):
        self.business_id = business_id
        self.group_code = group_code
        super().__init__(f"Account group code already exists: {group_code}")


class DuplicateVoucherNumberError(ConflictError):
    """Voucher number already used within the business."""

    code: str = "DUPLICATE_VOUCHER_NUMBER"

    def __init__(self, business_id: str, voucher_number: str):
        self.business_id = business_id
        self.voucher_number = voucher_number
        super().__init__(f"Voucher number already exists: {voucher_number}")


class AlreadyInitializedError(ConflictError):
    """Opening position has already been submitted for the business."""

    code: str = "ALREADY_INITIALIZED"

    def __init__(self, business_id: str):
        self.business_id = business_id
        super().__init__(f"Books already opened for business {business_id}")


# =============================================================================
# Immutability / system
# =============================================================================


class ImmutabilityViolationError(LedgerKernelError):
    """Attempt to modify or delete a record that is frozen."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class PersistenceError(LedgerKernelError):
    """Unexpected storage failure. The detail is logged, never exposed."""

    code: str = "SYSTEM_ERROR"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Persistence failure during {operation}")
