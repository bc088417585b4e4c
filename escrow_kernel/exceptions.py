"""
Typed Exception Hierarchy for the Escrow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Custody errors must be handled precisely. A caller that moves money on the
back of an engine response needs to know whether the request was bad, the
account was in the wrong state, the parties did not authorize the release,
or the payment provider failed. Parsing message strings for that is fragile.

Every exception here therefore has:
  1. a TYPED class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. a CATEGORY class attribute mapping it onto the error taxonomy
  4. structured DATA attributes (not just a message string)

Example:
    try:
        service.release_partial_escrow(escrow_id, amount, "Phase 1", approved_by)
    except InsufficientAvailableBalanceError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)
    except ReleaseNotAuthorizedError as e:
        api_response(status=403, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    EscrowKernelError (base)
    |
    +-- InvalidRequestError                  category: invalid_request
    |   +-- InvalidAmountError
    |   +-- MilestoneSumMismatchError
    |   +-- UnsupportedPaymentMethodError
    |   +-- InsufficientAvailableBalanceError
    |   +-- InvalidSplitError
    |
    +-- EscrowNotFoundError                  category: not_found
    |
    +-- EscrowConflictError                  category: conflict
    |   +-- InvalidEscrowStateError
    |   +-- NoFundsAvailableError
    |   +-- EscrowAlreadyExistsError
    |
    +-- ReleaseNotAuthorizedError            category: forbidden
    |
    +-- PaymentGatewayError                  category: upstream
    |
    +-- ConcurrencyError                     category: concurrency
    |   +-- OptimisticLockError
    |
    +-- CustodyInvariantError                category: internal

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|----------------------------------
Invalid request | INVALID_AMOUNT                 | Non-positive / malformed amount
                | MILESTONE_SUM_MISMATCH         | Milestones don't sum to total
                | UNSUPPORTED_PAYMENT_METHOD     | Method can't fund an escrow
                | INSUFFICIENT_AVAILABLE_BALANCE | Partial release > available
                | INVALID_SPLIT                  | Split percentages != 100
----------------|--------------------------------|----------------------------------
Not found       | ESCROW_NOT_FOUND               | Unknown escrow account id
----------------|--------------------------------|----------------------------------
Conflict        | INVALID_ESCROW_STATE           | Operation not allowed in status
                | NO_FUNDS_AVAILABLE             | Nothing left to release/refund
                | ESCROW_ALREADY_EXISTS          | Contract already has an account
----------------|--------------------------------|----------------------------------
Forbidden       | RELEASE_NOT_AUTHORIZED         | Consent-or-arbiter rule failed
----------------|--------------------------------|----------------------------------
Upstream        | PAYMENT_GATEWAY_ERROR          | Payment rail call failed
----------------|--------------------------------|----------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT       | Account changed under the caller
----------------|--------------------------------|----------------------------------
Internal        | CUSTODY_INVARIANT_VIOLATION    | A mutation would break custody law

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Every error except PaymentGatewayError and ConcurrencyError is raised
   before any attribute of the account is assigned. The account is untouched.

2. PaymentGatewayError never implies ledger corruption: deposit instruction
   generation does not mutate the account. Callers may retry it.

3. OptimisticLockError means another transaction won the race. Roll back,
   reload and retry (see escrow_kernel.services.retry). The engine itself
   never retries.

4. CustodyInvariantError is a bug. Investigate; never retry blindly.
"""

from __future__ import annotations

from decimal import Decimal


class EscrowKernelError(Exception):
    """
    Base exception for all escrow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `category` naming the taxonomy bucket.
    """

    code: str = "ESCROW_KERNEL_ERROR"
    category: str = "internal"


# Invalid request


class InvalidRequestError(EscrowKernelError):
    """Base exception for bad input. Always raised before any mutation."""

    code: str = "INVALID_REQUEST"
    category: str = "invalid_request"


class InvalidAmountError(InvalidRequestError):
    """Amount is non-positive, non-numeric, a float, too precise, or too large to store."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class MilestoneSumMismatchError(InvalidRequestError):
    """Milestone amounts do not add up to the escrow total."""

    code: str = "MILESTONE_SUM_MISMATCH"

    def __init__(self, milestones_total: Decimal, total_amount: Decimal):
        self.milestones_total = milestones_total
        self.total_amount = total_amount
        super().__init__(
            f"Milestones total ({milestones_total:.2f}) must equal "
            f"escrow amount ({total_amount:.2f})"
        )


class UnsupportedPaymentMethodError(InvalidRequestError):
    """Payment method cannot be used to fund an escrow."""

    code: str = "UNSUPPORTED_PAYMENT_METHOD"

    def __init__(self, payment_method: str):
        self.payment_method = payment_method
        super().__init__(
            f"Payment method {payment_method} is not supported for escrow deposits"
        )


class InsufficientAvailableBalanceError(InvalidRequestError):
    """Requested release exceeds the available balance."""

    code: str = "INSUFFICIENT_AVAILABLE_BALANCE"

    def __init__(self, escrow_id: str, requested: Decimal, available: Decimal):
        self.escrow_id = escrow_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested release {requested:.2f} exceeds available "
            f"{available:.2f} on escrow {escrow_id}"
        )


class InvalidSplitError(InvalidRequestError):
    """Split shares are malformed or do not total 100%."""

    code: str = "INVALID_SPLIT"

    def __init__(self, total_percentage: Decimal, reason: str | None = None):
        self.total_percentage = total_percentage
        self.reason = reason or (
            f"split percentages must total 100%, got {total_percentage}%"
        )
        super().__init__(f"Invalid split: {self.reason}")


# Not found


class EscrowNotFoundError(EscrowKernelError):
    """Escrow account with given ID was not found."""

    code: str = "ESCROW_NOT_FOUND"
    category: str = "not_found"

    def __init__(self, escrow_id: str):
        self.escrow_id = escrow_id
        super().__init__(f"Escrow account {escrow_id} not found")


# Conflict


class EscrowConflictError(EscrowKernelError):
    """Base exception for operations incompatible with the account state."""

    code: str = "ESCROW_CONFLICT"
    category: str = "conflict"


class InvalidEscrowStateError(EscrowConflictError):
    """Operation is not allowed while the account is in its current status."""

    code: str = "INVALID_ESCROW_STATE"

    def __init__(self, escrow_id: str, status: str, operation: str, detail: str):
        self.escrow_id = escrow_id
        self.status = status
        self.operation = operation
        super().__init__(detail)


class NoFundsAvailableError(EscrowConflictError):
    """Nothing is left to release or refund."""

    code: str = "NO_FUNDS_AVAILABLE"

    def __init__(self, escrow_id: str, operation: str, amount: Decimal):
        self.escrow_id = escrow_id
        self.operation = operation
        self.amount = amount
        super().__init__(f"No funds available for {operation} on escrow {escrow_id}")


class EscrowAlreadyExistsError(EscrowConflictError):
    """The contract already has an escrow account."""

    code: str = "ESCROW_ALREADY_EXISTS"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Escrow already exists for contract {contract_id}")


# Forbidden


class ReleaseNotAuthorizedError(EscrowKernelError):
    """Release lacks mutual consent and has no arbiter approval."""

    code: str = "RELEASE_NOT_AUTHORIZED"
    category: str = "forbidden"

    def __init__(self, escrow_id: str, approved_by: list[str]):
        self.escrow_id = escrow_id
        self.approved_by = approved_by
        super().__init__(
            "Release requires approval from both depositor and beneficiary, "
            "or from an arbiter"
        )


# Upstream


class PaymentGatewayError(EscrowKernelError):
    """The payment rail failed to produce a deposit instruction."""

    code: str = "PAYMENT_GATEWAY_ERROR"
    category: str = "upstream"

    def __init__(self, escrow_id: str, payment_method: str, detail: str):
        self.escrow_id = escrow_id
        self.payment_method = payment_method
        self.detail = detail
        super().__init__(
            f"Payment rail failed to generate {payment_method} instruction "
            f"for escrow {escrow_id}: {detail}"
        )


# Concurrency


class ConcurrencyError(EscrowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    category: str = "concurrency"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Internal


class CustodyInvariantError(EscrowKernelError):
    """A mutation would break one of the custody invariants."""

    code: str = "CUSTODY_INVARIANT_VIOLATION"
    category: str = "internal"

    def __init__(self, escrow_id: str, invariant: str, detail: str):
        self.escrow_id = escrow_id
        self.invariant = invariant
        super().__init__(f"Custody invariant {invariant} violated on escrow {escrow_id}: {detail}")
