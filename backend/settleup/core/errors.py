"""
Error taxonomy for the ledger and settlement engine.

Every error carries the HTTP status the API layer answers with. Validation
errors also subclass ValueError so callers that only care about "bad input"
can catch them the usual way.
"""


class SettlementError(Exception):
    status_code = 400
    code = "settlement_error"
    default_message = "Settlement operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidAmount(SettlementError, ValueError):
    code = "invalid_amount"
    default_message = "Amount must be a positive integer number of minor units"


class InvalidParties(SettlementError, ValueError):
    code = "invalid_parties"
    default_message = "Debtor and creditor must be two different members of the group"


class InvalidExpense(SettlementError, ValueError):
    code = "invalid_expense"
    default_message = "Expense shares must be non-negative and sum to the expense amount"


class MissingReason(SettlementError, ValueError):
    code = "missing_reason"
    default_message = "A reason is required to reject a payment"


class AmountExceedsRemaining(SettlementError, ValueError):
    code = "amount_exceeds_remaining"
    default_message = "Payment amount exceeds the remaining settlement amount"


class SettlementTerminal(SettlementError):
    status_code = 409
    code = "settlement_terminal"
    default_message = "Settlement is already completed"


class AlreadyResolved(SettlementError):
    status_code = 409
    code = "already_resolved"
    default_message = "Payment is no longer pending"


class Conflict(SettlementError):
    """Concurrent writers kept colliding; safe for the caller to retry."""

    status_code = 409
    code = "conflict"
    default_message = "Settlement was modified concurrently, please retry"


class Unauthorized(SettlementError):
    status_code = 403
    code = "unauthorized"
    default_message = "User is not allowed to perform this action"


class SettlementNotFound(SettlementError):
    status_code = 404
    code = "settlement_not_found"
    default_message = "Settlement not found"


class PaymentNotFound(SettlementError):
    status_code = 404
    code = "payment_not_found"
    default_message = "Payment not found"


class PersistenceFailure(SettlementError):
    status_code = 503
    code = "persistence_failure"
    default_message = "Storage is unavailable, nothing was saved"
