"""Typed exceptions for billing failures.

Every error is scoped to the single requested operation; the API layer maps
each kind to a status code and a user-facing message.
"""


class BillingError(Exception):
    """Base class for invoice, expense and shipment errors."""


class NotFoundError(BillingError):
    """
    Shipment, invoice, expense or company does not exist in the caller's company.

    Entities of other companies are reported as missing, never as forbidden.
    """


class InvalidStateError(BillingError):
    """
    Operation not allowed in the entity's current status.

    Caller should re-fetch the current state before retrying.
    """


class InvalidInputError(BillingError):
    """Input passed schema validation but makes no business sense."""


class TransactionError(BillingError):
    """A multi-write transition was rolled back. Nothing was persisted."""


class DuplicateInvoiceNumberError(TransactionError):
    """
    Another request committed the same invoice number first.

    Raised when the (company_id, invoice_number) unique constraint fires.
    Invoice generation recomputes the number and retries.
    """
