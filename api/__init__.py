"""HTTP interface for invoices and the expense ledger."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    respond,
    ErrorCodes,
)
