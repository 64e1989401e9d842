"""
Handlers that write invoice audit entries.

Run after the invoice transaction has committed. Entry details quote the
invoice number, amounts and shipment tracking number as they were at the
time of the action.
"""

from typing import Any, Callable

from core.audit import AuditAction, AuditLogger
from core.events import InvoiceCancelled, InvoiceEvent, InvoiceGenerated, InvoiceIssued, InvoicePaid


def _log(audit: AuditLogger, action: AuditAction, event: InvoiceEvent, details: dict[str, Any]) -> None:
    audit.log_action(
        action=action,
        entity="Invoice",
        entity_id=event.invoice.id,
        details=details,
        user_id=event.user_id,
        company_id=event.company_id,
    )


def handle_invoice_generated(audit: AuditLogger) -> Callable:
    """
    Factory that returns an InvoiceGenerated handler.

    Args:
        audit: AuditLogger instance

    Returns:
        Handler callable that records INVOICE_CREATED
    """

    def handler(event: InvoiceGenerated):
        invoice = event.invoice
        _log(audit, AuditAction.INVOICE_CREATED, event, {
            "invoiceNumber": invoice.invoice_number,
            "status": invoice.status.value,
            "totalAmount": invoice.total_amount,
            "amountDue": invoice.amount_due,
            "honoraires": invoice.honoraires,
            "lineCount": len(invoice.lines),
            "shipmentTracking": event.tracking_number,
        })

    return handler


def handle_invoice_issued(audit: AuditLogger) -> Callable:
    """Factory that returns an InvoiceIssued handler recording INVOICE_ISSUED."""

    def handler(event: InvoiceIssued):
        invoice = event.invoice
        _log(audit, AuditAction.INVOICE_ISSUED, event, {
            "invoiceNumber": invoice.invoice_number,
            "totalAmount": invoice.total_amount,
            "amountDue": invoice.amount_due,
            "shipmentTracking": event.tracking_number,
        })

    return handler


def handle_invoice_paid(audit: AuditLogger) -> Callable:
    """Factory that returns an InvoicePaid handler recording INVOICE_PAID."""

    def handler(event: InvoicePaid):
        invoice = event.invoice
        _log(audit, AuditAction.INVOICE_PAID, event, {
            "invoiceNumber": invoice.invoice_number,
            "amount": invoice.total_amount,
            "shipmentTracking": event.tracking_number,
        })

    return handler


def handle_invoice_cancelled(audit: AuditLogger) -> Callable:
    """Factory that returns an InvoiceCancelled handler recording INVOICE_CANCELLED."""

    def handler(event: InvoiceCancelled):
        invoice = event.invoice
        _log(audit, AuditAction.INVOICE_CANCELLED, event, {
            "invoiceNumber": invoice.invoice_number,
            "totalAmount": invoice.total_amount,
            "shipmentTracking": event.tracking_number,
        })

    return handler
