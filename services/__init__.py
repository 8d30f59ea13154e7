"""
Servicios de negocio del ledger de recepción
"""

from .booking_lifecycle import BookingLifecycleController, BulkResult, EditOutcome
from .invoice_service import InvoiceOutcome, InvoiceService

__all__ = [
    "BookingLifecycleController",
    "BulkResult",
    "EditOutcome",
    "InvoiceOutcome",
    "InvoiceService",
]
