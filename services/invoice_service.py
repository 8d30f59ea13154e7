"""
Generación de invoices por fila del ledger.

- El número se asigna una sola vez por fila y nunca se reutiliza (ni si
  luego se anula con VOID).
- Un invoice VOID no genera documento.
- Con force=False no se regenera si ya existe la referencia al documento.
"""

from dataclasses import dataclass
from typing import Optional

from config import INVOICE_STATUS_PAID, NOTIFY_ENABLED
from models.booking import BookingRecord
from services.collaborators import (
    FolderInvoiceRenderer,
    InvoiceDocument,
    InvoiceRenderer,
    LogNotifier,
    Notifier,
)
from utils.invoice_sequence import InvoiceSequenceAllocator
from utils.logging_utils import log_error, log_event
from utils.quote_calculator import invoice_breakdown
from utils.timezone import get_hotel_now

INVOICE_FIELDS = (
    "room", "guest", "amount", "nights", "taxRate",
    "invoiceNo", "invoiceStatus", "invoiceUrl", "checkOutTime",
)


@dataclass
class InvoiceOutcome:
    row: int
    invoice_no: str = ""
    status: str = ""
    document_ref: str = ""
    generated: bool = False
    notified: bool = False
    skipped_reason: Optional[str] = None


class InvoiceService:
    """Orquesta numeración, documento y notificación para una fila"""

    def __init__(
        self,
        allocator: Optional[InvoiceSequenceAllocator] = None,
        renderer: Optional[InvoiceRenderer] = None,
        notifier: Optional[Notifier] = None,
        notify_enabled: bool = NOTIFY_ENABLED,
    ):
        self.allocator = allocator or InvoiceSequenceAllocator()
        self.renderer = renderer or FolderInvoiceRenderer()
        self.notifier = notifier or LogNotifier()
        self.notify_enabled = notify_enabled

    def generate_for_row(self, sheet, schema, row: int, force: bool = False, usuario: str = "system") -> InvoiceOutcome:
        """
        Genera (o reimprime con force=True) el invoice de una fila.

        LockUnavailable del allocator se propaga: la fila queda sin cambios.
        """
        outcome = InvoiceOutcome(row=row)

        if not schema.has(*INVOICE_FIELDS):
            outcome.skipped_reason = "schema_missing"
            log_event("invoice", usuario, "Invoice omitido", f"row={row}, faltan={schema.missing(*INVOICE_FIELDS)}")
            return outcome

        record = BookingRecord(sheet, schema, row)
        if not record.room:
            outcome.skipped_reason = "no_room"
            return outcome

        # 1) Número (una sola vez por fila)
        invoice_no = record.invoice_no
        if not invoice_no:
            invoice_no = self.allocator.next_invoice_number()
            record.set("invoiceNo", invoice_no)
        outcome.invoice_no = invoice_no

        # 2) Estado
        status = record.invoice_status
        if not status:
            status = INVOICE_STATUS_PAID
            record.set("invoiceStatus", status)
        outcome.status = status
        if record.is_void:
            outcome.skipped_reason = "void"
            log_event("invoice", usuario, "Invoice VOID, sin documento", f"row={row}, invoice={invoice_no}")
            return outcome

        # 3) Documento
        if record.invoice_url and not force:
            outcome.document_ref = record.invoice_url
            outcome.skipped_reason = "already_generated"
            return outcome

        amounts = invoice_breakdown(record.get("amount"), record.get("nights"), record.get("taxRate"))
        document = InvoiceDocument(
            record_id=row,
            room=record.room,
            guest=record.guest,
            rate=amounts["rate"],
            nights=amounts["nights"],
            tax_rate=amounts["tax_rate"],
            subtotal=amounts["subtotal"],
            tax=amounts["tax"],
            total=amounts["total"],
            payment_type=record.payment_type,
            invoice_number=invoice_no,
            timestamp=record.check_out_time or get_hotel_now(),
            processor=str(record.get("processor") or ""),
            receipt=str(record.get("receipt") or ""),
            last4=str(record.get("last4") or ""),
            auth=str(record.get("auth") or ""),
        )
        document_ref = self.renderer.render(document)
        record.set("invoiceUrl", document_ref)
        outcome.document_ref = document_ref
        outcome.generated = True
        log_event("invoice", usuario, "Invoice generado", f"row={row}, room={record.room}, invoice={invoice_no}, force={force}")

        # 4) Notificación opcional (un fallo no invalida el invoice)
        email = record.guest_email
        if self.notify_enabled and email:
            try:
                self.notifier.send_invoice(email, invoice_no, document_ref)
                outcome.notified = True
            except Exception as e:
                log_error("invoice", "Error notificando invoice", e, row=row, invoice=invoice_no, to=email)

        return outcome
