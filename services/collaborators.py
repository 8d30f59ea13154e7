"""
Colaboradores externos del ledger: generación del documento de invoice y
notificaciones. El core sólo guarda la referencia que devuelven.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from config import INVOICE_OUTPUT_DIR, MOTEL_INFO
from utils.logging_utils import log_event
from utils.timezone import format_hotel_time, get_hotel_now, get_operational_date


@dataclass
class InvoiceDocument:
    """Datos que recibe el generador de documentos"""
    record_id: int
    room: str
    guest: str
    rate: Decimal
    nights: int
    tax_rate: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_type: str
    invoice_number: str
    timestamp: Any
    processor: str = ""
    receipt: str = ""
    last4: str = ""
    auth: str = ""


class InvoiceRenderer:
    """Interfaz: genera el documento y devuelve su referencia (URL / path)"""

    def render(self, document: InvoiceDocument) -> str:
        raise NotImplementedError


class Notifier:
    """Interfaz: avisa al huésped que su invoice está disponible"""

    def send_invoice(self, recipient: str, invoice_number: str, document_ref: str) -> None:
        raise NotImplementedError


def safe_name(value: Optional[str]) -> str:
    text = re.sub(r"[^a-zA-Z0-9 ]", "", value or "Guest").strip()
    return re.sub(r"\s+", "_", text)[:20] or "Guest"


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return get_hotel_now()


class FolderInvoiceRenderer(InvoiceRenderer):
    """
    Escribe un recibo de texto en <INVOICE_OUTPUT_DIR>/YYYY-MM-DD/.
    El diseño del documento final queda fuera del core.
    """

    def __init__(self, base_dir: str = INVOICE_OUTPUT_DIR):
        self.base_dir = Path(base_dir)

    def folder_for_today(self) -> Path:
        folder = self.base_dir / get_operational_date()
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    def render(self, document: InvoiceDocument) -> str:
        paid_at = _as_datetime(document.timestamp)
        file_name = f"{document.room}_{safe_name(document.guest)}_{paid_at.strftime('%Y%m%d_%H%M%S')}.txt"
        path = self.folder_for_today() / file_name

        nights_text = "night" if document.nights == 1 else "nights"
        lines = [
            MOTEL_INFO["name"],
            MOTEL_INFO["addr1"],
            MOTEL_INFO["addr2"],
            f"Phone: {MOTEL_INFO['phone']}",
            "",
            "INVOICE",
            f"Invoice #: {document.invoice_number}",
            f"Guest: {document.guest or '-'}",
            f"Room: {document.room}",
            f"Date: {format_hotel_time(paid_at)}",
            "",
            f"Payment Type: {document.payment_type or '-'}",
            f"Payment Processor: {document.processor or '-'}",
            f"Receipt / Transaction #: {document.receipt or '-'}",
            f"Card Last 4: {document.last4 or '-'}",
            f"Auth Code: {document.auth or '-'}",
            "",
            f"Lodging: {document.nights} {nights_text} @ ${document.rate:.2f}/night  ${document.subtotal:.2f}",
            f"Tax ({document.tax_rate * 100:.2f}%): ${document.tax:.2f}",
            f"Total Paid: ${document.total:.2f}",
        ]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path.resolve())


class LogNotifier(Notifier):
    """Notificador por defecto: sólo deja registro"""

    def send_invoice(self, recipient: str, invoice_number: str, document_ref: str) -> None:
        log_event("notify", "system", "Invoice enviado", f"to={recipient}, invoice={invoice_number}, ref={document_ref}")
